"""
Compression schemes used around NBT data.

Standalone NBT files are usually gzip-compressed, region chunks are usually
zlib-compressed and either may be stored raw. The scheme ids double as the
one-byte compression tag stored in front of every region chunk.
"""

import enum
import gzip
import io
import logging
import zlib

from syntaxnbt.types.errors import MalformedWireError, UnknownCompressionError

logger = logging.getLogger(__name__)

GZIP_MAGIC = 0x1F8B
ZLIB_MAGIC = 0x78
CHUNK_SIZE = 64 * 1024


class Compression(enum.IntEnum):
    GZIP = 1
    ZLIB = 2
    NONE = 3

    @classmethod
    def from_id(cls, scheme_id):
        try:
            return cls(scheme_id)
        except ValueError:
            raise UnknownCompressionError(scheme_id) from None

    def compress(self, data):
        if self is Compression.GZIP:
            return gzip.compress(data)
        if self is Compression.ZLIB:
            return zlib.compress(data)
        return bytes(data)

    def decompress(self, data):
        try:
            if self is Compression.GZIP:
                return gzip.decompress(data)
            if self is Compression.ZLIB:
                return zlib.decompress(data)
        except (OSError, EOFError, zlib.error) as e:
            raise MalformedWireError(f"Corrupt {self.name.lower()} data: {e}") from e
        return bytes(data)

    def open_writer(self, fileobj):
        """
        Returns a writable stream that compresses into *fileobj*. Closing
        the returned stream finishes the compressed data but leaves
        *fileobj* open.
        """
        if self is Compression.GZIP:
            return gzip.GzipFile(fileobj=fileobj, mode='wb')
        if self is Compression.ZLIB:
            return _ZlibWriter(fileobj)
        return _Passthrough(fileobj)

    def open_reader(self, fileobj):
        """Returns a readable stream that decompresses *fileobj*."""
        if self is Compression.GZIP:
            return gzip.GzipFile(fileobj=fileobj, mode='rb')
        if self is Compression.ZLIB:
            return _ZlibReader(fileobj)
        return _Passthrough(fileobj)


def detect(data):
    """Guesses the compression scheme from the first two bytes of *data*."""
    if len(data) < 2:
        return Compression.NONE

    magic = (data[0] << 8) | data[1]
    if magic == GZIP_MAGIC:
        return Compression.GZIP
    if data[0] == ZLIB_MAGIC and magic % 31 == 0:
        return Compression.ZLIB
    return Compression.NONE


def detect_stream(fileobj):
    """
    Guesses the compression scheme of a stream without consuming any of it.
    The stream must support either ``peek`` or ``seek``.
    """
    if hasattr(fileobj, 'peek'):
        head = fileobj.peek(2)[:2]
    else:
        position = fileobj.tell()
        head = fileobj.read(2)
        fileobj.seek(position)

    compression = detect(head)
    logger.debug("Detected %s compression from header %r", compression.name, head)
    return compression


def compress(data, compression):
    return Compression(compression).compress(data)


def decompress(data, compression=None):
    """Decompresses *data*, sniffing the scheme if none is given."""
    if compression is None:
        compression = detect(data)
    return Compression(compression).decompress(data)


class _Passthrough(io.RawIOBase):
    """Identity wrapper; closing it does not close the wrapped stream."""

    def __init__(self, fileobj):
        self.fileobj = fileobj

    def readable(self):
        return True

    def writable(self):
        return True

    def readinto(self, b):
        data = self.fileobj.read(len(b))
        b[:len(data)] = data
        return len(data)

    def write(self, b):
        return self.fileobj.write(b)


class _ZlibWriter(io.RawIOBase):
    def __init__(self, fileobj):
        self.fileobj = fileobj
        self.compressor = zlib.compressobj()

    def writable(self):
        return True

    def write(self, b):
        self.fileobj.write(self.compressor.compress(b))
        return len(b)

    def close(self):
        if not self.closed:
            try:
                self.fileobj.write(self.compressor.flush())
            finally:
                super().close()


class _ZlibReader(io.RawIOBase):
    def __init__(self, fileobj):
        self.fileobj = fileobj
        self.decompressor = zlib.decompressobj()
        self.pending = b""

    def readable(self):
        return True

    def readinto(self, b):
        while not self.pending and not self.decompressor.eof:
            data = self.fileobj.read(CHUNK_SIZE)
            try:
                if data:
                    self.pending = self.decompressor.decompress(data)
                else:
                    self.pending = self.decompressor.flush()
            except zlib.error as e:
                raise MalformedWireError(f"Corrupt zlib data: {e}") from e
            if not data and not self.decompressor.eof:
                if self.pending:
                    break
                raise MalformedWireError("Truncated zlib data")

        n = min(len(b), len(self.pending))
        b[:n] = self.pending[:n]
        self.pending = self.pending[n:]
        return n
