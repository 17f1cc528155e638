"""
Region files (``.mca``): up to 32x32 chunks packed into 4 KiB sectors.

The file starts with two 4096-byte tables of 1024 big-endian words, indexed
by ``x * 32 + z``. The first holds chunk locations as
``(sector_offset << 8) | sector_count`` (0 for a missing chunk); the second
holds timestamps. Each chunk record is ``[length:u32][scheme:u8][data]`` where
*length* counts the scheme byte and the data.
"""

import logging
import os

from syntaxnbt.types import nbt
from syntaxnbt.types.buffer import Buffer
from syntaxnbt.types.compression import Compression
from syntaxnbt.types.errors import (
    BoundsError, ChunkTooLargeError, SchemaMismatchError, StructuralInvariantError)

logger = logging.getLogger(__name__)

SECTOR_SIZE = 4096
MAX_SECTORS = 255
REGION_SIZE = 32
CHUNK_COUNT = REGION_SIZE * REGION_SIZE
HEADER_SIZE = 2 * SECTOR_SIZE


def sector_count(length):
    """Returns how many sectors a record of *length* bytes occupies."""
    return (length + SECTOR_SIZE - 1) // SECTOR_SIZE


def _index(x, z):
    if not 0 <= x < REGION_SIZE:
        raise BoundsError(x, REGION_SIZE)
    if not 0 <= z < REGION_SIZE:
        raise BoundsError(z, REGION_SIZE)
    return x * REGION_SIZE + z


def _read_chunk(fd, location, max_depth):
    fd.seek((location >> 8) * SECTOR_SIZE)
    length = Buffer(fd.read(4)).unpack('I')
    record = Buffer(fd.read(length))
    compression = Compression.from_id(record.unpack('B'))
    root = nbt.deserialize(record.read(), compression, max_depth)
    return Chunk(root.body, compression)


class Chunk(object):
    """
    The NBT document of one chunk plus an optional compression override.

    The encoded payload is cached between saves. Assigning ``data`` or
    ``compression`` invalidates it; after changing ``data`` in place, call
    :meth:`mark_dirty`.
    """

    def __init__(self, data=None, compression=None):
        self._data = None
        self._compression = None
        self._payload = None
        self._payload_compression = None
        self.data = nbt.TagCompound() if data is None else data
        self.compression = compression

    @property
    def data(self):
        return self._data

    @data.setter
    def data(self, value):
        if not isinstance(value, nbt.TagCompound):
            raise SchemaMismatchError(f"Chunk data must be a TAG_Compound, not {type(value).__name__}")
        self._data = value
        self.mark_dirty()

    @property
    def compression(self):
        return self._compression

    @compression.setter
    def compression(self, value):
        self._compression = None if value is None else Compression.from_id(value)
        self.mark_dirty()

    @property
    def dirty(self):
        return self._payload is None

    def mark_dirty(self):
        self._payload = None
        self._payload_compression = None

    def serialize(self, default_compression=Compression.ZLIB, max_depth=nbt.DEFAULT_MAX_DEPTH):
        """
        Returns the ``[scheme][data]`` payload, encoded with this chunk's
        own compression or *default_compression* if it has none.
        """
        compression = self._compression
        if compression is None:
            compression = Compression.from_id(default_compression)

        if self._payload is None or self._payload_compression is not compression:
            data = nbt.serialize(self._data, compression=compression, max_depth=max_depth)
            self._payload = Buffer.pack('B', compression) + data
            self._payload_compression = compression
        return self._payload

    def __repr__(self):
        return "%s(%r, %r)" % (type(self).__name__, self._data, self._compression)


class Region(object):
    """
    In-memory region: a 32x32 grid of optional chunks and their timestamps.
    New chunks are compressed with *compression* unless they carry their own
    scheme.
    """

    def __init__(self, compression=Compression.ZLIB):
        self.compression = Compression.from_id(compression)
        self._chunks = [None] * CHUNK_COUNT
        self._timestamps = [0] * CHUNK_COUNT

    def __len__(self):
        return sum(1 for chunk in self._chunks if chunk is not None)

    def get_chunk(self, x, z):
        return self._chunks[_index(x, z)]

    def set_chunk(self, x, z, chunk, timestamp=None):
        """Stores *chunk* (a Chunk or a bare TagCompound) at (x, z)."""
        index = _index(x, z)
        if not isinstance(chunk, Chunk):
            chunk = Chunk(chunk)
        self._chunks[index] = chunk
        if timestamp is not None:
            self._timestamps[index] = timestamp
        return chunk

    def remove_chunk(self, x, z):
        index = _index(x, z)
        chunk = self._chunks[index]
        self._chunks[index] = None
        self._timestamps[index] = 0
        return chunk

    def get_timestamp(self, x, z):
        return self._timestamps[_index(x, z)]

    def set_timestamp(self, x, z, timestamp):
        self._timestamps[_index(x, z)] = timestamp

    def chunks(self):
        """Yields ``(x, z, chunk)`` for every present chunk, x-major."""
        for index, chunk in enumerate(self._chunks):
            if chunk is not None:
                x, z = divmod(index, REGION_SIZE)
                yield x, z, chunk

    def save(self, fd, max_depth=nbt.DEFAULT_MAX_DEPTH):
        """
        Writes the whole region to the seekable binary stream *fd*. Chunks
        are packed into consecutive sectors starting right after the
        headers, and the file is truncated after the last one.
        """
        locations = [0] * CHUNK_COUNT
        timestamps = [0] * CHUNK_COUNT
        records = []
        sector = HEADER_SIZE // SECTOR_SIZE

        for x, z, chunk in self.chunks():
            index = x * REGION_SIZE + z
            payload = chunk.serialize(self.compression, max_depth)
            record = Buffer.pack('I', len(payload)) + payload
            count = sector_count(len(record))
            if count > MAX_SECTORS:
                raise ChunkTooLargeError(x, z, len(record))

            locations[index] = (sector << 8) | count
            timestamps[index] = self._timestamps[index]
            records.append(record)
            logger.debug("Chunk (%d, %d): %d bytes at sector %d (+%d)",
                         x, z, len(record), sector, count)
            sector += count

        fd.seek(0)
        fd.write(Buffer.pack(f'{CHUNK_COUNT}I', *locations))
        if fd.tell() != SECTOR_SIZE:
            raise StructuralInvariantError(f"Location table ends at {fd.tell()}, expected {SECTOR_SIZE}")
        fd.write(Buffer.pack(f'{CHUNK_COUNT}i', *timestamps))
        if fd.tell() != HEADER_SIZE:
            raise StructuralInvariantError(f"Timestamp table ends at {fd.tell()}, expected {HEADER_SIZE}")

        for record in records:
            fd.write(record)
            fd.write(bytes(-len(record) % SECTOR_SIZE))
        fd.truncate()

        logger.debug("Saved region with %d chunks in %d sectors", len(records), sector)

    @classmethod
    def load(cls, fd, compression=Compression.ZLIB, max_depth=nbt.DEFAULT_MAX_DEPTH):
        """
        Reads a region from the seekable binary stream *fd*. An empty stream
        gives an empty region.
        """
        region = cls(compression)
        fd.seek(0)
        header = fd.read(HEADER_SIZE)
        if not header:
            return region

        buff = Buffer(header)
        locations = buff.unpack(f'{CHUNK_COUNT}I')
        timestamps = buff.unpack(f'{CHUNK_COUNT}i')
        region._timestamps = list(timestamps)

        for index, location in enumerate(locations):
            if location == 0:
                continue
            region._chunks[index] = _read_chunk(fd, location, max_depth)

        logger.debug("Loaded region with %d chunks", len(region))
        return region


class RegionFile(object):
    """
    A region file on disk. Opens (or creates) *path* for reading and writing
    unless *read_only* is set.
    """
    def __init__(self, path, read_only=False):
        if read_only:
            mode = "rb"
        elif os.path.exists(path):
            mode = "r+b"
        else:
            mode = "w+b"
        self.fd = open(path, mode)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.fd.close()

    def close(self):
        """
        Closes the region file.
        """
        self.fd.close()

    def load(self, compression=Compression.ZLIB, max_depth=nbt.DEFAULT_MAX_DEPTH):
        """
        Reads every chunk into a :class:`Region`.
        """
        return Region.load(self.fd, compression, max_depth)

    def save(self, region, max_depth=nbt.DEFAULT_MAX_DEPTH):
        """
        Rewrites the file with the contents of *region*.
        """
        region.save(self.fd, max_depth)
        self.fd.flush()

    def list_chunks(self):
        """
        Returns a list of (x, z) tuples for all existing chunks.
        """
        self.fd.seek(0)
        header = self.fd.read(SECTOR_SIZE)
        if not header:
            return []

        locations = Buffer(header).unpack(f'{CHUNK_COUNT}I')
        return [divmod(index, REGION_SIZE)
                for index, location in enumerate(locations) if location != 0]

    def load_chunk(self, x, z, max_depth=nbt.DEFAULT_MAX_DEPTH):
        """
        Loads the chunk at the given co-ordinates, or returns ``None`` if
        the chunk doesn't exist.
        """
        index = _index(x, z)
        self.fd.seek(4 * index)
        data = self.fd.read(4)
        if not data:
            return None

        location = Buffer(data).unpack('I')
        if location == 0:
            return None
        return _read_chunk(self.fd, location, max_depth)
