import struct

from syntaxnbt.types.errors import BufferUnderrun


class Buffer(object):
    """
    Reads big-endian values from a byte string.

    Formats passed to :meth:`pack` and :meth:`unpack` are :mod:`struct`
    formats without the byte order prefix.
    """
    __slots__ = ('buff', 'pos')

    def __init__(self, data=b""):
        self.buff = bytes(data)
        self.pos = 0

    def __len__(self):
        return len(self.buff) - self.pos

    def read(self, length=None):
        """
        Reads *length* bytes, or everything that is left if *length* is
        None. Raises BufferUnderrun if fewer bytes are available.
        """
        if length is None:
            data = self.buff[self.pos:]
            self.pos = len(self.buff)
            return data

        if length < 0 or self.pos + length > len(self.buff):
            raise BufferUnderrun(
                f"Unexpected end of data: wanted {length} bytes at offset "
                f"{self.pos}, {len(self.buff) - self.pos} available")

        data = self.buff[self.pos:self.pos + length]
        self.pos += length
        return data

    def unpack(self, fmt):
        """
        Unpacks a struct format. Returns a single value if the format holds
        one field, otherwise a tuple.
        """
        fmt = ">" + fmt
        data = self.read(struct.calcsize(fmt))
        fields = struct.unpack(fmt, data)
        if len(fields) == 1:
            fields = fields[0]
        return fields

    @classmethod
    def pack(cls, fmt, *fields):
        return struct.pack(">" + fmt, *fields)
