"""
Exceptions raised by the NBT, SNBT, path and region codecs.

Every exception derives from :class:`NBTError` and from the closest builtin,
so ``except KeyError`` and friends keep working for callers that don't know
about this library.
"""


class NBTError(Exception):
    """Base class for all errors raised by this library."""


class MalformedWireError(NBTError, ValueError):
    """Binary data that violates the NBT or region wire format."""


class UnknownKindError(MalformedWireError):
    """
    UnknownKindError(kind_id)

    Raised when a tag id outside of 0-12 is read or looked up.
    """
    def __init__(self, kind_id):
        super().__init__(kind_id)
        self.kind_id = kind_id

    def __str__(self):
        return f"Unknown or unsupported tag type: {self.kind_id!r}"


class UnknownCompressionError(MalformedWireError):
    """
    UnknownCompressionError(scheme_id)

    Raised when a compression scheme id other than 1, 2 or 3 is encountered.
    """
    def __init__(self, scheme_id):
        super().__init__(scheme_id)
        self.scheme_id = scheme_id

    def __str__(self):
        return f"Unrecognized compression scheme: {self.scheme_id!r}"


class BufferUnderrun(MalformedWireError):
    """The data ended before a complete value could be read."""


class NBTSyntaxError(NBTError, SyntaxError):
    """
    NBTSyntaxError(message, position=None, context='')

    Raised by the SNBT and path parsers. ``position`` is the cursor offset at
    which parsing failed and ``context`` holds the last few characters read.
    """
    def __init__(self, message, position=None, context=''):
        if position is not None:
            ellipsis = '...' if position > 10 else ''
            message = f"{message} at position {position}: {ellipsis}{context}<--[HERE]"
        super().__init__(message)
        self.position = position
        self.context = context


class SchemaMismatchError(NBTError, TypeError):
    """A value doesn't fit the structure it is being read from or stored in."""


class WrongKindError(SchemaMismatchError):
    """
    WrongKindError(where, expected, given)

    Raised when an accessor expects one kind of tag and finds another, or when
    a tag of the wrong kind is stored in a typed list.
    """
    def __init__(self, where, expected, given):
        super().__init__(where, expected, given)
        self.where = where
        self.expected = expected
        self.given = given

    def __str__(self):
        return f"{self.where} is {_kind_name(self.given)}, expected {_kind_name(self.expected)}"


class InvalidTagError(SchemaMismatchError):
    """Raised when something that isn't a storable tag (e.g. TAG_End) is stored."""


class TagNotFoundError(NBTError, KeyError):
    """
    TagNotFoundError(key)

    Raised when a compound has no entry for the requested key.
    """
    def __str__(self):
        return f"No tag named {self.args[0]!r} in TAG_Compound"


class BoundsError(NBTError, IndexError):
    """
    BoundsError(index, length)

    Raised on direct element access outside of a list or array.
    """
    def __str__(self):
        index, length = self.args
        return f"Index {index} not in range ({length} entries)"


class OutOfRangeError(NBTError, OverflowError):
    """
    OutOfRangeError(value, minimum, maximum)

    Raised when a number or length can't be represented by its wire type.
    """
    def __str__(self):
        return "Value {} is outside of expected range [{}, {}].".format(*self.args)


class ChunkTooLargeError(NBTError, ValueError):
    """
    ChunkTooLargeError(x, z, length)

    Raised when a chunk record needs more than 255 sectors.
    """
    def __str__(self):
        x, z, length = self.args
        return f"Chunk ({x}, {z}) is too big: {length} bytes do not fit in 255 sectors"


class StructuralInvariantError(NBTError, RuntimeError):
    """Internal consistency check failed while writing a region file."""


def _kind_name(kind):
    return getattr(kind, 'tag_name', None) or repr(kind)
