import array
import collections
import copy
import enum
import gzip
import logging
import re
import struct
import sys
import zlib

from mutf8.mutf8 import encode_modified_utf8, decode_modified_utf8

from syntaxnbt.types.buffer import Buffer
from syntaxnbt.types.compression import Compression, detect, detect_stream
from syntaxnbt.types.errors import (
    BoundsError, InvalidTagError, MalformedWireError, OutOfRangeError,
    SchemaMismatchError, TagNotFoundError, UnknownKindError, WrongKindError)
from syntaxnbt.types.text_format import get_format

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 512
MAX_STRING_LENGTH = 0xFFFF

_kinds = {}
_ids = {}

regexUnquotedString = re.compile(r'''[A-Za-z0-9._+-]+''')

# Arrays need a 4-byte signed typecode; "i" is 4 bytes almost everywhere.
_INT32_TYPECODE = 'i' if array.array('i').itemsize == 4 else 'l'


class Kind(enum.IntEnum):
    """The thirteen tag types, numbered as they appear on the wire."""
    END = 0
    BYTE = 1
    SHORT = 2
    INT = 3
    LONG = 4
    FLOAT = 5
    DOUBLE = 6
    BYTE_ARRAY = 7
    STRING = 8
    LIST = 9
    COMPOUND = 10
    INT_ARRAY = 11
    LONG_ARRAY = 12

    @classmethod
    def from_id(cls, kind_id):
        try:
            return cls(kind_id)
        except ValueError:
            raise UnknownKindError(kind_id) from None

    @classmethod
    def of(cls, tag):
        if isinstance(tag, _Tag):
            return tag.kind
        if isinstance(tag, type) and tag in _ids:
            return cls(_ids[tag])
        raise InvalidTagError(f"{tag!r} is not an NBT tag")

    @property
    def tag_name(self):
        return _TAG_NAMES[self]

    @property
    def tag_class(self):
        if self not in _kinds:
            raise InvalidTagError(f"{self.tag_name} has no tag class")
        return _kinds[self]

    def __str__(self):
        return self.tag_name


_TAG_NAMES = {
    Kind.END: "TAG_End",
    Kind.BYTE: "TAG_Byte",
    Kind.SHORT: "TAG_Short",
    Kind.INT: "TAG_Int",
    Kind.LONG: "TAG_Long",
    Kind.FLOAT: "TAG_Float",
    Kind.DOUBLE: "TAG_Double",
    Kind.BYTE_ARRAY: "TAG_Byte_Array",
    Kind.STRING: "TAG_String",
    Kind.LIST: "TAG_List",
    Kind.COMPOUND: "TAG_Compound",
    Kind.INT_ARRAY: "TAG_Int_Array",
    Kind.LONG_ARRAY: "TAG_Long_Array",
}


def _as_kind(kind):
    """Accepts a Kind, a wire id or a tag class."""
    if isinstance(kind, type) and issubclass(kind, _Tag):
        return kind.kind
    return Kind.from_id(kind)


def _too_deep():
    return MalformedWireError("Tag nesting exceeds the maximum depth")


# SNBT styles -----------------------------------------------------------------

SnbtStyle = collections.namedtuple(
    'SnbtStyle', ('punctuation', 'string', 'key', 'number', 'suffix', 'reset'))

PLAIN_STYLE = SnbtStyle('', '', '', '', '', '')

HIGHLIGHT_STYLE = SnbtStyle(*(get_format(name).ansi_code for name in (
    'white', 'green', 'aqua', 'gold', 'red', 'reset')))

SECTION_STYLE = SnbtStyle(*(get_format(name).section_code for name in (
    'white', 'green', 'aqua', 'gold', 'red', 'reset')))


def escape_value(text):
    return text.replace('\\', '\\\\').replace('"', '\\"')


def quote_string(text, style=PLAIN_STYLE, color=None):
    """Quotes *text* for SNBT, coloring the body with *color*."""
    if color is None:
        color = style.string
    quote = f'{style.punctuation}"'
    return f'{quote}{color}{escape_value(text)}{quote}'


def quote_key(key, style=PLAIN_STYLE):
    """Returns *key* bare if it is a valid unquoted token, quoted otherwise."""
    if regexUnquotedString.fullmatch(key):
        return f'{style.key}{key}'
    return quote_string(key, style, style.key)


def _read_string(buff):
    length = buff.unpack('H')
    data = buff.read(length)
    try:
        return decode_modified_utf8(data)
    except (UnicodeDecodeError, RuntimeError) as e:
        # mutf8 raises a bare RuntimeError on some invalid lead bytes
        raise MalformedWireError(f"Invalid modified UTF-8 in string: {e}") from e


def _string_bytes(text):
    data = encode_modified_utf8(text)
    if len(data) > MAX_STRING_LENGTH:
        raise OutOfRangeError(len(data), 0, MAX_STRING_LENGTH)
    return Buffer.pack('H', len(data)) + data


# Base types ------------------------------------------------------------------

class _Tag(object):
    __slots__ = ('value',)
    kind = None

    def __init__(self, value):
        self.value = value

    @classmethod
    def from_bytes(cls, bytes, max_depth=DEFAULT_MAX_DEPTH):
        return cls.from_buff(Buffer(bytes), max_depth)

    @classmethod
    def from_buff(cls, buff, depth=DEFAULT_MAX_DEPTH):
        raise NotImplementedError

    def to_bytes(self, depth=DEFAULT_MAX_DEPTH):
        raise NotImplementedError

    def deep_copy(self):
        return copy.deepcopy(self)

    def __repr__(self):
        return "%s(%r)" % (type(self).__name__, self.value)

    def __str__(self):
        return self.to_snbt()

    def __eq__(self, other):
        if not isinstance(other, _Tag):
            return NotImplemented
        return self.kind == other.kind and self.value == other.value

    __hash__ = None

    def to_snbt(self, highlight=False, style=None, max_depth=DEFAULT_MAX_DEPTH):
        """
        Returns the SNBT representation of this tag. *highlight* selects the
        terminal color style; any other :class:`SnbtStyle` may be passed as
        *style*. Nesting beyond *max_depth* is rendered as empty containers.
        """
        if style is None:
            style = HIGHLIGHT_STYLE if highlight else PLAIN_STYLE
        return self._snbt(style, max_depth) + style.reset

    def _snbt(self, style, depth):
        raise NotImplementedError


class _DataTag(_Tag):
    __slots__ = ()
    fmt = None
    suffix = ''

    @classmethod
    def from_buff(cls, buff, depth=DEFAULT_MAX_DEPTH):
        return cls(buff.unpack(cls.fmt))

    def to_bytes(self, depth=DEFAULT_MAX_DEPTH):
        return Buffer.pack(self.fmt, self.value)

    def __hash__(self):
        return hash((self.kind, self.value))

    def _snbt(self, style, depth):
        text = f'{style.number}{self.value!s}'
        if self.suffix:
            text += f'{style.suffix}{self.suffix}'
        return text


class _IntegralTag(_DataTag):
    __slots__ = ()
    bits = None

    def __init__(self, value):
        value = int(value)
        low, high = -(1 << (self.bits - 1)), (1 << (self.bits - 1)) - 1
        if not low <= value <= high:
            raise OutOfRangeError(value, low, high)
        self.value = value


class _ArrayTag(_Tag):
    __slots__ = ()
    typecode = None
    element_class = None
    letter = None
    suffix = ''

    def __init__(self, value=()):
        try:
            self.value = array.array(self.typecode, value)
        except OverflowError as e:
            bits = array.array(self.typecode).itemsize * 8
            raise OutOfRangeError(e, -(1 << (bits - 1)), (1 << (bits - 1)) - 1) from e

    def __len__(self):
        return len(self.value)

    def __iter__(self):
        return iter(self.value)

    def __getitem__(self, index):
        if not 0 <= index < len(self.value):
            raise BoundsError(index, len(self.value))
        return self.value[index]

    def get_tag(self, index):
        """Returns the element at *index* wrapped in its scalar tag class."""
        return self.element_class(self[index])

    def _check_index(self, index, length):
        if not 0 <= index < length:
            raise BoundsError(index, length)

    def add(self, value):
        return self.insert(len(self.value), value)

    def insert(self, index, value):
        self._check_index(index, len(self.value) + 1)
        self.value.insert(index, self.element_class(value).value)
        return self

    def set(self, index, value):
        self._check_index(index, len(self.value))
        self.value[index] = self.element_class(value).value
        return self

    def remove(self, index):
        """Removes and returns the number at *index*."""
        self._check_index(index, len(self.value))
        return self.value.pop(index)

    def clear(self):
        del self.value[:]
        return self

    def __repr__(self):
        return "%s(%r)" % (type(self).__name__, list(self.value))

    @classmethod
    def from_buff(cls, buff, depth=DEFAULT_MAX_DEPTH):
        length = buff.unpack('i')
        if length < 0:
            raise MalformedWireError(f"Negative {cls.kind.tag_name} length {length}")
        values = array.array(cls.typecode)
        values.frombytes(buff.read(length * values.itemsize))
        if sys.byteorder == "little":
            values.byteswap()
        tag = cls()
        tag.value = values
        return tag

    def to_bytes(self, depth=DEFAULT_MAX_DEPTH):
        values = array.array(self.typecode, self.value)
        if sys.byteorder == "little":
            values.byteswap()
        return Buffer.pack('i', len(self.value)) + values.tobytes()

    def _snbt(self, style, depth):
        separator = f'{style.punctuation},'
        inner = separator.join(
            f'{style.number}{value!s}' + (f'{style.suffix}{self.suffix}' if self.suffix else '')
            for value in self.value)
        return (f'{style.punctuation}[{style.suffix}{self.letter}{style.punctuation};'
                f'{inner}{style.punctuation}]')


# NBT tags --------------------------------------------------------------------

class TagByte(_IntegralTag):
    __slots__ = ()
    kind = Kind.BYTE
    fmt = 'b'
    bits = 8
    suffix = 'b'


class TagShort(_IntegralTag):
    __slots__ = ()
    kind = Kind.SHORT
    fmt = 'h'
    bits = 16
    suffix = 's'


class TagInt(_IntegralTag):
    __slots__ = ()
    kind = Kind.INT
    fmt = 'i'
    bits = 32


class TagLong(_IntegralTag):
    __slots__ = ()
    kind = Kind.LONG
    fmt = 'q'
    bits = 64
    suffix = 'l'


class TagFloat(_DataTag):
    __slots__ = ()
    kind = Kind.FLOAT
    fmt = 'f'
    suffix = 'f'

    def __init__(self, value):
        # Stored at binary32 precision so values survive a round-trip
        try:
            self.value = struct.unpack('>f', struct.pack('>f', float(value)))[0]
        except OverflowError as e:
            raise OutOfRangeError(value, -3.4028234663852886e38, 3.4028234663852886e38) from e

    def _snbt(self, style, depth):
        return f'{style.number}{_float32_repr(self.value)}{style.suffix}{self.suffix}'


class TagDouble(_DataTag):
    __slots__ = ()
    kind = Kind.DOUBLE
    fmt = 'd'
    suffix = 'd'

    def __init__(self, value):
        self.value = float(value)

    def _snbt(self, style, depth):
        return f'{style.number}{self.value!r}{style.suffix}{self.suffix}'


def _float32_repr(value):
    """Shortest decimal text that reads back as the same binary32 value."""
    for precision in range(6, 10):
        text = f'{value:.{precision}g}'
        if struct.unpack('>f', struct.pack('>f', float(text)))[0] == value:
            return text
    return repr(value)


class TagString(_Tag):
    __slots__ = ()
    kind = Kind.STRING

    def __init__(self, value):
        if not isinstance(value, str):
            raise SchemaMismatchError(f"TAG_String value must be str, not {type(value).__name__}")
        self.value = value

    def __hash__(self):
        return hash((self.kind, self.value))

    @classmethod
    def from_buff(cls, buff, depth=DEFAULT_MAX_DEPTH):
        return cls(_read_string(buff))

    def to_bytes(self, depth=DEFAULT_MAX_DEPTH):
        return _string_bytes(self.value)

    def _snbt(self, style, depth):
        return quote_string(self.value, style)


class TagByteArray(_ArrayTag):
    __slots__ = ()
    kind = Kind.BYTE_ARRAY
    typecode = 'b'
    element_class = TagByte
    letter = 'B'
    suffix = 'b'


class TagIntArray(_ArrayTag):
    __slots__ = ()
    kind = Kind.INT_ARRAY
    typecode = _INT32_TYPECODE
    element_class = TagInt
    letter = 'I'


class TagLongArray(_ArrayTag):
    __slots__ = ()
    kind = Kind.LONG_ARRAY
    typecode = 'q'
    element_class = TagLong
    letter = 'L'
    suffix = 'l'


class TagList(_Tag):
    """
    An ordered sequence of tags that all share one kind.

    An empty list has no component kind until its first element is added;
    from then on every element must be of that kind.
    """
    __slots__ = ('component_kind',)
    kind = Kind.LIST

    def __init__(self, value=None, component_kind=None):
        self.value = []
        self.component_kind = None
        if component_kind is not None:
            component_kind = _as_kind(component_kind)
            if component_kind is Kind.END:
                raise InvalidTagError("Cannot create TAG_List of TAG_End")
            self.component_kind = component_kind
        for tag in value or ():
            self.add(tag)

    def __len__(self):
        return len(self.value)

    def __iter__(self):
        return iter(self.value)

    def __getitem__(self, index):
        return self.get(index)

    def __setitem__(self, index, tag):
        self.set(index, tag)

    def __repr__(self):
        return "%s(%r, %s)" % (type(self).__name__, self.value, self.component_kind)

    def _check(self, tag):
        if not isinstance(tag, _Tag):
            raise InvalidTagError(f"Cannot store {tag!r} in TAG_List")
        if self.component_kind is not None and tag.kind != self.component_kind:
            raise WrongKindError(f"Element for TAG_List[{self.component_kind.tag_name}]",
                                 self.component_kind, tag.kind)

    def _check_index(self, index, length):
        if not 0 <= index < length:
            raise BoundsError(index, length)

    def get(self, index):
        self._check_index(index, len(self.value))
        return self.value[index]

    def get_as(self, index, kind):
        kind = _as_kind(kind)
        tag = self.get(index)
        if tag.kind != kind:
            raise WrongKindError(f"TAG_List[{index}]", kind, tag.kind)
        return tag

    def add(self, tag):
        return self.insert(len(self.value), tag)

    def insert(self, index, tag):
        self._check_index(index, len(self.value) + 1)
        self._check(tag)
        self.component_kind = tag.kind
        self.value.insert(index, tag)
        return self

    def set(self, index, tag):
        self._check_index(index, len(self.value))
        self._check(tag)
        self.component_kind = tag.kind
        self.value[index] = tag
        return self

    def remove(self, index):
        """Removes and returns the element at *index*."""
        self._check_index(index, len(self.value))
        return self.value.pop(index)

    def clear(self):
        self.value = []
        self.component_kind = None
        return self

    @classmethod
    def from_buff(cls, buff, depth=DEFAULT_MAX_DEPTH):
        inner_kind_id, length = buff.unpack('Bi')
        if length <= 0:
            # Legacy writers put arbitrary element types on empty lists.
            if inner_kind_id in _kinds:
                return cls(component_kind=inner_kind_id)
            return cls()

        inner_kind = Kind.from_id(inner_kind_id)
        if inner_kind is Kind.END:
            raise MalformedWireError(f"TAG_List of TAG_End with {length} entries")
        if depth <= 0:
            raise _too_deep()

        tag = cls(component_kind=inner_kind)
        inner_class = inner_kind.tag_class
        tag.value = [inner_class.from_buff(buff, depth - 1) for _ in range(length)]
        return tag

    def to_bytes(self, depth=DEFAULT_MAX_DEPTH):
        if self.component_kind is None or not self.value:
            return Buffer.pack('Bi', Kind.END, 0)
        if depth <= 0:
            return Buffer.pack('Bi', self.component_kind, 0)

        return Buffer.pack('Bi', self.component_kind, len(self.value)) + \
               b"".join(tag.to_bytes(depth - 1) for tag in self.value)

    def _snbt(self, style, depth):
        inner = ''
        if depth > 0:
            separator = f'{style.punctuation},'
            inner = separator.join(tag._snbt(style, depth - 1) for tag in self.value)
        return f'{style.punctuation}[{inner}{style.punctuation}]'


class TagCompound(_Tag):
    """A mapping of unique names to tags."""
    __slots__ = ()
    kind = Kind.COMPOUND

    def __init__(self, value=None):
        self.value = {}
        if value:
            for key, tag in dict(value).items():
                self.put(key, tag)

    def __len__(self):
        return len(self.value)

    def __iter__(self):
        return iter(self.value)

    def __contains__(self, key):
        return key in self.value

    def __getitem__(self, key):
        return self.get(key)

    def __setitem__(self, key, tag):
        self.put(key, tag)

    def __delitem__(self, key):
        self.remove(key)

    def keys(self):
        return self.value.keys()

    def items(self):
        return self.value.items()

    def has(self, key):
        return key in self.value

    def get(self, key):
        if key not in self.value:
            raise TagNotFoundError(key)
        return self.value[key]

    def get_as(self, key, kind):
        kind = _as_kind(kind)
        tag = self.get(key)
        if tag.kind != kind:
            raise WrongKindError(f"TAG_Compound[{key!r}]", kind, tag.kind)
        return tag

    def get_or_default(self, key, default=None):
        return self.value.get(key, default)

    def put(self, key, tag):
        if not isinstance(key, str):
            raise SchemaMismatchError(f"TAG_Compound keys must be str, not {type(key).__name__}")
        if tag is Kind.END:
            raise InvalidTagError("Cannot add TAG_End to TAG_Compound")
        if not isinstance(tag, _Tag):
            raise InvalidTagError(f"Cannot store {tag!r} in TAG_Compound")
        self.value[key] = tag
        return self

    def remove(self, key):
        """Removes and returns the tag stored under *key*."""
        if key not in self.value:
            raise TagNotFoundError(key)
        return self.value.pop(key)

    def contains(self, other):
        """
        Returns True if every entry of *other* is present in this compound
        with an equal value.
        """
        for key, tag in other.value.items():
            if key not in self.value or self.value[key] != tag:
                return False
        return True

    @classmethod
    def from_snbt(cls, text, max_depth=DEFAULT_MAX_DEPTH):
        """Parses an SNBT compound."""
        from syntaxnbt.types.snbt import parse_compound
        return parse_compound(text, max_depth)

    @classmethod
    def from_buff(cls, buff, depth=DEFAULT_MAX_DEPTH):
        value = {}
        while True:
            kind = Kind.from_id(buff.unpack('B'))
            if kind is Kind.END:
                tag = cls()
                tag.value = value
                return tag
            if depth <= 0:
                raise _too_deep()
            name = _read_string(buff)
            value[name] = kind.tag_class.from_buff(buff, depth - 1)

    def to_bytes(self, depth=DEFAULT_MAX_DEPTH):
        parts = []
        if depth > 0:
            for name, tag in self.value.items():
                parts.append(Buffer.pack('B', tag.kind))
                parts.append(_string_bytes(name))
                parts.append(tag.to_bytes(depth - 1))
        parts.append(Buffer.pack('B', Kind.END))
        return b"".join(parts)

    def _snbt(self, style, depth):
        inner = ''
        if depth > 0:
            separator = f'{style.punctuation},'
            inner = separator.join(
                f'{quote_key(key, style)}{style.punctuation}:{tag._snbt(style, depth - 1)}'
                for key, tag in self.value.items())
        return f'{style.punctuation}{{{inner}{style.punctuation}}}'


class TagRoot(TagCompound):
    """
    The named compound at the top of every NBT stream. It holds a single
    entry mapping the root name (usually empty) to the document body.
    """
    __slots__ = ()

    @classmethod
    def from_body(cls, body, name=''):
        return cls({name: body})

    @property
    def name(self):
        return next(iter(self.value))

    @property
    def body(self):
        return self.value[self.name]

    @classmethod
    def from_buff(cls, buff, depth=DEFAULT_MAX_DEPTH):
        kind = Kind.from_id(buff.unpack('B'))
        if kind is not Kind.COMPOUND:
            raise MalformedWireError(f"Root tag must be TAG_Compound, got {kind.tag_name}")
        name = _read_string(buff)
        return cls({name: TagCompound.from_buff(buff, depth)})

    def to_bytes(self, depth=DEFAULT_MAX_DEPTH):
        if len(self.value) != 1 or self.body.kind != Kind.COMPOUND:
            raise SchemaMismatchError("Root tag must hold exactly one TAG_Compound")
        return Buffer.pack('B', Kind.COMPOUND) + _string_bytes(self.name) + \
               self.body.to_bytes(depth)


# Register tags ---------------------------------------------------------------

_kinds[Kind.BYTE] = TagByte
_kinds[Kind.SHORT] = TagShort
_kinds[Kind.INT] = TagInt
_kinds[Kind.LONG] = TagLong
_kinds[Kind.FLOAT] = TagFloat
_kinds[Kind.DOUBLE] = TagDouble
_kinds[Kind.BYTE_ARRAY] = TagByteArray
_kinds[Kind.STRING] = TagString
_kinds[Kind.LIST] = TagList
_kinds[Kind.COMPOUND] = TagCompound
_kinds[Kind.INT_ARRAY] = TagIntArray
_kinds[Kind.LONG_ARRAY] = TagLongArray
_ids.update({v: k for k, v in _kinds.items()})
_ids[TagRoot] = Kind.COMPOUND


# Streams ---------------------------------------------------------------------

def serialize(tree, name='', compression=Compression.NONE, max_depth=DEFAULT_MAX_DEPTH):
    """
    Encodes *tree* (a TagCompound) as the root tag *name* and compresses the
    result with *compression*.
    """
    data = TagRoot.from_body(tree, name).to_bytes(max_depth)
    return Compression(compression).compress(data)


def write(fileobj, tree, name='', compression=Compression.NONE, max_depth=DEFAULT_MAX_DEPTH):
    """Writes *tree* to a binary stream."""
    data = TagRoot.from_body(tree, name).to_bytes(max_depth)
    with Compression(compression).open_writer(fileobj) as stream:
        stream.write(data)
    logger.debug("Wrote NBT root %r (%d bytes, %s)", name, len(data), Compression(compression).name)


def deserialize(data, compression=None, max_depth=DEFAULT_MAX_DEPTH):
    """
    Decodes NBT bytes into a TagRoot; the document is ``root.get(name)``.
    The compression scheme is sniffed from the data unless given.
    """
    if compression is None:
        compression = detect(data)
    data = Compression(compression).decompress(data)
    return TagRoot.from_bytes(data, max_depth)


def read(fileobj, compression=None, max_depth=DEFAULT_MAX_DEPTH):
    """Reads a TagRoot from a binary stream."""
    if compression is None:
        compression = detect_stream(fileobj)
    with Compression(compression).open_reader(fileobj) as stream:
        try:
            data = stream.read()
        except (gzip.BadGzipFile, EOFError, zlib.error) as e:
            raise MalformedWireError(f"Corrupt {Compression(compression).name.lower()} stream: {e}") from e
    logger.debug("Read %d bytes of NBT (%s)", len(data), Compression(compression).name)
    return TagRoot.from_bytes(data, max_depth)


# Files -----------------------------------------------------------------------

class NBTFile(object):
    root_tag = None

    def __init__(self, root_tag):
        self.root_tag = root_tag

    @classmethod
    def load(cls, path, max_depth=DEFAULT_MAX_DEPTH):
        with open(path, 'rb') as fd:
            return cls(read(fd, max_depth=max_depth))

    def save(self, path, compression=Compression.GZIP, max_depth=DEFAULT_MAX_DEPTH):
        with open(path, 'wb') as fd:
            with Compression(compression).open_writer(fd) as stream:
                stream.write(self.root_tag.to_bytes(max_depth))
