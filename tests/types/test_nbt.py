import io

import pytest

from syntaxnbt.types.compression import Compression, detect
from syntaxnbt.types.errors import *
from syntaxnbt.types.nbt import *


def make_tree():
    return TagCompound({
        'byte': TagByte(-128),
        'short': TagShort(32767),
        'int': TagInt(-2147483648),
        'long': TagLong(9223372036854775807),
        'float': TagFloat(0.1),
        'double': TagDouble(-1.25e300),
        'string': TagString(u'Hello \U0001f30a'),
        'bytes': TagByteArray([-1, 0, 1]),
        'ints': TagIntArray([1, 2, 3]),
        'longs': TagLongArray([-(1 << 63), 1 << 40]),
        'empty': TagList(),
        'list': TagList([TagCompound({'id': TagString(u'stone')}), TagCompound()]),
        'nested': TagList([TagList([TagInt(1)]), TagList([TagString(u'x')])]),
        'child': TagCompound({'a': TagCompound({'b': TagShort(2)})}),
    })


def nest(depth):
    tag = TagCompound()
    for _ in range(depth):
        tag = TagCompound({'n': tag})
    return tag


# Model -----------------------------------------------------------------------

def test_kind_ids():
    assert Kind.from_id(10) is Kind.COMPOUND
    assert Kind.of(TagInt(1)) is Kind.INT
    assert Kind.of(TagLongArray) is Kind.LONG_ARRAY
    assert Kind.INT.tag_class is TagInt
    assert Kind.BYTE_ARRAY.tag_name == 'TAG_Byte_Array'


def test_kind_unknown():
    with pytest.raises(UnknownKindError) as excinfo:
        Kind.from_id(13)
    assert excinfo.value.kind_id == 13


def test_kind_end_has_no_class():
    with pytest.raises(InvalidTagError):
        Kind.END.tag_class


def test_integral_ranges():
    assert TagByte(127).value == 127
    with pytest.raises(OutOfRangeError):
        TagByte(128)
    with pytest.raises(OutOfRangeError):
        TagShort(-32769)
    with pytest.raises(OutOfRangeError):
        TagInt(1 << 31)
    with pytest.raises(OverflowError):
        TagLong(1 << 63)


def test_float_precision():
    assert TagFloat(0.1).value != 0.1
    assert TagFloat(0.1) == TagFloat.from_bytes(TagFloat(0.1).to_bytes())


def test_str_and_repr():
    assert str(TagInt(5)) == '5'
    assert repr(TagInt(5)) == 'TagInt(5)'
    assert repr(TagIntArray([1, 2])) == 'TagIntArray([1, 2])'


def test_list_homogeneity():
    tag = TagList([TagInt(1)])
    with pytest.raises(WrongKindError):
        tag.add(TagShort(2))
    with pytest.raises(SchemaMismatchError):
        tag.add(TagShort(2))
    assert len(tag) == 1


def test_list_first_element_sets_kind():
    tag = TagList()
    assert tag.component_kind is None
    tag.add(TagString(u'a'))
    assert tag.component_kind is Kind.STRING
    with pytest.raises(WrongKindError):
        tag.insert(0, TagInt(1))


def test_list_pre_typed():
    tag = TagList([], Kind.INT)
    with pytest.raises(WrongKindError):
        tag.add(TagByte(1))
    with pytest.raises(InvalidTagError):
        TagList([], Kind.END)


def test_list_clear_resets_kind():
    tag = TagList([TagInt(1)])
    tag.clear()
    assert tag.component_kind is None
    tag.add(TagByte(1))
    assert tag.component_kind is Kind.BYTE


def test_list_access():
    tag = TagList([TagInt(1), TagInt(2), TagInt(3)])
    tag.set(0, TagInt(10))
    assert tag[0] == TagInt(10)
    assert tag.remove(1) == TagInt(2)
    assert [t.value for t in tag] == [10, 3]
    assert tag.get_as(1, Kind.INT) == TagInt(3)
    with pytest.raises(WrongKindError):
        tag.get_as(1, TagLong)
    with pytest.raises(BoundsError):
        tag.get(2)
    with pytest.raises(IndexError):
        tag.get(-1)


def test_list_rejects_non_tags():
    with pytest.raises(InvalidTagError):
        TagList().add(5)


def test_compound_access():
    tag = TagCompound().put('a', TagInt(1)).put('b', TagString(u'x'))
    assert tag.has('a')
    assert 'b' in tag
    assert set(tag.keys()) == {'a', 'b'}
    assert tag.get_as('a', Kind.INT) == TagInt(1)
    assert tag.get_or_default('c') is None
    assert tag.remove('a') == TagInt(1)
    assert len(tag) == 1


def test_compound_errors():
    tag = TagCompound({'a': TagInt(1)})
    with pytest.raises(TagNotFoundError):
        tag.get('missing')
    with pytest.raises(KeyError):
        tag['missing']
    with pytest.raises(WrongKindError) as excinfo:
        tag.get_as('a', Kind.STRING)
    assert str(excinfo.value) == "TAG_Compound['a'] is TAG_Int, expected TAG_String"
    with pytest.raises(InvalidTagError):
        tag.put('end', Kind.END)
    with pytest.raises(SchemaMismatchError):
        tag.put(1, TagInt(1))


def test_compound_contains():
    tag = TagCompound({'id': TagString(u'chest'), 'x': TagInt(4)})
    assert tag.contains(TagCompound({'id': TagString(u'chest')}))
    assert tag.contains(TagCompound())
    assert not tag.contains(TagCompound({'id': TagString(u'barrel')}))
    assert not tag.contains(TagCompound({'y': TagInt(4)}))


def test_equality():
    assert TagCompound({'a': TagInt(1), 'b': TagInt(2)}) == TagCompound({'b': TagInt(2), 'a': TagInt(1)})
    assert TagInt(1) != TagLong(1)
    assert TagIntArray([1, 2]) == TagIntArray([1, 2])
    assert TagList([TagInt(1), TagInt(2)]) != TagList([TagInt(2), TagInt(1)])
    assert TagList() == TagList([], Kind.INT)


def test_deep_copy():
    tree = make_tree()
    copy = tree.deep_copy()
    assert copy == tree
    copy.get('child').get('a').put('b', TagShort(3))
    assert tree.get('child').get('a').get('b') == TagShort(2)


def test_array_access():
    tag = TagIntArray([5, 6])
    assert len(tag) == 2
    assert tag[1] == 6
    assert tag.get_tag(0) == TagInt(5)
    assert list(tag.add(7)) == [5, 6, 7]
    with pytest.raises(BoundsError):
        tag[3]
    with pytest.raises(OutOfRangeError):
        TagByteArray([200])


# Binary codec ----------------------------------------------------------------

@pytest.mark.parametrize('compression', list(Compression))
def test_round_trip(compression):
    tree = make_tree()
    data = serialize(tree, u'Level', compression=compression)
    root = deserialize(data)
    assert root.name == u'Level'
    assert root.body == tree


@pytest.mark.parametrize('compression', list(Compression))
def test_stream_round_trip(compression):
    tree = make_tree()
    stream = io.BytesIO()
    write(stream, tree, compression=compression)
    stream.seek(0)
    assert read(stream).body == tree


def test_detect_compression():
    tree = make_tree()
    assert detect(serialize(tree, compression=Compression.GZIP)) is Compression.GZIP
    assert detect(serialize(tree, compression=Compression.ZLIB)) is Compression.ZLIB
    assert detect(serialize(tree, compression=Compression.NONE)) is Compression.NONE


def test_wire_layout():
    tree = TagCompound({'a': TagByte(1)})
    assert serialize(tree, u'hi') == b'\x0a\x00\x02hi' b'\x01\x00\x01a\x01' b'\x00'


def test_empty_list_wire():
    assert TagList().to_bytes() == b'\x00\x00\x00\x00\x00'
    assert TagList([], Kind.INT).to_bytes() == b'\x00\x00\x00\x00\x00'


def test_legacy_empty_list():
    tag = TagList.from_bytes(b'\x03\x00\x00\x00\x00')
    assert len(tag) == 0
    assert tag.component_kind is Kind.INT


def test_list_of_end_with_entries():
    with pytest.raises(MalformedWireError):
        TagList.from_bytes(b'\x00\x00\x00\x00\x02')


def test_depth_truncation():
    data = serialize(nest(5), max_depth=2)
    assert deserialize(data).body == nest(2)


def test_depth_truncation_list():
    tree = TagCompound({'l': TagList([TagList([TagInt(1)])])})
    data = serialize(tree, max_depth=2)
    assert deserialize(data).body == TagCompound({'l': TagList([TagList()])})


def test_read_depth_limit():
    data = serialize(nest(5))
    with pytest.raises(MalformedWireError):
        deserialize(data, max_depth=3)
    assert deserialize(data, max_depth=5).body == nest(5)


def test_unknown_kind():
    with pytest.raises(UnknownKindError):
        deserialize(b'\x0a\x00\x00\x0f\x00\x00', Compression.NONE)


def test_root_not_compound():
    with pytest.raises(MalformedWireError):
        deserialize(b'\x01\x00\x00\x05', Compression.NONE)


def test_truncated():
    data = serialize(make_tree())
    with pytest.raises(BufferUnderrun):
        deserialize(data[:-3], Compression.NONE)


def test_corrupt_gzip():
    data = serialize(make_tree(), compression=Compression.GZIP)
    with pytest.raises(MalformedWireError):
        deserialize(data[:20])


def test_nbt_file(tmp_path):
    path = tmp_path / 'level.dat'
    NBTFile(TagRoot.from_body(make_tree(), u'Data')).save(path)
    with open(path, 'rb') as fd:
        assert fd.read(2) == b'\x1f\x8b'

    loaded = NBTFile.load(path).root_tag
    assert loaded.name == u'Data'
    assert loaded.body == make_tree()


def test_array_mutators():
    tag = TagIntArray([1, 2, 3])
    tag.set(0, 10).insert(1, 15).insert(4, 40)
    assert list(tag) == [10, 15, 2, 3, 40]
    assert tag.remove(2) == 2
    assert list(tag) == [10, 15, 3, 40]
    tag.clear()
    assert len(tag) == 0
    assert tag.add(5) == TagIntArray([5])


def test_array_mutator_errors():
    tag = TagByteArray([1, 2])
    with pytest.raises(BoundsError):
        tag.set(2, 0)
    with pytest.raises(BoundsError):
        tag.insert(3, 0)
    with pytest.raises(BoundsError):
        tag.remove(-1)
    with pytest.raises(OutOfRangeError):
        tag.set(0, 128)
    with pytest.raises(OutOfRangeError):
        TagLongArray().insert(0, 1 << 63)
    assert list(tag) == [1, 2]
