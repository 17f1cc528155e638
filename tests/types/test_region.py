import io
import struct

import pytest

from syntaxnbt.types.compression import Compression
from syntaxnbt.types.errors import (
    BoundsError, ChunkTooLargeError, MalformedWireError, SchemaMismatchError)
from syntaxnbt.types.nbt import *
from syntaxnbt.types.region import *


def make_chunk(x, z):
    return TagCompound({
        'xPos': TagInt(x),
        'zPos': TagInt(z),
        'Status': TagString(u'full'),
        'Heightmap': TagLongArray(range(37)),
    })


def headers(data):
    locations = struct.unpack('>1024I', data[:4096])
    timestamps = struct.unpack('>1024i', data[4096:8192])
    return locations, timestamps


def test_sector_count():
    assert sector_count(0) == 0
    assert sector_count(1) == 1
    assert sector_count(4096) == 1
    assert sector_count(4097) == 2
    assert sector_count(255 * 4096) == 255
    assert sector_count(255 * 4096 + 1) == 256


def test_empty_region():
    stream = io.BytesIO()
    Region().save(stream)
    assert stream.getvalue() == bytes(8192)
    assert len(Region.load(io.BytesIO(stream.getvalue()))) == 0


def test_load_empty_stream():
    assert len(Region.load(io.BytesIO())) == 0


def test_layout():
    region = Region()
    region.set_chunk(0, 1, make_chunk(0, 1), timestamp=1234)
    region.set_chunk(0, 0, make_chunk(0, 0))
    region.set_chunk(31, 31, make_chunk(31, 31))

    stream = io.BytesIO()
    region.save(stream)
    data = stream.getvalue()
    locations, timestamps = headers(data)

    assert len(data) % 4096 == 0
    assert locations[0] == (2 << 8) | 1
    assert locations[1] == (3 << 8) | 1
    assert locations[1023] == (4 << 8) | 1
    assert sum(1 for location in locations if location) == 3
    assert timestamps[1] == 1234
    assert len(data) == 5 * 4096

    length, scheme = struct.unpack('>IB', data[2 * 4096:2 * 4096 + 5])
    assert scheme == Compression.ZLIB
    assert sector_count(length + 4) == 1


def test_round_trip():
    region = Region()
    region.set_chunk(3, 7, make_chunk(3, 7), timestamp=99)
    region.set_chunk(4, 0, Chunk(make_chunk(4, 0), Compression.GZIP))
    region.set_chunk(5, 5, Chunk(make_chunk(5, 5), Compression.NONE))

    stream = io.BytesIO()
    region.save(stream)
    loaded = Region.load(stream)

    assert len(loaded) == 3
    assert [(x, z) for x, z, _ in loaded.chunks()] == [(3, 7), (4, 0), (5, 5)]
    assert loaded.get_chunk(3, 7).data == make_chunk(3, 7)
    assert loaded.get_chunk(3, 7).compression is Compression.ZLIB
    assert loaded.get_chunk(4, 0).compression is Compression.GZIP
    assert loaded.get_chunk(5, 5).compression is Compression.NONE
    assert loaded.get_timestamp(3, 7) == 99
    assert loaded.get_chunk(0, 0) is None


def test_resave_shrinks_file():
    region = Region()
    for x in range(4):
        region.set_chunk(x, 0, make_chunk(x, 0))
    stream = io.BytesIO()
    region.save(stream)
    assert len(stream.getvalue()) == 6 * 4096

    region.remove_chunk(0, 0)
    region.save(stream)
    locations, _ = headers(stream.getvalue())
    assert len(stream.getvalue()) == 5 * 4096
    assert locations[32] == (2 << 8) | 1


def test_region_default_compression():
    region = Region(Compression.NONE)
    region.set_chunk(0, 0, make_chunk(0, 0))
    stream = io.BytesIO()
    region.save(stream)
    assert stream.getvalue()[8196] == Compression.NONE


def test_chunk_too_large():
    region = Region()
    data = TagCompound({'blob': TagByteArray(bytes(256 * 4096))})
    region.set_chunk(1, 2, Chunk(data, Compression.NONE))
    with pytest.raises(ChunkTooLargeError) as excinfo:
        region.save(io.BytesIO())
    assert excinfo.value.args[:2] == (1, 2)


def test_large_chunk_fits():
    region = Region()
    data = TagCompound({'blob': TagByteArray(bytes(200 * 4096))})
    region.set_chunk(0, 0, Chunk(data, Compression.NONE))
    stream = io.BytesIO()
    region.save(stream)
    locations, _ = headers(stream.getvalue())
    assert locations[0] & 0xFF == 201


def test_bounds():
    region = Region()
    with pytest.raises(BoundsError):
        region.get_chunk(32, 0)
    with pytest.raises(IndexError):
        region.set_chunk(0, -1, TagCompound())
    with pytest.raises(BoundsError):
        region.set_timestamp(0, 32, 5)


def test_remove_chunk():
    region = Region()
    chunk = region.set_chunk(2, 2, TagCompound(), timestamp=5)
    assert region.remove_chunk(2, 2) is chunk
    assert region.get_chunk(2, 2) is None
    assert region.get_timestamp(2, 2) == 0
    assert region.remove_chunk(2, 2) is None


def test_chunk_dirty_tracking():
    chunk = Chunk(make_chunk(0, 0))
    assert chunk.dirty
    payload = chunk.serialize(Compression.ZLIB)
    assert not chunk.dirty
    assert chunk.serialize(Compression.ZLIB) is payload
    assert payload[0] == Compression.ZLIB

    chunk.data.put('Status', TagString(u'empty'))
    assert chunk.serialize(Compression.ZLIB) is payload
    chunk.mark_dirty()
    assert chunk.serialize(Compression.ZLIB) is not payload

    chunk.compression = Compression.GZIP
    assert chunk.dirty
    assert chunk.serialize(Compression.ZLIB)[0] == Compression.GZIP


def test_chunk_cache_follows_default_compression():
    chunk = Chunk(make_chunk(0, 0))
    assert chunk.serialize(Compression.ZLIB)[0] == Compression.ZLIB
    assert chunk.serialize(Compression.NONE)[0] == Compression.NONE


def test_chunk_data_must_be_compound():
    with pytest.raises(SchemaMismatchError):
        Chunk(TagInt(1))


def test_unknown_chunk_compression():
    region = Region()
    region.set_chunk(0, 0, make_chunk(0, 0))
    stream = io.BytesIO()
    region.save(stream)
    data = bytearray(stream.getvalue())
    data[8196] = 9
    with pytest.raises(MalformedWireError):
        Region.load(io.BytesIO(bytes(data)))


def test_region_file(tmp_path):
    path = tmp_path / 'r.0.0.mca'
    region = Region()
    region.set_chunk(0, 0, make_chunk(0, 0))
    region.set_chunk(1, 31, make_chunk(1, 31), timestamp=42)

    with RegionFile(path) as region_file:
        region_file.save(region)

    with RegionFile(path, read_only=True) as region_file:
        assert region_file.list_chunks() == [(0, 0), (1, 31)]
        assert region_file.load_chunk(1, 31).data == make_chunk(1, 31)
        assert region_file.load_chunk(5, 5) is None
        loaded = region_file.load()

    assert loaded.get_timestamp(1, 31) == 42
    assert loaded.get_chunk(0, 0).data == make_chunk(0, 0)


def test_region_file_new(tmp_path):
    path = tmp_path / 'new.mca'
    region_file = RegionFile(path)
    try:
        assert region_file.list_chunks() == []
        assert region_file.load_chunk(0, 0) is None
        assert len(region_file.load()) == 0
    finally:
        region_file.close()


def test_timestamps_of_absent_chunks_are_loaded():
    header = bytearray(8192)
    header[4096 + 4 * 5:4096 + 4 * 6] = struct.pack('>i', 77)
    region = Region.load(io.BytesIO(bytes(header)))
    assert len(region) == 0
    assert region.get_timestamp(0, 5) == 77


def blob_chunk(payload_length):
    # 16 bytes of framing around the byte array when stored uncompressed
    data = TagCompound({'blob': TagByteArray(bytes(payload_length - 16))})
    return Chunk(data, Compression.NONE)


@pytest.mark.parametrize('payload_length, sectors', [(4092, 1), (4093, 2)])
def test_payload_sector_boundary(payload_length, sectors):
    chunk = blob_chunk(payload_length)
    assert len(chunk.serialize()) == payload_length

    region = Region()
    region.set_chunk(0, 0, chunk)
    stream = io.BytesIO()
    region.save(stream)
    locations, _ = headers(stream.getvalue())
    assert locations[0] == (2 << 8) | sectors
    assert len(stream.getvalue()) == (2 + sectors) * 4096
