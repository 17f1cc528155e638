"""
Reading and writing Minecraft NBT data: the binary format, its SNBT text
form, NBT paths and region files.
"""

from syntaxnbt.types.compression import Compression, detect, detect_stream
from syntaxnbt.types.errors import (
    BoundsError, BufferUnderrun, ChunkTooLargeError, InvalidTagError,
    MalformedWireError, NBTError, NBTSyntaxError, OutOfRangeError,
    SchemaMismatchError, StructuralInvariantError, TagNotFoundError,
    UnknownCompressionError, UnknownKindError, WrongKindError)
from syntaxnbt.types.nbt import (
    DEFAULT_MAX_DEPTH, HIGHLIGHT_STYLE, PLAIN_STYLE, SECTION_STYLE, Kind,
    NBTFile, SnbtStyle, TagByte, TagByteArray, TagCompound, TagDouble,
    TagFloat, TagInt, TagIntArray, TagList, TagLong, TagLongArray, TagRoot,
    TagShort, TagString, deserialize, read, serialize, write)
from syntaxnbt.types.nbt_path import PathNode, nbt_path_join, parse_path, traverse
from syntaxnbt.types.region import Chunk, Region, RegionFile
from syntaxnbt.types.snbt import parse, parse_compound, stringify
