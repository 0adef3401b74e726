from dissect.ext2dump.exceptions import (
    ArgumentError,
    CorruptDirectoryEntryError,
    Error,
    ImageOpenError,
    NotADirectoryError,
    TruncatedReadError,
)
from dissect.ext2dump.ext2 import EXT2, BlockGroup, DirEntry, INode
from dissect.ext2dump.records import dump


__all__ = [
    "EXT2",
    "ArgumentError",
    "BlockGroup",
    "CorruptDirectoryEntryError",
    "DirEntry",
    "Error",
    "INode",
    "ImageOpenError",
    "NotADirectoryError",
    "TruncatedReadError",
    "dump",
]
