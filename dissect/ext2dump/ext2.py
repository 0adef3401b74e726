from __future__ import annotations

import logging
import os
import stat
from functools import cached_property
from typing import TYPE_CHECKING, BinaryIO

from dissect.util import ts

from dissect.ext2dump.c_ext2 import c_ext2
from dissect.ext2dump.exceptions import (
    CorruptDirectoryEntryError,
    Error,
    NotADirectoryError,
    TruncatedReadError,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from datetime import datetime

log = logging.getLogger(__name__)
log.setLevel(os.getenv("DISSECT_LOG_EXT2DUMP", "CRITICAL"))

SUPERBLOCK_SIZE = len(c_ext2.ext2_super_block)
GROUP_DESC_SIZE = len(c_ext2.ext2_group_desc)
INODE_STRUCT_SIZE = len(c_ext2.ext2_inode)

TYPE_TAGS = {
    stat.S_IFREG: "f",
    stat.S_IFDIR: "d",
    stat.S_IFLNK: "s",
}


class EXT2:
    def __init__(self, fh: BinaryIO):
        self.fh = fh

        self.sb = EXT2.read_sb(fh)
        if self.sb.s_magic != c_ext2.EXT2_SUPER_MAGIC:
            log.warning("Unexpected superblock magic 0x%04x", self.sb.s_magic)

        self.block_size = c_ext2.EXT2_MIN_BLOCK_SIZE << self.sb.s_log_block_size

        if self.sb.s_rev_level == c_ext2.EXT2_GOOD_OLD_REV:
            self.inode_size = c_ext2.EXT2_GOOD_OLD_INODE_SIZE
            self.first_ino = c_ext2.EXT2_GOOD_OLD_FIRST_INO
        else:
            self.inode_size = self.sb.s_inode_size
            self.first_ino = self.sb.s_first_ino

        if self.inode_size < INODE_STRUCT_SIZE:
            raise Error(f"Inode size {self.inode_size} is smaller than an inode record")

        if self.sb.s_blocks_per_group == 0:
            raise Error("Superblock reports zero blocks per group")

        self.num_groups = -(-self.sb.s_blocks_count // self.sb.s_blocks_per_group)
        self.group_desc_offset = (self.sb.s_first_data_block + 1) * self.block_size

    @staticmethod
    def read_sb(fh: BinaryIO) -> c_ext2.ext2_super_block:
        buf = pread(fh, c_ext2.EXT2_SBOFF, SUPERBLOCK_SIZE)
        return c_ext2.ext2_super_block(buf)

    def read(self, offset: int, size: int) -> bytes:
        return pread(self.fh, offset, size)

    def read_block(self, block: int) -> bytes:
        return self.read(block * self.block_size, self.block_size)

    def group(self, num: int) -> BlockGroup:
        return BlockGroup(self, num)

    def groups(self) -> Iterator[BlockGroup]:
        for num in range(self.num_groups):
            yield self.group(num)


class BlockGroup:
    def __init__(self, fs: EXT2, num: int):
        self.fs = fs
        self.num = num

        buf = fs.read(fs.group_desc_offset + num * GROUP_DESC_SIZE, GROUP_DESC_SIZE)
        self.desc = c_ext2.ext2_group_desc(buf)

    def __repr__(self) -> str:
        return f"<BlockGroup {self.num:d}>"

    @property
    def blocks_count(self) -> int:
        """Number of blocks in this group, the last group may be partial."""
        sb = self.fs.sb
        if self.num < self.fs.num_groups - 1:
            return sb.s_blocks_per_group
        return sb.s_blocks_count % sb.s_blocks_per_group or sb.s_blocks_per_group

    @property
    def inodes_count(self) -> int:
        return self.fs.sb.s_inodes_per_group

    def free_blocks(self) -> Iterator[int]:
        """Yield the 1-indexed global block numbers marked free in the block bitmap."""
        bitmap = self.fs.read_block(self.desc.bg_block_bitmap)
        base = self.num * self.fs.sb.s_blocks_per_group
        for bit in iter_free_bits(bitmap, self.fs.sb.s_blocks_per_group):
            yield base + bit + 1

    def free_inodes(self) -> Iterator[int]:
        """Yield the 1-indexed group-local inode positions marked free in the inode bitmap."""
        bitmap = self.fs.read_block(self.desc.bg_inode_bitmap)
        for bit in iter_free_bits(bitmap, self.inodes_count):
            yield bit + 1

    def inode(self, slot: int) -> INode:
        offset = self.desc.bg_inode_table * self.fs.block_size + slot * self.fs.inode_size
        buf = self.fs.read(offset, self.fs.inode_size)
        inum = self.num * self.inodes_count + slot + 1
        return INode(self.fs, inum, c_ext2.ext2_inode(buf[:INODE_STRUCT_SIZE]))

    def inodes(self) -> Iterator[INode]:
        """Yield every allocated inode in this group's inode table."""
        for slot in range(self.inodes_count):
            inode = self.inode(slot)
            if inode.is_allocated():
                yield inode


class INode:
    def __init__(self, fs: EXT2, inum: int, inode: c_ext2.ext2_inode):
        self.fs = fs
        self.inum = inum
        self.inode = inode

    def __repr__(self) -> str:
        return f"<inode {self.inum:d}>"

    @cached_property
    def mode(self) -> int:
        return self.inode.i_mode

    @cached_property
    def type(self) -> int:
        return stat.S_IFMT(self.mode)

    @cached_property
    def type_tag(self) -> str:
        return TYPE_TAGS.get(self.type, "?")

    @cached_property
    def uid(self) -> int:
        return self.inode.i_uid

    @cached_property
    def gid(self) -> int:
        return self.inode.i_gid

    @cached_property
    def nlink(self) -> int:
        return self.inode.i_links_count

    @cached_property
    def size(self) -> int:
        return self.inode.i_size

    @cached_property
    def nblocks(self) -> int:
        return self.inode.i_blocks

    @cached_property
    def atime(self) -> datetime:
        return ts.from_unix(self.inode.i_atime)

    @cached_property
    def mtime(self) -> datetime:
        return ts.from_unix(self.inode.i_mtime)

    @cached_property
    def ctime(self) -> datetime:
        return ts.from_unix(self.inode.i_ctime)

    @cached_property
    def block_pointers(self) -> list[int]:
        return list(self.inode.i_block)

    def is_allocated(self) -> bool:
        return not (self.mode == 0 and self.nlink == 0)

    def is_dir(self) -> bool:
        return self.type == stat.S_IFDIR

    def is_file(self) -> bool:
        return self.type == stat.S_IFREG

    def is_symlink(self) -> bool:
        return self.type == stat.S_IFLNK

    def is_fast_symlink(self) -> bool:
        return self.is_symlink() and self.size < c_ext2.EXT2_FAST_SYMLINK_MAX

    def listed_blocks(self) -> list[int]:
        """Return the block pointers that belong in this inode's summary.

        Regular files and directories list all pointers, zeros included. A fast symlink keeps its
        target inside ``i_block``, so only the first slot is listed. A slow symlink lists its
        non-zero pointers. Other types list nothing.
        """
        if self.is_file() or self.is_dir():
            return self.block_pointers

        if self.is_fast_symlink():
            return self.block_pointers[:1]

        if self.is_symlink():
            return [block for block in self.block_pointers if block != 0]

        return []

    def iterdir(self) -> Iterator[DirEntry]:
        """Yield the directory entries stored in the direct blocks of this inode.

        Indirect blocks are not followed. An entry with a zero record or name length ends the
        listing of the whole directory. A corrupt entry raises :class:`CorruptDirectoryEntryError`.
        """
        if not self.is_dir():
            raise NotADirectoryError(f"{self!r} is not a directory")

        if any(self.block_pointers[c_ext2.EXT2_NDIR_BLOCKS :]):
            log.info("Indirect blocks of directory %s are not traversed", self)

        offset = 0
        for block in self.block_pointers[: c_ext2.EXT2_NDIR_BLOCKS]:
            if block == 0:
                continue

            buf = self.fs.read_block(block)
            block_offset = 0

            # Slack smaller than an entry header ends the block, not the directory
            while block_offset + c_ext2.EXT2_DIR_HEADER_LEN <= len(buf):
                entry = decode_dirent(buf, block_offset, self.inum, offset)
                if entry is END_OF_ENTRIES:
                    return

                yield entry

                offset += entry.rec_len
                block_offset += entry.rec_len


class DirEntry:
    def __init__(self, parent: int, offset: int, inum: int, rec_len: int, name_len: int, file_type: int, name: str):
        self.parent = parent
        self.offset = offset
        self.inum = inum
        self.rec_len = rec_len
        self.name_len = name_len
        self.file_type = file_type
        self.name = name

    def __repr__(self) -> str:
        return f"<DirEntry {self.name!r} -> {self.inum:d}>"


END_OF_ENTRIES = object()


def decode_dirent(buf: bytes, block_offset: int, parent: int = 0, offset: int = 0) -> DirEntry | object:
    """Decode the directory entry at ``block_offset`` in a directory block.

    ``parent`` and ``offset`` are the owning inode and the position of the entry within the whole
    directory. Returns ``END_OF_ENTRIES`` when the record or name length is zero and raises
    :class:`CorruptDirectoryEntryError` when the header or name does not fit.
    """
    header_len = c_ext2.EXT2_DIR_HEADER_LEN
    if block_offset + header_len > len(buf):
        raise CorruptDirectoryEntryError(f"Header at 0x{block_offset:x} runs past the end of the block")

    dirent = c_ext2.ext2_dir_entry_2(buf[block_offset : block_offset + header_len])
    if dirent.rec_len == 0 or dirent.name_len == 0:
        return END_OF_ENTRIES

    if dirent.rec_len < header_len + dirent.name_len:
        raise CorruptDirectoryEntryError(
            f"Record length {dirent.rec_len} at 0x{block_offset:x} is too small for name length {dirent.name_len}"
        )

    name_offset = block_offset + header_len
    if name_offset + dirent.name_len > len(buf):
        raise CorruptDirectoryEntryError(f"Name at 0x{name_offset:x} runs past the end of the block")

    # Names are not NUL terminated on disk
    name = buf[name_offset : name_offset + dirent.name_len]
    return DirEntry(
        parent,
        offset,
        dirent.inode,
        dirent.rec_len,
        dirent.name_len,
        dirent.file_type,
        name.decode(errors="surrogateescape"),
    )


def iter_free_bits(bitmap: bytes, count: int) -> Iterator[int]:
    """Yield the positions of the zero bits among the first ``count`` bits of ``bitmap``."""
    if count > len(bitmap) * 8:
        raise Error(f"Bitmap of {len(bitmap)} bytes can't describe {count} items")

    for bit in range(count):
        byte_offset, bit_offset = divmod(bit, 8)
        if bitmap[byte_offset] & (1 << bit_offset) == 0:
            yield bit


def pread(fh: BinaryIO, offset: int, size: int) -> bytes:
    fh.seek(offset)
    buf = fh.read(size)
    if len(buf) != size:
        raise TruncatedReadError(f"Short read at offset 0x{offset:x}: expected {size} bytes, got {len(buf)}")
    return buf
