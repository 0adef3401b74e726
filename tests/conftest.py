from __future__ import annotations

import io
import stat
import struct
from typing import TYPE_CHECKING, BinaryIO

import pytest

if TYPE_CHECKING:
    from collections.abc import Iterator

# 2022-04-22 14:15:14 UTC
TIMESTAMP = 1650636914


class ImageBuilder:
    """Build small ext2 images in memory.

    Every group keeps its block bitmap, inode bitmap and inode table at block 2, 3 and 4 relative
    to the start of the group. Block bitmaps start out fully allocated and inode bitmaps fully free.
    """

    def __init__(
        self,
        blocks_count: int = 64,
        blocks_per_group: int = 64,
        inodes_per_group: int = 16,
        log_block_size: int = 0,
        inode_size: int = 128,
        rev_level: int = 1,
        first_ino: int = 11,
    ):
        self.blocks_count = blocks_count
        self.blocks_per_group = blocks_per_group
        self.inodes_per_group = inodes_per_group
        self.log_block_size = log_block_size
        self.block_size = 1024 << log_block_size
        self.inode_size = inode_size
        self.rev_level = rev_level
        self.first_ino = first_ino

        self.first_data_block = 1 if self.block_size == 1024 else 0
        self.num_groups = -(-blocks_count // blocks_per_group)

        self.buf = bytearray(blocks_count * self.block_size)
        self.free_block_bits = {num: set() for num in range(self.num_groups)}
        self.used_inode_bits = {num: set() for num in range(self.num_groups)}

    def group_base(self, num: int) -> int:
        return self.first_data_block + num * self.blocks_per_group

    def block_bitmap(self, num: int) -> int:
        return self.group_base(num) + 2

    def inode_bitmap(self, num: int) -> int:
        return self.group_base(num) + 3

    def inode_table(self, num: int) -> int:
        return self.group_base(num) + 4

    def put(self, offset: int, fmt: str, *values) -> None:
        struct.pack_into("<" + fmt, self.buf, offset, *values)

    def free_block(self, num: int, bit: int) -> ImageBuilder:
        self.free_block_bits[num].add(bit)
        return self

    def mark_inode(self, inum: int) -> ImageBuilder:
        num, slot = divmod(inum - 1, self.inodes_per_group)
        self.used_inode_bits[num].add(slot)
        return self

    def add_inode(
        self,
        inum: int,
        mode: int,
        links: int = 1,
        size: int = 0,
        blocks: int = 0,
        block_ptrs: tuple[int, ...] = (),
        uid: int = 0,
        gid: int = 0,
        ctime: int = TIMESTAMP,
        mtime: int = TIMESTAMP,
        atime: int = TIMESTAMP,
    ) -> ImageBuilder:
        num, slot = divmod(inum - 1, self.inodes_per_group)
        offset = self.inode_table(num) * self.block_size + slot * self.inode_size

        ptrs = list(block_ptrs) + [0] * (15 - len(block_ptrs))
        self.put(offset, "HHIIIIIHHI", mode, uid, size, atime, ctime, mtime, 0, gid, links, blocks)
        self.put(offset + 40, "15I", *ptrs)
        return self.mark_inode(inum)

    def add_dir(self, inum: int, entries: list[tuple[int, bytes, int]], block: int, **kwargs) -> ImageBuilder:
        self.add_dirents(block, entries)
        kwargs.setdefault("size", self.block_size)
        kwargs.setdefault("links", 2)
        kwargs.setdefault("block_ptrs", (block,))
        return self.add_inode(inum, stat.S_IFDIR | 0o755, **kwargs)

    def add_dirents(self, block: int, entries: list[tuple[int, bytes, int]]) -> ImageBuilder:
        offset = block * self.block_size
        for inum, name, rec_len in entries:
            self.put(offset, "IHBB", inum, rec_len, len(name), 2)
            self.buf[offset + 8 : offset + 8 + len(name)] = name
            offset += rec_len
        return self

    def build(self, truncate: int | None = None) -> BinaryIO:
        self.put(
            1024,
            "7I",
            self.inodes_per_group * self.num_groups,
            self.blocks_count,
            0,
            0,
            0,
            self.first_data_block,
            self.log_block_size,
        )
        self.put(1024 + 32, "I", self.blocks_per_group)
        self.put(1024 + 40, "I", self.inodes_per_group)
        self.put(1024 + 56, "H", 0xEF53)
        self.put(1024 + 76, "I", self.rev_level)
        self.put(1024 + 84, "IH", self.first_ino, self.inode_size)

        gdt = (self.first_data_block + 1) * self.block_size
        for num in range(self.num_groups):
            free_blocks = len(self.free_block_bits[num])
            free_inodes = self.inodes_per_group - len(self.used_inode_bits[num])
            self.put(
                gdt + num * 32,
                "IIIHH",
                self.block_bitmap(num),
                self.inode_bitmap(num),
                self.inode_table(num),
                free_blocks,
                free_inodes,
            )

            block_bitmap = bytearray(b"\xff" * self.block_size)
            for bit in self.free_block_bits[num]:
                block_bitmap[bit // 8] &= ~(1 << (bit % 8)) & 0xFF
            offset = self.block_bitmap(num) * self.block_size
            self.buf[offset : offset + self.block_size] = block_bitmap

            inode_bitmap = bytearray(self.block_size)
            for bit in self.used_inode_bits[num]:
                inode_bitmap[bit // 8] |= 1 << (bit % 8)
            offset = self.inode_bitmap(num) * self.block_size
            self.buf[offset : offset + self.block_size] = inode_bitmap

        data = bytes(self.buf)
        if truncate is not None:
            data = data[:truncate]
        return io.BytesIO(data)


@pytest.fixture
def image_builder() -> type[ImageBuilder]:
    return ImageBuilder


@pytest.fixture
def single_group_image() -> Iterator[BinaryIO]:
    """One group with a root directory holding ``.`` and ``..`` and a single free block."""
    builder = ImageBuilder()
    builder.mark_inode(1)
    builder.add_dir(2, [(2, b".", 12), (2, b"..", 1012)], block=7, blocks=2)
    builder.free_block(0, 40)
    yield builder.build()
