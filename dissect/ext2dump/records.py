from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, BinaryIO

if TYPE_CHECKING:
    from collections.abc import Iterator
    from datetime import datetime

    from dissect.ext2dump.ext2 import EXT2, BlockGroup, DirEntry, INode

log = logging.getLogger(__name__)
log.setLevel(os.getenv("DISSECT_LOG_EXT2DUMP", "CRITICAL"))

TIME_FORMAT = "%m/%d/%y %H:%M:%S"


def format_time(dt: datetime) -> str:
    return dt.strftime(TIME_FORMAT)


def _record(*fields) -> str:
    return ",".join(str(field) for field in fields)


def superblock_record(fs: EXT2) -> str:
    sb = fs.sb
    return _record(
        "SUPERBLOCK",
        sb.s_blocks_count,
        sb.s_inodes_count,
        fs.block_size,
        fs.inode_size,
        sb.s_blocks_per_group,
        sb.s_inodes_per_group,
        fs.first_ino,
    )


def group_record(group: BlockGroup) -> str:
    desc = group.desc
    return _record(
        "GROUP",
        group.num,
        group.blocks_count,
        group.inodes_count,
        desc.bg_free_blocks_count,
        desc.bg_free_inodes_count,
        desc.bg_block_bitmap,
        desc.bg_inode_bitmap,
        desc.bg_inode_table,
    )


def bfree_record(block: int) -> str:
    return _record("BFREE", block)


def ifree_record(inum: int) -> str:
    return _record("IFREE", inum)


def inode_record(inode: INode) -> str:
    return _record(
        "INODE",
        inode.inum,
        inode.type_tag,
        f"{inode.mode & 0o7777:o}",
        inode.uid,
        inode.gid,
        inode.nlink,
        format_time(inode.ctime),
        format_time(inode.mtime),
        format_time(inode.atime),
        inode.size,
        inode.nblocks,
        *inode.listed_blocks(),
    )


def dirent_record(entry: DirEntry) -> str:
    return _record(
        "DIRENT",
        entry.parent,
        entry.offset,
        entry.inum,
        entry.rec_len,
        entry.name_len,
        f"'{entry.name}'",
    )


def iter_records(fs: EXT2) -> Iterator[str]:
    """Yield every record of ``fs`` in walk order."""
    yield superblock_record(fs)

    for group in fs.groups():
        log.debug("Walking %r", group)
        yield group_record(group)

        for block in group.free_blocks():
            yield bfree_record(block)

        for inum in group.free_inodes():
            yield ifree_record(inum)

        for inode in group.inodes():
            yield inode_record(inode)

            if inode.is_dir():
                for entry in inode.iterdir():
                    yield dirent_record(entry)


def dump(fs: EXT2, out: BinaryIO) -> None:
    """Write every record of ``fs`` to ``out``, one per line.

    Records are written as they are produced, so a failure halfway leaves the earlier ones in place.
    """
    for record in iter_records(fs):
        out.write(record.encode(errors="surrogateescape") + b"\n")
