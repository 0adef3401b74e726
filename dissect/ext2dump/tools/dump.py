from __future__ import annotations

import argparse
import logging
import sys
from typing import BinaryIO

from dissect.ext2dump.exceptions import ArgumentError, Error, ImageOpenError
from dissect.ext2dump.ext2 import EXT2
from dissect.ext2dump.records import dump


class ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise ArgumentError(message)


def open_image(path: str) -> BinaryIO:
    try:
        return open(path, "rb")
    except OSError as e:
        raise ImageOpenError(f"Failed to open {path}: {e.strerror or e}") from e


def main(argv: list[str] | None = None) -> int:
    parser = ArgumentParser(
        prog="ext2dump",
        description="Dump the metadata of an ext2 filesystem image as comma-separated records.",
        epilog="Put -- before an image path that starts with a dash, e.g. ext2dump -- -image.img",
    )
    parser.add_argument("image", help="path to the ext2 filesystem image")

    logging.basicConfig(stream=sys.stderr, format="%(levelname)s %(name)s: %(message)s")

    try:
        args = parser.parse_args(argv)
    except ArgumentError as e:
        parser.print_usage(sys.stderr)
        print(f"{parser.prog}: error: {e}", file=sys.stderr)
        return 2

    try:
        with open_image(args.image) as fh:
            dump(EXT2(fh), sys.stdout.buffer)
    except Error as e:
        sys.stdout.buffer.flush()
        print(f"{parser.prog}: error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
