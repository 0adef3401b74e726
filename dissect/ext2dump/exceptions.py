class Error(Exception):
    pass


class ImageOpenError(Error, OSError):
    pass


class TruncatedReadError(Error, OSError):
    pass


class ArgumentError(Error, ValueError):
    pass


class CorruptDirectoryEntryError(Error):
    pass


class NotADirectoryError(Error, NotADirectoryError):
    pass
