"""
Error taxonomy for ShuttleFile processing.

Path and discovery errors are fatal. Field-level coercion errors are
recovered by the parser as missing values and never leave a parse.
"""


class ShuttleFileError(Exception):
    """Base class for all trail_counter errors."""


class InvalidPath(ShuttleFileError, FileNotFoundError):
    """Path is neither an existing file nor an existing directory."""


class NoInputFound(ShuttleFileError):
    """Directory search yielded zero ShuttleFiles."""


class MalformedField(ShuttleFileError, ValueError):
    """A raw field could not be coerced to its type."""

    def __init__(self, field: str, raw: str):
        self.field = field
        self.raw = raw
        super().__init__(f"Cannot coerce {field}={raw!r}")


class UnsupportedDirection(ShuttleFileError, ValueError):
    """DST direction is not one of 'begin' or 'end'."""


class ColumnNotFound(ShuttleFileError, KeyError):
    """A column named by the caller is absent from the dataset."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""
