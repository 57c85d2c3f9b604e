"""
Fixed-width parser for TRAFx ShuttleFiles.

Classifies each line of a ShuttleFile, slices record and metadata fields
at fixed offsets, forward-fills metadata down the file, and aggregates one
or more files into a counts table and a header table.
"""

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Tuple, Union

import pandas as pd
from pytz import BaseTzInfo

from .exceptions import InvalidPath, MalformedField, NoInputFound
from .models import (
    CountRecord,
    HeaderRecord,
    LineKind,
    MetaFields,
    ParsedLine,
    RecordFields,
)
from .timezone import localize_series, resolve_timezone

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# ==================== Fixed Layout ====================
# 0-based, end-exclusive slices of a record line (chars 1-8, 10-14, 1-14, 16-20, 22-26)

RECORD_SLICES: Dict[str, Tuple[int, int]] = {
    "date_raw": (0, 8),
    "time_raw": (9, 14),
    "datetime_raw": (0, 14),
    "count1_raw": (15, 20),
    "count2_raw": (21, 26),
}

# Tested in order; first match wins
META_PREFIXES: Tuple[Tuple[str, LineKind], ...] = (
    ("  *Serial Number", LineKind.SERIAL),
    ("  *Counter", LineKind.COUNTER),
    ("  *Mode", LineKind.MODE),
    ("  *Batt", LineKind.VOLT),
    ("=TIME", LineKind.DOWNLOAD_TIME),
    ("=START", LineKind.START_TIME),
    ("=DOCK", LineKind.DOCK_TIME),
)

# Value runs from this 0-based column to end of line
META_VALUE_START: Dict[LineKind, int] = {
    LineKind.COUNTER: 19,
    LineKind.MODE: 19,
    LineKind.VOLT: 19,
    LineKind.DOWNLOAD_TIME: 23,
    LineKind.START_TIME: 23,
    LineKind.DOCK_TIME: 28,
}

# Serial number is the last N characters of its line
SERIAL_WIDTH = 6

RECORD_DATETIME_FORMAT = "%y-%m-%d,%H:%M"
RECORD_DATE_FORMAT = "%y-%m-%d"
DOCK_TIME_FORMAT = "%y-%m-%d %H:%M:%S"

# Header timestamps are read from their leading characters; anything after is ignored
RECORD_DATETIME_WIDTH = len("YY-MM-DD,HH:MM")
DOCK_TIME_WIDTH = len("YY-MM-DD HH:MM:SS")

SHUTTLEFILE_SUFFIX = ".txt"

COUNT_COLUMNS = ["counter", "serial", "timestamp", "date", "time_of_day", "count1", "count2"]
HEADER_COLUMNS = ["counter", "mode", "serial", "volt", "download_time", "start_time", "dock_time"]

_DIGITS = frozenset("0123456789")


class ShuttleData(NamedTuple):
    """Parsed counts and header tables."""
    counts: pd.DataFrame
    header: pd.DataFrame

    def to_csv(self, counts_path: PathLike, header_path: Optional[PathLike] = None) -> None:
        """Write the counts table, and the header table if a path is given."""
        self.counts.to_csv(counts_path, index=False)
        if header_path is not None:
            self.header.to_csv(header_path, index=False)


# ==================== Line Classifier ====================


def classify_line(content: str) -> LineKind:
    """
    Classify one line without lookback.

    A line is a record iff its first character is a decimal digit. Other
    lines are tagged by their literal column-1 prefix, else OTHER.
    """
    if content[:1] in _DIGITS:
        return LineKind.RECORD
    for prefix, kind in META_PREFIXES:
        if content.startswith(prefix):
            return kind
    return LineKind.OTHER


# ==================== Field Extractor ====================


def extract_record_fields(content: str) -> RecordFields:
    """
    Slice the fixed-offset fields of a record line.

    A slice left empty by a short line is None.
    """
    values = {name: content[start:end] or None for name, (start, end) in RECORD_SLICES.items()}
    return RecordFields(**values)


def extract_meta_fields(content: str, kind: LineKind) -> MetaFields:
    """Extract the single metadata field a line of *kind* carries."""
    if kind is LineKind.SERIAL:
        value = content[-SERIAL_WIDTH:]
    elif kind in META_VALUE_START:
        value = content[META_VALUE_START[kind]:]
    else:
        return MetaFields()
    # LineKind values double as MetaFields attribute names
    return MetaFields(**{kind.value: value or None})


# ==================== Forward-Fill Propagator ====================


class MetaState:
    """Last non-missing value seen for each metadata attribute in one file."""

    def __init__(self):
        self._last: Dict[str, str] = {}

    def fill(self, meta: MetaFields) -> MetaFields:
        """Record the non-missing values of *meta* and return the filled copy."""
        for name, value in meta.model_dump().items():
            if value is not None:
                self._last[name] = value
        return MetaFields(**self._last)


def forward_fill(metas: Iterable[MetaFields]) -> List[MetaFields]:
    """Propagate each attribute's last non-missing value down the sequence."""
    state = MetaState()
    return [state.fill(meta) for meta in metas]


def parse_lines(lines: Iterable[str], origin_file: str = "", fill: bool = True) -> List[ParsedLine]:
    """
    Classify and extract every line of one file.

    Args:
        lines: Line contents without terminators, blank lines included
        origin_file: Source path, kept on each line for tracing
        fill: Forward-fill metadata down the file

    Returns:
        One ParsedLine per input line, in order
    """
    state = MetaState()
    parsed = []
    for position, content in enumerate(lines, start=1):
        kind = classify_line(content)
        record = extract_record_fields(content) if kind.is_record else None
        meta = extract_meta_fields(content, kind)
        if fill:
            meta = state.fill(meta)
        parsed.append(ParsedLine(
            content=content,
            position=position,
            origin_file=origin_file,
            kind=kind,
            record=record,
            meta=meta,
        ))
    return parsed


def read_raw_lines(filepath: PathLike, encoding: str = "utf-8") -> List[Tuple[str, str]]:
    """
    Read a file as (content, terminator) pairs.

    Terminators are kept exactly ('\\r\\n', '\\n', '\\r' or '' on the last
    line) so that a file can be written back byte for byte.
    """
    with open(filepath, "r", encoding=encoding, newline="") as f:
        text = f.read()

    pieces = text.split("\n")
    lines = []
    for i, piece in enumerate(pieces):
        last = i == len(pieces) - 1
        if last and piece == "":
            break
        ending = "" if last else "\n"
        if piece.endswith("\r"):
            piece = piece[:-1]
            ending = "\r" + ending
        lines.append((piece, ending))
    return lines


# ==================== Type Coercion ====================


def _to_datetime(field: str, raw: str, fmt: str, width: Optional[int] = None) -> datetime:
    text = raw.strip()[:width]
    try:
        return datetime.strptime(text, fmt)
    except ValueError:
        raise MalformedField(field, raw) from None


def _to_date(field: str, raw: str, fmt: str) -> date:
    return _to_datetime(field, raw, fmt).date()


def _to_count(field: str, raw: str) -> int:
    text = raw.strip()
    # Plain digits only: int() would also take signs and underscores
    if not text or not set(text) <= _DIGITS:
        raise MalformedField(field, raw)
    return int(text)


def _lenient(convert: Callable, field: str, raw: Optional[str], *args):
    """Apply *convert*, resolving missing input or MalformedField to None."""
    if raw is None:
        return None
    try:
        return convert(field, raw, *args)
    except MalformedField as e:
        logger.debug(f"{e}; treated as missing")
        return None


def parse_record_timestamp(raw: Optional[str]) -> Optional[datetime]:
    """Parse a record's combined 'YY-MM-DD,HH:MM' slice, None if malformed."""
    return _lenient(_to_datetime, "datetime", raw, RECORD_DATETIME_FORMAT)


def to_count_record(line: ParsedLine) -> CountRecord:
    """Build a CountRecord from a filled record line."""
    fields = line.record or RecordFields()
    return CountRecord(
        counter=line.meta.counter,
        serial=line.meta.serial,
        timestamp=parse_record_timestamp(fields.datetime_raw),
        date=_lenient(_to_date, "date", fields.date_raw, RECORD_DATE_FORMAT),
        time_of_day=fields.time_raw,
        count1=_lenient(_to_count, "count1", fields.count1_raw),
        count2=_lenient(_to_count, "count2", fields.count2_raw),
    )


def to_header_record(line: ParsedLine) -> HeaderRecord:
    """Build a HeaderRecord from the filled metadata of a record line."""
    meta = line.meta
    return HeaderRecord(
        counter=meta.counter,
        mode=meta.mode,
        serial=meta.serial,
        volt=meta.volt,
        download_time=_lenient(
            _to_datetime, "download_time", meta.download_time, RECORD_DATETIME_FORMAT, RECORD_DATETIME_WIDTH,
        ),
        start_time=_lenient(
            _to_datetime, "start_time", meta.start_time, RECORD_DATETIME_FORMAT, RECORD_DATETIME_WIDTH,
        ),
        dock_time=_lenient(_to_datetime, "dock_time", meta.dock_time, DOCK_TIME_FORMAT, DOCK_TIME_WIDTH),
    )


# ==================== DataFrame Construction ====================


def counts_frame(records: List[CountRecord], tz: Optional[BaseTzInfo] = None) -> pd.DataFrame:
    """Tabulate count records with nullable integer counts."""
    df = pd.DataFrame([r.to_row() for r in records], columns=COUNT_COLUMNS)
    df["timestamp"] = localize_series(df["timestamp"], tz)
    df["count1"] = df["count1"].astype("Int64")
    df["count2"] = df["count2"].astype("Int64")
    return df


def header_frame(records: List[HeaderRecord], tz: Optional[BaseTzInfo] = None) -> pd.DataFrame:
    """Tabulate header records."""
    df = pd.DataFrame([r.to_row() for r in records], columns=HEADER_COLUMNS)
    for column in ("download_time", "start_time", "dock_time"):
        df[column] = localize_series(df[column], tz)
    return df


# ==================== File Parsing ====================


def _parse_file(filepath: Path, tz: Optional[BaseTzInfo], encoding: str) -> ShuttleData:
    lines = parse_lines(
        (content for content, _ in read_raw_lines(filepath, encoding)),
        origin_file=str(filepath),
    )
    record_lines = [line for line in lines if line.kind.is_record]

    # First occurrence of each counter wins
    headers: Dict[Optional[str], HeaderRecord] = {}
    for line in record_lines:
        if line.meta.counter not in headers:
            headers[line.meta.counter] = to_header_record(line)

    logger.debug(
        f"{filepath.name}: {len(lines)} lines, {len(record_lines)} records, {len(headers)} counters",
        extra={"file": str(filepath)},
    )
    return ShuttleData(
        counts=counts_frame([to_count_record(line) for line in record_lines], tz),
        header=header_frame(list(headers.values()), tz),
    )


def parse_shuttlefile(filepath: PathLike, tz: Optional[str] = None, encoding: str = "utf-8") -> ShuttleData:
    """
    Parse a single ShuttleFile.

    Args:
        filepath: Path to the ShuttleFile
        tz: IANA time zone for timestamps (default: naive local wall clock)
        encoding: Text encoding of the file

    Returns:
        ShuttleData with the file's counts and header tables
    """
    return _parse_file(Path(filepath), resolve_timezone(tz), encoding)


def find_shuttlefiles(path: PathLike, recursive: bool = False) -> List[Path]:
    """
    Resolve a file or folder to the ShuttleFiles it names.

    A folder yields its *.txt files (extension matched case-insensitively),
    sorted by path. Subfolders are searched only when *recursive* is set.

    Raises:
        InvalidPath: path is neither a file nor a directory
        NoInputFound: folder holds no ShuttleFiles
    """
    path = Path(path)
    if path.is_dir():
        candidates = path.rglob("*") if recursive else path.iterdir()
        files = sorted(
            p for p in candidates
            if p.is_file() and p.suffix.lower() == SHUTTLEFILE_SUFFIX
        )
    elif path.is_file():
        files = [path]
    else:
        raise InvalidPath(f"`{path}` must be a valid file or directory.")

    if not files:
        raise NoInputFound(f"No {SHUTTLEFILE_SUFFIX} files found in {path}")
    return files


def read_shuttlefiles(
    path: PathLike,
    tz: Optional[str] = None,
    recursive: bool = False,
    encoding: str = "utf-8",
) -> ShuttleData:
    """
    Read one ShuttleFile or every ShuttleFile in a folder.

    Files are parsed independently. Counts are concatenated in file order,
    then line order. Header rows are deduplicated by counter name, keeping
    the first file's row.

    Args:
        path: A ShuttleFile or a folder of ShuttleFiles
        tz: IANA time zone for timestamps (default: naive local wall clock)
        recursive: Also search subfolders
        encoding: Text encoding of the files

    Returns:
        ShuttleData with the combined counts and header tables
    """
    files = find_shuttlefiles(path, recursive=recursive)
    tzinfo = resolve_timezone(tz)

    parsed = [_parse_file(f, tzinfo, encoding) for f in files]

    counts = pd.concat([p.counts for p in parsed], ignore_index=True)
    header = (
        pd.concat([p.header for p in parsed], ignore_index=True)
        .drop_duplicates(subset="counter", keep="first")
        .reset_index(drop=True)
    )

    logger.info(
        f"Read {len(files)} ShuttleFile(s): {len(counts)} count rows, {len(header)} counter(s)",
        extra={"files": len(files), "rows": len(counts), "counters": len(header)},
    )
    return ShuttleData(counts=counts, header=header)
