"""
trail-counter - TRAFx ShuttleFile parser and DST corrector

Parses fixed-width trail counter ShuttleFiles into counts and header
tables, corrects record timestamps for daylight-saving time, and flags
hours missing from hourly count series.
"""

from .models import (
    LineKind,
    DSTDirection,
    RecordFields,
    MetaFields,
    ParsedLine,
    CountRecord,
    HeaderRecord,
    CorrectionSummary,
)
from .exceptions import (
    ShuttleFileError,
    InvalidPath,
    NoInputFound,
    MalformedField,
    UnsupportedDirection,
    ColumnNotFound,
)
from .parser import (
    ShuttleData,
    classify_line,
    extract_record_fields,
    extract_meta_fields,
    forward_fill,
    parse_lines,
    parse_shuttlefile,
    find_shuttlefiles,
    read_shuttlefiles,
)
from .dst import (
    dst_transition_date,
    dst_transition,
    correct_shuttlefile,
    correct_dst,
)
from .missing import detect_missing_hours

__version__ = "0.1.0"
__all__ = [
    "LineKind",
    "DSTDirection",
    "RecordFields",
    "MetaFields",
    "ParsedLine",
    "CountRecord",
    "HeaderRecord",
    "CorrectionSummary",
    "ShuttleFileError",
    "InvalidPath",
    "NoInputFound",
    "MalformedField",
    "UnsupportedDirection",
    "ColumnNotFound",
    "ShuttleData",
    "classify_line",
    "extract_record_fields",
    "extract_meta_fields",
    "forward_fill",
    "parse_lines",
    "parse_shuttlefile",
    "find_shuttlefiles",
    "read_shuttlefiles",
    "dst_transition_date",
    "dst_transition",
    "correct_shuttlefile",
    "correct_dst",
    "detect_missing_hours",
]
