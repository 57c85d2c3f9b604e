"""
Daylight-saving-time correction for ShuttleFiles.

TRAFx counters keep standard time all year. This module computes the local
DST transition instant for a year and rewrites ShuttleFiles so that every
record at or after that instant is shifted by one hour.
"""

import logging
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Optional, Union

from .exceptions import UnsupportedDirection
from .models import CorrectionSummary, DSTDirection
from .parser import (
    RECORD_DATETIME_FORMAT,
    PathLike,
    classify_line,
    extract_record_fields,
    find_shuttlefiles,
    parse_record_timestamp,
    read_raw_lines,
)

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_FOLDER = "dst_corrected"
OUTPUT_SUFFIX = "_DST_Corrected"

# Local clock time at which the change happens
TRANSITION_HOUR = 2

SUNDAY = 6  # date.weekday()

SHIFT = {
    DSTDirection.BEGIN: timedelta(hours=1),
    DSTDirection.END: timedelta(hours=-1),
}


def _direction(direction: Union[DSTDirection, str]) -> DSTDirection:
    try:
        return DSTDirection(direction)
    except ValueError:
        raise UnsupportedDirection(
            f"direction must be 'begin' or 'end', got {direction!r}"
        ) from None


def _first_sunday_on_or_after(day: date) -> date:
    return day + timedelta(days=(SUNDAY - day.weekday()) % 7)


def dst_transition_date(year: int, direction: Union[DSTDirection, str]) -> date:
    """
    Date of the DST change for *year*.

    'begin' is the second Sunday of March; 'end' is the first Sunday of
    November.

    Raises:
        ValueError: year is not a 4-digit integer
        UnsupportedDirection: direction is not 'begin' or 'end'
    """
    direction = _direction(direction)
    if isinstance(year, bool) or not isinstance(year, int) or not 1000 <= year <= 9999:
        raise ValueError(f"year must be a 4-digit integer, got {year!r}")

    if direction is DSTDirection.BEGIN:
        return _first_sunday_on_or_after(date(year, 3, 1)) + timedelta(days=7)
    return _first_sunday_on_or_after(date(year, 11, 1))


def dst_transition(year: int, direction: Union[DSTDirection, str]) -> datetime:
    """Local wall-clock instant (02:00) of the DST change for *year*."""
    day = dst_transition_date(year, direction)
    return datetime(day.year, day.month, day.day, TRANSITION_HOUR)


def corrected_filename(filepath: Path) -> str:
    """Output name for a corrected copy of *filepath*."""
    return f"{filepath.stem}{OUTPUT_SUFFIX}.txt"


def correct_shuttlefile(
    filepath: PathLike,
    direction: Union[DSTDirection, str],
    year: int,
    skip_no_change: bool = True,
    output_dir: Optional[PathLike] = None,
    encoding: str = "utf-8",
) -> Optional[Path]:
    """
    Write a DST-corrected copy of one ShuttleFile.

    Records at or after the transition are shifted one hour forward
    ('begin') or back ('end') and re-serialized as 'YY-MM-DD,HH:MM,c1,c2'.
    Metadata lines and record lines without a readable timestamp are copied
    unchanged, each with its original line terminator.

    Args:
        filepath: Path to the ShuttleFile
        direction: 'begin' (spring forward) or 'end' (fall back)
        year: 4-digit year of the transition
        skip_no_change: Skip the file when no record falls exactly on the
            transition instant
        output_dir: Destination folder (default: 'dst_corrected' beside the file)
        encoding: Text encoding of the file

    Returns:
        Path of the corrected file, or None if the file was skipped
    """
    filepath = Path(filepath)
    direction = _direction(direction)
    transition = dst_transition(year, direction)
    shift = SHIFT[direction]
    out_dir = Path(output_dir) if output_dir is not None else filepath.parent / DEFAULT_OUTPUT_FOLDER

    raw_lines = read_raw_lines(filepath, encoding)

    timestamps = []
    for content, _ in raw_lines:
        if classify_line(content).is_record:
            timestamps.append(parse_record_timestamp(extract_record_fields(content).datetime_raw))
        else:
            timestamps.append(None)

    if skip_no_change and transition not in timestamps:
        logger.info(
            f"Skipping file (no record at DST change {transition:%Y-%m-%d %H:%M}): {filepath.name}",
            extra={"file": str(filepath)},
        )
        return None

    out_lines = []
    shifted = 0
    for (content, ending), timestamp in zip(raw_lines, timestamps):
        if timestamp is None:
            out_lines.append(content + ending)
            continue
        if timestamp >= transition:
            timestamp += shift
            shifted += 1
        fields = extract_record_fields(content)
        out_lines.append(
            f"{timestamp.strftime(RECORD_DATETIME_FORMAT)},"
            f"{fields.count1_raw or ''},{fields.count2_raw or ''}{ending}"
        )

    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / corrected_filename(filepath)
    with open(out_path, "w", encoding=encoding, newline="") as f:
        f.write("".join(out_lines))

    logger.debug(
        f"{filepath.name}: shifted {shifted} record(s) by {shift}",
        extra={"file": str(filepath), "shifted": shifted},
    )
    return out_path


def correct_dst(
    path: PathLike,
    direction: Union[DSTDirection, str],
    year: int,
    skip_no_change: bool = True,
    output_dir: Optional[PathLike] = None,
    encoding: str = "utf-8",
) -> CorrectionSummary:
    """
    DST-correct one ShuttleFile or every ShuttleFile in a folder.

    Each file is handled independently: a file that cannot be read is
    logged and recorded as failed while the rest of the batch continues.

    Args:
        path: A ShuttleFile or a folder of ShuttleFiles
        direction: 'begin' (spring forward) or 'end' (fall back)
        year: 4-digit year of the transition
        skip_no_change: Skip files with no record exactly at the transition
        output_dir: Destination folder (default: 'dst_corrected' inside the
            input folder, or beside the input file)
        encoding: Text encoding of the files

    Returns:
        CorrectionSummary listing written, skipped and failed files

    Raises:
        InvalidPath: path is neither a file nor a directory
        NoInputFound: folder holds no ShuttleFiles
        UnsupportedDirection: direction is not 'begin' or 'end'
    """
    direction = _direction(direction)
    transition = dst_transition(year, direction)
    path = Path(path)
    files = find_shuttlefiles(path)

    if output_dir is None:
        base = path if path.is_dir() else path.parent
        output_dir = base / DEFAULT_OUTPUT_FOLDER

    summary = CorrectionSummary(transition=transition, direction=direction)
    for filepath in files:
        try:
            written = correct_shuttlefile(
                filepath,
                direction=direction,
                year=year,
                skip_no_change=skip_no_change,
                output_dir=output_dir,
                encoding=encoding,
            )
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(
                f"Could not correct {filepath.name}: {e}",
                extra={"file": str(filepath)},
            )
            summary.failed[str(filepath)] = str(e)
            continue

        if written is None:
            summary.skipped.append(filepath)
        else:
            summary.written.append(written)

    if summary.written:
        logger.info(
            f"DST-corrected files written to: {output_dir}",
            extra={"written": len(summary.written), "skipped": len(summary.skipped)},
        )
    return summary
