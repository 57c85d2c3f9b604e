"""
Pydantic models for TRAFx ShuttleFile lines and extracted records.

Defines both per-line models (classification, raw fields, metadata) and
output models (count observations, counter header rows, DST batch summary).
"""

import datetime as dt
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class LineKind(str, Enum):
    """Closed set of ShuttleFile line kinds."""
    RECORD = "record"
    SERIAL = "serial"
    COUNTER = "counter"
    MODE = "mode"
    VOLT = "volt"
    DOWNLOAD_TIME = "download_time"
    START_TIME = "start_time"
    DOCK_TIME = "dock_time"
    OTHER = "other"

    @property
    def is_record(self) -> bool:
        return self is LineKind.RECORD


class DSTDirection(str, Enum):
    """Direction of a daylight-saving-time transition."""
    BEGIN = "begin"
    END = "end"


# ==================== Line Models ====================


class RecordFields(BaseModel):
    """Raw fixed-offset slices of a record line."""
    date_raw: Optional[str] = Field(default=None, description="Chars 1-8, YY-MM-DD")
    time_raw: Optional[str] = Field(default=None, description="Chars 10-14, HH:MM")
    datetime_raw: Optional[str] = Field(default=None, description="Chars 1-14, YY-MM-DD,HH:MM")
    count1_raw: Optional[str] = Field(default=None, description="Chars 16-20")
    count2_raw: Optional[str] = Field(default=None, description="Chars 22-26")


class MetaFields(BaseModel):
    """Device/session metadata carried by a line, after or before forward-fill."""
    serial: Optional[str] = None
    counter: Optional[str] = None
    mode: Optional[str] = None
    volt: Optional[str] = None
    download_time: Optional[str] = None
    start_time: Optional[str] = None
    dock_time: Optional[str] = None


class ParsedLine(BaseModel):
    """
    One classified, field-extracted line of a ShuttleFile.

    Blank lines are kept as OTHER lines so that positions stay aligned
    with the source file.
    """
    content: str = Field(description="Line text without its terminator")
    position: int = Field(description="1-based line number within the file")
    origin_file: str = Field(description="Source file path")
    kind: LineKind
    record: Optional[RecordFields] = None
    meta: MetaFields = Field(default_factory=MetaFields)


# ==================== Output Models ====================


class CountRecord(BaseModel):
    """
    One timestamped count observation.

    Counts are nullable so that a missing reading stays distinct from zero.
    """
    counter: Optional[str] = Field(default=None, description="Counter unit name")
    serial: Optional[str] = Field(default=None, description="Counter serial number")
    timestamp: Optional[dt.datetime] = Field(default=None, description="Local wall-clock date and hour")
    date: Optional[dt.date] = Field(default=None, description="Calendar date of the count")
    time_of_day: Optional[str] = Field(default=None, description="HH:MM portion of the count")
    count1: Optional[int] = Field(default=None, description="First count channel")
    count2: Optional[int] = Field(default=None, description="Second count channel")

    def to_row(self) -> Dict:
        """Convert to dictionary for DataFrame construction."""
        return {
            "counter": self.counter,
            "serial": self.serial,
            "timestamp": self.timestamp,
            "date": self.date,
            "time_of_day": self.time_of_day,
            "count1": self.count1,
            "count2": self.count2,
        }


class HeaderRecord(BaseModel):
    """Download metadata for one counter unit."""
    counter: Optional[str] = Field(default=None, description="Counter unit name")
    mode: Optional[str] = Field(default=None, description="Counter mode, e.g. IR+")
    serial: Optional[str] = Field(default=None, description="Counter serial number")
    volt: Optional[str] = Field(default=None, description="Battery voltage at download")
    download_time: Optional[dt.datetime] = Field(default=None, description="When the counter was downloaded")
    start_time: Optional[dt.datetime] = Field(default=None, description="Start of the recording period")
    dock_time: Optional[dt.datetime] = Field(default=None, description="When the shuttle was docked")

    def to_row(self) -> Dict:
        """Convert to dictionary for DataFrame construction."""
        return {
            "counter": self.counter,
            "mode": self.mode,
            "serial": self.serial,
            "volt": self.volt,
            "download_time": self.download_time,
            "start_time": self.start_time,
            "dock_time": self.dock_time,
        }


class CorrectionSummary(BaseModel):
    """Outcome of a DST correction batch."""
    transition: dt.datetime = Field(description="Local transition instant used")
    direction: DSTDirection
    written: List[Path] = Field(default_factory=list, description="Corrected output files")
    skipped: List[Path] = Field(default_factory=list, description="Inputs with no record at the transition")
    failed: Dict[str, str] = Field(default_factory=dict, description="Input path -> error message")
