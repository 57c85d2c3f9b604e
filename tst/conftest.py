"""
Pytest fixtures for trail_counter tests.

Provides synthetic ShuttleFile text and temporary folders for testing.
"""

from datetime import datetime
from pathlib import Path
from typing import Callable, List, Sequence, Tuple

import pytest


def record_line(timestamp: datetime, count1: int = 0, count2: int = 0) -> str:
    """Format one fixed-width record line."""
    return f"{timestamp:%y-%m-%d,%H:%M},{count1:05d},{count2:05d}"


def meta_line(prefix: str, value: str, value_start: int) -> str:
    """Pad *prefix* so that *value* starts at 0-based column *value_start*."""
    return f"{prefix:<{value_start}}{value}"


def shuttlefile_lines(
    records: Sequence[Tuple[datetime, int, int]],
    counter: str = "TRAIL01",
    serial: str = "123456",
    mode: str = "IR+",
    volt: str = "3.55",
    download: str = "24-06-15,14:30",
    start: str = "24-06-01,00:00",
    dock: str = "24-06-15 14:31:05",
) -> List[str]:
    """Build the lines of one counter section of a ShuttleFile."""
    lines = [
        "TRAFx SHUTTLE Download",
        "",
        f"  *Serial Number : {serial}",
        meta_line("  *Counter", counter, 19),
        meta_line("  *Mode", mode, 19),
        meta_line("  *Batt", volt, 19),
        meta_line("=TIME", download, 23),
        meta_line("=START", start, 23),
        meta_line("=DOCK", dock, 28),
        "",
    ]
    lines.extend(record_line(ts, c1, c2) for ts, c1, c2 in records)
    lines.append("=END")
    return lines


@pytest.fixture
def hourly_records() -> List[Tuple[datetime, int, int]]:
    """Four hourly observations on 2024-06-15."""
    return [
        (datetime(2024, 6, 15, 9), 12, 0),
        (datetime(2024, 6, 15, 10), 42, 3),
        (datetime(2024, 6, 15, 11), 0, 0),
        (datetime(2024, 6, 15, 12), 7, 1),
    ]


@pytest.fixture
def write_shuttlefile() -> Callable[..., Path]:
    """Factory writing a ShuttleFile from lines; returns its path."""
    def _write(path: Path, lines: Sequence[str], newline: str = "\n") -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes((newline.join(lines) + newline).encode("utf-8"))
        return path
    return _write


@pytest.fixture
def shuttlefile(tmp_path, hourly_records, write_shuttlefile) -> Path:
    """A single ShuttleFile with one counter section."""
    return write_shuttlefile(tmp_path / "ShuttleFile_001.TXT", shuttlefile_lines(hourly_records))


@pytest.fixture
def spring_records() -> List[Tuple[datetime, int, int]]:
    """Observations spanning the 2024 spring-forward change."""
    return [
        (datetime(2024, 3, 9, 23), 1, 0),
        (datetime(2024, 3, 10, 0), 2, 0),
        (datetime(2024, 3, 10, 1), 3, 0),
        (datetime(2024, 3, 10, 2), 4, 0),
        (datetime(2024, 3, 10, 3), 5, 0),
    ]


@pytest.fixture
def fall_records() -> List[Tuple[datetime, int, int]]:
    """Observations spanning the 2024 fall-back change."""
    return [
        (datetime(2024, 11, 3, 0), 1, 0),
        (datetime(2024, 11, 3, 1), 2, 0),
        (datetime(2024, 11, 3, 2), 3, 0),
        (datetime(2024, 11, 3, 3), 4, 0),
    ]


@pytest.fixture
def shuttle_folder(tmp_path, write_shuttlefile) -> Path:
    """Folder with two files for different counters, plus noise."""
    folder = tmp_path / "downloads"
    write_shuttlefile(
        folder / "a_trail.txt",
        shuttlefile_lines([(datetime(2024, 6, 15, 9), 5, 0)], counter="TRAIL01", serial="111111"),
    )
    write_shuttlefile(
        folder / "b_trail.TXT",
        shuttlefile_lines([(datetime(2024, 6, 16, 9), 8, 0)], counter="TRAIL02", serial="222222"),
    )
    (folder / "notes.csv").write_text("not a shuttlefile\n")
    return folder
