"""
Command-line interface for trail-counter.

Usage:
    python -m trail_counter read ./shuttlefiles --counts-out counts.csv --header-out header.csv
    python -m trail_counter correct-dst ./shuttlefiles --direction begin --year 2024
    python -m trail_counter missing-hours counts.csv --group counter --fill --tz America/Denver
"""

from pathlib import Path
from typing import List, Optional

import pandas as pd
import typer

from .dst import DEFAULT_OUTPUT_FOLDER, OUTPUT_SUFFIX, correct_dst, dst_transition
from .exceptions import ShuttleFileError
from .log import configure_logging
from .missing import IS_MISSING, detect_missing_hours
from .models import DSTDirection
from .parser import (
    DOCK_TIME_FORMAT,
    META_PREFIXES,
    META_VALUE_START,
    RECORD_DATETIME_FORMAT,
    RECORD_SLICES,
    SERIAL_WIDTH,
    read_shuttlefiles,
)

app = typer.Typer(
    name="trail-counter",
    help="Parse, DST-correct and gap-check TRAFx trail counter ShuttleFiles",
    add_completion=False,
)


def _fail(error: Exception):
    typer.echo(typer.style(f"ERROR: {error}", fg=typer.colors.RED), err=True)
    raise typer.Exit(1)


@app.callback()
def main_options(
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Log debug output",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Emit log records as single-line JSON",
    ),
):
    """Configure logging for every command."""
    configure_logging(verbose=verbose, json_logs=json_logs)


@app.command()
def read(
    path: Path = typer.Argument(
        ...,
        help="ShuttleFile or folder of ShuttleFiles",
    ),
    counts_out: Optional[Path] = typer.Option(
        None,
        "--counts-out", "-c",
        help="CSV file for the counts table (default: print a preview)",
    ),
    header_out: Optional[Path] = typer.Option(
        None,
        "--header-out", "-H",
        help="CSV file for the header table",
    ),
    tz: Optional[str] = typer.Option(
        None,
        "--tz",
        help="IANA time zone for timestamps (default: naive local time)",
    ),
    recursive: bool = typer.Option(
        False,
        "--recursive", "-r",
        help="Also search subfolders",
    ),
    encoding: str = typer.Option(
        "utf-8",
        "--encoding",
        help="Text encoding of the ShuttleFiles",
    ),
):
    """
    Parse ShuttleFiles into counts and header tables.
    """
    try:
        data = read_shuttlefiles(path, tz=tz, recursive=recursive, encoding=encoding)
    except (ShuttleFileError, ValueError) as e:
        _fail(e)

    if counts_out is not None:
        data.counts.to_csv(counts_out, index=False)
        typer.echo(f"Wrote {len(data.counts)} count rows: {counts_out}")
    else:
        typer.echo(data.counts.head(10).to_string(index=False))

    if header_out is not None:
        data.header.to_csv(header_out, index=False)
        typer.echo(f"Wrote {len(data.header)} header rows: {header_out}")
    else:
        typer.echo(data.header.to_string(index=False))


@app.command("correct-dst")
def correct_dst_command(
    path: Path = typer.Argument(
        ...,
        help="ShuttleFile or folder of ShuttleFiles",
    ),
    direction: DSTDirection = typer.Option(
        ...,
        "--direction", "-d",
        help="'begin' adds one hour (spring), 'end' subtracts one hour (fall)",
    ),
    year: int = typer.Option(
        ...,
        "--year", "-y",
        help="4-digit year of the DST change",
    ),
    skip_no_change: bool = typer.Option(
        True,
        "--skip-no-change/--no-skip-no-change",
        help="Skip files with no record exactly at the DST change",
    ),
    output_dir: Optional[Path] = typer.Option(
        None,
        "--output-dir", "-o",
        help=f"Output folder (default: '{DEFAULT_OUTPUT_FOLDER}' beside the input)",
    ),
    encoding: str = typer.Option(
        "utf-8",
        "--encoding",
        help="Text encoding of the ShuttleFiles",
    ),
):
    """
    Shift record timestamps across a DST change and write corrected copies.
    """
    try:
        summary = correct_dst(
            path,
            direction=direction,
            year=year,
            skip_no_change=skip_no_change,
            output_dir=output_dir,
            encoding=encoding,
        )
    except (ShuttleFileError, ValueError) as e:
        _fail(e)

    typer.echo(f"DST {summary.direction.value}: {summary.transition:%Y-%m-%d %H:%M}")
    for written in summary.written:
        status = typer.style("OK", fg=typer.colors.GREEN)
        typer.echo(f"  {status} {written}")
    for skipped in summary.skipped:
        status = typer.style("SKIPPED", fg=typer.colors.YELLOW)
        typer.echo(f"  {status} {skipped}")
    for failed, message in summary.failed.items():
        status = typer.style("FAILED", fg=typer.colors.RED)
        typer.echo(f"  {status} {failed}: {message}")

    if summary.failed:
        raise typer.Exit(1)


@app.command("missing-hours")
def missing_hours(
    counts_csv: Path = typer.Argument(
        ...,
        help="CSV counts table (e.g. from 'read --counts-out')",
        exists=True,
        dir_okay=False,
        file_okay=True,
    ),
    datetime_field: str = typer.Option(
        "timestamp",
        "--datetime-field",
        help="Timestamp column",
    ),
    count_field: Optional[str] = typer.Option(
        None,
        "--count-field",
        help="Count column left missing on added rows",
    ),
    group: Optional[List[str]] = typer.Option(
        None,
        "--group", "-g",
        help="Grouping column; repeat for several",
    ),
    fill: bool = typer.Option(
        False,
        "--fill",
        help="Copy group identity attributes onto added rows",
    ),
    tz: Optional[str] = typer.Option(
        None,
        "--tz",
        help="IANA time zone of the timestamps (offsets in the CSV are converted to it)",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="CSV file for the augmented table (default: print missing rows)",
    ),
):
    """
    Add flagged rows for hours with no observation.
    """
    data = pd.read_csv(counts_csv)
    try:
        result = detect_missing_hours(
            data,
            datetime_field=datetime_field,
            count_field=count_field,
            group_fields=group,
            fill=fill,
            tz=tz,
        )
    except (ShuttleFileError, ValueError) as e:
        _fail(e)

    if output is not None:
        result.to_csv(output, index=False)
        typer.echo(f"Wrote {len(result)} rows: {output}")
    else:
        typer.echo(result[result[IS_MISSING]].to_string(index=False))

    typer.echo(f"Missing hours: {int(result[IS_MISSING].sum())}")


@app.command()
def info():
    """
    Display the ShuttleFile layout.
    """
    typer.echo("Record lines (first character is a digit):")
    for name, (start, end) in RECORD_SLICES.items():
        typer.echo(f"  {name:<13} chars {start + 1}-{end}")
    typer.echo(f"  timestamp format: {RECORD_DATETIME_FORMAT}")
    typer.echo("")
    typer.echo("Metadata lines (matched by prefix, forward-filled down the file):")
    for prefix, kind in META_PREFIXES:
        if kind in META_VALUE_START:
            where = f"char {META_VALUE_START[kind] + 1} to end"
        else:
            where = f"last {SERIAL_WIDTH} chars"
        typer.echo(f"  {prefix!r:<20} -> {kind.value:<14} {where}")
    typer.echo(f"  dock time format: {DOCK_TIME_FORMAT}")
    typer.echo("")
    typer.echo("DST correction:")
    typer.echo(f"  begin: second Sunday of March 02:00 (e.g. {dst_transition(2024, 'begin')})")
    typer.echo(f"  end:   first Sunday of November 02:00 (e.g. {dst_transition(2024, 'end')})")
    typer.echo(f"  output: <stem>{OUTPUT_SUFFIX}.txt in '{DEFAULT_OUTPUT_FOLDER}'")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
