"""
Missing-hour detection for hourly count tables.

Rebuilds each group's complete hourly grid between its first and last
observation and adds a flagged row for every hour with no observation.
"""

import logging
from typing import List, Optional, Sequence

import pandas as pd
from pandas.api.types import is_bool_dtype, is_datetime64_any_dtype, is_numeric_dtype

from .exceptions import ColumnNotFound
from .timezone import localize_series, resolve_timezone

logger = logging.getLogger(__name__)

IS_MISSING = "is_missing"
MISSING_HOURS = "missing_hours"
HOUR = pd.Timedelta(hours=1)

# Columns derived from the timestamp; rebuilt on added rows, never copied
DERIVED_FIELDS = {
    "date": lambda hours: hours.date,
    "time_of_day": lambda hours: hours.strftime("%H:%M"),
}


def _check_columns(data: pd.DataFrame, datetime_field: str, count_field: Optional[str], group_fields: List[str]):
    if datetime_field not in data.columns:
        raise ColumnNotFound(f'datetime_field "{datetime_field}" not found in data')
    if count_field is not None and count_field not in data.columns:
        raise ColumnNotFound(f'count_field "{count_field}" not found in data')
    absent = [g for g in group_fields if g not in data.columns]
    if absent:
        raise ColumnNotFound(f"Grouping fields not found in data: {', '.join(absent)}")


def _to_timestamps(values: pd.Series, tz: Optional[str]) -> pd.Series:
    """
    Parse *values* to datetimes, optionally in time zone *tz*.

    Text carrying UTC offsets (as written by ``read --tz``) is parsed via
    UTC, so a column spanning a DST change with mixed offsets still parses.
    Naive values are localized to *tz*; aware values are converted to it.
    """
    if not is_datetime64_any_dtype(values):
        present = values.dropna()
        has_offset = not present.empty and pd.Timestamp(present.iloc[0]).tzinfo is not None
        values = pd.to_datetime(values, utc=has_offset)

    tzinfo = resolve_timezone(tz)
    if tzinfo is None:
        return values
    if values.dt.tz is None:
        return localize_series(values, tzinfo)
    return values.dt.tz_convert(tzinfo)


def _is_identity(column: pd.Series) -> bool:
    # Numeric columns are readings; copying one would invent a value
    return not (is_numeric_dtype(column) or is_bool_dtype(column)) and column.nunique(dropna=False) == 1


def _fill_group(
    group: pd.DataFrame,
    datetime_field: str,
    count_field: Optional[str],
    group_fields: List[str],
    fill: bool,
) -> pd.DataFrame:
    observed = group[datetime_field].dropna()
    if observed.empty:
        return group

    full_hours = pd.date_range(observed.min(), observed.max(), freq=HOUR)
    missing = full_hours[~full_hours.isin(observed)]
    if len(missing) == 0:
        return group.sort_values(datetime_field, kind="stable")

    blank = pd.DataFrame({datetime_field: missing})
    for field in group_fields:
        blank[field] = group[field].iloc[0]

    if fill:
        skip = {datetime_field, count_field, IS_MISSING, *group_fields}
        for column in group.columns:
            if column in skip:
                continue
            if column in DERIVED_FIELDS:
                blank[column] = DERIVED_FIELDS[column](missing)
            elif _is_identity(group[column]):
                blank[column] = group[column].iloc[0]

    blank[IS_MISSING] = True

    # Columns absent from `blank` (including the count) come back as missing, never 0
    augmented = pd.concat([group, blank], ignore_index=True)
    return augmented.sort_values(datetime_field, kind="stable")


def _summary_frame(counts: List[tuple], group_fields: List[str]) -> pd.DataFrame:
    rows = [{**dict(zip(group_fields, key)), MISSING_HOURS: n} for key, n in counts]
    return pd.DataFrame(rows, columns=[*group_fields, MISSING_HOURS])


def detect_missing_hours(
    data: pd.DataFrame,
    datetime_field: str,
    count_field: Optional[str] = None,
    group_fields: Optional[Sequence[str]] = None,
    fill: bool = False,
    tz: Optional[str] = None,
) -> pd.DataFrame:
    """
    Flag hours absent from each group's hourly grid.

    For each group, every hour between the group's earliest and latest
    timestamp that has no row is added as a row with ``is_missing=True``.
    Observed rows get ``is_missing=False``. Added rows carry the timestamp
    and the group fields. With ``fill=True`` they also get ``date`` and
    ``time_of_day`` rebuilt from their own timestamp, and every non-numeric
    column that is constant within the group (e.g. a text serial). Numeric
    columns, the count included, are always missing on added rows.

    The per-group number of missing hours is logged and stored in
    ``result.attrs["missing_summary"]`` as a DataFrame of the group fields
    plus ``missing_hours``.

    Args:
        data: Count table, e.g. ``read_shuttlefiles(...).counts``
        datetime_field: Timestamp column
        count_field: Count column to leave missing on added rows
        group_fields: Columns identifying one device/location
        fill: Copy group identity attributes onto added rows
        tz: IANA time zone; naive timestamps are localized to it and
            offset-carrying ones converted to it

    Returns:
        New DataFrame sorted by timestamp within each group

    Raises:
        ColumnNotFound: a named column does not exist
        ValueError: unknown time zone or unparseable timestamps
    """
    group_fields = list(group_fields or [])
    _check_columns(data, datetime_field, count_field, group_fields)

    if not group_fields:
        logger.warning(
            "No grouping fields were specified, so missing hours are detected across the "
            "entire time range of the dataset. If it holds several counters or locations, "
            "min/max timestamps may be wrong and hours may be flagged incorrectly. Pass "
            "group_fields (e.g. counter, serial) to detect missing hours per group."
        )

    data = data.copy()
    # A summary left from an earlier run would be carried into every group
    data.attrs.pop("missing_summary", None)
    data[datetime_field] = _to_timestamps(data[datetime_field], tz)
    data[IS_MISSING] = False

    if data.empty:
        data.attrs["missing_summary"] = _summary_frame([], group_fields)
        return data

    if group_fields:
        groups = list(data.groupby(group_fields, sort=True, dropna=False))
    else:
        groups = [((), data)]

    results = []
    counts = []
    for key, group in groups:
        key = key if isinstance(key, tuple) else (key,)
        filled = _fill_group(group, datetime_field, count_field, group_fields, fill)
        results.append(filled)
        counts.append((key, int(filled[IS_MISSING].sum())))

    result = pd.concat(results, ignore_index=True)

    lines = [f"  {', '.join(map(str, key)) or 'all'}: {n}" for key, n in counts]
    logger.info(
        "Missing hours per group:\n" + "\n".join(lines),
        extra={"missing_total": sum(n for _, n in counts)},
    )
    result.attrs["missing_summary"] = _summary_frame(counts, group_fields)
    return result
