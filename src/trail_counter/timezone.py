"""Time zone resolution and localization for parsed wall-clock timestamps."""

import logging
from typing import Optional

import pandas as pd
import pytz
from pytz import BaseTzInfo

logger = logging.getLogger(__name__)


def resolve_timezone(tz_string: Optional[str]) -> Optional[BaseTzInfo]:
    """Resolve an IANA time zone name to a pytz time zone object.

    ShuttleFile timestamps are local wall-clock values with no offset, so
    ``None`` keeps them naive (the machine's local clock). An unknown name
    is an error rather than a silent fallback to UTC.

    Args:
        tz_string: IANA time zone (e.g. 'America/Denver') or None.

    Returns:
        pytz time zone object, or None for naive timestamps.
    """
    if not tz_string:
        return None

    try:
        return pytz.timezone(tz_string)
    except pytz.UnknownTimeZoneError:
        raise ValueError(f"Unknown time zone '{tz_string}'") from None


def localize_series(values: pd.Series, tz: Optional[BaseTzInfo]) -> pd.Series:
    """Attach *tz* to a naive datetime Series.

    Wall times that do not exist or are ambiguous in *tz* become NaT and
    are reported with a warning.
    """
    values = pd.to_datetime(values)
    if tz is None:
        return values

    before = values.notna().sum()
    localized = values.dt.tz_localize(tz, ambiguous="NaT", nonexistent="NaT")
    lost = int(before - localized.notna().sum())
    if lost:
        logger.warning(
            f"{lost} timestamp(s) are nonexistent or ambiguous in {tz.zone}; set to NaT.",
            extra={"timezone": tz.zone, "lost": lost},
        )
    return localized
