"""lotsweep.core.time

The only time helper surface in the codebase.

Run dates are written the way the sweep configs have always written them:
``DDMonYYYY`` (``01Jan2021``), interpreted as midnight UTC.
"""

from __future__ import annotations

from datetime import UTC, datetime

RUN_DATE_FORMAT = "%d%b%Y"


def utc_now() -> datetime:
    """Return an aware UTC datetime."""

    return datetime.now(tz=UTC)


def parse_run_date(value: str) -> datetime:
    """Parse a ``DDMonYYYY`` date into an aware UTC datetime.

    Raises:
        ValueError: if parsing fails.
    """

    dt = datetime.strptime(value.strip(), RUN_DATE_FORMAT)
    return dt.replace(tzinfo=UTC)


def hours_between(start: datetime, end: datetime) -> int:
    """Whole hours from ``start`` to ``end`` (truncated toward zero)."""

    return int((end - start).total_seconds() / 3600)


def run_stamp(moment: datetime | None = None) -> str:
    """Name stamp for one sweep run, e.g. ``7March2024_935``.

    Fields are not zero padded; two runs started in the same minute share a
    stamp and therefore append to the same result files.
    """

    m = moment or utc_now()
    return f"{m.day}{m.strftime('%B')}{m.year}_{m.hour}{m.minute}"
