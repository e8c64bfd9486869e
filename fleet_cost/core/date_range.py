"""
Billing period resolution.

Turns a period selector such as "7d" or "2024-01-15" into a concrete
UTC time window.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from .errors import ValidationError

_DAYS_PATTERN = re.compile(r"\d+d")
_DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")

ACCEPTED_FORMS = "YYYY-MM-DD or Nd (e.g. 7d, 30d)"


@dataclass(frozen=True)
class DateRange:
    """Concrete query window with second-precision UTC bounds."""
    since: datetime
    until: datetime
    label: str

    def __post_init__(self):
        """Validate the window is not inverted."""
        if self.since > self.until:
            raise ValueError("since must not be after until")

    @property
    def since_iso(self) -> str:
        return _to_iso(self.since)

    @property
    def until_iso(self) -> str:
        return _to_iso(self.until)


def resolve_date_range(selector: Optional[str], now: Optional[datetime] = None) -> DateRange:
    """Resolve a period selector into a DateRange ending at ``now``.

    Accepted selectors:
    - None or empty: from the first day of the current month (00:00 UTC)
    - "Nd": the last N days
    - "YYYY-MM-DD": from that date at 00:00 UTC

    Args:
        selector: Period selector, or None for month-to-date
        now: Evaluation instant (defaults to the current UTC time)

    Returns:
        DateRange with a short "Jan 1 – Jan 15" style label

    Raises:
        ValidationError: If the selector matches neither accepted form,
            names an impossible date, or starts in the future
    """
    until = _normalize(now or datetime.now(timezone.utc))

    if not selector:
        since = until.replace(day=1, hour=0, minute=0, second=0)
    elif _DAYS_PATTERN.fullmatch(selector):
        try:
            since = until - timedelta(days=int(selector[:-1]))
        except (OverflowError, ValueError):
            raise ValidationError(f"Period {selector} is out of range. Use {ACCEPTED_FORMS}")
    elif _DATE_PATTERN.fullmatch(selector):
        try:
            since = datetime.strptime(selector, "%Y-%m-%d").replace(tzinfo=timezone.utc)
        except ValueError:
            raise ValidationError(f"Invalid date: {selector}. Use {ACCEPTED_FORMS}")
        if since > until:
            raise ValidationError(f"Start date {selector} is in the future")
    else:
        raise ValidationError(f"Invalid period selector: {selector}. Use {ACCEPTED_FORMS}")

    return DateRange(since=since, until=until, label=format_label(since, until))


def format_label(start: datetime, end: datetime) -> str:
    """Format a window as a short month/day range, e.g. "Jan 1 – Jan 15"."""
    return f"{start:%b} {start.day} – {end:%b} {end.day}"


def _normalize(moment: datetime) -> datetime:
    # Naive datetimes are taken to be UTC already
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).replace(microsecond=0)


def _to_iso(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")
