"""Date helpers for ISO strings stored in diary records.

Stored instants are ISO-8601 strings (``2025-09-15T00:00:00Z``). Anything that
fails to parse is treated as absent by callers instead of raising.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, date, datetime, time, timedelta, tzinfo

Clock = Callable[[], datetime]


def parse_instant(value: object) -> datetime | None:
	"""Parse an ISO date or datetime string into an aware datetime.

	Date-only strings and naive datetimes are read as UTC, matching how the
	seeded data is written.
	"""
	if isinstance(value, datetime):
		parsed = value
	elif isinstance(value, date):
		parsed = datetime.combine(value, time.min)
	elif isinstance(value, str) and value.strip():
		text = value.strip()
		if text.endswith(("Z", "z")):
			text = text[:-1] + "+00:00"
		try:
			parsed = datetime.fromisoformat(text)
		except ValueError:
			return None
	else:
		return None
	if parsed.tzinfo is None:
		parsed = parsed.replace(tzinfo=UTC)
	return parsed


def parse_day(value: object) -> date | None:
	"""Calendar date of a stored value, taken from its own date part."""
	if isinstance(value, str):
		text = value.strip()
		if len(text) >= 10 and text[4] == "-" and text[7] == "-":
			try:
				return date.fromisoformat(text[:10])
			except ValueError:
				return None
	parsed = parse_instant(value)
	return parsed.date() if parsed is not None else None


def to_iso(moment: datetime) -> str:
	"""Serialize as UTC with a ``Z`` suffix and millisecond precision."""
	utc = moment.astimezone(UTC)
	return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def date_only_iso(day: date) -> str:
	return f"{day.isoformat()}T00:00:00Z"


def start_of_day(day: date, tz: tzinfo) -> datetime:
	return datetime.combine(day, time.min, tzinfo=tz)


def end_of_day(day: date, tz: tzinfo) -> datetime:
	return datetime.combine(day, time.max, tzinfo=tz)


def add_days(day: date, days: int) -> date:
	return day + timedelta(days=days)


def system_clock(tz: tzinfo) -> Clock:
	return lambda: datetime.now(tz)
