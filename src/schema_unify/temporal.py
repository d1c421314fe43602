"""Timestamp detection and epoch conversion helpers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta, timezone

from schema_unify.descriptors import TimeUnit

_ISO_RE = re.compile(
    r"^(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})"
    r"(?:[T ](?P<hour>\d{2}):(?P<minute>\d{2})"
    r"(?::(?P<second>\d{2})(?:[.,](?P<fraction>\d{1,9}))?)?"
    r"(?P<tz>Z|z|[+-]\d{2}(?::?\d{2})?)?)?$"
)

_SCALE: dict[TimeUnit, int] = {
    TimeUnit.SECOND: 1,
    TimeUnit.MILLI: 1_000,
    TimeUnit.MICRO: 1_000_000,
    TimeUnit.NANO: 1_000_000_000,
}

# Epoch seconds for 2000-01-01 and 2100-01-01 UTC.
EPOCH_WINDOW_START = 946_684_800
EPOCH_WINDOW_END = 4_102_444_800


@dataclass(frozen=True)
class ParsedTimestamp:
    """ISO-8601 value split into whole epoch seconds and nanoseconds."""

    seconds: int
    nanos: int
    unit: TimeUnit

    def to_epoch(self, unit: TimeUnit) -> int:
        """Return the timestamp as an integer count of ``unit`` since the epoch.

        Returns
        -------
        int
            Epoch value truncated to ``unit``.
        """
        scale = _SCALE[unit]
        return self.seconds * scale + self.nanos * scale // 1_000_000_000


def _fraction_unit(digits: int) -> TimeUnit:
    if digits == 0:
        return TimeUnit.SECOND
    if digits <= 3:
        return TimeUnit.MILLI
    if digits <= 6:
        return TimeUnit.MICRO
    return TimeUnit.NANO


def _parse_offset(text: str | None) -> timezone:
    if text is None or text in {"Z", "z"}:
        return UTC
    sign = -1 if text[0] == "-" else 1
    digits = text[1:].replace(":", "")
    hours = int(digits[:2])
    minutes = int(digits[2:4]) if len(digits) > 2 else 0
    return timezone(sign * timedelta(hours=hours, minutes=minutes))


def parse_iso_timestamp(text: str) -> ParsedTimestamp | None:
    """Parse an ISO-8601 date or datetime string.

    Naive values are read as UTC. Fractions up to nanosecond precision are
    preserved.

    Returns
    -------
    ParsedTimestamp | None
        Parsed value, or ``None`` when ``text`` is not a timestamp.
    """
    match = _ISO_RE.match(text.strip())
    if match is None:
        return None
    parts = match.groupdict()
    fraction = parts["fraction"] or ""
    try:
        moment = datetime(
            int(parts["year"]),
            int(parts["month"]),
            int(parts["day"]),
            int(parts["hour"] or 0),
            int(parts["minute"] or 0),
            int(parts["second"] or 0),
            tzinfo=_parse_offset(parts["tz"]),
        )
    except ValueError:
        return None
    delta = moment - datetime(1970, 1, 1, tzinfo=UTC)
    seconds = delta.days * 86_400 + delta.seconds
    nanos = int(fraction.ljust(9, "0")) if fraction else 0
    return ParsedTimestamp(seconds=seconds, nanos=nanos, unit=_fraction_unit(len(fraction)))


def epoch_unit_for(value: int) -> TimeUnit | None:
    """Classify an integer as an epoch timestamp by magnitude.

    The integer counts as a timestamp when it falls between 2000-01-01 and
    2100-01-01 for exactly one unit; the windows for the four units do not
    overlap.

    Returns
    -------
    TimeUnit | None
        Unit whose window contains ``value``, or ``None``.
    """
    for unit, scale in _SCALE.items():
        if EPOCH_WINDOW_START * scale <= value < EPOCH_WINDOW_END * scale:
            return unit
    return None


def datetime_to_epoch(value: datetime | date, unit: TimeUnit) -> int:
    """Convert a ``datetime`` or ``date`` to an integer epoch in ``unit``.

    Naive datetimes are read as UTC.

    Returns
    -------
    int
        Epoch value truncated to ``unit``.
    """
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    delta = value - datetime(1970, 1, 1, tzinfo=UTC)
    micros = (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds
    scale = _SCALE[unit]
    if scale >= _SCALE[TimeUnit.MICRO]:
        return micros * (scale // 1_000_000)
    return micros // (1_000_000 // scale)


def value_time_unit(value: object) -> TimeUnit | None:
    """Return the timestamp unit a scalar value implies, if any.

    Returns
    -------
    TimeUnit | None
        Unit for temporal values, ``None`` for everything else.
    """
    if isinstance(value, datetime):
        return TimeUnit.MICRO
    if isinstance(value, date):
        return TimeUnit.SECOND
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return epoch_unit_for(value)
    if isinstance(value, str):
        parsed = parse_iso_timestamp(value)
        return parsed.unit if parsed is not None else None
    return None


__all__ = [
    "EPOCH_WINDOW_END",
    "EPOCH_WINDOW_START",
    "ParsedTimestamp",
    "datetime_to_epoch",
    "epoch_unit_for",
    "parse_iso_timestamp",
    "value_time_unit",
]
