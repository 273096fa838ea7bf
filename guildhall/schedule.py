"""
Session schedule values.

A schedule is one of three shapes:
- NoSchedule: no temporal anchor
- AllDaySchedule: a calendar day, stored as midnight UTC of that day
- TimedSchedule: a start instant and an optional, strictly later end instant

parse_schedule() is the single entry point for untrusted input and is shared
by session creation and session updates, so both report the same errors and
normalise the same way.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, ClassVar, Union

from .enums import ScheduleKind
from .errors import ValidationError


def parse_iso_datetime(value: str) -> datetime | None:
    """
    Parse an ISO 8601 date or datetime string into an aware UTC datetime.

    Date-only strings resolve to midnight. Strings without an offset are
    treated as UTC.

    Returns:
        The parsed datetime, or None if the string is not valid ISO 8601
    """
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_iso(value: datetime) -> str:
    """Render an instant as an ISO 8601 UTC string with millisecond precision."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    iso = value.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return iso.replace("+00:00", "Z")


@dataclass(frozen=True)
class NoSchedule:
    """Session without a date or time."""

    kind: ClassVar[ScheduleKind] = ScheduleKind.none

    def to_dict(self) -> dict:
        return {"kind": self.kind.value}


@dataclass(frozen=True)
class AllDaySchedule:
    """Session that takes a whole calendar day."""

    date: datetime  # midnight UTC of the calendar day

    kind: ClassVar[ScheduleKind] = ScheduleKind.all_day

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "date": to_iso(self.date)}


@dataclass(frozen=True)
class TimedSchedule:
    """Session with a start time and an optional end time."""

    start_at: datetime
    end_at: datetime | None = None

    kind: ClassVar[ScheduleKind] = ScheduleKind.timed

    def __post_init__(self) -> None:
        if self.end_at is not None and self.end_at <= self.start_at:
            raise ValidationError(
                "schedule.endAt must be after schedule.startAt",
                field="schedule.endAt",
            )

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "startAt": to_iso(self.start_at),
            "endAt": to_iso(self.end_at) if self.end_at else None,
        }


ScheduleValue = Union[NoSchedule, AllDaySchedule, TimedSchedule]


def _parse_all_day(schedule: Mapping) -> AllDaySchedule:
    date = schedule.get("date")
    if not isinstance(date, str):
        raise ValidationError(
            "schedule.date must be provided for all-day sessions",
            field="schedule.date",
        )
    # Keep the calendar day as written, before any offset conversion
    try:
        day = datetime.fromisoformat(date).date()
    except ValueError:
        raise ValidationError(
            "schedule.date must be a valid ISO date", field="schedule.date"
        ) from None
    return AllDaySchedule(
        date=datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    )


def _parse_timed(schedule: Mapping) -> TimedSchedule:
    start_at = schedule.get("startAt")
    end_at = schedule.get("endAt")

    if not isinstance(start_at, str):
        raise ValidationError(
            "schedule.startAt must be provided for timed sessions",
            field="schedule.startAt",
        )
    parsed_start = parse_iso_datetime(start_at)
    if parsed_start is None:
        raise ValidationError(
            "schedule.startAt must be a valid ISO datetime",
            field="schedule.startAt",
        )

    parsed_end = None
    if end_at is not None:
        if not isinstance(end_at, str):
            raise ValidationError(
                "schedule.endAt must be a string when provided",
                field="schedule.endAt",
            )
        parsed_end = parse_iso_datetime(end_at)
        if parsed_end is None:
            raise ValidationError(
                "schedule.endAt must be a valid ISO datetime",
                field="schedule.endAt",
            )

    return TimedSchedule(start_at=parsed_start, end_at=parsed_end)


def parse_schedule(value: Any) -> ScheduleValue:
    """
    Validate and normalise a schedule payload.

    Args:
        value: Untyped payload, e.g. {"kind": "timed", "startAt": "...", "endAt": null}.
            Anything that is not a mapping, or has an unknown kind, is NoSchedule.

    Raises:
        ValidationError: If an all-day or timed payload is missing or has
            invalid fields. The error's ``field`` names the offending key.
    """
    if isinstance(value, (NoSchedule, AllDaySchedule, TimedSchedule)):
        return value
    if not isinstance(value, Mapping):
        return NoSchedule()

    kind = value.get("kind")
    if kind == ScheduleKind.all_day.value:
        return _parse_all_day(value)
    if kind == ScheduleKind.timed.value:
        return _parse_timed(value)
    return NoSchedule()


def schedule_from_dict(data: Mapping | None) -> ScheduleValue:
    """Load a schedule previously produced by ``to_dict()``."""
    return parse_schedule(data)


def start_instant(schedule: ScheduleValue) -> datetime | None:
    """
    Return the instant a session starts, if it has one.

    All-day sessions start at midnight UTC of their day.
    """
    if isinstance(schedule, TimedSchedule):
        return schedule.start_at
    if isinstance(schedule, AllDaySchedule):
        return schedule.date
    if isinstance(schedule, NoSchedule):
        return None
    raise TypeError(f"Unknown schedule type: {type(schedule).__name__}")


def describe_schedule(schedule: ScheduleValue) -> str:
    """Short human label for a schedule, e.g. "All day · Jun 1, 2025"."""
    if isinstance(schedule, AllDaySchedule):
        day = schedule.date
        return f"All day · {day:%b} {day.day}, {day.year}"
    if isinstance(schedule, TimedSchedule):
        start = schedule.start_at
        label = f"Scheduled · {start:%b} {start.day}, {start:%H:%M}"
        if schedule.end_at:
            label += f" – {schedule.end_at:%H:%M}"
        return label
    if isinstance(schedule, NoSchedule):
        return "No schedule set"
    raise TypeError(f"Unknown schedule type: {type(schedule).__name__}")
