"""Daily shop hours and the availability predicate built on top of them.

A shop publishes a weekly template (day of week -> open flag plus a list of
``HH:MM`` ranges). ``ShopSchedule`` overlays the one-off exceptions on that
template: an extra opening date, a vacation period and the national holiday
auto-closure. Day keys follow the storage convention 0=Sunday .. 6=Saturday.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Iterable

from .holidays import is_national_holiday

DAYS_OF_WEEK: tuple[tuple[int, str, str], ...] = (
    (0, "Sunday", "Sun"),
    (1, "Monday", "Mon"),
    (2, "Tuesday", "Tue"),
    (3, "Wednesday", "Wed"),
    (4, "Thursday", "Thu"),
    (5, "Friday", "Fri"),
    (6, "Saturday", "Sat"),
)

CLOSURE_VACATION = "vacation"
CLOSURE_HOLIDAY = "holiday"
CLOSURE_WEEKLY = "weekly_closure"


def parse_hhmm(value: str | time) -> int:
    """Convert ``HH:MM`` (or ``HH:MM:SS``) into minutes since midnight."""
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    if not isinstance(value, str):
        raise ValueError(f"time must be a HH:MM string, got {value!r}")

    parts = value.strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"time must be in HH:MM format, got {value!r}")
    try:
        hours = int(parts[0])
        minutes = int(parts[1])
    except ValueError as exc:
        raise ValueError(f"time must be in HH:MM format, got {value!r}") from exc
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"time out of range: {value!r}")
    return hours * 60 + minutes


def format_minutes(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def format_time_to_hhmm(value: str | time | None) -> str:
    """Render stored times (``HH:MM`` or ``HH:MM:SS``) as ``HH:MM``."""
    if isinstance(value, time):
        return value.strftime("%H:%M")
    if not value:
        return "00:00"
    parts = value.split(":")
    hours = parts[0] or "00"
    minutes = parts[1] if len(parts) > 1 and parts[1] else "00"
    return f"{hours.zfill(2)}:{minutes.zfill(2)}"


def normalize_time_string(value: str | time | None) -> str:
    """Render a time as ``HH:MM:00``, the form the store compares against."""
    return f"{format_time_to_hhmm(value)}:00"


def weekday_key(day: date) -> int:
    """Python's Monday=0 weekday mapped onto the 0=Sunday storage key."""
    return (day.weekday() + 1) % 7


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


@dataclass(frozen=True)
class TimeRange:
    """Half-open opening range ``[start, end)`` within one day."""

    start: str
    end: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", format_minutes(parse_hhmm(self.start)))
        object.__setattr__(self, "end", format_minutes(parse_hhmm(self.end)))

    @property
    def start_minutes(self) -> int:
        return parse_hhmm(self.start)

    @property
    def end_minutes(self) -> int:
        return parse_hhmm(self.end)

    @property
    def is_valid(self) -> bool:
        return self.start_minutes < self.end_minutes

    def contains_minute(self, minute: int) -> bool:
        return self.start_minutes <= minute < self.end_minutes

    def overlaps(self, other: "TimeRange") -> bool:
        return self.start_minutes < other.end_minutes and other.start_minutes < self.end_minutes

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start, "end": self.end}

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "TimeRange":
        if not isinstance(data, dict) or not data.get("start") or not data.get("end"):
            raise ValueError("time range requires start and end")
        return cls(str(data["start"]), str(data["end"]))


@dataclass
class DailyHours:
    is_open: bool = False
    time_slots: list[TimeRange] = field(default_factory=list)

    @property
    def has_hours(self) -> bool:
        return self.is_open and bool(self.time_slots)

    def to_dict(self) -> dict[str, object]:
        return {
            "is_open": self.is_open,
            "time_slots": [slot.to_dict() for slot in self.time_slots],
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "DailyHours":
        if not isinstance(data, dict):
            raise ValueError("day hours must be an object")
        raw_slots = data.get("time_slots") or []
        if not isinstance(raw_slots, list):
            raise ValueError("time_slots must be a list")
        return cls(
            is_open=bool(data.get("is_open", False)),
            time_slots=[TimeRange.from_dict(slot) for slot in raw_slots],
        )


ShopHoursConfig = dict[int, DailyHours]


def _default_ranges() -> list[TimeRange]:
    return [TimeRange("09:00", "13:00"), TimeRange("14:00", "19:00")]


def default_shop_hours() -> ShopHoursConfig:
    """Closed on Sunday, Monday to Saturday 09:00-13:00 and 14:00-19:00."""
    config: ShopHoursConfig = {0: DailyHours(False, [])}
    for day in range(1, 7):
        config[day] = DailyHours(True, _default_ranges())
    return config


def closed_week() -> ShopHoursConfig:
    return {day: DailyHours(False, []) for day in range(7)}


def config_to_dict(config: ShopHoursConfig) -> dict[str, dict[str, object]]:
    return {str(day): config.get(day, DailyHours()).to_dict() for day in range(7)}


def config_from_dict(data: dict[str, object]) -> ShopHoursConfig:
    """Parse the JSON form; days left out are treated as closed."""
    if not isinstance(data, dict):
        raise ValueError("hours must be an object keyed by day of week")
    config = closed_week()
    for key, value in data.items():
        try:
            day = int(key)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"invalid day of week: {key!r}") from exc
        check_day_of_week(day)
        config[day] = validate_day_hours(DailyHours.from_dict(value))
    return config


def check_day_of_week(day: int) -> None:
    if not isinstance(day, int) or isinstance(day, bool) or not 0 <= day <= 6:
        raise ValueError("day_of_week must be between 0 (Sunday) and 6 (Saturday)")


def validate_ranges(ranges: Iterable[TimeRange]) -> list[TimeRange]:
    """Sort ranges by start, rejecting empty/inverted or overlapping ones."""
    ordered = sorted(ranges, key=lambda slot: slot.start_minutes)
    for slot in ordered:
        if not slot.is_valid:
            raise ValueError(f"range {slot.start}-{slot.end} must end after it starts")
    for previous, current in zip(ordered, ordered[1:]):
        if previous.overlaps(current):
            raise ValueError(
                f"ranges {previous.start}-{previous.end} and {current.start}-{current.end} overlap"
            )
    return ordered


def validate_day_hours(hours: DailyHours) -> DailyHours:
    return DailyHours(is_open=hours.is_open, time_slots=validate_ranges(hours.time_slots))


@dataclass(frozen=True)
class ExtraOpening:
    """One-off opening on an otherwise closed (or differently open) date."""

    date: date
    morning: TimeRange | None = None
    afternoon: TimeRange | None = None

    @property
    def ranges(self) -> list[TimeRange]:
        present = [slot for slot in (self.morning, self.afternoon) if slot is not None]
        return sorted(present, key=lambda slot: slot.start_minutes)

    def validate(self) -> "ExtraOpening":
        if not self.ranges:
            raise ValueError("an extra opening needs at least one time range")
        validate_ranges(self.ranges)
        return self


@dataclass(frozen=True)
class VacationPeriod:
    start_date: date
    end_date: date

    def validate(self) -> "VacationPeriod":
        if self.end_date < self.start_date:
            raise ValueError("vacation end_date must not be before start_date")
        return self

    def contains(self, value: date | datetime) -> bool:
        return self.start_date <= _as_date(value) <= self.end_date

    def to_dict(self) -> dict[str, str]:
        return {"start_date": self.start_date.isoformat(), "end_date": self.end_date.isoformat()}


class ShopSchedule:
    """Effective opening hours of one shop.

    Resolution order for a date: extra opening, vacation, national holiday
    (when ``auto_close_holidays`` is set), then the weekly template.
    """

    def __init__(
        self,
        weekly: ShopHoursConfig | None = None,
        extra_opening: ExtraOpening | None = None,
        auto_close_holidays: bool = True,
        vacation: VacationPeriod | None = None,
    ) -> None:
        if weekly is None:
            weekly = default_shop_hours()
        self.weekly: ShopHoursConfig = {day: weekly.get(day, DailyHours()) for day in range(7)}
        self.extra_opening = extra_opening
        self.auto_close_holidays = auto_close_holidays
        self.vacation = vacation

    def _extra_hours(self, day: date) -> DailyHours | None:
        extra = self.extra_opening
        if extra is not None and extra.date == day and extra.ranges:
            return DailyHours(True, extra.ranges)
        return None

    def hours_for(self, value: date | datetime) -> DailyHours:
        day = _as_date(value)
        extra = self._extra_hours(day)
        if extra is not None:
            return extra
        if self.vacation is not None and self.vacation.contains(day):
            return DailyHours(False, [])
        if self.auto_close_holidays and is_national_holiday(day):
            return DailyHours(False, [])
        return self.weekly[weekday_key(day)]

    def closure_reason(self, value: date | datetime) -> str | None:
        day = _as_date(value)
        if self._extra_hours(day) is not None:
            return None
        if self.vacation is not None and self.vacation.contains(day):
            return CLOSURE_VACATION
        if self.auto_close_holidays and is_national_holiday(day):
            return CLOSURE_HOLIDAY
        if not self.weekly[weekday_key(day)].has_hours:
            return CLOSURE_WEEKLY
        return None

    def is_date_open(self, value: date | datetime) -> bool:
        return self.hours_for(value).has_hours

    def is_time_within_hours(self, value: date | datetime, at: str | time) -> bool:
        hours = self.hours_for(value)
        if not hours.has_hours:
            return False
        minute = parse_hhmm(at)
        return any(slot.contains_minute(minute) for slot in hours.time_slots)

    def is_interval_within_hours(self, starts_at: datetime, ends_at: datetime) -> bool:
        """True when ``[starts_at, ends_at)`` sits inside a single opening range."""
        if ends_at <= starts_at or ends_at.date() != starts_at.date():
            return False
        hours = self.hours_for(starts_at)
        if not hours.has_hours:
            return False
        start_minute = starts_at.hour * 60 + starts_at.minute
        end_minute = ends_at.hour * 60 + ends_at.minute + (1 if ends_at.second or ends_at.microsecond else 0)
        return any(
            slot.contains_minute(start_minute) and end_minute <= slot.end_minutes
            for slot in hours.time_slots
        )

    def get_available_time_slots(self, value: date | datetime, slot_minutes: int = 30) -> list[str]:
        """Start times (``HH:MM``) of every ``slot_minutes`` slot that fits a range."""
        if slot_minutes <= 0:
            raise ValueError("slot_minutes must be positive")
        hours = self.hours_for(value)
        if not hours.has_hours:
            return []

        slots: list[str] = []
        for time_range in sorted(hours.time_slots, key=lambda slot: slot.start_minutes):
            current = time_range.start_minutes
            end = time_range.end_minutes
            while current + slot_minutes <= end:
                slots.append(format_minutes(current))
                current += slot_minutes
        return slots

    def summary(self) -> str:
        parts = []
        for key, _name, short_name in DAYS_OF_WEEK:
            hours = self.weekly[key]
            if hours.has_hours:
                ranges = ", ".join(f"{slot.start}-{slot.end}" for slot in hours.time_slots)
                parts.append(f"{short_name}: {ranges}")
            else:
                parts.append(f"{short_name}: Closed")
        return " | ".join(parts)

    # Weekly template edits. Each returns the day's new hours.

    def update_day_hours(self, day: int, hours: DailyHours) -> DailyHours:
        check_day_of_week(day)
        self.weekly[day] = validate_day_hours(hours)
        return self.weekly[day]

    def add_time_slot(self, day: int, time_range: TimeRange) -> DailyHours:
        check_day_of_week(day)
        current = self.weekly[day]
        return self.update_day_hours(day, DailyHours(current.is_open, [*current.time_slots, time_range]))

    def remove_time_slot(self, day: int, index: int) -> DailyHours:
        check_day_of_week(day)
        current = self.weekly[day]
        if not 0 <= index < len(current.time_slots):
            raise IndexError(f"no time slot at position {index} for day {day}")
        remaining = [slot for position, slot in enumerate(current.time_slots) if position != index]
        return self.update_day_hours(day, DailyHours(current.is_open, remaining))

    def update_time_slot(self, day: int, index: int, time_range: TimeRange) -> DailyHours:
        check_day_of_week(day)
        current = self.weekly[day]
        if not 0 <= index < len(current.time_slots):
            raise IndexError(f"no time slot at position {index} for day {day}")
        replaced = [
            time_range if position == index else slot
            for position, slot in enumerate(current.time_slots)
        ]
        return self.update_day_hours(day, DailyHours(current.is_open, replaced))

    def toggle_day_open(self, day: int) -> DailyHours:
        check_day_of_week(day)
        current = self.weekly[day]
        self.weekly[day] = DailyHours(not current.is_open, list(current.time_slots))
        return self.weekly[day]
