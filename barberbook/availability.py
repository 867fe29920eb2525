"""Bookable start times for a given duration across a range of days."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Protocol

from .shop_hours import ShopSchedule, parse_hhmm

BASE_SLOT_MINUTES = 15


class BusyInterval(Protocol):
    staff_id: int | None
    starts_at: datetime
    ends_at: datetime | None
    status: str | None


@dataclass(frozen=True)
class AvailableSlot:
    date: date
    time: str  # HH:MM

    @property
    def starts_at(self) -> datetime:
        minutes = parse_hhmm(self.time)
        return datetime.combine(self.date, datetime.min.time()) + timedelta(minutes=minutes)

    def to_dict(self) -> dict[str, str]:
        return {
            "date": self.date.isoformat(),
            "time": self.time,
            "starts_at": self.starts_at.isoformat(),
        }


def intervals_overlap(
    first_start: datetime, first_end: datetime, second_start: datetime, second_end: datetime
) -> bool:
    """Half-open overlap: intervals that only touch do not overlap."""
    return first_start < second_end and first_end > second_start


def _busy_intervals(
    appointments: Iterable[BusyInterval], staff_id: int | None, fallback_minutes: int
) -> list[tuple[datetime, datetime]]:
    busy = []
    for appointment in appointments:
        if appointment.status == "cancelled":
            continue
        if staff_id is not None and appointment.staff_id != staff_id:
            continue
        end = appointment.ends_at or appointment.starts_at + timedelta(minutes=fallback_minutes)
        busy.append((appointment.starts_at, end))
    return busy


def find_available_slots(
    schedule: ShopSchedule,
    start_date: date,
    end_date: date,
    duration_minutes: int,
    appointments: Iterable[BusyInterval] = (),
    staff_id: int | None = None,
    base_slot_minutes: int = BASE_SLOT_MINUTES,
    not_before: datetime | None = None,
) -> list[AvailableSlot]:
    """Every start time where ``duration_minutes`` fits the opening hours and the calendar.

    Candidate starts are quantized to ``base_slot_minutes``. A start is kept
    only if each base slot covered by the appointment is itself an opening
    slot (so the booking never straddles a break or closing time) and no
    non-cancelled appointment overlaps it.
    """
    if duration_minutes <= 0:
        raise ValueError("duration_minutes must be positive")
    if base_slot_minutes <= 0:
        raise ValueError("base_slot_minutes must be positive")

    busy = _busy_intervals(appointments, staff_id, duration_minutes)
    duration = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=base_slot_minutes)

    results: list[AvailableSlot] = []
    day = start_date
    while day <= end_date:
        if schedule.is_date_open(day):
            labels = schedule.get_available_time_slots(day, base_slot_minutes)
            open_starts = set(labels)
            midnight = datetime.combine(day, datetime.min.time())

            for label in labels:
                slot_start = midnight + timedelta(minutes=parse_hhmm(label))
                slot_end = slot_start + duration
                if not_before is not None and slot_start < not_before:
                    continue

                fits = True
                check = slot_start
                while check < slot_end:
                    if check.date() != day or check.strftime("%H:%M") not in open_starts:
                        fits = False
                        break
                    check += step
                if not fits:
                    continue

                if any(intervals_overlap(slot_start, slot_end, start, end) for start, end in busy):
                    continue
                results.append(AvailableSlot(day, label))
        day += timedelta(days=1)
    return results
