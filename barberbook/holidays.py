"""National holiday calendar used to auto-close shops.

Fixed-date holidays plus Easter Sunday and Easter Monday, with Easter
computed by Gauss's algorithm so no external calendar data is needed.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta

FIXED_HOLIDAYS: dict[tuple[int, int], str] = {
    (1, 1): "Capodanno",
    (1, 6): "Epifania",
    (4, 25): "Festa della Liberazione",
    (5, 1): "Festa del Lavoro",
    (6, 2): "Festa della Repubblica",
    (8, 15): "Ferragosto",
    (11, 1): "Ognissanti",
    (12, 8): "Immacolata Concezione",
    (12, 25): "Natale",
    (12, 26): "Santo Stefano",
}

EASTER_SUNDAY = "Pasqua"
EASTER_MONDAY = "Pasquetta"


def easter_sunday(year: int) -> date:
    """Return the Gregorian Easter Sunday for ``year``."""
    a = year % 19
    b = year // 100
    c = year % 100
    d = b // 4
    e = b % 4
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i = c // 4
    k = c % 4
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    month = (h + l - 7 * m + 114) // 31
    day = ((h + l - 7 * m + 114) % 31) + 1
    return date(year, month, day)


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def national_holidays(year: int | None = None) -> list[date]:
    """All national holidays of ``year`` (current year by default), fixed dates first."""
    target_year = year or date.today().year
    holidays = [date(target_year, month, day) for (month, day) in FIXED_HOLIDAYS]
    easter = easter_sunday(target_year)
    holidays.append(easter)
    holidays.append(easter + timedelta(days=1))
    return holidays


def holiday_name(value: date | datetime) -> str | None:
    day = _as_date(value)
    name = FIXED_HOLIDAYS.get((day.month, day.day))
    if name:
        return name

    easter = easter_sunday(day.year)
    if day == easter:
        return EASTER_SUNDAY
    if day == easter + timedelta(days=1):
        return EASTER_MONDAY
    return None


def is_national_holiday(value: date | datetime) -> bool:
    return holiday_name(value) is not None
