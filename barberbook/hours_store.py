"""Load and save the weekly hours template, reconciling with the local cache.

The database is the source of truth. Every successful load refreshes the
cache; a failed load falls back to the last cached template so booking keeps
working until the next load succeeds.
"""
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from .extensions import db, hours_cache
from .models import Shop, ShopDailyHours, ShopDailyTimeSlot
from .shop_hours import (
    DailyHours,
    ExtraOpening,
    ShopHoursConfig,
    ShopSchedule,
    TimeRange,
    VacationPeriod,
    closed_week,
    default_shop_hours,
    format_time_to_hhmm,
    normalize_time_string,
)

logger = logging.getLogger(__name__)


def _slot_sort_key(slot: ShopDailyTimeSlot) -> tuple[int, str]:
    return (slot.position or 0, format_time_to_hhmm(slot.start_time))


def _rows_to_config(rows: list[ShopDailyHours]) -> ShopHoursConfig:
    config = closed_week()
    for row in rows:
        if not 0 <= row.day_of_week <= 6:
            logger.warning("Skipping hours row %s with day_of_week=%s", row.daily_hours_id, row.day_of_week)
            continue

        ranges = []
        for slot in sorted(row.time_slots, key=_slot_sort_key):
            start = format_time_to_hhmm(slot.start_time)
            end = format_time_to_hhmm(slot.end_time)
            if start == "00:00" and end == "00:00":
                continue
            ranges.append(TimeRange(start, end))

        config[row.day_of_week] = DailyHours(is_open=bool(row.is_open), time_slots=ranges)
    return config


def load_shop_hours(shop_id: int) -> ShopHoursConfig:
    """Weekly template of ``shop_id``; the default week when none is stored."""
    try:
        rows = (
            ShopDailyHours.query.filter_by(shop_id=shop_id)
            .order_by(ShopDailyHours.day_of_week.asc())
            .all()
        )
        config = _rows_to_config(rows) if rows else default_shop_hours()
    except SQLAlchemyError:
        db.session.rollback()
        cached = hours_cache.get(shop_id)
        if cached is None:
            logger.exception("Failed to load hours for shop %s and no cached copy exists", shop_id)
            raise
        logger.warning("Serving cached hours for shop %s after a failed load", shop_id)
        return cached

    hours_cache.set(shop_id, config)
    return config


def _normalized_ranges(ranges) -> list[tuple[str, str]]:
    return sorted((normalize_time_string(start), normalize_time_string(end)) for start, end in ranges)


def changed_days(existing_rows: list[ShopDailyHours], config: ShopHoursConfig) -> list[int]:
    """Days whose stored row differs from ``config``."""
    existing = {row.day_of_week: row for row in existing_rows}
    changed = []
    for day in range(7):
        wanted = config.get(day, DailyHours())
        row = existing.get(day)

        if row is None:
            if wanted.is_open or wanted.time_slots:
                changed.append(day)
            continue

        if bool(row.is_open) != wanted.is_open:
            changed.append(day)
            continue

        if not wanted.is_open:
            if row.time_slots:
                changed.append(day)
            continue

        stored = _normalized_ranges((slot.start_time, slot.end_time) for slot in row.time_slots)
        requested = _normalized_ranges((slot.start, slot.end) for slot in wanted.time_slots)
        if stored != requested:
            changed.append(day)
    return changed


def _parse_time(value: str):
    return datetime.strptime(normalize_time_string(value), "%H:%M:%S").time()


def save_shop_hours(shop_id: int, config: ShopHoursConfig) -> bool:
    """Persist ``config``; returns ``False`` when nothing needed writing."""
    existing_rows = ShopDailyHours.query.filter_by(shop_id=shop_id).all()
    days = changed_days(existing_rows, config)

    if not days:
        if existing_rows:
            return False
        # Nothing stored yet: write the full week so the default is no longer implied.
        days = list(range(7))

    by_day = {row.day_of_week: row for row in existing_rows}
    try:
        for day in days:
            wanted = config.get(day, DailyHours())
            row = by_day.get(day)
            if row is None:
                row = ShopDailyHours(shop_id=shop_id, day_of_week=day)
                db.session.add(row)
                by_day[day] = row
            row.is_open = wanted.is_open

            row.time_slots.clear()
            if wanted.is_open:
                valid = [slot for slot in wanted.time_slots if slot.is_valid]
                for position, slot in enumerate(valid):
                    row.time_slots.append(
                        ShopDailyTimeSlot(
                            start_time=_parse_time(slot.start),
                            end_time=_parse_time(slot.end),
                            position=position,
                        )
                    )
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to save hours for shop %s", shop_id)
        raise

    logger.info("Saved hours for shop %s (days %s)", shop_id, days)
    hours_cache.set(shop_id, {day: config.get(day, DailyHours()) for day in range(7)})
    return True


def extra_opening_for(shop: Shop) -> ExtraOpening | None:
    if not shop.extra_opening_date:
        return None
    morning = None
    if shop.extra_morning_start and shop.extra_morning_end:
        morning = TimeRange(shop.extra_morning_start, shop.extra_morning_end)
    afternoon = None
    if shop.extra_afternoon_start and shop.extra_afternoon_end:
        afternoon = TimeRange(shop.extra_afternoon_start, shop.extra_afternoon_end)
    return ExtraOpening(shop.extra_opening_date, morning, afternoon)


def vacation_for(shop: Shop) -> VacationPeriod | None:
    if not (shop.vacation_start_date and shop.vacation_end_date):
        return None
    return VacationPeriod(shop.vacation_start_date, shop.vacation_end_date)


def load_schedule(shop: Shop) -> ShopSchedule:
    """Effective schedule: stored template plus the shop's one-off overrides."""
    return ShopSchedule(
        weekly=load_shop_hours(shop.shop_id),
        extra_opening=extra_opening_for(shop),
        auto_close_holidays=True if shop.auto_close_holidays is None else bool(shop.auto_close_holidays),
        vacation=vacation_for(shop),
    )
