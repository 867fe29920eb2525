"""Appointment booking: validation against opening hours and the staff calendar.

Functions here stage changes on ``db.session`` and flush; committing is left
to the caller so a request (or script) decides the transaction boundary.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Mapping

from .duration import calculate_service_duration
from .errors import Conflict, InvalidFormat, InvalidPayload, InvalidStatus, NotFound, OutsideHours, ShopClosed
from .extensions import db
from .holidays import holiday_name
from .hours_store import load_schedule
from .models import (
    APPOINTMENT_STATUSES,
    Appointment,
    Client,
    ClientHairProfile,
    Notification,
    Service,
    Shop,
    Staff,
)
from .shop_hours import CLOSURE_HOLIDAY, CLOSURE_VACATION, DAYS_OF_WEEK, ShopSchedule, weekday_key

logger = logging.getLogger(__name__)

# Appointments in these states no longer occupy the calendar or cannot move.
FINAL_STATUSES = ("cancelled", "completed", "no_show")


def parse_datetime(value: Any, field: str) -> datetime:
    """Parse an ISO-8601 string as shop-local wall-clock time (offsets are dropped)."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidPayload(f"{field} is required")
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError as exc:
        raise InvalidFormat(f"{field} must be a valid ISO format datetime") from exc
    return parsed.replace(tzinfo=None)


def parse_date(value: Any, field: str) -> date:
    if not isinstance(value, str) or not value.strip():
        raise InvalidPayload(f"{field} is required")
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError as exc:
        raise InvalidFormat(f"{field} must be a date in YYYY-MM-DD format") from exc


def _as_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise InvalidPayload(f"{field} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidPayload(f"{field} must be an integer") from exc


def get_shop_staff(shop: Shop, staff_id: Any) -> Staff:
    staff = db.session.get(Staff, _as_int(staff_id, "staff_id"))
    if staff is None or staff.shop_id != shop.shop_id:
        raise NotFound("Staff not found")
    return staff


def get_shop_service(shop: Shop, service_id: Any) -> Service:
    service = db.session.get(Service, _as_int(service_id, "service_id"))
    if service is None or service.shop_id != shop.shop_id:
        raise NotFound("Service not found")
    return service


def get_shop_client(shop: Shop, client_id: Any) -> Client:
    client = db.session.get(Client, _as_int(client_id, "client_id"))
    if client is None or client.shop_id != shop.shop_id:
        raise NotFound("Client not found")
    return client


def hair_profile_for(shop_id: int, client_id: int | None) -> ClientHairProfile | None:
    if client_id is None:
        return None
    return ClientHairProfile.query.filter_by(shop_id=shop_id, client_id=client_id).first()


def service_duration_minutes(service: Service, profile: ClientHairProfile | None = None) -> int:
    """Nominal duration, or the hair-profile estimate for variable services."""
    if service.is_duration_variable and profile is not None:
        return calculate_service_duration([service], profile).rounded_minutes
    return int(service.duration_minutes)


def appointments_between(
    shop_id: int,
    start: datetime,
    end: datetime,
    staff_id: int | None = None,
    include_cancelled: bool = False,
) -> list[Appointment]:
    query = Appointment.query.filter(
        Appointment.shop_id == shop_id,
        Appointment.starts_at < end,
        Appointment.ends_at > start,
    )
    if staff_id is not None:
        query = query.filter(Appointment.staff_id == staff_id)
    if not include_cancelled:
        query = query.filter(Appointment.status != "cancelled")
    return query.order_by(Appointment.starts_at.asc()).all()


def _closed_message(schedule: ShopSchedule, day: date) -> str:
    reason = schedule.closure_reason(day)
    if reason == CLOSURE_HOLIDAY:
        return f"The shop is closed on {day.isoformat()} for {holiday_name(day)}"
    if reason == CLOSURE_VACATION:
        return f"The shop is closed for vacation on {day.isoformat()}"
    day_name = DAYS_OF_WEEK[weekday_key(day)][1]
    return f"The shop is closed on {day_name}"


def ensure_bookable(
    shop: Shop,
    staff_id: int,
    starts_at: datetime,
    ends_at: datetime,
    exclude_appointment_id: int | None = None,
    schedule: ShopSchedule | None = None,
) -> None:
    """Raise unless ``[starts_at, ends_at)`` can be booked for ``staff_id``."""
    if ends_at <= starts_at:
        raise InvalidPayload("ends_at must be after starts_at")

    if schedule is None:
        schedule = load_schedule(shop)
    if not schedule.is_date_open(starts_at):
        raise ShopClosed(_closed_message(schedule, starts_at.date()))
    if not schedule.is_interval_within_hours(starts_at, ends_at):
        raise OutsideHours("The appointment is outside the shop's opening hours")

    query = Appointment.query.filter(
        Appointment.staff_id == staff_id,
        Appointment.status != "cancelled",
        Appointment.starts_at < ends_at,
        Appointment.ends_at > starts_at,
    )
    if exclude_appointment_id is not None:
        query = query.filter(Appointment.appointment_id != exclude_appointment_id)
    if query.first() is not None:
        raise Conflict("Staff member has a conflicting appointment")


def notify_client(
    shop_id: int,
    client_id: int | None,
    notification_type: str,
    title: str,
    message: str,
    appointment_id: int | None = None,
    waitlist_id: int | None = None,
) -> Notification | None:
    """Record a notification row; walk-in appointments have nobody to notify."""
    if client_id is None:
        return None
    notification = Notification(
        shop_id=shop_id,
        client_id=client_id,
        appointment_id=appointment_id,
        waitlist_id=waitlist_id,
        notification_type=notification_type,
        title=title,
        message=message,
    )
    db.session.add(notification)
    logger.info("Notification %s recorded for client %s", notification_type, client_id)
    return notification


def _when(value: datetime) -> str:
    return value.strftime("%d/%m/%Y %H:%M")


def _check_status(status: Any) -> str:
    if status not in APPOINTMENT_STATUSES:
        raise InvalidStatus(f"status must be one of: {', '.join(APPOINTMENT_STATUSES)}")
    return status


def create_appointment(shop: Shop, payload: Mapping[str, Any]) -> Appointment:
    """Validate ``payload`` and stage a new appointment for ``shop``."""
    if not payload.get("staff_id") or not payload.get("service_id"):
        raise InvalidPayload("staff_id, service_id and starts_at are required")

    client_id = payload.get("client_id")
    client_name = (payload.get("client_name") or "").strip() or None
    if not client_id and not client_name:
        raise InvalidPayload("client_id or client_name is required")

    staff = get_shop_staff(shop, payload["staff_id"])
    if not staff.active:
        raise InvalidPayload("Staff member is not active")
    service = get_shop_service(shop, payload["service_id"])
    if not service.active:
        raise InvalidPayload("Service is not active")
    client = get_shop_client(shop, client_id) if client_id else None

    starts_at = parse_datetime(payload.get("starts_at"), "starts_at")
    if payload.get("ends_at"):
        ends_at = parse_datetime(payload["ends_at"], "ends_at")
    else:
        profile = hair_profile_for(shop.shop_id, client.client_id if client else None)
        ends_at = starts_at + timedelta(minutes=service_duration_minutes(service, profile))

    status = _check_status(payload.get("status") or "confirmed")
    ensure_bookable(shop, staff.staff_id, starts_at, ends_at)

    appointment = Appointment(
        shop_id=shop.shop_id,
        client_id=client.client_id if client else None,
        client_name=client_name or (client.full_name if client else None),
        staff_id=staff.staff_id,
        service_id=service.service_id,
        starts_at=starts_at,
        ends_at=ends_at,
        status=status,
        notes=(payload.get("notes") or "").strip() or None,
    )
    db.session.add(appointment)
    db.session.flush()

    notify_client(
        shop.shop_id,
        appointment.client_id,
        "appointment_confirmed",
        "Appointment confirmed",
        f"Your {service.name} appointment is confirmed for {_when(starts_at)}.",
        appointment_id=appointment.appointment_id,
    )
    logger.info(
        "Booked appointment %s for staff %s at %s",
        appointment.appointment_id,
        staff.staff_id,
        starts_at.isoformat(),
    )
    return appointment


def update_appointment(appointment: Appointment, payload: Mapping[str, Any]) -> Appointment:
    """Apply ``payload`` to ``appointment``; moving it re-runs every booking check."""
    shop = appointment.shop
    staff_id = appointment.staff_id
    service = appointment.service
    starts_at = appointment.starts_at
    ends_at = appointment.ends_at

    if "staff_id" in payload:
        staff = get_shop_staff(shop, payload["staff_id"])
        if not staff.active:
            raise InvalidPayload("Staff member is not active")
        staff_id = staff.staff_id
    if "service_id" in payload:
        service = get_shop_service(shop, payload["service_id"])

    if payload.get("starts_at"):
        starts_at = parse_datetime(payload["starts_at"], "starts_at")
    if payload.get("ends_at"):
        ends_at = parse_datetime(payload["ends_at"], "ends_at")
    elif service.service_id != appointment.service_id:
        profile = hair_profile_for(shop.shop_id, appointment.client_id)
        ends_at = starts_at + timedelta(minutes=service_duration_minutes(service, profile))
    elif starts_at != appointment.starts_at:
        ends_at = starts_at + (appointment.ends_at - appointment.starts_at)

    moved = (
        staff_id != appointment.staff_id
        or starts_at != appointment.starts_at
        or ends_at != appointment.ends_at
    )
    status = _check_status(payload["status"]) if payload.get("status") else None

    if moved:
        if status == "cancelled":
            raise InvalidPayload("An appointment cannot be moved and cancelled at once")
        if appointment.status in FINAL_STATUSES:
            raise InvalidStatus(
                f"Cannot reschedule an appointment with status '{appointment.status}'"
            )
        ensure_bookable(
            shop,
            staff_id,
            starts_at,
            ends_at,
            exclude_appointment_id=appointment.appointment_id,
        )
        appointment.staff_id = staff_id
        appointment.starts_at = starts_at
        appointment.ends_at = ends_at
        appointment.status = status or "rescheduled"
    elif status and status != appointment.status:
        set_status(appointment, status)

    appointment.service_id = service.service_id
    if "notes" in payload:
        appointment.notes = (payload.get("notes") or "").strip() or None
    if "client_name" in payload and appointment.client_id is None:
        appointment.client_name = (payload.get("client_name") or "").strip() or None

    if moved:
        notify_client(
            appointment.shop_id,
            appointment.client_id,
            "appointment_rescheduled",
            "Appointment rescheduled",
            f"Your appointment has been moved to {_when(starts_at)}.",
            appointment_id=appointment.appointment_id,
        )
        logger.info("Rescheduled appointment %s to %s", appointment.appointment_id, starts_at.isoformat())
    db.session.flush()
    return appointment


def cancel_appointment(appointment: Appointment, offer_to_waitlist: bool = True):
    """Cancel ``appointment``; returns the waitlist entry offered the freed slot, if any."""
    from .waitlist import close_entries_for, offer_freed_slot

    if appointment.status == "cancelled":
        raise InvalidStatus("Appointment is already cancelled")

    appointment.status = "cancelled"
    close_entries_for(appointment)
    notify_client(
        appointment.shop_id,
        appointment.client_id,
        "appointment_cancelled",
        "Appointment cancelled",
        f"Your appointment on {_when(appointment.starts_at)} has been cancelled.",
        appointment_id=appointment.appointment_id,
    )
    db.session.flush()
    logger.info("Cancelled appointment %s", appointment.appointment_id)

    if not offer_to_waitlist:
        return None
    return offer_freed_slot(appointment)


def set_status(appointment: Appointment, status: Any):
    """Change the status; cancelling goes through :func:`cancel_appointment`.

    A cancelled appointment only comes back to life if its slot is still free.
    """
    status = _check_status(status)
    if status == "cancelled":
        return cancel_appointment(appointment)
    if appointment.status == "cancelled":
        ensure_bookable(
            appointment.shop,
            appointment.staff_id,
            appointment.starts_at,
            appointment.ends_at,
            exclude_appointment_id=appointment.appointment_id,
        )
    appointment.status = status
    db.session.flush()
    return None


def cancel_appointments_in_range(shop: Shop, start_date: date, end_date: date) -> list[Appointment]:
    """Cancel every open appointment of ``shop`` between two dates (inclusive).

    Used when the shop goes on vacation, so the freed slots are not offered
    to the waitlist.
    """
    if end_date < start_date:
        raise InvalidPayload("end_date must not be before start_date")

    start = datetime.combine(start_date, time.min)
    end = datetime.combine(end_date + timedelta(days=1), time.min)
    appointments = (
        Appointment.query.filter(
            Appointment.shop_id == shop.shop_id,
            Appointment.starts_at >= start,
            Appointment.starts_at < end,
            Appointment.status.notin_(FINAL_STATUSES),
        )
        .order_by(Appointment.starts_at.asc())
        .all()
    )
    for appointment in appointments:
        cancel_appointment(appointment, offer_to_waitlist=False)
    logger.info(
        "Cancelled %d appointments for shop %s between %s and %s",
        len(appointments),
        shop.shop_id,
        start_date.isoformat(),
        end_date.isoformat(),
    )
    return appointments
