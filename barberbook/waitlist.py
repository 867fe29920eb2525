"""Waitlist: clients asking to be moved earlier when a slot frees up.

An entry is tied to an upcoming appointment. When another appointment is
cancelled the oldest matching entry is offered the freed interval; the
client then accepts (the appointment moves) or declines (the entry goes back
to ``active``).
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Mapping

from flask import current_app

from .booking import FINAL_STATUSES, ensure_bookable, notify_client, parse_datetime
from .errors import Conflict, InvalidPayload, InvalidStatus, NotFound
from .extensions import db
from .models import WAITLIST_STATUSES, Appointment, Client, Notification, Shop, WaitlistEntry

logger = logging.getLogger(__name__)

OPEN_STATUSES = ("active", "notified")


def _now(now: datetime | None) -> datetime:
    return now or datetime.now()


def get_entry(waitlist_id: int) -> WaitlistEntry:
    entry = db.session.get(WaitlistEntry, waitlist_id)
    if entry is None:
        raise NotFound("Waitlist entry not found")
    return entry


def is_client_in_waitlist(client_id: int, appointment_id: int) -> bool:
    return (
        WaitlistEntry.query.filter(
            WaitlistEntry.client_id == client_id,
            WaitlistEntry.appointment_id == appointment_id,
            WaitlistEntry.status.in_(OPEN_STATUSES),
        ).first()
        is not None
    )


def join_waitlist(payload: Mapping[str, Any], now: datetime | None = None) -> WaitlistEntry:
    """Register ``payload["client_id"]`` for earlier slots than their appointment."""
    appointment_id = payload.get("appointment_id")
    client_id = payload.get("client_id")
    if not appointment_id or not client_id:
        raise InvalidPayload("appointment_id and client_id are required")

    appointment = db.session.get(Appointment, appointment_id)
    if appointment is None:
        raise NotFound("Appointment not found")
    client = db.session.get(Client, client_id)
    if client is None or client.shop_id != appointment.shop_id:
        raise NotFound("Client not found")
    if appointment.client_id not in (None, client.client_id):
        raise InvalidPayload("Appointment belongs to another client")

    now = _now(now)
    if appointment.status in FINAL_STATUSES or appointment.starts_at <= now:
        raise InvalidPayload("Only upcoming appointments can join the waitlist")
    if is_client_in_waitlist(client.client_id, appointment.appointment_id):
        raise Conflict("Client is already on the waitlist for this appointment")

    if payload.get("expires_at"):
        expires_at = parse_datetime(payload["expires_at"], "expires_at")
    else:
        days = current_app.config.get("WAITLIST_DEFAULT_DAYS", 30)
        expires_at = min(appointment.starts_at, now + timedelta(days=days))

    duration = payload.get("appointment_duration_min")
    if duration is None:
        duration = int((appointment.ends_at - appointment.starts_at).total_seconds() // 60)
    try:
        duration = int(duration)
    except (TypeError, ValueError) as exc:
        raise InvalidPayload("appointment_duration_min must be an integer") from exc
    if duration <= 0:
        raise InvalidPayload("appointment_duration_min must be positive")

    staff_id = payload.get("staff_id", appointment.staff_id)
    entry = WaitlistEntry(
        shop_id=appointment.shop_id,
        client_id=client.client_id,
        staff_id=staff_id,
        appointment_id=appointment.appointment_id,
        appointment_duration_min=duration,
        notify_if_earlier=bool(payload.get("notify_if_earlier", True)),
        status="active",
        expires_at=expires_at,
        notes=(payload.get("notes") or "").strip() or None,
    )
    db.session.add(entry)
    db.session.flush()
    logger.info("Client %s joined the waitlist for appointment %s", client.client_id, appointment.appointment_id)
    return entry


def leave_waitlist(entry: WaitlistEntry) -> None:
    Notification.query.filter_by(waitlist_id=entry.waitlist_id).update(
        {"waitlist_id": None}, synchronize_session=False
    )
    db.session.delete(entry)
    db.session.flush()


def close_entries_for(appointment: Appointment) -> int:
    """Disable the open entries waiting to move ``appointment``."""
    entries = WaitlistEntry.query.filter(
        WaitlistEntry.appointment_id == appointment.appointment_id,
        WaitlistEntry.status.in_(OPEN_STATUSES),
    ).all()
    for entry in entries:
        entry.status = "disabled"
    if entries:
        logger.info("Disabled %d waitlist entries of appointment %s", len(entries), appointment.appointment_id)
    return len(entries)


def update_status(entry: WaitlistEntry, status: Any, now: datetime | None = None) -> WaitlistEntry:
    if status not in WAITLIST_STATUSES:
        raise InvalidStatus(f"status must be one of: {', '.join(WAITLIST_STATUSES)}")
    entry.status = status
    if status == "notified":
        entry.notified_at = _now(now)
    db.session.flush()
    return entry


def client_entries(client_id: int, now: datetime | None = None) -> list[WaitlistEntry]:
    """Open, unexpired entries of ``client_id``, newest first."""
    return (
        WaitlistEntry.query.filter(
            WaitlistEntry.client_id == client_id,
            WaitlistEntry.status.in_(OPEN_STATUSES),
            WaitlistEntry.expires_at >= _now(now),
        )
        .order_by(WaitlistEntry.created_at.desc(), WaitlistEntry.waitlist_id.desc())
        .all()
    )


def offer_freed_slot(freed: Appointment, now: datetime | None = None) -> WaitlistEntry | None:
    """Offer the interval of cancelled appointment ``freed`` to the oldest matching entry."""
    now = _now(now)
    if freed.starts_at <= now:
        return None

    freed_minutes = (freed.ends_at - freed.starts_at).total_seconds() / 60
    candidates = (
        WaitlistEntry.query.join(Appointment, WaitlistEntry.appointment_id == Appointment.appointment_id)
        .filter(
            WaitlistEntry.shop_id == freed.shop_id,
            WaitlistEntry.status == "active",
            WaitlistEntry.notify_if_earlier.is_(True),
            WaitlistEntry.expires_at > now,
            WaitlistEntry.appointment_id != freed.appointment_id,
            WaitlistEntry.appointment_duration_min <= freed_minutes,
            db.or_(WaitlistEntry.staff_id.is_(None), WaitlistEntry.staff_id == freed.staff_id),
            Appointment.starts_at > freed.starts_at,
            Appointment.status.notin_(FINAL_STATUSES),
        )
        .order_by(WaitlistEntry.created_at.asc(), WaitlistEntry.waitlist_id.asc())
        .all()
    )
    if not candidates:
        return None

    entry = candidates[0]
    entry.status = "notified"
    entry.notified_at = now
    entry.offered_starts_at = freed.starts_at
    entry.offered_ends_at = freed.starts_at + timedelta(minutes=entry.appointment_duration_min)
    entry.offered_staff_id = freed.staff_id
    notify_client(
        entry.shop_id,
        entry.client_id,
        "waitlist_slot_available",
        "An earlier slot is available",
        f"A slot on {freed.starts_at.strftime('%d/%m/%Y %H:%M')} has freed up. "
        "Accept it to move your appointment earlier.",
        appointment_id=entry.appointment_id,
        waitlist_id=entry.waitlist_id,
    )
    db.session.flush()
    logger.info("Offered slot %s to waitlist entry %s", freed.starts_at.isoformat(), entry.waitlist_id)
    return entry


def accept_offer(entry: WaitlistEntry) -> Appointment:
    """Move the entry's appointment into the offered slot."""
    if entry.status != "notified" or entry.offered_starts_at is None:
        raise InvalidStatus("Waitlist entry has no pending offer")

    appointment = entry.appointment
    if appointment.status in FINAL_STATUSES:
        raise InvalidStatus(f"Appointment is already {appointment.status}")
    shop = db.session.get(Shop, entry.shop_id)
    staff_id = entry.offered_staff_id or entry.staff_id or appointment.staff_id
    ensure_bookable(
        shop,
        staff_id,
        entry.offered_starts_at,
        entry.offered_ends_at,
        exclude_appointment_id=appointment.appointment_id,
    )

    appointment.staff_id = staff_id
    appointment.starts_at = entry.offered_starts_at
    appointment.ends_at = entry.offered_ends_at
    appointment.status = "rescheduled"
    entry.status = "accepted"
    notify_client(
        entry.shop_id,
        entry.client_id,
        "appointment_rescheduled",
        "Appointment moved earlier",
        f"Your appointment has been moved to {appointment.starts_at.strftime('%d/%m/%Y %H:%M')}.",
        appointment_id=appointment.appointment_id,
        waitlist_id=entry.waitlist_id,
    )
    db.session.flush()
    logger.info("Waitlist entry %s accepted; appointment %s moved", entry.waitlist_id, appointment.appointment_id)
    return appointment


def decline_offer(entry: WaitlistEntry) -> WaitlistEntry:
    """Back to ``active`` so later offers still reach the client."""
    if entry.status != "notified":
        raise InvalidStatus("Waitlist entry has no pending offer")
    entry.status = "active"
    entry.offered_starts_at = None
    entry.offered_ends_at = None
    entry.offered_staff_id = None
    db.session.flush()
    return entry


def expire_stale_entries(now: datetime | None = None) -> int:
    """Mark open entries past ``expires_at`` as expired; returns how many changed."""
    stale = WaitlistEntry.query.filter(
        WaitlistEntry.status.in_(OPEN_STATUSES),
        WaitlistEntry.expires_at < _now(now),
    ).all()
    for entry in stale:
        entry.status = "expired"
    db.session.flush()
    if stale:
        logger.info("Expired %d waitlist entries", len(stale))
    return len(stale)
