"""Booking routes: availability, appointments, waitlist, hair profiles and notifications."""
from __future__ import annotations

from datetime import datetime, time, timedelta

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from .availability import find_available_slots
from .booking import (
    appointments_between,
    cancel_appointment,
    cancel_appointments_in_range,
    create_appointment,
    get_shop_client,
    hair_profile_for,
    parse_date,
    set_status,
    update_appointment,
)
from .duration import (
    COLOR_SITUATIONS,
    HAIR_LENGTHS,
    HAIR_TYPES,
    calculate_service_duration,
    has_variable_duration_services,
)
from .errors import InvalidPayload, InvalidStatus, NotFound
from .extensions import db
from .hours_store import load_schedule
from .models import APPOINTMENT_STATUSES, Appointment, Client, ClientHairProfile, Notification, Service, Shop
from .questionnaire import decide_questionnaire, is_profile_outdated
from .waitlist import (
    accept_offer,
    client_entries,
    decline_offer,
    get_entry,
    is_client_in_waitlist,
    join_waitlist,
    leave_waitlist,
    update_status,
)

bp_booking = Blueprint("booking", __name__)


def _require_shop(shop_id: int) -> Shop:
    shop = db.session.get(Shop, shop_id)
    if shop is None:
        raise NotFound("Shop not found")
    return shop


def _require_appointment(appointment_id: int) -> Appointment:
    appointment = db.session.get(Appointment, appointment_id)
    if appointment is None:
        raise NotFound("Appointment not found")
    return appointment


def _parse_ids(raw) -> list[int]:
    if raw is None or raw == "":
        return []
    if isinstance(raw, str):
        raw = [part for part in raw.split(",") if part.strip()]
    if not isinstance(raw, list):
        raise InvalidPayload("service_ids must be a list of integers")
    try:
        return [int(value) for value in raw]
    except (TypeError, ValueError) as exc:
        raise InvalidPayload("service_ids must be a list of integers") from exc


def _shop_services(shop: Shop, service_ids: list[int]) -> list[Service]:
    if not service_ids:
        raise InvalidPayload("service_ids is required")
    services = Service.query.filter(
        Service.shop_id == shop.shop_id, Service.service_id.in_(service_ids)
    ).all()
    if len({service.service_id for service in services}) != len(set(service_ids)):
        raise NotFound("Service not found")
    by_id = {service.service_id: service for service in services}
    return [by_id[service_id] for service_id in service_ids]


def _profile_from_request(shop: Shop, payload: dict):
    """Hair profile given inline, or the stored one of ``client_id``."""
    if isinstance(payload.get("hair_profile"), dict):
        return payload["hair_profile"]
    if payload.get("client_id"):
        client = get_shop_client(shop, payload["client_id"])
        return hair_profile_for(shop.shop_id, client.client_id)
    return None


# --- Availability ---


@bp_booking.get("/shops/<int:shop_id>/availability")
def get_availability(shop_id: int) -> tuple[dict[str, object], int]:
    """Bookable start times for a duration between two dates.
    ---
    tags:
      - Availability
    parameters:
      - name: start
        in: query
        type: string
        format: date
        required: true
      - name: end
        in: query
        type: string
        format: date
      - name: duration_minutes
        in: query
        type: integer
      - name: service_ids
        in: query
        type: string
        description: comma separated; used to size the appointment when duration_minutes is absent
      - name: client_id
        in: query
        type: integer
      - name: staff_id
        in: query
        type: integer
    responses:
      200:
        description: Available slots in chronological order
      400:
        description: Invalid parameters
      404:
        description: Shop, client or service not found
    """
    start_date = parse_date(request.args.get("start"), "start")
    end_date = parse_date(request.args.get("end") or request.args.get("start"), "end")
    if end_date < start_date:
        raise InvalidPayload("end must not be before start")
    max_days = current_app.config.get("MAX_AVAILABILITY_DAYS", 62)
    if (end_date - start_date).days + 1 > max_days:
        raise InvalidPayload(f"date range cannot exceed {max_days} days")

    staff_id = request.args.get("staff_id", type=int)

    try:
        shop = _require_shop(shop_id)

        duration = request.args.get("duration_minutes", type=int)
        if duration is None:
            services = _shop_services(shop, _parse_ids(request.args.get("service_ids")))
            profile = _profile_from_request(shop, {"client_id": request.args.get("client_id")})
            if profile is not None and has_variable_duration_services(services):
                duration = calculate_service_duration(services, profile).rounded_minutes
            else:
                duration = sum(int(service.duration_minutes) for service in services)
        if duration <= 0:
            raise InvalidPayload("duration_minutes must be positive")

        schedule = load_schedule(shop)
        busy = appointments_between(
            shop.shop_id,
            datetime.combine(start_date, time.min),
            datetime.combine(end_date + timedelta(days=1), time.min),
            staff_id=staff_id,
        )
        slots = find_available_slots(
            schedule,
            start_date,
            end_date,
            duration,
            appointments=busy,
            staff_id=staff_id,
            base_slot_minutes=current_app.config.get("BASE_SLOT_MINUTES", 15),
            not_before=datetime.now(),
        )
        return jsonify({
            "shop_id": shop.shop_id,
            "duration_minutes": duration,
            "slots": [slot.to_dict() for slot in slots],
        }), 200

    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to compute availability", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


# --- Appointments ---


@bp_booking.get("/shops/<int:shop_id>/appointments")
def list_shop_appointments(shop_id: int) -> tuple[dict[str, object], int]:
    """Appointments of a shop, optionally limited by date range, staff member, client or status."""
    try:
        _require_shop(shop_id)
        query = Appointment.query.filter(Appointment.shop_id == shop_id)

        if request.args.get("start"):
            start = parse_date(request.args["start"], "start")
            query = query.filter(Appointment.starts_at >= datetime.combine(start, time.min))
        if request.args.get("end"):
            end = parse_date(request.args["end"], "end")
            query = query.filter(Appointment.starts_at < datetime.combine(end + timedelta(days=1), time.min))
        staff_id = request.args.get("staff_id", type=int)
        if staff_id is not None:
            query = query.filter(Appointment.staff_id == staff_id)
        client_id = request.args.get("client_id", type=int)
        if client_id is not None:
            query = query.filter(Appointment.client_id == client_id)
        status = request.args.get("status")
        if status:
            if status not in APPOINTMENT_STATUSES:
                raise InvalidStatus(f"status must be one of: {', '.join(APPOINTMENT_STATUSES)}")
            query = query.filter(Appointment.status == status)

        appointments = query.order_by(Appointment.starts_at.asc()).all()
        return jsonify({"appointments": [appointment.to_dict() for appointment in appointments]}), 200

    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch appointments", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_booking.post("/shops/<int:shop_id>/appointments")
def create_shop_appointment(shop_id: int) -> tuple[dict[str, object], int]:
    """Book an appointment.
    ---
    tags:
      - Appointments
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            staff_id:
              type: integer
            service_id:
              type: integer
            client_id:
              type: integer
            client_name:
              type: string
            starts_at:
              type: string
              format: date-time
            ends_at:
              type: string
              format: date-time
            notes:
              type: string
          required:
            - staff_id
            - service_id
            - starts_at
    responses:
      201:
        description: Appointment created successfully
      400:
        description: Invalid payload, shop closed or outside opening hours
      404:
        description: Shop, staff, service or client not found
      409:
        description: Staff member already booked
    """
    payload = request.get_json(silent=True) or {}
    try:
        shop = _require_shop(shop_id)
        appointment = create_appointment(shop, payload)
        db.session.commit()
        return jsonify({
            "message": "Appointment created successfully",
            "appointment": appointment.to_dict(),
        }), 201

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create appointment", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_booking.get("/appointments/<int:appointment_id>")
def get_appointment(appointment_id: int) -> tuple[dict[str, dict[str, object]], int]:
    try:
        appointment = _require_appointment(appointment_id)
        return jsonify({"appointment": appointment.to_dict()}), 200
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch appointment", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_booking.put("/appointments/<int:appointment_id>")
def update_shop_appointment(appointment_id: int) -> tuple[dict[str, object], int]:
    """Edit or move an appointment; moves are validated like new bookings."""
    payload = request.get_json(silent=True) or {}
    try:
        appointment = _require_appointment(appointment_id)
        update_appointment(appointment, payload)
        db.session.commit()
        return jsonify({"appointment": appointment.to_dict()}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update appointment", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_booking.put("/appointments/<int:appointment_id>/status")
def update_appointment_status(appointment_id: int) -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    if not payload.get("status"):
        raise InvalidPayload("status is required")

    try:
        appointment = _require_appointment(appointment_id)
        offer = set_status(appointment, payload["status"])
        db.session.commit()
        return jsonify({
            "appointment": appointment.to_dict(),
            "waitlist_offer": offer.to_dict() if offer else None,
        }), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update appointment status", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_booking.delete("/appointments/<int:appointment_id>")
def cancel_shop_appointment(appointment_id: int) -> tuple[dict[str, object], int]:
    """Cancel an appointment and offer the freed slot to the waitlist.
    ---
    tags:
      - Appointments
    responses:
      200:
        description: Appointment cancelled; includes the waitlist entry that was offered the slot
      400:
        description: Already cancelled
      404:
        description: Appointment not found
    """
    try:
        appointment = _require_appointment(appointment_id)
        offer = cancel_appointment(appointment)
        db.session.commit()
        return jsonify({
            "message": "Appointment cancelled",
            "appointment": appointment.to_dict(),
            "waitlist_offer": offer.to_dict() if offer else None,
        }), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to cancel appointment", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_booking.post("/shops/<int:shop_id>/appointments/cancel-range")
def cancel_range(shop_id: int) -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    start_date = parse_date(payload.get("start_date"), "start_date")
    end_date = parse_date(payload.get("end_date"), "end_date")

    try:
        shop = _require_shop(shop_id)
        cancelled = cancel_appointments_in_range(shop, start_date, end_date)
        db.session.commit()
        return jsonify({
            "cancelled": len(cancelled),
            "appointments": [appointment.to_dict() for appointment in cancelled],
        }), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to cancel appointments in range", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


# --- Hair profiles, duration estimate and questionnaire ---


@bp_booking.get("/shops/<int:shop_id>/clients/<int:client_id>/hair-profile")
def get_hair_profile(shop_id: int, client_id: int) -> tuple[dict[str, object], int]:
    try:
        shop = _require_shop(shop_id)
        client = get_shop_client(shop, client_id)
        profile = hair_profile_for(shop.shop_id, client.client_id)
        max_age = current_app.config.get("HAIR_PROFILE_MAX_AGE_MONTHS", 6)
        return jsonify({
            "hair_profile": profile.to_dict() if profile else None,
            "is_outdated": is_profile_outdated(profile, max_age_months=max_age) if profile else False,
        }), 200

    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch hair profile", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_booking.put("/shops/<int:shop_id>/clients/<int:client_id>/hair-profile")
def save_hair_profile(shop_id: int, client_id: int) -> tuple[dict[str, object], int]:
    """Create or update a client's hair profile for one shop.
    ---
    tags:
      - Hair profile
    parameters:
      - in: body
        name: body
        required: true
        schema:
          properties:
            hair_type:
              type: string
              enum: [straight_fine, wavy_medium, curly_thick, very_curly_afro]
            hair_length:
              type: string
              enum: [short, medium, long, very_long]
            has_color_history:
              type: boolean
            color_situation:
              type: string
              enum: [virgin, roots_touch_up, full_color_change, color_correction]
            updated_by:
              type: string
    responses:
      200:
        description: Profile saved
      400:
        description: Unknown hair type, length or colour situation
      404:
        description: Shop or client not found
    """
    payload = request.get_json(silent=True) or {}
    for field, allowed in (
        ("hair_type", HAIR_TYPES),
        ("hair_length", HAIR_LENGTHS),
        ("color_situation", COLOR_SITUATIONS),
    ):
        value = payload.get(field)
        if value is not None and value not in allowed:
            raise InvalidPayload(f"{field} must be one of: {', '.join(allowed)}")

    try:
        shop = _require_shop(shop_id)
        client = get_shop_client(shop, client_id)
        profile = hair_profile_for(shop.shop_id, client.client_id)
        if profile is None:
            profile = ClientHairProfile(shop_id=shop.shop_id, client_id=client.client_id)
            db.session.add(profile)

        for field in ("hair_type", "hair_length", "color_situation", "updated_by"):
            if field in payload:
                setattr(profile, field, payload.get(field))
        if "has_color_history" in payload:
            profile.has_color_history = bool(payload.get("has_color_history"))

        db.session.commit()
        return jsonify({"hair_profile": profile.to_dict()}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to save hair profile", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_booking.post("/shops/<int:shop_id>/duration-estimate")
def estimate_duration(shop_id: int) -> tuple[dict[str, object], int]:
    """Estimated duration of a set of services for a client's hair profile."""
    payload = request.get_json(silent=True) or {}
    try:
        shop = _require_shop(shop_id)
        services = _shop_services(shop, _parse_ids(payload.get("service_ids")))
        profile = _profile_from_request(shop, payload)
        result = calculate_service_duration(services, profile)
        return jsonify({"estimate": result.to_dict()}), 200

    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to estimate duration", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_booking.post("/shops/<int:shop_id>/questionnaire")
def questionnaire(shop_id: int) -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    try:
        shop = _require_shop(shop_id)
        services = _shop_services(shop, _parse_ids(payload.get("service_ids")))
        profile = None
        if payload.get("client_id"):
            client = get_shop_client(shop, payload["client_id"])
            profile = hair_profile_for(shop.shop_id, client.client_id)

        decision = decide_questionnaire(
            shop,
            services,
            profile,
            max_age_months=current_app.config.get("HAIR_PROFILE_MAX_AGE_MONTHS", 6),
        )
        body = decision.to_dict()
        body["existing_profile"] = profile.to_dict() if profile else None
        return jsonify(body), 200

    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to evaluate questionnaire", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


# --- Waitlist ---


@bp_booking.post("/waitlist")
def join_waitlist_entry() -> tuple[dict[str, object], int]:
    """Ask to be notified when an earlier slot frees up.
    ---
    tags:
      - Waitlist
    parameters:
      - in: body
        name: body
        required: true
        schema:
          properties:
            appointment_id:
              type: integer
            client_id:
              type: integer
            staff_id:
              type: integer
            appointment_duration_min:
              type: integer
            expires_at:
              type: string
              format: date-time
    responses:
      201:
        description: Entry created
      400:
        description: Invalid payload or past appointment
      404:
        description: Appointment or client not found
      409:
        description: Client already waiting for this appointment
    """
    payload = request.get_json(silent=True) or {}
    try:
        entry = join_waitlist(payload)
        db.session.commit()
        return jsonify({"waitlist_entry": entry.to_dict()}), 201

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to join waitlist", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_booking.delete("/waitlist/<int:waitlist_id>")
def leave_waitlist_entry(waitlist_id: int) -> tuple[dict[str, str], int]:
    try:
        leave_waitlist(get_entry(waitlist_id))
        db.session.commit()
        return jsonify({"message": "Waitlist entry removed"}), 200
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to leave waitlist", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_booking.put("/waitlist/<int:waitlist_id>/status")
def set_waitlist_status(waitlist_id: int) -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    try:
        entry = update_status(get_entry(waitlist_id), payload.get("status"))
        db.session.commit()
        return jsonify({"waitlist_entry": entry.to_dict()}), 200
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update waitlist status", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_booking.post("/waitlist/<int:waitlist_id>/accept")
def accept_waitlist_offer(waitlist_id: int) -> tuple[dict[str, object], int]:
    """Move the appointment into the offered earlier slot."""
    try:
        entry = get_entry(waitlist_id)
        appointment = accept_offer(entry)
        db.session.commit()
        return jsonify({"waitlist_entry": entry.to_dict(), "appointment": appointment.to_dict()}), 200
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to accept waitlist offer", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_booking.post("/waitlist/<int:waitlist_id>/decline")
def decline_waitlist_offer(waitlist_id: int) -> tuple[dict[str, object], int]:
    try:
        entry = decline_offer(get_entry(waitlist_id))
        db.session.commit()
        return jsonify({"waitlist_entry": entry.to_dict()}), 200
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to decline waitlist offer", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_booking.get("/clients/<int:client_id>/waitlist")
def client_waitlist(client_id: int) -> tuple[dict[str, object], int]:
    """Open waitlist entries of a client; ``?appointment_id=`` also reports membership."""
    try:
        if db.session.get(Client, client_id) is None:
            raise NotFound("Client not found")
        body = {"waitlist": [entry.to_dict() for entry in client_entries(client_id)]}
        appointment_id = request.args.get("appointment_id", type=int)
        if appointment_id is not None:
            body["in_waitlist"] = is_client_in_waitlist(client_id, appointment_id)
        return jsonify(body), 200
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch waitlist", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


# --- Notifications ---


@bp_booking.get("/clients/<int:client_id>/notifications")
def get_notifications(client_id: int) -> tuple[dict[str, object], int]:
    """Notifications of a client with pagination.
    ---
    tags:
      - Notifications
    parameters:
      - name: page
        in: query
        type: integer
        default: 1
      - name: limit
        in: query
        type: integer
        default: 20
        maximum: 50
      - name: unread_only
        in: query
        type: boolean
        default: false
    responses:
      200:
        description: List of notifications with pagination
      400:
        description: Invalid parameters
    """
    try:
        page = max(1, int(request.args.get("page", 1)))
        limit = min(50, max(1, int(request.args.get("limit", 20))))
    except (TypeError, ValueError):
        return jsonify({"error": "invalid_parameters"}), 400
    unread_only = request.args.get("unread_only", "false").lower() == "true"

    try:
        query = Notification.query.filter(Notification.client_id == client_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))

        total = query.count()
        notifications = (
            query.order_by(Notification.created_at.desc(), Notification.notification_id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
            .all()
        )
        unread_count = Notification.query.filter(
            Notification.client_id == client_id,
            Notification.is_read.is_(False),
        ).count()

        return jsonify({
            "notifications": [notification.to_dict() for notification in notifications],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": (total + limit - 1) // limit,
            },
            "unread_count": unread_count,
        }), 200

    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch notifications", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_booking.put("/notifications/<int:notification_id>/read")
def mark_notification_read(notification_id: int) -> tuple[dict[str, object], int]:
    try:
        notification = db.session.get(Notification, notification_id)
        if not notification:
            return jsonify({"error": "not_found", "message": "Notification not found"}), 404

        notification.is_read = True
        db.session.commit()
        return jsonify({"notification": notification.to_dict()}), 200
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to mark notification read", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_booking.put("/clients/<int:client_id>/notifications/read-all")
def mark_all_notifications_read(client_id: int) -> tuple[dict[str, object], int]:
    try:
        updated = Notification.query.filter(
            Notification.client_id == client_id,
            Notification.is_read.is_(False),
        ).update({"is_read": True}, synchronize_session=False)
        db.session.commit()
        return jsonify({"updated": updated}), 200
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to mark notifications read", exc_info=exc)
        return jsonify({"error": "database_error"}), 500
