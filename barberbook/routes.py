"""HTTP routes for shops, opening hours, staff, services and clients."""
from __future__ import annotations

from datetime import date, datetime

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import or_, text
from sqlalchemy.exc import SQLAlchemyError

from .booking import cancel_appointments_in_range, parse_date
from .extensions import db
from .holidays import holiday_name, national_holidays
from .hours_store import load_schedule, load_shop_hours, save_shop_hours
from .models import (
    Appointment,
    Client,
    ClientHairProfile,
    Notification,
    Service,
    Shop,
    Staff,
    WaitlistEntry,
)
from .shop_hours import (
    DailyHours,
    ExtraOpening,
    ShopSchedule,
    TimeRange,
    VacationPeriod,
    config_from_dict,
    config_to_dict,
)
from .slug import slugify, unique_slug

bp = Blueprint("api", __name__)

SHOP_TYPES = ("barbershop", "hairdresser")
SHOP_TEXT_FIELDS = (
    "address",
    "postal_code",
    "city",
    "province",
    "phone",
    "email",
    "notification_email",
    "description",
)
SHOP_FLAG_FIELDS = ("products_enabled", "hair_questionnaire_enabled", "auto_close_holidays")


def _get_shop(shop_id: int):
    return db.session.get(Shop, shop_id)


def _shop_not_found():
    return jsonify({"error": "not_found", "message": "Shop not found"}), 404


def _invalid(message: str):
    db.session.rollback()
    return jsonify({"error": "invalid_payload", "message": message}), 400


def _slug_taken(candidate: str, exclude_shop_id: int | None = None) -> bool:
    query = Shop.query.filter(Shop.slug == candidate)
    if exclude_shop_id is not None:
        query = query.filter(Shop.shop_id != exclude_shop_id)
    return query.first() is not None


@bp.get("/health")
def health_check() -> tuple[dict[str, str], int]:
    """
    Expose a simple uptime check endpoint.
    ---
    tags:
      - Health
    responses:
      200:
        description: Service is healthy and running.
    """
    return jsonify({"status": "ok"}), 200


@bp.get("/db-health")
def database_health() -> tuple[dict[str, str], int]:
    """Check connectivity to the configured database."""
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        current_app.logger.exception("Database connectivity check failed", exc_info=exc)
        return jsonify({"database": "unavailable"}), 500

    return jsonify({"database": "ok"}), 200


@bp.get("/holidays")
def list_holidays() -> tuple[dict[str, object], int]:
    """National holidays of a year (defaults to the current one).
    ---
    tags:
      - Hours
    parameters:
      - name: year
        in: query
        type: integer
    responses:
      200:
        description: Holiday dates with their names
      400:
        description: Invalid year
    """
    year = request.args.get("year", type=int) or date.today().year
    if not 1583 <= year <= 9999:
        return _invalid("year must be a Gregorian calendar year")

    holidays = [
        {"date": day.isoformat(), "name": holiday_name(day)}
        for day in national_holidays(year)
    ]
    return jsonify({"year": year, "holidays": holidays}), 200


# --- Shops ---


@bp.post("/shops")
def create_shop() -> tuple[dict[str, object], int]:
    """Create a shop with a unique public slug.
    ---
    tags:
      - Shops
    parameters:
      - in: body
        name: body
        required: true
        schema:
          properties:
            name:
              type: string
            slug:
              type: string
            shop_type:
              type: string
              enum: [barbershop, hairdresser]
    responses:
      201:
        description: Shop created
      400:
        description: Invalid payload
      409:
        description: No free slug
    """
    payload = request.get_json(silent=True) or {}
    name = (payload.get("name") or "").strip()
    if not name:
        return _invalid("name is required")

    shop_type = payload.get("shop_type") or "barbershop"
    if shop_type not in SHOP_TYPES:
        return _invalid(f"shop_type must be one of: {', '.join(SHOP_TYPES)}")

    try:
        try:
            slug = unique_slug(payload.get("slug") or name, _slug_taken)
        except ValueError as exc:
            return jsonify({"error": "conflict", "message": str(exc)}), 409

        shop = Shop(name=name, slug=slug, shop_type=shop_type)
        for field in SHOP_TEXT_FIELDS:
            if field in payload:
                setattr(shop, field, (payload.get(field) or "").strip() or None)
        for field in SHOP_FLAG_FIELDS:
            if field in payload:
                setattr(shop, field, bool(payload.get(field)))

        db.session.add(shop)
        db.session.commit()
        current_app.logger.info("Created shop %s with slug %s", shop.shop_id, shop.slug)
        return jsonify({"shop": shop.to_dict()}), 201

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create shop", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.get("/shops/<int:shop_id>")
def get_shop(shop_id: int) -> tuple[dict[str, object], int]:
    try:
        shop = _get_shop(shop_id)
        if not shop:
            return _shop_not_found()
        return jsonify({"shop": shop.to_dict()}), 200
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch shop", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.get("/shops/by-slug/<string:slug>")
def get_shop_by_slug(slug: str) -> tuple[dict[str, object], int]:
    """Resolve the shop behind a public booking URL."""
    try:
        shop = Shop.query.filter_by(slug=slug.strip().lower()).first()
        if not shop:
            return _shop_not_found()
        return jsonify({"shop": shop.to_dict()}), 200
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch shop by slug", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.put("/shops/<int:shop_id>")
def update_shop(shop_id: int) -> tuple[dict[str, object], int]:
    """Update shop details.
    ---
    tags:
      - Shops
    responses:
      200:
        description: Shop updated
      400:
        description: Invalid payload
      404:
        description: Shop not found
      409:
        description: Slug already in use
    """
    payload = request.get_json(silent=True) or {}

    try:
        shop = _get_shop(shop_id)
        if not shop:
            return _shop_not_found()

        if "name" in payload:
            name = (payload.get("name") or "").strip()
            if not name:
                return _invalid("name cannot be empty")
            shop.name = name

        if "shop_type" in payload:
            if payload["shop_type"] not in SHOP_TYPES:
                return _invalid(f"shop_type must be one of: {', '.join(SHOP_TYPES)}")
            shop.shop_type = payload["shop_type"]

        if "slug" in payload:
            slug = slugify(payload.get("slug") or shop.name)
            if _slug_taken(slug, exclude_shop_id=shop.shop_id):
                db.session.rollback()
                return jsonify({"error": "conflict", "message": "slug is already in use"}), 409
            shop.slug = slug

        for field in SHOP_TEXT_FIELDS:
            if field in payload:
                setattr(shop, field, (payload.get(field) or "").strip() or None)
        for field in SHOP_FLAG_FIELDS:
            if field in payload:
                setattr(shop, field, bool(payload.get(field)))

        db.session.commit()
        return jsonify({"shop": shop.to_dict()}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update shop", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.put("/shops/<int:shop_id>/extra-opening")
def set_extra_opening(shop_id: int) -> tuple[dict[str, object], int]:
    """Open the shop on one extra date with up to two time ranges.
    ---
    tags:
      - Hours
    parameters:
      - in: body
        name: body
        required: true
        schema:
          properties:
            date:
              type: string
              format: date
              description: null clears the extra opening
            morning_start:
              type: string
            morning_end:
              type: string
            afternoon_start:
              type: string
            afternoon_end:
              type: string
    responses:
      200:
        description: Extra opening saved
      400:
        description: Invalid ranges
      404:
        description: Shop not found
    """
    payload = request.get_json(silent=True) or {}

    try:
        shop = _get_shop(shop_id)
        if not shop:
            return _shop_not_found()

        if not payload.get("date"):
            shop.extra_opening_date = None
            shop.extra_morning_start = shop.extra_morning_end = None
            shop.extra_afternoon_start = shop.extra_afternoon_end = None
            db.session.commit()
            return jsonify({"shop": shop.to_dict()}), 200

        extra_date = parse_date(payload.get("date"), "date")
        try:
            morning = None
            if payload.get("morning_start") or payload.get("morning_end"):
                morning = TimeRange(payload.get("morning_start") or "", payload.get("morning_end") or "")
            afternoon = None
            if payload.get("afternoon_start") or payload.get("afternoon_end"):
                afternoon = TimeRange(payload.get("afternoon_start") or "", payload.get("afternoon_end") or "")
            extra = ExtraOpening(extra_date, morning, afternoon).validate()
        except ValueError as exc:
            return _invalid(str(exc))

        shop.extra_opening_date = extra.date
        shop.extra_morning_start = _to_time(morning.start) if morning else None
        shop.extra_morning_end = _to_time(morning.end) if morning else None
        shop.extra_afternoon_start = _to_time(afternoon.start) if afternoon else None
        shop.extra_afternoon_end = _to_time(afternoon.end) if afternoon else None
        db.session.commit()
        return jsonify({"shop": shop.to_dict()}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to save extra opening", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


def _to_time(value: str):
    return datetime.strptime(value, "%H:%M").time()


@bp.put("/shops/<int:shop_id>/auto-close-holidays")
def set_auto_close_holidays(shop_id: int) -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload.get("enabled"), bool):
        return _invalid("enabled must be a boolean")

    try:
        shop = _get_shop(shop_id)
        if not shop:
            return _shop_not_found()
        shop.auto_close_holidays = payload["enabled"]
        db.session.commit()
        return jsonify({"shop": shop.to_dict()}), 200
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update holiday auto-close", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.put("/shops/<int:shop_id>/vacation")
def set_vacation(shop_id: int) -> tuple[dict[str, object], int]:
    """Close the shop for a vacation period.
    ---
    tags:
      - Hours
    parameters:
      - in: body
        name: body
        required: true
        schema:
          properties:
            start_date:
              type: string
              format: date
            end_date:
              type: string
              format: date
            cancel_appointments:
              type: boolean
              description: cancel the appointments booked inside the period
    responses:
      200:
        description: Vacation saved
      400:
        description: Invalid dates
      404:
        description: Shop not found
    """
    payload = request.get_json(silent=True) or {}
    start_date = parse_date(payload.get("start_date"), "start_date")
    end_date = parse_date(payload.get("end_date"), "end_date")
    try:
        vacation = VacationPeriod(start_date, end_date).validate()
    except ValueError as exc:
        return _invalid(str(exc))

    try:
        shop = _get_shop(shop_id)
        if not shop:
            return _shop_not_found()

        shop.vacation_start_date = vacation.start_date
        shop.vacation_end_date = vacation.end_date
        cancelled = []
        if payload.get("cancel_appointments"):
            cancelled = cancel_appointments_in_range(shop, vacation.start_date, vacation.end_date)
        db.session.commit()

        return jsonify({
            "shop": shop.to_dict(),
            "cancelled_appointments": [appointment.appointment_id for appointment in cancelled],
        }), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to save vacation period", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.delete("/shops/<int:shop_id>/vacation")
def clear_vacation(shop_id: int) -> tuple[dict[str, object], int]:
    try:
        shop = _get_shop(shop_id)
        if not shop:
            return _shop_not_found()
        shop.vacation_start_date = None
        shop.vacation_end_date = None
        db.session.commit()
        return jsonify({"shop": shop.to_dict()}), 200
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to clear vacation period", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


# --- Opening hours ---


def _hours_response(schedule: ShopSchedule, changed: bool | None = None):
    body = {"hours": config_to_dict(schedule.weekly), "summary": schedule.summary()}
    if changed is not None:
        body["changed"] = changed
    return body


def _edit_hours(shop_id: int, edit):
    """Load the template, apply ``edit(schedule)`` and persist the result."""
    try:
        shop = _get_shop(shop_id)
        if not shop:
            return _shop_not_found()

        schedule = ShopSchedule(load_shop_hours(shop_id))
        try:
            edit(schedule)
        except IndexError as exc:
            return jsonify({"error": "not_found", "message": str(exc)}), 404
        except ValueError as exc:
            return _invalid(str(exc))

        changed = save_shop_hours(shop_id, schedule.weekly)
        return jsonify(_hours_response(schedule, changed)), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to save opening hours", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.get("/shops/<int:shop_id>/hours")
def get_hours(shop_id: int) -> tuple[dict[str, object], int]:
    """Weekly opening hours keyed by day of week (0=Sunday).
    ---
    tags:
      - Hours
    responses:
      200:
        description: Weekly template and a one-line summary
      404:
        description: Shop not found
      500:
        description: Database unavailable and no cached hours
    """
    try:
        shop = _get_shop(shop_id)
        if not shop:
            return _shop_not_found()
        return jsonify(_hours_response(ShopSchedule(load_shop_hours(shop_id)))), 200
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to load opening hours", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.put("/shops/<int:shop_id>/hours")
def replace_hours(shop_id: int) -> tuple[dict[str, object], int]:
    """Replace the whole weekly template; only changed days are written."""
    payload = request.get_json(silent=True) or {}
    if "hours" not in payload:
        return _invalid("hours is required")
    try:
        config = config_from_dict(payload["hours"])
    except ValueError as exc:
        return _invalid(str(exc))

    def edit(schedule: ShopSchedule) -> None:
        schedule.weekly = config

    return _edit_hours(shop_id, edit)


@bp.put("/shops/<int:shop_id>/hours/<int:day>")
def update_day(shop_id: int, day: int) -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    try:
        hours = DailyHours.from_dict(payload)
    except ValueError as exc:
        return _invalid(str(exc))
    return _edit_hours(shop_id, lambda schedule: schedule.update_day_hours(day, hours))


@bp.post("/shops/<int:shop_id>/hours/<int:day>/toggle")
def toggle_day(shop_id: int, day: int) -> tuple[dict[str, object], int]:
    return _edit_hours(shop_id, lambda schedule: schedule.toggle_day_open(day))


@bp.post("/shops/<int:shop_id>/hours/<int:day>/slots")
def add_slot(shop_id: int, day: int) -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    try:
        time_range = TimeRange.from_dict(payload)
    except ValueError as exc:
        return _invalid(str(exc))
    return _edit_hours(shop_id, lambda schedule: schedule.add_time_slot(day, time_range))


@bp.put("/shops/<int:shop_id>/hours/<int:day>/slots/<int:index>")
def update_slot(shop_id: int, day: int, index: int) -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    try:
        time_range = TimeRange.from_dict(payload)
    except ValueError as exc:
        return _invalid(str(exc))
    return _edit_hours(shop_id, lambda schedule: schedule.update_time_slot(day, index, time_range))


@bp.delete("/shops/<int:shop_id>/hours/<int:day>/slots/<int:index>")
def delete_slot(shop_id: int, day: int, index: int) -> tuple[dict[str, object], int]:
    return _edit_hours(shop_id, lambda schedule: schedule.remove_time_slot(day, index))


@bp.get("/shops/<int:shop_id>/hours/summary")
def hours_summary(shop_id: int) -> tuple[dict[str, object], int]:
    try:
        shop = _get_shop(shop_id)
        if not shop:
            return _shop_not_found()
        return jsonify({"summary": ShopSchedule(load_shop_hours(shop_id)).summary()}), 200
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to load opening hours", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.get("/shops/<int:shop_id>/calendar")
def day_calendar(shop_id: int) -> tuple[dict[str, object], int]:
    """Effective hours of one date after vacation, holiday and extra-opening rules.
    ---
    tags:
      - Hours
    parameters:
      - name: date
        in: query
        type: string
        format: date
        required: true
      - name: slot_minutes
        in: query
        type: integer
        default: 30
    responses:
      200:
        description: Open flag, closure reason, ranges and slot start times
      400:
        description: Invalid date
      404:
        description: Shop not found
    """
    day = parse_date(request.args.get("date"), "date")
    slot_minutes = request.args.get("slot_minutes", default=30, type=int)
    if slot_minutes <= 0:
        return _invalid("slot_minutes must be positive")

    try:
        shop = _get_shop(shop_id)
        if not shop:
            return _shop_not_found()

        schedule = load_schedule(shop)
        hours = schedule.hours_for(day)
        return jsonify({
            "date": day.isoformat(),
            "is_open": schedule.is_date_open(day),
            "closure_reason": schedule.closure_reason(day),
            "holiday": holiday_name(day),
            "time_slots": [slot.to_dict() for slot in hours.time_slots] if hours.is_open else [],
            "available_slots": schedule.get_available_time_slots(day, slot_minutes),
        }), 200

    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to build calendar day", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


# --- Staff ---


@bp.get("/shops/<int:shop_id>/staff")
def list_staff(shop_id: int) -> tuple[dict[str, list[dict[str, object]]], int]:
    """Staff of a shop; ``?active=true`` hides deactivated members."""
    try:
        if not _get_shop(shop_id):
            return _shop_not_found()

        query = Staff.query.filter_by(shop_id=shop_id)
        if request.args.get("active") in {"1", "true", "True"}:
            query = query.filter_by(active=True)
        staff_members = query.order_by(Staff.full_name.asc()).all()
        return jsonify({"staff": [member.to_dict() for member in staff_members]}), 200

    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch staff members", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


STAFF_FIELDS = ("role", "email", "phone", "specialties", "bio")


@bp.post("/shops/<int:shop_id>/staff")
def create_staff(shop_id: int) -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    full_name = (payload.get("full_name") or "").strip()
    if not full_name:
        return _invalid("full_name is required")

    if not _get_shop(shop_id):
        return _shop_not_found()

    try:
        staff = Staff(shop_id=shop_id, full_name=full_name, active=bool(payload.get("active", True)))
        for field in STAFF_FIELDS:
            if field in payload:
                setattr(staff, field, (payload.get(field) or "").strip() or None)
        db.session.add(staff)
        db.session.commit()
        return jsonify({"staff": staff.to_dict()}), 201

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create staff member", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.put("/shops/<int:shop_id>/staff/<int:staff_id>")
def update_staff(shop_id: int, staff_id: int) -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}

    try:
        staff = Staff.query.filter_by(staff_id=staff_id, shop_id=shop_id).first()
        if not staff:
            return jsonify({"error": "not_found", "message": "Staff member not found"}), 404

        if "full_name" in payload:
            full_name = (payload.get("full_name") or "").strip()
            if not full_name:
                return _invalid("full_name cannot be empty")
            staff.full_name = full_name
        for field in STAFF_FIELDS:
            if field in payload:
                setattr(staff, field, (payload.get(field) or "").strip() or None)
        if "active" in payload:
            staff.active = bool(payload.get("active"))

        db.session.commit()
        return jsonify({"staff": staff.to_dict()}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update staff member", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.delete("/shops/<int:shop_id>/staff/<int:staff_id>")
def delete_staff(shop_id: int, staff_id: int) -> tuple[dict[str, str], int]:
    """Delete a staff member, or deactivate one that still has appointments."""
    try:
        staff = Staff.query.filter_by(staff_id=staff_id, shop_id=shop_id).first()
        if not staff:
            return jsonify({"error": "not_found", "message": "Staff member not found"}), 404

        if Appointment.query.filter_by(staff_id=staff_id).first():
            staff.active = False
            db.session.commit()
            return jsonify({"message": "Staff member deactivated"}), 200

        db.session.delete(staff)
        db.session.commit()
        return jsonify({"message": "Staff member deleted successfully"}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete staff member", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


# --- Services ---


def _service_fields(payload: dict, service: Service) -> str | None:
    """Copy service fields from ``payload``; returns an error message on bad input."""
    if "name" in payload:
        name = (payload.get("name") or "").strip()
        if not name:
            return "name cannot be empty"
        service.name = name
    if "description" in payload:
        service.description = (payload.get("description") or "").strip() or None
    if "duration_minutes" in payload:
        duration = payload.get("duration_minutes")
        if not isinstance(duration, int) or isinstance(duration, bool) or duration <= 0:
            return "duration_minutes must be a positive integer"
        service.duration_minutes = duration
    if "price_cents" in payload:
        price = payload.get("price_cents")
        if price is not None and (not isinstance(price, int) or isinstance(price, bool) or price < 0):
            return "price_cents must be a non-negative integer"
        service.price_cents = price
    if "active" in payload:
        service.active = bool(payload.get("active"))
    if "is_duration_variable" in payload:
        service.is_duration_variable = bool(payload.get("is_duration_variable"))
    if "duration_config" in payload:
        config = payload.get("duration_config")
        if config is not None and not isinstance(config, dict):
            return "duration_config must be an object"
        service.duration_config = config
    return None


@bp.get("/shops/<int:shop_id>/services")
def list_services(shop_id: int) -> tuple[dict[str, list[dict[str, object]]], int]:
    try:
        if not _get_shop(shop_id):
            return _shop_not_found()
        query = Service.query.filter_by(shop_id=shop_id)
        if request.args.get("active") in {"1", "true", "True"}:
            query = query.filter_by(active=True)
        services = query.order_by(Service.name.asc()).all()
        return jsonify({"services": [service.to_dict() for service in services]}), 200
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch services", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.post("/shops/<int:shop_id>/services")
def create_service(shop_id: int) -> tuple[dict[str, object], int]:
    """Create a service.
    ---
    tags:
      - Services
    parameters:
      - in: body
        name: body
        required: true
        schema:
          properties:
            name:
              type: string
            duration_minutes:
              type: integer
            price_cents:
              type: integer
            is_duration_variable:
              type: boolean
            duration_config:
              type: object
          required:
            - name
            - duration_minutes
    responses:
      201:
        description: Service created
      400:
        description: Invalid payload
      404:
        description: Shop not found
    """
    payload = request.get_json(silent=True) or {}
    if not (payload.get("name") or "").strip() or "duration_minutes" not in payload:
        return _invalid("name and duration_minutes are required")

    if not _get_shop(shop_id):
        return _shop_not_found()

    service = Service(shop_id=shop_id, active=True, is_duration_variable=False)
    error = _service_fields(payload, service)
    if error:
        return _invalid(error)

    try:
        db.session.add(service)
        db.session.commit()
        return jsonify({"service": service.to_dict()}), 201
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create service", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.put("/shops/<int:shop_id>/services/<int:service_id>")
def update_service(shop_id: int, service_id: int) -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}

    try:
        service = Service.query.filter_by(service_id=service_id, shop_id=shop_id).first()
        if not service:
            return jsonify({"error": "not_found", "message": "Service not found"}), 404

        error = _service_fields(payload, service)
        if error:
            return _invalid(error)

        db.session.commit()
        return jsonify({"service": service.to_dict()}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update service", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.delete("/shops/<int:shop_id>/services/<int:service_id>")
def delete_service(shop_id: int, service_id: int) -> tuple[dict[str, str], int]:
    try:
        service = Service.query.filter_by(service_id=service_id, shop_id=shop_id).first()
        if not service:
            return jsonify({"error": "not_found", "message": "Service not found"}), 404

        # Booked services stay for history and are only hidden.
        if Appointment.query.filter_by(service_id=service_id).first():
            service.active = False
            db.session.commit()
            return jsonify({"message": "Service deactivated"}), 200

        db.session.delete(service)
        db.session.commit()
        return jsonify({"message": "Service deleted successfully"}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete service", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


# --- Clients ---

CLIENT_FIELDS = ("last_name", "email", "notes")


@bp.get("/shops/<int:shop_id>/clients")
def list_clients(shop_id: int) -> tuple[dict[str, list[dict[str, object]]], int]:
    """Clients of a shop, optionally filtered by ``?q=`` on name, phone or email."""
    try:
        if not _get_shop(shop_id):
            return _shop_not_found()

        query = Client.query.filter_by(shop_id=shop_id)
        term = (request.args.get("q") or "").strip()
        if term:
            pattern = f"%{term}%"
            query = query.filter(
                or_(
                    Client.first_name.ilike(pattern),
                    Client.last_name.ilike(pattern),
                    Client.phone_e164.ilike(pattern),
                    Client.email.ilike(pattern),
                )
            )
        clients = query.order_by(Client.first_name.asc(), Client.last_name.asc()).all()
        return jsonify({"clients": [client.to_dict() for client in clients]}), 200

    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch clients", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.post("/shops/<int:shop_id>/clients")
def create_client(shop_id: int) -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    first_name = (payload.get("first_name") or "").strip()
    phone = (payload.get("phone_e164") or "").strip()
    if not first_name or not phone:
        return _invalid("first_name and phone_e164 are required")

    if not _get_shop(shop_id):
        return _shop_not_found()

    try:
        client = Client(shop_id=shop_id, first_name=first_name, phone_e164=phone)
        for field in CLIENT_FIELDS:
            if field in payload:
                setattr(client, field, (payload.get(field) or "").strip() or None)
        db.session.add(client)
        db.session.commit()
        return jsonify({"client": client.to_dict()}), 201

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create client", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.put("/shops/<int:shop_id>/clients/<int:client_id>")
def update_client(shop_id: int, client_id: int) -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}

    try:
        client = Client.query.filter_by(client_id=client_id, shop_id=shop_id).first()
        if not client:
            return jsonify({"error": "not_found", "message": "Client not found"}), 404

        for field in ("first_name", "phone_e164"):
            if field in payload:
                value = (payload.get(field) or "").strip()
                if not value:
                    return _invalid(f"{field} cannot be empty")
                setattr(client, field, value)
        for field in CLIENT_FIELDS:
            if field in payload:
                setattr(client, field, (payload.get(field) or "").strip() or None)

        db.session.commit()
        return jsonify({"client": client.to_dict()}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update client", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.delete("/shops/<int:shop_id>/clients/<int:client_id>")
def delete_client(shop_id: int, client_id: int) -> tuple[dict[str, str], int]:
    try:
        client = Client.query.filter_by(client_id=client_id, shop_id=shop_id).first()
        if not client:
            return jsonify({"error": "not_found", "message": "Client not found"}), 404

        if Appointment.query.filter_by(client_id=client_id).first():
            return jsonify({
                "error": "conflict",
                "message": "Client has appointments and cannot be deleted",
            }), 409

        ClientHairProfile.query.filter_by(client_id=client_id).delete()
        Notification.query.filter_by(client_id=client_id).delete()
        WaitlistEntry.query.filter_by(client_id=client_id).delete()
        db.session.delete(client)
        db.session.commit()
        return jsonify({"message": "Client deleted successfully"}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete client", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


def register_routes(app) -> None:
    """Attach every API blueprint to ``app``."""
    from .routes_booking import bp_booking

    app.register_blueprint(bp)
    app.register_blueprint(bp_booking)
