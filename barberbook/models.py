"""Database models for the barberbook backend."""
from __future__ import annotations

from datetime import datetime, timezone

from .extensions import db


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def _hhmm(value) -> str | None:
    return value.strftime("%H:%M") if value else None


APPOINTMENT_STATUSES = (
    "scheduled",
    "confirmed",
    "rescheduled",
    "cancelled",
    "no_show",
    "completed",
)

WAITLIST_STATUSES = ("active", "notified", "accepted", "expired", "disabled")


class Shop(db.Model):
    """A tenant: one barbershop or hairdresser with its own staff and calendar."""

    __tablename__ = "shops"

    shop_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    slug = db.Column(db.String(160), unique=True, nullable=False, index=True)
    shop_type = db.Column(
        db.Enum(
            "barbershop",
            "hairdresser",
            name="shop_type",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        server_default="barbershop",
    )
    address = db.Column(db.String(200))
    postal_code = db.Column(db.String(20))
    city = db.Column(db.String(100))
    province = db.Column(db.String(100))
    phone = db.Column(db.String(30))
    email = db.Column(db.String(255))
    notification_email = db.Column(db.String(255))
    description = db.Column(db.Text)
    products_enabled = db.Column(db.Boolean, nullable=False, default=False)
    hair_questionnaire_enabled = db.Column(db.Boolean, nullable=False, default=False)
    auto_close_holidays = db.Column(db.Boolean, nullable=False, default=True)

    # One-off opening with up to two ranges.
    extra_opening_date = db.Column(db.Date)
    extra_morning_start = db.Column(db.Time)
    extra_morning_end = db.Column(db.Time)
    extra_afternoon_start = db.Column(db.Time)
    extra_afternoon_end = db.Column(db.Time)

    vacation_start_date = db.Column(db.Date)
    vacation_end_date = db.Column(db.Date)

    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    def to_dict(self) -> dict[str, object]:
        extra_opening = None
        if self.extra_opening_date:
            extra_opening = {
                "date": self.extra_opening_date.isoformat(),
                "morning_start": _hhmm(self.extra_morning_start),
                "morning_end": _hhmm(self.extra_morning_end),
                "afternoon_start": _hhmm(self.extra_afternoon_start),
                "afternoon_end": _hhmm(self.extra_afternoon_end),
            }
        vacation = None
        if self.vacation_start_date and self.vacation_end_date:
            vacation = {
                "start_date": self.vacation_start_date.isoformat(),
                "end_date": self.vacation_end_date.isoformat(),
            }
        return {
            "id": self.shop_id,
            "name": self.name,
            "slug": self.slug,
            "shop_type": self.shop_type,
            "address": self.address,
            "postal_code": self.postal_code,
            "city": self.city,
            "province": self.province,
            "phone": self.phone,
            "email": self.email,
            "notification_email": self.notification_email,
            "description": self.description,
            "products_enabled": bool(self.products_enabled),
            "hair_questionnaire_enabled": bool(self.hair_questionnaire_enabled),
            "auto_close_holidays": bool(self.auto_close_holidays),
            "extra_opening": extra_opening,
            "vacation_period": vacation,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class ShopDailyHours(db.Model):
    """Weekly template row: whether the shop opens on a given weekday."""

    __tablename__ = "shop_daily_hours"
    __table_args__ = (db.UniqueConstraint("shop_id", "day_of_week", name="uq_shop_day"),)

    daily_hours_id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.shop_id"), nullable=False)
    day_of_week = db.Column(db.Integer, nullable=False)  # 0=Sunday, 1=Monday, etc.
    is_open = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    time_slots = db.relationship(
        "ShopDailyTimeSlot",
        back_populates="daily_hours",
        cascade="all, delete-orphan",
        order_by="ShopDailyTimeSlot.position",
    )


class ShopDailyTimeSlot(db.Model):
    __tablename__ = "shop_daily_time_slots"

    time_slot_id = db.Column(db.Integer, primary_key=True)
    daily_hours_id = db.Column(
        db.Integer, db.ForeignKey("shop_daily_hours.daily_hours_id"), nullable=False
    )
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)

    daily_hours = db.relationship("ShopDailyHours", back_populates="time_slots")


class Staff(db.Model):
    __tablename__ = "staff"

    staff_id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.shop_id"), nullable=False)
    full_name = db.Column(db.String(150), nullable=False)
    role = db.Column(db.String(100))
    email = db.Column(db.String(255))
    phone = db.Column(db.String(30))
    specialties = db.Column(db.Text)
    bio = db.Column(db.Text)
    active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    shop = db.relationship("Shop")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.staff_id,
            "shop_id": self.shop_id,
            "full_name": self.full_name,
            "role": self.role,
            "email": self.email,
            "phone": self.phone,
            "specialties": self.specialties,
            "bio": self.bio,
            "active": bool(self.active),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Service(db.Model):
    """Services offered by a shop; variable ones are sized from the client's hair profile."""

    __tablename__ = "services"

    service_id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.shop_id"), nullable=False)
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text)
    duration_minutes = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer)
    active = db.Column(db.Boolean, nullable=False, default=True)
    is_duration_variable = db.Column(db.Boolean, nullable=False, default=False)
    duration_config = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    shop = db.relationship("Shop")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.service_id,
            "shop_id": self.shop_id,
            "name": self.name,
            "description": self.description,
            "duration_minutes": self.duration_minutes,
            "price_cents": self.price_cents,
            "active": bool(self.active),
            "is_duration_variable": bool(self.is_duration_variable),
            "duration_config": self.duration_config,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Client(db.Model):
    __tablename__ = "clients"

    client_id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.shop_id"), nullable=False)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100))
    phone_e164 = db.Column(db.String(30), nullable=False)
    email = db.Column(db.String(255))
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    shop = db.relationship("Shop")

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.client_id,
            "shop_id": self.shop_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "phone_e164": self.phone_e164,
            "email": self.email,
            "notes": self.notes,
            "created_at": _iso(self.created_at),
        }


class Appointment(db.Model):
    """A booked interval on one staff member's calendar."""

    __tablename__ = "appointments"

    appointment_id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.shop_id"), nullable=False)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.client_id"), nullable=True)
    # Walk-in clients without an account are booked by name only.
    client_name = db.Column(db.String(200))
    staff_id = db.Column(db.Integer, db.ForeignKey("staff.staff_id"), nullable=False)
    service_id = db.Column(db.Integer, db.ForeignKey("services.service_id"), nullable=False)
    starts_at = db.Column(db.DateTime, nullable=False, index=True)
    ends_at = db.Column(db.DateTime, nullable=False)
    status = db.Column(
        db.Enum(
            *APPOINTMENT_STATUSES,
            name="appointment_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        server_default="confirmed",
    )
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    shop = db.relationship("Shop")
    staff = db.relationship("Staff")
    service = db.relationship("Service")
    client = db.relationship("Client")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.appointment_id,
            "shop_id": self.shop_id,
            "client_id": self.client_id,
            "client_name": self.client.full_name if self.client else self.client_name,
            "staff_id": self.staff_id,
            "staff": {
                "id": self.staff.staff_id,
                "full_name": self.staff.full_name,
            } if self.staff else None,
            "service_id": self.service_id,
            "service": {
                "id": self.service.service_id,
                "name": self.service.name,
                "duration_minutes": self.service.duration_minutes,
                "price_cents": self.service.price_cents,
            } if self.service else None,
            "starts_at": _iso(self.starts_at),
            "ends_at": _iso(self.ends_at),
            "status": self.status,
            "notes": self.notes,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class WaitlistEntry(db.Model):
    """A client asking to be told when an earlier slot frees up for their appointment."""

    __tablename__ = "waitlist_entries"

    waitlist_id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.shop_id"), nullable=False)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.client_id"), nullable=False)
    staff_id = db.Column(db.Integer, db.ForeignKey("staff.staff_id"), nullable=True)
    appointment_id = db.Column(
        db.Integer, db.ForeignKey("appointments.appointment_id"), nullable=False
    )
    appointment_duration_min = db.Column(db.Integer, nullable=False)
    notify_if_earlier = db.Column(db.Boolean, nullable=False, default=True)
    status = db.Column(
        db.Enum(
            *WAITLIST_STATUSES,
            name="waitlist_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        server_default="active",
    )
    expires_at = db.Column(db.DateTime, nullable=False)
    notified_at = db.Column(db.DateTime)
    offered_starts_at = db.Column(db.DateTime)
    offered_ends_at = db.Column(db.DateTime)
    offered_staff_id = db.Column(db.Integer, db.ForeignKey("staff.staff_id"), nullable=True)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    client = db.relationship("Client")
    staff = db.relationship("Staff", foreign_keys=[staff_id])
    appointment = db.relationship("Appointment")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.waitlist_id,
            "shop_id": self.shop_id,
            "client_id": self.client_id,
            "staff_id": self.staff_id,
            "staff": {
                "id": self.staff.staff_id,
                "full_name": self.staff.full_name,
            } if self.staff else None,
            "appointment_id": self.appointment_id,
            "appointment": {
                "id": self.appointment.appointment_id,
                "starts_at": _iso(self.appointment.starts_at),
                "ends_at": _iso(self.appointment.ends_at),
                "service_id": self.appointment.service_id,
            } if self.appointment else None,
            "appointment_duration_min": self.appointment_duration_min,
            "notify_if_earlier": bool(self.notify_if_earlier),
            "status": self.status,
            "expires_at": _iso(self.expires_at),
            "notified_at": _iso(self.notified_at),
            "offered_starts_at": _iso(self.offered_starts_at),
            "offered_ends_at": _iso(self.offered_ends_at),
            "offered_staff_id": self.offered_staff_id,
            "notes": self.notes,
            "created_at": _iso(self.created_at),
        }


class ClientHairProfile(db.Model):
    __tablename__ = "client_hair_profiles"
    __table_args__ = (db.UniqueConstraint("client_id", "shop_id", name="uq_hair_profile_client_shop"),)

    hair_profile_id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.client_id"), nullable=False)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.shop_id"), nullable=False)
    hair_type = db.Column(db.String(30))
    hair_length = db.Column(db.String(30))
    has_color_history = db.Column(db.Boolean, nullable=False, default=False)
    color_situation = db.Column(db.String(30))
    updated_by = db.Column(db.String(100))
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.hair_profile_id,
            "client_id": self.client_id,
            "shop_id": self.shop_id,
            "hair_type": self.hair_type,
            "hair_length": self.hair_length,
            "has_color_history": bool(self.has_color_history),
            "color_situation": self.color_situation,
            "updated_by": self.updated_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Notification(db.Model):
    """Client-facing notices (confirmations, cancellations, earlier-slot offers)."""

    __tablename__ = "notifications"

    notification_id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.shop_id"), nullable=False)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.client_id"), nullable=False)
    appointment_id = db.Column(
        db.Integer, db.ForeignKey("appointments.appointment_id"), nullable=True
    )
    waitlist_id = db.Column(
        db.Integer, db.ForeignKey("waitlist_entries.waitlist_id"), nullable=True
    )
    notification_type = db.Column(db.String(50), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.notification_id,
            "shop_id": self.shop_id,
            "client_id": self.client_id,
            "appointment_id": self.appointment_id,
            "waitlist_id": self.waitlist_id,
            "notification_type": self.notification_type,
            "title": self.title,
            "message": self.message,
            "is_read": bool(self.is_read),
            "created_at": _iso(self.created_at),
        }
