"""Tests for the waitlist: joining, offers of freed slots, accepting and declining."""
from __future__ import annotations

from datetime import datetime

from barberbook.extensions import db
from barberbook.models import Appointment, Notification, WaitlistEntry
from barberbook.waitlist import expire_stale_entries


def _book(client, setup_shop, starts_at: str, **overrides) -> dict:
    payload = {
        "staff_id": setup_shop["staff_id"],
        "service_id": setup_shop["service_id"],
        "client_id": setup_shop["client_id"],
        "starts_at": starts_at,
    }
    payload.update(overrides)
    response = client.post(f"/shops/{setup_shop['shop_id']}/appointments", json=payload)
    assert response.status_code == 201, response.get_json()
    return response.get_json()["appointment"]


def _join(client, appointment: dict, client_id: int, **extra):
    payload = {"appointment_id": appointment["id"], "client_id": client_id}
    payload.update(extra)
    return client.post("/waitlist", json=payload)


def _walk_in(client, setup_shop, starts_at: str, **overrides) -> dict:
    return _book(client, setup_shop, starts_at, client_id=None, client_name="Mario", **overrides)


def test_join_waitlist_201(client, setup_shop) -> None:
    later = _book(client, setup_shop, "2030-03-12T10:00:00")

    response = _join(client, later, setup_shop["client_id"])
    data = response.get_json()["waitlist_entry"]

    assert response.status_code == 201
    assert data["status"] == "active"
    assert data["staff_id"] == setup_shop["staff_id"]
    assert data["appointment_duration_min"] == 30
    assert data["notify_if_earlier"] is True

    listed = client.get(
        f"/clients/{setup_shop['client_id']}/waitlist?appointment_id={later['id']}"
    ).get_json()
    assert [entry["id"] for entry in listed["waitlist"]] == [data["id"]]
    assert listed["in_waitlist"] is True


def test_join_waitlist_errors(client, setup_shop) -> None:
    later = _book(client, setup_shop, "2030-03-12T10:00:00")
    past = _book(client, setup_shop, "2020-03-03T10:00:00")

    assert client.post("/waitlist", json={"client_id": setup_shop["client_id"]}).status_code == 400
    assert _join(client, {"id": 999}, setup_shop["client_id"]).status_code == 404
    assert _join(client, later, 999).status_code == 404
    assert _join(client, later, setup_shop["other_client_id"]).status_code == 400
    assert _join(client, past, setup_shop["client_id"]).status_code == 400
    assert _join(client, later, setup_shop["client_id"], appointment_duration_min=0).status_code == 400

    assert _join(client, later, setup_shop["client_id"]).status_code == 201
    duplicate = _join(client, later, setup_shop["client_id"])
    assert duplicate.status_code == 409
    assert duplicate.get_json()["error"] == "conflict"


def test_cancellation_offers_the_slot_to_the_oldest_entry(client, setup_shop) -> None:
    freed = _walk_in(client, setup_shop, "2030-03-05T10:00:00")
    anna_later = _book(client, setup_shop, "2030-03-12T10:00:00")
    luca_later = _book(client, setup_shop, "2030-03-12T11:00:00", client_id=setup_shop["other_client_id"])
    anna_entry = _join(client, anna_later, setup_shop["client_id"]).get_json()["waitlist_entry"]
    luca_entry = _join(client, luca_later, setup_shop["other_client_id"]).get_json()["waitlist_entry"]

    response = client.delete(f"/appointments/{freed['id']}")
    offer = response.get_json()["waitlist_offer"]

    assert offer["id"] == anna_entry["id"]
    assert offer["status"] == "notified"
    assert offer["offered_starts_at"] == "2030-03-05T10:00:00"
    assert offer["offered_ends_at"] == "2030-03-05T10:30:00"
    assert offer["offered_staff_id"] == setup_shop["staff_id"]
    assert db.session.get(WaitlistEntry, luca_entry["id"]).status == "active"

    notification = Notification.query.filter_by(notification_type="waitlist_slot_available").one()
    assert notification.client_id == setup_shop["client_id"]
    assert notification.waitlist_id == anna_entry["id"]


def test_offers_respect_staff_and_duration(client, setup_shop) -> None:
    freed = _walk_in(client, setup_shop, "2030-03-05T10:00:00")
    with_giulia = _book(
        client, setup_shop, "2030-03-12T10:00:00", staff_id=setup_shop["other_staff_id"]
    )
    too_long = _book(client, setup_shop, "2030-03-12T11:00:00", client_id=setup_shop["other_client_id"])
    _join(client, with_giulia, setup_shop["client_id"])
    _join(client, too_long, setup_shop["other_client_id"], appointment_duration_min=60)

    response = client.delete(f"/appointments/{freed['id']}")

    assert response.get_json()["waitlist_offer"] is None
    assert WaitlistEntry.query.filter_by(status="active").count() == 2


def test_entries_without_staff_take_any_staff_member(client, setup_shop) -> None:
    freed = _walk_in(client, setup_shop, "2030-03-05T10:00:00", staff_id=setup_shop["other_staff_id"])
    later = _book(client, setup_shop, "2030-03-12T10:00:00")
    _join(client, later, setup_shop["client_id"], staff_id=None)

    offer = client.delete(f"/appointments/{freed['id']}").get_json()["waitlist_offer"]

    assert offer["offered_staff_id"] == setup_shop["other_staff_id"]


def test_earlier_appointments_are_not_offered_a_later_slot(client, setup_shop) -> None:
    freed = _walk_in(client, setup_shop, "2030-03-12T10:00:00")
    earlier = _book(client, setup_shop, "2030-03-05T10:00:00")
    _join(client, earlier, setup_shop["client_id"])

    assert client.delete(f"/appointments/{freed['id']}").get_json()["waitlist_offer"] is None


def test_accept_moves_the_appointment(client, setup_shop) -> None:
    freed = _walk_in(client, setup_shop, "2030-03-05T10:00:00")
    later = _book(client, setup_shop, "2030-03-12T10:00:00")
    entry = _join(client, later, setup_shop["client_id"]).get_json()["waitlist_entry"]
    client.delete(f"/appointments/{freed['id']}")

    response = client.post(f"/waitlist/{entry['id']}/accept")
    data = response.get_json()

    assert response.status_code == 200
    assert data["waitlist_entry"]["status"] == "accepted"
    assert data["appointment"]["starts_at"] == "2030-03-05T10:00:00"
    assert data["appointment"]["status"] == "rescheduled"

    again = client.post(f"/waitlist/{entry['id']}/accept")
    assert again.status_code == 400
    assert again.get_json()["error"] == "invalid_status"


def test_accept_fails_when_the_slot_was_taken(client, setup_shop) -> None:
    freed = _walk_in(client, setup_shop, "2030-03-05T10:00:00")
    later = _book(client, setup_shop, "2030-03-12T10:00:00")
    entry = _join(client, later, setup_shop["client_id"]).get_json()["waitlist_entry"]
    client.delete(f"/appointments/{freed['id']}")
    _walk_in(client, setup_shop, "2030-03-05T10:00:00")

    response = client.post(f"/waitlist/{entry['id']}/accept")

    assert response.status_code == 409
    assert db.session.get(Appointment, later["id"]).starts_at == datetime(2030, 3, 12, 10, 0)


def test_decline_returns_the_entry_to_active(client, setup_shop) -> None:
    freed = _walk_in(client, setup_shop, "2030-03-05T10:00:00")
    later = _book(client, setup_shop, "2030-03-12T10:00:00")
    entry = _join(client, later, setup_shop["client_id"]).get_json()["waitlist_entry"]
    client.delete(f"/appointments/{freed['id']}")

    response = client.post(f"/waitlist/{entry['id']}/decline")
    data = response.get_json()["waitlist_entry"]

    assert data["status"] == "active"
    assert data["offered_starts_at"] is None
    assert data["offered_staff_id"] is None
    assert client.post(f"/waitlist/{entry['id']}/decline").status_code == 400


def test_status_update_and_leave(client, setup_shop) -> None:
    later = _book(client, setup_shop, "2030-03-12T10:00:00")
    entry = _join(client, later, setup_shop["client_id"]).get_json()["waitlist_entry"]

    notified = client.put(f"/waitlist/{entry['id']}/status", json={"status": "notified"})
    assert notified.get_json()["waitlist_entry"]["notified_at"] is not None
    assert client.put(f"/waitlist/{entry['id']}/status", json={"status": "maybe"}).status_code == 400

    assert client.delete(f"/waitlist/{entry['id']}").status_code == 200
    assert client.delete(f"/waitlist/{entry['id']}").status_code == 404
    listed = client.get(f"/clients/{setup_shop['client_id']}/waitlist?appointment_id={later['id']}")
    assert listed.get_json() == {"waitlist": [], "in_waitlist": False}


def test_client_waitlist_unknown_client_404(client) -> None:
    assert client.get("/clients/999/waitlist").status_code == 404


def test_expire_stale_entries(app, client, setup_shop) -> None:
    later = _book(client, setup_shop, "2030-03-12T10:00:00")
    _join(client, later, setup_shop["client_id"], expires_at="2030-03-01T00:00:00")

    assert expire_stale_entries(now=datetime(2030, 2, 1)) == 0
    assert expire_stale_entries(now=datetime(2030, 3, 2)) == 1
    db.session.commit()

    assert WaitlistEntry.query.one().status == "expired"


def test_cancelling_through_update_offers_the_slot(client, setup_shop) -> None:
    freed = _walk_in(client, setup_shop, "2030-03-05T10:00:00")
    later = _book(client, setup_shop, "2030-03-12T10:00:00")
    entry = _join(client, later, setup_shop["client_id"]).get_json()["waitlist_entry"]

    response = client.put(f"/appointments/{freed['id']}", json={"status": "cancelled"})

    assert response.status_code == 200
    assert response.get_json()["appointment"]["status"] == "cancelled"
    assert db.session.get(WaitlistEntry, entry["id"]).status == "notified"
    assert Notification.query.filter_by(notification_type="waitlist_slot_available").count() == 1


def test_cancelling_an_appointment_closes_its_waitlist_entries(client, setup_shop) -> None:
    later = _book(client, setup_shop, "2030-03-12T10:00:00")
    entry = _join(client, later, setup_shop["client_id"]).get_json()["waitlist_entry"]

    client.delete(f"/appointments/{later['id']}")

    assert db.session.get(WaitlistEntry, entry["id"]).status == "disabled"
    listed = client.get(f"/clients/{setup_shop['client_id']}/waitlist?appointment_id={later['id']}")
    assert listed.get_json()["in_waitlist"] is False


def test_offer_cannot_be_accepted_for_a_cancelled_appointment(client, setup_shop) -> None:
    freed = _walk_in(client, setup_shop, "2030-03-05T10:00:00")
    later = _book(client, setup_shop, "2030-03-12T10:00:00")
    entry = _join(client, later, setup_shop["client_id"]).get_json()["waitlist_entry"]
    client.delete(f"/appointments/{freed['id']}")
    assert db.session.get(WaitlistEntry, entry["id"]).status == "notified"

    client.delete(f"/appointments/{later['id']}")
    response = client.post(f"/waitlist/{entry['id']}/accept")

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_status"
    appointment = db.session.get(Appointment, later["id"])
    assert appointment.status == "cancelled"
    assert appointment.starts_at == datetime(2030, 3, 12, 10, 0)


def test_offer_cannot_be_accepted_for_a_completed_appointment(client, setup_shop) -> None:
    freed = _walk_in(client, setup_shop, "2030-03-05T10:00:00")
    later = _book(client, setup_shop, "2030-03-12T10:00:00")
    entry = _join(client, later, setup_shop["client_id"]).get_json()["waitlist_entry"]
    client.delete(f"/appointments/{freed['id']}")
    client.put(f"/appointments/{later['id']}/status", json={"status": "completed"})

    response = client.post(f"/waitlist/{entry['id']}/accept")

    assert response.status_code == 400
    assert db.session.get(WaitlistEntry, entry["id"]).status == "notified"
