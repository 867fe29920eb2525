"""Tests for the opening hours, calendar and closure endpoints."""
from __future__ import annotations

from barberbook.models import ShopDailyHours


def test_get_hours_defaults(client, setup_shop) -> None:
    response = client.get(f"/shops/{setup_shop['shop_id']}/hours")
    data = response.get_json()

    assert response.status_code == 200
    assert data["hours"]["0"] == {"is_open": False, "time_slots": []}
    assert data["hours"]["1"]["time_slots"] == [
        {"start": "09:00", "end": "13:00"},
        {"start": "14:00", "end": "19:00"},
    ]
    assert data["summary"].startswith("Sun: Closed | Mon: 09:00-13:00, 14:00-19:00")


def test_get_hours_unknown_shop_404(client) -> None:
    response = client.get("/shops/999/hours")

    assert response.status_code == 404
    assert response.get_json()["error"] == "not_found"


def test_replace_hours_writes_rows(client, setup_shop) -> None:
    shop_id = setup_shop["shop_id"]
    hours = {str(day): {"is_open": day != 0, "time_slots": [{"start": "10:00", "end": "18:00"}]} for day in range(7)}

    response = client.put(f"/shops/{shop_id}/hours", json={"hours": hours})
    data = response.get_json()

    assert response.status_code == 200
    assert data["changed"] is True
    assert ShopDailyHours.query.filter_by(shop_id=shop_id).count() == 7

    again = client.put(f"/shops/{shop_id}/hours", json={"hours": hours})
    assert again.get_json()["changed"] is False


def test_replace_hours_rejects_overlap(client, setup_shop) -> None:
    hours = {"1": {"is_open": True, "time_slots": [
        {"start": "09:00", "end": "13:00"},
        {"start": "12:30", "end": "15:00"},
    ]}}

    response = client.put(f"/shops/{setup_shop['shop_id']}/hours", json={"hours": hours})

    assert response.status_code == 400
    assert "overlap" in response.get_json()["message"]


def test_replace_hours_requires_body(client, setup_shop) -> None:
    response = client.put(f"/shops/{setup_shop['shop_id']}/hours", json={})

    assert response.status_code == 400
    assert "hours is required" in response.get_json()["message"]


def test_day_edits(client, setup_shop) -> None:
    shop_id = setup_shop["shop_id"]

    updated = client.put(
        f"/shops/{shop_id}/hours/6",
        json={"is_open": True, "time_slots": [{"start": "08:00", "end": "12:00"}]},
    )
    assert updated.get_json()["hours"]["6"]["time_slots"] == [{"start": "08:00", "end": "12:00"}]

    added = client.post(f"/shops/{shop_id}/hours/6/slots", json={"start": "13:00", "end": "16:00"})
    assert len(added.get_json()["hours"]["6"]["time_slots"]) == 2

    moved = client.put(f"/shops/{shop_id}/hours/6/slots/1", json={"start": "14:00", "end": "17:00"})
    assert moved.get_json()["hours"]["6"]["time_slots"][1] == {"start": "14:00", "end": "17:00"}

    removed = client.delete(f"/shops/{shop_id}/hours/6/slots/0")
    assert removed.get_json()["hours"]["6"]["time_slots"] == [{"start": "14:00", "end": "17:00"}]

    toggled = client.post(f"/shops/{shop_id}/hours/6/toggle")
    assert toggled.get_json()["hours"]["6"]["is_open"] is False

    summary = client.get(f"/shops/{shop_id}/hours/summary").get_json()["summary"]
    assert summary.endswith("Sat: Closed")


def test_day_edit_errors(client, setup_shop) -> None:
    shop_id = setup_shop["shop_id"]

    missing_slot = client.delete(f"/shops/{shop_id}/hours/1/slots/5")
    assert missing_slot.status_code == 404

    bad_day = client.post(f"/shops/{shop_id}/hours/9/toggle")
    assert bad_day.status_code == 400

    inverted = client.post(f"/shops/{shop_id}/hours/1/slots", json={"start": "20:00", "end": "19:30"})
    assert inverted.status_code == 400

    incomplete = client.post(f"/shops/{shop_id}/hours/1/slots", json={"start": "20:00"})
    assert incomplete.status_code == 400


def test_calendar_reports_holidays_and_extra_openings(client, setup_shop) -> None:
    shop_id = setup_shop["shop_id"]

    christmas = client.get(f"/shops/{shop_id}/calendar?date=2030-12-25").get_json()
    assert christmas["is_open"] is False
    assert christmas["closure_reason"] == "holiday"
    assert christmas["holiday"] == "Natale"
    assert christmas["available_slots"] == []

    response = client.put(
        f"/shops/{shop_id}/extra-opening",
        json={"date": "2030-12-25", "morning_start": "09:00", "morning_end": "11:00"},
    )
    assert response.status_code == 200
    assert response.get_json()["shop"]["extra_opening"]["morning_end"] == "11:00"

    opened = client.get(f"/shops/{shop_id}/calendar?date=2030-12-25&slot_minutes=60").get_json()
    assert opened["is_open"] is True
    assert opened["closure_reason"] is None
    assert opened["available_slots"] == ["09:00", "10:00"]

    cleared = client.put(f"/shops/{shop_id}/extra-opening", json={"date": None})
    assert cleared.get_json()["shop"]["extra_opening"] is None


def test_calendar_requires_date(client, setup_shop) -> None:
    missing = client.get(f"/shops/{setup_shop['shop_id']}/calendar")
    malformed = client.get(f"/shops/{setup_shop['shop_id']}/calendar?date=05/03/2030")

    assert missing.status_code == 400
    assert malformed.get_json()["error"] == "invalid_format"


def test_extra_opening_needs_a_range(client, setup_shop) -> None:
    response = client.put(f"/shops/{setup_shop['shop_id']}/extra-opening", json={"date": "2030-03-03"})

    assert response.status_code == 400


def test_auto_close_toggle(client, setup_shop) -> None:
    shop_id = setup_shop["shop_id"]

    response = client.put(f"/shops/{shop_id}/auto-close-holidays", json={"enabled": False})
    assert response.get_json()["shop"]["auto_close_holidays"] is False

    christmas = client.get(f"/shops/{shop_id}/calendar?date=2030-12-25").get_json()
    assert christmas["is_open"] is True

    invalid = client.put(f"/shops/{shop_id}/auto-close-holidays", json={"enabled": "yes"})
    assert invalid.status_code == 400


def test_vacation_closes_days(client, setup_shop) -> None:
    shop_id = setup_shop["shop_id"]

    response = client.put(
        f"/shops/{shop_id}/vacation", json={"start_date": "2030-03-04", "end_date": "2030-03-08"}
    )
    assert response.status_code == 200
    assert response.get_json()["shop"]["vacation_period"] == {
        "start_date": "2030-03-04",
        "end_date": "2030-03-08",
    }

    day = client.get(f"/shops/{shop_id}/calendar?date=2030-03-05").get_json()
    assert day["closure_reason"] == "vacation"

    client.delete(f"/shops/{shop_id}/vacation")
    day = client.get(f"/shops/{shop_id}/calendar?date=2030-03-05").get_json()
    assert day["is_open"] is True


def test_vacation_rejects_inverted_dates(client, setup_shop) -> None:
    response = client.put(
        f"/shops/{setup_shop['shop_id']}/vacation",
        json={"start_date": "2030-03-08", "end_date": "2030-03-04"},
    )

    assert response.status_code == 400
