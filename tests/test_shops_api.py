"""Tests for shop, staff, service and client endpoints."""
from __future__ import annotations

from barberbook.extensions import db
from barberbook.models import Appointment, Shop, Staff


def test_create_shop_success_201(client) -> None:
    response = client.post("/shops", json={"name": "Barberia Più Bella", "city": "Torino"})
    data = response.get_json()

    assert response.status_code == 201
    assert data["shop"]["slug"] == "barberia-piu-bella"
    assert data["shop"]["shop_type"] == "barbershop"
    assert data["shop"]["auto_close_holidays"] is True
    assert data["shop"]["city"] == "Torino"


def test_create_shop_dedupes_slug(client) -> None:
    client.post("/shops", json={"name": "Salone"})
    response = client.post("/shops", json={"name": "Salone"})

    assert response.status_code == 201
    assert response.get_json()["shop"]["slug"] == "salone-2"


def test_create_shop_missing_name_400(client) -> None:
    response = client.post("/shops", json={"shop_type": "hairdresser"})
    data = response.get_json()

    assert response.status_code == 400
    assert data["error"] == "invalid_payload"
    assert "name is required" in data["message"]


def test_create_shop_bad_type_400(client) -> None:
    response = client.post("/shops", json={"name": "Salone", "shop_type": "spa"})

    assert response.status_code == 400


def test_get_shop_by_id_and_slug(client, setup_shop) -> None:
    by_id = client.get(f"/shops/{setup_shop['shop_id']}")
    by_slug = client.get("/shops/by-slug/salone-test")

    assert by_id.status_code == 200
    assert by_slug.status_code == 200
    assert by_slug.get_json()["shop"]["id"] == setup_shop["shop_id"]
    assert client.get("/shops/999").status_code == 404
    assert client.get("/shops/by-slug/missing").get_json()["error"] == "not_found"


def test_update_shop_slug_conflict_409(client, setup_shop) -> None:
    client.post("/shops", json={"name": "Altro Salone"})

    response = client.put(f"/shops/{setup_shop['shop_id']}", json={"slug": "Altro Salone"})

    assert response.status_code == 409
    assert response.get_json()["error"] == "conflict"


def test_update_shop_fields(client, setup_shop) -> None:
    response = client.put(
        f"/shops/{setup_shop['shop_id']}",
        json={"name": "Salone Nuovo", "phone": "+39 011 000000", "products_enabled": True},
    )
    data = response.get_json()

    assert response.status_code == 200
    assert data["shop"]["name"] == "Salone Nuovo"
    assert data["shop"]["products_enabled"] is True
    assert data["shop"]["slug"] == "salone-test"


def test_staff_crud(client, setup_shop) -> None:
    shop_id = setup_shop["shop_id"]

    created = client.post(f"/shops/{shop_id}/staff", json={"full_name": "Paolo Gialli", "role": "Junior"})
    assert created.status_code == 201
    staff_id = created.get_json()["staff"]["id"]

    listed = client.get(f"/shops/{shop_id}/staff").get_json()["staff"]
    assert [member["full_name"] for member in listed] == ["Giulia Bianchi", "Marco Rossi", "Paolo Gialli"]

    updated = client.put(f"/shops/{shop_id}/staff/{staff_id}", json={"active": False})
    assert updated.get_json()["staff"]["active"] is False
    active = client.get(f"/shops/{shop_id}/staff?active=true").get_json()["staff"]
    assert all(member["id"] != staff_id for member in active)

    deleted = client.delete(f"/shops/{shop_id}/staff/{staff_id}")
    assert deleted.status_code == 200
    assert db.session.get(Staff, staff_id) is None


def test_create_staff_missing_name_400(client, setup_shop) -> None:
    response = client.post(f"/shops/{setup_shop['shop_id']}/staff", json={"role": "Barber"})

    assert response.status_code == 400
    assert "full_name is required" in response.get_json()["message"]


def test_delete_staff_with_appointments_deactivates(client, setup_shop) -> None:
    shop_id = setup_shop["shop_id"]
    client.post(
        f"/shops/{shop_id}/appointments",
        json={
            "staff_id": setup_shop["staff_id"],
            "service_id": setup_shop["service_id"],
            "client_id": setup_shop["client_id"],
            "starts_at": "2030-03-05T10:00:00",
        },
    )
    assert Appointment.query.count() == 1

    response = client.delete(f"/shops/{shop_id}/staff/{setup_shop['staff_id']}")

    assert response.get_json()["message"] == "Staff member deactivated"
    assert db.session.get(Staff, setup_shop["staff_id"]).active is False


def test_service_crud(client, setup_shop) -> None:
    shop_id = setup_shop["shop_id"]

    created = client.post(
        f"/shops/{shop_id}/services",
        json={
            "name": "Piega",
            "duration_minutes": 45,
            "price_cents": 2500,
            "is_duration_variable": True,
            "duration_config": {"base_minutes": 40},
        },
    )
    data = created.get_json()
    assert created.status_code == 201
    assert data["service"]["is_duration_variable"] is True
    assert data["service"]["duration_config"] == {"base_minutes": 40}

    service_id = data["service"]["id"]
    updated = client.put(f"/shops/{shop_id}/services/{service_id}", json={"duration_minutes": 60})
    assert updated.get_json()["service"]["duration_minutes"] == 60

    bad = client.put(f"/shops/{shop_id}/services/{service_id}", json={"duration_minutes": -5})
    assert bad.status_code == 400

    assert client.delete(f"/shops/{shop_id}/services/{service_id}").status_code == 200
    assert client.delete(f"/shops/{shop_id}/services/{service_id}").status_code == 404


def test_create_service_missing_duration_400(client, setup_shop) -> None:
    response = client.post(f"/shops/{setup_shop['shop_id']}/services", json={"name": "Taglio"})

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_payload"


def test_client_search(client, setup_shop) -> None:
    shop_id = setup_shop["shop_id"]

    everyone = client.get(f"/shops/{shop_id}/clients").get_json()["clients"]
    assert len(everyone) == 2

    found = client.get(f"/shops/{shop_id}/clients?q=verd").get_json()["clients"]
    assert [person["full_name"] for person in found] == ["Luca Verdi"]

    by_phone = client.get(f"/shops/{shop_id}/clients?q=1111").get_json()["clients"]
    assert [person["first_name"] for person in by_phone] == ["Anna"]


def test_client_create_update_delete(client, setup_shop) -> None:
    shop_id = setup_shop["shop_id"]

    missing = client.post(f"/shops/{shop_id}/clients", json={"first_name": "Sara"})
    assert missing.status_code == 400

    created = client.post(
        f"/shops/{shop_id}/clients",
        json={"first_name": "Sara", "last_name": "Blu", "phone_e164": "+393339999999"},
    )
    assert created.status_code == 201
    client_id = created.get_json()["client"]["id"]

    updated = client.put(f"/shops/{shop_id}/clients/{client_id}", json={"email": "sara@example.com"})
    assert updated.get_json()["client"]["email"] == "sara@example.com"

    assert client.delete(f"/shops/{shop_id}/clients/{client_id}").status_code == 200


def test_client_with_appointments_cannot_be_deleted(client, setup_shop) -> None:
    shop_id = setup_shop["shop_id"]
    client.post(
        f"/shops/{shop_id}/appointments",
        json={
            "staff_id": setup_shop["staff_id"],
            "service_id": setup_shop["service_id"],
            "client_id": setup_shop["client_id"],
            "starts_at": "2030-03-05T10:00:00",
        },
    )

    response = client.delete(f"/shops/{shop_id}/clients/{setup_shop['client_id']}")

    assert response.status_code == 409


def test_resources_are_scoped_to_their_shop(client, setup_shop) -> None:
    other = Shop(name="Altro", slug="altro")
    db.session.add(other)
    db.session.commit()

    response = client.put(f"/shops/{other.shop_id}/staff/{setup_shop['staff_id']}", json={"role": "x"})

    assert response.status_code == 404
