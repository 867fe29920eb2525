"""pytest fixtures: an app bound to a throwaway SQLite file and a seeded shop."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure the project root is available on sys.path so tests can import the package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from barberbook import create_app  # noqa: E402
from barberbook.extensions import db  # noqa: E402
from barberbook.models import Client, Service, Shop, Staff  # noqa: E402


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'test.db'}",
        "HOURS_CACHE_DIR": str(tmp_path / "hours-cache"),
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def setup_shop(app):
    """A hairdresser with the questionnaire on, two staff, a fixed and a variable service, two clients.

    No hours are stored, so the default week applies: Sunday closed,
    Monday to Saturday 09:00-13:00 and 14:00-19:00.
    """
    shop = Shop(
        name="Salone Test",
        slug="salone-test",
        shop_type="hairdresser",
        hair_questionnaire_enabled=True,
    )
    db.session.add(shop)
    db.session.flush()

    marco = Staff(shop_id=shop.shop_id, full_name="Marco Rossi", role="Barber")
    giulia = Staff(shop_id=shop.shop_id, full_name="Giulia Bianchi", role="Stylist")
    haircut = Service(shop_id=shop.shop_id, name="Taglio", duration_minutes=30, price_cents=2000)
    colour = Service(
        shop_id=shop.shop_id,
        name="Colore completo",
        duration_minutes=90,
        price_cents=6000,
        is_duration_variable=True,
    )
    anna = Client(shop_id=shop.shop_id, first_name="Anna", last_name="Neri", phone_e164="+393331111111")
    luca = Client(shop_id=shop.shop_id, first_name="Luca", last_name="Verdi", phone_e164="+393332222222")
    db.session.add_all([marco, giulia, haircut, colour, anna, luca])
    db.session.commit()

    return {
        "shop_id": shop.shop_id,
        "staff_id": marco.staff_id,
        "other_staff_id": giulia.staff_id,
        "service_id": haircut.service_id,
        "colour_service_id": colour.service_id,
        "client_id": anna.client_id,
        "other_client_id": luca.client_id,
    }
