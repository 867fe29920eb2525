"""Seed a demo shop with staff, services, a client and the default weekly hours."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Ensure the project root is on sys.path so ``barberbook`` can be imported when the script is executed directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from barberbook import create_app
from barberbook.extensions import db
from barberbook.hours_store import save_shop_hours
from barberbook.models import Client, Service, Shop, Staff
from barberbook.shop_hours import default_shop_hours
from barberbook.slug import unique_slug

SAMPLE_SERVICES = [
    {"name": "Taglio uomo", "duration_minutes": 30, "price_cents": 2000},
    {"name": "Barba", "duration_minutes": 15, "price_cents": 1000},
    {"name": "Piega", "duration_minutes": 45, "price_cents": 2500, "is_duration_variable": True},
    {"name": "Colore completo", "duration_minutes": 90, "price_cents": 6000, "is_duration_variable": True},
]


def seed_shop(name: str, shop_type: str) -> None:
    app = create_app()

    with app.app_context():
        db.create_all()

        slug = unique_slug(name, lambda candidate: Shop.query.filter_by(slug=candidate).first() is not None)
        shop = Shop(
            name=name,
            slug=slug,
            shop_type=shop_type,
            hair_questionnaire_enabled=shop_type == "hairdresser",
        )
        db.session.add(shop)
        db.session.flush()

        db.session.add_all([
            Staff(shop_id=shop.shop_id, full_name="Marco Rossi", role="Barber"),
            Staff(shop_id=shop.shop_id, full_name="Giulia Bianchi", role="Stylist"),
        ])
        for data in SAMPLE_SERVICES:
            db.session.add(Service(shop_id=shop.shop_id, **data))
        db.session.add(Client(shop_id=shop.shop_id, first_name="Luca", last_name="Verdi", phone_e164="+390000000000"))
        db.session.commit()

        save_shop_hours(shop.shop_id, default_shop_hours())
        print(f"Seeded shop {shop.name!r} (id={shop.shop_id}, slug={shop.slug})")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("name", nargs="?", default="Retro Barbershop")
    parser.add_argument("--type", dest="shop_type", choices=["barbershop", "hairdresser"], default="barbershop")
    args = parser.parse_args()
    seed_shop(args.name, args.shop_type)


if __name__ == "__main__":
    main()
