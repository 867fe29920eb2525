from __future__ import annotations

import logging
from collections.abc import Mapping

from flask import Flask, jsonify
from flask_cors import CORS

from .config import Config
from .errors import BookingError
from .extensions import db, hours_cache
from .routes import register_routes


def _cors_origins(value) -> list[str]:
    if isinstance(value, str):
        return [origin.strip() for origin in value.split(",") if origin.strip()] or ["*"]
    return list(value or ["*"])


def create_app(config=None):
    app = Flask(__name__, instance_relative_config=True)

    app.config.from_object(Config)
    if isinstance(config, Mapping):
        app.config.from_mapping(config)
    elif config:
        app.config.from_object(config)
    app.config.from_envvar("APP_SETTINGS", silent=True)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))
    logging.getLogger(__name__).setLevel(app.config.get("LOG_LEVEL", "INFO"))

    db.init_app(app)
    hours_cache.init_app(app)

    CORS(app,
         origins=_cors_origins(app.config.get("CORS_ORIGINS")),
         supports_credentials=True,
         allow_headers=["Content-Type"],
         methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    )

    @app.errorhandler(BookingError)
    def handle_booking_error(exc: BookingError):
        db.session.rollback()
        return jsonify(exc.to_dict()), exc.status_code

    register_routes(app)

    return app
