"""Per-shop cache of the weekly hours template.

Entries live on the Flask app (``app.extensions``) so every app instance has
its own cache. When ``HOURS_CACHE_DIR`` is configured the entries are also
mirrored as ``<shop_id>.json`` files and survive restarts.
"""
from __future__ import annotations

import json
import logging
import os

from flask import Flask, current_app

from .shop_hours import ShopHoursConfig, config_from_dict, config_to_dict

logger = logging.getLogger(__name__)


class HoursCache:
    extension_name = "hours_cache"

    def __init__(self, app: Flask | None = None) -> None:
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        directory = app.config.get("HOURS_CACHE_DIR")
        if directory:
            os.makedirs(directory, exist_ok=True)
        app.extensions[self.extension_name] = {"entries": {}, "directory": directory}

    @property
    def _state(self) -> dict[str, object]:
        return current_app.extensions[self.extension_name]

    def _path(self, shop_id: int) -> str | None:
        directory = self._state["directory"]
        if not directory:
            return None
        return os.path.join(directory, f"{shop_id}.json")

    def get(self, shop_id: int) -> ShopHoursConfig | None:
        entries = self._state["entries"]
        if shop_id in entries:
            return entries[shop_id]

        path = self._path(shop_id)
        if path is None or not os.path.exists(path):
            return None
        try:
            with open(path, encoding="utf-8") as handle:
                config = config_from_dict(json.load(handle))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable hours cache file %s: %s", path, exc)
            return None
        entries[shop_id] = config
        return config

    def set(self, shop_id: int, config: ShopHoursConfig) -> None:
        self._state["entries"][shop_id] = config
        path = self._path(shop_id)
        if path is None:
            return
        try:
            with open(path, "w", encoding="utf-8") as handle:
                json.dump(config_to_dict(config), handle)
        except OSError as exc:
            logger.warning("Could not write hours cache file %s: %s", path, exc)

    def invalidate(self, shop_id: int) -> None:
        self._state["entries"].pop(shop_id, None)
        path = self._path(shop_id)
        if path is not None and os.path.exists(path):
            os.remove(path)
