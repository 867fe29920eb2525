"""Shared Flask extensions for the application."""
from __future__ import annotations

from flask_sqlalchemy import SQLAlchemy

from .hours_cache import HoursCache

# SQLAlchemy database instance shared across the app.
db = SQLAlchemy()

# Last known weekly hours per shop, served when the database cannot be read.
hours_cache = HoursCache()
