"""Shop slugs used in public booking URLs."""
from __future__ import annotations

import re
import unicodedata
from typing import Callable
from urllib.parse import quote, unquote

DEFAULT_SHOP_SLUG = "retro-barbershop"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(value: str | None, fallback: str = DEFAULT_SHOP_SLUG) -> str:
    if not value:
        return fallback
    folded = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    slug = _NON_ALNUM.sub("-", folded.lower().strip()).strip("-")
    return slug or fallback


def next_slug_candidate(base_slug: str, attempt: int) -> str:
    if attempt <= 1:
        return base_slug
    return f"{base_slug}-{attempt}"


def extract_slug_from_path(path: str | None) -> str | None:
    """First path segment, URL-decoded; ``None`` for the root path."""
    if not path:
        return None
    segments = [segment for segment in path.split("/") if segment]
    if not segments:
        return None
    return unquote(segments[0].strip()) or None


def build_shop_path(slug: str | None) -> str:
    return "/" + quote(slug or DEFAULT_SHOP_SLUG, safe="")


def unique_slug(value: str | None, is_taken: Callable[[str], bool], max_attempts: int = 50) -> str:
    """First free candidate among ``slug``, ``slug-2``, ``slug-3``...

    Raises ``ValueError`` once ``max_attempts`` candidates are all taken.
    """
    base = slugify(value)
    for attempt in range(1, max_attempts + 1):
        candidate = next_slug_candidate(base, attempt)
        if not is_taken(candidate):
            return candidate
    raise ValueError(f"No free slug for {base!r} after {max_attempts} attempts")
