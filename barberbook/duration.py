"""Service duration estimation from a client's hair profile.

Fixed-duration services contribute their nominal minutes. Variable ones start
from a base time that is scaled by hair type and hair length and extended
for colour work. A safety buffer is added to the total and the result is
rounded up to the booking grid.
"""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Iterable, Mapping

HAIR_TYPES = ("straight_fine", "wavy_medium", "curly_thick", "very_curly_afro")
HAIR_LENGTHS = ("short", "medium", "long", "very_long")
COLOR_SITUATIONS = ("virgin", "roots_touch_up", "full_color_change", "color_correction")

ROUNDING_MINUTES = 15
BUFFER_PERCENTAGE = 10

COLOR_KEYWORDS = (
    "colore",
    "tinta",
    "meches",
    "balayage",
    "shatush",
    "schiariture",
    "decolorazione",
    "color",
    "colour",
    "highlights",
    "bleach",
)


@dataclass
class DurationConfig:
    base_minutes: float = 30
    hair_type_multipliers: dict[str, float] = field(
        default_factory=lambda: {
            "straight_fine": 1.0,
            "wavy_medium": 1.15,
            "curly_thick": 1.25,
            "very_curly_afro": 1.4,
        }
    )
    hair_length_multipliers: dict[str, float] = field(
        default_factory=lambda: {
            "short": 1.0,
            "medium": 1.2,
            "long": 1.35,
            "very_long": 1.5,
        }
    )
    color_situation_extra_minutes: dict[str, float] = field(
        default_factory=lambda: {
            "virgin": 0,
            "roots_touch_up": 0,
            "full_color_change": 30,
            "color_correction": 60,
        }
    )
    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "DurationConfig":
        """Build a config from stored JSON; missing keys keep their defaults."""
        config = cls()
        if not data:
            return config
        if "base_minutes" in data:
            config.base_minutes = float(data["base_minutes"])
        for name in (
            "hair_type_multipliers",
            "hair_length_multipliers",
            "color_situation_extra_minutes",
        ):
            overrides = data.get(name)
            if overrides:
                merged = dict(getattr(config, name))
                merged.update({key: float(value) for key, value in overrides.items()})
                setattr(config, name, merged)
        return config

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


DEFAULT_DURATION_CONFIG = DurationConfig()


@dataclass(frozen=True)
class DurationBreakdown:
    base: int
    after_hair_type: int
    after_length: int
    color_extra: int
    buffer: int
    final: int


@dataclass(frozen=True)
class DurationResult:
    estimated_minutes: int
    rounded_minutes: int
    breakdown: DurationBreakdown
    display: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def format_duration(minutes: int) -> str:
    hours, mins = divmod(int(minutes), 60)
    if hours == 0:
        return f"{mins} min"
    if mins == 0:
        return f"{hours}h"
    return f"{hours}h {mins}min"


def _field(source: Any, name: str, default: Any = None) -> Any:
    if source is None:
        return default
    if isinstance(source, Mapping):
        return source.get(name, default)
    return getattr(source, name, default)


def _config_for(service: Any) -> DurationConfig:
    raw = _field(service, "duration_config")
    if isinstance(raw, DurationConfig):
        return raw
    if raw:
        return DurationConfig.from_dict(raw)
    return DEFAULT_DURATION_CONFIG


def calculate_service_duration(
    services: Iterable[Any],
    hair_profile: Any = None,
    buffer_percentage: float = BUFFER_PERCENTAGE,
) -> DurationResult:
    """Estimate how long ``services`` take for a client with ``hair_profile``.

    ``services`` and ``hair_profile`` may be model instances or plain mappings
    exposing ``duration_minutes``/``is_duration_variable``/``duration_config``
    and ``hair_type``/``hair_length``/``color_situation`` respectively.
    ``buffer_percentage`` applies once to the combined total, never per service.
    """
    hair_type = _field(hair_profile, "hair_type")
    hair_length = _field(hair_profile, "hair_length")
    color_situation = _field(hair_profile, "color_situation")

    total = 0.0
    base_total = 0.0
    after_hair_type = 0.0
    after_length = 0.0
    color_extra = 0.0

    for service in services:
        if not _field(service, "is_duration_variable", False):
            fixed = float(_field(service, "duration_minutes", 0) or 0)
            total += fixed
            base_total += fixed
            after_hair_type += fixed
            after_length += fixed
            continue

        config = _config_for(service)
        minutes = float(config.base_minutes)
        base_total += minutes

        if hair_type:
            minutes *= config.hair_type_multipliers.get(hair_type, 1)
        after_hair_type += minutes

        if hair_length:
            minutes *= config.hair_length_multipliers.get(hair_length, 1)
        after_length += minutes

        if color_situation:
            extra = config.color_situation_extra_minutes.get(color_situation, 0)
            minutes += extra
            color_extra += extra

        total += minutes

    buffer = total * buffer_percentage / 100
    total += buffer
    # Tolerate float noise such as 33.000000000000004 before rounding up.
    rounded = int(math.ceil(round(total, 6) / ROUNDING_MINUTES)) * ROUNDING_MINUTES

    return DurationResult(
        estimated_minutes=_round_half_up(total),
        rounded_minutes=rounded,
        breakdown=DurationBreakdown(
            base=_round_half_up(base_total),
            after_hair_type=_round_half_up(after_hair_type),
            after_length=_round_half_up(after_length),
            color_extra=_round_half_up(color_extra),
            buffer=_round_half_up(buffer),
            final=rounded,
        ),
        display=format_duration(rounded),
    )


def is_color_service(service_name: str) -> bool:
    name = (service_name or "").lower()
    return any(keyword in name for keyword in COLOR_KEYWORDS)


def has_variable_duration_services(services: Iterable[Any]) -> bool:
    return any(_field(service, "is_duration_variable", False) is True for service in services)
