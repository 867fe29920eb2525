"""Decide whether a booking needs the hair questionnaire and which questions to ask."""
from __future__ import annotations

import calendar
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

from .duration import has_variable_duration_services, is_color_service

QUESTION_HAIR_TYPE = "hair_type"
QUESTION_HAIR_LENGTH = "hair_length"
QUESTION_COLOR_SITUATION = "color_situation"

DEFAULT_MAX_AGE_MONTHS = 6


@dataclass
class QuestionnaireDecision:
    should_show: bool
    reason: str
    questions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def months_ago(now: datetime, months: int) -> datetime:
    """``now`` moved back by calendar months, clamping the day to the month's end."""
    month_index = now.year * 12 + (now.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(now.day, calendar.monthrange(year, month)[1])
    return now.replace(year=year, month=month, day=day)


def _get(source: Any, name: str) -> Any:
    if source is None:
        return None
    if isinstance(source, dict):
        return source.get(name)
    return getattr(source, name, None)


def has_complete_profile(profile: Any) -> bool:
    return bool(_get(profile, "hair_type") and _get(profile, "hair_length"))


def is_profile_outdated(
    profile: Any, now: datetime | None = None, max_age_months: int = DEFAULT_MAX_AGE_MONTHS
) -> bool:
    updated_at = _get(profile, "updated_at")
    if not updated_at:
        return False
    if isinstance(updated_at, str):
        updated_at = datetime.fromisoformat(updated_at)
    now = _naive_utc(now or datetime.now(timezone.utc))
    return _naive_utc(updated_at) < months_ago(now, max_age_months)


def decide_questionnaire(
    shop: Any,
    services: Iterable[Any],
    profile: Any = None,
    now: datetime | None = None,
    max_age_months: int = DEFAULT_MAX_AGE_MONTHS,
) -> QuestionnaireDecision:
    """Questionnaire decision for ``shop`` booking ``services`` for a client with ``profile``.

    Only hairdressers with the questionnaire switched on ask anything, and only
    when a variable-duration service is selected. A missing or stale profile
    asks for type and length again; colour services also ask about colour.
    """
    services = list(services)
    if shop is None or not _get(shop, "hair_questionnaire_enabled") or _get(shop, "shop_type") != "hairdresser":
        return QuestionnaireDecision(False, "disabled")

    if not has_variable_duration_services(services):
        return QuestionnaireDecision(False, "no_variable_services")

    has_profile = has_complete_profile(profile)
    outdated = has_profile and is_profile_outdated(profile, now, max_age_months)

    questions: list[str] = []
    if not has_profile or outdated:
        questions.extend([QUESTION_HAIR_TYPE, QUESTION_HAIR_LENGTH])
    if any(is_color_service(_get(service, "name") or "") for service in services):
        questions.append(QUESTION_COLOR_SITUATION)

    if not has_profile:
        reason = "no_profile"
    elif outdated:
        reason = "profile_outdated"
    elif questions:
        reason = "needs_color_info"
    else:
        reason = "skip"

    return QuestionnaireDecision(bool(questions), reason, questions)
