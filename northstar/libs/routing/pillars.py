"""Wellness pillars and the keyword table the fast classification tier scores."""

from __future__ import annotations

import re
from functools import lru_cache

from northstar.libs.schemas.memory import TOPIC_KEYS

DEFAULT_TOPIC = "mental_health"

PILLAR_NAMES: dict[str, str] = {
    "sleep": "Sleep & Rest",
    "mental_health": "Mental Health",
    "nutrition": "Nutrition & Diet",
    "fitness": "Fitness & Exercise",
    "physical_health": "Physical Health",
    "finances": "Finances & Money",
    "social": "Social & Relationships",
    "spirituality": "Spirituality & Purpose",
}

# Keywords match at a word start, so "sleep" also covers "sleeping" but not "asleep".
PILLAR_KEYWORDS: dict[str, tuple[str, ...]] = {
    "sleep": (
        "sleep",
        "asleep",
        "fall asleep",
        "at night",
        "insomnia",
        "tired",
        "fatigue",
        "dream",
        "bedtime",
        "nap",
        "wake up",
    ),
    "mental_health": (
        "anxiety",
        "anxious",
        "depress",
        "stress",
        "mental",
        "mood",
        "emotion",
        "feelings",
        "overwhelm",
        "therapy",
    ),
    "nutrition": (
        "eat",
        "food",
        "diet",
        "nutrition",
        "healthy eating",
        "meal",
        "snack",
        "protein",
        "calorie",
        "hydrat",
    ),
    "fitness": (
        "exercise",
        "workout",
        "fitness",
        "training",
        "run",
        "gym",
        "sport",
        "strength",
        "cardio",
        "stretch",
    ),
    "physical_health": (
        "health",
        "sick",
        "illness",
        "pain",
        "disease",
        "medical",
        "doctor",
        "symptom",
        "blood pressure",
        "medication",
    ),
    "finances": (
        "money",
        "budget",
        "finance",
        "financial",
        "savings",
        "debt",
        "income",
        "spending",
        "rent",
        "invest",
    ),
    "social": (
        "relationship",
        "friend",
        "family",
        "social",
        "connect",
        "love",
        "dating",
        "lonely",
        "partner",
        "coworker",
    ),
    "spirituality": (
        "spiritual",
        "purpose",
        "meaning",
        "faith",
        "religion",
        "meditat",
        "values",
        "gratitude",
        "pray",
        "mindful",
    ),
}


def is_valid_topic(topic: object) -> bool:
    return isinstance(topic, str) and topic in TOPIC_KEYS


@lru_cache(maxsize=1)
def _compiled_keywords() -> dict[str, tuple[re.Pattern[str], ...]]:
    return {
        topic: tuple(re.compile(r"\b" + re.escape(keyword)) for keyword in keywords)
        for topic, keywords in PILLAR_KEYWORDS.items()
    }


def keyword_scores(text: str) -> dict[str, int]:
    """Count matched keywords per pillar, in table order."""

    lowered = (text or "").lower()
    return {
        topic: sum(1 for pattern in patterns if pattern.search(lowered))
        for topic, patterns in _compiled_keywords().items()
    }


__all__ = [
    "DEFAULT_TOPIC",
    "PILLAR_KEYWORDS",
    "PILLAR_NAMES",
    "is_valid_topic",
    "keyword_scores",
]
