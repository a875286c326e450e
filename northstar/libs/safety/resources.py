"""Crisis hotlines and the safety copy delivered with a positive verdict."""

from __future__ import annotations

from typing import Any

LIFELINE = "National Suicide Prevention Lifeline"
TEXT_LINE = "Crisis Text Line"
CRISIS_LINE = "National Crisis Line"
DV_HOTLINE = "National Domestic Violence Hotline"
EMERGENCY = "Emergency Services"

CRISIS_RESOURCES: dict[str, dict[str, dict[str, str]]] = {
    "us": {
        LIFELINE: {
            "number": "988",
            "url": "https://988lifeline.org",
            "description": "Free, confidential support 24/7",
        },
        TEXT_LINE: {
            "number": "Text HOME to 741741",
            "url": "https://www.crisistextline.org",
            "description": "Text-based crisis support",
        },
        CRISIS_LINE: {
            "number": "1-800-784-2433",
            "url": "https://www.samhsa.gov",
            "description": "SAMHSA National Helpline",
        },
        DV_HOTLINE: {
            "number": "1-800-799-7233",
            "url": "https://www.thehotline.org",
            "description": "Support for domestic violence",
        },
        EMERGENCY: {
            "number": "911",
            "url": "https://911.gov",
            "description": "Call if in immediate danger",
        },
    },
}

RESOURCES_BY_CATEGORY: dict[str, list[str]] = {
    "suicide": [LIFELINE, TEXT_LINE, EMERGENCY],
    "self_harm": [TEXT_LINE, LIFELINE],
    "severe_crisis": [CRISIS_LINE, LIFELINE],
    "abuse": [DV_HOTLINE, EMERGENCY],
    "substance": [CRISIS_LINE, EMERGENCY],
    "hopelessness": [LIFELINE, TEXT_LINE],
    "error": [EMERGENCY, LIFELINE],
}

CRISIS_MESSAGES: dict[str, str] = {
    "suicide": (
        "I hear that you're in pain. Your life matters, and there are people who want to help. "
        "Please reach out to a crisis counselor right now."
    ),
    "self_harm": (
        "I'm concerned about your safety. Please contact a mental health professional or crisis "
        "counselor immediately."
    ),
    "severe_crisis": (
        "You're going through something very difficult. Professional support is available right "
        "now, please reach out."
    ),
    "abuse": (
        "Your safety is the priority. Please contact the domestic violence hotline or emergency "
        "services."
    ),
    "substance": (
        "If you've overdosed or are in danger, please call 911 or emergency services immediately."
    ),
    "hopelessness": (
        "It sounds like things feel really heavy right now. You don't have to carry this alone; "
        "talking to someone can help, and support is available any time."
    ),
    "error": (
        "I want to make sure you're safe. If you're in crisis, please reach out to one of the "
        "resources below."
    ),
}

COUNSELLOR_NOTE = (
    "This response is from our safety system. A trained crisis counselor is available 24/7."
)


def crisis_message(category: str | None) -> str:
    return CRISIS_MESSAGES.get(category or "", CRISIS_MESSAGES["error"])


def get_crisis_resources(category: str | None = None, country: str = "us") -> list[dict[str, Any]]:
    """Return the curated hotlines for ``category``; unknown categories get every entry."""

    catalogue = CRISIS_RESOURCES.get((country or "us").lower(), CRISIS_RESOURCES["us"])
    names = RESOURCES_BY_CATEGORY.get(category or "", list(catalogue))
    return [{"name": name, **catalogue[name]} for name in names if name in catalogue]


__all__ = [
    "COUNSELLOR_NOTE",
    "CRISIS_MESSAGES",
    "CRISIS_RESOURCES",
    "RESOURCES_BY_CATEGORY",
    "crisis_message",
    "get_crisis_resources",
]
