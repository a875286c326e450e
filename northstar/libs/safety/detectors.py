"""Crisis detection tiers: a cheap keyword table and a model-backed classifier."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Protocol

from jsonschema import Draft7Validator

from northstar.libs.json_utils import parse_json_object
from northstar.libs.llm_router import ModelRouter, TaskClass

SEVERITY_RANK = {"critical": 3, "high": 2, "moderate": 1, "none": 0}

# Keywords are regex fragments matched case-insensitively between word
# boundaries, so "die" matches "die" and "died" but never "diet".
# Table order is the tie-break among equal severities.
CRISIS_PATTERNS: dict[str, dict[str, Any]] = {
    "suicide": {
        "severity": "critical",
        "keywords": [
            r"suicid\w*",
            r"kill(?:ing)? myself",
            r"end(?:ing)? my life",
            r"end it all",
            r"not worth living",
            r"no reason to live",
            r"better off dead",
            r"die[ds]?",
            r"dying",
            r"wanna die",
            r"death wish",
        ],
    },
    "abuse": {
        "severity": "critical",
        "keywords": [
            r"abus\w*",
            r"hits? me",
            r"beats? me",
            r"hurt me",
            r"assault\w*",
            r"violen\w*",
            r"dangerous",
            r"threat\w*",
        ],
    },
    "substance": {
        "severity": "critical",
        "keywords": [
            r"overdos\w*",
            r"poison\w*",
            r"drugs?",
            r"alcohol\w*",
            r"intoxicated",
            r"too many pills",
            r"can[’']t stop using",
        ],
    },
    "self_harm": {
        "severity": "high",
        "keywords": [
            r"self[- ]?harm\w*",
            r"cutting",
            r"cut myself",
            r"hurt(?:ing)? myself",
            r"injur\w* myself",
            r"burn(?:ing)? myself",
            # Clinical readings such as "blood pressure" are not injuries.
            r"blood(?!\s+(?:pressure|sugar|test|tests|work|type|donation))",
            r"scars?",
        ],
    },
    "severe_crisis": {
        "severity": "high",
        "keywords": [
            r"crisis",
            r"emergency",
            r"severe",
            r"urgent",
            r"can[’']t handle",
            r"can[’']t go on",
            r"falling apart",
            r"breaking down",
            r"(?:having a )?breakdown",
            r"panic attacks?",
            r"losing my mind",
        ],
    },
    "hopelessness": {
        "severity": "moderate",
        "keywords": [
            r"hopeless\w*",
            r"no way out",
            r"nothing will ever get better",
            r"no point anymore",
            r"what[’']s the point",
            r"giving up on everything",
        ],
    },
}

CRISIS_CATEGORIES = frozenset(CRISIS_PATTERNS)

MODEL_CONFIDENCE_THRESHOLD = 0.7

CRISIS_DETECTION_PROMPT = """You are a crisis detection assistant. Analyse the user's message for crisis indicators.

Crisis categories:
- suicide: suicidal ideation, wanting to end life
- self_harm: self-injury, cutting, harmful behaviours
- severe_crisis: severe mental health emergency, acute distress
- abuse: domestic violence, assault, abuse
- substance: drug or alcohol overdose, substance crisis
- hopelessness: persistent hopelessness without an immediate plan

Respond with ONLY a JSON object:
{"is_crisis": boolean, "category": "suicide|self_harm|severe_crisis|abuse|substance|hopelessness|null", "severity": "critical|high|moderate|none", "confidence": 0.0-1.0}

Be conservative: only flag a message that clearly indicates a crisis. Default to false when uncertain."""

VERDICT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["is_crisis"],
    "properties": {
        "is_crisis": {"type": "boolean"},
        "category": {"type": ["string", "null"]},
        "severity": {"type": ["string", "null"]},
        "confidence": {"type": "number"},
    },
}

_VERDICT_VALIDATOR = Draft7Validator(VERDICT_SCHEMA)


@dataclass
class CrisisVerdict:
    """Outcome of a crisis check; transient, never persisted."""

    is_crisis: bool = False
    severity: str = "none"
    category: str | None = None
    message: str | None = None
    resources: list[dict[str, Any]] = field(default_factory=list)
    method: str = "none"
    confidence: float | None = None

    @classmethod
    def clear(cls, method: str = "none") -> "CrisisVerdict":
        return cls(method=method)

    def as_dict(self) -> dict[str, Any]:
        return {
            "is_crisis": self.is_crisis,
            "severity": self.severity,
            "category": self.category,
            "message": self.message,
            "resources": list(self.resources),
            "method": self.method,
            "confidence": self.confidence,
        }


class Detector(Protocol):
    """One crisis detection tier."""

    name: str

    async def detect(self, text: str) -> CrisisVerdict:
        ...


def _compile_keywords(keywords: list[str]) -> re.Pattern[str]:
    return re.compile(r"\b(?:" + "|".join(keywords) + r")\b", re.IGNORECASE)


class PatternDetector:
    """Whole-word keyword match against :data:`CRISIS_PATTERNS`."""

    name = "pattern"

    def __init__(self, patterns: dict[str, dict[str, Any]] | None = None) -> None:
        patterns = patterns or CRISIS_PATTERNS
        self._compiled = [
            (category, entry["severity"], _compile_keywords(entry["keywords"]))
            for category, entry in patterns.items()
        ]

    def match(self, text: str) -> tuple[str, str] | None:
        best: tuple[str, str] | None = None
        for category, severity, regex in self._compiled:
            if not regex.search(text):
                continue
            if best is None or SEVERITY_RANK[severity] > SEVERITY_RANK[best[1]]:
                best = (category, severity)
        return best

    async def detect(self, text: str) -> CrisisVerdict:
        hit = self.match(text)
        if hit is None:
            return CrisisVerdict.clear(self.name)
        category, severity = hit
        return CrisisVerdict(
            is_crisis=True,
            severity=severity,
            category=category,
            method=self.name,
            confidence=1.0,
        )


class ModelCrisisDetector:
    """Ask the classification provider for a verdict; only confident answers count.

    Provider failures propagate to the gate, which decides the error policy.
    """

    name = "model"

    def __init__(
        self,
        router: ModelRouter,
        *,
        threshold: float = MODEL_CONFIDENCE_THRESHOLD,
    ) -> None:
        self._router = router
        self._threshold = threshold
        self._logger = logging.getLogger(__name__)

    def available(self) -> bool:
        return self._router.has_provider_for(TaskClass.CLASSIFICATION)

    async def detect(self, text: str) -> CrisisVerdict:
        result = await self._router.route(
            TaskClass.CLASSIFICATION,
            CRISIS_DETECTION_PROMPT,
            text,
            temperature=0.1,
            max_tokens=100,
            force_json=True,
        )
        payload = parse_json_object(result.text)
        errors = sorted(_VERDICT_VALIDATOR.iter_errors(payload), key=lambda err: list(err.path))
        if errors:
            raise ValueError(f"Crisis verdict failed validation: {errors[0].message}")

        category = payload.get("category")
        confidence = float(payload.get("confidence") or 0.0)
        if not payload["is_crisis"] or confidence <= self._threshold or category not in CRISIS_CATEGORIES:
            return CrisisVerdict.clear(self.name)

        severity = payload.get("severity")
        if severity not in ("critical", "high", "moderate"):
            severity = CRISIS_PATTERNS[category]["severity"]
        return CrisisVerdict(
            is_crisis=True,
            severity=severity,
            category=category,
            method=self.name,
            confidence=confidence,
        )


__all__ = [
    "CRISIS_CATEGORIES",
    "CRISIS_DETECTION_PROMPT",
    "CRISIS_PATTERNS",
    "CrisisVerdict",
    "Detector",
    "MODEL_CONFIDENCE_THRESHOLD",
    "ModelCrisisDetector",
    "PatternDetector",
    "SEVERITY_RANK",
]
