"""Decide which pillar specialist should answer a message."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from jsonschema import Draft7Validator

from northstar.libs.json_utils import parse_json_object
from northstar.libs.llm_router import ModelRouter, TaskClass
from northstar.libs.schemas.memory import UserMemory

from .pillars import DEFAULT_TOPIC, PILLAR_NAMES, is_valid_topic, keyword_scores

KEYWORD_ACCEPT_THRESHOLD = 0.8

TOPIC_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["topic"],
    "properties": {
        "topic": {"type": "string"},
        "confidence": {"type": "number"},
        "reason": {"type": "string"},
    },
}

_TOPIC_VALIDATOR = Draft7Validator(TOPIC_SCHEMA)


@dataclass(frozen=True)
class ClassificationResult:
    topic: str
    confidence: float
    method: str
    reason: str = ""

    def as_dict(self) -> dict[str, Any]:
        return {
            "topic": self.topic,
            "confidence": self.confidence,
            "method": self.method,
            "reason": self.reason,
        }


def keyword_confidence(score: int) -> float:
    return min(0.95, 0.5 + score * 0.15)


def classify_by_keywords(text: str) -> ClassificationResult | None:
    scores = keyword_scores(text)
    best = max(scores.values(), default=0)
    if best == 0:
        return None
    topic = next(key for key, score in scores.items() if score == best)
    return ClassificationResult(
        topic=topic,
        confidence=keyword_confidence(best),
        method="keyword",
        reason=f"Detected {best} keyword match(es)",
    )


def _build_prompt(memory: UserMemory | None) -> str:
    pillar_list = "\n".join(f"- {key}: {name}" for key, name in PILLAR_NAMES.items())
    active = ", ".join(memory.active_topics()) if memory is not None else ""
    context = f"User's active pillars: {active}" if active else ""
    return (
        "You are a wellness message classifier. Classify the user's message into ONE of these "
        f"wellness pillars:\n\n{pillar_list}\n\n{context}\n\n"
        'Respond with ONLY a JSON object: {"topic": "pillar-key", "confidence": 0.0-1.0, '
        '"reason": "brief explanation"}\n\n'
        "Be strict about classification. Use high confidence only when clearly relevant."
    )


class TopicClassifier:
    """Ordered fallback chain that always yields a topic.

    Keyword tier first, then a classification model call when a provider is
    registered, then the sub-threshold keyword guess, the previous topic and
    finally :data:`DEFAULT_TOPIC`.
    """

    def __init__(self, router: ModelRouter | None = None, *, logger: logging.Logger | None = None) -> None:
        self._router = router
        self._logger = logger or logging.getLogger(__name__)

    async def classify(
        self,
        text: str,
        memory_snapshot: UserMemory | None = None,
        last_topic: str | None = None,
        *,
        explicit_topic: str | None = None,
    ) -> ClassificationResult:
        if is_valid_topic(explicit_topic):
            return ClassificationResult(
                topic=explicit_topic,  # type: ignore[arg-type]
                confidence=1.0,
                method="explicit",
                reason="Topic supplied by caller",
            )

        text = text if isinstance(text, str) else ""
        keyword_result = classify_by_keywords(text)
        if keyword_result is not None and keyword_result.confidence > KEYWORD_ACCEPT_THRESHOLD:
            return keyword_result

        model_result = await self._classify_by_model(text, memory_snapshot)
        if model_result is not None:
            return model_result

        if keyword_result is not None:
            return ClassificationResult(
                topic=keyword_result.topic,
                confidence=keyword_result.confidence,
                method="keyword-fallback",
                reason=keyword_result.reason,
            )

        if is_valid_topic(last_topic):
            return ClassificationResult(
                topic=last_topic,  # type: ignore[arg-type]
                confidence=0.5,
                method="history",
                reason="Using previous topic for context continuity",
            )

        return ClassificationResult(
            topic=DEFAULT_TOPIC,
            confidence=0.4,
            method="default",
            reason="Using mental health as default topic",
        )

    async def _classify_by_model(
        self, text: str, memory: UserMemory | None
    ) -> ClassificationResult | None:
        if self._router is None or not text.strip():
            return None
        if not self._router.has_provider_for(TaskClass.CLASSIFICATION):
            return None
        try:
            result = await self._router.route(
                TaskClass.CLASSIFICATION,
                _build_prompt(memory),
                text,
                temperature=0.3,
                max_tokens=150,
                force_json=True,
            )
            payload = parse_json_object(result.text)
            errors = list(_TOPIC_VALIDATOR.iter_errors(payload))
            if errors:
                raise ValueError(f"Topic verdict failed validation: {errors[0].message}")
            topic = payload["topic"].strip().lower().replace("-", "_")
            if not is_valid_topic(topic):
                raise ValueError(f"Invalid topic: {payload['topic']}")
        except Exception as exc:
            self._logger.warning("topic_model_classification_failed", extra={"error": str(exc)})
            return None

        try:
            confidence = float(payload.get("confidence", 0.0))
        except (TypeError, ValueError):
            confidence = 0.0
        return ClassificationResult(
            topic=topic,
            confidence=max(0.0, min(1.0, confidence)),
            method="model",
            reason=str(payload.get("reason") or "Model classification"),
        )


__all__ = [
    "ClassificationResult",
    "KEYWORD_ACCEPT_THRESHOLD",
    "TopicClassifier",
    "classify_by_keywords",
    "keyword_confidence",
]
