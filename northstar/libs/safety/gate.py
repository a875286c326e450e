"""Crisis gate evaluated before any generation call."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Sequence

from .detectors import CrisisVerdict, Detector, ModelCrisisDetector, PatternDetector
from .resources import COUNSELLOR_NOTE, crisis_message, get_crisis_resources


class CrisisGate:
    """Run detectors in order and stop at the first one that fires.

    When a detector raises, the message is treated as "no crisis" and the
    failure is logged with ``method="model-error"``. This fail-open policy is
    inherited behaviour awaiting an owner decision.
    """

    def __init__(
        self,
        detectors: Sequence[Detector] | None = None,
        *,
        country: str = "us",
        logger: logging.Logger | None = None,
    ) -> None:
        self._detectors: list[Detector] = list(detectors) if detectors is not None else [PatternDetector()]
        self._country = country
        self._logger = logger or logging.getLogger(__name__)

    @classmethod
    def with_model(cls, router: Any, *, country: str = "us") -> "CrisisGate":
        return cls([PatternDetector(), ModelCrisisDetector(router)], country=country)

    async def check(self, text: Any) -> CrisisVerdict:
        if not isinstance(text, str) or not text.strip():
            return CrisisVerdict.clear()

        for detector in self._detectors:
            available = getattr(detector, "available", None)
            if available is not None and not available():
                continue
            try:
                verdict = await detector.detect(text)
            except Exception as exc:
                self._logger.warning(
                    "crisis_detector_failed",
                    extra={"detector": detector.name, "method": "model-error", "error": str(exc)},
                )
                return CrisisVerdict.clear("model-error")
            if verdict.is_crisis:
                self._logger.warning(
                    "crisis_detected",
                    extra={
                        "category": verdict.category,
                        "severity": verdict.severity,
                        "method": verdict.method,
                    },
                )
                return replace(
                    verdict,
                    message=crisis_message(verdict.category),
                    resources=get_crisis_resources(verdict.category, self._country),
                )

        return CrisisVerdict.clear()


def format_crisis_response(verdict: CrisisVerdict) -> dict[str, Any] | None:
    """Shape a positive verdict into the caller-facing payload."""

    if not verdict.is_crisis:
        return None
    return {
        "ok": True,
        "is_crisis": True,
        "severity": verdict.severity,
        "category": verdict.category,
        "message": verdict.message,
        "text": verdict.message,
        "resources": list(verdict.resources),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "note": COUNSELLOR_NOTE,
    }


__all__ = ["CrisisGate", "format_crisis_response"]
