"""Crisis safety checks run ahead of routing and generation."""

from .detectors import CrisisVerdict, Detector, ModelCrisisDetector, PatternDetector
from .gate import CrisisGate, format_crisis_response
from .resources import get_crisis_resources

__all__ = [
    "CrisisGate",
    "CrisisVerdict",
    "Detector",
    "ModelCrisisDetector",
    "PatternDetector",
    "format_crisis_response",
    "get_crisis_resources",
]
