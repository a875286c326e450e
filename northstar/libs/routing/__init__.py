"""Topic classification for routing messages to pillar specialists."""

from .classifier import ClassificationResult, TopicClassifier, classify_by_keywords
from .pillars import DEFAULT_TOPIC, PILLAR_KEYWORDS, PILLAR_NAMES, is_valid_topic

__all__ = [
    "ClassificationResult",
    "DEFAULT_TOPIC",
    "PILLAR_KEYWORDS",
    "PILLAR_NAMES",
    "TopicClassifier",
    "classify_by_keywords",
    "is_valid_topic",
]
