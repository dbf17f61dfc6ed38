"""Error classification for the lobby join system."""
from .categories import ErrorClassification, ErrorPattern
from .classifier import ErrorClassifier, default_classifier

__all__ = [
    "ErrorClassifier",
    "ErrorClassification",
    "ErrorPattern",
    "default_classifier",
]
