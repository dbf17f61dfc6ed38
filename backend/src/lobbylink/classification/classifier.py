"""Main error classifier implementation."""
import logging
from collections import Counter
from datetime import UTC, datetime
from typing import Any

from ..exceptions import LobbyLinkError
from ..types import ErrorKind
from .categories import ErrorClassification, ErrorPattern
from .patterns import ALL_PATTERNS

logger = logging.getLogger(__name__)


class ErrorClassifier:
    """Maps raw failure signals onto the closed ErrorKind set.

    ``classify`` is total: exceptions, status codes, errno names, message
    strings and anything unexpected all come back as an ErrorKind, with
    ``UNKNOWN`` as the fallback.
    """

    def __init__(self, custom_patterns: list[ErrorPattern] | None = None):
        """Initialize classifier with patterns.

        Args:
            custom_patterns: Additional patterns, consulted after the
                predefined ones on equal match strength

        """
        self.patterns = ALL_PATTERNS.copy()
        if custom_patterns:
            self.patterns.extend(custom_patterns)
        self._counts: Counter[ErrorKind] = Counter()

    def classify(self, signal: Any, context: dict[str, Any] | None = None) -> ErrorKind:
        """Classify a failure signal into an ErrorKind."""
        return self.explain(signal, context).kind

    def explain(
        self,
        signal: Any,
        context: dict[str, Any] | None = None
    ) -> ErrorClassification:
        """Classify a signal and report how the decision was made.

        Args:
            signal: Exception, status code, errno name or message
            context: Additional context carried into the classification

        Returns:
            Classification with kind, confidence and matched pattern

        """
        classification = self._explain(signal, context or {})
        self._counts[classification.kind] += 1

        logger.debug(
            f"Classified {type(signal).__name__} as {classification.kind.value} "
            f"with confidence {classification.confidence:.2f}"
        )
        return classification

    def _explain(self, signal: Any, context: dict[str, Any]) -> ErrorClassification:
        if isinstance(signal, ErrorKind):
            return self._result(signal, signal, 1.0, None, context)

        if isinstance(signal, LobbyLinkError) and isinstance(signal.kind, ErrorKind):
            return self._result(signal, signal.kind, 1.0, None, context)

        best_match: tuple[ErrorPattern, float] | None = None
        for pattern in self.patterns:
            try:
                score = pattern.matches(signal)
            except Exception as e:
                # A signal whose attributes or str() blow up must still classify
                logger.debug(f"Pattern for {pattern.kind.value} could not inspect signal: {e!r}")
                continue
            if score > 0 and (best_match is None or score > best_match[1]):
                best_match = (pattern, score)

        if best_match:
            pattern, confidence = best_match
            return self._result(signal, pattern.kind, confidence, pattern, context)

        return self._result(signal, ErrorKind.UNKNOWN, 0.0, None, context)

    @staticmethod
    def _result(
        signal: Any,
        kind: ErrorKind,
        confidence: float,
        pattern: ErrorPattern | None,
        context: dict[str, Any]
    ) -> ErrorClassification:
        return ErrorClassification(
            signal=signal,
            kind=kind,
            confidence=confidence,
            matched_pattern=pattern,
            context=context,
            timestamp=datetime.now(UTC)
        )

    def add_pattern(self, pattern: ErrorPattern) -> None:
        """Add a custom pattern to the classifier."""
        self.patterns.append(pattern)

    def get_statistics(self) -> dict[str, Any]:
        """Get classification statistics."""
        total = sum(self._counts.values())
        return {
            "total_classifications": total,
            "by_kind": {kind.value: self._counts[kind] for kind in ErrorKind},
            "patterns_loaded": len(self.patterns),
        }


_default_classifier: ErrorClassifier | None = None


def default_classifier() -> ErrorClassifier:
    """Shared classifier used when a component is not given one."""
    global _default_classifier
    if _default_classifier is None:
        _default_classifier = ErrorClassifier()
    return _default_classifier
