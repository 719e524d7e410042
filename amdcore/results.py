"""
amdcore/results.py
===================
Detection Result & Error Types — AMD Strategy Core

Responsibility:
    - Define the normalized DetectionResult returned by every strategy
    - Define the Outcome enum (one value per detection attempt)
    - Define the error tiers shared by all strategies:
          ConfigurationError   → fatal, raised from initialize()
          UnsupportedOperation → caller misuse, propagated
          UnknownStrategyType  → registry misuse, propagated
          DetectionError       → recoverable, converted into an
                                 ``unknown`` result, never raised to callers

This module does NOT:
    - Perform any network I/O
    - Decide outcomes (each adapter owns its decision rules)
"""

import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Outcome enum
# ---------------------------------------------------------------------------


class Outcome(str, Enum):
    """Allowed AMD outcomes."""

    HUMAN = "human"
    MACHINE = "machine"
    VOICEMAIL = "voicemail"
    FAX = "fax"
    UNDECIDED = "undecided"
    UNKNOWN = "unknown"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigurationError(Exception):
    """Raised from initialize() when required configuration is missing or invalid."""

    def __init__(self, strategy: str, message: str):
        self.strategy = strategy
        self.message = message
        super().__init__(f"{strategy} configuration error: {message}")


class UnsupportedOperation(Exception):
    """Raised when a caller uses an entry point the strategy does not support."""
    pass


class UnknownStrategyType(ValueError):
    """Raised by the registry for an unregistered strategy identifier."""
    pass


class DetectionError(Exception):
    """
    Recoverable detection-tier failure (bad status, malformed payload).

    Adapters raise this internally and convert it into an ``unknown``
    result; it never reaches the caller.
    """
    pass


# ---------------------------------------------------------------------------
# DetectionResult
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DetectionResult:
    """The single normalized output of any AMD strategy."""

    outcome: Outcome
    confidence: float
    detection_latency_ms: int
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.outcome, Outcome):
            # Accept raw string values ("human") and coerce to the enum
            object.__setattr__(self, "outcome", Outcome(self.outcome))

        if isinstance(self.confidence, bool) or not isinstance(self.confidence, (int, float)):
            raise ValueError(
                f"Confidence must be a number, got {type(self.confidence).__name__}"
            )
        if not math.isfinite(self.confidence) or not 0.0 <= self.confidence <= 1.0:
            raise ValueError(
                f"Confidence must be in [0.0, 1.0], got {self.confidence}"
            )
        if self.detection_latency_ms < 0:
            raise ValueError(
                f"detection_latency_ms must be non-negative, got {self.detection_latency_ms}"
            )
        object.__setattr__(self, "confidence", float(self.confidence))

    @classmethod
    def failure(
        cls,
        error: Exception | str,
        latency_ms: int,
        **metadata: Any,
    ) -> "DetectionResult":
        """
        Build the recoverable-failure result: ``unknown`` with confidence 0.

        Args:
            error:      The causing exception or its message.
            latency_ms: Elapsed time up to the failure.
            **metadata: Extra diagnostic fields (strategy, model, ...).

        Returns:
            DetectionResult with a non-empty ``metadata["error"]``.
        """
        message = str(error).strip() or type(error).__name__
        return cls(
            outcome=Outcome.UNKNOWN,
            confidence=0.0,
            detection_latency_ms=max(0, int(latency_ms)),
            metadata={**metadata, "error": message},
        )

    @property
    def is_failure(self) -> bool:
        return self.outcome is Outcome.UNKNOWN and "error" in self.metadata

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-ready dict."""
        return {
            "outcome": self.outcome.value,
            "confidence": self.confidence,
            "detection_latency_ms": self.detection_latency_ms,
            "metadata": dict(self.metadata),
        }


# ---------------------------------------------------------------------------
# Helpers shared by the adapters
# ---------------------------------------------------------------------------


def clamp_confidence(value: Any, default: float = 0.0) -> float:
    """
    Coerce a remote confidence value into [0.0, 1.0].

    Non-numeric, boolean, NaN and None values yield *default*; infinities
    and out-of-range numbers are clipped to the nearest bound.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if math.isnan(value):
        return default
    return min(1.0, max(0.0, float(value)))


def elapsed_ms(started: float) -> int:
    """Milliseconds elapsed since a ``time.monotonic()`` reading."""
    return max(0, int((time.monotonic() - started) * 1000))
