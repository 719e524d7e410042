"""
amdcore/strategies/base.py
===========================
AMD Strategy Contract — AMD Strategy Core

Responsibility:
    - Define DetectionStrategy, the contract every adapter implements:
          initialize(config) → None           (may raise ConfigurationError)
          detect(audio)      → DetectionResult (never raises for recoverable failures)
          cleanup()          → None           (idempotent, never raises)
    - Define the two narrow capability classes:
          StreamingStrategy    — audio-driven, adds detect_from_stream()
          RemoteAudioStrategy  — StreamingStrategy backed by an HTTP service
          EventDrivenStrategy  — event-driven, adds interpret_event();
                                 detect() raises UnsupportedOperation
    - Provide capability queries for callers

Callers MUST branch on capability before choosing an entry point.
"""

import asyncio
import logging
import math
import time
from abc import ABC, abstractmethod
from typing import Any, AsyncIterable, Mapping

import aiohttp

from amdcore.audio.stream_buffer import buffer_decision_window, ensure_wav
from amdcore.results import (
    DetectionError,
    DetectionResult,
    Outcome,
    UnsupportedOperation,
    elapsed_ms,
)

logger = logging.getLogger("amdcore.strategies.base")

# Failures while reading a stream that are treated as recoverable
_STREAM_READ_ERRORS = (
    OSError, EOFError, aiohttp.ClientError, asyncio.TimeoutError, DetectionError,
)

# Failures during a remote classification call that become an unknown result
_RECOVERABLE_ERRORS = (aiohttp.ClientError, DetectionError, ValueError, TypeError, KeyError)


# ---------------------------------------------------------------------------
# Base contract
# ---------------------------------------------------------------------------


class DetectionStrategy(ABC):
    """Uniform contract over all AMD back ends."""

    strategy_type: str = ""
    name: str = ""
    description: str = ""

    def __init__(self) -> None:
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self, config: Mapping[str, Any] | None = None) -> None:
        """
        Validate and resolve configuration once.

        Raises:
            ConfigurationError: If a required key is missing or invalid.
        """
        await self._setup(dict(config or {}))
        self._initialized = True
        logger.info("Strategy initialized: %s", self.strategy_type)

    @abstractmethod
    async def _setup(self, config: dict[str, Any]) -> None:
        """Adapter-specific initialization."""

    @abstractmethod
    async def detect(self, audio: bytes) -> DetectionResult:
        """Classify an audio buffer."""

    async def cleanup(self) -> None:
        """Release held resources. Safe to call any number of times."""
        try:
            await self._teardown()
        except Exception as exc:
            logger.warning("Cleanup of %s failed (ignored): %s", self.strategy_type, exc)
        self._initialized = False

    async def _teardown(self) -> None:
        return None

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError(
                f"{self.strategy_type} strategy used before initialize()"
            )

    async def __aenter__(self) -> "DetectionStrategy":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.cleanup()


# ---------------------------------------------------------------------------
# Capability: streaming audio
# ---------------------------------------------------------------------------


class StreamingStrategy(DetectionStrategy):
    """Audio-driven strategy that also accepts a chunked audio stream."""

    async def detect_from_stream(self, stream: AsyncIterable[bytes]) -> DetectionResult:
        """
        Buffer the stream up to the decision window, then detect once.

        Stream read failures become an ``unknown`` result; the stream
        is never read past the point where detection is triggered.
        """
        self._require_initialized()
        started = time.monotonic()

        try:
            audio = await buffer_decision_window(stream)
        except _STREAM_READ_ERRORS as exc:
            logger.warning("%s stream read failed: %s", self.strategy_type, exc)
            return DetectionResult.failure(
                exc, elapsed_ms(started), strategy=self.strategy_type,
            )

        logger.info(
            "%s: stream buffered (%d bytes) — running detection.",
            self.strategy_type, len(audio),
        )
        return await self.detect(audio)


class RemoteAudioStrategy(StreamingStrategy):
    """
    Streaming strategy that classifies audio through a remote HTTP service.

    Owns an ``aiohttp.ClientSession`` opened at initialize() and closed at
    cleanup(). A session passed to the constructor is used as-is and left
    open for its owner to close.

    Subclasses implement _classify(); detect() wraps it with the request
    time box and converts every recoverable failure into an ``unknown``
    result.
    """

    request_timeout: float = 10.0

    def __init__(self, session: aiohttp.ClientSession | None = None) -> None:
        super().__init__()
        self._session = session
        self._owns_session = session is None

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def _teardown(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        if self._owns_session:
            self._session = None

    async def detect(self, audio: bytes) -> DetectionResult:
        """
        Classify an audio buffer (WAV, or raw 24 kHz 16-bit mono PCM).

        Never raises for network, timeout, HTTP status or parse failures;
        those produce ``unknown`` with confidence 0 and ``metadata["error"]``.
        """
        self._require_initialized()
        started = time.monotonic()

        if not audio:
            logger.warning("%s: empty audio buffer — nothing to classify.", self.strategy_type)
            return DetectionResult.failure(
                "empty audio buffer", elapsed_ms(started), strategy=self.strategy_type,
            )

        wav = ensure_wav(audio)
        logger.debug("%s: submitting %d bytes of audio.", self.strategy_type, len(wav))

        try:
            outcome, confidence, metadata = await asyncio.wait_for(
                self._classify(wav), timeout=self.request_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "%s: remote call timed out after %.0fs.", self.strategy_type, self.request_timeout,
            )
            return DetectionResult.failure(
                f"request timed out after {self.request_timeout:.0f}s",
                elapsed_ms(started),
                strategy=self.strategy_type,
            )
        except _RECOVERABLE_ERRORS as exc:
            logger.warning("%s: detection failed: %s", self.strategy_type, exc)
            return DetectionResult.failure(
                exc, elapsed_ms(started), strategy=self.strategy_type,
            )

        latency = elapsed_ms(started)
        logger.info(
            "%s: %s (confidence=%.2f) in %d ms",
            self.strategy_type, outcome.value, confidence, latency,
        )
        return DetectionResult(
            outcome=outcome,
            confidence=confidence,
            detection_latency_ms=latency,
            metadata=metadata,
        )

    @abstractmethod
    async def _classify(self, wav: bytes) -> tuple[Outcome, float, dict[str, Any]]:
        """
        Submit *wav* to the remote service and interpret the reply.

        Raises:
            DetectionError, aiohttp.ClientError, ValueError: on any
            recoverable failure.
        """


# ---------------------------------------------------------------------------
# Capability: provider events
# ---------------------------------------------------------------------------


class EventDrivenStrategy(DetectionStrategy):
    """
    Strategy whose detection runs inside a remote telephony/SIP platform.

    Results arrive asynchronously as named webhook events, so the only
    supported entry point is interpret_event(). Subclasses supply the
    payload keys to read the event name from, the event → outcome table
    and the fallback for unrecognized events.
    """

    event_keys: tuple[str, ...] = ("event",)
    event_table: dict[str, tuple[Outcome, float]] = {}
    unrecognized: tuple[Outcome, float] = (Outcome.UNKNOWN, 0.75)

    async def detect(self, audio: bytes) -> DetectionResult:
        raise UnsupportedOperation(
            f"{self.strategy_type} detects via provider events; "
            "use interpret_event() instead of detect()"
        )

    async def interpret_event(self, payload: Mapping[str, Any] | str) -> DetectionResult:
        """
        Translate a vendor webhook payload into a DetectionResult.

        Args:
            payload: The webhook body as a mapping, or a bare event name.

        Returns:
            The mapped result. A payload with no readable event name
            yields an ``unknown`` result with ``metadata["error"]``.
        """
        self._require_initialized()
        started = time.monotonic()

        try:
            event, fields = self._read_event(payload)
        except DetectionError as exc:
            logger.warning("%s: unreadable event payload: %s", self.strategy_type, exc)
            return DetectionResult.failure(
                exc, elapsed_ms(started), strategy=self.strategy_type,
            )

        outcome, confidence = self.event_table.get(
            normalize_event_name(event), self.unrecognized,
        )
        if outcome is Outcome.UNKNOWN:
            logger.warning("%s: unrecognized event %r", self.strategy_type, event)
        else:
            logger.info(
                "%s: event %r → %s (%.2f)",
                self.strategy_type, event, outcome.value, confidence,
            )

        return DetectionResult(
            outcome=outcome,
            confidence=confidence,
            detection_latency_ms=_event_latency_ms(fields, started),
            metadata={"event": event, **self._event_metadata(fields)},
        )

    def _read_event(self, payload: Mapping[str, Any] | str) -> tuple[str, Mapping[str, Any]]:
        if isinstance(payload, str):
            name = payload.strip()
            if not name:
                raise DetectionError("event payload is an empty string")
            return name, {}

        if not isinstance(payload, Mapping):
            raise DetectionError(
                f"event payload must be a mapping or string, got {type(payload).__name__}"
            )

        for key in self.event_keys:
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip(), payload

        raise DetectionError(
            f"event payload has no event name (expected one of {list(self.event_keys)})"
        )

    def _event_metadata(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        return {}


def normalize_event_name(event: str) -> str:
    """Lower-case, hyphens to underscores, drop a leading ``amd_`` prefix."""
    name = event.strip().lower().replace("-", "_")
    if name.startswith("amd_"):
        name = name[len("amd_"):]
    return name


def _event_latency_ms(fields: Mapping[str, Any], started: float) -> int:
    """
    Latency from the provider's epoch-ms ``timestamp`` when present,
    otherwise the local interpretation time.
    """
    timestamp = fields.get("timestamp")
    if isinstance(timestamp, (int, float)) and not isinstance(timestamp, bool):
        if math.isfinite(timestamp):
            return max(0, int(time.time() * 1000 - timestamp))
    return elapsed_ms(started)


# ---------------------------------------------------------------------------
# Capability queries
# ---------------------------------------------------------------------------


def supports_streaming(strategy: DetectionStrategy) -> bool:
    return isinstance(strategy, StreamingStrategy)


def is_event_driven(strategy: DetectionStrategy) -> bool:
    return isinstance(strategy, EventDrivenStrategy)
