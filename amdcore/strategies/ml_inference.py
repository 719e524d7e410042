"""
amdcore/strategies/ml_inference.py
===================================
ML Classifier AMD Strategy — AMD Strategy Core

Responsibility:
    - Probe the classifier service's /health endpoint at initialize()
      (non-fatal: a failed probe is logged as a warning)
    - Upload audio as multipart/form-data to {service_url}/predict
    - Interpret the ``{label, confidence | score}`` reply against the
      configured confidence threshold (default 0.7)

Decision rule:
    label contains "voicemail" / "machine" → machine   if score ≥ threshold
    label contains "human" / "person"      → human     if score ≥ threshold
    otherwise (or below threshold)         → undecided

Remote call bound: 10 s. Transport, status and parse failures produce an
``unknown`` result with confidence 0.

This module does NOT:
    - Host, load, or run the model itself
    - Resample or transcode audio
"""

import asyncio
import logging
from typing import Any

import aiohttp

from amdcore.config import MlInferenceConfig
from amdcore.results import DetectionError, Outcome, clamp_confidence
from amdcore.strategies.base import RemoteAudioStrategy

logger = logging.getLogger("amdcore.strategies.ml_inference")

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

ML_TIMEOUT_SECONDS: float = 10.0
HEALTH_TIMEOUT_SECONDS: float = 5.0

PREDICT_PATH: str = "/predict"
HEALTH_PATH: str = "/health"

_MACHINE_MARKERS: tuple[str, ...] = ("voicemail", "machine")
_HUMAN_MARKERS: tuple[str, ...] = ("human", "person")


class MlInferenceStrategy(RemoteAudioStrategy):
    """Remote wav2vec-style voicemail classifier."""

    strategy_type = "ml_inference"
    name = "ML Classifier"
    description = "ML-based wav2vec voicemail detection"

    request_timeout = ML_TIMEOUT_SECONDS

    def __init__(self, session: aiohttp.ClientSession | None = None) -> None:
        super().__init__(session)
        self._config: MlInferenceConfig | None = None

    async def _setup(self, config: dict[str, Any]) -> None:
        self._config = MlInferenceConfig.from_mapping(config)
        self._ensure_session()
        logger.info(
            "ML service: %s (threshold=%.2f)",
            self._config.service_url, self._config.confidence_threshold,
        )
        await self._probe_health()

    async def _probe_health(self) -> None:
        """Liveness probe. Logs a warning on failure, never raises."""
        url = f"{self._config.service_url}{HEALTH_PATH}"
        try:
            status = await asyncio.wait_for(self._get_status(url), timeout=HEALTH_TIMEOUT_SECONDS)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            logger.warning("ML service health check failed (%s): %s", url, str(exc) or type(exc).__name__)
            return

        if status >= 400:
            logger.warning("ML service health check failed (%s): HTTP %d", url, status)
        else:
            logger.debug("ML service healthy (%s).", url)

    async def _get_status(self, url: str) -> int:
        async with self._session.get(
            url, timeout=aiohttp.ClientTimeout(total=HEALTH_TIMEOUT_SECONDS),
        ) as resp:
            return resp.status

    async def _classify(self, wav: bytes) -> tuple[Outcome, float, dict[str, Any]]:
        form = aiohttp.FormData()
        form.add_field("audio", wav, filename="audio.wav", content_type="audio/wav")

        async with self._session.post(
            f"{self._config.service_url}{PREDICT_PATH}",
            data=form,
            timeout=aiohttp.ClientTimeout(total=ML_TIMEOUT_SECONDS),
        ) as resp:
            if resp.status >= 400:
                error_text = await resp.text()
                raise DetectionError(
                    f"ML service error: {resp.status} - {error_text[:200]}"
                )
            body = await resp.json(content_type=None)

        return interpret_prediction(body, self._config.confidence_threshold)


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------


def interpret_prediction(
    body: Any,
    threshold: float,
) -> tuple[Outcome, float, dict[str, Any]]:
    """
    Map a classifier reply to (outcome, confidence, metadata).

    Args:
        body:      Decoded JSON reply, expected ``{"label": str,
                   "confidence" | "score": number}``.
        threshold: Minimum score for a definite human/machine decision.

    Returns:
        Tuple of outcome, clamped confidence and diagnostic metadata.

    Raises:
        DetectionError: If the label is missing or the score is not numeric.
    """
    if not isinstance(body, dict):
        raise DetectionError(f"Expected JSON object, got {type(body).__name__}")

    label = body.get("label")
    if not isinstance(label, str) or not label.strip():
        raise DetectionError(f"ML response has no usable label: {label!r}")

    # A zero or missing confidence defers to score when the service sends one
    raw_score: Any = body.get("confidence")
    if raw_score is None or (type(raw_score) in (int, float) and raw_score == 0):
        if body.get("score") is not None:
            raw_score = body["score"]

    if raw_score is not None and (
        isinstance(raw_score, bool) or not isinstance(raw_score, (int, float))
    ):
        raise DetectionError(f"ML score must be a number, got {raw_score!r}")

    confidence = clamp_confidence(raw_score, default=0.0)
    label_lower = label.lower()

    if any(marker in label_lower for marker in _MACHINE_MARKERS):
        outcome = Outcome.MACHINE if confidence >= threshold else Outcome.UNDECIDED
    elif any(marker in label_lower for marker in _HUMAN_MARKERS):
        outcome = Outcome.HUMAN if confidence >= threshold else Outcome.UNDECIDED
    else:
        outcome = Outcome.UNDECIDED

    metadata = {
        "model_label": label,
        "raw_score": raw_score,
        "processing_time": body.get("processing_time", body.get("processingTime")),
        "threshold": threshold,
    }
    return outcome, confidence, metadata
