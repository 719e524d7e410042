"""
amdcore/strategies/signaling.py
================================
Telephony-Native AMD Strategy — AMD Strategy Core

Responsibility:
    - Provide the outbound-call AMD parameters for the telephony transport
      (machine detection mode, async callback, timing thresholds)
    - Translate the provider's async AMD webhook (``AnsweredBy``) into a
      normalized DetectionResult

Detection runs inside the telephony provider; the result arrives as a
webhook delivered by the transport collaborator. detect(audio) is NOT a
supported entry point and raises UnsupportedOperation.

Event mapping:
    human                                        → human     0.80
    machine_start / machine_end_beep /
    machine_end_silence / machine_end_other      → machine   0.85
    fax                                          → fax       0.90
    unknown (provider could not decide in time)  → undecided 0.50
    anything else                                → unknown   0.70

Only the telephony provider's own status names are mapped. SIP platform
events such as ``decision-timeout`` are not part of this vocabulary and
fall through to ``unknown``.
"""

import logging
from typing import Any, Mapping

from amdcore.config import SignalingConfig
from amdcore.results import Outcome
from amdcore.strategies.base import EventDrivenStrategy

logger = logging.getLogger("amdcore.strategies.signaling")


_MACHINE_CONFIDENCE: float = 0.85

_EVENT_TABLE: dict[str, tuple[Outcome, float]] = {
    "human": (Outcome.HUMAN, 0.80),
    "machine_start": (Outcome.MACHINE, _MACHINE_CONFIDENCE),
    "machine_end_beep": (Outcome.MACHINE, _MACHINE_CONFIDENCE),
    "machine_end_silence": (Outcome.MACHINE, _MACHINE_CONFIDENCE),
    "machine_end_other": (Outcome.MACHINE, _MACHINE_CONFIDENCE),
    "fax": (Outcome.FAX, 0.90),
    "unknown": (Outcome.UNDECIDED, 0.50),
}


class SignalingStrategy(EventDrivenStrategy):
    """AMD performed by the telephony provider and reported via webhook."""

    strategy_type = "signaling"
    name = "Telephony Native AMD"
    description = "Built-in telephony provider machine detection (baseline)"

    event_keys = ("AnsweredBy", "AnsweringMachineDetection", "event")
    event_table = _EVENT_TABLE
    unrecognized = (Outcome.UNKNOWN, 0.70)

    def __init__(self) -> None:
        super().__init__()
        self._config: SignalingConfig | None = None

    async def _setup(self, config: dict[str, Any]) -> None:
        self._config = SignalingConfig.from_mapping(config)
        if not self._config.status_callback_url:
            logger.warning(
                "No status_callback_url configured — the provider will not "
                "deliver async AMD results for calls placed with these parameters."
            )

    def call_parameters(self) -> dict[str, Any]:
        """
        AMD parameters to attach to the outbound call request.

        Returns:
            Dict using the provider's parameter names.
        """
        self._require_initialized()
        cfg = self._config
        return {
            "machineDetection": cfg.machine_detection,
            "asyncAmd": cfg.async_amd,
            "asyncAmdStatusCallback": cfg.status_callback_url,
            "machineDetectionTimeout": cfg.machine_detection_timeout,
            "machineDetectionSpeechThreshold": cfg.machine_detection_speech_threshold,
            "machineDetectionSpeechEndThreshold": cfg.machine_detection_speech_end_threshold,
            "machineDetectionSilenceTimeout": cfg.machine_detection_silence_timeout,
        }

    def _event_metadata(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "call_sid": fields.get("CallSid"),
            "call_duration": fields.get("CallDuration"),
            "detection_duration_ms": fields.get("MachineDetectionDuration"),
        }
