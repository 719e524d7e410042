"""
amdcore/strategies/sip_event.py
================================
SIP Platform AMD Strategy — AMD Strategy Core

Responsibility:
    - Build the dial-verb AMD configuration for the SIP platform
      (recognizer, word-count threshold, timers, action hook)
    - Translate the platform's ``amd_*`` webhook events into a normalized
      DetectionResult

Detection runs inside the SIP platform with its own recognizers; events
arrive through the transport collaborator's webhook deliveries.
detect(audio) raises UnsupportedOperation.

Event mapping (``amd_`` prefix optional, hyphens accepted):
    human_detected                     → human     0.85
    machine_detected                   → machine   0.88
    machine_stopped_speaking           → machine   0.90
    decision_timeout / no_speech_detected → undecided 0.50
    tone_detected                      → fax       0.90
    anything else                      → unknown   0.75

Only the SIP platform's own event names are mapped. Telephony provider
statuses such as ``machine-end-beep`` are not part of this vocabulary and
fall through to ``unknown``.
"""

import logging
from typing import Any, Mapping

from amdcore.config import SipEventConfig
from amdcore.results import Outcome
from amdcore.strategies.base import EventDrivenStrategy

logger = logging.getLogger("amdcore.strategies.sip_event")

ACTION_HOOK_PATH: str = "/api/amd-events/sip"

_EVENT_TABLE: dict[str, tuple[Outcome, float]] = {
    "human_detected": (Outcome.HUMAN, 0.85),
    "machine_detected": (Outcome.MACHINE, 0.88),
    "machine_stopped_speaking": (Outcome.MACHINE, 0.90),
    "decision_timeout": (Outcome.UNDECIDED, 0.50),
    "no_speech_detected": (Outcome.UNDECIDED, 0.50),
    "tone_detected": (Outcome.FAX, 0.90),
}


class SipEventStrategy(EventDrivenStrategy):
    """AMD performed by a SIP platform and reported as named events."""

    strategy_type = "sip_event"
    name = "SIP Platform AMD"
    description = "SIP-enhanced detection with custom recognizers"

    event_keys = ("event", "type")
    event_table = _EVENT_TABLE
    unrecognized = (Outcome.UNKNOWN, 0.75)

    def __init__(self) -> None:
        super().__init__()
        self._config: SipEventConfig | None = None

    async def _setup(self, config: dict[str, Any]) -> None:
        self._config = SipEventConfig.from_mapping(config)
        logger.info("SIP platform: %s", self._config.platform_url)

    def dial_config(self) -> dict[str, Any]:
        """Dial-verb configuration enabling AMD on an outbound SIP call."""
        self._require_initialized()
        cfg = self._config
        return {
            "actionHook": f"{cfg.app_base_url}{ACTION_HOOK_PATH}",
            "amd": {
                "recognizer": {
                    "vendor": cfg.recognizer_vendor,
                    "language": cfg.recognizer_language,
                },
                "thresholdWordCount": cfg.threshold_word_count,
                "timers": {
                    "noSpeechTimeoutMs": cfg.decision_timeout_ms,
                    "decisionTimeoutMs": cfg.decision_timeout_ms,
                    "toneTimeoutMs": cfg.tone_timeout_ms,
                    "greetingCompletionTimeoutMs": cfg.greeting_completion_timeout_ms,
                },
            },
        }

    def _event_metadata(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "word_count": fields.get("wordCount"),
            "speech_duration_ms": fields.get("speechDurationMs"),
            "reason": fields.get("reason"),
        }
