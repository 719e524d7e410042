"""
amdcore/strategies/registry.py
===============================
Strategy Registry & Factory — AMD Strategy Core

Responsibility:
    - Define the closed set of strategy identifiers (StrategyType)
    - Hold the static StrategyDescriptor catalog used for operator
      selection guidance (latency / accuracy / cost are advisory only)
    - Construct strategies lazily: only the requested adapter module is
      imported

Adding a strategy = one StrategyType member + one catalog entry + one
dispatch entry. The dispatch table is checked against StrategyType at
import time so it can never silently miss a member.
"""

import importlib
import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Mapping

from amdcore.results import UnknownStrategyType
from amdcore.strategies.base import DetectionStrategy

logger = logging.getLogger("amdcore.strategies.registry")


# ---------------------------------------------------------------------------
# Strategy identifiers
# ---------------------------------------------------------------------------


class StrategyType(str, Enum):
    """Closed set of AMD back ends."""

    SIGNALING = "signaling"
    SIP_EVENT = "sip_event"
    ML_INFERENCE = "ml_inference"
    LLM_AUDIO = "llm_audio"


INPUT_AUDIO = "audio"
INPUT_EVENT = "event"


@dataclass(frozen=True)
class StrategyDescriptor:
    """Static catalog entry for one strategy type."""

    strategy_type: StrategyType
    name: str
    description: str
    latency: str
    accuracy: str
    cost: str
    input_kind: str

    def to_dict(self) -> dict[str, str]:
        data = asdict(self)
        data["strategy_type"] = self.strategy_type.value
        return data


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

_CATALOG: dict[StrategyType, StrategyDescriptor] = {
    StrategyType.SIGNALING: StrategyDescriptor(
        strategy_type=StrategyType.SIGNALING,
        name="Telephony Native AMD",
        description="Built-in telephony provider machine detection (baseline)",
        latency="Medium (2-5s)",
        accuracy="Good (75-85%)",
        cost="Included",
        input_kind=INPUT_EVENT,
    ),
    StrategyType.SIP_EVENT: StrategyDescriptor(
        strategy_type=StrategyType.SIP_EVENT,
        name="SIP Platform AMD",
        description="SIP-enhanced detection with custom recognizers",
        latency="Low (1-3s)",
        accuracy="Very Good (80-90%)",
        cost="Self-hosted",
        input_kind=INPUT_EVENT,
    ),
    StrategyType.ML_INFERENCE: StrategyDescriptor(
        strategy_type=StrategyType.ML_INFERENCE,
        name="ML Classifier",
        description="ML-based wav2vec voicemail detection",
        latency="Low (1-2s)",
        accuracy="Excellent (85-95%)",
        cost="Compute costs",
        input_kind=INPUT_AUDIO,
    ),
    StrategyType.LLM_AUDIO: StrategyDescriptor(
        strategy_type=StrategyType.LLM_AUDIO,
        name="LLM Audio Analysis",
        description="Real-time LLM audio analysis",
        latency="Very Low (<1s)",
        accuracy="Excellent (90-95%)",
        cost="Per-token",
        input_kind=INPUT_AUDIO,
    ),
}

# StrategyType → (module, class); imported only when requested
_DISPATCH: dict[StrategyType, tuple[str, str]] = {
    StrategyType.SIGNALING: ("amdcore.strategies.signaling", "SignalingStrategy"),
    StrategyType.SIP_EVENT: ("amdcore.strategies.sip_event", "SipEventStrategy"),
    StrategyType.ML_INFERENCE: ("amdcore.strategies.ml_inference", "MlInferenceStrategy"),
    StrategyType.LLM_AUDIO: ("amdcore.strategies.llm_audio", "LlmAudioStrategy"),
}

if set(_DISPATCH) != set(StrategyType) or set(_CATALOG) != set(StrategyType):
    raise RuntimeError("Strategy registry does not cover every StrategyType")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def resolve_strategy_type(strategy_type: StrategyType | str) -> StrategyType:
    """
    Normalize an identifier to a StrategyType.

    Raises:
        UnknownStrategyType: If the identifier is not registered.
    """
    if isinstance(strategy_type, StrategyType):
        return strategy_type
    try:
        return StrategyType(str(strategy_type).strip().lower())
    except ValueError:
        raise UnknownStrategyType(
            f"Unknown AMD strategy: {strategy_type!r}. "
            f"Must be one of {[t.value for t in StrategyType]}"
        ) from None


def list_strategies() -> list[StrategyDescriptor]:
    return [_CATALOG[t] for t in StrategyType]


def get_descriptor(strategy_type: StrategyType | str) -> StrategyDescriptor:
    return _CATALOG[resolve_strategy_type(strategy_type)]


def create_strategy(strategy_type: StrategyType | str, **options: Any) -> DetectionStrategy:
    """
    Construct (but do not initialize) the strategy for *strategy_type*.

    Args:
        strategy_type: A StrategyType or its string value.
        **options:     Constructor options for the adapter (e.g. an
                       injected ``session`` for audio adapters).

    Returns:
        A new, uninitialized DetectionStrategy.

    Raises:
        UnknownStrategyType: If the identifier is not registered. Nothing
        is imported or constructed in that case.
    """
    resolved = resolve_strategy_type(strategy_type)
    module_name, class_name = _DISPATCH[resolved]

    module = importlib.import_module(module_name)
    strategy_cls = getattr(module, class_name)
    logger.debug("Constructing strategy %s (%s.%s)", resolved.value, module_name, class_name)
    return strategy_cls(**options)


async def create_and_initialize(
    strategy_type: StrategyType | str,
    config: Mapping[str, Any] | None = None,
    **options: Any,
) -> DetectionStrategy:
    """
    Construct and initialize a strategy in one step.

    Raises:
        UnknownStrategyType: For unregistered identifiers.
        ConfigurationError:  If required configuration is missing.
    """
    strategy = create_strategy(strategy_type, **options)
    try:
        await strategy.initialize(config)
    except Exception:
        await strategy.cleanup()
        raise
    return strategy
