# amdcore/strategies/__init__.py
# ===============================
# Strategy Layer — AMD Strategy Core
#
# Four interchangeable AMD back ends behind one contract:
#   - signaling     (event-driven: telephony provider AMD webhooks)
#   - sip_event     (event-driven: SIP platform amd_* events)
#   - ml_inference  (audio-driven: remote classifier)
#   - llm_audio     (audio-driven: generative multimodal model)
#
# Adapter modules are imported lazily by the registry; only the contract
# and the registry are imported here.
#
# Public API:
#   create_strategy(type) → DetectionStrategy

from amdcore.strategies.base import (  # noqa: F401
    DetectionStrategy,
    EventDrivenStrategy,
    StreamingStrategy,
    is_event_driven,
    supports_streaming,
)
from amdcore.strategies.registry import (  # noqa: F401
    StrategyDescriptor,
    StrategyType,
    create_and_initialize,
    create_strategy,
    get_descriptor,
    list_strategies,
)

__all__ = [
    "DetectionStrategy",
    "EventDrivenStrategy",
    "StreamingStrategy",
    "is_event_driven",
    "supports_streaming",
    "StrategyDescriptor",
    "StrategyType",
    "create_and_initialize",
    "create_strategy",
    "get_descriptor",
    "list_strategies",
]
