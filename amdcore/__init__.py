# amdcore/__init__.py
# ====================
# AMD Strategy Core
#
# Answering-machine detection strategy selection and result normalization:
#   - results.py       DetectionResult, Outcome, error tiers
#   - config.py        per-strategy configuration (env + caller overrides)
#   - strategies/      contract, registry, four back-end adapters
#   - audio/           decision-window stream buffering
#   - collaborators.py persistence / telephony interfaces (consumed only)
#   - pipeline.py      run_detection orchestrator
#
# Public API:
#   create_strategy(type)                     → DetectionStrategy
#   run_detection(type, config, source, ...)  → DetectionResult

from amdcore.results import (  # noqa: F401
    ConfigurationError,
    DetectionResult,
    Outcome,
    UnknownStrategyType,
    UnsupportedOperation,
)
from amdcore.strategies.registry import (  # noqa: F401
    StrategyType,
    create_strategy,
    list_strategies,
)
from amdcore.pipeline import run_detection  # noqa: F401

__version__ = "1.0.0"

__all__ = [
    "ConfigurationError",
    "DetectionResult",
    "Outcome",
    "UnknownStrategyType",
    "UnsupportedOperation",
    "StrategyType",
    "create_strategy",
    "list_strategies",
    "run_detection",
]
