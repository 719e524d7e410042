"""
amdcore/pipeline.py
====================
Detection Orchestrator — AMD Strategy Core

Responsibility:
    1. Build and initialize the requested strategy
    2. Dispatch the input to the entry point matching its kind:
           bytes                → detect()
           mapping / str        → interpret_event()     (event-driven only)
           async iterable       → detect_from_stream()  (streaming only)
    3. Always clean the strategy up
    4. Optionally write the result through the persistence collaborator

A capability mismatch (e.g. audio for an event-driven strategy) is caller
misuse and raises UnsupportedOperation; it is never converted into a result.

This layer MUST NOT:
    - Decide outcomes itself
    - Swallow ConfigurationError / UnknownStrategyType
"""

import logging
from typing import Any, AsyncIterable, Mapping

from amdcore.collaborators import CallRecordStore, detection_update
from amdcore.results import DetectionResult, UnsupportedOperation
from amdcore.strategies.base import (
    DetectionStrategy,
    EventDrivenStrategy,
    StreamingStrategy,
)
from amdcore.strategies.registry import StrategyType, create_and_initialize

logger = logging.getLogger("amdcore.pipeline")

DetectionInput = bytes | bytearray | Mapping[str, Any] | str | AsyncIterable[bytes]


async def dispatch(strategy: DetectionStrategy, source: DetectionInput) -> DetectionResult:
    """
    Route *source* to the strategy entry point that accepts it.

    Raises:
        UnsupportedOperation: If the strategy lacks the needed capability
            or the input kind is not recognized.
    """
    if isinstance(source, (bytes, bytearray)):
        return await strategy.detect(bytes(source))

    if isinstance(source, (Mapping, str)):
        if not isinstance(strategy, EventDrivenStrategy):
            raise UnsupportedOperation(
                f"{strategy.strategy_type} does not interpret provider events"
            )
        return await strategy.interpret_event(source)

    if hasattr(source, "__aiter__"):
        if not isinstance(strategy, StreamingStrategy):
            raise UnsupportedOperation(
                f"{strategy.strategy_type} does not accept audio streams"
            )
        return await strategy.detect_from_stream(source)

    raise UnsupportedOperation(
        f"Unsupported detection input type: {type(source).__name__}"
    )


async def run_detection(
    strategy_type: StrategyType | str,
    config: Mapping[str, Any] | None,
    source: DetectionInput,
    store: CallRecordStore | None = None,
    call_id: str | None = None,
    **options: Any,
) -> DetectionResult:
    """
    Run one detection end to end.

    Args:
        strategy_type: Strategy identifier.
        config:        Strategy configuration mapping.
        source:        Audio bytes, an event payload, or an audio stream.
        store:         Optional persistence collaborator.
        call_id:       Call record to update (required when *store* is given).
        **options:     Constructor options passed to the strategy.

    Returns:
        The normalized DetectionResult.

    Raises:
        UnknownStrategyType, ConfigurationError, UnsupportedOperation,
        ValueError (store given without call_id).
    """
    if store is not None and not call_id:
        raise ValueError("call_id is required when a store is given")

    strategy = await create_and_initialize(strategy_type, config, **options)
    try:
        result = await dispatch(strategy, source)
    finally:
        await strategy.cleanup()

    if result.is_failure:
        logger.warning(
            "Detection failed: strategy=%s error=%s latency=%dms",
            strategy.strategy_type,
            result.metadata["error"],
            result.detection_latency_ms,
        )
    else:
        logger.info(
            "Detection complete: strategy=%s outcome=%s confidence=%.2f latency=%dms",
            strategy.strategy_type,
            result.outcome.value,
            result.confidence,
            result.detection_latency_ms,
        )

    if store is not None:
        await store.update_call_record(call_id, detection_update(result))
        logger.info("Call record %s updated with detection result.", call_id)

    return result
