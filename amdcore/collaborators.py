"""
amdcore/collaborators.py
=========================
External Collaborator Interfaces — AMD Strategy Core

The core CONSUMES these boundaries but never implements them:

    CallRecordStore     — persistence of call records; detection results
                          are written through update_call_record()
    TelephonyTransport  — places outbound calls (with the AMD parameters
                          produced by the event-driven strategies) and
                          delivers provider webhooks to interpret_event()

This module does NOT:
    - Define a storage schema or talk to a database
    - Place calls or receive webhooks
"""

from dataclasses import dataclass
from typing import Any, Mapping, Protocol

from amdcore.results import DetectionResult


@dataclass
class CallRecord:
    """One outbound call as seen by the persistence collaborator."""

    id: str
    target_number: str
    amd_strategy: str
    status: str
    dialed_at: str
    amd_result: str | None = None
    amd_confidence: float | None = None
    detection_time_ms: int | None = None
    duration: int | None = None


class CallRecordStore(Protocol):
    async def create_call_record(self, record: CallRecord) -> CallRecord: ...

    async def update_call_record(self, call_id: str, fields: Mapping[str, Any]) -> CallRecord: ...

    async def list_call_records(self) -> list[CallRecord]: ...

    async def get_call_record(self, call_id: str) -> CallRecord | None: ...


class TelephonyTransport(Protocol):
    async def place_call(self, target_number: str, call_parameters: Mapping[str, Any]) -> str: ...

    async def get_call_status(self, call_id: str) -> str: ...


def detection_update(result: DetectionResult) -> dict[str, Any]:
    """CallRecord fields to write for a detection result."""
    return {
        "amd_result": result.outcome.value,
        "amd_confidence": result.confidence,
        "detection_time_ms": result.detection_latency_ms,
    }
