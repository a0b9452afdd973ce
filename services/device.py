"""Ventilation unit device that owns an engine and exposes its capabilities."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from fastapi.concurrency import run_in_threadpool

from datastore.capability_store import CapabilityStore
from models.records import Measurement, SemanticEvent
from services.engine import BASE_CAPABILITIES, MeasurementEventEngine

logger = logging.getLogger(__name__)


class VentilationDevice:
    """Capability surface for one unit, backed by a shared capability store.

    Measurements are handled one at a time so the engine's previous-value
    read and overwrite for a metric never interleave. Store mutations run in
    the threadpool since a persisted store writes to disk on every change.
    """

    def __init__(self, device_id: str, store: CapabilityStore) -> None:
        self.device_id = device_id
        self.store = store
        self.engine = MeasurementEventEngine()
        self._lock = asyncio.Lock()
        store.ensure_device(device_id, BASE_CAPABILITIES)

    async def handle_measurement(self, measurement: Measurement) -> List[SemanticEvent]:
        async with self._lock:
            return await self.engine.process(measurement, self)

    def has_capability(self, capability: str) -> bool:
        return self.store.has_capability(self.device_id, capability)

    def get_capability_value(self, capability: str) -> Optional[Any]:
        return self.store.get_value(self.device_id, capability)

    async def set_capability_value(self, capability: str, value: Any) -> None:
        await run_in_threadpool(self.store.set_value, self.device_id, capability, value)

    async def add_capability(self, capability: str) -> None:
        logger.info(
            "Adding capability",
            extra={"device_id": self.device_id, "capability": capability},
        )
        await run_in_threadpool(self.store.add_capability, self.device_id, capability)

    async def remove_capability(self, capability: str) -> None:
        logger.info(
            "Removing capability",
            extra={"device_id": self.device_id, "capability": capability},
        )
        await run_in_threadpool(self.store.remove_capability, self.device_id, capability)

    def capabilities(self) -> Dict[str, Any]:
        return self.store.capabilities(self.device_id)
