"""Ingestion orchestration: device lookup, engine run and trigger evaluation."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from functools import lru_cache
from threading import Lock
from typing import Any, Dict, List, Optional

from datastore.capability_store import CapabilityStore, build_default_store
from models.records import Measurement, SemanticEvent
from services.device import VentilationDevice
from services.triggers import FiredTrigger, TriggerRegistry, TriggerRule, evaluate_condition

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    """Outcome of one processed measurement."""

    device_id: str
    events: List[SemanticEvent] = field(default_factory=list)
    fired: List[FiredTrigger] = field(default_factory=list)
    processing_ms: int = 0


class MeasurementService:
    """Coordinates devices, their capability store and trigger rules."""

    def __init__(self, store: CapabilityStore, triggers: Optional[TriggerRegistry] = None) -> None:
        self.store = store
        self.triggers = triggers or TriggerRegistry()
        self._devices: Dict[str, VentilationDevice] = {}
        self._devices_lock = Lock()

    def get_device(self, device_id: str) -> VentilationDevice:
        """Return the device for ``device_id``, creating it on first use."""
        with self._devices_lock:
            device = self._devices.get(device_id)
            if device is None:
                device = VentilationDevice(device_id, self.store)
                self._devices[device_id] = device
            return device

    def find_device(self, device_id: str) -> VentilationDevice:
        with self._devices_lock:
            device = self._devices.get(device_id)
        if device is not None:
            return device
        # Devices restored from a persisted store are rebuilt on demand.
        if self.store.has_device(device_id):
            return self.get_device(device_id)
        raise KeyError(f"Device {device_id!r} not found.")

    async def ingest(self, device_id: str, measurement: Measurement) -> IngestResult:
        start_time = time.perf_counter()
        device = self.get_device(device_id)
        try:
            events = await device.handle_measurement(measurement)
        except KeyError as exc:
            logger.warning(
                "Capability update failed",
                extra={"device_id": device_id, "reason": str(exc)},
            )
            raise

        fired = self.triggers.evaluate(device_id, device, events)
        processing_ms = int((time.perf_counter() - start_time) * 1000)
        logger.debug(
            "Measurement processed",
            extra={
                "device_id": device_id,
                "event_count": len(events),
                "fired_count": len(fired),
                "processing_ms": processing_ms,
            },
        )
        return IngestResult(
            device_id=device_id,
            events=events,
            fired=fired,
            processing_ms=processing_ms,
        )

    def snapshot(self, device_id: str) -> Dict[str, Any]:
        device = self.find_device(device_id)
        return {
            "device_id": device_id,
            "capabilities": device.capabilities(),
            "previous_values": device.engine.snapshot(),
        }

    def register_rule(self, device_id: str, event_id: str, args: Optional[Dict[str, Any]] = None) -> TriggerRule:
        return self.triggers.register(device_id, event_id, args)

    def check_condition(self, device_id: str, condition_id: str, args: Dict[str, Any]) -> bool:
        device = self.find_device(device_id)
        return evaluate_condition(device, condition_id, args)


@lru_cache
def build_default_service() -> MeasurementService:
    """Factory that wires the service with the configured capability store."""
    return MeasurementService(store=build_default_store())
