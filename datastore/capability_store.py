from __future__ import annotations
import json
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Iterable, Optional

from settings import get_settings


class CapabilityNotFoundError(KeyError):
    """Raised when a device capability is written or removed while absent."""


class CapabilityStore:

    def __init__(self, name: str, persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self._devices: Dict[str, Dict[str, Any]] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def has_device(self, device_id: str) -> bool:
        with self._lock:
            return device_id in self._devices

    def ensure_device(self, device_id: str, capabilities: Iterable[str]) -> None:
        """Register a device with its base capabilities unless it is already known."""
        with self._lock:
            if device_id in self._devices:
                return
            self._devices[device_id] = {capability: None for capability in capabilities}
            self._persist()

    def has_capability(self, device_id: str, capability: str) -> bool:
        with self._lock:
            return capability in self._devices.get(device_id, {})

    def add_capability(self, device_id: str, capability: str) -> None:
        with self._lock:
            capabilities = self._devices.setdefault(device_id, {})
            if capability in capabilities:
                return
            capabilities[capability] = None
            self._persist()

    def remove_capability(self, device_id: str, capability: str) -> None:
        with self._lock:
            capabilities = self._devices.get(device_id, {})
            if capability not in capabilities:
                raise CapabilityNotFoundError(
                    f"Capability {capability!r} is not present on device {device_id!r}."
                )
            del capabilities[capability]
            self._persist()

    def set_value(self, device_id: str, capability: str, value: Any) -> None:
        with self._lock:
            capabilities = self._devices.get(device_id, {})
            if capability not in capabilities:
                raise CapabilityNotFoundError(
                    f"Capability {capability!r} is not present on device {device_id!r}."
                )
            capabilities[capability] = value
            self._persist()

    def get_value(self, device_id: str, capability: str) -> Any:
        with self._lock:
            return self._devices.get(device_id, {}).get(capability)

    def capabilities(self, device_id: str) -> Dict[str, Any]:
        """Return a copy of the current capability values for a device."""

        with self._lock:
            if device_id not in self._devices:
                raise KeyError(f"Device {device_id!r} not found in store {self.name!r}.")
            return dict(self._devices[device_id])

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        self.persistence_path.write_text(json.dumps(self._devices, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = {}

        for device_id, capabilities in data.items():
            if isinstance(capabilities, dict):
                self._devices[device_id] = dict(capabilities)


@lru_cache
def build_default_store(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> CapabilityStore:
    settings = get_settings()
    store_name = settings.store_name if name is None else name
    store_path = settings.store_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return CapabilityStore(name=store_name, persistence_path=persistence)
