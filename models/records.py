"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Union


class MetricKind(IntEnum):
    """Measurable quantities reported by the ventilation unit, in wire order."""

    SupplyTemperature = 0
    ReturnTemperature = 1
    IntakeTemperature = 2
    HumidityPercent = 3
    HumidityAmount = 4
    SetPointSupplyTemperature = 5
    CurrentFanSpeed = 6
    VentilationLevelIn = 7
    VentilationLevelOut = 8
    SummerNightCoolingMode = 9
    BoostCountDown = 10
    AirQuality = 11
    CO2 = 12

    @classmethod
    def parse(cls, raw: Union[int, str]) -> Union["MetricKind", int]:
        """Resolve a wire code or member name.

        Integer codes that name no member are returned unchanged so that
        newer firmware kinds pass through as no-ops. Unknown names raise
        ``ValueError``.
        """
        if isinstance(raw, bool):
            raise ValueError(f"Invalid metric kind {raw!r}.")
        if isinstance(raw, int):
            try:
                return cls(raw)
            except ValueError:
                return raw

        candidate = raw.strip()
        if candidate.lstrip("-").isdigit():
            return cls.parse(int(candidate))

        normalized = candidate.replace("_", "").lower()
        for member in cls:
            if member.name.lower() == normalized:
                return member
        raise ValueError(f"Unknown metric kind {raw!r}.")


@dataclass(frozen=True, slots=True)
class Measurement:
    """A single decoded reading from the unit."""

    kind: Union[MetricKind, int]
    value: float


@dataclass(slots=True)
class SemanticEvent:
    """A named state change with filter discriminators and payload tokens."""

    event_id: str
    filter_state: Dict[str, Any] = field(default_factory=dict)
    tokens: Dict[str, Any] = field(default_factory=dict)
