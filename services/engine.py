"""Translation of decoded measurements into capability writes and semantic events."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Tuple

from models.records import Measurement, MetricKind, SemanticEvent

logger = logging.getLogger(__name__)

AUTO_AIR_QUALITY_CONTROL_MODE = "auto_air_quality_control_mode"
PREVIOUS_VALUE_KEY = "previousValue"


class CapabilitySurface(Protocol):
    """Device-side operations the engine applies its results through."""

    def has_capability(self, capability: str) -> bool:
        ...

    async def set_capability_value(self, capability: str, value: Any) -> None:
        ...

    async def add_capability(self, capability: str) -> None:
        ...

    async def remove_capability(self, capability: str) -> None:
        ...


@dataclass(frozen=True)
class MetricPolicy:
    """How readings of one metric kind are written and which events they raise.

    ``event`` is the event id prefix; plain writes have none. A ``state_key``
    marks the metric as tracked, which adds the threshold candidate pair once
    a previous value exists. Gated metrics add or remove ``capability`` and
    ``companions`` depending on whether the reading is positive or zero.
    """

    capability: str
    event: Optional[str] = None
    token: Optional[str] = None
    discriminator: Optional[Tuple[str, str]] = None
    state_key: Optional[str] = None
    gated: bool = False
    companions: Tuple[str, ...] = ()
    as_text: bool = False

    @property
    def presence_capabilities(self) -> Tuple[str, ...]:
        return (self.capability, *self.companions)


POLICIES: Dict[MetricKind, MetricPolicy] = {
    MetricKind.SupplyTemperature: MetricPolicy(
        capability="measure_supply_temperature",
        event="temperature",
        token="temperature",
        discriminator=("temperature_type", "supply"),
        state_key="supply_temperature",
    ),
    MetricKind.ReturnTemperature: MetricPolicy(
        capability="measure_return_temperature",
        event="temperature",
        token="temperature",
        discriminator=("temperature_type", "return"),
        state_key="return_temperature",
    ),
    MetricKind.IntakeTemperature: MetricPolicy(
        capability="measure_intake_temperature",
        event="temperature",
        token="temperature",
        discriminator=("temperature_type", "intake"),
        state_key="intake_temperature",
    ),
    MetricKind.HumidityPercent: MetricPolicy(
        capability="measure_humidity_percent",
        event="humidity",
        token="humidity",
        state_key="humidity_percent",
    ),
    MetricKind.HumidityAmount: MetricPolicy(capability="measure_humidity_amount"),
    MetricKind.CurrentFanSpeed: MetricPolicy(capability="measure_fan_speed", as_text=True),
    MetricKind.VentilationLevelIn: MetricPolicy(
        capability="measure_ventilation_level_in",
        event="ventilation_level",
        token="level",
        discriminator=("ventilation_type", "supply"),
        state_key="ventilation_level_in",
    ),
    MetricKind.VentilationLevelOut: MetricPolicy(
        capability="measure_ventilation_level_out",
        event="ventilation_level",
        token="level",
        discriminator=("ventilation_type", "exhaust"),
        state_key="ventilation_level_out",
    ),
    MetricKind.BoostCountDown: MetricPolicy(capability="measure_boost_countdown"),
    MetricKind.AirQuality: MetricPolicy(
        capability="measure_air_quality",
        event="air_quality",
        token="air_quality",
        gated=True,
        companions=(AUTO_AIR_QUALITY_CONTROL_MODE,),
    ),
    MetricKind.CO2: MetricPolicy(
        capability="measure_co2",
        event="co2",
        token="co2",
        state_key="co2",
        gated=True,
    ),
}

# Capabilities every device exposes from the start; gated ones come and go.
BASE_CAPABILITIES: Tuple[str, ...] = tuple(
    policy.capability for policy in POLICIES.values() if not policy.gated
)


def format_text(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class PreviousValues:
    """Last observed value per tracked metric.

    Every tracked kind has a slot from construction, holding ``None`` until
    its first reading. Slots are never cleared.
    """

    def __init__(self) -> None:
        self._slots: Dict[MetricKind, Optional[float]] = {
            kind: None for kind, policy in POLICIES.items() if policy.state_key
        }

    def get(self, kind: MetricKind) -> Optional[float]:
        return self._slots[kind]

    def set(self, kind: MetricKind, value: float) -> None:
        if kind not in self._slots:
            raise KeyError(f"Metric {kind.name} is not tracked.")
        self._slots[kind] = value

    def snapshot(self) -> Dict[str, Optional[float]]:
        return {
            POLICIES[kind].state_key: value  # type: ignore[misc]
            for kind, value in self._slots.items()
        }


class MeasurementEventEngine:
    """Stateful translator from one measurement to writes and events.

    Calls for the same engine must not overlap; the owning device
    serialises them.
    """

    def __init__(self) -> None:
        self._previous = PreviousValues()

    def previous_value(self, kind: MetricKind) -> Optional[float]:
        return self._previous.get(kind)

    def snapshot(self) -> Dict[str, Optional[float]]:
        return self._previous.snapshot()

    async def process(
        self, measurement: Measurement, surface: CapabilitySurface
    ) -> List[SemanticEvent]:
        policy = POLICIES.get(measurement.kind)  # type: ignore[call-overload]
        if policy is None:
            return []

        kind = MetricKind(measurement.kind)
        value = measurement.value
        logger.info("%s: %s", kind.name, value, extra={"metric": kind.name, "value": value})

        if policy.gated:
            if value == 0:
                await self._withdraw(policy, surface)
                return []
            if value < 0:
                return []
            await self._expose(policy, surface)

        previous = self._previous.get(kind) if policy.state_key else None
        written = format_text(value) if policy.as_text else value
        await surface.set_capability_value(policy.capability, written)

        if policy.event is None:
            return []

        events = [self._build_event(policy, "changed", value)]
        if policy.state_key:
            if previous is not None:
                events.append(self._build_event(policy, "above_threshold", value, previous))
                events.append(self._build_event(policy, "below_threshold", value, previous))
            self._previous.set(kind, value)
        return events

    @staticmethod
    async def _expose(policy: MetricPolicy, surface: CapabilitySurface) -> None:
        for capability in policy.presence_capabilities:
            if not surface.has_capability(capability):
                await surface.add_capability(capability)

    @staticmethod
    async def _withdraw(policy: MetricPolicy, surface: CapabilitySurface) -> None:
        for capability in policy.presence_capabilities:
            if surface.has_capability(capability):
                await surface.remove_capability(capability)

    @staticmethod
    def _build_event(
        policy: MetricPolicy,
        suffix: str,
        value: float,
        previous: Optional[float] = None,
    ) -> SemanticEvent:
        filter_state: Dict[str, Any] = {}
        if policy.discriminator is not None:
            key, channel = policy.discriminator
            filter_state[key] = channel
        if previous is not None:
            filter_state[PREVIOUS_VALUE_KEY] = previous
        return SemanticEvent(
            event_id=f"{policy.event}_{suffix}",
            filter_state=filter_state,
            tokens={policy.token: value},
        )
