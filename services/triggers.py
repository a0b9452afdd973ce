"""Trigger filters and conditions evaluated against engine output.

A trigger rule names an event id and the arguments a user configured for
it: a channel discriminator such as ``temperature_type`` and, for the
threshold events, a ``threshold``. The engine never sees thresholds; the
crossing test happens here against the event's ``previousValue`` and the
live capability value.
"""

from __future__ import annotations

import logging
import operator
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Tuple
from uuid import uuid4

from models.records import SemanticEvent
from services.engine import POLICIES, PREVIOUS_VALUE_KEY

logger = logging.getLogger(__name__)

CHANGED = "changed"
ABOVE_THRESHOLD = "above_threshold"
BELOW_THRESHOLD = "below_threshold"


class CapabilityReader(Protocol):
    def get_capability_value(self, capability: str) -> Optional[Any]:
        ...


@dataclass(frozen=True)
class TriggerRule:
    rule_id: str
    event_id: str
    args: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FiredTrigger:
    rule_id: str
    event_id: str
    tokens: Dict[str, Any] = field(default_factory=dict)


def _known_events() -> Tuple[str, ...]:
    events: List[str] = []
    for policy in POLICIES.values():
        if policy.event is None:
            continue
        suffixes = [CHANGED]
        if policy.state_key:
            suffixes += [ABOVE_THRESHOLD, BELOW_THRESHOLD]
        for suffix in suffixes:
            event_id = f"{policy.event}_{suffix}"
            if event_id not in events:
                events.append(event_id)
    return tuple(events)


KNOWN_EVENTS = _known_events()


def split_event_id(event_id: str) -> Tuple[str, str]:
    for suffix in (CHANGED, ABOVE_THRESHOLD, BELOW_THRESHOLD):
        if event_id.endswith(f"_{suffix}"):
            return event_id[: -len(suffix) - 1], suffix
    raise ValueError(f"Unknown event {event_id!r}.")


def discriminator_key(prefix: str) -> Optional[str]:
    for policy in POLICIES.values():
        if policy.event == prefix and policy.discriminator is not None:
            return policy.discriminator[0]
    return None


def channels(prefix: str) -> Tuple[str, ...]:
    return tuple(
        policy.discriminator[1]
        for policy in POLICIES.values()
        if policy.event == prefix and policy.discriminator is not None
    )


def channel_capability(prefix: str, channel: Optional[str] = None) -> Optional[str]:
    """Capability holding the live value for an event prefix and channel."""
    for policy in POLICIES.values():
        if policy.event != prefix:
            continue
        if policy.discriminator is None or policy.discriminator[1] == channel:
            return policy.capability
    return None


def crossed_above(previous: float, current: float, threshold: float) -> bool:
    return previous <= threshold < current


def crossed_below(previous: float, current: float, threshold: float) -> bool:
    return previous >= threshold > current


def _as_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def matches(rule: TriggerRule, event: SemanticEvent, device: CapabilityReader) -> bool:
    """Return whether ``rule`` fires for ``event`` on ``device``."""
    if rule.event_id != event.event_id:
        return False

    prefix, suffix = split_event_id(event.event_id)
    key = discriminator_key(prefix)
    if key is not None and rule.args.get(key) != event.filter_state.get(key):
        return False
    if suffix == CHANGED:
        return True

    previous = _as_number(event.filter_state.get(PREVIOUS_VALUE_KEY))
    threshold = _as_number(rule.args.get("threshold"))
    if previous is None or threshold is None:
        return False

    channel = event.filter_state.get(key) if key else None
    capability = channel_capability(prefix, channel)
    current = _as_number(device.get_capability_value(capability)) if capability else None
    if current is None:
        return False

    if suffix == ABOVE_THRESHOLD:
        return crossed_above(previous, current, threshold)
    return crossed_below(previous, current, threshold)


class TriggerRegistry:
    """Per-device trigger rules."""

    def __init__(self) -> None:
        self._rules: Dict[str, List[TriggerRule]] = {}
        self._lock = Lock()

    def register(self, device_id: str, event_id: str, args: Optional[Dict[str, Any]] = None) -> TriggerRule:
        if event_id not in KNOWN_EVENTS:
            raise ValueError(f"Unknown event {event_id!r}.")
        rule_args = dict(args or {})
        prefix, suffix = split_event_id(event_id)
        key = discriminator_key(prefix)
        if key is not None and rule_args.get(key) not in channels(prefix):
            raise ValueError(
                f"Event {event_id!r} requires {key} to be one of {', '.join(channels(prefix))}."
            )
        if suffix != CHANGED and _as_number(rule_args.get("threshold")) is None:
            raise ValueError(f"Event {event_id!r} requires a numeric threshold.")

        rule = TriggerRule(rule_id=str(uuid4()), event_id=event_id, args=rule_args)
        with self._lock:
            self._rules.setdefault(device_id, []).append(rule)
        logger.info(
            "Registered trigger rule",
            extra={"device_id": device_id, "event_id": event_id, "rule_id": rule.rule_id},
        )
        return rule

    def rules(self, device_id: str) -> List[TriggerRule]:
        with self._lock:
            return list(self._rules.get(device_id, []))

    def evaluate(
        self,
        device_id: str,
        device: CapabilityReader,
        events: Iterable[SemanticEvent],
    ) -> List[FiredTrigger]:
        rules = self.rules(device_id)
        fired: List[FiredTrigger] = []
        for event in events:
            for rule in rules:
                if matches(rule, event, device):
                    fired.append(
                        FiredTrigger(rule_id=rule.rule_id, event_id=event.event_id, tokens=dict(event.tokens))
                    )
        return fired


CONDITIONS: Dict[str, Tuple[str, Callable[[float, float], bool]]] = {
    "temperature_is_above": ("temperature", operator.gt),
    "temperature_is_below": ("temperature", operator.lt),
    "humidity_is_above": ("humidity", operator.gt),
    "humidity_is_below": ("humidity", operator.lt),
    "co2_is_above": ("co2", operator.gt),
    "co2_is_below": ("co2", operator.lt),
}


def evaluate_condition(device: CapabilityReader, condition_id: str, args: Dict[str, Any]) -> bool:
    """Compare the live capability value against ``args["threshold"]``.

    Raises ``KeyError`` for unknown conditions and ``ValueError`` for a
    missing threshold or channel. A capability without a value is false.
    """
    if condition_id not in CONDITIONS:
        raise KeyError(f"Unknown condition {condition_id!r}.")
    prefix, compare = CONDITIONS[condition_id]

    threshold = _as_number(args.get("threshold"))
    if threshold is None:
        raise ValueError(f"Condition {condition_id!r} requires a numeric threshold.")

    key = discriminator_key(prefix)
    channel = args.get(key) if key else None
    capability = channel_capability(prefix, channel)
    if capability is None:
        raise ValueError(f"Condition {condition_id!r} requires a valid {key}.")

    current = _as_number(device.get_capability_value(capability))
    if current is None:
        return False
    return compare(current, threshold)
