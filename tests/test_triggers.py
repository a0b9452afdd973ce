"""Unit tests for trigger filters and conditions."""

from __future__ import annotations

from typing import Any, Dict, Optional

import pytest

from models.records import SemanticEvent
from services.triggers import (
    KNOWN_EVENTS,
    TriggerRegistry,
    TriggerRule,
    evaluate_condition,
    matches,
)


class StubDevice:
    def __init__(self, values: Optional[Dict[str, Any]] = None) -> None:
        self.values = dict(values or {})

    def get_capability_value(self, capability: str) -> Optional[Any]:
        return self.values.get(capability)


def _rule(event_id: str, **args: Any) -> TriggerRule:
    return TriggerRule(rule_id="rule-1", event_id=event_id, args=args)


def test_known_events_cover_engine_output() -> None:
    assert set(KNOWN_EVENTS) == {
        "temperature_changed",
        "temperature_above_threshold",
        "temperature_below_threshold",
        "humidity_changed",
        "humidity_above_threshold",
        "humidity_below_threshold",
        "ventilation_level_changed",
        "ventilation_level_above_threshold",
        "ventilation_level_below_threshold",
        "co2_changed",
        "co2_above_threshold",
        "co2_below_threshold",
        "air_quality_changed",
    }


def test_changed_event_filters_on_channel() -> None:
    event = SemanticEvent("temperature_changed", {"temperature_type": "supply"}, {"temperature": 20.0})
    device = StubDevice()

    assert matches(_rule("temperature_changed", temperature_type="supply"), event, device)
    assert not matches(_rule("temperature_changed", temperature_type="intake"), event, device)
    assert not matches(_rule("humidity_changed"), event, device)


def test_changed_event_without_channel_always_matches() -> None:
    event = SemanticEvent("co2_changed", {}, {"co2": 500})

    assert matches(_rule("co2_changed"), event, StubDevice())


@pytest.mark.parametrize(
    "previous, current, threshold, expected",
    [
        (18.0, 22.0, 20.0, True),
        (20.0, 22.0, 20.0, True),
        (18.0, 20.0, 20.0, False),
        (22.0, 25.0, 20.0, False),
    ],
)
def test_above_threshold_crossing(previous, current, threshold, expected) -> None:
    event = SemanticEvent(
        "temperature_above_threshold",
        {"temperature_type": "return", "previousValue": previous},
        {"temperature": current},
    )
    device = StubDevice({"measure_return_temperature": current})
    rule = _rule("temperature_above_threshold", temperature_type="return", threshold=threshold)

    assert matches(rule, event, device) is expected


@pytest.mark.parametrize(
    "previous, current, threshold, expected",
    [
        (3, 1, 2, True),
        (2, 1, 2, True),
        (3, 2, 2, False),
        (1, 0, 2, False),
    ],
)
def test_below_threshold_crossing_for_ventilation(previous, current, threshold, expected) -> None:
    event = SemanticEvent(
        "ventilation_level_below_threshold",
        {"ventilation_type": "exhaust", "previousValue": previous},
        {"level": current},
    )
    device = StubDevice({"measure_ventilation_level_out": current})
    rule = _rule("ventilation_level_below_threshold", ventilation_type="exhaust", threshold=threshold)

    assert matches(rule, event, device) is expected


def test_threshold_event_uses_live_capability_value() -> None:
    event = SemanticEvent("co2_above_threshold", {"previousValue": 700}, {"co2": 1200})
    rule = _rule("co2_above_threshold", threshold=1000)

    assert matches(rule, event, StubDevice({"measure_co2": 1200}))
    assert not matches(rule, event, StubDevice({"measure_co2": 900}))
    assert not matches(rule, event, StubDevice())


def test_threshold_event_without_previous_value_never_matches() -> None:
    event = SemanticEvent("humidity_above_threshold", {}, {"humidity": 70})
    rule = _rule("humidity_above_threshold", threshold=50)

    assert not matches(rule, event, StubDevice({"measure_humidity_percent": 70}))


def test_registry_rejects_unknown_events_and_missing_thresholds() -> None:
    registry = TriggerRegistry()

    with pytest.raises(ValueError, match="Unknown event"):
        registry.register("unit-1", "climate_mode_changed")
    with pytest.raises(ValueError, match="threshold"):
        registry.register("unit-1", "co2_above_threshold", {})


def test_registry_evaluates_rules_per_device() -> None:
    registry = TriggerRegistry()
    changed = registry.register("unit-1", "co2_changed")
    above = registry.register("unit-1", "co2_above_threshold", {"threshold": 1000})
    registry.register("unit-2", "co2_changed")

    events = [
        SemanticEvent("co2_changed", {}, {"co2": 1100}),
        SemanticEvent("co2_above_threshold", {"previousValue": 900}, {"co2": 1100}),
        SemanticEvent("co2_below_threshold", {"previousValue": 900}, {"co2": 1100}),
    ]
    fired = registry.evaluate("unit-1", StubDevice({"measure_co2": 1100}), events)

    assert [(item.rule_id, item.event_id) for item in fired] == [
        (changed.rule_id, "co2_changed"),
        (above.rule_id, "co2_above_threshold"),
    ]
    assert fired[0].tokens == {"co2": 1100}


def test_conditions_compare_live_values() -> None:
    device = StubDevice(
        {
            "measure_intake_temperature": -4.0,
            "measure_humidity_percent": 55,
            "measure_co2": 900,
        }
    )

    assert evaluate_condition(device, "temperature_is_below", {"temperature_type": "intake", "threshold": 0})
    assert not evaluate_condition(device, "temperature_is_above", {"temperature_type": "intake", "threshold": 0})
    assert evaluate_condition(device, "humidity_is_above", {"threshold": 50})
    assert evaluate_condition(device, "co2_is_below", {"threshold": 1000})
    assert not evaluate_condition(device, "co2_is_above", {"threshold": 900})


def test_condition_on_missing_value_is_false() -> None:
    assert not evaluate_condition(StubDevice(), "co2_is_above", {"threshold": 0})


def test_condition_errors() -> None:
    device = StubDevice()

    with pytest.raises(KeyError):
        evaluate_condition(device, "climate_mode_is", {"threshold": 1})
    with pytest.raises(ValueError):
        evaluate_condition(device, "temperature_is_above", {"threshold": 1})
    with pytest.raises(ValueError):
        evaluate_condition(device, "humidity_is_above", {})


@pytest.mark.parametrize(
    "event_id, args",
    [
        ("temperature_changed", {}),
        ("temperature_changed", {"temperature_type": "exhaust"}),
        ("ventilation_level_above_threshold", {"ventilation_type": "intake", "threshold": 2}),
        ("ventilation_level_changed", {"temperature_type": "supply"}),
    ],
)
def test_registry_rejects_rules_without_a_valid_channel(event_id, args) -> None:
    registry = TriggerRegistry()

    with pytest.raises(ValueError, match="_type"):
        registry.register("unit-1", event_id, args)
    assert registry.rules("unit-1") == []


def test_registry_accepts_every_known_channel() -> None:
    registry = TriggerRegistry()

    for channel in ("supply", "return", "intake"):
        registry.register("unit-1", "temperature_changed", {"temperature_type": channel})
    for channel in ("supply", "exhaust"):
        registry.register("unit-1", "ventilation_level_changed", {"ventilation_type": channel})

    assert len(registry.rules("unit-1")) == 5
