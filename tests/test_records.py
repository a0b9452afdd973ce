from __future__ import annotations

import pytest

from models.records import MetricKind


def test_parse_accepts_codes_and_names() -> None:
    assert MetricKind.parse(12) is MetricKind.CO2
    assert MetricKind.parse("12") is MetricKind.CO2
    assert MetricKind.parse("SupplyTemperature") is MetricKind.SupplyTemperature
    assert MetricKind.parse("supply_temperature") is MetricKind.SupplyTemperature
    assert MetricKind.parse("co2") is MetricKind.CO2


def test_parse_passes_unknown_codes_through() -> None:
    assert MetricKind.parse(42) == 42
    assert not isinstance(MetricKind.parse(42), MetricKind)


def test_parse_rejects_unknown_names() -> None:
    with pytest.raises(ValueError):
        MetricKind.parse("Pressure")
    with pytest.raises(ValueError):
        MetricKind.parse(True)
