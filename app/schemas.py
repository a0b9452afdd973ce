"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from models.records import MetricKind


class MeasurementIn(BaseModel):
    """A decoded measurement submitted for one device."""

    kind: Union[int, str] = Field(
        ..., description="Metric kind as wire code or name, e.g. 12 or 'CO2'."
    )
    value: float

    @field_validator("kind")
    @classmethod
    def _known_kind_name(cls, value: Union[int, str]) -> Union[int, str]:
        MetricKind.parse(value)
        return value


class SemanticEventOut(BaseModel):
    event_id: str
    filter_state: Dict[str, Any] = Field(default_factory=dict)
    tokens: Dict[str, Any] = Field(default_factory=dict)


class FiredTriggerOut(BaseModel):
    rule_id: str
    event_id: str
    tokens: Dict[str, Any] = Field(default_factory=dict)


class MeasurementResponse(BaseModel):
    """Events produced by one measurement and the rules they fired."""

    device_id: str
    events: List[SemanticEventOut] = Field(default_factory=list)
    fired: List[FiredTriggerOut] = Field(default_factory=list)
    processing_ms: int = Field(..., ge=0)


class DeviceSnapshot(BaseModel):
    """Current capability values and tracked previous values for a device."""

    device_id: str
    capabilities: Dict[str, Any] = Field(default_factory=dict)
    previous_values: Dict[str, Optional[float]] = Field(default_factory=dict)


class TriggerRuleIn(BaseModel):
    event_id: str
    args: Dict[str, Any] = Field(
        default_factory=dict,
        description="Filter arguments such as temperature_type and threshold.",
    )


class TriggerRuleOut(BaseModel):
    rule_id: str
    event_id: str
    args: Dict[str, Any] = Field(default_factory=dict)


class ConditionResult(BaseModel):
    condition_id: str
    result: bool
