"""HTTP route definitions for the service."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import (
    ConditionResult,
    DeviceSnapshot,
    FiredTriggerOut,
    MeasurementIn,
    MeasurementResponse,
    SemanticEventOut,
    TriggerRuleIn,
    TriggerRuleOut,
)
from datastore.capability_store import CapabilityNotFoundError
from models.records import Measurement, MetricKind
from services.processor import MeasurementService, build_default_service

router = APIRouter()


def get_service() -> MeasurementService:
    return build_default_service()


@router.post(
    "/devices/{device_id}/measurements",
    response_model=MeasurementResponse,
    summary="Process one decoded measurement for a device.",
)
async def post_measurement(
    device_id: str,
    payload: MeasurementIn,
    service: MeasurementService = Depends(get_service),
) -> MeasurementResponse:
    measurement = Measurement(kind=MetricKind.parse(payload.kind), value=payload.value)
    try:
        result = await service.ingest(device_id, measurement)
    except CapabilityNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Device capability update failed: {exc.args[0]}",
        ) from exc
    return MeasurementResponse(
        device_id=result.device_id,
        events=[
            SemanticEventOut(
                event_id=event.event_id,
                filter_state=event.filter_state,
                tokens=event.tokens,
            )
            for event in result.events
        ],
        fired=[
            FiredTriggerOut(rule_id=item.rule_id, event_id=item.event_id, tokens=item.tokens)
            for item in result.fired
        ],
        processing_ms=result.processing_ms,
    )


@router.get(
    "/devices/{device_id}",
    response_model=DeviceSnapshot,
    summary="Fetch current capability values for a device.",
)
async def get_device(
    device_id: str,
    service: MeasurementService = Depends(get_service),
) -> DeviceSnapshot:
    try:
        snapshot = service.snapshot(device_id)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc.args[0]),
        ) from exc
    return DeviceSnapshot(**snapshot)


@router.post(
    "/devices/{device_id}/rules",
    status_code=status.HTTP_201_CREATED,
    response_model=TriggerRuleOut,
    summary="Register a trigger rule evaluated against emitted events.",
)
async def post_rule(
    device_id: str,
    payload: TriggerRuleIn,
    service: MeasurementService = Depends(get_service),
) -> TriggerRuleOut:
    try:
        rule = service.register_rule(device_id, payload.event_id, payload.args)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return TriggerRuleOut(rule_id=rule.rule_id, event_id=rule.event_id, args=rule.args)


@router.get(
    "/devices/{device_id}/conditions/{condition_id}",
    response_model=ConditionResult,
    summary="Evaluate a condition against the live capability value.",
)
async def get_condition(
    device_id: str,
    condition_id: str,
    threshold: float = Query(..., description="Value to compare against."),
    temperature_type: Optional[str] = Query(None, description="supply, return or intake."),
    service: MeasurementService = Depends(get_service),
) -> ConditionResult:
    args = {"threshold": threshold, "temperature_type": temperature_type}
    try:
        result = service.check_condition(device_id, condition_id, args)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc.args[0]),
        ) from exc
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return ConditionResult(condition_id=condition_id, result=result)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
