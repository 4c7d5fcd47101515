"""API routes for the ESP32 push endpoint and the live dashboard card."""

import json
import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.exception_handlers import http_exception_handler as default_http_exception_handler
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from airwatch.schemas.telemetry import (
    ErrorResponse,
    IngestErrorResponse,
    IngestResponse,
    LogsBlock,
    LogsResponse,
    LogTotals,
    SnapshotResponse,
)
from airwatch.services.errors import IngestFailure
from airwatch.services.telemetry import TelemetryStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Sensor"])

# Mounted under /api
SENSOR_PATH = "/api/sensor"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def get_store(request: Request) -> TelemetryStore:
    return request.app.state.telemetry_store


def _json(body, status_code: int = 200) -> JSONResponse:
    content = body.model_dump(by_alias=True, mode="json")
    return JSONResponse(content, status_code=status_code, headers=CORS_HEADERS)


# ── OPTIONS /api/sensor ─────────────────────────────


@router.options("/sensor", include_in_schema=False)
async def sensor_preflight():
    return Response(status_code=200, headers=CORS_HEADERS)


# ── POST /api/sensor ────────────────────────────────


@router.post("/sensor", summary="Push a reading from the device")
async def push_reading(request: Request, store: TelemetryStore = Depends(get_store)):
    """
    Accept a reading from the sensor node. Every field is optional;
    missing or empty values are stored as unknown.
    """
    raw = await request.body()
    try:
        payload = json.loads(raw) if raw else {}
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("Sensor payload is not valid JSON: %s", exc)
        store.record_failure(exc, raw[:500])
        return _json(IngestErrorResponse(error=str(exc)), status_code=500)

    try:
        reading = store.ingest(payload)
    except IngestFailure as exc:
        return _json(IngestErrorResponse(error=str(exc)), status_code=500)

    return _json(IngestResponse(data=reading.to_wire()))


# ── GET /api/sensor ─────────────────────────────────


@router.get("/sensor", summary="Latest reading, or ingestion logs with ?action=logs")
async def read_sensor(
    action: str | None = Query(default=None, description="'logs' for the ingestion history"),
    store: TelemetryStore = Depends(get_store),
):
    if action == "logs":
        view = store.logs()
        return _json(
            LogsResponse(
                latest_data=view.latest_reading.to_wire(),
                is_stale=view.is_stale,
                logs=LogsBlock(
                    success=[r.to_wire() for r in view.success_logs],
                    error=[r.to_wire() for r in view.error_logs],
                    total=LogTotals(success=view.total_success, error=view.total_error),
                ),
                server_time=view.server_time,
            )
        )

    snap = store.snapshot()
    return _json(
        SnapshotResponse(
            data=snap.reading.to_wire(),
            is_stale=snap.is_stale,
            server_time=snap.server_time,
        )
    )


# ── Anything else ───────────────────────────────────


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """405 on /api/sensor in the endpoint's own shape; FastAPI's default elsewhere."""
    if exc.status_code == 405 and request.url.path.rstrip("/") == SENSOR_PATH:
        return _json(ErrorResponse(message="Method not allowed"), status_code=405)
    return await default_http_exception_handler(request, exc)
