"""Pydantic schemas for the live sensor endpoint.

Unknown values are kept as ``None`` inside the service and only rendered as
the ``"-"`` placeholder when a model is dumped for the wire.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer

UNKNOWN = "-"

Scalar = str | int | float


class TelemetryReading(BaseModel):
    """The latest sample pushed by the ESP32 node."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    temperature: Scalar | None = Field(default=None, alias="suhu")
    humidity: Scalar | None = Field(default=None, alias="kelembapan")
    gas_concentration: Scalar | None = Field(default=None, alias="co2", description="ppm")
    air_quality_index: Scalar | None = Field(default=None, alias="ispu")
    device_status: Scalar | None = Field(default=None, alias="status")
    device_ip: Scalar | None = Field(default=None, alias="ip")
    signal_strength: Scalar | None = Field(default=None, alias="rssi", description="dBm")
    source_timestamp: str | None = Field(
        default=None, alias="timestamp", description="Time claimed by the device"
    )
    received_at: datetime | None = Field(default=None, alias="receivedAt")
    uptime_seconds: int = Field(default=0, ge=0, alias="uptime")

    @field_serializer(
        "temperature",
        "humidity",
        "gas_concentration",
        "air_quality_index",
        "device_status",
        "device_ip",
        "signal_strength",
    )
    def _render_unknown(self, value):
        return UNKNOWN if value is None else value

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class LogRecord(BaseModel):
    """One ingestion outcome kept in the success or error ring."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    occurred_at: str = Field(alias="occurredAt", description="Localized display time")
    kind: Literal["success", "error"]
    message: str
    data: TelemetryReading | None = None
    error: str | None = None
    detail: str | None = Field(default=None, description="Traceback and payload")

    def to_wire(self) -> dict:
        wire = self.model_dump(by_alias=True, mode="json")
        return {key: value for key, value in wire.items() if value is not None}


# ── Response bodies ─────────────────────────────────


class IngestResponse(BaseModel):
    success: bool = True
    message: str = "Data received"
    data: dict


class IngestErrorResponse(BaseModel):
    success: bool = False
    message: str = "Error processing data"
    error: str


class SnapshotResponse(BaseModel):
    """Response for GET /api/sensor."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    data: dict
    is_stale: bool = Field(alias="isStale")
    server_time: datetime = Field(alias="serverTime")


class LogTotals(BaseModel):
    success: int
    error: int


class LogsBlock(BaseModel):
    success: list[dict]
    error: list[dict]
    total: LogTotals


class LogsResponse(BaseModel):
    """Response for GET /api/sensor?action=logs."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    latest_data: dict = Field(alias="latestData")
    is_stale: bool = Field(alias="isStale")
    logs: LogsBlock
    server_time: datetime = Field(alias="serverTime")


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
