"""Pydantic schemas for the spreadsheet archive feed."""

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from airwatch.schemas.telemetry import UNKNOWN


class ArchiveRecord(BaseModel):
    """A spreadsheet row rebuilt into a typed record (newest first)."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    display_index: int = Field(alias="id")
    date_text: str | None = Field(default=None, alias="tanggal", description="d/m/yyyy")
    time_text: str | None = Field(default=None, alias="waktu", description="HH:MM[:SS]")
    temperature: str | None = Field(default=None, alias="suhu")
    humidity: str | None = Field(default=None, alias="kelembapan")
    gas_concentration: str | None = Field(default=None, alias="kualitasUdara")
    device_ip: str | None = Field(default=None, alias="ip")
    signal_strength: str | None = Field(default=None, alias="rssi")

    @field_serializer(
        "date_text",
        "time_text",
        "temperature",
        "humidity",
        "gas_concentration",
        "device_ip",
        "signal_strength",
    )
    def _render_unknown(self, value):
        return UNKNOWN if value is None else value

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class StatusBadge(BaseModel):
    text: str
    color: str


class Indicators(BaseModel):
    air_quality: StatusBadge = Field(alias="airQuality")
    signal: StatusBadge
    connection: str

    model_config = ConfigDict(populate_by_name=True)


class ArchiveResponse(BaseModel):
    """Response for GET /api/archive."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    data: list[dict]
    latest: dict | None = None
    indicators: Indicators | None = None
    matched: int = Field(description="Rows matching the filters before the display cap")
    total: int = Field(description="Rows in the archive")
    filters_active: bool = Field(alias="filtersActive")
    error: str | None = None
    last_update: str | None = Field(default=None, alias="lastUpdate")
    loading: bool = False
