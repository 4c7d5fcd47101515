"""Live telemetry state: the latest reading plus bounded ingestion logs.

Everything here is in-memory and lives for the lifetime of the process.
One ``TelemetryStore`` is created per app and shared by all requests, so
every public operation runs under a single lock.
"""

import logging
import math
import threading
import traceback
from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any
from zoneinfo import ZoneInfo

from airwatch.schemas.telemetry import LogRecord, TelemetryReading
from airwatch.services.errors import IngestFailure

logger = logging.getLogger(__name__)

STALE_AFTER = timedelta(seconds=30)
LOG_CAPACITY = 50
LOG_READ_LIMIT = 20

# Wire name first, English alias second.
FIELD_KEYS = {
    "temperature": ("suhu", "temperature"),
    "humidity": ("kelembapan", "humidity"),
    "gas_concentration": ("co2", "gasConcentration"),
    "air_quality_index": ("ispu", "airQualityIndex"),
    "device_status": ("status", "deviceStatus"),
    "device_ip": ("ip", "deviceIP"),
    "signal_strength": ("rssi", "signalStrength"),
}
TIMESTAMP_KEYS = ("timestamp", "sourceTimestamp")
UPTIME_KEYS = ("uptime", "uptimeSeconds")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def display_time(moment: datetime, tz: ZoneInfo | None = None) -> str:
    """Render like the id-ID locale: 05/10/2025, 08.30.00."""
    local = moment.astimezone(tz) if tz else moment.astimezone()
    return local.strftime("%d/%m/%Y, %H.%M.%S")


def parse_timestamp(value) -> datetime | None:
    """Parse an ISO-8601 string into an aware datetime, or None."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_stale(source_timestamp, now: datetime, threshold: timedelta = STALE_AFTER) -> bool:
    """True when the reading is missing, unparseable or older than threshold."""
    observed = parse_timestamp(source_timestamp)
    if observed is None:
        return True
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now - observed > threshold


class LogRing:
    """Fixed-capacity log, newest first. The oldest entry falls off the end."""

    def __init__(self, capacity: int = LOG_CAPACITY):
        self._items: deque[LogRecord] = deque(maxlen=capacity)

    def prepend(self, record: LogRecord) -> None:
        self._items.appendleft(record)

    def recent(self, n: int) -> list[LogRecord]:
        if n <= 0:
            return []
        return [record for _, record in zip(range(n), self._items)]

    def size(self) -> int:
        return len(self._items)

    def __len__(self) -> int:
        return len(self._items)


@dataclass(frozen=True)
class Snapshot:
    reading: TelemetryReading
    is_stale: bool
    server_time: datetime


@dataclass(frozen=True)
class LogsView:
    latest_reading: TelemetryReading
    is_stale: bool
    success_logs: list[LogRecord]
    error_logs: list[LogRecord]
    total_success: int
    total_error: int
    server_time: datetime


def _pick(payload: Mapping, keys: tuple[str, ...]):
    for key in keys:
        value = payload.get(key)
        if value:
            return value
    return None


def _known(value) -> str | int | float | None:
    """Falsy and non-finite values count as unknown; anything non-scalar is stringified."""
    if not value:
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return str(value)
    return value


def _uptime(value) -> int:
    try:
        seconds = int(value or 0)
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(seconds, 0)


def build_reading(payload: Any, received_at: datetime) -> TelemetryReading:
    """Turn a loosely-typed device payload into a TelemetryReading."""
    if not isinstance(payload, Mapping):
        raise TypeError(
            f"Payload must be a JSON object, got {type(payload).__name__}"
        )

    fields = {name: _known(_pick(payload, keys)) for name, keys in FIELD_KEYS.items()}
    source_timestamp = _pick(payload, TIMESTAMP_KEYS)
    return TelemetryReading(
        **fields,
        source_timestamp=str(source_timestamp) if source_timestamp else None,
        received_at=received_at,
        uptime_seconds=_uptime(_pick(payload, UPTIME_KEYS)),
    )


class TelemetryStore:
    """Holds the current reading and the success / error rings."""

    def __init__(
        self,
        log_capacity: int = LOG_CAPACITY,
        read_limit: int = LOG_READ_LIMIT,
        stale_after: float = STALE_AFTER.total_seconds(),
        clock: Callable[[], datetime] = utc_now,
        tz: str | None = None,
    ):
        self._lock = threading.Lock()
        self._reading = TelemetryReading()
        self._success = LogRing(log_capacity)
        self._errors = LogRing(log_capacity)
        self._read_limit = read_limit
        self._stale_after = timedelta(seconds=stale_after)
        self._clock = clock
        self._tz = ZoneInfo(tz) if tz else None

    # ── helpers ──

    def _display_time(self, moment: datetime) -> str:
        return display_time(moment, self._tz)

    def _error_record(self, exc: BaseException, payload: Any) -> LogRecord:
        trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return LogRecord(
            occurred_at=self._display_time(self._clock()),
            kind="error",
            message=f"Error processing data: {exc}",
            error=f"{type(exc).__name__}: {exc}",
            detail=f"{trace}\npayload={payload!r}"[:4000],
        )

    # ── operations ──

    def ingest(self, payload: Any) -> TelemetryReading:
        """Replace the current reading with one built from ``payload``.

        Raises IngestFailure when the payload cannot be turned into a
        reading; the failure is logged to the error ring and the current
        reading is kept.
        """
        with self._lock:
            now = self._clock()
            try:
                reading = build_reading(payload, now)
            except Exception as exc:
                logger.exception("Rejected sensor payload")
                self._errors.prepend(self._error_record(exc, payload))
                raise IngestFailure(str(exc)) from exc

            self._reading = reading
            wire = reading.to_wire()
            self._success.prepend(
                LogRecord(
                    occurred_at=self._display_time(now),
                    kind="success",
                    message=(
                        f"Data received: CO2 {wire['co2']} ppm, ISPU {wire['ispu']}, "
                        f"suhu {wire['suhu']}, kelembapan {wire['kelembapan']}"
                    ),
                    data=reading,
                )
            )
        logger.info(
            "Reading accepted: co2=%s ispu=%s ip=%s",
            wire["co2"], wire["ispu"], wire["ip"],
        )
        return reading

    def record_failure(self, exc: BaseException, payload: Any = None) -> None:
        """Log a fault that happened before the payload reached ``ingest``."""
        with self._lock:
            self._errors.prepend(self._error_record(exc, payload))

    def snapshot(self) -> Snapshot:
        with self._lock:
            now = self._clock()
            reading = self._reading
            return Snapshot(
                reading=reading,
                is_stale=is_stale(reading.source_timestamp, now, self._stale_after),
                server_time=now,
            )

    def logs(self, limit_each: int | None = None) -> LogsView:
        limit = self._read_limit if limit_each is None else limit_each
        with self._lock:
            now = self._clock()
            reading = self._reading
            return LogsView(
                latest_reading=reading,
                is_stale=is_stale(reading.source_timestamp, now, self._stale_after),
                success_logs=self._success.recent(limit),
                error_logs=self._errors.recent(limit),
                total_success=self._success.size(),
                total_error=self._errors.size(),
                server_time=now,
            )
