"""Service layer: long-term archive read from the Google Sheets gviz feed.

The sheet is appended to chronologically by the device-side logger. We
fetch the whole table, unwrap the JSONP-style envelope, rebuild rows
newest first and let the dashboard filter them by day and time of day.
"""

import asyncio
import json
import logging
from collections.abc import Iterable, Sequence
from datetime import date
from urllib.parse import quote
from zoneinfo import ZoneInfo

import httpx

from airwatch.schemas.archive import ArchiveRecord
from airwatch.services.errors import FetchFailure, NormalizationFailure
from airwatch.services.telemetry import display_time, utc_now

logger = logging.getLogger(__name__)

FEED_URL = "https://docs.google.com/spreadsheets/d/{spreadsheet_id}/gviz/tq?tqx=out:json&sheet={sheet}"

# /*O_o*/\ngoogle.visualization.Query.setResponse(  ...  );
GVIZ_PREFIX_LENGTH = 47
GVIZ_SUFFIX = ");"

DISPLAY_LIMIT = 10
END_OF_DAY = 86399

FETCH_ERROR_MESSAGE = (
    "Gagal mengambil data. Pastikan Google Sheet sudah di-publish "
    "dan Spreadsheet ID sudah benar."
)

# Column positions in the sheet
COLUMNS = (
    ("date_text", 0),
    ("time_text", 1),
    ("temperature", 2),
    ("humidity", 3),
    ("gas_concentration", 4),
    ("device_ip", 5),
    ("signal_strength", 6),
)


def build_feed_url(spreadsheet_id: str, sheet_name: str) -> str:
    return FEED_URL.format(spreadsheet_id=spreadsheet_id, sheet=quote(sheet_name))


# ── Fetch ───────────────────────────────────────────


def unwrap_feed(text: str) -> dict:
    """Strip the gviz envelope and parse the JSON document inside it."""
    if len(text) < GVIZ_PREFIX_LENGTH + len(GVIZ_SUFFIX):
        raise FetchFailure("Feed response is too short to contain a table")
    if not text[:GVIZ_PREFIX_LENGTH].endswith("("):
        raise FetchFailure("Feed response does not start with the gviz prefix")
    if not text.endswith(GVIZ_SUFFIX):
        raise FetchFailure("Feed response does not end with the gviz suffix")

    body = text[GVIZ_PREFIX_LENGTH:-len(GVIZ_SUFFIX)]
    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        raise FetchFailure(f"Feed JSON is malformed: {exc}") from exc


async def fetch_archive(url: str, client: httpx.AsyncClient) -> list:
    """Download the sheet and return ``table.rows`` untouched."""
    try:
        response = await client.get(url)
    except httpx.HTTPError as exc:
        raise FetchFailure(f"Feed unreachable: {exc}") from exc

    if not response.is_success:
        raise FetchFailure(f"Feed answered HTTP {response.status_code}")

    document = unwrap_feed(response.text)
    table = document.get("table") if isinstance(document, dict) else None
    if not isinstance(table, dict) or "rows" not in table:
        raise FetchFailure("Feed JSON has no table.rows")
    return table["rows"]


# ── Normalize ───────────────────────────────────────


def _cell_text(cells: Sequence, position: int) -> str | None:
    """Formatted value first, raw value second, None when neither exists."""
    if position >= len(cells):
        return None
    cell = cells[position]
    if not isinstance(cell, dict):
        return None
    for key in ("f", "v"):
        value = cell.get(key)
        if value is None or value == "":
            continue
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        return str(value)
    return None


def normalize(rows) -> list[ArchiveRecord]:
    """Drop the header row and rebuild the rest newest first."""
    if not isinstance(rows, list):
        raise NormalizationFailure(
            f"Expected a list of rows, got {type(rows).__name__}"
        )

    records = []
    for index, row in enumerate(reversed(rows[1:])):
        if not isinstance(row, dict):
            raise NormalizationFailure(f"Row is not an object: {row!r}")
        cells = row.get("c") or []
        if not isinstance(cells, list):
            raise NormalizationFailure(f"Row cells are not a list: {cells!r}")
        fields = {name: _cell_text(cells, position) for name, position in COLUMNS}
        records.append(ArchiveRecord(display_index=index, **fields))
    return records


# ── Filter ──────────────────────────────────────────


def parse_row_date(text: str | None) -> date | None:
    """Parse d/m/yyyy (day first)."""
    if not text:
        return None
    parts = text.split("/")
    if len(parts) != 3:
        return None
    try:
        day, month, year = (int(p.strip()) for p in parts)
        return date(year, month, day)
    except ValueError:
        return None


def parse_time_of_day(text: str | None) -> int | None:
    """Parse HH:MM[:SS] into seconds since midnight."""
    if not text:
        return None
    parts = text.split(":")
    if len(parts) < 2:
        return None
    try:
        hours = int(parts[0].strip())
        minutes = int(parts[1].strip())
        seconds = int(parts[2].strip()) if len(parts) > 2 else 0
    except ValueError:
        return None
    return hours * 3600 + minutes * 60 + seconds


def _filter_date(value: date | str | None) -> date | None:
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        logger.debug("Ignoring malformed date filter %r", value)
        return None


def _time_bounds(start_time: str | None, end_time: str | None) -> tuple[int, int] | None:
    start = parse_time_of_day(f"{start_time}:00") if start_time else None
    end = parse_time_of_day(f"{end_time}:59") if end_time else None
    if start is None and end is None:
        return None
    return (0 if start is None else start, END_OF_DAY if end is None else end)


def apply_filters(
    records: Iterable[ArchiveRecord],
    date: date | str | None = None,
    start_time: str | None = None,
    end_time: str | None = None,
) -> list[ArchiveRecord]:
    """Keep records on ``date`` whose time lies in [start_time, end_time]."""
    wanted_day = _filter_date(date) if date else None
    bounds = _time_bounds(start_time, end_time)

    matched = []
    for record in records:
        if wanted_day is not None and parse_row_date(record.date_text) != wanted_day:
            continue
        if bounds is not None:
            seconds = parse_time_of_day(record.time_text)
            if seconds is None or not bounds[0] <= seconds <= bounds[1]:
                continue
        matched.append(record)
    return matched


def filter_records(
    records: Iterable[ArchiveRecord],
    date: date | str | None = None,
    start_time: str | None = None,
    end_time: str | None = None,
    limit: int = DISPLAY_LIMIT,
) -> list[ArchiveRecord]:
    """Filtered rows capped to ``limit``, in input order."""
    return apply_filters(records, date, start_time, end_time)[:limit]


# ── Poller ──────────────────────────────────────────


class ArchiveMonitor:
    """Polls the archive on a fixed interval and keeps the last good dataset.

    Refreshes are not sequenced: if a manual refresh overlaps a timer tick,
    whichever response lands last replaces the dataset.
    """

    def __init__(
        self,
        feed_url: str,
        interval: float = 5,
        timeout: float = 10,
        client: httpx.AsyncClient | None = None,
        tz: str | None = None,
    ):
        self.feed_url = feed_url
        self.interval = interval
        self.timeout = timeout
        self.records: list[ArchiveRecord] = []
        self.error: str | None = None
        self.last_update: str | None = None
        self.attempted = False
        self._in_flight = 0
        self._client = client
        self._owns_client = client is None
        self._tz = ZoneInfo(tz) if tz else None
        self._task: asyncio.Task | None = None

    @property
    def latest(self) -> ArchiveRecord | None:
        return self.records[0] if self.records else None

    @property
    def loading(self) -> bool:
        """True while any refresh, timer or manual, is still running."""
        return self._in_flight > 0

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def refresh(self) -> None:
        """Fetch and normalize once. Never raises except on cancellation."""
        self.attempted = True
        self._in_flight += 1
        try:
            rows = await fetch_archive(self.feed_url, self._get_client())
            self.records = normalize(rows)
            self.error = None
            if self.records:
                self.last_update = display_time(utc_now(), self._tz)
            logger.info("Archive refreshed: %d rows", len(self.records))
        except FetchFailure as exc:
            logger.warning("Archive fetch failed: %s", exc.cause)
            self.error = f"{FETCH_ERROR_MESSAGE} ({exc.cause})"
        except NormalizationFailure as exc:
            logger.warning("Archive rows are malformed: %s", exc)
            self.records = []
            self.error = None
        except Exception:
            logger.exception("Archive refresh failed")
            self.error = FETCH_ERROR_MESSAGE
        finally:
            self._in_flight -= 1

    async def ensure_loaded(self) -> None:
        """Read the sheet once if nothing has tried yet (poller disabled)."""
        if not self.records and not self.attempted:
            await self.refresh()

    def view(self, date=None, start_time=None, end_time=None, limit: int = DISPLAY_LIMIT):
        """Return (displayed rows, number of rows matching before the cap)."""
        matched = apply_filters(self.records, date, start_time, end_time)
        return matched[:limit], len(matched)

    async def _run(self) -> None:
        while True:
            await self.refresh()
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())
            logger.info("Archive poller started (every %ss): %s", self.interval, self.feed_url)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
