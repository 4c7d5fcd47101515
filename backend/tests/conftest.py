from datetime import datetime, timedelta, timezone

import httpx
import pytest
from fastapi.testclient import TestClient

from airwatch.config import Settings
from airwatch.main import create_app

GVIZ_PREFIX = "/*O_o*/\ngoogle.visualization.Query.setResponse("


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def gviz_text(document: str) -> str:
    return f"{GVIZ_PREFIX}{document});"


def sheet_row(date_text, time_text, temperature, humidity, ppm, ip=None, rssi=None) -> dict:
    cells = [
        {"v": "Date(...)", "f": date_text},
        {"v": "Date(1899,11,30)", "f": time_text},
        {"v": temperature},
        {"v": humidity},
        {"v": ppm},
    ]
    if ip is not None:
        cells.append({"v": ip})
    if rssi is not None:
        cells.append({"v": rssi})
    return {"c": cells}


HEADER_ROW = {"c": [{"v": "Tanggal"}, {"v": "Waktu"}, {"v": "Suhu"}, {"v": "Kelembapan"}, {"v": "CO2"}]}


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 10, 5, 1, 30, tzinfo=timezone.utc))


@pytest.fixture
def settings():
    return Settings(_env_file=None, ARCHIVE_POLL_ENABLED=False, DISPLAY_TIMEZONE="UTC")


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def sheet_document():
    return {
        "version": "0.6",
        "status": "ok",
        "table": {
            "cols": [],
            "rows": [
                HEADER_ROW,
                sheet_row("05/10/2025", "08:30:00", 27.5, 60.0, 450, "192.168.1.7", -55),
                sheet_row("05/10/2025", "09:00:00", 28.0, 58.0, 1200, "192.168.1.7", -62),
                sheet_row("06/10/2025", "07:15:00", 26.1, 65.0, 380, "192.168.1.7", -48),
            ],
        },
    }


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))
