import threading
from datetime import datetime, timedelta, timezone

import pytest

from airwatch.schemas.telemetry import LogRecord
from airwatch.services.errors import IngestFailure
from airwatch.services.telemetry import LogRing, TelemetryStore, is_stale

NOW = datetime(2025, 10, 5, 1, 30, tzinfo=timezone.utc)

FULL_PAYLOAD = {
    "suhu": 27.5,
    "kelembapan": 60,
    "co2": 450,
    "ispu": 35,
    "status": "OK",
    "ip": "192.168.1.7",
    "rssi": -55,
    "timestamp": "2025-10-05T01:29:50Z",
    "uptime": 120,
}


@pytest.fixture
def store(clock):
    return TelemetryStore(clock=clock, tz="UTC")


# ── Staleness ──


def test_missing_timestamp_is_stale():
    assert is_stale(None, NOW)


def test_unparseable_timestamp_is_stale():
    assert is_stale("yesterday-ish", NOW)


def test_fresh_just_under_threshold():
    observed = (NOW - timedelta(milliseconds=29999)).isoformat()
    assert not is_stale(observed, NOW)


def test_stale_past_threshold():
    observed = (NOW - timedelta(milliseconds=30001)).isoformat()
    assert is_stale(observed, NOW)


def test_zulu_and_naive_timestamps_are_utc():
    assert not is_stale("2025-10-05T01:29:45Z", NOW)
    assert not is_stale("2025-10-05T01:29:45", NOW)
    assert is_stale("2025-10-05T01:29:00", NOW)


# ── LogRing ──


def _record(n: int) -> LogRecord:
    return LogRecord(occurred_at=f"#{n}", kind="success", message=str(n))


def test_ring_is_newest_first_and_bounded():
    ring = LogRing(capacity=50)
    for n in range(1, 52):
        ring.prepend(_record(n))

    assert ring.size() == 50
    recent = ring.recent(50)
    assert recent[0].message == "51"
    assert "1" not in [r.message for r in recent]
    assert recent[-1].message == "2"


def test_ring_recent_does_not_mutate():
    ring = LogRing(capacity=5)
    for n in range(3):
        ring.prepend(_record(n))

    assert [r.message for r in ring.recent(10)] == ["2", "1", "0"]
    assert ring.recent(0) == []
    assert len(ring) == 3


# ── TelemetryStore ──


def test_initial_reading_is_unknown(store):
    snap = store.snapshot()
    wire = snap.reading.to_wire()
    assert wire["suhu"] == "-"
    assert wire["co2"] == "-"
    assert wire["uptime"] == 0
    assert wire["timestamp"] is None
    assert snap.is_stale


def test_ingest_then_snapshot_returns_payload(store, clock):
    reading = store.ingest(FULL_PAYLOAD)
    snap = store.snapshot()

    assert snap.reading == reading
    assert reading.temperature == 27.5
    assert reading.humidity == 60
    assert reading.gas_concentration == 450
    assert reading.air_quality_index == 35
    assert reading.device_status == "OK"
    assert reading.device_ip == "192.168.1.7"
    assert reading.signal_strength == -55
    assert reading.source_timestamp == "2025-10-05T01:29:50Z"
    assert reading.uptime_seconds == 120
    assert reading.received_at == clock.now
    assert not snap.is_stale


def test_snapshot_goes_stale_as_time_passes(store, clock):
    store.ingest(FULL_PAYLOAD)
    clock.advance(25)
    assert store.snapshot().is_stale


def test_english_field_names_are_accepted(store):
    reading = store.ingest({"temperature": 22, "gasConcentration": 700, "uptimeSeconds": 5})
    assert reading.temperature == 22
    assert reading.gas_concentration == 700
    assert reading.uptime_seconds == 5


def test_missing_and_falsy_fields_default(store):
    reading = store.ingest({"suhu": "", "co2": 0, "ip": None, "uptime": "abc"})
    wire = reading.to_wire()

    for key in ("suhu", "kelembapan", "co2", "ispu", "status", "ip", "rssi"):
        assert wire[key] == "-"
    assert wire["uptime"] == 0
    assert wire["timestamp"] is None


def test_negative_uptime_is_clamped(store):
    assert store.ingest({"uptime": -10}).uptime_seconds == 0


def test_reading_is_replaced_not_merged(store):
    store.ingest(FULL_PAYLOAD)
    reading = store.ingest({"co2": 900})
    assert reading.gas_concentration == 900
    assert reading.temperature is None
    assert store.snapshot().reading.device_ip is None


def test_success_log_summarizes_gas_and_index(store):
    store.ingest(FULL_PAYLOAD)
    view = store.logs()

    assert view.total_success == 1
    assert view.total_error == 0
    record = view.success_logs[0]
    assert record.kind == "success"
    assert "450" in record.message
    assert "35" in record.message
    assert record.data.gas_concentration == 450
    assert record.occurred_at == "05/10/2025, 01.30.00"


def test_non_object_payload_fails_without_touching_reading(store):
    store.ingest(FULL_PAYLOAD)

    with pytest.raises(IngestFailure, match="JSON object"):
        store.ingest(["not", "an", "object"])

    assert store.snapshot().reading.gas_concentration == 450
    view = store.logs()
    assert view.total_error == 1
    assert view.total_success == 1
    error = view.error_logs[0]
    assert error.kind == "error"
    assert error.error.startswith("TypeError")
    assert "Traceback" in error.detail


def test_success_ring_keeps_last_fifty(store):
    for n in range(1, 52):
        store.ingest({"co2": n})

    view = store.logs(limit_each=50)
    assert view.total_success == 50
    assert view.success_logs[0].data.gas_concentration == 51
    assert 1 not in [r.data.gas_concentration for r in view.success_logs]


def test_logs_default_to_twenty_each(store):
    for n in range(1, 31):
        store.ingest({"co2": n})
        store.record_failure(ValueError(f"bad {n}"))

    view = store.logs()
    assert len(view.success_logs) == 20
    assert len(view.error_logs) == 20
    assert view.total_success == 30
    assert view.total_error == 30
    assert view.error_logs[0].error == "ValueError: bad 30"


def test_non_finite_floats_are_unknown(store):
    reading = store.ingest(
        {"suhu": float("nan"), "kelembapan": float("inf"), "co2": 450, "uptime": float("inf")}
    )

    assert reading.temperature is None
    assert reading.humidity is None
    assert reading.gas_concentration == 450
    assert reading.uptime_seconds == 0
    assert reading.to_wire()["suhu"] == "-"


def test_concurrent_ingest_and_reads_stay_consistent():
    store = TelemetryStore()
    writers, per_writer = 4, 40
    problems = []
    done = threading.Event()

    def write(worker):
        for n in range(per_writer):
            store.ingest({"co2": worker * 1000 + n + 1, "ispu": worker})
            if n % 10 == 0:
                store.record_failure(ValueError(f"worker {worker}"))

    def read():
        while not done.is_set():
            view = store.logs(limit_each=50)
            if view.total_success > 50 or view.total_error > 50:
                problems.append(("overflow", view.total_success, view.total_error))
            if len(view.success_logs) != view.total_success:
                problems.append(("size", len(view.success_logs), view.total_success))
            if view.success_logs and view.success_logs[0].data != view.latest_reading:
                problems.append(("torn", view.success_logs[0].data, view.latest_reading))

    readers = [threading.Thread(target=read) for _ in range(3)]
    threads = [threading.Thread(target=write, args=(w,)) for w in range(writers)]
    for t in readers + threads:
        t.start()
    for t in threads:
        t.join()
    done.set()
    for t in readers:
        t.join()

    assert problems == []
    view = store.logs(limit_each=50)
    assert view.total_success == min(writers * per_writer, 50)
    assert view.total_error == min(writers * (per_writer // 10), 50)
    assert view.success_logs[0].data == store.snapshot().reading
    stored = [r.data.gas_concentration for r in view.success_logs]
    assert len(set(stored)) == len(stored)
