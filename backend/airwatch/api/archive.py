"""API routes for the spreadsheet archive table."""

from fastapi import APIRouter, Depends, Query, Request

from airwatch.schemas.archive import ArchiveResponse, Indicators
from airwatch.services.archive import ArchiveMonitor
from airwatch.services.indicators import air_quality_status, connection_state, signal_status

router = APIRouter(prefix="/archive", tags=["Archive"])


def get_monitor(request: Request) -> ArchiveMonitor:
    return request.app.state.archive_monitor


def _build_response(
    monitor: ArchiveMonitor,
    limit: int,
    date: str | None = None,
    start_time: str | None = None,
    end_time: str | None = None,
) -> ArchiveResponse:
    rows, matched = monitor.view(date, start_time, end_time, limit=limit)
    latest = monitor.latest
    indicators = None
    if latest is not None:
        indicators = Indicators(
            air_quality=air_quality_status(latest.gas_concentration),
            signal=signal_status(latest.signal_strength),
            connection=connection_state(latest.device_ip),
        )
    return ArchiveResponse(
        data=[r.to_wire() for r in rows],
        latest=latest.to_wire() if latest else None,
        indicators=indicators,
        matched=matched,
        total=len(monitor.records),
        filters_active=bool(date or start_time or end_time),
        error=monitor.error,
        last_update=monitor.last_update,
        loading=monitor.loading,
    )


# ── GET /archive ────────────────────────────────────


@router.get(
    "",
    response_model=ArchiveResponse,
    response_model_by_alias=True,
    summary="Recent archive rows, optionally filtered",
)
async def read_archive(
    request: Request,
    date: str | None = Query(default=None, description="YYYY-MM-DD"),
    start_time: str | None = Query(default=None, alias="startTime", description="HH:MM"),
    end_time: str | None = Query(default=None, alias="endTime", description="HH:MM"),
    monitor: ArchiveMonitor = Depends(get_monitor),
):
    """
    Return the newest archive rows matching the day / time-of-day filters,
    capped to the display limit. The cap is applied after filtering.
    Without a running poller the first read loads the sheet.
    """
    await monitor.ensure_loaded()
    limit = request.app.state.settings.ARCHIVE_DISPLAY_LIMIT
    return _build_response(monitor, limit, date, start_time, end_time)


# ── POST /archive/refresh ───────────────────────────


@router.post(
    "/refresh",
    response_model=ArchiveResponse,
    response_model_by_alias=True,
    summary="Re-read the archive now",
)
async def refresh_archive(request: Request, monitor: ArchiveMonitor = Depends(get_monitor)):
    await monitor.refresh()
    return _build_response(monitor, request.app.state.settings.ARCHIVE_DISPLAY_LIMIT)
