"""Badge helpers used by the dashboard for the latest archive row."""

from airwatch.schemas.archive import StatusBadge

GREEN = "#28a745"
YELLOW = "#ffc107"
ORANGE = "#fd7e14"
RED = "#dc3545"
GREY = "#999"


def _number(value) -> float | None:
    if value is None or value == "-":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def air_quality_status(ppm) -> StatusBadge:
    """Classify a gas concentration in ppm."""
    value = _number(ppm)
    if value is None:
        return StatusBadge(text="-", color=GREY)
    if value < 400:
        return StatusBadge(text="Baik", color=GREEN)
    if value < 1000:
        return StatusBadge(text="Sedang", color=YELLOW)
    if value < 2000:
        return StatusBadge(text="Buruk", color=ORANGE)
    return StatusBadge(text="Bahaya", color=RED)


def signal_status(rssi) -> StatusBadge:
    """Classify WiFi signal strength in dBm."""
    value = _number(rssi)
    if value is None:
        return StatusBadge(text="Tidak Terhubung", color=RED)
    if value > -50:
        return StatusBadge(text="Excellent", color=GREEN)
    if value > -60:
        return StatusBadge(text="Good", color=GREEN)
    if value > -70:
        return StatusBadge(text="Fair", color=YELLOW)
    return StatusBadge(text="Weak", color=ORANGE)


def connection_state(ip) -> str:
    return "Terhubung" if ip and ip != "-" else "Terputus"
