import pytest

from airwatch.services.indicators import air_quality_status, connection_state, signal_status


@pytest.mark.parametrize(
    "ppm, label",
    [("-", "-"), (None, "-"), ("abc", "-"), ("399", "Baik"), (400, "Sedang"), ("999.9", "Sedang"), (1500, "Buruk"), (2000, "Bahaya")],
)
def test_air_quality_status(ppm, label):
    assert air_quality_status(ppm).text == label


@pytest.mark.parametrize(
    "rssi, label",
    [("-", "Tidak Terhubung"), ("-45", "Excellent"), (-50, "Good"), (-65, "Fair"), (-70, "Weak"), (-90, "Weak")],
)
def test_signal_status(rssi, label):
    assert signal_status(rssi).text == label


def test_connection_state():
    assert connection_state("192.168.1.7") == "Terhubung"
    assert connection_state("-") == "Terputus"
    assert connection_state(None) == "Terputus"
