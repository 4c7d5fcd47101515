"""Domain exceptions shared by the telemetry store and the archive pipeline."""


class MonitorError(Exception):
    """Base class for every failure this service reports."""


class IngestFailure(MonitorError):
    """A pushed reading could not be turned into a TelemetryReading."""


class FetchFailure(MonitorError):
    """The spreadsheet archive could not be read or unwrapped."""

    def __init__(self, cause: str):
        super().__init__(cause)
        self.cause = cause


class NormalizationFailure(MonitorError):
    """The archive table is not shaped like a list of rows."""
