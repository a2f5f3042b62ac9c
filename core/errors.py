from __future__ import annotations


class ReportingError(Exception):
    """Base class for errors raised by the reporting core."""


class WorkbookParseError(ReportingError):
    pass


class ExportError(ReportingError):
    """An export could not be composed or written."""


class ExportBusy(ExportError):
    def __init__(self, message: str = "Another export is already in progress.") -> None:
        super().__init__(message)


class ExportCancelled(ExportError):
    def __init__(self, message: str = "Export was cancelled.") -> None:
        super().__init__(message)


class RasterizationError(ExportError):
    pass
