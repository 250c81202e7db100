"""
Exceptions raised by the Finanzapp client and the summary engine.
"""


class FinanzappError(Exception):
    """Base exception for Finanzapp client errors."""
    pass


class InvalidMonthError(FinanzappError, ValueError):
    """Raised when a month key is not in YYYY-MM form."""

    def __init__(self, month: object) -> None:
        super().__init__(f"Invalid month {month!r}; expected YYYY-MM")
        self.month = month


class MalformedRecordError(FinanzappError, ValueError):
    """Raised when a transaction record cannot be normalized or aggregated."""

    def __init__(self, message: str, record_id: object = None) -> None:
        if record_id is not None:
            message = f"Transaction {record_id}: {message}"
        super().__init__(message)
        self.record_id = record_id


class SourceUnavailableError(FinanzappError):
    """Raised when a remote source cannot deliver a usable response."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedSummaryError(SourceUnavailableError):
    """Raised when the remote summary payload has an unusable shape."""
    pass


class SummaryUnavailableError(FinanzappError):
    """Raised when neither the remote summary nor the raw transactions are available."""

    def __init__(self, month: str, cause: BaseException | None = None) -> None:
        super().__init__(f"Summary for {month} is unavailable")
        self.month = month
        self.cause = cause


class AuthenticationError(SourceUnavailableError):
    """Raised when the API rejects credentials or the session token."""

    def __init__(self, message: str, status_code: int | None = 401) -> None:
        super().__init__(message, status_code)
