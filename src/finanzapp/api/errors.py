from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from finanzapp.core.exceptions import (
    AuthenticationError,
    FinanzappError,
    InvalidMonthError,
    MalformedRecordError,
    SourceUnavailableError,
    SummaryUnavailableError,
)
from finanzapp.logger import get_logger

logger = get_logger(__name__)

# Checked in order; subclasses first
_STATUS_BY_ERROR: tuple[tuple[type[FinanzappError], int], ...] = (
    (InvalidMonthError, 422),
    (AuthenticationError, 401),
    (SummaryUnavailableError, 503),
    (MalformedRecordError, 502),
    (SourceUnavailableError, 502),
)


def status_for(exc: FinanzappError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


async def finanzapp_error_handler(request: Request, exc: Exception) -> JSONResponse:
    status = status_for(exc) if isinstance(exc, FinanzappError) else 500
    logger.warning("[API] %s %s -> %s: %s", request.method, request.url.path, status, exc)
    return JSONResponse(status_code=status, content={"detail": str(exc)})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FinanzappError, finanzapp_error_handler)
