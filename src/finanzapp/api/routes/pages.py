import os
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from finanzapp.api.dependencies import get_resolver
from finanzapp.api.schemas import ChartData
from finanzapp.core.exceptions import InvalidMonthError, SummaryUnavailableError
from finanzapp.domain.months import current_month, recent_months, validate_month
from finanzapp.logger import get_logger
from finanzapp.services.summary import SummaryResolver

logger = get_logger(__name__)

router = APIRouter()

templates_dir = os.path.abspath(
    os.path.join(os.path.dirname(__file__), "..", "..", "web", "templates")
)
templates = Jinja2Templates(directory=templates_dir)


@router.get("/", response_class=HTMLResponse)
async def dashboard(
    request: Request,
    resolver: Annotated[SummaryResolver, Depends(get_resolver)],
    month: str | None = None,
) -> HTMLResponse:
    selected = current_month()
    summary = None
    error = None
    status_code = 200
    try:
        if month:
            selected = validate_month(month)
        summary = await resolver.resolve(selected)
    except InvalidMonthError as exc:
        logger.warning("[DASHBOARD] %s", exc)
        error = str(exc)
        status_code = 422
    except SummaryUnavailableError as exc:
        logger.error("[DASHBOARD] %s", exc)
        error = str(exc)
        status_code = 503

    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "month": selected,
            "months": recent_months(),
            "summary": summary,
            "chart": ChartData.from_summary(summary).model_dump() if summary else None,
            "error": error,
        },
        status_code=status_code,
    )
