from typing import Annotated, Any, Literal

from fastapi import APIRouter, Depends

from finanzapp.api.dependencies import get_resolver
from finanzapp.api.schemas import summary_payload
from finanzapp.domain.months import current_month
from finanzapp.services.summary import SummaryResolver

router = APIRouter()


@router.get("/api/summary")
async def get_summary(
    resolver: Annotated[SummaryResolver, Depends(get_resolver)],
    month: str | None = None,
    source: Literal["auto", "local"] = "auto",
) -> dict[str, Any]:
    summary = await resolver.resolve(month or current_month(), use_remote=source == "auto")
    return summary_payload(summary)
