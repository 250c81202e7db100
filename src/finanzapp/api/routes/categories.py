from typing import Annotated, Any

from fastapi import APIRouter, Depends

from finanzapp.api.dependencies import get_client
from finanzapp.api.schemas import CategoryRequest
from finanzapp.domain.categories import parse_categories
from finanzapp.integration.finanzapp import FinanzappClient
from finanzapp.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/api/categories")
async def list_categories(
    client: Annotated[FinanzappClient, Depends(get_client)],
) -> dict[str, Any]:
    raw = await client.get_categories(raise_on_error=True)
    categories = parse_categories(raw)
    return {"categories": [category.model_dump() for category in categories]}


@router.post("/api/categories", status_code=201)
async def create_category(
    payload: CategoryRequest,
    client: Annotated[FinanzappClient, Depends(get_client)],
) -> dict[str, Any]:
    category = await client.create_category(payload.name, payload.kind, color=payload.color)
    logger.info("[CATEGORIES] Created '%s' (%s).", category.name, category.kind)
    return category.model_dump()
