from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import ValidationError

from finanzapp.logger import get_logger
from finanzapp.models import Category

logger = get_logger(__name__)

UNCATEGORIZED_LABEL = "Uncategorized"

PALETTE = (
    "#22c55e",
    "#f97373",
    "#38bdf8",
    "#facc15",
    "#a78bfa",
    "#fb923c",
    "#2dd4bf",
    "#f472b6",
)


def coerce_id(value: Any) -> int | None:
    """
    Coerce an identifier (category or transaction reference) to an int.

    Accepts ints, integral floats and numeric strings. Anything else
    (booleans, NaN, fractional numbers, free text) counts as no reference.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float | str | Decimal):
        text = str(value).strip()
        if not text:
            return None
        try:
            number = Decimal(text)
        except InvalidOperation:
            return None
        if not number.is_finite() or number != number.to_integral_value():
            return None
        return int(number)
    return None


def _find(category_id: int | None, categories: list[Category]) -> Category | None:
    if category_id is None:
        return None
    for category in categories:
        if category.id == category_id:
            return category
    return None


def label_for(category_id: int | None, categories: list[Category]) -> str:
    category = _find(category_id, categories)
    return category.name if category else UNCATEGORIZED_LABEL


def color_for(category_id: int | None, categories: list[Category], position: int) -> str:
    category = _find(category_id, categories)
    if category and category.color:
        return category.color
    return PALETTE[position % len(PALETTE)]


def is_known(category_id: int | None, categories: list[Category]) -> bool:
    return _find(category_id, categories) is not None


def parse_categories(raw_categories: list[dict[str, Any]]) -> list[Category]:
    """Build Category models, skipping malformed or duplicate entries."""
    categories: list[Category] = []
    seen: set[int] = set()
    for raw in raw_categories:
        try:
            category = Category.model_validate(raw)
        except ValidationError as exc:
            logger.warning("[CATEGORIES] Skipping malformed category %r: %s", raw, exc.errors()[0]["msg"])
            continue
        if category.id in seen:
            logger.warning("[CATEGORIES] Duplicate category id %s ignored.", category.id)
            continue
        seen.add(category.id)
        categories.append(category)
    logger.debug("[CATEGORIES] Parsed %d of %d categories.", len(categories), len(raw_categories))
    return categories
