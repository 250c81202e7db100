from collections.abc import Iterable
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from finanzapp.core.exceptions import MalformedRecordError
from finanzapp.domain.categories import coerce_id
from finanzapp.models import Kind, NormalizedTransaction

_KINDS: tuple[Kind, ...] = ("income", "expense")

# Amounts at or above 10**15 are rejected so totals cannot overflow
MAX_AMOUNT_DIGITS = 15


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def resolve_kind(record: dict[str, Any]) -> Kind:
    raw = record.get("kind")
    if not _present(raw):
        raw = record.get("type")
    if not _present(raw):
        raise MalformedRecordError("missing kind/type", record.get("id"))
    kind = str(raw).strip().lower()
    if kind not in _KINDS:
        raise MalformedRecordError(f"unrecognized kind {raw!r}", record.get("id"))
    return kind  # type: ignore[return-value]


def resolve_category_id(record: dict[str, Any]) -> int | None:
    for key in ("categoryId", "category_id"):
        category_id = coerce_id(record.get(key))
        if category_id is not None:
            return category_id
    nested = record.get("category")
    if isinstance(nested, dict):
        return coerce_id(nested.get("id"))
    return None


def parse_amount(record: dict[str, Any]) -> Decimal:
    raw = record.get("amount")
    if raw is None or isinstance(raw, bool):
        raise MalformedRecordError(f"invalid amount {raw!r}", record.get("id"))
    try:
        # str() keeps the float's shortest repr instead of its binary expansion
        amount = Decimal(str(raw).strip())
    except InvalidOperation:
        raise MalformedRecordError(f"invalid amount {raw!r}", record.get("id")) from None
    if not amount.is_finite():
        raise MalformedRecordError(f"invalid amount {raw!r}", record.get("id"))
    if amount < 0:
        raise MalformedRecordError(f"negative amount {raw!r}", record.get("id"))
    if amount and amount.adjusted() >= MAX_AMOUNT_DIGITS:
        raise MalformedRecordError(f"amount out of range {raw!r}", record.get("id"))
    return amount


def parse_record_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and len(value) >= 10:
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


def normalize_transaction(record: dict[str, Any]) -> NormalizedTransaction:
    """
    Map a raw transaction record onto the canonical shape.

    Polarity comes from ``kind`` with ``type`` as fallback and is never
    guessed. The category reference comes from ``categoryId``, then
    ``category_id``, then a nested ``category`` object; anything that is not
    an integer id maps to ``None``.
    """
    if not isinstance(record, dict):
        raise MalformedRecordError(f"expected a mapping, got {type(record).__name__}")

    file_id = record.get("file_id")
    if file_id is None:
        file_id = record.get("fileId")
    description = record.get("description")

    return NormalizedTransaction(
        id=coerce_id(record.get("id")),
        kind=resolve_kind(record),
        amount=parse_amount(record),
        date=parse_record_date(record.get("date")),
        category_id=resolve_category_id(record),
        description=str(description) if description is not None else None,
        file_id=file_id if isinstance(file_id, int | str) and not isinstance(file_id, bool) else None,
    )


def normalize_transactions(records: Iterable[dict[str, Any]]) -> list[NormalizedTransaction]:
    return [normalize_transaction(record) for record in records]
