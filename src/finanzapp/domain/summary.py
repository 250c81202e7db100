from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from finanzapp.core.exceptions import MalformedRecordError, MalformedSummaryError
from finanzapp.domain.categories import UNCATEGORIZED_LABEL, coerce_id, color_for, is_known, label_for
from finanzapp.domain.records import MAX_AMOUNT_DIGITS
from finanzapp.logger import get_logger
from finanzapp.models import Category, CategoryTotal, NormalizedTransaction, Summary

logger = get_logger(__name__)

ZERO = Decimal("0")

_INCOME_KEYS = ("incomeTotal", "income_total", "incomes")
_EXPENSE_KEYS = ("expenseTotal", "expense_total", "expenses")
_BREAKDOWN_KEYS = ("byCategory", "by_category")
_REFERENCE_KEYS = ("categoryRef", "categoryId", "category_id", "category")
_LABEL_KEYS = ("label", "categoryName", "category_name", "name")


@dataclass
class _Bucket:
    category_id: int | None
    label: str
    total: Decimal


def _finish_breakdown(buckets: Iterable[_Bucket], categories: list[Category]) -> list[CategoryTotal]:
    breakdown: list[CategoryTotal] = []
    for bucket in buckets:
        if bucket.total == ZERO:
            continue
        breakdown.append(CategoryTotal(
            label=bucket.label,
            total=bucket.total,
            category_id=bucket.category_id,
            color=color_for(bucket.category_id, categories, len(breakdown)),
        ))
    return breakdown


def aggregate(
    transactions: list[NormalizedTransaction],
    categories: list[Category],
    *,
    month: str | None = None,
) -> Summary:
    """
    Compute totals and the expense breakdown from normalized transactions.

    Buckets are keyed by category id; ids with no matching category share the
    uncategorized bucket. Buckets keep first-encounter order and are dropped
    when their total is exactly zero.
    """
    income_total = ZERO
    expense_total = ZERO
    buckets: dict[int | None, _Bucket] = {}

    for tx in transactions:
        if tx.kind not in ("income", "expense"):
            raise MalformedRecordError(f"unrecognized kind {tx.kind!r}", tx.id)
        try:
            if tx.kind == "income":
                income_total += tx.amount
            else:
                expense_total += tx.amount
                key = tx.category_id if is_known(tx.category_id, categories) else None
                bucket = buckets.get(key)
                if bucket is None:
                    bucket = buckets[key] = _Bucket(key, label_for(key, categories), ZERO)
                bucket.total += tx.amount
        except ArithmeticError:
            raise MalformedRecordError(f"amount out of range {tx.amount}", tx.id) from None

    return Summary(
        month=month,
        income_total=income_total,
        expense_total=expense_total,
        balance=income_total - expense_total,
        by_category=_finish_breakdown(buckets.values(), categories),
        source="local",
    )


def _parse_decimal(value: Any, field: str, *, allow_negative: bool = False) -> Decimal:
    if value is None or isinstance(value, bool):
        raise MalformedSummaryError(f"Remote summary field '{field}' is invalid: {value!r}")
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        raise MalformedSummaryError(f"Remote summary field '{field}' is invalid: {value!r}") from None
    if not number.is_finite() or (number < 0 and not allow_negative):
        raise MalformedSummaryError(f"Remote summary field '{field}' is invalid: {value!r}")
    if number and number.adjusted() >= MAX_AMOUNT_DIGITS:
        raise MalformedSummaryError(f"Remote summary field '{field}' is out of range: {value!r}")
    return number


def _first_present(payload: dict[str, Any], keys: tuple[str, ...]) -> tuple[str, Any] | None:
    for key in keys:
        if payload.get(key) is not None:
            return key, payload[key]
    return None


def _entry_reference(entry: dict[str, Any]) -> tuple[int | None, str | None]:
    """Return the category id and textual label an entry points at, if any."""
    category_id: int | None = None
    text: str | None = None
    for key in _REFERENCE_KEYS:
        value = entry.get(key)
        if isinstance(value, dict):
            if category_id is None:
                category_id = coerce_id(value.get("id"))
            if text is None and isinstance(value.get("name"), str) and value["name"].strip():
                text = value["name"].strip()
            continue
        candidate = coerce_id(value)
        if candidate is not None:
            if category_id is None:
                category_id = candidate
        elif text is None and isinstance(value, str) and value.strip():
            text = value.strip()
    if text is None:
        for key in _LABEL_KEYS:
            value = entry.get(key)
            if isinstance(value, str) and value.strip():
                text = value.strip()
                break
    return category_id, text


def parse_remote_breakdown(entries: Any, categories: list[Category]) -> list[CategoryTotal]:
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise MalformedSummaryError("Remote summary 'byCategory' is not a list")

    buckets: dict[tuple[str, Any], _Bucket] = {}
    for entry in entries:
        if not isinstance(entry, dict):
            raise MalformedSummaryError(f"Remote summary category entry is invalid: {entry!r}")
        total = _parse_decimal(entry.get("total"), "byCategory.total")
        category_id, text = _entry_reference(entry)

        # A locally known id wins over whatever label the server sent
        if is_known(category_id, categories):
            key: tuple[str, Any] = ("id", category_id)
            bucket_id, label = category_id, label_for(category_id, categories)
        elif text:
            key = ("label", text)
            bucket_id, label = None, text
        else:
            key = ("uncategorized", None)
            bucket_id, label = None, UNCATEGORIZED_LABEL

        bucket = buckets.get(key)
        if bucket is None:
            bucket = buckets[key] = _Bucket(bucket_id, label, ZERO)
        try:
            bucket.total += total
        except ArithmeticError:
            raise MalformedSummaryError("Remote summary category total is out of range") from None

    return _finish_breakdown(buckets.values(), categories)


def parse_remote_summary(
    payload: Any,
    categories: list[Category],
    *,
    month: str | None = None,
) -> Summary:
    """
    Validate a server-computed summary and bring it into the canonical shape.

    A balance sent by the server is kept as-is; when absent it is computed
    as income minus expense.
    """
    if not isinstance(payload, dict):
        raise MalformedSummaryError(f"Remote summary is not an object: {type(payload).__name__}")

    income = _first_present(payload, _INCOME_KEYS)
    expense = _first_present(payload, _EXPENSE_KEYS)
    if income is None or expense is None:
        raise MalformedSummaryError("Remote summary is missing income or expense totals")

    income_total = _parse_decimal(income[1], income[0])
    expense_total = _parse_decimal(expense[1], expense[0])

    if payload.get("balance") is not None:
        balance = _parse_decimal(payload["balance"], "balance", allow_negative=True)
    else:
        try:
            balance = income_total - expense_total
        except ArithmeticError:
            raise MalformedSummaryError("Remote summary totals are out of range") from None

    breakdown_field = _first_present(payload, _BREAKDOWN_KEYS)
    by_category = parse_remote_breakdown(breakdown_field[1] if breakdown_field else None, categories)

    remote_month = payload.get("month")
    if month and isinstance(remote_month, str) and remote_month and remote_month != month:
        raise MalformedSummaryError(f"Remote summary covers {remote_month}, expected {month}")

    return Summary(
        month=month or (remote_month if isinstance(remote_month, str) else None),
        income_total=income_total,
        expense_total=expense_total,
        balance=balance,
        by_category=by_category,
        source="remote",
    )
