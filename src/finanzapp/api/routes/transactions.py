from typing import Annotated, Any

from fastapi import APIRouter, Depends, File, Form, UploadFile

from finanzapp.api.dependencies import get_client
from finanzapp.domain.categories import label_for, parse_categories
from finanzapp.domain.months import validate_month
from finanzapp.domain.records import normalize_transactions
from finanzapp.integration.finanzapp import FinanzappClient
from finanzapp.logger import get_logger
from finanzapp.models import KindFilter, TransactionCreate

logger = get_logger(__name__)

router = APIRouter()


@router.get("/api/transactions")
async def list_transactions(
    client: Annotated[FinanzappClient, Depends(get_client)],
    month: str | None = None,
    category_id: int | None = None,
    kind: KindFilter = "all",
) -> dict[str, Any]:
    if month:
        validate_month(month)

    records = await client.get_transactions(
        month=month,
        category_id=category_id,
        kind=kind,
        raise_on_error=True,
    )
    categories = parse_categories(await client.get_categories())
    transactions = normalize_transactions(records)

    return {
        "transactions": [
            {
                **tx.model_dump(mode="json"),
                "category_label": label_for(tx.category_id, categories),
                "has_attachment": tx.file_id is not None,
            }
            for tx in transactions
        ],
    }


@router.post("/api/transactions", status_code=201)
async def create_transaction(
    client: Annotated[FinanzappClient, Depends(get_client)],
    transaction: Annotated[str, Form()],
    attachment: Annotated[UploadFile | None, File()] = None,
) -> dict[str, Any]:
    """
    Create a transaction from a JSON ``transaction`` form field.

    When a file is attached it is uploaded first and the transaction is
    created with the returned file id.
    """
    payload = TransactionCreate.model_validate_json(transaction)
    upload = None
    if attachment is not None:
        upload = (
            attachment.filename or "attachment",
            await attachment.read(),
            attachment.content_type or "application/octet-stream",
        )
    created = await client.create_transaction_with_attachment(payload, upload)
    logger.info("[TRANSACTIONS] Created %s transaction %s.", payload.kind, created.get("id"))
    return created


@router.delete("/api/transactions/{transaction_id}", status_code=204)
async def delete_transaction(
    transaction_id: int,
    client: Annotated[FinanzappClient, Depends(get_client)],
) -> None:
    await client.delete_transaction(transaction_id)
    logger.info("[TRANSACTIONS] Deleted transaction %s.", transaction_id)
