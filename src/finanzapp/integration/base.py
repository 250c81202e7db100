from typing import Any, Protocol

from finanzapp.models import KindFilter


class SummarySource(Protocol):
    async def get_summary(self, month: str) -> dict[str, Any]:
        """Return the server-computed summary for a month or raise."""
        ...


class TransactionSource(Protocol):
    async def get_transactions(
        self,
        *,
        month: str | None = None,
        category_id: int | None = None,
        kind: KindFilter = "all",
        raise_on_error: bool = False,
    ) -> list[dict[str, Any]]:
        """Return raw transaction records matching the filter."""
        ...


class CategorySource(Protocol):
    async def get_categories(
        self,
        *,
        use_cache: bool = True,
        raise_on_error: bool = False,
    ) -> list[dict[str, Any]]:
        """Return raw category records visible to the user."""
        ...
