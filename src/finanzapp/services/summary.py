from dataclasses import dataclass, field
from enum import Enum

import httpx

from finanzapp.core.exceptions import MalformedRecordError, SourceUnavailableError, SummaryUnavailableError
from finanzapp.domain.categories import parse_categories
from finanzapp.domain.months import validate_month
from finanzapp.domain.records import normalize_transactions, parse_record_date
from finanzapp.domain.summary import aggregate, parse_remote_summary
from finanzapp.integration.base import CategorySource, SummarySource, TransactionSource
from finanzapp.logger import get_logger
from finanzapp.models import Category, Summary

logger = get_logger(__name__)

_REMOTE_ERRORS = (SourceUnavailableError, httpx.HTTPError)


class ResolutionState(str, Enum):
    TRYING_REMOTE = "trying_remote"
    AGGREGATING = "aggregating"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass
class Resolution:
    month: str
    states: list[ResolutionState] = field(default_factory=list)
    summary: Summary | None = None
    remote_error: str | None = None

    @property
    def state(self) -> ResolutionState | None:
        return self.states[-1] if self.states else None

    def advance(self, state: ResolutionState) -> None:
        self.states.append(state)


class SummaryResolver:
    """
    Produce the monthly summary, preferring the server-computed one.

    The remote summary is requested first. Only when it fails, or when the
    caller bypasses it, are categories and raw transactions fetched and
    aggregated locally. The two paths never run concurrently.
    """

    def __init__(
        self,
        summary_source: SummarySource,
        transaction_source: TransactionSource,
        category_source: CategorySource,
    ) -> None:
        self.summary_source = summary_source
        self.transaction_source = transaction_source
        self.category_source = category_source

    async def resolve(self, month: str, *, use_remote: bool = True) -> Summary:
        resolution = await self.resolve_with_trace(month, use_remote=use_remote)
        if resolution.summary is None:
            raise SummaryUnavailableError(month)
        return resolution.summary

    async def resolve_with_trace(
        self,
        month: str,
        *,
        use_remote: bool = True,
        resolution: Resolution | None = None,
    ) -> Resolution:
        """
        Resolve ``month`` and return the states it passed through.

        Pass a ``resolution`` to keep the trail when resolving fails.
        """
        validate_month(month)
        if resolution is None:
            resolution = Resolution(month=month)

        if use_remote:
            resolution.advance(ResolutionState.TRYING_REMOTE)
            try:
                payload = await self.summary_source.get_summary(month)
                categories = await self._load_categories()
                resolution.summary = parse_remote_summary(payload, categories, month=month)
                resolution.advance(ResolutionState.RESOLVED)
                logger.debug("[SUMMARY] %s resolved from remote summary.", month)
                return resolution
            except _REMOTE_ERRORS as exc:
                resolution.remote_error = str(exc)
                logger.warning(
                    "[SUMMARY] Remote summary for %s unavailable, aggregating locally: %s",
                    month,
                    exc,
                )

        resolution.advance(ResolutionState.AGGREGATING)
        try:
            resolution.summary = await self._aggregate_locally(month)
        except (SummaryUnavailableError, MalformedRecordError):
            resolution.advance(ResolutionState.FAILED)
            raise
        resolution.advance(ResolutionState.RESOLVED)
        return resolution

    async def _load_categories(self) -> list[Category]:
        try:
            raw = await self.category_source.get_categories(raise_on_error=True)
        except _REMOTE_ERRORS as exc:
            logger.warning("[SUMMARY] Categories unavailable, labelling as uncategorized: %s", exc)
            return []
        return parse_categories(raw)

    async def _aggregate_locally(self, month: str) -> Summary:
        categories = await self._load_categories()
        try:
            records = await self.transaction_source.get_transactions(month=month, raise_on_error=True)
        except _REMOTE_ERRORS as exc:
            logger.error("[SUMMARY] Transactions for %s unavailable: %s", month, exc)
            raise SummaryUnavailableError(month, exc) from exc

        in_month = []
        for record in records:
            if isinstance(record, dict):
                record_date = parse_record_date(record.get("date"))
                if record_date is not None and record_date.strftime("%Y-%m") != month:
                    logger.debug("[SUMMARY] Skipping transaction %s outside %s.", record.get("id"), month)
                    continue
            in_month.append(record)

        transactions = normalize_transactions(in_month)
        summary = aggregate(transactions, categories, month=month)
        logger.debug(
            "[SUMMARY] %s aggregated locally from %d transactions across %d categories.",
            month,
            len(transactions),
            len(summary.by_category),
        )
        return summary
