import asyncio
from time import monotonic
from typing import Any

import httpx

from finanzapp.core import settings
from finanzapp.core.exceptions import AuthenticationError, SourceUnavailableError
from finanzapp.logger import get_logger
from finanzapp.models import Category, KindFilter, TransactionCreate, UploadedFile, User

logger = get_logger(__name__)


def _unwrap_list(data: Any) -> list[dict[str, Any]]:
    # Some deployments wrap collections as {"data": [...]}
    if isinstance(data, dict):
        data = data.get("data")
    if not isinstance(data, list):
        raise SourceUnavailableError(f"Expected a list response, got {type(data).__name__}")
    return [item for item in data if isinstance(item, dict)]


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("message") or body.get("detail") or body)
    return str(body)


class FinanzappClient:
    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
        categories_cache_ttl: float | None = None,
        timeout: float | None = None,
    ):
        self.base_url = (base_url or settings.get_api_url()).rstrip("/")
        self.token = token or settings.get_api_token()
        self.timeout = timeout if timeout is not None else settings.get_timeout()
        self._client = client
        self._client_lock = asyncio.Lock()
        self._cache_lock = asyncio.Lock()
        self._categories_cache: list[dict[str, Any]] | None = None
        self._categories_cache_expires_at = 0.0
        cache_ttl = categories_cache_ttl
        if cache_ttl is None:
            cache_ttl = settings.get_categories_ttl()
        self._categories_cache_ttl = max(0.0, cache_ttl)

    @property
    def headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    async def aclose(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _get_client(self) -> httpx.AsyncClient:
        client = self._client
        if client is not None and not client.is_closed:
            return client

        async with self._client_lock:
            # Another task may have created it while we waited
            client = self._client
            if client is None or client.is_closed:
                client = httpx.AsyncClient(timeout=self.timeout)
                self._client = client
            return client

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        files: dict[str, Any] | None = None,
    ) -> Any:
        client = await self._get_client()
        url = f"{self.base_url}{path}"
        try:
            response = await client.request(
                method,
                url,
                headers=self.headers,
                params=params,
                json=json,
                files=files,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            message = _error_message(exc.response)
            if status == 401:
                raise AuthenticationError(message) from exc
            raise SourceUnavailableError(f"{method} {path} failed ({status}): {message}", status) from exc
        except httpx.HTTPError as exc:
            raise SourceUnavailableError(f"{method} {path} failed: {exc}") from exc

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise SourceUnavailableError(f"{method} {path} returned invalid JSON") from exc

    # Authentication

    async def _authenticate(self, path: str, payload: dict[str, str]) -> User:
        try:
            data = await self._request("POST", path, json=payload)
        except SourceUnavailableError as exc:
            if exc.status_code in {400, 403, 422}:
                raise AuthenticationError(str(exc)) from exc
            raise
        if not isinstance(data, dict) or not data.get("token") or not isinstance(data.get("user"), dict):
            raise AuthenticationError("Authentication response did not include a user and token")
        self.token = str(data["token"])
        return User.model_validate(data["user"])

    async def login(self, email: str, password: str) -> User:
        user = await self._authenticate("/auth/login", {"email": email, "password": password})
        logger.info("[AUTH] Logged in as %s.", user.email)
        return user

    async def register(self, name: str, email: str, password: str) -> User:
        user = await self._authenticate(
            "/auth/register",
            {"name": name, "email": email, "password": password},
        )
        logger.info("[AUTH] Registered %s.", user.email)
        return user

    async def me(self) -> User | None:
        if not self.token:
            return None
        try:
            data = await self._request("GET", "/auth/me")
        except AuthenticationError:
            logger.warning("[AUTH] Stored token rejected; clearing session.")
            self.token = None
            return None
        return User.model_validate(data)

    def logout(self) -> None:
        self.token = None
        self.invalidate_categories()

    # Summary

    async def get_summary(self, month: str) -> dict[str, Any]:
        data = await self._request("GET", "/transactions/summary", params={"month": month})
        if not isinstance(data, dict):
            raise SourceUnavailableError("Summary response is not an object")
        return data

    # Categories

    def _get_cached_categories(self, *, allow_stale: bool = False) -> list[dict[str, Any]] | None:
        if self._categories_cache is None or self._categories_cache_ttl <= 0:
            return None
        if allow_stale:
            return self._categories_cache
        if monotonic() >= self._categories_cache_expires_at:
            return None
        return self._categories_cache

    def _cache_categories(self, categories: list[dict[str, Any]]) -> None:
        """Must be called while holding _cache_lock."""
        if self._categories_cache_ttl <= 0:
            return
        self._categories_cache = categories
        self._categories_cache_expires_at = monotonic() + self._categories_cache_ttl

    def invalidate_categories(self) -> None:
        self._categories_cache = None
        self._categories_cache_expires_at = 0.0

    async def _fetch_categories(self) -> list[dict[str, Any]]:
        return _unwrap_list(await self._request("GET", "/categories"))

    async def get_categories(
        self,
        *,
        use_cache: bool = True,
        raise_on_error: bool = False,
    ) -> list[dict[str, Any]]:
        if not use_cache:
            try:
                return await self._fetch_categories()
            except SourceUnavailableError as exc:
                if raise_on_error:
                    raise
                logger.error("Error fetching categories: %s", exc)
                return []

        async with self._cache_lock:
            cached = self._get_cached_categories()
            if cached is not None:
                return cached
            try:
                categories = await self._fetch_categories()
            except SourceUnavailableError as exc:
                stale = self._get_cached_categories(allow_stale=True)
                if stale is not None:
                    logger.warning("Error fetching categories, serving stale cache: %s", exc)
                    return stale
                if raise_on_error:
                    raise
                logger.error("Error fetching categories: %s", exc)
                return []
            self._cache_categories(categories)
            return categories

    async def create_category(self, name: str, kind: str, color: str | None = None) -> Category:
        payload: dict[str, Any] = {"name": name, "type": kind}
        if color:
            payload["color"] = color
        data = await self._request("POST", "/categories", json=payload)
        self.invalidate_categories()
        return Category.model_validate(data)

    # Transactions

    async def get_transactions(
        self,
        *,
        month: str | None = None,
        category_id: int | None = None,
        kind: KindFilter = "all",
        raise_on_error: bool = False,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {}
        if month:
            params["month"] = month
        if category_id is not None:
            params["categoryId"] = category_id
        if kind != "all":
            # The API has accepted both names over time
            params["kind"] = kind
            params["type"] = kind
        try:
            return _unwrap_list(await self._request("GET", "/transactions", params=params))
        except SourceUnavailableError as exc:
            if raise_on_error:
                raise
            logger.error("Error fetching transactions: %s", exc)
            return []

    async def create_transaction(self, transaction: TransactionCreate) -> dict[str, Any]:
        payload = transaction.model_dump(mode="json", exclude_none=True)
        payload["amount"] = float(transaction.amount)
        payload["type"] = transaction.kind
        data = await self._request("POST", "/transactions", json=payload)
        if not isinstance(data, dict):
            raise SourceUnavailableError("Create transaction response is not an object")
        return data

    async def delete_transaction(self, transaction_id: int | str) -> None:
        await self._request("DELETE", f"/transactions/{transaction_id}")

    async def upload_file(
        self,
        filename: str,
        content: bytes,
        content_type: str = "application/octet-stream",
    ) -> UploadedFile:
        data = await self._request(
            "POST",
            "/files",
            files={"file": (filename, content, content_type)},
        )
        return UploadedFile.model_validate(data)

    async def create_transaction_with_attachment(
        self,
        transaction: TransactionCreate,
        attachment: tuple[str, bytes, str] | None = None,
    ) -> dict[str, Any]:
        if attachment is not None:
            uploaded = await self.upload_file(*attachment)
            transaction = transaction.model_copy(update={"file_id": uploaded.id})
            logger.debug("[UPLOAD] Attached file %s to new transaction.", uploaded.id)
        return await self.create_transaction(transaction)
