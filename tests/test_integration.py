import json
from collections.abc import Callable
from datetime import date
from decimal import Decimal
from typing import Any
from unittest.mock import patch

import httpx
import pytest

from finanzapp.core.exceptions import AuthenticationError, SourceUnavailableError
from finanzapp.integration.finanzapp import FinanzappClient
from finanzapp.models import TransactionCreate

BASE_URL = "http://test/api"


def _client(
    handler: Callable[[httpx.Request], httpx.Response],
    **kwargs: Any,
) -> FinanzappClient:
    transport = httpx.MockTransport(handler)
    return FinanzappClient(
        base_url=BASE_URL,
        token=kwargs.pop("token", "token"),
        client=httpx.AsyncClient(transport=transport),
        **kwargs,
    )


@pytest.mark.anyio
async def test_requests_carry_bearer_token() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"incomes": 1, "expenses": 0})

    client = _client(handler)
    data = await client.get_summary("2024-05")

    assert data == {"incomes": 1, "expenses": 0}
    assert seen[0].url.path == "/api/transactions/summary"
    assert seen[0].url.params["month"] == "2024-05"
    assert seen[0].headers["Authorization"] == "Bearer token"


@pytest.mark.anyio
async def test_summary_errors_raise_source_unavailable() -> None:
    client = _client(lambda request: httpx.Response(500, json={"message": "boom"}))
    with pytest.raises(SourceUnavailableError) as exc_info:
        await client.get_summary("2024-05")
    assert exc_info.value.status_code == 500
    assert "boom" in str(exc_info.value)


@pytest.mark.anyio
async def test_transport_errors_raise_source_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = _client(handler)
    with pytest.raises(SourceUnavailableError):
        await client.get_summary("2024-05")


@pytest.mark.anyio
async def test_transactions_kind_filter_sends_both_names() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{"id": 1}])

    client = _client(handler)
    await client.get_transactions(month="2024-05", category_id=3, kind="expense")
    await client.get_transactions(kind="all")

    filtered, unfiltered = seen
    assert filtered.url.params["month"] == "2024-05"
    assert filtered.url.params["categoryId"] == "3"
    assert filtered.url.params["kind"] == "expense"
    assert filtered.url.params["type"] == "expense"
    assert "kind" not in unfiltered.url.params
    assert "type" not in unfiltered.url.params


@pytest.mark.anyio
async def test_transactions_accept_wrapped_lists() -> None:
    client = _client(lambda request: httpx.Response(200, json={"data": [{"id": 1}, "junk"]}))
    assert await client.get_transactions() == [{"id": 1}]


@pytest.mark.anyio
async def test_transactions_error_handling_modes() -> None:
    client = _client(lambda request: httpx.Response(503, text="unavailable"))

    assert await client.get_transactions(month="2024-05") == []
    with pytest.raises(SourceUnavailableError):
        await client.get_transactions(month="2024-05", raise_on_error=True)


@pytest.mark.anyio
async def test_categories_cache_ttl_expires() -> None:
    responses = iter([
        [{"id": 1, "name": "Food", "type": "expense"}],
        [{"id": 2, "name": "Fuel", "type": "expense"}],
    ])
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json=next(responses))

    client = _client(handler, categories_cache_ttl=1)

    with patch(
        "finanzapp.integration.finanzapp.monotonic",
        side_effect=[0.0, 2.0, 2.0],
    ):
        first = await client.get_categories()
        second = await client.get_categories()

    assert first[0]["name"] == "Food"
    assert second[0]["name"] == "Fuel"
    assert len(calls) == 2


@pytest.mark.anyio
async def test_categories_cache_hit_and_invalidation() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if request.method == "POST":
            return httpx.Response(201, json={"id": 5, "name": "Pets", "type": "expense"})
        return httpx.Response(200, json=[{"id": 1, "name": "Food", "type": "expense"}])

    client = _client(handler, categories_cache_ttl=60)

    await client.get_categories()
    await client.get_categories()
    assert len(calls) == 1

    category = await client.create_category("Pets", "expense", color="#ff0000")
    assert category.id == 5
    assert category.kind == "expense"
    assert json.loads(calls[1].content) == {"name": "Pets", "type": "expense", "color": "#ff0000"}

    await client.get_categories()
    assert len(calls) == 3


@pytest.mark.anyio
async def test_categories_serve_stale_cache_on_error() -> None:
    responses = iter([
        httpx.Response(200, json=[{"id": 1, "name": "Food", "type": "expense"}]),
        httpx.Response(500),
    ])
    client = _client(lambda request: next(responses), categories_cache_ttl=1)

    with patch(
        "finanzapp.integration.finanzapp.monotonic",
        side_effect=[0.0, 5.0],
    ):
        first = await client.get_categories()
        second = await client.get_categories(raise_on_error=True)

    assert first == second


@pytest.mark.anyio
async def test_categories_without_cache_raise_when_asked() -> None:
    client = _client(lambda request: httpx.Response(500), categories_cache_ttl=0)
    assert await client.get_categories() == []
    with pytest.raises(SourceUnavailableError):
        await client.get_categories(raise_on_error=True)


@pytest.mark.anyio
async def test_login_stores_token() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/auth/login":
            return httpx.Response(200, json={
                "token": "new-token",
                "user": {"id": 1, "name": "Ana", "email": "ana@example.com", "role": "user"},
            })
        assert request.headers["Authorization"] == "Bearer new-token"
        return httpx.Response(200, json={"id": 1, "name": "Ana", "email": "ana@example.com"})

    client = _client(handler, token=None)
    user = await client.login("ana@example.com", "secret")

    assert user.email == "ana@example.com"
    assert client.token == "new-token"
    me = await client.me()
    assert me is not None and me.id == 1


@pytest.mark.anyio
async def test_login_rejected() -> None:
    client = _client(lambda request: httpx.Response(401, json={"message": "Invalid credentials"}), token=None)
    with pytest.raises(AuthenticationError, match="Invalid credentials"):
        await client.login("ana@example.com", "wrong")
    assert client.token is None


@pytest.mark.anyio
async def test_me_clears_rejected_token() -> None:
    client = _client(lambda request: httpx.Response(401, json={"message": "expired"}))
    assert await client.me() is None
    assert client.token is None


@pytest.mark.anyio
async def test_create_transaction_mirrors_kind_into_type() -> None:
    bodies: list[dict[str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(201, json={"id": 10, **bodies[-1]})

    client = _client(handler)
    created = await client.create_transaction(TransactionCreate(
        kind="expense",
        amount=Decimal("12.50"),
        date=date(2024, 5, 2),
        category_id=1,
    ))

    assert created["id"] == 10
    assert bodies[0] == {
        "kind": "expense",
        "type": "expense",
        "amount": 12.5,
        "date": "2024-05-02",
        "category_id": 1,
    }


@pytest.mark.anyio
async def test_attachment_is_uploaded_before_transaction() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path == "/api/files":
            return httpx.Response(201, json={"file_id": 77, "original_name": "receipt.pdf"})
        return httpx.Response(201, json={"id": 11, **json.loads(request.content)})

    client = _client(handler)
    created = await client.create_transaction_with_attachment(
        TransactionCreate(kind="income", amount=Decimal("100"), date=date(2024, 5, 1)),
        ("receipt.pdf", b"%PDF-1.4", "application/pdf"),
    )

    assert [request.url.path for request in seen] == ["/api/files", "/api/transactions"]
    assert b"receipt.pdf" in seen[0].content
    assert created["file_id"] == 77


@pytest.mark.anyio
async def test_delete_transaction() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    client = _client(handler)
    await client.delete_transaction(3)

    assert seen[0].method == "DELETE"
    assert seen[0].url.path == "/api/transactions/3"
