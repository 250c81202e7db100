from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException

from finanzapp.api.dependencies import get_client
from finanzapp.api.schemas import LoginRequest, RegisterRequest
from finanzapp.integration.finanzapp import FinanzappClient

router = APIRouter()


@router.post("/api/auth/login")
async def login(
    payload: LoginRequest,
    client: Annotated[FinanzappClient, Depends(get_client)],
) -> dict[str, Any]:
    user = await client.login(payload.email, payload.password)
    return {"user": user.model_dump()}


@router.post("/api/auth/register", status_code=201)
async def register(
    payload: RegisterRequest,
    client: Annotated[FinanzappClient, Depends(get_client)],
) -> dict[str, Any]:
    user = await client.register(payload.name, payload.email, payload.password)
    return {"user": user.model_dump()}


@router.get("/api/auth/me")
async def me(
    client: Annotated[FinanzappClient, Depends(get_client)],
) -> dict[str, Any]:
    user = await client.me()
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return {"user": user.model_dump()}


@router.post("/api/auth/logout")
async def logout(
    client: Annotated[FinanzappClient, Depends(get_client)],
) -> dict[str, str]:
    client.logout()
    return {"status": "logged_out"}
