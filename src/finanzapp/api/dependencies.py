from fastapi import HTTPException, Request

from finanzapp.integration.finanzapp import FinanzappClient
from finanzapp.services.summary import SummaryResolver


def get_client(request: Request) -> FinanzappClient:
    client = getattr(request.app.state, "client", None)
    if not client:
        raise HTTPException(status_code=500, detail="Finanzapp client not configured")
    return client


def get_resolver(request: Request) -> SummaryResolver:
    resolver = getattr(request.app.state, "resolver", None)
    if not resolver:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return resolver
