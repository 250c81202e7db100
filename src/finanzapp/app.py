from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from finanzapp.api.errors import register_error_handlers
from finanzapp.api.routes import auth, categories, pages, summary, transactions
from finanzapp.core import settings
from finanzapp.integration.finanzapp import FinanzappClient
from finanzapp.logger import get_logger, setup_logging
from finanzapp.services.summary import SummaryResolver

logger = get_logger(__name__)


def create_app(client: FinanzappClient | None = None) -> FastAPI:
    setup_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Initializing services...")
        settings.log_environment()

        finanzapp = client or FinanzappClient()
        if not finanzapp.is_authenticated:
            logger.warning("FINANZAPP_TOKEN not set. Log in via /api/auth/login before requesting data.")

        app.state.client = finanzapp
        app.state.resolver = SummaryResolver(
            summary_source=finanzapp,
            transaction_source=finanzapp,
            category_source=finanzapp,
        )

        logger.info("Services initialized (API: %s).", finanzapp.base_url)
        yield
        await finanzapp.aclose()
        logger.info("Service shutting down.")

    app = FastAPI(title="Finanzapp", lifespan=lifespan)
    register_error_handlers(app)

    app.include_router(auth.router)
    app.include_router(categories.router)
    app.include_router(transactions.router)
    app.include_router(summary.router)
    app.include_router(pages.router)

    return app
