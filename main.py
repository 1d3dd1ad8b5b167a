"""
ShopLedger - FastAPI Application Entry Point

This is the main entry point for the FastAPI application.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

import app.models  # noqa: F401  registers all tables on Base.metadata
from app.config import settings
from app.database import close_db, engine, init_db
from app.routers import (
    accounts,
    cash_bank,
    expense_categories,
    financial_years,
    profit,
    shops,
    transactions,
)
from app.utils.error_handling import setup_exception_handlers

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI.
    Handles startup and shutdown events.
    """
    logger.info(f"Starting {settings.app_name}...")
    logger.info(f"Environment: {settings.app_env}")

    # Development only; production schemas come from Alembic migrations
    if not settings.is_production:
        await init_db()
        logger.info("Database tables initialized")

    yield

    logger.info(f"Shutting down {settings.app_name}...")
    await close_db()
    logger.info("Database connections closed")


def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.app_name,
        description="Multi-tenant accounting core: chart of accounts, ledger, cash/bank balances and financial years",
        version="0.1.0",
        docs_url=None if settings.is_production else "/api/docs",
        redoc_url=None if settings.is_production else "/api/redoc",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_exception_handlers(application)

    prefix = f"/api/{settings.api_version}"
    application.include_router(shops.router, prefix=f"{prefix}/shops", tags=["Shops"])
    application.include_router(accounts.router, prefix=f"{prefix}/accounts", tags=["Chart of Accounts"])
    application.include_router(
        expense_categories.router, prefix=f"{prefix}/expense-categories", tags=["Expense Categories"]
    )
    application.include_router(cash_bank.router, prefix=f"{prefix}/cash-bank", tags=["Cash & Bank"])
    application.include_router(
        financial_years.router, prefix=f"{prefix}/financial-years", tags=["Financial Years"]
    )
    application.include_router(profit.router, prefix=f"{prefix}/profit", tags=["Profit"])
    application.include_router(transactions.router, prefix=f"{prefix}/transactions", tags=["Transactions"])

    @application.get("/api")
    async def api_info():
        """API information endpoint."""
        return {
            "name": settings.app_name,
            "version": "0.1.0",
            "environment": settings.app_env,
            "api_docs": "disabled" if settings.is_production else "/api/docs",
        }

    @application.get("/health")
    async def health_check():
        """Health check endpoint; pings the database."""
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error(f"Health check database ping failed: {e}")
            return {"status": "unhealthy", "database": "unreachable"}
        return {"status": "healthy", "database": "connected"}

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=not settings.is_production,
    )
