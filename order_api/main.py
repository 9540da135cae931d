"""
Order API service: menu catalogue, order lifecycle and per-principal profiles.

Callers authenticate with ``Authorization: Bearer <principal>``; the storefront
gateway is the only intended client. Tables are created on startup and the
menu is seeded unless ``SEED_MENU=false``.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from prometheus_client import make_asgi_app

import order_api.models  # noqa: F401  registers tables on Base.metadata
from order_api.config import settings
from order_api.database import Base, engine
from order_api.middleware.metrics import MetricsMiddleware
from order_api.middleware.request_id import RequestIDMiddleware
from order_api.routers import menu, orders, profile
from order_api.services.menu_service import seed_menu_items
from shared.logging import setup_logging
from shared.tracing import setup_tracing

setup_logging(settings.log_level, service="order-api")
logger = logging.getLogger(__name__)

setup_tracing("order-api", settings.otlp_endpoint)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up, creating database tables")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)

    if settings.seed_menu:
        await seed_menu_items()
    logger.info("Startup complete")

    yield

    await engine.dispose()
    logger.info("Shutting down")


app = FastAPI(
    title="Storefront Order API",
    description="Menu, order lifecycle and profile operations behind the storefront gateway",
    version="1.0.0",
    lifespan=lifespan,
)

FastAPIInstrumentor.instrument_app(app)
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestIDMiddleware)
app.include_router(menu.router, prefix="/menu", tags=["menu"])
app.include_router(orders.router, prefix="/orders", tags=["orders"])
app.include_router(profile.router, prefix="/profile", tags=["profile"])

# Expose Prometheus metrics at /metrics
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}
