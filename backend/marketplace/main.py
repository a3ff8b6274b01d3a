import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from marketplace.api import inventory, orders, payments
from marketplace.core.config import settings
from marketplace.core.logging import setup_logging
from marketplace.db.base import SessionLocal
from marketplace.services.scheduler import ReservationSweeper

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

sweeper = ReservationSweeper(
    SessionLocal,
    interval_seconds=settings.RESERVATION_SWEEP_INTERVAL_SECONDS,
    retention_days=settings.RESERVATION_RETENTION_DAYS,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.RESERVATION_SWEEPER_ENABLED:
        await sweeper.start()
    logger.info("%s started", settings.PROJECT_NAME)
    yield
    await sweeper.stop()
    logger.info("%s stopped", settings.PROJECT_NAME)


app = FastAPI(
    title="Marketplace Stock Core API",
    description="Inventory reservations, order cancellation and vendor commission settlement",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(inventory.router, prefix="/api")
app.include_router(orders.router, prefix="/api")
app.include_router(payments.router, prefix="/api")


@app.get("/health")
async def health_check():
    return {"status": "ok", "version": "0.1.0", "sweeper": sweeper.running}
