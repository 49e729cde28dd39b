# api/tea_inventory/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .db import init_db
from .errors import setup_exception_handlers
from .logging_config import get_logger, setup_logging
from .routers import (
    audit,
    auth,
    bom,
    dashboard,
    health,
    inventory_adjustments,
    production_requests,
    products,
    raw_materials,
    users,
)
from .sessions import session_manager

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    init_db()
    logger.info("Tea Inventory API started (%s)", settings.environment)
    yield
    logger.info("Tea Inventory API stopped")


app = FastAPI(title="Tea Inventory API", lifespan=lifespan)
app.state.session_manager = session_manager

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(products.router)
app.include_router(raw_materials.router)
app.include_router(bom.router)
app.include_router(production_requests.router)
app.include_router(inventory_adjustments.router)
app.include_router(users.router)
app.include_router(dashboard.router)

# Audit read model (admin)
app.include_router(audit.router)
