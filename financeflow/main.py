import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from financeflow.core.config import config
from financeflow.core.db.engine import create_all
from financeflow.core.dependencies import get_scheduler_service, get_sync_registry
from financeflow.core.error_handler import global_exception_handler
from financeflow.core.middleware.request_id_middleware import RequestIDMiddleware
from financeflow.modules.ledger.controller import router as ledger_router
from financeflow.modules.sync.controller import router as sync_router
from financeflow.modules.transactions.controller import router as transactions_router

logging.basicConfig(
    level=config.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not config.is_production:
        # Migrations own the schema in production
        await create_all()

    scheduler_service = get_scheduler_service()
    scheduler_service.start()
    await get_sync_registry().load_all()
    logger.info("FinanceFlow started")

    yield

    scheduler_service.shutdown(wait=False)
    logger.info("FinanceFlow stopped")


app = FastAPI(
    title="FinanceFlow API",
    description="Imports bank, UPI and card alert emails into a reviewable ledger",
    version="1.0.0",
    lifespan=lifespan,
)

# Add global exception handler
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, global_exception_handler)
app.add_exception_handler(RequestValidationError, global_exception_handler)

# Middlewares
app.add_middleware(RequestIDMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(sync_router)
app.include_router(transactions_router)
app.include_router(ledger_router)


@app.get("/health")
async def health(request: Request) -> dict[str, str]:
    return {"status": "ok", "request_id": str(request.state.request_id)}
