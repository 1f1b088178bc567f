"""
Simbank HTTP entry point.

Run from backend/:
    uvicorn simbank.main:app --reload
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

from simbank.config import get_bank_settings
from simbank.database import engine, Base
from simbank.errors import BankingError
from simbank.routes import api_router

logger = logging.getLogger(__name__)

settings = get_bank_settings()

# Guarded dev helper; production schemas are created by migrations.
if settings.auto_create_tables:
    logger.warning("AUTO_CREATE_TABLES is enabled; creating tables via SQLAlchemy metadata.")
    Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="Simbank API",
    description="Simulated retail account engine: balances, ledger, transfers and referrals",
    version="0.1.0",
    docs_url="/docs" if settings.api_docs_enabled else None,
    redoc_url="/redoc" if settings.api_docs_enabled else None,
    openapi_url="/openapi.json" if settings.api_docs_enabled else None,
)


@app.exception_handler(BankingError)
async def banking_error_handler(request: Request, exc: BankingError):
    logger.warning(f"Rejected {request.method} {request.url.path}: {exc.code} ({exc.detail})")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unexpected error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "internal_error", "detail": "Internal server error."})


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api")


@app.get("/")
def root():
    payload = {"message": "Simbank API"}
    if settings.api_docs_enabled:
        payload["docs"] = "/docs"
    return payload


@app.get("/health")
def health():
    return {"status": "healthy"}
