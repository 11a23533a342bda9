# FastAPI Server for the Creator Marketplace escrow workflow

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import sys

from config.app_config import LOG_LEVEL, CORS_ORIGINS
from database.config import init_db
from routers import (
    payment_methods_router,
    contracts_router,
    reviews_router,
    balance_router,
    disputes_router,
    payouts_router,
)

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Creator Marketplace API",
    description="Contract payments, escrow, reviews and payouts for brands and creators",
    version="1.0.0"
)


@app.on_event("startup")
def startup_event():
    # Create any missing tables; schema changes go through Alembic
    init_db()
    logger.info("Creator Marketplace API started")


# CORS Setup
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials="*" not in CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# ============================================================================
# MARKETPLACE ROUTERS (v2 API)
# ============================================================================
app.include_router(payment_methods_router, prefix="/api/v2")
app.include_router(contracts_router, prefix="/api/v2")
app.include_router(reviews_router, prefix="/api/v2")
app.include_router(balance_router, prefix="/api/v2")
app.include_router(disputes_router, prefix="/api/v2")
app.include_router(payouts_router, prefix="/api/v2")


@app.get("/")
def root():
    return {
        "name": "Creator Marketplace API",
        "version": "1.0.0",
        "status": "running"
    }


@app.get("/health")
def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
