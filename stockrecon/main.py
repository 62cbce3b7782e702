"""
Stock Reconciliation FastAPI Main Application
Entry point for the physical inventory reconciliation REST API
"""
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stockrecon.core.config import settings
from stockrecon.core.database import check_db_connection, init_db
from stockrecon.core.exceptions import (
    StockReconException, ValidationError, NotFoundError, ConflictError, NumericIntegrityError
)
from stockrecon.core.logging import setup_logging, get_logger
from stockrecon.api.v1.api_router import api_router

setup_logging(log_to_file=settings.LOG_TO_FILE)
logger = get_logger("api")

# Most specific first
ERROR_STATUS_CODES = (
    (NotFoundError, 404),
    (ConflictError, 409),
    (NumericIntegrityError, 422),
    (ValidationError, 400),
)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
    ## Stock Reconciliation API

    Physical inventory counts reconciled against live stock, with
    balanced double-entry postings for every variance.

    ### Workflow:
    - Draft a count document with counted quantities per product
    - Submit for review, then approve, reject or return for correction
    - Approval overwrites stock with the count and posts gains and losses
    - Posting groups can be inspected and reversed
    """,
    docs_url=settings.DOCS_URL,
    openapi_url=settings.OPENAPI_URL,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["System"])
async def health_check():
    """
    Health check endpoint for monitoring and load balancers

    Returns system status and database connectivity
    """
    try:
        db_status = check_db_connection()
        return {
            "status": "healthy" if db_status else "degraded",
            "version": settings.APP_VERSION,
            "database": "connected" if db_status else "disconnected",
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=503, detail="Service unavailable")


@app.on_event("startup")
async def startup_event():
    """Verify the database and create missing tables"""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    if not check_db_connection():
        logger.error("Failed to connect to database on startup")
        return
    init_db()
    logger.info("Application startup completed successfully")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down application")


@app.exception_handler(StockReconException)
async def stockrecon_exception_handler(request: Request, exc: StockReconException):
    """Map engine errors to HTTP responses"""
    status_code = 400
    for error_class, code in ERROR_STATUS_CODES:
        if isinstance(exc, error_class):
            status_code = code
            break

    logger.warning(f"{request.method} {request.url.path} -> {status_code}: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.error_type, "message": exc.message, "field": exc.field}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler for unhandled errors
    """
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "server_error",
            "message": str(exc) if settings.DEBUG else "An unexpected error occurred",
            "field": None
        }
    )


app.include_router(api_router, prefix=settings.API_V1_STR)
