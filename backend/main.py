"""
FairReview - Fair-Competition Review Service
============================================
Main FastAPI application entry point.

This application provides:
- Text extraction from uploaded policy documents
- Rule-based detection of fair-competition violations
- Optional LLM review (DeepSeek) with local fallback
- Review history with CSV export

Author: FairReview Team
Version: 1.0.0
"""

import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import documents_router, history_router, review_router, rules_router
from core.config import get_settings
from core.document_parser import DocumentParser
from core.external_reviewer import DeepSeekReviewer
from core.history import ReviewHistory
from core.rate_limiter import FixedWindowRateLimiter
from core.review_engine import ReviewEngine
from core.review_service import ReviewService
from core.rules import build_default_rule_table
from schemas import HealthCheckResponse

VERSION = "1.0.0"

# === Configuration ===
settings = get_settings()


# === Logging Setup ===
def setup_logging():
    """Configure structured logging."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )


setup_logging()
logger = structlog.get_logger(__name__)


# === Lifespan Management ===
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan management.

    Startup:
    - Build the rule table and the local engine
    - Attach the external reviewer when a key is configured
    - Open the review history and create the rate limiters

    Shutdown:
    - Close the history cache
    """
    logger.info("Starting FairReview API", version=VERSION)

    settings.upload_dir.mkdir(parents=True, exist_ok=True)
    settings.history_dir.mkdir(parents=True, exist_ok=True)

    rule_table = build_default_rule_table()
    engine = ReviewEngine(rule_table)

    external_reviewer = None
    if settings.external_review_enabled:
        external_reviewer = DeepSeekReviewer(settings, rule_table)
        logger.info("External review enabled", model=settings.llm_model)
    else:
        logger.warning("DEEPSEEK_API_KEY not set; using local rule review only")

    app.state.settings = settings
    app.state.rule_table = rule_table
    app.state.review_service = ReviewService(engine, settings, external_reviewer)
    app.state.document_parser = DocumentParser()
    app.state.history = ReviewHistory(settings.history_dir, settings.history_max_records)
    app.state.review_limiter = FixedWindowRateLimiter(settings.review_rate_limit_per_minute)
    app.state.parse_limiter = FixedWindowRateLimiter(settings.parse_rate_limit_per_minute)
    logger.info("Services ready", rules=len(rule_table), history=str(settings.history_dir))

    yield

    logger.info("Shutting down FairReview API")
    app.state.history.close()


# === Application Setup ===
app = FastAPI(
    title="FairReview API",
    description="""
    ## Fair-Competition Review of Policy Documents

    FairReview checks policy text against the Implementing Measures of the
    Fair Competition Review Regulations:

    - **Extracts** text from .docx, .pdf and .txt uploads
    - **Detects** singled-out operators, excessive entry thresholds,
      regional restrictions and targeted subsidies
    - **Cites** the violated article with a suggested rewrite
    - **Falls back** to local rules whenever the LLM reviewer is unavailable

    ### API Flow

    1. `POST /documents/parse` - Extract text from a document
    2. `POST /review` - Review the text
    3. `GET /history` - Browse past reviews

    ### Rate Limits

    - 60 review requests and 30 parse requests per minute per client
    - Max file size: 10MB
    """,
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan
)


# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# === Exception Handlers ===
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    logger.exception("Unhandled exception", path=request.url.path, error=str(exc))

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "InternalServerError",
            "message": "An unexpected error occurred. Please try again.",
            "details": {"path": request.url.path} if settings.debug else None
        }
    )


# === Health Check ===
@app.get(
    "/health",
    response_model=HealthCheckResponse,
    tags=["Health"],
    summary="Health check",
    description="Check if the API is running and which review mode is active."
)
async def health_check(request: Request) -> HealthCheckResponse:
    """
    Health check endpoint.

    Returns the status of the API and dependent services.
    """
    services = {
        "api": "healthy",
        "rules": "healthy",
        "llm": "configured" if settings.external_review_enabled else "not_configured",
        "review_mode": request.app.state.review_service.mode
    }

    return HealthCheckResponse(
        status="healthy",
        version=VERSION,
        timestamp=datetime.now(timezone.utc),
        services=services
    )


@app.get(
    "/",
    tags=["Health"],
    summary="Root endpoint",
    description="Welcome message and API information."
)
async def root():
    """Root endpoint with welcome message."""
    return {
        "name": "FairReview API",
        "version": VERSION,
        "description": "Fair-competition review of policy documents",
        "docs": "/docs",
        "health": "/health"
    }


# === Register Routers ===
app.include_router(documents_router)
app.include_router(review_router)
app.include_router(rules_router)
app.include_router(history_router)


# === Main Entry Point ===
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
