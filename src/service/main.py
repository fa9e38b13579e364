"""FastAPI service exposing the AI assistant gateway.

This module wires the admission pipeline into HTTP routes. Every upstream
route runs validation, API key authentication and per-key rate limiting before
the admitted request is handed to the upstream handler registered for it.

API Endpoints:
    - GET /: Service banner and endpoint list
    - GET /health: Liveness information (no authentication)
    - GET /health/detailed: Configuration and rate-limiter checks
    - GET /health/ready, /health/live: Orchestrator probes
    - POST /ask-ai: Question answering about page content
    - POST /ocr: Text extraction from an image data URL
    - POST /ocr/batch: Text extraction from up to ten image data URLs
    - GET /ocr/languages: Supported OCR languages
    - POST /pdf/extract: Text extraction from a PDF data URL
    - POST /pdf/ocr: OCR of a scanned PDF
    - POST /pdf/analyze: Decide whether a PDF needs OCR
    - GET /pdf/info: PDF processing capabilities

Upstream Handlers:
    Admitted requests are forwarded to the handler registered (see
    src.service.dependencies.register_upstream) under the route name:
    "ask-ai", "ocr", "ocr-batch", "pdf", "pdf-ocr", "pdf-analyze".

Rejections:
    - 400 Bad Request: Validation failure (with ``details``) or bad data URL
    - 401 Unauthorized: Missing or invalid API key
    - 429 Too Many Requests: Per-key window or per-IP throttle exhausted
    - 500 Internal Server Error: Gateway fault (stack only in development)
    - 503 Service Unavailable: No upstream handler registered for the route

Architectural Features:
    - Dependency Injection: Service container stored on app.state
    - Rate Limiting: Per-key sliding window plus a slowapi per-IP throttle
    - CORS Security: Configurable origins, wildcard entries match by prefix
    - Logging: Structured logging with security event tracking
"""

import logging
import os
import re
import time
import traceback
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..config import GatewayConfig, get_config
from ..container import configure_services
from ..gateway.errors import GatewayError, RateLimitExceededError
from ..models.requests import AdmittedRequest
from ..security.data_url import data_url_payload, is_image_data_url, is_pdf_data_url
from .dependencies import admission
from .schemas import ASK_AI_SCHEMA, OCR_BATCH_SCHEMA, OCR_SCHEMA, PDF_EXTRACT_SCHEMA

logger = structlog.get_logger()

VERSION = "1.0.0"

AVAILABLE_ENDPOINTS = ["/health", "/ask-ai", "/ocr", "/pdf"]

OCR_LANGUAGES = (
    ("eng", "English"),
    ("spa", "Spanish"),
    ("fra", "French"),
    ("deu", "German"),
    ("ita", "Italian"),
    ("por", "Portuguese"),
    ("rus", "Russian"),
    ("jpn", "Japanese"),
    ("kor", "Korean"),
    ("chi_sim", "Chinese (Simplified)"),
    ("chi_tra", "Chinese (Traditional)"),
    ("ara", "Arabic"),
    ("hin", "Hindi"),
    ("tha", "Thai"),
    ("vie", "Vietnamese"),
)


def configure_logging(level: str = "INFO") -> None:
    """Install the structlog processor chain on top of stdlib logging."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _cors_settings(allowed_origins) -> dict:
    """Split configured origins into exact matches and a prefix regex."""
    exact = [origin for origin in allowed_origins if "*" not in origin]
    prefixes = [origin.replace("*", "") for origin in allowed_origins if "*" in origin]
    settings = {"allow_origins": exact}
    if prefixes:
        settings["allow_origin_regex"] = "|".join(re.escape(prefix) + ".*" for prefix in prefixes)
    return settings


def _error_body(error: str, message: str) -> dict:
    return {"success": False, "error": error, "message": message}


def global_rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Render a per-IP throttle rejection in the gateway's 429 shape.

    slowapi's middleware may call this handler without awaiting it, so it
    stays a plain function.
    """
    container = request.app.state.container
    config = container.get("config")
    error = RateLimitExceededError(
        retry_after=container.get("rate_limiter").retry_after_seconds,
        limit=config.rate_limit_max_requests,
        window_seconds=config.rate_limit_window_seconds,
    )
    logger.warning(
        "Global rate limit exceeded",
        origin=get_remote_address(request),
        path=request.url.path,
        limit=str(exc.detail),
        extra={"security_event": True},
    )
    return JSONResponse(status_code=error.status_code, content=error.to_response(), headers=error.headers)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log startup settings and dispose of the container on shutdown."""
    config = app.state.container.get("config")
    logger.info(
        "AI assistant gateway starting",
        version=VERSION,
        environment=config.environment,
        allowed_origins=list(config.allowed_origins),
        api_key_configured=config.has_api_key,
    )

    yield

    logger.info("Shutting down services...")
    await app.state.container.dispose_async()


def create_app(config: Optional[GatewayConfig] = None) -> FastAPI:
    """Build the FastAPI application around a freshly configured container.

    Args:
        config: Gateway configuration; defaults to the environment

    Returns:
        FastAPI: Application with middleware, exception handlers and routes
    """
    config = config or get_config()
    configure_logging(config.log_level)
    container = configure_services(config)

    app = FastAPI(
        title="AI Assistant Gateway",
        version=VERSION,
        description="Admission gateway for AI, OCR and PDF services",
        lifespan=lifespan,
    )
    app.state.container = container
    app.state.limiter = container.get("global_limiter")
    app.state.started_at = time.monotonic()

    # Per-IP throttle across all routes
    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, global_rate_limit_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "x-api-key", "api-key"],
        max_age=86400,
        **_cors_settings(config.allowed_origins),
    )

    _register_exception_handlers(app, config)
    _register_routes(app)
    return app


def _register_exception_handlers(app: FastAPI, config: GatewayConfig) -> None:
    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        # Stage faults were already logged with their traceback by the pipeline
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_response(include_debug=config.development_mode),
            headers=exc.headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(
                status_code=404,
                content={
                    "error": "Endpoint not found",
                    "message": f"The requested endpoint {request.url.path} does not exist",
                    "availableEndpoints": AVAILABLE_ENDPOINTS,
                },
            )
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(str(exc.detail), str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled error",
            error=str(exc),
            url=str(request.url),
            method=request.method,
            exc_info=(type(exc), exc, exc.__traceback__),
        )
        if config.development_mode:
            body = _error_body("Internal server error", str(exc))
            body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        else:
            body = _error_body("Internal server error", "Something went wrong")
        return JSONResponse(status_code=500, content=body)


async def _forward(request: Request, route: str, admitted: AdmittedRequest):
    """Hand an admitted request to the upstream handler registered for ``route``."""
    handler = request.app.state.container.get("upstream_handlers").get(route)
    if handler is None:
        logger.warning("No upstream handler registered", route=route)
        return JSONResponse(
            status_code=503,
            content=_error_body(
                "Upstream service not configured",
                f"No upstream handler is registered for {route}",
            ),
        )
    return await handler(admitted)


async def _forward_pdf(request: Request, route: str, admitted: AdmittedRequest, event: str):
    """Check the PDF data URL, then forward to the handler registered for ``route``."""
    pdf_data = admitted.body["pdfData"]
    if not is_pdf_data_url(pdf_data):
        return JSONResponse(
            status_code=400,
            content=_error_body(
                "Invalid PDF format",
                "PDF data must be a valid base64 data URL starting with data:application/pdf;base64,",
            ),
        )

    logger.info(
        event,
        data_size=len(data_url_payload(pdf_data)),
        url=admitted.body.get("url"),
    )
    return await _forward(request, route, admitted)


def _register_routes(app: FastAPI) -> None:
    @app.get("/")
    async def root():
        return {
            "message": "AI Assistant Gateway",
            "version": VERSION,
            "status": "running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "endpoints": {
                "health": "/health",
                "askAI": "/ask-ai",
                "ocr": "/ocr",
                "pdf": "/pdf",
            },
        }

    @app.get("/health")
    async def health(request: Request):
        """Liveness check. Requires no authentication."""
        config = request.app.state.container.get("config")
        logger.info("Health check requested", origin=request.client.host if request.client else None)
        return {
            "success": True,
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": round(time.monotonic() - request.app.state.started_at, 3),
            "environment": config.environment,
            "version": VERSION,
        }

    @app.get("/health/detailed")
    async def health_detailed(request: Request):
        """Health check including configuration and rate-limiter state.

        Status is "degraded" when the service runs outside development mode
        without a configured API key, since every authenticated route would
        then reject all callers.
        """
        container = request.app.state.container
        config = container.get("config")
        limiter = container.get("rate_limiter")

        key_ok = config.has_api_key or config.development_mode
        checks = {
            "environment": {
                "status": "healthy" if key_ok else "unhealthy",
                "message": (
                    "All required environment variables are set"
                    if key_ok
                    else "API_KEY is required outside development mode"
                ),
                "apiKeyConfigured": config.has_api_key,
                "developmentMode": config.development_mode,
            },
            "rateLimiter": {"status": "healthy", **limiter.get_stats()},
            "container": container.get_service_info(),
        }

        return {
            "success": True,
            "status": "healthy" if key_ok else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": VERSION,
            "checks": checks,
        }

    @app.get("/health/ready")
    async def health_ready():
        """Readiness probe: the process is up and serving."""
        return {
            "success": True,
            "status": "ready",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/health/live")
    async def health_live(request: Request):
        """Liveness probe."""
        return {
            "success": True,
            "status": "alive",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": round(time.monotonic() - request.app.state.started_at, 3),
        }

    @app.post("/ask-ai")
    async def ask_ai(request: Request, admitted: AdmittedRequest = Depends(admission(ASK_AI_SCHEMA))):
        """Answer a question about the page the user is viewing."""
        body = admitted.body
        logger.info(
            "AI request received",
            question=body["question"][:100],
            has_context=bool(body.get("context")),
            has_selected_text=bool(body.get("selectedText")),
            url=body.get("url"),
        )
        return await _forward(request, "ask-ai", admitted)

    @app.post("/ocr")
    async def ocr(request: Request, admitted: AdmittedRequest = Depends(admission(OCR_SCHEMA))):
        """Extract text from an image supplied as a base64 data URL."""
        image = admitted.body["image"]
        if not is_image_data_url(image):
            return JSONResponse(
                status_code=400,
                content=_error_body(
                    "Invalid image format",
                    "Image must be a valid base64 data URL starting with data:image/",
                ),
            )

        logger.info(
            "OCR request received",
            image_size=len(data_url_payload(image)),
            language=admitted.body.get("language", "eng"),
            url=admitted.body.get("url"),
        )
        return await _forward(request, "ocr", admitted)

    @app.post("/ocr/batch")
    async def ocr_batch(request: Request, admitted: AdmittedRequest = Depends(admission(OCR_BATCH_SCHEMA))):
        """Extract text from up to ten images in one request."""
        images = admitted.body["images"]
        invalid = [index for index, image in enumerate(images) if not is_image_data_url(image)]
        if invalid:
            return JSONResponse(
                status_code=400,
                content={
                    **_error_body(
                        "Invalid image format",
                        "Every image must be a valid base64 data URL starting with data:image/",
                    ),
                    "invalidIndexes": invalid,
                },
            )

        logger.info(
            "Batch OCR request received",
            image_count=len(images),
            language=admitted.body.get("language", "eng"),
        )
        return await _forward(request, "ocr-batch", admitted)

    @app.get("/ocr/languages")
    async def ocr_languages():
        return {
            "success": True,
            "languages": [{"code": code, "name": name} for code, name in OCR_LANGUAGES],
            "default": "eng",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.post("/pdf/extract")
    async def pdf_extract(request: Request, admitted: AdmittedRequest = Depends(admission(PDF_EXTRACT_SCHEMA))):
        """Extract text from a PDF supplied as a base64 data URL."""
        return await _forward_pdf(request, "pdf", admitted, "PDF extraction request received")

    @app.post("/pdf/ocr")
    async def pdf_ocr(request: Request, admitted: AdmittedRequest = Depends(admission(PDF_EXTRACT_SCHEMA))):
        """Extract text from a scanned PDF with OCR."""
        return await _forward_pdf(request, "pdf-ocr", admitted, "PDF OCR request received")

    @app.post("/pdf/analyze")
    async def pdf_analyze(request: Request, admitted: AdmittedRequest = Depends(admission(PDF_EXTRACT_SCHEMA))):
        """Decide whether a PDF carries a text layer or needs OCR."""
        return await _forward_pdf(request, "pdf-analyze", admitted, "PDF analysis request received")

    @app.get("/pdf/info")
    async def pdf_info(request: Request):
        """PDF capabilities, derived from the upstream handlers registered."""
        handlers = request.app.state.container.get("upstream_handlers")
        return {
            "success": True,
            "capabilities": {
                "textExtraction": "pdf" in handlers,
                "ocrProcessing": "pdf-ocr" in handlers,
                "metadataExtraction": "pdf" in handlers,
                "pageAnalysis": "pdf-analyze" in handlers,
            },
            "supportedFormats": ["PDF"],
            "maxFileSize": "10MB",
            "maxPages": 100,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.service.main:app",
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "8000")),
        reload=os.getenv("API_RELOAD", "false").lower() == "true",
    )
