"""FastAPI application for the Easy Genomics file API.

Serves the same contracts as the Lambda handlers, for local development
and for deployments that run the API as a long-lived service.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from eglib.cognito_auth import CognitoAuth, create_auth_dependency
from eglib.config import Settings, get_settings
from eglib.exceptions import (
    AuthenticationError,
    EasyGenomicsException,
    InvalidRequestError,
    UnauthorizedAccessError,
)
from eglib.file_listing import FileListingService, build_listing_service, parse_request_body
from eglib.schemas import ErrorResponse, RequestFileDownloadUrl

LOGGER = logging.getLogger("easygenomics.api")

LISTING_PATH = "/easy-genomics/file/request-top-level-bucket-objects"
DOWNLOAD_URL_PATH = "/easy-genomics/file/request-file-download-url"

# Exceptions whose message and status reach the caller unchanged.
_CLIENT_VISIBLE_ERRORS = (InvalidRequestError, UnauthorizedAccessError, AuthenticationError)


def _error_content(exc: EasyGenomicsException, request_id: str) -> Dict[str, Any]:
    return ErrorResponse(error=exc.message, code=exc.code, request_id=request_id).model_dump()


def create_app(
    listing_service: Optional[FileListingService] = None,
    cognito_auth: Optional[CognitoAuth] = None,
    enable_auth: Optional[bool] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Create FastAPI application.

    Args:
        listing_service: File listing service (built from settings if omitted)
        cognito_auth: Cognito verifier, required when auth is enabled
        enable_auth: Require a Cognito ID token (defaults to settings.enable_auth)
        settings: Optional Settings instance (uses get_settings() if not provided)

    Returns:
        FastAPI application instance
    """
    if settings is None:
        settings = get_settings()
    if enable_auth is None:
        enable_auth = settings.enable_auth

    settings.validate_demo_mode()
    if settings.demo_mode:
        LOGGER.warning(
            "DEMO MODE ENABLED - unauthenticated callers receive the demo OrganizationAccess claim. "
            "This should NEVER be used in production!"
        )

    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    if settings.is_development:
        logging.getLogger("easygenomics.file_listing").setLevel(logging.DEBUG)
        logging.getLogger("easygenomics.s3_service").setLevel(logging.DEBUG)

    LOGGER.info("Creating Easy Genomics file API (env=%s, log_level=%s)", settings.eg_env, settings.log_level)

    if listing_service is None:
        listing_service = build_listing_service(settings)

    app = FastAPI(
        title="Easy Genomics File API",
        description="Lazy-loading file listings for laboratory storage",
        version="1.0.0",
    )

    try:
        cors_origins = settings.get_cors_origins()
    except ValueError as e:
        LOGGER.error("CORS configuration error: %s", e)
        raise
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ========== Global Exception Handlers ==========

    @app.exception_handler(EasyGenomicsException)
    async def easy_genomics_exception_handler(request: Request, exc: EasyGenomicsException):
        """Surface request/auth errors; collapse everything else to a generic 500."""
        request_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())[:8]
        if isinstance(exc, _CLIENT_VISIBLE_ERRORS):
            LOGGER.warning(
                "Request rejected: code=%s, message=%s, request_id=%s, path=%s",
                exc.code, exc.message, request_id, request.url.path
            )
            return JSONResponse(
                status_code=exc.status_code,
                content=_error_content(exc, request_id),
            )
        LOGGER.error(
            "EasyGenomicsException: code=%s, message=%s, request_id=%s, path=%s",
            exc.code, exc.message, request_id, request.url.path
        )
        return JSONResponse(status_code=500, content=_error_content(EasyGenomicsException(), request_id))

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions without leaking internal detail."""
        request_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())[:8]
        LOGGER.exception(
            "Unhandled exception: %s, request_id=%s, path=%s",
            type(exc).__name__, request_id, request.url.path
        )
        return JSONResponse(status_code=500, content=_error_content(EasyGenomicsException(), request_id))

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        """Add request ID to all requests for tracing."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    # ========== Authentication ==========

    if enable_auth:
        if not cognito_auth:
            raise ValueError("enable_auth=True requires cognito_auth parameter")
        get_claims = create_auth_dependency(cognito_auth)
        LOGGER.info("Authentication enabled - listing requires a Cognito ID token")
    else:
        def get_claims() -> Optional[Dict[str, Any]]:
            if settings.demo_mode:
                return settings.get_demo_claims()
            return None
        LOGGER.info("Authentication disabled - callers carry no claims unless demo mode is on")

    # ========== Routes ==========

    @app.get("/")
    async def health_check():
        return {"status": "healthy", "service": "easy-genomics-file-api"}

    @app.post(LISTING_PATH)
    async def request_top_level_bucket_objects(
        request: Request,
        claims: Optional[Dict[str, Any]] = Depends(get_claims),
    ):
        """List the direct children of a prefix in a laboratory bucket.

        The body is validated against the closed request schema (400 on
        failure). Pagination is exhausted server-side so the response is
        never truncated.
        """
        body = await request.body()
        is_base64 = request.headers.get("Content-Transfer-Encoding", "").lower() == "base64"
        listing_request = parse_request_body(body, is_base64_encoded=is_base64)
        listing = await run_in_threadpool(
            listing_service.request_top_level_bucket_objects, listing_request, claims
        )
        return JSONResponse(content=listing.to_response_body())

    @app.post(DOWNLOAD_URL_PATH)
    async def request_file_download_url(
        request: Request,
        claims: Optional[Dict[str, Any]] = Depends(get_claims),
    ):
        """Return a presigned GET URL for one object in laboratory storage."""
        body = await request.body()
        is_base64 = request.headers.get("Content-Transfer-Encoding", "").lower() == "base64"
        download_request = parse_request_body(body, is_base64_encoded=is_base64, model=RequestFileDownloadUrl)
        download = await run_in_threadpool(
            listing_service.request_file_download_url, download_request, claims
        )
        return JSONResponse(content=download.to_response_body())

    return app


def create_app_from_settings() -> FastAPI:
    """Application factory for uvicorn: everything comes from Settings."""
    settings = get_settings()
    cognito_auth = None
    if settings.enable_auth:
        if not settings.auth_configured:
            raise ValueError(
                "ENABLE_AUTH=true requires COGNITO_USER_POOL_ID and COGNITO_APP_CLIENT_ID"
            )
        cognito_auth = CognitoAuth(
            region=settings.aws_default_region,
            user_pool_id=settings.cognito_user_pool_id,
            app_client_id=settings.cognito_app_client_id,
        )
    return create_app(cognito_auth=cognito_auth, settings=settings)
