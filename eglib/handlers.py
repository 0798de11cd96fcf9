"""AWS Lambda entry points for the file API.

``handler`` serves POST /easy-genomics/file/request-top-level-bucket-objects
and ``download_handler`` serves POST /easy-genomics/file/request-file-download-url,
both behind an API Gateway Cognito authorizer.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Mapping, Optional, Type

from pydantic import BaseModel

from eglib.auth_utils import get_request_claims
from eglib.config import get_settings
from eglib.exceptions import EasyGenomicsException, InvalidRequestError, UnauthorizedAccessError
from eglib.file_listing import FileListingService, build_listing_service, parse_request_body
from eglib.schemas import ErrorResponse, RequestFileDownloadUrl, RequestTopLevelBucketObjects
from eglib.security import redact_event

LOGGER = logging.getLogger("easygenomics.handlers")

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,Authorization",
    "Access-Control-Allow-Methods": "OPTIONS,POST",
}

LambdaResponse = Dict[str, Any]


def build_response(status_code: int, body: Any, headers: Optional[Dict[str, str]] = None) -> LambdaResponse:
    """Build an API Gateway proxy response with a JSON body."""
    return {
        "statusCode": status_code,
        "headers": {**DEFAULT_HEADERS, **(headers or {})},
        "body": body if isinstance(body, str) else json.dumps(body),
    }


def build_error_response(error: Exception) -> LambdaResponse:
    """Map an exception to an error response.

    Only request and authorization errors are surfaced as-is; every other
    failure becomes an opaque 500.
    """
    if not isinstance(error, (InvalidRequestError, UnauthorizedAccessError)):
        error = EasyGenomicsException()
    body = ErrorResponse(error=error.message, code=error.code)
    return build_response(error.status_code, body.model_dump(exclude_none=True))


def create_handler(
    service_factory: Callable[[], FileListingService],
    request_model: Type[BaseModel] = RequestTopLevelBucketObjects,
    operation: str = "request_top_level_bucket_objects",
) -> Callable[[Mapping[str, Any], Any], LambdaResponse]:
    """Create a Lambda handler around a lazily built FileListingService.

    ``operation`` names the service method invoked with the parsed
    ``request_model`` and the caller's claims.
    """

    service: Optional[FileListingService] = None

    def _handler(event: Mapping[str, Any], context: Any = None) -> LambdaResponse:
        nonlocal service
        LOGGER.info("EVENT: %s", json.dumps(redact_event(event), default=str))
        try:
            request = parse_request_body(
                event.get("body"), bool(event.get("isBase64Encoded")), model=request_model
            )
            if service is None:
                service = service_factory()
            result = getattr(service, operation)(request, get_request_claims(event))
            return build_response(200, result.to_response_body())
        except (InvalidRequestError, UnauthorizedAccessError) as e:
            LOGGER.warning("Request rejected: code=%s, message=%s", e.code, e.message)
            return build_error_response(e)
        except Exception as e:
            LOGGER.exception("Unhandled error in %s: %s", operation, type(e).__name__)
            return build_error_response(e)

    return _handler


logging.basicConfig(
    level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

handler = create_handler(build_listing_service)
download_handler = create_handler(
    build_listing_service, RequestFileDownloadUrl, "request_file_download_url"
)
