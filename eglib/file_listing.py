"""Top-level bucket object listing for the File Manager.

Returns only the direct children (files and folders) of one prefix, using the
S3 delimiter so a folder can be lazily expanded without loading the whole
bucket. All pages at that level are fetched before responding, so callers
always receive a complete, non-truncated directory level.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Mapping, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from eglib.auth_utils import can_access_laboratory_files
from eglib.config import Settings, get_settings
from eglib.exceptions import InvalidRequestError, UnauthorizedAccessError
from eglib.laboratory import LaboratoryService
from eglib.s3_service import S3Service
from eglib.schemas import (
    FileDownloadResponse,
    RequestFileDownloadUrl,
    RequestTopLevelBucketObjects,
    S3TopLevelResponse,
)
from eglib.security import sanitize_for_log

LOGGER = logging.getLogger("easygenomics.file_listing")

DEFAULT_MAX_KEYS = 1000
# S3 never returns more than this many keys per list call.
MAX_KEYS_LIMIT = 1000
DELIMITER = "/"
DEFAULT_DOWNLOAD_EXPIRES_IN = 3600

RequestModel = TypeVar("RequestModel", bound=BaseModel)


def parse_request_body(
    body: Optional[Union[str, bytes]],
    is_base64_encoded: bool = False,
    model: Type[RequestModel] = RequestTopLevelBucketObjects,
) -> RequestModel:
    """Decode and validate a request body against a closed request model.

    Raises:
        InvalidRequestError: body missing, undecodable, or not schema-conformant.
    """
    if body is None or body in ("", b""):
        raise InvalidRequestError(message="Request body is required")

    raw = body
    if is_base64_encoded:
        try:
            compact = b"".join(body.split()) if isinstance(body, bytes) else "".join(body.split())
            raw = base64.b64decode(compact, validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidRequestError(message="Request body is not valid base64") from e

    try:
        return model.model_validate_json(raw)
    except ValidationError as e:
        LOGGER.info("Rejected %s: %s", model.__name__, sanitize_for_log(e.errors(include_url=False)))
        raise InvalidRequestError() from e


def list_top_level_objects(
    s3_service: S3Service,
    bucket: str,
    prefix: str,
    max_keys: int = DEFAULT_MAX_KEYS,
    delimiter: str = DELIMITER,
) -> S3TopLevelResponse:
    """Follow continuation tokens until the directory level is exhausted.

    Pages are concatenated in arrival order with no dedup or sorting.
    ``$metadata`` is taken from the first page.
    """
    listing: Optional[S3TopLevelResponse] = None
    continuation_token: Optional[str] = None
    pages = 0

    while True:
        page = s3_service.list_bucket_objects_v2(
            bucket=bucket,
            prefix=prefix,
            delimiter=delimiter,
            max_keys=max_keys,
            continuation_token=continuation_token,
        )
        pages += 1

        if listing is None:
            listing = S3TopLevelResponse(metadata=page.metadata)
        listing.Contents.extend(page.contents)
        listing.CommonPrefixes.extend(page.common_prefixes)

        if not page.is_truncated:
            break
        if not page.next_continuation_token:
            LOGGER.warning(
                "Listing s3://%s/%s reported truncation without a continuation token after %d page(s)",
                bucket, prefix, pages,
            )
            break
        continuation_token = page.next_continuation_token

    listing.IsTruncated = False
    LOGGER.info(
        "Listed s3://%s/%s: %d objects, %d prefixes in %d page(s)",
        bucket, prefix, len(listing.Contents), len(listing.CommonPrefixes), pages,
    )
    return listing


def parse_s3_uri(s3_uri: str) -> Tuple[str, str]:
    """Split ``s3://bucket/key`` into bucket and key.

    Raises:
        InvalidRequestError: not an s3:// URI, or the bucket or key is empty.
    """
    if not s3_uri.startswith("s3://"):
        raise InvalidRequestError(message="S3Uri must start with s3://")
    bucket, _, key = s3_uri[len("s3://"):].partition("/")
    if not bucket or not key or key.endswith("/"):
        raise InvalidRequestError(message="S3Uri must name a bucket and an object key")
    return bucket, key


class FileListingService:
    """Authorize and serve top-level listings of laboratory storage."""

    def __init__(
        self,
        laboratory_service: LaboratoryService,
        s3_service: S3Service,
        default_max_keys: int = DEFAULT_MAX_KEYS,
        delimiter: str = DELIMITER,
        download_expires_in: int = DEFAULT_DOWNLOAD_EXPIRES_IN,
    ):
        self.laboratory_service = laboratory_service
        self.s3_service = s3_service
        self.default_max_keys = default_max_keys
        self.delimiter = delimiter
        self.download_expires_in = download_expires_in

    def _authorized_laboratory(self, laboratory_id: str, claims: Optional[Mapping[str, Any]], action: str):
        laboratory = self.laboratory_service.query_by_laboratory_id(laboratory_id)
        if not can_access_laboratory_files(claims, laboratory.OrganizationId, laboratory.LaboratoryId):
            LOGGER.warning(
                "Denied file %s for laboratory %s",
                action, sanitize_for_log(laboratory.LaboratoryId),
            )
            raise UnauthorizedAccessError()
        return laboratory

    def request_top_level_bucket_objects(
        self,
        request: RequestTopLevelBucketObjects,
        claims: Optional[Mapping[str, Any]],
    ) -> S3TopLevelResponse:
        """Resolve, authorize, and list one directory level.

        Raises:
            UnauthorizedAccessError: caller is neither org admin nor a lab member.
            LaboratoryNotFoundError: laboratory id did not resolve.
        """
        laboratory = self._authorized_laboratory(request.LaboratoryId, claims, "listing")

        bucket = request.S3Bucket or laboratory.S3Bucket or ""
        prefix = request.S3Prefix or laboratory.default_prefix

        return list_top_level_objects(
            self.s3_service,
            bucket=bucket,
            prefix=prefix,
            max_keys=min(request.MaxKeys or self.default_max_keys, MAX_KEYS_LIMIT),
            delimiter=self.delimiter,
        )

    def request_file_download_url(
        self,
        request: RequestFileDownloadUrl,
        claims: Optional[Mapping[str, Any]],
    ) -> FileDownloadResponse:
        """Presign a download of one object in laboratory storage.

        Raises:
            InvalidRequestError: S3Uri is not an object location.
            UnauthorizedAccessError: caller is neither org admin nor a lab member.
            LaboratoryNotFoundError: laboratory id did not resolve.
        """
        bucket, key = parse_s3_uri(request.S3Uri)
        self._authorized_laboratory(request.LaboratoryId, claims, "download")

        url = self.s3_service.generate_presigned_download_url(bucket, key, expires_in=self.download_expires_in)
        LOGGER.info("Presigned download of s3://%s/%s", bucket, sanitize_for_log(key))
        return FileDownloadResponse(DownloadUrl=url)


def build_listing_service(settings: Optional[Settings] = None) -> FileListingService:
    """Wire a FileListingService from settings."""
    settings = settings or get_settings()
    region = settings.aws_default_region
    return FileListingService(
        laboratory_service=LaboratoryService(
            table_name=settings.laboratory_table_name,
            region=region,
            profile=settings.aws_profile,
            laboratory_id_index=settings.laboratory_id_index,
        ),
        s3_service=S3Service(region=region, profile=settings.aws_profile),
        default_max_keys=settings.listing_max_keys,
        delimiter=settings.listing_delimiter,
        download_expires_in=settings.download_url_expires_in,
    )
