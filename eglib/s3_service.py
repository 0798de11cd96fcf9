"""S3 access for laboratory file listings and downloads.

Wraps a single delimiter-scoped ``list_objects_v2`` call and normalizes the
boto3 response into wire models. Looping over continuation tokens is left to
the caller (see :mod:`eglib.file_listing`).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import boto3

from eglib.schemas import ResponseMetadata, S3Object, S3Prefix

LOGGER = logging.getLogger("easygenomics.s3_service")


@dataclass
class ObjectListingPage:
    """Result of one list call."""

    contents: List[S3Object] = field(default_factory=list)
    common_prefixes: List[S3Prefix] = field(default_factory=list)
    is_truncated: bool = False
    next_continuation_token: Optional[str] = None
    metadata: ResponseMetadata = field(default_factory=ResponseMetadata)


def _format_last_modified(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat().replace("+00:00", "Z")
    return str(value)


def _to_s3_object(obj: Dict[str, Any]) -> S3Object:
    return S3Object(
        Key=obj["Key"],
        LastModified=_format_last_modified(obj.get("LastModified")),
        ETag=obj.get("ETag"),
        Size=obj.get("Size", 0),
        StorageClass=obj.get("StorageClass"),
    )


def _to_response_metadata(response: Dict[str, Any]) -> ResponseMetadata:
    meta = response.get("ResponseMetadata") or {}
    return ResponseMetadata(
        httpStatusCode=meta.get("HTTPStatusCode", 200),
        requestId=meta.get("RequestId") or "unknown",
        extendedRequestId=meta.get("HostId") or "unknown",
        attempts=meta.get("RetryAttempts", 0) + 1,
        totalRetryDelay=0,
    )


class S3Service:
    """Thin S3 client wrapper used by the file listing handlers."""

    def __init__(
        self,
        region: str = "us-east-1",
        profile: Optional[str] = None,
        client: Any = None,
    ):
        """Initialize the S3 service.

        Args:
            region: AWS region
            profile: AWS profile name
            client: Pre-built boto3 S3 client (skips session creation)
        """
        if client is None:
            session_kwargs = {"region_name": region}
            if profile:
                session_kwargs["profile_name"] = profile
            client = boto3.Session(**session_kwargs).client("s3")
        self.s3 = client
        self.region = region

    def list_bucket_objects_v2(
        self,
        bucket: str,
        prefix: str = "",
        delimiter: Optional[str] = "/",
        max_keys: int = 1000,
        continuation_token: Optional[str] = None,
    ) -> ObjectListingPage:
        """List one page of objects and common prefixes.

        Raises:
            ClientError | BotoCoreError: propagated unmodified, no retry here.
        """
        params: Dict[str, Any] = {"Bucket": bucket, "MaxKeys": max_keys}
        if prefix:
            params["Prefix"] = prefix
        if delimiter:
            params["Delimiter"] = delimiter
        if continuation_token:
            params["ContinuationToken"] = continuation_token

        LOGGER.debug(
            "list_objects_v2 bucket=%s prefix=%s max_keys=%d continued=%s",
            bucket, prefix, max_keys, continuation_token is not None,
        )
        response = self.s3.list_objects_v2(**params)

        return ObjectListingPage(
            contents=[_to_s3_object(obj) for obj in response.get("Contents") or []],
            common_prefixes=[S3Prefix(Prefix=cp["Prefix"]) for cp in response.get("CommonPrefixes") or []],
            is_truncated=bool(response.get("IsTruncated", False)),
            next_continuation_token=response.get("NextContinuationToken"),
            metadata=_to_response_metadata(response),
        )

    def generate_presigned_download_url(self, bucket: str, key: str, expires_in: int = 3600) -> str:
        """Presign a GET for one object.

        Raises:
            ClientError | BotoCoreError: propagated unmodified.
        """
        LOGGER.debug("Presigning s3://%s/%s for %ds", bucket, key, expires_in)
        return self.s3.generate_presigned_url(
            "get_object",
            Params={"Bucket": bucket, "Key": key},
            ExpiresIn=expires_in,
        )
