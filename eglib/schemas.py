"""Pydantic request/response models for the file listing API.

Field names follow the wire format (S3-style PascalCase) so that models can be
dumped straight into response bodies.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ========== Request Models ==========


class RequestTopLevelBucketObjects(BaseModel):
    """Request for the direct children of one prefix in a laboratory bucket.

    The schema is closed: any field outside this set is a validation failure.
    Bucket and prefix default from the laboratory record when absent.
    """

    model_config = ConfigDict(extra="forbid", strict=True)

    LaboratoryId: str = Field(..., description="Laboratory whose storage is listed")
    S3Bucket: Optional[str] = Field(None, description="Bucket override (defaults to the laboratory bucket)")
    S3Prefix: Optional[str] = Field(None, description="Prefix override (defaults to {OrganizationId}/{LaboratoryId}/)")
    MaxKeys: Optional[Union[int, float]] = Field(
        None, description="Page size per list call (0 = default, capped at 1000)"
    )

    @field_validator("MaxKeys")
    @classmethod
    def validate_max_keys(cls, v: Optional[Union[int, float]]) -> Optional[int]:
        """Whole-number floats such as 100.0 are accepted as integers."""
        if v is None:
            return v
        if isinstance(v, float):
            if not v.is_integer():
                raise ValueError("MaxKeys must be a whole number")
            v = int(v)
        if v < 0:
            raise ValueError("MaxKeys must be non-negative")
        return v

    def to_request_body(self) -> Dict[str, Any]:
        """Serialize for the wire, omitting fields that were never set."""
        return self.model_dump(exclude_none=True)


class RequestFileDownloadUrl(BaseModel):
    """Request for a time-limited download link to one stored file."""

    model_config = ConfigDict(extra="forbid", strict=True)

    LaboratoryId: str = Field(..., description="Laboratory that owns the file")
    S3Uri: str = Field(..., description="Full object location, e.g. s3://bucket/org/lab/results.csv")

    def to_request_body(self) -> Dict[str, Any]:
        return self.model_dump()


# ========== Response Models ==========


class S3Object(BaseModel):
    """One stored file at the listed level."""

    Key: str
    LastModified: Optional[str] = None
    ETag: Optional[str] = None
    Size: int = 0
    StorageClass: Optional[str] = None


class S3Prefix(BaseModel):
    """One folder marker at the listed level."""

    Prefix: str


class ResponseMetadata(BaseModel):
    """Request metadata carried from the first list call."""

    httpStatusCode: int = 200
    requestId: str = "unknown"
    extendedRequestId: str = "unknown"
    attempts: int = 1
    totalRetryDelay: int = 0


class S3TopLevelResponse(BaseModel):
    """Aggregated, never-truncated listing of one directory level."""

    model_config = ConfigDict(populate_by_name=True)

    metadata: ResponseMetadata = Field(default_factory=ResponseMetadata, alias="$metadata")
    Contents: List[S3Object] = Field(default_factory=list)
    CommonPrefixes: List[S3Prefix] = Field(default_factory=list)
    IsTruncated: bool = False

    def to_response_body(self) -> Dict[str, Any]:
        """JSON-ready dict using the `$metadata` wire key."""
        return self.model_dump(by_alias=True, mode="json")


class FileDownloadResponse(BaseModel):
    """Presigned GET URL for a single object."""

    DownloadUrl: str

    def to_response_body(self) -> Dict[str, Any]:
        return self.model_dump()


class ErrorResponse(BaseModel):
    """Error body shared by every failing response."""

    error: str
    code: str
    request_id: Optional[str] = None
