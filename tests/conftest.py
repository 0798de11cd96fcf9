"""Pytest configuration and shared fixtures."""

import json
import os
from unittest.mock import MagicMock

import pytest

# Keep boto3 away from real credentials and regions.
# This must be set before importing any eglib modules.
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

from eglib.laboratory import Laboratory, LaboratoryService  # noqa: E402
from eglib.s3_service import ObjectListingPage, S3Service  # noqa: E402
from eglib.schemas import ResponseMetadata, S3Object, S3Prefix  # noqa: E402

ORG_ID = "test-org-id"
LAB_ID = "test-lab-id"


def make_objects(start, count, prefix=f"{ORG_ID}/{LAB_ID}/"):
    """Build `count` S3Object entries named sample{n}_R1.fastq.gz."""
    return [
        S3Object(
            Key=f"{prefix}sample{start + i}_R1.fastq.gz",
            Size=1000,
            LastModified="2025-02-18T10:00:00Z",
            ETag=f'"etag{start + i}"',
            StorageClass="STANDARD",
        )
        for i in range(count)
    ]


def make_page(contents=None, prefixes=None, truncated=False, token=None, request_id="test-request-id"):
    return ObjectListingPage(
        contents=list(contents or []),
        common_prefixes=[S3Prefix(Prefix=p) for p in prefixes or []],
        is_truncated=truncated,
        next_continuation_token=token,
        metadata=ResponseMetadata(
            httpStatusCode=200,
            requestId=request_id,
            extendedRequestId=f"{request_id}-ext",
            attempts=1,
            totalRetryDelay=0,
        ),
    )


def organization_access(org_admin=False, lab_manager=False, lab_technician=False, status="Active"):
    """OrganizationAccess claim value for the test laboratory."""
    return json.dumps({
        ORG_ID: {
            "Status": status,
            "OrganizationAdmin": org_admin,
            "LaboratoryAccess": {
                LAB_ID: {
                    "Status": status,
                    "LabManager": lab_manager,
                    "LabTechnician": lab_technician,
                },
            },
        },
    })


@pytest.fixture
def laboratory():
    return Laboratory(
        OrganizationId=ORG_ID,
        LaboratoryId=LAB_ID,
        Name="Test Lab",
        S3Bucket="test-bucket",
    )


@pytest.fixture
def mock_laboratory_service(laboratory):
    service = MagicMock(spec=LaboratoryService)
    service.query_by_laboratory_id.return_value = laboratory
    return service


@pytest.fixture
def mock_s3_service():
    service = MagicMock(spec=S3Service)
    service.list_bucket_objects_v2.return_value = make_page(make_objects(0, 2))
    return service


@pytest.fixture
def admin_claims():
    return {"email": "test@example.com", "OrganizationAccess": organization_access(org_admin=True)}


@pytest.fixture
def no_access_claims():
    return {"email": "test@example.com", "OrganizationAccess": organization_access()}
