"""Tests for the Lambda file API handlers."""

import base64
import json
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from conftest import LAB_ID, ORG_ID, make_objects, make_page, organization_access
from eglib.exceptions import LaboratoryNotFoundError
from eglib.file_listing import FileListingService
from eglib.handlers import DEFAULT_HEADERS, build_error_response, build_response, create_handler
from eglib.schemas import RequestFileDownloadUrl


def make_event(body, claims=None, is_base64_encoded=False):
    event = {
        "body": body if body is None or isinstance(body, str) else json.dumps(body),
        "isBase64Encoded": is_base64_encoded,
        "headers": {"Authorization": "Bearer secret-token"},
        "requestContext": {},
    }
    if claims is not None:
        event["requestContext"]["authorizer"] = {"claims": claims}
    return event


@pytest.fixture
def service(mock_laboratory_service, mock_s3_service):
    return FileListingService(mock_laboratory_service, mock_s3_service)


@pytest.fixture
def handler(service):
    return create_handler(lambda: service)


class TestHandlerSuccess:
    """Successful listings."""

    def test_lists_with_laboratory_defaults(self, handler, mock_s3_service, admin_claims):
        response = handler(make_event({"LaboratoryId": LAB_ID}, admin_claims))

        assert response["statusCode"] == 200
        assert response["headers"]["Content-Type"] == "application/json"
        body = json.loads(response["body"])
        assert len(body["Contents"]) == 2
        assert body["IsTruncated"] is False
        assert body["$metadata"]["requestId"] == "test-request-id"
        kwargs = mock_s3_service.list_bucket_objects_v2.call_args.kwargs
        assert kwargs["bucket"] == "test-bucket"
        assert kwargs["prefix"] == f"{ORG_ID}/{LAB_ID}/"

    def test_paginates_until_complete(self, handler, mock_s3_service, admin_claims):
        mock_s3_service.list_bucket_objects_v2.side_effect = [
            make_page(make_objects(0, 1000), truncated=True, token="continuation-token-123", request_id="first"),
            make_page(make_objects(1000, 500), request_id="second"),
        ]

        response = handler(make_event({"LaboratoryId": LAB_ID}, admin_claims))

        body = json.loads(response["body"])
        assert response["statusCode"] == 200
        assert len(body["Contents"]) == 1500
        assert body["Contents"][0]["Key"].endswith("sample0_R1.fastq.gz")
        assert body["Contents"][-1]["Key"].endswith("sample1499_R1.fastq.gz")
        assert body["IsTruncated"] is False
        assert body["$metadata"]["requestId"] == "first"
        assert mock_s3_service.list_bucket_objects_v2.call_count == 2

    def test_custom_bucket_and_prefix(self, handler, mock_s3_service, admin_claims):
        body = {"LaboratoryId": LAB_ID, "S3Bucket": "custom-bucket", "S3Prefix": "custom/prefix/", "MaxKeys": 100}

        response = handler(make_event(body, admin_claims))

        assert response["statusCode"] == 200
        kwargs = mock_s3_service.list_bucket_objects_v2.call_args.kwargs
        assert kwargs["bucket"] == "custom-bucket"
        assert kwargs["prefix"] == "custom/prefix/"
        assert kwargs["max_keys"] == 100

    def test_base64_encoded_body(self, handler, admin_claims):
        encoded = base64.b64encode(json.dumps({"LaboratoryId": LAB_ID}).encode()).decode()

        response = handler(make_event(encoded, admin_claims, is_base64_encoded=True))

        assert response["statusCode"] == 200

    @pytest.mark.parametrize(
        "access",
        [
            organization_access(lab_manager=True),
            organization_access(lab_technician=True),
        ],
    )
    def test_laboratory_members_allowed(self, handler, access):
        response = handler(make_event({"LaboratoryId": LAB_ID}, {"OrganizationAccess": access}))
        assert response["statusCode"] == 200


class TestHandlerRejections:
    """Client errors never reach the laboratory table or the bucket."""

    @pytest.mark.parametrize(
        "body",
        [
            None,
            "not json",
            {"S3Bucket": "b"},
            {"LaboratoryId": LAB_ID, "ExtraField": "x"},
            {"LaboratoryId": LAB_ID, "MaxKeys": -1},
        ],
    )
    def test_invalid_request(self, handler, mock_laboratory_service, mock_s3_service, admin_claims, body):
        response = handler(make_event(body, admin_claims))

        assert response["statusCode"] == 400
        assert json.loads(response["body"])["code"] == "INVALID_REQUEST"
        mock_laboratory_service.query_by_laboratory_id.assert_not_called()
        mock_s3_service.list_bucket_objects_v2.assert_not_called()

    def test_invalid_request_does_not_build_service(self, admin_claims):
        factory = MagicMock()
        handler = create_handler(factory)

        response = handler(make_event(None, admin_claims))

        assert response["statusCode"] == 400
        factory.assert_not_called()

    def test_unauthorized(self, handler, mock_s3_service, no_access_claims):
        response = handler(make_event({"LaboratoryId": LAB_ID}, no_access_claims))

        assert response["statusCode"] == 403
        assert json.loads(response["body"]) == {"error": "Unauthorized access", "code": "UNAUTHORIZED_ACCESS"}
        mock_s3_service.list_bucket_objects_v2.assert_not_called()

    def test_inactive_membership_unauthorized(self, handler):
        access = organization_access(org_admin=True, status="Inactive")
        response = handler(make_event({"LaboratoryId": LAB_ID}, {"OrganizationAccess": access}))
        assert response["statusCode"] == 403

    def test_missing_claims_unauthorized(self, handler):
        response = handler(make_event({"LaboratoryId": LAB_ID}))
        assert response["statusCode"] == 403


class TestHandlerFailures:
    """Unexpected failures are opaque 500s."""

    def test_s3_error(self, handler, mock_s3_service, admin_claims):
        mock_s3_service.list_bucket_objects_v2.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "secret detail"}}, "ListObjectsV2"
        )

        response = handler(make_event({"LaboratoryId": LAB_ID}, admin_claims))

        assert response["statusCode"] == 500
        assert "secret detail" not in response["body"]
        assert json.loads(response["body"])["code"] == "INTERNAL_ERROR"

    def test_laboratory_not_found_is_500(self, handler, mock_laboratory_service, admin_claims):
        mock_laboratory_service.query_by_laboratory_id.side_effect = LaboratoryNotFoundError()

        response = handler(make_event({"LaboratoryId": "missing"}, admin_claims))

        assert response["statusCode"] == 500


class TestResponseBuilders:
    def test_build_response_merges_headers(self):
        response = build_response(201, {"ok": True}, {"X-Extra": "1"})
        assert response["statusCode"] == 201
        assert response["headers"]["X-Extra"] == "1"
        assert response["headers"]["Access-Control-Allow-Origin"] == DEFAULT_HEADERS["Access-Control-Allow-Origin"]
        assert json.loads(response["body"]) == {"ok": True}

    def test_generic_error_hides_message(self):
        response = build_error_response(ValueError("internal detail"))
        assert response["statusCode"] == 500
        assert json.loads(response["body"]) == {"error": "Internal server error", "code": "INTERNAL_ERROR"}


class TestDownloadHandler:
    """Presigned download URLs through the Lambda entry point."""

    @pytest.fixture
    def download_handler(self, service, mock_s3_service):
        mock_s3_service.generate_presigned_download_url.return_value = "https://signed.example/a.csv"
        return create_handler(lambda: service, RequestFileDownloadUrl, "request_file_download_url")

    def test_returns_download_url(self, download_handler, mock_s3_service, admin_claims):
        body = {"LaboratoryId": LAB_ID, "S3Uri": f"s3://test-bucket/{ORG_ID}/{LAB_ID}/a.csv"}

        response = download_handler(make_event(body, admin_claims))

        assert response["statusCode"] == 200
        assert json.loads(response["body"]) == {"DownloadUrl": "https://signed.example/a.csv"}
        mock_s3_service.generate_presigned_download_url.assert_called_once_with(
            "test-bucket", f"{ORG_ID}/{LAB_ID}/a.csv", expires_in=3600
        )

    @pytest.mark.parametrize(
        "body",
        [
            {"LaboratoryId": LAB_ID},
            {"LaboratoryId": LAB_ID, "S3Uri": "s3://test-bucket/"},
            {"LaboratoryId": LAB_ID, "S3Prefix": "a/"},
        ],
    )
    def test_invalid_request(self, download_handler, mock_s3_service, admin_claims, body):
        response = download_handler(make_event(body, admin_claims))

        assert response["statusCode"] == 400
        mock_s3_service.generate_presigned_download_url.assert_not_called()

    def test_unauthorized(self, download_handler, no_access_claims):
        body = {"LaboratoryId": LAB_ID, "S3Uri": "s3://test-bucket/a.csv"}

        response = download_handler(make_event(body, no_access_claims))

        assert response["statusCode"] == 403

    def test_presign_failure_is_opaque(self, download_handler, mock_s3_service, admin_claims):
        mock_s3_service.generate_presigned_download_url.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "secret detail"}}, "GetObject"
        )
        body = {"LaboratoryId": LAB_ID, "S3Uri": "s3://test-bucket/a.csv"}

        response = download_handler(make_event(body, admin_claims))

        assert response["statusCode"] == 500
        assert "secret detail" not in response["body"]


def test_module_handlers_are_wired():
    from eglib import handlers

    assert callable(handlers.handler)
    assert callable(handlers.download_handler)
