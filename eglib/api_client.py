"""Async client for the file API."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from eglib.exceptions import ApiClientError
from eglib.schemas import (
    FileDownloadResponse,
    RequestFileDownloadUrl,
    RequestTopLevelBucketObjects,
    S3TopLevelResponse,
)

LOGGER = logging.getLogger("easygenomics.api_client")

LISTING_PATH = "/easy-genomics/file/request-top-level-bucket-objects"
DOWNLOAD_URL_PATH = "/easy-genomics/file/request-file-download-url"


class FileApiClient:
    """Call the file endpoints with a Cognito ID token."""

    def __init__(
        self,
        base_url: str,
        id_token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.id_token = id_token
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.id_token:
            headers["Authorization"] = f"Bearer {self.id_token}"
        return headers

    async def request_top_level_bucket_objects(
        self, request: RequestTopLevelBucketObjects
    ) -> S3TopLevelResponse:
        """Fetch the complete direct-children listing for one prefix.

        Raises:
            ApiClientError: the API answered with a non-2xx status.
            httpx.HTTPError: transport failure.
        """
        body = await self._post(LISTING_PATH, request.to_request_body())
        return S3TopLevelResponse.model_validate(body)

    async def request_file_download_url(self, request: RequestFileDownloadUrl) -> FileDownloadResponse:
        """Fetch a presigned download URL for one object.

        Raises:
            ApiClientError: the API answered with a non-2xx status.
            httpx.HTTPError: transport failure.
        """
        body = await self._post(DOWNLOAD_URL_PATH, request.to_request_body())
        return FileDownloadResponse.model_validate(body)

    async def _post(self, path: str, payload: Dict[str, Any]) -> Any:
        response = await self._client.post(
            f"{self.base_url}{path}",
            json=payload,
            headers=self._headers(),
        )
        if response.is_error:
            raise ApiClientError(
                message=_error_message(response),
                http_status=response.status_code,
            )
        return response.json()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "FileApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"File API request failed with HTTP {response.status_code}"
