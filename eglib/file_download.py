"""Single-file downloads from laboratory storage.

The file API presigns a GET for the object; the bytes are then streamed
straight from S3 to a local file.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional, Union

import httpx

from eglib.api_client import FileApiClient
from eglib.exceptions import ApiClientError
from eglib.schemas import RequestFileDownloadUrl
from eglib.toast import ToastStore

LOGGER = logging.getLogger("easygenomics.file_download")

# File types that can be opened in the browser preview.
SUPPORTED_EXTENSIONS = (".csv", ".txt")

ProgressCallback = Callable[[int], None]


def is_supported_file_type(file_name: str) -> bool:
    """True when the extension (case-insensitive) is previewable."""
    dot = file_name.rfind(".")
    if dot == -1:
        return False
    return file_name[dot:].lower() in SUPPORTED_EXTENSIONS


async def download_file(
    api_client: FileApiClient,
    laboratory_id: str,
    file_name: str,
    path: str,
    destination: Union[str, Path] = ".",
    progress: Optional[ProgressCallback] = None,
    toast_store: Optional[ToastStore] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> Optional[Path]:
    """Download ``{path}/{file_name}`` into the ``destination`` directory.

    ``path`` is the folder's S3 URI, e.g. ``s3://bucket/org/lab/results``.
    ``progress`` receives whole percentages while the body streams, when the
    response carries a Content-Length.

    Failures are logged and reported to ``toast_store``; the return value is
    None in that case and the written file path otherwise.
    """
    s3_uri = f"{path.rstrip('/')}/{file_name}"
    target = Path(destination) / file_name

    try:
        response = await api_client.request_file_download_url(
            RequestFileDownloadUrl(LaboratoryId=laboratory_id, S3Uri=s3_uri)
        )
        if not response.DownloadUrl:
            LOGGER.error("Download URL for %s is empty", s3_uri)
            _report(toast_store, file_name)
            return None

        client = http_client or httpx.AsyncClient(timeout=None)
        try:
            await _stream_to_file(client, response.DownloadUrl, target, progress)
        finally:
            if http_client is None:
                await client.aclose()
    except (ApiClientError, httpx.HTTPError, OSError) as e:
        LOGGER.error("Error downloading %s: %s", s3_uri, e)
        _report(toast_store, file_name)
        return None

    LOGGER.info("Downloaded %s to %s", s3_uri, target)
    return target


async def _stream_to_file(
    client: httpx.AsyncClient,
    url: str,
    target: Path,
    progress: Optional[ProgressCallback],
) -> None:
    async with client.stream("GET", url) as response:
        response.raise_for_status()
        total = int(response.headers.get("Content-Length") or 0)
        loaded = 0
        try:
            with open(target, "wb") as f:
                async for chunk in response.aiter_bytes():
                    f.write(chunk)
                    loaded += len(chunk)
                    if progress is not None and total:
                        progress(round(loaded / total * 100))
        except (httpx.HTTPError, OSError):
            target.unlink(missing_ok=True)
            raise


def _report(toast_store: Optional[ToastStore], file_name: str) -> None:
    if toast_store is not None:
        toast_store.error(f"Failed to download '{file_name}'")
