"""
Easy Genomics file services.

This package provides:
- Top-level (one directory level) S3 listings for laboratory storage,
  served as an AWS Lambda handler and as a FastAPI app
- Presigned single-file downloads
- Cognito claim based access checks for laboratory files
- A lazy-loading, pre-fetching file tree client for the File Manager
"""

__version__ = "1.0.0"

from eglib.file_download import download_file, is_supported_file_type
from eglib.file_listing import FileListingService, list_top_level_objects
from eglib.file_tree import DirectoryCache, FileTreeBrowser, FileTreeNode
from eglib.schemas import RequestTopLevelBucketObjects, S3TopLevelResponse

__all__ = [
    "__version__",
    "FileListingService",
    "list_top_level_objects",
    "download_file",
    "is_supported_file_type",
    "DirectoryCache",
    "FileTreeBrowser",
    "FileTreeNode",
    "RequestTopLevelBucketObjects",
    "S3TopLevelResponse",
]
