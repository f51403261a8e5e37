"""
Folder upload pipeline.

Walks a local tree, filters and classifies its files into ordered phases,
uploads them through a bounded worker pool and retries transient failures
once.
"""

from .classifier import FileCategory, LocalFile, classify_files
from .client import GCSUploadClient
from .errors import ErrorKind, FieldsConversionError, UploadError, is_fatal_error
from .scheduler import UploadScheduler
from .upload_folder import (
    UploadFolderOptions,
    UploadOutcome,
    UploadResultType,
    UploadTask,
    has_upload_errors,
    upload_folder,
)

__all__ = [
    "ErrorKind",
    "FieldsConversionError",
    "FileCategory",
    "GCSUploadClient",
    "LocalFile",
    "UploadError",
    "UploadFolderOptions",
    "UploadOutcome",
    "UploadResultType",
    "UploadScheduler",
    "UploadTask",
    "classify_files",
    "has_upload_errors",
    "is_fatal_error",
    "upload_folder",
]
