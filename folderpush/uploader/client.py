"""
Remote upload client backed by Google Cloud Storage.

Each account's content lives under its own prefix in a shared bucket:
``gs://<bucket>/<account_id>/<destination_path>``. The build mode query
values travel with the object as custom metadata.

Any upload client used by the pipeline exposes the same single method:

    upload(account_id, source_path, destination_path, query_options) -> str

and raises UploadError (tagged FATAL or TRANSIENT) on failure.

Example usage:
    >>> from folderpush.uploader import GCSUploadClient
    >>> client = GCSUploadClient(bucket_name="cms-content-store")
    >>> client.upload("123456", "./theme/css/main.css", "my-theme/css/main.css")
    'gs://cms-content-store/123456/my-theme/css/main.css'
"""

import mimetypes
import threading
from typing import Any, Dict, Optional, Union

import requests
from google.api_core import exceptions as api_exceptions
from google.auth import exceptions as auth_exceptions

from folderpush.uploader.errors import ErrorKind, UploadError
from folderpush.utils.config import FolderPushConfig
from folderpush.utils.logging import get_logger

logger = get_logger(__name__)

# Client errors that a second attempt can still get past
TRANSIENT_STATUS_CODES = frozenset([408, 429])


def classify_exception(error: Exception) -> UploadError:
    """
    Translate a storage SDK or transport exception into a tagged UploadError.

    TRANSIENT: connection failures, timeouts, 408, 429 and 5xx responses,
    exhausted SDK retry deadlines.
    FATAL: credential problems, every other 4xx response (401, 403, 404, ...),
    local file read errors.
    """
    if isinstance(error, api_exceptions.GoogleAPICallError):
        status_code = error.code if isinstance(error.code, int) else None
        detail = error.message
        if isinstance(error, api_exceptions.ServerError) or status_code in TRANSIENT_STATUS_CODES:
            kind = ErrorKind.TRANSIENT
        else:
            kind = ErrorKind.FATAL
        return UploadError(str(error), kind, status_code=status_code, detail=detail)

    if isinstance(error, api_exceptions.RetryError):
        return UploadError(str(error), ErrorKind.TRANSIENT, detail=str(error.cause))

    if isinstance(error, (auth_exceptions.RefreshError, auth_exceptions.DefaultCredentialsError)):
        return UploadError(f"Authentication failed: {error}", ErrorKind.FATAL)

    if isinstance(
        error,
        (
            auth_exceptions.TransportError,
            requests.exceptions.RequestException,
            ConnectionError,
            TimeoutError,
        ),
    ):
        return UploadError(str(error), ErrorKind.TRANSIENT)

    if isinstance(error, OSError):
        return UploadError(f"Could not read local file: {error}", ErrorKind.FATAL)

    return UploadError(str(error), ErrorKind.FATAL)


class GCSUploadClient:
    """
    Uploads single files into a Google Cloud Storage bucket.

    A storage client is created lazily per worker thread.

    Attributes:
        bucket_name: Bucket holding every account's content
        timeout_seconds: Per-request upload timeout
    """

    def __init__(
        self,
        bucket_name: str,
        timeout_seconds: int = 300,
        storage_client: Optional[Any] = None,
    ) -> None:
        self.bucket_name = bucket_name
        self.timeout_seconds = timeout_seconds
        self._shared_client = storage_client
        self._local = threading.local()

    @classmethod
    def from_config(cls, config: FolderPushConfig) -> "GCSUploadClient":
        return cls(bucket_name=config.gcs_bucket, timeout_seconds=config.upload_timeout_seconds)

    def _get_bucket(self):
        bucket = getattr(self._local, "bucket", None)
        if bucket is None:
            client = self._shared_client
            if client is None:
                from google.cloud import storage

                client = storage.Client()
            bucket = client.bucket(self.bucket_name)
            self._local.bucket = bucket
        return bucket

    def upload(
        self,
        account_id: Union[str, int],
        source_path: str,
        destination_path: str,
        query_options: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Upload one file.

        Args:
            account_id: Account whose content store receives the file
            source_path: Local file to read
            destination_path: Forward-slash path inside the account's store
            query_options: Build mode values stored as object metadata

        Returns:
            gs:// URI of the uploaded object

        Raises:
            UploadError: Tagged FATAL or TRANSIENT
        """
        blob_name = f"{account_id}/{destination_path.lstrip('/')}"
        gcs_uri = f"gs://{self.bucket_name}/{blob_name}"
        content_type, _ = mimetypes.guess_type(source_path)

        logger.debug(f"Executing GCS upload: {source_path} -> {gcs_uri}")

        try:
            blob = self._get_bucket().blob(blob_name)
            if query_options:
                blob.metadata = {key: str(value) for key, value in query_options.items()}
            blob.upload_from_filename(
                source_path,
                content_type=content_type,
                timeout=self.timeout_seconds,
            )
        except Exception as error:
            upload_error = classify_exception(error)
            logger.debug(
                f"GCS upload of {source_path} failed ({upload_error.kind.value}): {error}"
            )
            raise upload_error from error

        return gcs_uri
