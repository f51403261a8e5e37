"""
Upload error taxonomy.

The upload client tags every failure it raises with an ErrorKind at the
point where the storage SDK exception is caught, so the pipeline only ever
matches on the tag.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from folderpush.utils.logging import get_logger

logger = get_logger(__name__)


class ErrorKind(str, Enum):
    """
    Failure classes for a single-file upload.

    FATAL: not recoverable within this run (auth, quota, rejected request)
    TRANSIENT: presumed recoverable by one retry (network, server side)
    """

    FATAL = "fatal"
    TRANSIENT = "transient"


class UploadError(Exception):
    """
    A classified single-file upload failure.

    Attributes:
        kind: FATAL or TRANSIENT
        status_code: HTTP status of the failed request, if there was one
        detail: Response body or underlying error message
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code
        self.detail = detail

    @property
    def is_fatal(self) -> bool:
        return self.kind is ErrorKind.FATAL

    def __repr__(self) -> str:
        return (
            f"UploadError({str(self)!r}, kind={self.kind.value}, "
            f"status_code={self.status_code})"
        )


class FieldsConversionError(Exception):
    """A scripted fields file could not be turned into a static descriptor."""

    def __init__(self, message: str, source_path: str) -> None:
        super().__init__(message)
        self.source_path = source_path


def is_fatal_error(error: BaseException) -> bool:
    """
    Whether an error must abort the whole pipeline.

    Only a TRANSIENT UploadError is recoverable; anything else is fatal.
    """
    if isinstance(error, UploadError):
        return error.is_fatal
    return True


@dataclass
class UploadErrorContext:
    """Where a failed upload was headed, for error reports."""

    account_id: Union[str, int, None]
    request: str
    payload: str


def log_upload_error(error: UploadError, context: UploadErrorContext) -> None:
    """Report a final upload failure with its request context."""
    status = f" ({error.status_code})" if error.status_code is not None else ""
    logger.error(
        f'Upload of "{context.payload}" to "{context.request}" in account '
        f"{context.account_id} failed{status}: {error}",
        extra={"error_kind": error.kind.value},
    )
    if error.detail:
        logger.error(error.detail)


def handle_fields_error(error: FieldsConversionError) -> None:
    """Report a scripted fields conversion failure."""
    logger.error(f'Failed to convert "{error.source_path}": {error}')
