"""
Folder upload pipeline.

Pushes a local directory tree to the remote content store:

1. Walk the tree and keep files with an allowed extension that no ignore
   rule matches.
2. Classify them into phases (see classifier.FileCategory).
3. Upload phase by phase on one bounded worker pool; a phase starts only
   after the previous one has completely drained.
4. Retry, once, every file whose upload failed with a transient error.

Fatal errors (rejected credentials, permanent rejections, broken scripted
fields) abort the run by propagating out of upload_folder.

Example usage:
    >>> from folderpush.uploader import upload_folder, has_upload_errors, GCSUploadClient
    >>> client = GCSUploadClient(bucket_name="cms-content-store")
    >>> results = upload_folder("123456", "./theme", "my-theme", client=client)
    >>> if has_upload_errors(results):
    ...     print("Some files could not be uploaded")
"""

import os
import tempfile
import threading
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Union

from folderpush.uploader.classifier import FileCategory, FileClassifier, LocalFile
from folderpush.uploader.client import GCSUploadClient
from folderpush.uploader.errors import UploadError, UploadErrorContext, log_upload_error
from folderpush.uploader.ignore_rules import create_ignore_filter
from folderpush.uploader.paths import build_destination_path, is_allowed_extension
from folderpush.uploader.scheduler import UploadScheduler
from folderpush.uploader.walk import walk
from folderpush.utils.config import DEFAULT_CONCURRENCY, VALID_MODES, get_config
from folderpush.utils.logging import get_logger, log_function_call, set_correlation_id
from folderpush.utils.metrics import get_metrics

logger = get_logger(__name__)

metrics = get_metrics()


class UploadResultType(str, Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


@dataclass(frozen=True)
class UploadTask:
    """One file headed for one destination path."""

    source: LocalFile
    destination_path: str
    category: FileCategory


@dataclass(frozen=True)
class UploadOutcome:
    """
    Result of the retry attempt for a file whose first upload failed.

    Attributes:
        result_type: SUCCESS or FAILURE
        file: The source-tree file the upload stands for
        error: The retry's error (None on success)
    """

    result_type: UploadResultType
    file: str
    error: Optional[Exception] = None


@dataclass
class UploadFolderOptions:
    """
    Options for a folder upload.

    Attributes:
        mode: "publish" or "draft" build mode
        fields_options: Options list passed to scripted fields functions
        ignore_patterns: Ignore patterns on top of the built-in and file rules
        concurrency: Max uploads in flight when upload_folder builds its own scheduler
        node_binary: Node executable used to convert scripted fields
    """

    mode: str = "publish"
    fields_options: List[str] = field(default_factory=list)
    ignore_patterns: List[str] = field(default_factory=list)
    concurrency: int = DEFAULT_CONCURRENCY
    node_binary: str = "node"

    def __post_init__(self) -> None:
        if self.mode not in VALID_MODES:
            raise ValueError(f"mode must be one of {VALID_MODES} (got: {self.mode})")


def get_upload_query_values(mode: str = "publish") -> Dict[str, str]:
    """Query values sent with every upload of a run."""
    return {"buildMode": "DRAFT" if mode == "draft" else "PUBLISH"}


def select_eligible_files(
    files: Sequence[str], source_root: str, extra_ignore_patterns: Sequence[str] = ()
) -> List[str]:
    """Keep files with an allowed extension, then drop ignored ones."""
    allowed = [file_path for file_path in files if is_allowed_extension(file_path)]
    keep = create_ignore_filter(source_root, extra_ignore_patterns)
    return [file_path for file_path in allowed if keep(file_path)]


def build_upload_task(local_file: LocalFile, destination_root: str, category: FileCategory) -> UploadTask:
    return UploadTask(
        source=local_file,
        destination_path=build_destination_path(local_file.path, local_file.root, destination_root),
        category=category,
    )


class _FolderUpload:
    """State of one upload_folder run."""

    def __init__(self, account_id, client, query_values: Dict[str, str]) -> None:
        self.account_id = account_id
        self.client = client
        self.query_values = query_values
        self.failures: List[UploadTask] = []
        self._failures_lock = threading.Lock()

    def first_attempt(self, task: UploadTask) -> Callable[[], None]:
        def run() -> None:
            file_path = task.source.path
            logger.debug(f'Attempting to upload file "{file_path}" to "{task.destination_path}"')
            try:
                with metrics.track_upload():
                    self.client.upload(
                        self.account_id, file_path, task.destination_path, self.query_values
                    )
            except UploadError as error:
                metrics.record_upload_failure(task.category.value, error.kind.value)
                if error.is_fatal:
                    raise
                logger.debug(
                    f'Uploading file "{file_path}" to "{task.destination_path}" failed so scheduled retry'
                )
                logger.debug(error.detail or str(error))
                with self._failures_lock:
                    self.failures.append(task)
                metrics.record_retry_scheduled()
                return

            metrics.record_upload_success(task.category.value)
            logger.info(f'Uploaded file "{file_path}" to "{task.destination_path}"')

        return run

    def retry(self, task: UploadTask) -> Callable[[], UploadOutcome]:
        def run() -> UploadOutcome:
            file_path = task.source.path
            logger.debug(f'Retrying to upload file "{file_path}" to "{task.destination_path}"')
            try:
                with metrics.track_upload():
                    self.client.upload(
                        self.account_id, file_path, task.destination_path, self.query_values
                    )
            except UploadError as error:
                metrics.record_upload_failure(task.category.value, error.kind.value, attempt="retry")
                logger.error(f'Uploading file "{file_path}" to "{task.destination_path}" failed')
                if error.is_fatal:
                    raise
                log_upload_error(
                    error,
                    UploadErrorContext(
                        account_id=self.account_id,
                        request=task.destination_path,
                        payload=file_path,
                    ),
                )
                return UploadOutcome(UploadResultType.FAILURE, task.source.origin, error)

            metrics.record_upload_success(task.category.value, attempt="retry")
            logger.info(f'Uploaded file "{file_path}" to "{task.destination_path}"')
            return UploadOutcome(UploadResultType.SUCCESS, task.source.origin)

        return run


@log_function_call
def upload_folder(
    account_id: Union[str, int],
    src: str,
    dest: str,
    options: Optional[UploadFolderOptions] = None,
    *,
    client=None,
    scheduler: Optional[UploadScheduler] = None,
) -> List[UploadOutcome]:
    """
    Upload every eligible file under src to dest in the account's store.

    Args:
        account_id: Account receiving the files
        src: Local directory to upload
        dest: Remote folder to upload into
        options: Build mode, fields options, extra ignore patterns, concurrency
        client: Upload client (a GCSUploadClient from the environment
            configuration if None)
        scheduler: Worker pool to run on; one sized by options.concurrency is
            created and shut down for this run if None

    Returns:
        One UploadOutcome per file whose first upload attempt failed
        transiently, describing how its single retry went. Files uploaded on
        the first attempt are NOT listed: an empty list means every file was
        uploaded. This is the contract callers depend on; check the list with
        has_upload_errors.

        On a fatal error, uploads already running are allowed to finish before
        the error propagates, so converted descriptors in the staging
        directory stay readable until the last upload has read them.

    Raises:
        UploadError: A fatal upload error, during either pass
        FieldsConversionError: A scripted fields file could not be converted
        NotADirectoryError: If src is not a directory
    """
    options = options or UploadFolderOptions()
    if client is None:
        client = GCSUploadClient.from_config(get_config())

    set_correlation_id(str(uuid.uuid4()))
    source_root = os.path.abspath(src)

    files = walk(source_root)
    eligible = select_eligible_files(files, source_root, options.ignore_patterns)
    logger.info(f"Uploading {len(eligible)} of {len(files)} files from {source_root} to {dest}")

    own_scheduler = scheduler is None
    if own_scheduler:
        scheduler = UploadScheduler(max_concurrency=options.concurrency)

    run = _FolderUpload(account_id, client, get_upload_query_values(options.mode))

    # Converted fields descriptors must outlive the retry pass.
    with tempfile.TemporaryDirectory(prefix="folderpush-") as staging_root:
        try:
            classifier = FileClassifier(
                source_root,
                staging_root,
                known_files=files,
                fields_options=options.fields_options,
                node_binary=options.node_binary,
            )
            files_by_category = classifier.classify(eligible)

            for category, local_files in files_by_category.items():
                if not local_files:
                    continue
                logger.debug(f"Uploading {len(local_files)} {category.value} files")
                tasks = [build_upload_task(f, dest, category) for f in local_files]
                scheduler.run_batch([run.first_attempt(task) for task in tasks])

            if run.failures:
                logger.info(f"Retrying {len(run.failures)} failed uploads")
            results = scheduler.run_batch([run.retry(task) for task in run.failures])
        except BaseException:
            if own_scheduler:
                scheduler.shutdown(wait=False)
            raise

    if own_scheduler:
        scheduler.shutdown()

    return results


def has_upload_errors(results: Sequence[UploadOutcome]) -> bool:
    return any(result.result_type is UploadResultType.FAILURE for result in results)
