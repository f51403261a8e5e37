"""
Bounded-concurrency upload scheduler.

One UploadScheduler serves a whole pipeline run: every batch is dispatched
through the same thread pool, so at most ``max_concurrency`` uploads are in
flight at any moment. ``run_batch`` is a barrier; it returns only once every
job of the batch has finished.
"""

import contextvars
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from typing import Callable, List, Sequence, TypeVar

from folderpush.utils.config import DEFAULT_CONCURRENCY
from folderpush.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class UploadScheduler:
    """
    Thread pool wrapper that runs upload jobs batch by batch.

    Jobs run inside a copy of the submitting thread's context, so the run's
    correlation ID follows them into the workers.

    Example:
        >>> with UploadScheduler(max_concurrency=10) as scheduler:
        ...     scheduler.run_batch([lambda: upload("a.css"), lambda: upload("b.css")])
        ...     scheduler.run_batch([lambda: upload("page.html")])
    """

    def __init__(self, max_concurrency: int = DEFAULT_CONCURRENCY) -> None:
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1 (got: {max_concurrency})")

        self.max_concurrency = max_concurrency
        self._executor = ThreadPoolExecutor(
            max_workers=max_concurrency,
            thread_name_prefix="folderpush-upload",
        )

    def run_batch(self, jobs: Sequence[Callable[[], T]]) -> List[T]:
        """
        Run every job and wait for the whole batch to drain.

        Returns:
            Job results in submission order

        Raises:
            Exception: The first exception raised by a job. Jobs still queued
                at that point are cancelled; jobs already running are not
                interrupted, and the exception is raised once they have
                finished so no job outlives the batch.
        """
        if not jobs:
            return []

        logger.debug(f"Submitting batch of {len(jobs)} jobs (max {self.max_concurrency} in flight)")

        futures: List[Future] = [
            self._executor.submit(contextvars.copy_context().run, job) for job in jobs
        ]
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)

        failed = next(
            (future for future in futures if future in done and future.exception() is not None),
            None,
        )
        if failed is not None:
            cancelled = sum(1 for future in pending if future.cancel())
            if cancelled:
                logger.debug(f"Cancelled {cancelled} queued jobs after a job failed")
            wait(futures)
            raise failed.exception()

        return [future.result() for future in futures]

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=not wait)

    def __enter__(self) -> "UploadScheduler":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        # After a failure, queued work is dropped and running uploads are not waited on.
        self.shutdown(wait=exc_type is None)
