import logging
import threading
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum
from functools import wraps
from typing import Any

import requests

from .exceptions import (
    BulkOperationFailed,
    BulkOperationSubmitError,
    BulkOperationTimeout,
    EmptyResultLocationError,
    OperationCancelled,
    ShopifyClientError,
    TransportError,
)
from .query_loader import QueryLoader
from .reconstruct import Shape, reconstruct
from .retry import with_retry
from .transport import Operation

Executor = Callable[[Operation], dict[str, Any]]


class BulkOperationStatus(str, Enum):
    CREATED = "CREATED"
    RUNNING = "RUNNING"
    CANCELING = "CANCELING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELED = "CANCELED"
    EXPIRED = "EXPIRED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {
        BulkOperationStatus.COMPLETED,
        BulkOperationStatus.FAILED,
        BulkOperationStatus.CANCELED,
        BulkOperationStatus.EXPIRED,
    }
)


@dataclass
class BulkJob:
    """State of one bulk operation as last reported by Shopify"""

    id: str
    query: str
    status: BulkOperationStatus = BulkOperationStatus.CREATED
    url: str | None = None
    partial_data_url: str | None = None
    error_code: str | None = None
    object_count: int = 0
    submitted_at: float = 0.0

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def update(self, payload: dict[str, Any]) -> None:
        """Apply a poll response; a job that reached a terminal status never changes again"""
        if self.is_terminal:
            return
        self.status = BulkOperationStatus(str(payload.get("status", self.status.value)).upper())
        self.object_count = int(payload.get("objectCount") or 0)
        if self.status == BulkOperationStatus.COMPLETED:
            self.url = payload.get("url")
        if self.status in (BulkOperationStatus.FAILED, BulkOperationStatus.CANCELED, BulkOperationStatus.EXPIRED):
            self.error_code = payload.get("errorCode")
            self.partial_data_url = payload.get("partialDataUrl")


@dataclass
class BulkOperationResult:
    """Result from a bulk operation"""

    file_path: str
    item_count: int
    api_wait_time: float  # Time spent waiting for Shopify to process
    download_time: float  # Time spent downloading the JSONL file


def log_bulk_performance(entity_name: str):
    """Decorator to log performance metrics for bulk operations"""

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            logger = logging.getLogger(__name__)

            result = func(*args, **kwargs)

            if result:
                total_time = result.api_wait_time + result.download_time
                items_per_second = result.item_count / total_time if total_time > 0 else 0
                logger.info(
                    f"{entity_name.capitalize()} bulk operation: "
                    f"API wait {result.api_wait_time:.2f}s, "
                    f"download {result.download_time:.2f}s, "
                    f"total {total_time:.2f}s "
                    f"({result.item_count} items, {items_per_second:.2f} items/s)"
                )

            return result

        return wrapper

    return decorator


class BulkOperationRunner:
    """
    Runs queries as Shopify bulk operations: submit, poll until done, stream the result.

    Each call to ``run`` owns its own poll loop and reconstruction buffer, so several
    bulk operations may run from separate threads against the same runner.
    """

    def __init__(
        self,
        execute: Executor,
        query_loader: QueryLoader | None = None,
        poll_interval: float = 5.0,
        max_retries: int = 5,
        http_session: requests.Session | None = None,
        download_timeout: float = 60.0,
    ):
        """
        Args:
            execute: Single-attempt GraphQL executor (the transport)
            query_loader: Loader for the bulk lifecycle operations
            poll_interval: Seconds between status polls
            max_retries: Retries for each status poll and result download
            http_session: Session for downloading result files (unauthenticated)
            download_timeout: Connect/read timeout for result downloads
        """
        self.execute = execute
        self.query_loader = query_loader or QueryLoader()
        self.poll_interval = poll_interval
        self.max_retries = max_retries
        self.http_session = http_session or requests.Session()
        self.download_timeout = download_timeout
        self.logger = logging.getLogger(__name__)

    def submit(self, query: str) -> BulkJob:
        """
        Start a bulk operation for ``query``

        Submission is not retried; any error or user error fails the call.
        """
        mutation = self.query_loader.load_query("BulkOperationRunQuery")
        result = self.execute(Operation(mutation, {"query": query}))

        payload = result.get("bulkOperationRunQuery") or {}
        user_errors = payload.get("userErrors") or []
        if user_errors:
            raise BulkOperationSubmitError(f"Bulk operation failed: {user_errors}")

        bulk_op = payload.get("bulkOperation") or {}
        operation_id = bulk_op.get("id")
        if not operation_id:
            raise BulkOperationSubmitError("Bulk operation was not created: response carried no operation id")

        job = BulkJob(id=operation_id, query=query, submitted_at=time.time())
        job.update(bulk_op)
        self.logger.info(f"Bulk operation started: {operation_id}")
        return job

    def poll(self, job: BulkJob) -> BulkJob:
        """Fetch the current status of ``job`` once"""
        status_query = self.query_loader.load_query("BulkOperationStatus")
        result = self.execute(Operation(status_query, {"id": job.id}))
        node = result.get("node")
        if not node:
            raise ShopifyClientError(f"Bulk operation {job.id} not found")
        job.update(node)
        return job

    def wait(
        self, job: BulkJob, timeout: float | None = None, cancel_event: threading.Event | None = None
    ) -> BulkJob:
        """
        Poll ``job`` until it reaches a terminal status

        Deadline expiry or cancellation stop the loop but leave the remote operation running.

        Raises:
            BulkOperationFailed: the operation ended FAILED, CANCELED or EXPIRED
            BulkOperationTimeout: ``timeout`` elapsed first
            OperationCancelled: ``cancel_event`` was set
        """
        cancel_event = cancel_event or threading.Event()
        deadline = time.monotonic() + timeout if timeout is not None else None
        sleep = self._bounded_sleep(job, timeout, deadline, self._cancellable_sleep(cancel_event))
        previous_status = None

        def poll_before_deadline() -> BulkJob:
            self._check_deadline(job, timeout, deadline)
            return self.poll(job)

        while True:
            if cancel_event.is_set():
                raise OperationCancelled(f"Waiting for bulk operation {job.id} was cancelled")

            # retry waits are bounded by the deadline as well
            with_retry(self.max_retries, poll_before_deadline, sleep=sleep)
            if job.status != previous_status:
                self.logger.info(f"Bulk operation status: {job.status.value}")
                previous_status = job.status

            if job.is_terminal:
                break

            sleep(self.poll_interval)

        if job.status != BulkOperationStatus.COMPLETED:
            raise BulkOperationFailed(job.id, job.status.value, job.error_code)
        return job

    def current(self) -> BulkJob | None:
        """The most recent bulk operation of this app, if any"""
        query = self.query_loader.load_query("CurrentBulkOperation")
        result = with_retry(self.max_retries, lambda: self.execute(Operation(query)))
        current_op = result.get("currentBulkOperation")
        if not current_op:
            return None
        job = BulkJob(id=current_op["id"], query="")
        job.update(current_op)
        return job

    def cancel(self, job: BulkJob) -> BulkJob:
        """Request cancellation of a running bulk operation"""
        mutation = self.query_loader.load_query("BulkOperationCancel")
        result = self.execute(Operation(mutation, {"id": job.id}))
        payload = result.get("bulkOperationCancel") or {}
        user_errors = payload.get("userErrors") or []
        if user_errors:
            raise BulkOperationSubmitError(f"Bulk operation cancel failed: {user_errors}")
        job.update(payload.get("bulkOperation") or {})
        self.logger.info(f"Bulk operation {job.id} cancel requested, status: {job.status.value}")
        return job

    def run(
        self,
        query: str,
        shape: Shape | None = None,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Iterator[Any]:
        """
        Run ``query`` as a bulk operation and return its rebuilt top-level objects

        Submission and waiting happen before this returns; the result file is streamed
        lazily while the returned iterator is consumed.
        """
        job = self.submit(query)
        job = self.wait(job, timeout=timeout, cancel_event=cancel_event)
        if self.is_empty(job):
            self.logger.info("Bulk operation completed with no results (empty dataset)")
            return iter(())
        return reconstruct(self.iter_result_lines(job), shape)

    @log_bulk_performance("custom")
    def export_to_file(
        self,
        query: str,
        temp_file_path: str,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> BulkOperationResult:
        """
        Run ``query`` as a bulk operation and save the raw JSONL result to ``temp_file_path``

        Returns:
            BulkOperationResult with file path and timing info (item_count will be 0 if no results)
        """
        api_wait_start = time.time()
        job = self.wait(self.submit(query), timeout=timeout, cancel_event=cancel_event)
        api_wait_time = time.time() - api_wait_start

        if self.is_empty(job):
            self.logger.info("Bulk operation completed with no results (empty dataset)")
            with open(temp_file_path, "w", encoding="utf-8"):
                pass
            return BulkOperationResult(
                file_path=temp_file_path, item_count=0, api_wait_time=api_wait_time, download_time=0.0
            )

        download_start = time.time()
        with_retry(self.max_retries, lambda: self._download(job, temp_file_path))
        download_time = time.time() - download_start

        self.logger.info(f"Downloaded {job.object_count} items from bulk operation, saved to {temp_file_path}")
        return BulkOperationResult(
            file_path=temp_file_path,
            item_count=job.object_count,
            api_wait_time=api_wait_time,
            download_time=download_time,
        )

    @staticmethod
    def is_empty(job: BulkJob) -> bool:
        return not job.url and job.object_count == 0

    def iter_result_lines(self, job: BulkJob) -> Iterator[bytes]:
        """Stream the result file of a completed job line by line"""
        if not job.url:
            raise EmptyResultLocationError(job.id)
        self.logger.info(f"Downloading results from: {job.url}")
        with self._open_result(job.url) as response:
            yield from response.iter_lines()

    def _download(self, job: BulkJob, temp_file_path: str) -> None:
        if not job.url:
            raise EmptyResultLocationError(job.id)
        self.logger.info(f"Downloading results from: {job.url}")
        chunk_size = 8192
        with self._open_result(job.url) as response:
            with open(temp_file_path, "wb") as f:
                for chunk in response.iter_content(chunk_size=chunk_size):
                    f.write(chunk)

    def _open_result(self, url: str) -> requests.Response:
        try:
            response = self.http_session.get(url, stream=True, timeout=self.download_timeout)
        except requests.RequestException as e:
            raise TransportError(f"Downloading bulk result failed: {e}") from e
        if not 200 <= response.status_code < 300:
            body = response.text
            response.close()
            raise TransportError(
                f"non-200 OK status code: {response.status_code} {response.reason} body: {body!r}",
                status=response.status_code,
                body=body,
            )
        return response

    @staticmethod
    def _check_deadline(job: BulkJob, timeout: float | None, deadline: float | None) -> None:
        if deadline is not None and time.monotonic() >= deadline:
            raise BulkOperationTimeout(f"Bulk operation {job.id} still {job.status.value.lower()} after {timeout}s")

    def _bounded_sleep(
        self, job: BulkJob, timeout: float | None, deadline: float | None, sleep: Callable[[float], None]
    ) -> Callable[[float], None]:
        """Wrap ``sleep`` so no wait runs past ``deadline``; reaching it raises BulkOperationTimeout"""
        if deadline is None:
            return sleep

        def bounded(seconds: float) -> None:
            self._check_deadline(job, timeout, deadline)
            sleep(min(seconds, max(deadline - time.monotonic(), 0)))
            self._check_deadline(job, timeout, deadline)

        return bounded

    @staticmethod
    def _cancellable_sleep(cancel_event: threading.Event) -> Callable[[float], None]:
        def sleep(seconds: float) -> None:
            if cancel_event.wait(seconds):
                raise OperationCancelled("Bulk operation wait was cancelled")

        return sleep
