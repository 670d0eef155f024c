# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Parallel metric fetching across accounts with retry and cancellation"""

import logging
import random
import time
from concurrent.futures import ThreadPoolExecutor
from queue import Empty, Queue
from threading import Event, Lock
from typing import List, Optional, Sequence

from cloudwatch_account_images.core.models import (
    ErrorKind,
    Failure,
    FetchResult,
    MetricQuery,
    Success,
)
from cloudwatch_account_images.errors import (
    AuthorizationError,
    FetchError,
    FetchTimeoutError,
    NotFoundError,
    ThrottlingError,
)
from cloudwatch_account_images.utils.settings import FetchSettings

logger = logging.getLogger(__name__)


def _failure_kind(error: FetchError) -> ErrorKind:
    if isinstance(error, ThrottlingError):
        return ErrorKind.THROTTLING_EXHAUSTED
    if isinstance(error, FetchTimeoutError):
        return ErrorKind.TIMEOUT_EXHAUSTED
    if isinstance(error, AuthorizationError):
        return ErrorKind.AUTHORIZATION
    if isinstance(error, NotFoundError):
        return ErrorKind.NOT_FOUND
    return ErrorKind.UNEXPECTED


class _Progress:
    """Completed-query counter for one fetch_all call"""

    def __init__(self, total: int):
        self.total = total
        self.completed = 0
        self.lock = Lock()

    def report(self, result: FetchResult):
        with self.lock:
            self.completed += 1
            pct = int(self.completed / self.total * 100)
            status = 'ok' if result.ok else result.error_kind.value
            logger.info(
                f"    Progress: {self.completed}/{self.total} queries ({pct}%) "
                f"- {result.account} {result.metric_name}: {status}"
            )


class MetricsFetchOrchestrator:
    """Runs metric queries on a bounded worker pool

    ``remote`` is any object with ``fetch(query, timeout)`` returning a
    sequence of (timestamp, value) pairs, e.g. CloudWatchMetricsClient.
    ``remote.fetch`` must stop on its own once ``timeout`` seconds have
    passed (raising FetchTimeoutError or TimeoutError); a worker cannot
    interrupt a call in flight. A call that still returns after its budget
    is treated as timed out and its data discarded.

    Workers drain a shared queue of (index, query) pairs and write each
    result into its own slot, so the returned list lines up with the input
    whatever order the queries complete in. Every query owns its attempt
    counter; throttling and timeouts are retried with exponential backoff
    and jitter, everything else fails the query straight away.
    """

    def __init__(self, remote, settings: Optional[FetchSettings] = None, rng: Optional[random.Random] = None):
        self.remote = remote
        self.settings = settings or FetchSettings()
        self.rng = rng or random.Random()

    def fetch_all(self, queries: Sequence[MetricQuery], cancel_event: Optional[Event] = None) -> List[FetchResult]:
        """Fetch every query and return one result per query, in query order

        Setting ``cancel_event`` stops new dispatches and interrupts backoff
        sleeps; queries that never ran are reported as Cancelled failures.
        """
        queries = list(queries)
        if not queries:
            return []

        cancel_event = cancel_event or Event()
        work = Queue()
        for index, query in enumerate(queries):
            work.put((index, query))
        results: List[Optional[FetchResult]] = [None] * len(queries)
        progress = _Progress(len(queries))

        max_workers = min(self.settings.max_workers, len(queries))
        logger.info(f"  Fetching {len(queries)} queries using {max_workers} parallel workers")

        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='metrics-fetch') as executor:
            workers = [
                executor.submit(self._worker, work, results, progress, cancel_event)
                for _ in range(max_workers)
            ]
            try:
                for worker in workers:
                    worker.result()
            except KeyboardInterrupt:
                logger.info("\n  Cancelling: waiting for in-flight queries to finish...")
                cancel_event.set()
                for worker in workers:
                    worker.result()

        cancelled = 0
        for index, result in enumerate(results):
            if result is None:
                results[index] = Failure(queries[index], ErrorKind.CANCELLED, "Cancelled before dispatch")
                cancelled += 1

        if cancelled:
            logger.info(f"  Fetch cancelled: {cancelled}/{len(queries)} queries never ran")
        else:
            logger.info("  Parallel fetch complete")
        return results

    def _worker(self, work: Queue, results: List, progress: _Progress, cancel_event: Event):
        while not cancel_event.is_set():
            try:
                index, query = work.get_nowait()
            except Empty:
                return
            results[index] = self._execute(query, cancel_event)
            progress.report(results[index])

    def _fetch_once(self, query: MetricQuery):
        """One call to the remote, held to the per-query time budget"""
        timeout = self.settings.timeout_seconds
        started = time.monotonic()
        series = self.remote.fetch(query, timeout)
        elapsed = time.monotonic() - started
        if elapsed > timeout:
            raise FetchTimeoutError(f"Query took {elapsed:.2f}s, limit is {timeout}s")
        return tuple(series)

    def _execute(self, query: MetricQuery, cancel_event: Event) -> FetchResult:
        """Run one query until it succeeds, fails for good, or is cancelled"""
        attempt = 0
        while True:
            attempt += 1
            try:
                return Success(query, self._fetch_once(query), attempt)
            except TimeoutError as e:
                error = FetchTimeoutError(str(e) or 'Request timed out')
            except FetchError as e:
                error = e
            except Exception as e:
                logger.debug(f"    Unexpected error for {query.account} {query.metric_name}", exc_info=True)
                return Failure(query, ErrorKind.UNEXPECTED, f"{type(e).__name__}: {e}", attempt)

            if not error.retryable:
                return Failure(query, _failure_kind(error), str(error), attempt)

            if attempt > self.settings.max_retries:
                return Failure(
                    query,
                    _failure_kind(error),
                    f"Gave up after {attempt} attempts: {error}",
                    attempt,
                )

            delay = self.backoff_delay(attempt)
            logger.debug(
                f"    {type(error).__name__} for {query.account} {query.metric_name} "
                f"(attempt {attempt}), retrying in {delay:.2f}s"
            )
            if cancel_event.wait(delay):
                return Failure(query, ErrorKind.CANCELLED, f"Cancelled during retry backoff: {error}", attempt)

    def backoff_delay(self, attempt: int) -> float:
        """Exponential backoff capped at max_delay, plus random jitter"""
        delay = min(self.settings.base_delay * (2 ** (attempt - 1)), self.settings.max_delay)
        return delay + self.rng.uniform(0, delay * self.settings.jitter)
