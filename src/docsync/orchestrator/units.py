"""
Unit Scheduling.

Runs units of sync work with bounded concurrency, a per-attempt timeout,
a bounded retry count and delayed requeueing on rate limits.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from docsync.config.models import SyncConfig
from docsync.generator.base import PermanentProviderError, TransientProviderError
from docsync.modules.graph import DataIntegrityError
from docsync.orchestrator.state import UnitKind, UnitOutcome, UnitResult

logger = logging.getLogger(__name__)

# Unit body: returns SUCCEEDED or SKIPPED, raises on failure
UnitWork = Callable[[], Awaitable[UnitOutcome]]

# Errors no retry can fix
TERMINAL_ERRORS: tuple[type[Exception], ...] = (PermanentProviderError, DataIntegrityError)


class _Requeue(Exception):
    def __init__(self, cause: TransientProviderError) -> None:
        super().__init__(str(cause))
        self.cause = cause


class UnitRunner:
    """Executes units under the scheduling policy.

    A rate-limited unit gives up its concurrency slot while it waits to be
    requeued, so other units keep running. The body of a unit is expected
    to undo its own partial writes when it is cancelled by the timeout.
    """

    def __init__(
        self,
        config: SyncConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the runner.

        Args:
            config: Scheduling policy
            sleep: Sleep function used for requeue delays
        """
        self._config = config
        self._semaphore = asyncio.Semaphore(config.concurrency)
        self._sleep = sleep

    def requeue_delay(self, kind: UnitKind) -> float:
        """Requeue delay for a unit kind."""
        if kind is UnitKind.MODULE:
            return self._config.module_rate_limit_delay
        return self._config.rate_limit_delay

    async def run(self, key: str, kind: UnitKind, work: UnitWork) -> UnitResult:
        """Run one unit to a final outcome.

        Never raises for unit failures; they are recorded in the result.
        Cancellation of the caller still propagates.
        """
        result = UnitResult(key=key, kind=kind)

        while True:
            try:
                async with self._semaphore:
                    await self._attempts(result, work)
                return result
            except _Requeue as requeue:
                result.error = str(requeue.cause)
                result.error_type = type(requeue.cause).__name__
                if result.requeues >= self._config.max_requeues:
                    result.outcome = UnitOutcome.REQUEUED
                    result.retryable = True
                    logger.warning(f"{kind.value} {key}: still rate limited, left pending")
                    return result
                result.requeues += 1
                delay = max(self.requeue_delay(kind), requeue.cause.retry_after or 0.0)
                logger.info(
                    f"{kind.value} {key}: rate limited, requeued in {delay:.0f}s "
                    f"({result.requeues}/{self._config.max_requeues})"
                )
                await self._sleep(delay)

    async def _attempts(self, result: UnitResult, work: UnitWork) -> None:
        label = f"{result.kind.value} {result.key}"

        for attempt in range(1, self._config.max_attempts + 1):
            result.attempts += 1
            try:
                outcome = await asyncio.wait_for(work(), timeout=self._config.unit_timeout_seconds)
            except TransientProviderError as e:
                raise _Requeue(e) from e
            except TERMINAL_ERRORS as e:
                result.outcome = UnitOutcome.FAILED
                result.error = str(e)
                result.error_type = type(e).__name__
                result.retryable = False
                logger.error(f"{label}: failed permanently: {e}")
                return
            except asyncio.TimeoutError:
                result.error = f"Timed out after {self._config.unit_timeout_seconds}s"
                result.error_type = "TimeoutError"
                logger.warning(f"{label}: attempt {attempt} timed out")
            except Exception as e:
                result.error = str(e)
                result.error_type = type(e).__name__
                logger.warning(f"{label}: attempt {attempt} failed: {type(e).__name__}: {e}")
            else:
                result.outcome = outcome
                result.error = None
                result.error_type = None
                logger.debug(f"{label}: {outcome.value}")
                return

        result.outcome = UnitOutcome.FAILED
        result.retryable = True
        logger.error(f"{label}: failed after {self._config.max_attempts} attempt(s): {result.error}")
