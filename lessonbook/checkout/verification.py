"""
Polls for email verification after a register-without-token response.

One asyncio Task per poller. Starting again replaces the previous task,
and the task ends on its own once the check reports a verified account.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional

from lessonbook.config import settings
from lessonbook.errors import NetworkError
from lessonbook.logging_context import get_checkout_logger

logger = get_checkout_logger(__name__)

VerificationCheck = Callable[[], Awaitable[Optional[Any]]]
VerifiedCallback = Callable[[Any], Any]


def _log_failure(task: asyncio.Task) -> None:
    """Report anything other than a cancel that ended the polling task."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Verification polling stopped on unexpected error: %r", exc, exc_info=exc)


class VerificationPoller:
    """
    Runs ``check`` immediately and then every ``interval`` seconds.

    ``check`` returns the verified account payload, or None while the
    learner has not confirmed yet. Backend errors are logged and polling
    carries on.
    """

    def __init__(self, check: VerificationCheck, interval: Optional[float] = None) -> None:
        self._check = check
        self.interval = settings.checkout.verification_poll_seconds if interval is None else interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    def start(self, on_verified: VerifiedCallback) -> asyncio.Task:
        self.stop()
        self._task = asyncio.get_running_loop().create_task(self._run(on_verified))
        self._task.add_done_callback(_log_failure)
        logger.info("Verification polling started (every %.1fs)", self.interval)
        return self._task

    def stop(self) -> None:
        task = self._task
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        logger.info("Verification polling stopped")

    async def _run(self, on_verified: VerifiedCallback) -> None:
        attempts = 0
        while True:
            attempts += 1
            try:
                verified = await self._check()
            except NetworkError as exc:
                logger.warning("Verification check %d failed: %s", attempts, exc)
                verified = None

            if verified is not None:
                logger.info("Account verified after %d checks", attempts)
                outcome = on_verified(verified)
                if inspect.isawaitable(outcome):
                    await outcome
                return

            await asyncio.sleep(self.interval)
