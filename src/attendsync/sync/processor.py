"""Single-flight delivery of the mutation queue.

State machine per iteration::

    Idle -> Sending -> Idle                  (head task acknowledged)
                    -> BackoffWait -> Idle   (head task retained)

The busy flag is set before the network call and cleared in a ``finally``
block, so it is released on every exit path including cancellation.  Only
one iteration can be in flight; the flag is sufficient because everything
runs on one event loop.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
from collections.abc import Awaitable, Callable
from enum import StrEnum

from attendsync._api.write import deliver_task
from attendsync._constants import is_valid_endpoint
from attendsync._transport import Transport
from attendsync.config import SyncConfig
from attendsync.exceptions import TransientDeliveryError
from attendsync.state.queue import MutationQueue

_logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


class DrainOutcome(StrEnum):
    IDLE = "idle"
    NO_ENDPOINT = "no_endpoint"
    BUSY = "busy"
    DELIVERED = "delivered"
    RETRY = "retry"
    STOPPED = "stopped"


#: Outcomes after which the loop waits for new work instead of iterating again.
_WAIT_OUTCOMES = frozenset({DrainOutcome.IDLE, DrainOutcome.NO_ENDPOINT, DrainOutcome.BUSY})


class SyncProcessor:
    """Drains a :class:`MutationQueue` head-first against the remote write endpoint.

    Failed attempts keep the task at the head and wait a random duration
    drawn uniformly from the configured backoff window.  Retries are
    unbounded.
    """

    def __init__(
        self,
        queue: MutationQueue,
        transport: Transport,
        *,
        endpoint: Callable[[], str | None],
        config: SyncConfig,
        sleep: SleepFn = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._queue = queue
        self._transport = transport
        self._endpoint = endpoint
        self._config = config
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._busy = False
        self._stopped = False
        self._wakeup: asyncio.Event | None = None

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def stopped(self) -> bool:
        return self._stopped

    def notify(self) -> None:
        """Wake the loop early, e.g. after an enqueue."""
        if self._wakeup is not None:
            self._wakeup.set()

    def stop(self) -> None:
        self._stopped = True
        self.notify()

    def backoff_delay(self) -> float:
        return self._rng.uniform(self._config.backoff_min_seconds, self._config.backoff_max_seconds)

    async def run_once(self) -> DrainOutcome:
        """Attempt delivery of the head task once."""
        if self._stopped:
            return DrainOutcome.STOPPED
        if self._busy:
            return DrainOutcome.BUSY
        task = self._queue.head()
        if task is None:
            return DrainOutcome.IDLE
        url = self._endpoint()
        if url is None or not is_valid_endpoint(url):
            return DrainOutcome.NO_ENDPOINT

        self._busy = True
        try:
            try:
                await deliver_task(self._transport, url, task)
            except TransientDeliveryError as exc:
                delay = self.backoff_delay()
                _logger.warning("Sync of task %s failed, retrying in %.1fs: %s", task.id, delay, exc)
                await self._sleep(delay)
                return DrainOutcome.RETRY

            if self._stopped:
                # Torn down while the write was in flight; the task is resent on next start.
                return DrainOutcome.STOPPED
            self._queue.acknowledge(task.id)
            _logger.info(
                "Synced %s (task %s), %d pending",
                task.payload.identifier,
                task.id,
                len(self._queue),
            )
            return DrainOutcome.DELIVERED
        finally:
            self._busy = False

    async def drain(self, *, max_attempts: int | None = None) -> int:
        """Run iterations until the queue is empty or nothing can be sent.

        Returns the number of delivered tasks.  *max_attempts* bounds the
        number of network attempts for callers that cannot wait forever.
        """
        delivered = 0
        attempts = 0
        while max_attempts is None or attempts < max_attempts:
            outcome = await self.run_once()
            if outcome == DrainOutcome.DELIVERED:
                delivered += 1
            elif outcome != DrainOutcome.RETRY:
                break
            attempts += 1
        return delivered

    async def run(self) -> None:
        """Loop until :meth:`stop` is called."""
        self._wakeup = asyncio.Event()
        while not self._stopped:
            self._wakeup.clear()
            try:
                outcome = await self.run_once()
            except Exception:
                _logger.warning("Unexpected error in sync processor", exc_info=True)
                await self._sleep(self.backoff_delay())
                continue
            if outcome in _WAIT_OUTCOMES:
                with contextlib.suppress(TimeoutError):
                    await asyncio.wait_for(self._wakeup.wait(), self._config.idle_interval)
