"""Asyncio task supervision helpers for the OBS Metrics Bridge."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

import tenacity

from obsbridge.const import (
    SUPERVISOR_DEFAULT_MAX_BACKOFF,
    SUPERVISOR_DEFAULT_MIN_BACKOFF,
    SUPERVISOR_DEFAULT_RESTART_INTERVAL,
    SUPERVISOR_MIN_RESTART_WINDOW,
)


class _SupervisorRetryState:
    """Helper to track supervisor health and logging across tenacity retries."""

    def __init__(self, name: str, log: logging.Logger, window: float) -> None:
        self.name = name
        self.log = log
        self.window = window
        self.last_start_time = 0.0
        self.restarts = 0

    def mark_started(self) -> None:
        self.last_start_time = time.monotonic()

    def is_healthy_runtime(self) -> bool:
        if self.last_start_time <= 0:
            return False
        return (time.monotonic() - self.last_start_time) > self.window

    def before_sleep(self, retry_state: tenacity.RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        self.restarts += 1
        self.log.error("%s failed (%s); restarting in %.1fs", self.name, exc, delay)


async def supervise_task(
    name: str,
    coro_factory: Callable[[], Awaitable[None]],
    *,
    fatal_exceptions: tuple[type[BaseException], ...] = (),
    min_backoff: float = SUPERVISOR_DEFAULT_MIN_BACKOFF,
    max_backoff: float = SUPERVISOR_DEFAULT_MAX_BACKOFF,
    max_restarts: int | None = None,
    restart_interval: float = SUPERVISOR_DEFAULT_RESTART_INTERVAL,
    logger: logging.Logger | None = None,
) -> None:
    """Run *coro_factory* restarting it on failures using tenacity."""
    log = logger or logging.getLogger("obsbridge.supervisor")
    restart_window_duration = max(SUPERVISOR_MIN_RESTART_WINDOW, restart_interval)

    helper = _SupervisorRetryState(name, log, restart_window_duration)

    def _build_retryer() -> tenacity.AsyncRetrying:
        return tenacity.AsyncRetrying(
            wait=tenacity.wait_exponential(multiplier=min_backoff, max=max_backoff),
            retry=tenacity.retry_if_not_exception_type(
                (asyncio.CancelledError, SystemExit, KeyboardInterrupt, GeneratorExit) + fatal_exceptions
            ),
            stop=tenacity.stop_after_attempt(max_restarts + 1) if max_restarts is not None else tenacity.stop_never,
            before_sleep=helper.before_sleep,
            reraise=True,
        )

    try:
        while True:
            try:
                async for attempt in _build_retryer():
                    with attempt:
                        helper.mark_started()
                        await coro_factory()

                        log.warning("%s task exited cleanly; supervisor exiting", name)
                        return
            except fatal_exceptions as exc:
                log.critical("%s failed with fatal exception: %s", name, exc)
                raise
            except asyncio.CancelledError:
                raise
            except Exception:
                if helper.is_healthy_runtime():
                    log.info("%s was healthy long enough; resetting backoff", name)
                    continue
                log.error("%s exceeded max restarts (%s); giving up", name, max_restarts)
                raise
    except asyncio.CancelledError:
        log.debug("%s supervisor cancelled", name)
        raise


__all__ = ["supervise_task"]
