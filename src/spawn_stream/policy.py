"""Timeout and retry policies wrapped around a single process attempt."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from spawn_stream.errors import ProcessExitError

logger = logging.getLogger(__name__)


def arm_timeout(timeout: float | None, on_fire: Callable[[], None]) -> asyncio.TimerHandle | None:
    """Schedule ``on_fire`` after ``timeout`` seconds. Returns None when disabled.

    The caller must cancel the returned handle once the attempt ends.
    """
    if timeout is None or timeout <= 0:
        return None
    return asyncio.get_running_loop().call_later(timeout, on_fire)


async def run_with_retries(
    attempt: Callable[[], Awaitable[None]],
    *,
    retries: int,
    retry_delay: float,
    log: logging.Logger = logger,
    description: str = "",
) -> None:
    """Run ``attempt`` until it succeeds or ``retries`` extra attempts are used up.

    Only a nonzero exit is retried. Every other exception propagates on its
    first occurrence. When the retries are exhausted the last failure is raised.
    """
    retries_attempted = 0
    while True:
        try:
            await attempt()
        except ProcessExitError as e:
            if retries_attempted >= retries:
                raise
            retries_attempted += 1
            log.debug(
                "Retrying process (attempt %d/%d) after exit code %s: %s",
                retries_attempted,
                retries,
                e.exit_code,
                description,
            )
            await asyncio.sleep(retry_delay)
        else:
            return
