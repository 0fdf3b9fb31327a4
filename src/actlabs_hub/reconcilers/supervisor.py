"""
actlabs_hub.reconcilers.supervisor

Restart wrapper for long-running background loops.

Responsibilities:
- Run a coroutine factory and restart it after an unexpected fault.
- Bound restarts with a budget; exhausting it stops the loop for good.
- Never treat cancellation or a clean return as a fault.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from actlabs_hub.errors import SupervisorExhaustedError
from actlabs_hub.observability.logging import get_logger

log = get_logger(__name__)


class Supervisor:
    def __init__(
        self,
        name: str,
        *,
        max_restarts: int,
        restart_delay_seconds: float = 0.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.name = name
        self.max_restarts = max_restarts
        self.restart_delay_seconds = restart_delay_seconds
        self._sleep = sleep
        self.restarts = 0

    async def run(self, factory: Callable[[], Awaitable[None]]) -> None:
        remaining = self.max_restarts
        while True:
            log.info("supervised_loop_starting", loop=self.name, remaining_restarts=remaining)
            try:
                await factory()
            except Exception as exc:  # noqa: BLE001 - any fault is restartable until the budget runs out.
                log.error(
                    "supervised_loop_crashed",
                    loop=self.name,
                    error=str(exc),
                    remaining_restarts=max(remaining - 1, 0),
                    exc_info=True,
                )
                if remaining <= 0:
                    log.critical("supervised_loop_restart_budget_exhausted", loop=self.name)
                    raise SupervisorExhaustedError(
                        f"{self.name}: restart budget of {self.max_restarts} exhausted"
                    ) from exc
                remaining -= 1
                self.restarts += 1
                await self._sleep(self.restart_delay_seconds)
            else:
                log.info("supervised_loop_stopped", loop=self.name)
                return


async def wait_for_stop(stop_event: asyncio.Event, timeout: float) -> bool:
    """Sleep up to `timeout` seconds; True when the stop event fired meanwhile."""

    try:
        await asyncio.wait_for(stop_event.wait(), timeout=timeout)
    except TimeoutError:
        return False
    return True


# --- Module Notes -----------------------------------------------------------
# CancelledError is a BaseException, so it passes straight through `run` and
# ends the supervised task without consuming budget.
# Reconcilers log and retry a failed tick themselves, so a restart here means
# the loop machinery itself broke.
