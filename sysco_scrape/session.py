"""State owned by one scrape run."""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional
from uuid import uuid4

from sysco_scrape.config import ScraperConfig
from sysco_scrape.logging_config import get_logger
from sysco_scrape.retry import retry_async, should_retry_error

__all__ = ["SessionState", "ScrapeSession"]

logger = get_logger("session")


class SessionState(Enum):
    UNINITIALIZED = "uninitialized"
    DRIVER_READY = "driver_ready"
    AUTHENTICATED = "authenticated"
    LOCATION_SET = "location_set"
    TRAVERSING = "traversing"
    FINALIZED = "finalized"


# The run only moves forward; any state may be finalized.
_NEXT_STATES = {
    SessionState.UNINITIALIZED: {SessionState.DRIVER_READY},
    SessionState.DRIVER_READY: {SessionState.AUTHENTICATED},
    SessionState.AUTHENTICATED: {SessionState.LOCATION_SET},
    SessionState.LOCATION_SET: {SessionState.TRAVERSING},
    SessionState.TRAVERSING: set(),
    SessionState.FINALIZED: set(),
}


@dataclass
class ScrapeSession:
    """The driver handle and run state, passed explicitly to every step.

    The session is the only owner of the driver. Walkers borrow it for the
    duration of a call.
    """

    config: ScraperConfig
    driver: Optional[Any] = None
    session_id: str = field(default_factory=lambda: str(uuid4()))
    state: SessionState = SessionState.UNINITIALIZED
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    def transition(self, new_state: SessionState) -> None:
        """Move to ``new_state``; raises RuntimeError on an illegal move."""
        if new_state is not SessionState.FINALIZED and new_state not in _NEXT_STATES[self.state]:
            raise RuntimeError(
                f"Illegal session transition: {self.state.value} -> {new_state.value}"
            )
        logger.debug(f"Session {self.session_id}: {self.state.value} -> {new_state.value}")
        self.state = new_state

    def require_driver(self):
        if self.driver is None:
            raise RuntimeError("Browser driver is not initialized")
        return self.driver

    async def pause(self, name: str) -> None:
        """Sleep for the named delay from the config (e.g. 'page_load')."""
        seconds = getattr(self.config.delays, name)
        if seconds > 0:
            await self.sleep(seconds)

    async def navigate(
        self,
        url: str,
        wait_until: str = "networkidle",
        timeout: Optional[float] = None,
    ) -> None:
        """Go to ``url``, retrying transient failures."""
        driver = self.require_driver()
        nav_timeout = timeout if timeout is not None else self.config.navigation_timeout

        async def _goto() -> None:
            await driver.goto(url, wait_until=wait_until, timeout=nav_timeout)

        await retry_async(
            _goto,
            max_retries=self.config.max_retries,
            base_delay=self.config.retry_base_delay,
            retry_condition=should_retry_error,
            description=f"navigation to {url}",
            sleep=self.sleep,
        )
