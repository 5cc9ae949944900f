# dkprice/scrapers/token_acquirer.py

"""Bounded-time token acquisition: static lookup, then a timed race."""

import asyncio
import logging
from typing import Any, TypeVar

from dkprice.config.settings import Settings
from dkprice.scrapers.network_observer import NetworkTokenObserver
from dkprice.scrapers.page_loader import ProductPage
from dkprice.scrapers.token_locator import TokenLocator

logger = logging.getLogger("dkprice.token_acquirer")

T = TypeVar("T")


async def race_with_timeout(
    event: "asyncio.Future[T]", timeout_s: float,
) -> T | None:
    """Resolve with *event*'s result, or None once *timeout_s* elapses.

    Whichever side loses is cancelled.
    """
    timer = asyncio.ensure_future(asyncio.sleep(timeout_s))
    try:
        done, _pending = await asyncio.wait(
            {event, timer}, return_when=asyncio.FIRST_COMPLETED,
        )
    finally:
        timer.cancel()
        event.cancel()
    if event in done and not event.cancelled():
        return event.result()
    return None


class TokenAcquirer:
    """Find a token for one page without waiting forever for it."""

    def __init__(
        self,
        locator: TokenLocator | None = None,
        observer: NetworkTokenObserver | None = None,
    ) -> None:
        self.locator = locator or TokenLocator()
        self.observer = observer

    async def acquire(
        self,
        page: ProductPage,
        timeout_ms: int | None = None,
    ) -> str | None:
        """Return a token from the page, or from host traffic, or None.

        The network observer is only attached when the static lookup
        comes up empty.
        """
        token = self.locator.locate(page)
        if token is not None:
            return token
        if self.observer is None:
            logger.info("No network observer configured, giving up")
            return None

        wait_ms = (
            Settings.TOKEN_TIMEOUT_MS if timeout_ms is None else timeout_ms
        )
        loop = asyncio.get_running_loop()
        found: asyncio.Future[str] = loop.create_future()

        def settle(value: str) -> None:
            if not found.done():
                found.set_result(value)

        def on_found(value: str) -> None:
            # Host requests may run on worker threads
            try:
                loop.call_soon_threadsafe(settle, value)
            except RuntimeError:
                logger.debug("Token arrived after the loop closed")

        logger.info("Waiting up to %dms for _rch in API traffic", wait_ms)
        handle = self.observer.observe(on_found)
        try:
            result: Any = await race_with_timeout(found, wait_ms / 1000)
        finally:
            handle.detach()

        if result is None:
            logger.warning("Timed out after %dms waiting for _rch", wait_ms)
        return result
