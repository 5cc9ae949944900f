# tests/test_token_acquirer.py

"""Tests for bounded-time token acquisition."""

import asyncio
import time
import unittest
from unittest.mock import MagicMock

from dkprice.scrapers.network_observer import (
    NetworkTokenObserver,
    installed_interceptor_count,
)
from dkprice.scrapers.page_loader import ProductPage
from dkprice.scrapers.token_acquirer import TokenAcquirer, race_with_timeout
from tests.fakes import API_CALL, TOKEN, FakeSession

PRODUCT_URL = "https://www.digikala.com/product/dkp-42/"


def _bare_page() -> ProductPage:
    return ProductPage(url=PRODUCT_URL, html="<html></html>")


class TestRaceWithTimeout(unittest.IsolatedAsyncioTestCase):
    """The two-way race primitive."""

    async def test_event_wins(self) -> None:
        loop = asyncio.get_running_loop()
        event: asyncio.Future[str] = loop.create_future()
        loop.call_later(0.01, event.set_result, "won")
        self.assertEqual(await race_with_timeout(event, 1.0), "won")

    async def test_timer_wins_and_cancels_event(self) -> None:
        loop = asyncio.get_running_loop()
        event: asyncio.Future[str] = loop.create_future()
        self.assertIsNone(await race_with_timeout(event, 0.01))
        self.assertTrue(event.cancelled())


class TestTokenAcquirer(unittest.IsolatedAsyncioTestCase):
    """Static lookup first, then a race against the timeout."""

    def setUp(self) -> None:
        self.session = FakeSession()
        self.observer = NetworkTokenObserver(self.session)
        self.acquirer = TokenAcquirer(observer=self.observer)

    async def test_static_token_skips_observer(self) -> None:
        """A locatable token never installs the interceptor."""
        spy = MagicMock(spec=NetworkTokenObserver)
        acquirer = TokenAcquirer(observer=spy)
        page = ProductPage(
            url=f"{PRODUCT_URL}?_rch={TOKEN}", html="<html></html>"
        )
        self.assertEqual(await acquirer.acquire(page, 1000), TOKEN)
        spy.observe.assert_not_called()

        self.assertEqual(await self.acquirer.acquire(page, 1000), TOKEN)
        self.assertEqual(self.observer.install_count, 0)
        self.assertNotIn("request", vars(self.session))

    async def test_token_from_host_traffic(self) -> None:
        loop = asyncio.get_running_loop()
        # Looked up when the timer fires, after acquire() wrapped it
        loop.call_later(0.02, lambda: self.session.request("GET", API_CALL))
        token = await self.acquirer.acquire(_bare_page(), 2000)
        self.assertEqual(token, TOKEN)
        self.assertEqual(self.observer.install_count, 1)
        self.assertEqual(installed_interceptor_count(), 0)

    async def test_token_from_worker_thread(self) -> None:
        async def host_traffic() -> None:
            await asyncio.sleep(0.02)
            await asyncio.to_thread(self.session.request, "GET", API_CALL)

        token, _ = await asyncio.gather(
            self.acquirer.acquire(_bare_page(), 2000),
            host_traffic(),
        )
        self.assertEqual(token, TOKEN)

    async def test_first_token_wins(self) -> None:
        second = "ffffffffffffffff"
        loop = asyncio.get_running_loop()

        def burst() -> None:
            self.session.request("GET", API_CALL)
            self.session.request(
                "GET", f"https://api.digikala.com/v1/?_rch={second}"
            )

        loop.call_later(0.01, burst)
        self.assertEqual(
            await self.acquirer.acquire(_bare_page(), 2000), TOKEN
        )

    async def test_timeout_resolves_none(self) -> None:
        """No token anywhere: None after roughly timeout_ms."""
        started = time.monotonic()
        token = await self.acquirer.acquire(_bare_page(), 100)
        elapsed = time.monotonic() - started
        self.assertIsNone(token)
        self.assertGreaterEqual(elapsed, 0.09)
        self.assertLess(elapsed, 1.0)
        self.assertEqual(installed_interceptor_count(), 0)

    async def test_late_token_is_discarded(self) -> None:
        self.assertIsNone(await self.acquirer.acquire(_bare_page(), 20))
        # Host traffic after the race is forwarded and ignored
        self.assertEqual(
            self.session.request("GET", API_CALL), "response:1"
        )

    async def test_without_observer_returns_none(self) -> None:
        acquirer = TokenAcquirer()
        started = time.monotonic()
        self.assertIsNone(await acquirer.acquire(_bare_page(), 5000))
        self.assertLess(time.monotonic() - started, 1.0)


if __name__ == "__main__":
    unittest.main()
