# dkprice/scrapers/page_loader.py

"""Fetch product pages and freeze them into inspectable snapshots."""

import json
import logging
import re
import time
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any

import cloudscraper  # type: ignore[import-untyped]
from bs4 import BeautifulSoup
from curl_cffi import requests as curl_requests

from dkprice.config.settings import Settings

_WINDOW_ASSIGN_RE = re.compile(r"window\.([A-Za-z_$][\w$]*)\s*=\s*")


@dataclass(frozen=True)
class ProductPage:
    """A rendered product page as the extractors see it.

    ``runtime_state`` holds page-global objects (``window.<name>``).  A
    browser driver can hand these over directly; :class:`PageLoader`
    recovers them from inline ``window.x = {...};`` assignments.
    """

    url: str
    html: str
    runtime_state: dict[str, Any] = field(
        default_factory=lambda: dict[str, Any]()
    )

    @cached_property
    def soup(self) -> BeautifulSoup:
        """Parsed document, built on first access."""
        return BeautifulSoup(self.html, "lxml")


def harvest_window_state(soup: BeautifulSoup) -> dict[str, Any]:
    """Collect JSON objects assigned to ``window.<name>`` in inline scripts."""
    decoder = json.JSONDecoder()
    state: dict[str, Any] = {}
    for script in soup.find_all("script"):
        text = script.string or ""
        for match in _WINDOW_ASSIGN_RE.finditer(text):
            try:
                value, _end = decoder.raw_decode(text, match.end())
            except json.JSONDecodeError:
                continue
            state.setdefault(match.group(1), value)
    return state


class PageLoader:
    """Loads product pages with browser-impersonating TLS.

    curl_cffi is tried first with retries and adaptive delay; when every
    attempt fails, a single cloudscraper request is made.
    """

    # Cloudflare / ArvanCloud challenge page markers
    _CHALLENGE_MARKERS: list[str] = [
        "challenges.cloudflare.com",
        "cdn-cgi/challenge-platform",
        "just a moment",
        "cf-turnstile",
        "arvancloud",
        "__arcsjs",
    ]

    def __init__(
        self, session: curl_requests.Session | None = None,
    ) -> None:
        self.logger = logging.getLogger("dkprice.page_loader")
        self.settings = Settings()
        self.session = session or curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        self._current_delay: float = self.settings.REQUEST_DELAY

    def _is_challenge(self, text: str) -> bool:
        """Return True if *text* looks like an anti-bot interstitial."""
        lower = text.lower()
        for marker in self._CHALLENGE_MARKERS:
            if marker in lower:
                self.logger.warning(
                    "Challenge page detected (marker: '%s')", marker,
                )
                return True
        if "<h1" in lower or len(text) > 5000:
            return False
        return any(k in lower for k in self.settings.CAPTCHA_KEYWORDS)

    def _escalate_delay(self) -> None:
        """Double the current delay up to the configured max."""
        max_delay = (
            self.settings.REQUEST_DELAY
            * self.settings.MAX_DELAY_MULTIPLIER
        )
        self._current_delay = min(self._current_delay * 2, max_delay)
        self.logger.warning(
            "Blocked, delay escalated to %.1fs", self._current_delay,
        )

    def _fetch_html(self, url: str) -> str | None:
        """GET with retries and adaptive delay; HTML text or None."""
        headers = {
            **self.settings.DEFAULT_HEADERS,
            "Referer": f"https://{self.settings.SITE_HOST}/",
        }
        for attempt in range(self.settings.MAX_RETRIES):
            try:
                resp = self.session.get(
                    url,
                    headers=headers,
                    timeout=self.settings.REQUEST_TIMEOUT,
                )
                if resp.status_code == 200:
                    if self._is_challenge(resp.text):
                        self._escalate_delay()
                        time.sleep(self._current_delay)
                        continue
                    self._current_delay = self.settings.REQUEST_DELAY
                    return resp.text
                self.logger.warning(
                    "HTTP %d on attempt %d for %s",
                    resp.status_code,
                    attempt + 1,
                    url,
                )
                if resp.status_code in (429, 403):
                    self._escalate_delay()
                    time.sleep(self._current_delay)
            except Exception as exc:
                self.logger.warning(
                    "Request error on attempt %d: %s",
                    attempt + 1,
                    exc,
                    exc_info=True,
                )
                time.sleep(self._current_delay * (attempt + 1))
        return None

    def _fetch_cloudscraper(self, url: str) -> str | None:
        """One-shot fetch through cloudscraper's JS challenge solver."""
        try:
            _cs: Any = cloudscraper
            scraper: Any = _cs.create_scraper()
            resp: Any = scraper.get(
                url,
                headers=self.settings.DEFAULT_HEADERS,
                timeout=self.settings.REQUEST_TIMEOUT,
            )
            if resp.status_code == 200:
                return str(resp.text)
            self.logger.warning(
                "cloudscraper HTTP %d for %s", resp.status_code, url,
            )
        except Exception as exc:
            self.logger.error(
                "cloudscraper fallback failed: %s", exc, exc_info=True,
            )
        return None

    def load(self, url: str) -> ProductPage | None:
        """Fetch *url* and snapshot it, or None if every fetch failed."""
        html = self._fetch_html(url)
        if html is None:
            self.logger.info(
                "curl_cffi exhausted, falling back to cloudscraper",
            )
            html = self._fetch_cloudscraper(url)
        if html is None:
            self.logger.warning("Could not load product page %s", url)
            return None

        page = ProductPage(url=url, html=html)
        page.runtime_state.update(harvest_window_state(page.soup))
        self.logger.debug(
            "Loaded %s (%d bytes, globals: %s)",
            url,
            len(html),
            sorted(page.runtime_state),
        )
        return page
