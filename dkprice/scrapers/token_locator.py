# dkprice/scrapers/token_locator.py

"""Find the ``_rch`` anti-automation token in static page state."""

import json
import logging
import re
from typing import Any
from urllib.parse import parse_qs, urlparse

from dkprice.config.settings import Settings
from dkprice.scrapers.page_loader import ProductPage
from dkprice.scrapers.strategy import ExtractionStrategy, first_result

TOKEN_RE = re.compile(r"^[a-f0-9]{12,}$", re.IGNORECASE)

# _rch, then quotes/colons/equals/space, then 12+ hex chars ending at a
# word boundary so "abcdef123456zz" is not truncated into a match.
_SCRIPT_TOKEN_RE = re.compile(
    r"_rch['\":=\s]+['\"]?([a-f0-9]{12,})\b", re.IGNORECASE
)

logger = logging.getLogger("dkprice.token_locator")


def is_valid_token(value: Any) -> bool:
    """True if *value* is a hex string of at least 12 characters."""
    return isinstance(value, str) and bool(TOKEN_RE.match(value))


def token_from_url(url: str) -> str | None:
    """Return the ``_rch`` query parameter of *url* if it is well formed."""
    query = parse_qs(urlparse(url).query)
    for value in query.get(Settings.TOKEN_PARAM, []):
        if is_valid_token(value):
            return value
    return None


def _token_from_next_data(data: Any) -> str | None:
    """Read ``query._rch`` from a Next.js data payload."""
    if not isinstance(data, dict):
        return None
    query = data.get("query")
    if not isinstance(query, dict):
        return None
    value = query.get(Settings.TOKEN_PARAM)
    return value if is_valid_token(value) else None


class UrlQueryToken(ExtractionStrategy[ProductPage, str]):
    """The page's own address sometimes carries ``?_rch=``."""

    name = "url_query"

    def attempt(self, context: ProductPage) -> str | None:
        return token_from_url(context.url)


class NextDataScriptToken(ExtractionStrategy[ProductPage, str]):
    """``<script id="__NEXT_DATA__">`` holds the request query."""

    name = "next_data_script"

    def attempt(self, context: ProductPage) -> str | None:
        script = context.soup.find(
            "script", id=Settings.NEXT_DATA_KEY
        )
        if script is None or not script.string:
            return None
        return _token_from_next_data(json.loads(script.string))


class InlineScriptToken(ExtractionStrategy[ProductPage, str]):
    """First labelled ``_rch`` assignment across inline scripts."""

    name = "inline_script"

    def attempt(self, context: ProductPage) -> str | None:
        for script in context.soup.find_all("script"):
            match = _SCRIPT_TOKEN_RE.search(script.string or "")
            if match:
                return match.group(1)
        return None


class RuntimeStateToken(ExtractionStrategy[ProductPage, str]):
    """``window.__NEXT_DATA__.query._rch`` from the page globals."""

    name = "runtime_state"

    def attempt(self, context: ProductPage) -> str | None:
        return _token_from_next_data(
            context.runtime_state.get(Settings.NEXT_DATA_KEY)
        )


class TokenLocator:
    """Synchronous, side-effect-free token lookup over a page snapshot."""

    def __init__(
        self,
        strategies: list[ExtractionStrategy[ProductPage, str]] | None = None,
    ) -> None:
        self.strategies = strategies or [
            UrlQueryToken(),
            NextDataScriptToken(),
            InlineScriptToken(),
            RuntimeStateToken(),
        ]

    def locate(self, page: ProductPage) -> str | None:
        """Return the first token any strategy finds, else None."""
        token = first_result(self.strategies, page, logger)
        if token is None:
            logger.info("No _rch token in static page state")
        return token
