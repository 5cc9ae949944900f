# dkprice/scrapers/dom_extractor.py

"""Approximate the canonical record from rendered page content."""

import json
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from bs4 import BeautifulSoup, Tag

from dkprice.config.settings import Settings
from dkprice.models.product import CanonicalProductRecord, ProductIdentity
from dkprice.scrapers.page_loader import ProductPage
from dkprice.scrapers.strategy import ExtractionStrategy, first_result

logger = logging.getLogger("dkprice.dom")


def load_selectors() -> dict[str, Any]:
    """Load DOM selector candidates from selectors.json."""
    with open(Settings.SELECTORS_PATH, encoding="utf-8") as f:
        selectors: dict[str, Any] = json.load(f)
    return selectors


def digits_to_minor_units(text: str | None, multiplier: int) -> int | None:
    """``'۱۲۳,۴۵۶ تومان'`` -> ``1234560`` with a multiplier of 10.

    Every non-digit is dropped; Persian and Arabic-Indic digits count as
    digits.  Returns None when no digit is left.
    """
    if not text:
        return None
    digits = "".join(ch for ch in text if ch.isdecimal())
    if not digits:
        return None
    return int(digits) * multiplier


def major_to_minor_units(value: Any, multiplier: int) -> int:
    """Convert a decimal major-unit price (``"12500.5"``) to minor units."""
    try:
        amount = Decimal(str(value)) if value not in (None, "") else Decimal(0)
    except InvalidOperation:
        return 0
    return int(amount * multiplier)


def select_first(soup: BeautifulSoup, candidates: list[str]) -> Tag | None:
    """First element matched by the most specific selector that hits."""
    for selector in candidates:
        element = soup.select_one(selector)
        if element is not None:
            return element
    return None


@dataclass(frozen=True)
class DomContext:
    """Everything a DOM strategy needs for one attempt."""

    page: ProductPage
    identity: ProductIdentity
    token: str | None


class JsonLdProduct(ExtractionStrategy[DomContext, CanonicalProductRecord]):
    """schema.org ``Product`` blocks in ``application/ld+json`` scripts."""

    name = "json_ld"

    def __init__(self, selector: str, multiplier: int) -> None:
        self.selector = selector
        self.multiplier = multiplier

    def _product_blocks(
        self, soup: BeautifulSoup,
    ) -> Iterator[dict[str, Any]]:
        for script in soup.select(self.selector):
            try:
                data: Any = json.loads(script.string or "")
            except (json.JSONDecodeError, TypeError):
                logger.debug("Skipping malformed JSON-LD block")
                continue
            candidates = data if isinstance(data, list) else [data]
            for item in candidates:
                if isinstance(item, dict) and item.get("@type") == "Product":
                    yield item

    @staticmethod
    def _offer(block: dict[str, Any]) -> dict[str, Any]:
        offers: Any = block.get("offers") or {}
        if isinstance(offers, list):
            offers = offers[0] if offers else {}
        return offers if isinstance(offers, dict) else {}

    def attempt(self, context: DomContext) -> CanonicalProductRecord | None:
        for block in self._product_blocks(context.page.soup):
            offers = self._offer(block)
            price = major_to_minor_units(offers.get("price"), self.multiplier)
            if price <= 0:
                logger.debug("JSON-LD product without an offer price")
                continue
            seller: Any = offers.get("seller")
            seller_name = (
                seller.get("name") if isinstance(seller, dict) else None
            )
            return CanonicalProductRecord(
                product_id=context.identity.product_id,
                variant_id=context.identity.variant_id,
                title=str(block.get("name") or ""),
                price=price,
                list_price=price,
                seller_name=str(seller_name or Settings.DEFAULT_SELLER_NAME),
                is_active=(
                    offers.get("availability")
                    == Settings.IN_STOCK_AVAILABILITY
                ),
                token=context.token,
                source=self.name,
            )
        return None


class VisiblePrice(ExtractionStrategy[DomContext, CanonicalProductRecord]):
    """Heading plus price label, located by prioritised selectors.

    A visible price is taken to mean the product is purchasable.
    """

    name = "visible_price"

    def __init__(
        self,
        title_selectors: list[str],
        price_selectors: list[str],
        multiplier: int,
    ) -> None:
        self.title_selectors = title_selectors
        self.price_selectors = price_selectors
        self.multiplier = multiplier

    def attempt(self, context: DomContext) -> CanonicalProductRecord | None:
        soup = context.page.soup
        title_el = select_first(soup, self.title_selectors)
        price_el = select_first(soup, self.price_selectors)
        if title_el is None or price_el is None:
            return None

        price = digits_to_minor_units(price_el.get_text(), self.multiplier)
        if price is None:
            return None
        return CanonicalProductRecord(
            product_id=context.identity.product_id,
            variant_id=context.identity.variant_id,
            title=title_el.get_text(strip=True),
            price=price,
            list_price=price,
            seller_name=Settings.DEFAULT_SELLER_NAME,
            is_active=True,
            token=context.token,
            source=self.name,
        )


class DomExtractor:
    """Synchronous fallback reading only what the page already rendered."""

    def __init__(
        self,
        selectors: dict[str, Any] | None = None,
        multiplier: int | None = None,
    ) -> None:
        selectors = selectors or load_selectors()
        factor = (
            Settings.MINOR_UNIT_MULTIPLIER if multiplier is None
            else multiplier
        )
        self.strategies: list[
            ExtractionStrategy[DomContext, CanonicalProductRecord]
        ] = [
            JsonLdProduct(
                selectors.get(
                    "json_ld", 'script[type="application/ld+json"]'
                ),
                factor,
            ),
            VisiblePrice(
                list(selectors.get("title", ["h1"])),
                list(selectors.get("price", ["[data-selling-price]"])),
                factor,
            ),
        ]

    def extract(
        self,
        page: ProductPage,
        identity: ProductIdentity,
        token: str | None,
    ) -> CanonicalProductRecord | None:
        """Best-effort record from the page, or None."""
        record = first_result(
            self.strategies, DomContext(page, identity, token), logger,
        )
        if record is None:
            logger.warning(
                "Could not extract product %s from DOM",
                identity.product_id,
            )
        return record
