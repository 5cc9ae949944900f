# dkprice/models/product.py

"""Product identity and the canonical pricing record."""

import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs, urlparse

from dkprice.config.settings import Settings

_PRODUCT_SEGMENT_RE = re.compile(r"dkp-(\d+)")
_DIGITS_RE = re.compile(r"^\d+$")


@dataclass(frozen=True)
class ProductIdentity:
    """Which product (and optionally which variant) a page describes."""

    product_id: str
    variant_id: str | None = None

    def __post_init__(self) -> None:
        if not self.product_id:
            msg = "product_id must be non-empty"
            raise ValueError(msg)

    @classmethod
    def from_url(cls, url: str) -> "ProductIdentity":
        """Parse ``/product/dkp-<digits>/...?variant_id=<digits>`` URLs.

        Raises ``ValueError`` when the URL has no product segment.
        """
        match = _PRODUCT_SEGMENT_RE.search(urlparse(url).path)
        if not match:
            msg = f"No dkp-<id> segment in URL: {url}"
            raise ValueError(msg)

        query = parse_qs(urlparse(url).query)
        variant_id: str | None = None
        for value in query.get(Settings.VARIANT_PARAM, []):
            if _DIGITS_RE.match(value):
                variant_id = value
                break
        return cls(product_id=match.group(1), variant_id=variant_id)


@dataclass(frozen=True)
class CanonicalProductRecord:
    """Normalised pricing facts produced by exactly one extractor.

    Prices are integers in the minor currency unit (Rial).
    """

    product_id: str
    variant_id: str | None
    title: str
    price: int
    list_price: int
    seller_name: str
    is_active: bool
    token: str | None = None
    source: str = ""

    def to_ingest_payload(self) -> dict[str, Any]:
        """Serialise to the backend ingest wire format."""
        return {
            "dkp_id": self.product_id,
            "variant_id": self.variant_id,
            "title": self.title,
            "price": self.price,
            "rrp_price": self.list_price,
            "seller_name": self.seller_name,
            "is_active": self.is_active,
            "rch_token": self.token,
        }
