# dkprice/scrapers/api_extractor.py

"""Product API extraction using a recovered ``_rch`` token."""

import asyncio
import logging
from typing import Any
from urllib.parse import urlencode

from curl_cffi import requests as curl_requests

from dkprice.config.settings import Settings
from dkprice.models.product import CanonicalProductRecord, ProductIdentity


class ApiExtractor:
    """Calls ``/v2/product/{id}/`` and maps the default variant.

    Every failure (transport, HTTP status, envelope status, missing
    product) is logged and returns None.  There are no retries: a
    rejected token is not re-acquired within a run.
    """

    def __init__(
        self, session: curl_requests.Session | None = None,
    ) -> None:
        self.logger = logging.getLogger("dkprice.api")
        self.settings = Settings()
        self.session = session or curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )

    def build_url(self, identity: ProductIdentity, token: str) -> str:
        """Product API URL with the token and optional variant."""
        params: dict[str, str] = {self.settings.TOKEN_PARAM: token}
        if identity.variant_id:
            params[self.settings.VARIANT_PARAM] = identity.variant_id
        base = self.settings.PRODUCT_API_URL.format(
            product_id=identity.product_id
        )
        return f"{base}?{urlencode(params)}"

    def _fetch(self, url: str) -> dict[str, Any] | None:
        """Single GET; decoded JSON body or None."""
        try:
            resp = self.session.get(
                url,
                headers={
                    **self.settings.API_HEADERS,
                    "Origin": f"https://{self.settings.SITE_HOST}",
                    "Referer": f"https://{self.settings.SITE_HOST}/",
                },
                timeout=self.settings.REQUEST_TIMEOUT,
            )
        except Exception as exc:
            self.logger.warning(
                "Product API request failed: %s", exc, exc_info=True,
            )
            return None

        if resp.status_code != 200:
            self.logger.warning(
                "Product API returned HTTP %d", resp.status_code,
            )
            return None
        try:
            data: Any = resp.json()
        except ValueError as exc:
            self.logger.warning("Product API sent non-JSON body: %s", exc)
            return None
        return data if isinstance(data, dict) else None

    def parse_response(
        self,
        data: dict[str, Any],
        identity: ProductIdentity,
        token: str | None,
    ) -> CanonicalProductRecord | None:
        """Map a success envelope to a record; None for anything else."""
        if data.get("status") != self.settings.API_SUCCESS_STATUS:
            self.logger.warning(
                "Product API envelope status %r", data.get("status"),
            )
            return None
        body = data.get("data")
        product = body.get("product") if isinstance(body, dict) else None
        if not isinstance(product, dict) or not product:
            self.logger.warning("Product API response has no product")
            return None

        # The API sends [] instead of {} when nothing is purchasable
        variant: Any = product.get("default_variant")
        if not isinstance(variant, dict):
            variant = {}
        price_info: Any = variant.get("price")
        if not isinstance(price_info, dict):
            price_info = {}
        seller: Any = variant.get("seller")
        if not isinstance(seller, dict):
            seller = {}

        list_price = int(price_info.get("rrp_price") or 0)
        price = int(price_info.get("selling_price") or list_price)

        variant_id = identity.variant_id
        if not variant_id and variant.get("id") is not None:
            variant_id = str(variant["id"])

        return CanonicalProductRecord(
            product_id=identity.product_id,
            variant_id=variant_id or None,
            title=str(
                product.get("title_fa") or product.get("title_en") or ""
            ),
            price=price,
            list_price=list_price,
            seller_name=str(
                seller.get("title") or self.settings.DEFAULT_SELLER_NAME
            ),
            is_active=(
                product.get("status") == self.settings.MARKETABLE_STATUS
            ),
            token=token,
            source="api",
        )

    async def extract(
        self,
        identity: ProductIdentity,
        token: str,
    ) -> CanonicalProductRecord | None:
        """Fetch and map the product; None on any failure."""
        url = self.build_url(identity, token)
        self.logger.info(
            "Fetching product %s (variant %s) from API",
            identity.product_id,
            identity.variant_id,
        )
        data = await asyncio.to_thread(self._fetch, url)
        if data is None:
            return None
        try:
            return self.parse_response(data, identity, token)
        except (TypeError, ValueError) as exc:
            self.logger.warning(
                "Unexpected product API shape: %s", exc, exc_info=True,
            )
            return None
