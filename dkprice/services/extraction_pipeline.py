# dkprice/services/extraction_pipeline.py

"""Token -> API -> DOM extraction for one product page."""

import logging

from dkprice.models.product import CanonicalProductRecord, ProductIdentity
from dkprice.scrapers.api_extractor import ApiExtractor
from dkprice.scrapers.dom_extractor import DomExtractor
from dkprice.scrapers.page_loader import ProductPage
from dkprice.scrapers.token_acquirer import TokenAcquirer

logger = logging.getLogger("dkprice.pipeline")


class ExtractionPipeline:
    """Runs the fallback chain against a single loaded page.

    No stage failure is fatal.  ``run()`` returns None only when both
    extractors came up empty, which callers show as "no data yet".
    """

    def __init__(
        self,
        page: ProductPage,
        acquirer: TokenAcquirer | None = None,
        api_extractor: ApiExtractor | None = None,
        dom_extractor: DomExtractor | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        self.page = page
        self.acquirer = acquirer or TokenAcquirer()
        self.api_extractor = api_extractor or ApiExtractor()
        self.dom_extractor = dom_extractor or DomExtractor()
        self.timeout_ms = timeout_ms

    async def run(
        self, identity: ProductIdentity | None = None,
    ) -> CanonicalProductRecord | None:
        """Produce one canonical record for *identity* (default: page URL)."""
        identity = identity or ProductIdentity.from_url(self.page.url)
        logger.info(
            "Extracting product %s (variant %s)",
            identity.product_id,
            identity.variant_id,
        )

        token = await self.acquirer.acquire(self.page, self.timeout_ms)
        if token is not None:
            record = await self.api_extractor.extract(identity, token)
            if record is not None:
                return record
            logger.info("API extraction failed, falling back to DOM")
        else:
            logger.info("No token acquired, skipping API extraction")

        return self.dom_extractor.extract(self.page, identity, token)
