# dkprice/storage/backend_client.py

"""HTTP client for the price-history backend."""

import logging
from typing import Any
from urllib.parse import quote

from curl_cffi import requests as curl_requests

from dkprice.config.settings import Settings
from dkprice.models.product import CanonicalProductRecord

logger = logging.getLogger("dkprice.backend")


class BackendError(Exception):
    """The backend rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BackendClient:
    """Forwards records to the backend and reads price history back."""

    def __init__(
        self,
        base_url: str | None = None,
        session: curl_requests.Session | None = None,
    ) -> None:
        self.base_url = (base_url or Settings.BACKEND_URL).rstrip("/")
        self.session = session or curl_requests.Session()
        self.timeout = Settings.BACKEND_TIMEOUT

    def _check(self, resp: curl_requests.Response, action: str) -> Any:
        if not 200 <= resp.status_code < 300:
            raise BackendError(
                f"{action} failed: {resp.status_code} {resp.text}",
                status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise BackendError(f"{action} returned invalid JSON") from exc

    def ingest(self, record: CanonicalProductRecord) -> dict[str, Any]:
        """POST one record to ``/api/v1/products/ingest``."""
        url = f"{self.base_url}/api/v1/products/ingest"
        logger.info("Sending product %s to backend", record.product_id)
        try:
            resp = self.session.post(
                url,
                json=record.to_ingest_payload(),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except Exception as exc:
            raise BackendError(f"Ingest request failed: {exc}") from exc
        result: dict[str, Any] = self._check(resp, "Ingest")
        return result

    def fetch_history(
        self,
        product_id: str,
        variant_id: str | None = None,
    ) -> dict[str, Any]:
        """GET the raw history payload for a product (or one variant)."""
        url = (
            f"{self.base_url}/api/v1/products/"
            f"{quote(product_id, safe='')}/history"
        )
        params = {"variant_id": variant_id} if variant_id else None
        try:
            resp = self.session.get(
                url, params=params, timeout=self.timeout,
            )
        except Exception as exc:
            raise BackendError(f"History request failed: {exc}") from exc
        result: dict[str, Any] = self._check(resp, "History")
        return result
