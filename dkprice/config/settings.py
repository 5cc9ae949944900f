# dkprice/config/settings.py

"""Central configuration for the dkprice tracker."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the dkprice tracker."""

    # --- Target site ---
    SITE_HOST: str = "www.digikala.com"
    API_HOST: str = "api.digikala.com"
    PRODUCT_API_URL: str = (
        "https://api.digikala.com/v2/product/{product_id}/"
    )
    TOKEN_PARAM: str = "_rch"            # Anti-automation query param
    VARIANT_PARAM: str = "variant_id"
    NEXT_DATA_KEY: str = "__NEXT_DATA__"

    # --- Token acquisition ---
    TOKEN_TIMEOUT_MS: int = int(
        os.getenv("DKPRICE_TOKEN_TIMEOUT_MS", "3000")
    )

    # --- Normalisation ---
    MINOR_UNIT_MULTIPLIER: int = 10     # Toman -> Rial
    MARKETABLE_STATUS: str = "marketable"
    IN_STOCK_AVAILABILITY: str = "https://schema.org/InStock"
    DEFAULT_SELLER_NAME: str = "دیجی‌کالا"
    API_SUCCESS_STATUS: int = 200

    # --- Scraping ---
    REQUEST_DELAY: float = 1.0          # Seconds between page fetches
    REQUEST_TIMEOUT: int = 15           # Seconds before a request times out
    MAX_RETRIES: int = 3                # Retry count on transient failures
    MAX_DELAY_MULTIPLIER: int = 8       # Cap for adaptive backoff
    CAPTCHA_KEYWORDS: list[str] = [
        "captcha",
        "verify you are human",
        "unusual traffic",
        "automated requests",
    ]

    # --- Backend ---
    BACKEND_URL: str = os.getenv(
        "DKPRICE_BACKEND_URL", "http://localhost:8080"
    )
    BACKEND_TIMEOUT: int = 10

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "en-US,en;q=0.9,fa;q=0.8",
        "sec-ch-ua": (
            '"Google Chrome";v="131", '
            '"Chromium";v="131", '
            '"Not_A Brand";v="24"'
        ),
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"Windows"',
        "sec-fetch-dest": "document",
        "sec-fetch-mode": "navigate",
        "sec-fetch-site": "none",
        "sec-fetch-user": "?1",
        "Upgrade-Insecure-Requests": "1",
    }
    API_HEADERS: dict[str, str] = {
        "Accept": "application/json, text/plain, */*",
        "Accept-Language": "en-US,en;q=0.9,fa;q=0.8",
        "sec-fetch-dest": "empty",
        "sec-fetch-mode": "cors",
        "sec-fetch-site": "same-site",
    }

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    SELECTORS_PATH: Path = (
        BASE_DIR / "dkprice" / "config" / "selectors.json"
    )
    LOGS_DIR: Path = BASE_DIR / "logs"
