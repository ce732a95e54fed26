"""
Catalog Pipeline Configuration

Site constants and extraction thresholds. Every value can be overridden
through an environment variable so the same code runs against other
locales or a staging host without edits.

Environment variables:
  CATALOG_SITE_URL: Canonical site origin used to absolutize product URLs
  CATALOG_STATIC_HOST: Static-asset host used for site-root image paths
  CATALOG_DEFAULT_CURRENCY: Currency used when a record carries none (default: GBP)
  CATALOG_DEFAULT_LOCALE: Locale used when none can be read from the page URL
  CATALOG_TARGET_COUNT: Default number of products wanted per run (default: 20)
  CATALOG_MAX_SEARCH_DEPTH: Depth bound for the candidate tree search (default: 10)
  CATALOG_MEDIA_ID_THRESHOLD: Integer ids below this with no name are media formats (default: 100)
  CATALOG_MIN_ID_LENGTH: Shortest product id accepted (default: 4)
"""

import os

# --- Site ---

SITE_URL = os.getenv("CATALOG_SITE_URL", "https://www.zara.com")
STATIC_ASSET_HOST = os.getenv("CATALOG_STATIC_HOST", "https://static.zara.net")
DEFAULT_LOCALE = os.getenv("CATALOG_DEFAULT_LOCALE", "uk/en")
DEFAULT_CURRENCY = os.getenv("CATALOG_DEFAULT_CURRENCY", "GBP")

# Same-origin category endpoint the page itself calls
API_PATH_TEMPLATE = "/{locale}/category/{category_id}/products?ajax=true"

# --- Extraction thresholds ---

DEFAULT_TARGET_COUNT = int(os.getenv("CATALOG_TARGET_COUNT", "20"))
MAX_SEARCH_DEPTH = int(os.getenv("CATALOG_MAX_SEARCH_DEPTH", "10"))

# Image-format enumerations look like {"id": 2, "format": "..."}; real
# products never carry an integer id this small.
MEDIA_FORMAT_ID_THRESHOLD = int(os.getenv("CATALOG_MEDIA_ID_THRESHOLD", "100"))
MIN_ID_LENGTH = int(os.getenv("CATALOG_MIN_ID_LENGTH", "4"))

# Integer prices above this are minor units (pence, cents)
MINOR_UNIT_PRICE_THRESHOLD = 100

# --- Block detection ---

BLOCKED_TITLE_MARKERS = ("Access Denied", "Blocked", "403")
