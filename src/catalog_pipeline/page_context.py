"""Page Context Helpers

Small helpers the browser-automation layer uses around a page visit:
deriving the ExtractionContext from the page URL and embedded state,
building the internal category API URL, and telling an anti-bot block
apart from an empty category by the page title.
"""

from typing import Any, Optional
from urllib.parse import urlsplit

from . import config
from .field_rules import dig, to_text
from .models import ExtractionContext

# Where the page-load state has carried the category id across releases
CATEGORY_ID_PATHS = (
    ("viewPayload", "category", "id"),
    ("viewPayload", "productFilters", "categoryId"),
    ("appConfig", "categoryId"),
    ("category", "id"),
    ("productFilters", "categoryId"),
)

# The global is sometimes captured as window.zara itself, sometimes as window
STATE_WRAPPER_KEY = "zara"


def locale_from_url(url: str, default: str = config.DEFAULT_LOCALE) -> str:
    """First two path segments of a page URL, e.g. '/uk/en/man-l1.html' -> 'uk/en'."""
    segments = [s for s in urlsplit(url or "").path.split("/") if s]
    if len(segments) >= 2 and not any("." in s for s in segments[:2]):
        return "/".join(segments[:2])
    return default


def extract_category_id(embedded_state: Any) -> Optional[str]:
    """Category id from the embedded page state, or None."""
    if not isinstance(embedded_state, dict):
        return None

    roots = [embedded_state]
    if isinstance(embedded_state.get(STATE_WRAPPER_KEY), dict):
        roots.insert(0, embedded_state[STATE_WRAPPER_KEY])

    for root in roots:
        for path in CATEGORY_ID_PATHS:
            category_id = to_text(dig(root, *path))
            if category_id:
                return category_id
    return None


def build_api_url(context: ExtractionContext) -> str:
    """Same-origin category endpoint for the context's locale and category."""
    if not context.category_id:
        raise ValueError("build_api_url requires a category_id")
    return context.site_origin + config.API_PATH_TEMPLATE.format(
        locale=context.locale.strip("/"),
        category_id=context.category_id,
    )


def context_from_page(
    page_url: str,
    embedded_state: Any = None,
    target_count: int = config.DEFAULT_TARGET_COUNT,
    base_url: str = config.SITE_URL,
    category_id: Optional[str] = None,
    locale: Optional[str] = None,
) -> ExtractionContext:
    """Build the ExtractionContext for one page visit.

    Explicit arguments win; otherwise locale comes from the page URL and
    the category id from the embedded state.
    """
    return ExtractionContext(
        locale=locale or locale_from_url(page_url),
        base_url=base_url,
        category_id=category_id or extract_category_id(embedded_state),
        target_count=target_count,
    )


def is_blocked_title(title: Optional[str]) -> bool:
    """True when the page title looks like an anti-bot interstitial."""
    if not title:
        return False
    return any(marker in title for marker in config.BLOCKED_TITLE_MARKERS)
