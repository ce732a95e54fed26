"""Data Models Module

Defines Pydantic models for the values flowing through the catalog
pipeline: the per-page extraction context, the raw sources handed over by
the browser-automation layer, the canonical product record, and the
results reported back to the caller.
"""

from enum import Enum
from typing import Any, Callable, List, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, PositiveInt


class SourceName(str, Enum):
    """Where a batch of raw product data came from, in priority order."""
    EMBEDDED_STATE = "embedded_state"
    INTERNAL_API = "internal_api"
    STRUCTURED_MARKUP = "structured_markup"


class ResolutionOutcome(str, Enum):
    FOUND = "found"
    NO_PRODUCTS_FOUND = "no_products_found"
    # Target already met before this page was resolved
    QUOTA_REACHED = "quota_reached"


class ExtractionContext(BaseModel):
    """Immutable per-page-visit context.

    Supplied by the automation layer and only ever read by the pipeline.
    """
    model_config = ConfigDict(frozen=True)

    locale: str
    base_url: str
    category_id: Optional[str] = None
    target_count: PositiveInt

    @property
    def locale_prefix(self) -> str:
        """'/uk/en' for locale 'uk/en', '' when no locale is known."""
        locale = self.locale.strip("/")
        return f"/{locale}" if locale else ""

    @property
    def site_origin(self) -> str:
        """Scheme and host of base_url, e.g. 'https://www.zara.com'."""
        parts = urlsplit(self.base_url)
        if parts.scheme and parts.netloc:
            return f"{parts.scheme}://{parts.netloc}"
        return self.base_url.rstrip("/")


class NormalizedProduct(BaseModel):
    """Canonical catalog record.

    Only emitted when product_id and name are both non-empty; every other
    field degrades to None instead of blocking emission.
    """
    product_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    price: Optional[float] = None
    currency: str
    image_url: Optional[str] = None
    product_url: Optional[str] = None
    availability: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    colors: Optional[List[str]] = None
    reference: Optional[str] = None


class ApiResponse(BaseModel):
    """Result of the same-origin category API fetch.

    status is None when the request never completed; error carries the
    transport failure message in that case.
    """
    status: Optional[int] = None
    body: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return (
            self.status is not None
            and 200 <= self.status < 300
            and self.body is not None
        )


class PageSources(BaseModel):
    """Raw inputs gathered during one page visit.

    fetch_api is called lazily with the category id, and only when the
    resolver decides the API is needed. It may return an ApiResponse or
    a bare JSON body (taken as a 200).
    """
    embedded_state: Any = None
    fetch_api: Optional[Callable[[str], Any]] = None
    structured_markup: Any = None


class ResolutionResult(BaseModel):
    products: List[NormalizedProduct] = []
    outcome: ResolutionOutcome = ResolutionOutcome.NO_PRODUCTS_FOUND
    attempted: List[SourceName] = []
    sources_used: List[SourceName] = []
    api_status: Optional[int] = None
    merged: bool = False


class PageResult(BaseModel):
    """What the persistence layer receives for one page visit."""
    accepted: List[NormalizedProduct] = []
    saved_count: int
    target_count: int
    outcome: ResolutionOutcome
    resolution: ResolutionResult

    @property
    def needs_more(self) -> bool:
        return self.saved_count < self.target_count
