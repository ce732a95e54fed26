"""Source Resolver

Decides which raw source a page's products come from:

    EMBEDDED_STATE -> INTERNAL_API -> STRUCTURED_MARKUP

The embedded state is tried first and is enough on its own when its
not-yet-saved products already cover the remaining quota. Otherwise the internal API is fetched
whenever a category id is known, even after a partial embedded hit, and
the two are merged by product id with the API winning on conflict.
Structured markup is only consulted when both came back empty.
"""

import json
import logging
from typing import AbstractSet, Any, Dict, Iterator, List, Optional, Tuple

from . import config
from .locator import locate_candidates
from .models import (
    ApiResponse,
    ExtractionContext,
    NormalizedProduct,
    PageSources,
    ResolutionOutcome,
    ResolutionResult,
    SourceName,
)
from .page_context import extract_category_id
from .transformers import normalize_candidates

logger = logging.getLogger(__name__)


def dedupe_products(products: List[NormalizedProduct]) -> List[NormalizedProduct]:
    """Drop repeated product ids inside one source, keeping the first occurrence."""
    unique: Dict[str, NormalizedProduct] = {}
    for product in products:
        unique.setdefault(product.product_id, product)
    return list(unique.values())


def merge_by_id(
    base: List[NormalizedProduct],
    override: List[NormalizedProduct],
) -> List[NormalizedProduct]:
    """
    Merge two product lists by product_id.

    Records from ``override`` replace same-id records from ``base`` in
    place; new ids are appended in ``override`` order.
    """
    merged: Dict[str, NormalizedProduct] = {p.product_id: p for p in base}
    for product in override:
        merged[product.product_id] = product
    return list(merged.values())


def iter_item_lists(markup: Any) -> Iterator[List[Any]]:
    """Yield the itemListElement array of every ItemList block in ``markup``.

    Blocks may arrive as parsed JSON, raw JSON text, lists of blocks or
    '@graph' containers.
    """
    if isinstance(markup, str):
        try:
            markup = json.loads(markup)
        except json.JSONDecodeError:
            logger.warning("Skipping structured-data block that is not valid JSON")
            return

    if isinstance(markup, list):
        for block in markup:
            yield from iter_item_lists(block)
        return

    if not isinstance(markup, dict):
        return

    types = markup.get("@type")
    types = types if isinstance(types, list) else [types]
    if "ItemList" in types and isinstance(markup.get("itemListElement"), list):
        yield markup["itemListElement"]

    graph = markup.get("@graph")
    if isinstance(graph, list):
        yield from iter_item_lists(graph)


def _markup_candidates(markup: Any, max_depth: int) -> List[Any]:
    candidates: List[Any] = []
    for elements in iter_item_lists(markup):
        candidates.extend(elements)
    if candidates:
        return candidates
    # No ItemList block: fall back to searching the blocks as plain JSON
    return locate_candidates(markup, max_depth=max_depth)


def _fetch_api(
    sources: PageSources,
    category_id: str,
) -> Tuple[Optional[Any], Optional[int]]:
    """Call the collaborator's API fetcher; (body, status), body None on any failure."""
    try:
        response = sources.fetch_api(category_id)
    except Exception as e:
        logger.warning("API fetch failed for category %s: %s", category_id, e)
        return None, None

    if not isinstance(response, ApiResponse):
        response = ApiResponse(status=200, body=response)

    if not response.ok:
        logger.warning(
            "API fetch failed for category %s: status=%s error=%s",
            category_id,
            response.status,
            response.error,
        )
        return None, response.status

    return response.body, response.status


def resolve_sources(
    sources: PageSources,
    context: ExtractionContext,
    remaining: Optional[int] = None,
    seen_ids: Optional[AbstractSet[str]] = None,
    max_depth: int = config.MAX_SEARCH_DEPTH,
) -> ResolutionResult:
    """
    Resolve one page visit's sources into a list of normalized products.

    Args:
        sources: Raw inputs gathered by the automation layer
        context: Per-page extraction context
        remaining: Products still wanted this run (defaults to target_count)
        seen_ids: Ids already saved by earlier pages; they do not count
            towards covering remaining
        max_depth: Depth bound for the candidate search

    Returns:
        ResolutionResult; outcome is NO_PRODUCTS_FOUND (not an exception)
        when every source came back empty.
    """
    if seen_ids is None:
        seen_ids = frozenset()
    if remaining is None:
        remaining = context.target_count

    result = ResolutionResult()
    products: List[NormalizedProduct] = []

    # ========== EMBEDDED STATE ==========
    if sources.embedded_state is not None:
        result.attempted.append(SourceName.EMBEDDED_STATE)
        candidates = locate_candidates(sources.embedded_state, max_depth=max_depth)
        products = dedupe_products(normalize_candidates(candidates, context))
        logger.info(
            "Embedded state: %d candidates -> %d products",
            len(candidates),
            len(products),
        )
        if products:
            result.sources_used.append(SourceName.EMBEDDED_STATE)
            new_count = sum(1 for p in products if p.product_id not in seen_ids)
            if new_count >= remaining:
                return _finish(result, products)

    # ========== INTERNAL API ==========
    category_id = context.category_id or extract_category_id(sources.embedded_state)
    if category_id and sources.fetch_api is not None:
        result.attempted.append(SourceName.INTERNAL_API)
        logger.info("Fetching via API for category %s", category_id)
        body, result.api_status = _fetch_api(sources, category_id)
        candidates = locate_candidates(body, max_depth=max_depth)
        api_products = dedupe_products(normalize_candidates(candidates, context))
        logger.info(
            "Internal API: %d candidates -> %d products",
            len(candidates),
            len(api_products),
        )
        if api_products:
            result.sources_used.append(SourceName.INTERNAL_API)
            if products:
                products = merge_by_id(products, api_products)
                result.merged = True
                logger.info("Merged embedded and API results: %d products", len(products))
            else:
                products = api_products
    elif products:
        logger.debug("No category id known; keeping partial embedded-state result")

    # ========== STRUCTURED MARKUP ==========
    if not products and sources.structured_markup is not None:
        result.attempted.append(SourceName.STRUCTURED_MARKUP)
        candidates = _markup_candidates(sources.structured_markup, max_depth)
        products = dedupe_products(normalize_candidates(candidates, context))
        logger.info(
            "Structured markup: %d candidates -> %d products",
            len(candidates),
            len(products),
        )
        if products:
            result.sources_used.append(SourceName.STRUCTURED_MARKUP)

    if not products:
        logger.warning("No products found. Possible blocking or changed layout.")

    return _finish(result, products)


def _finish(result: ResolutionResult, products: List[NormalizedProduct]) -> ResolutionResult:
    result.products = products
    result.outcome = (
        ResolutionOutcome.FOUND if products else ResolutionOutcome.NO_PRODUCTS_FOUND
    )
    return result
