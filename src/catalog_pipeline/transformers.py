"""Product Normalization Module

Converts raw product candidates located in the site's JSON into canonical
``NormalizedProduct`` records using the Field Extractor Rules.

Key responsibilities:
  - Pick the record layer that actually carries the product fields
    (some schema versions wrap it under detail/item/product)
  - Apply the per-field rule tables
  - Reject candidates without a usable id or name
  - Never let one malformed candidate abort the rest of the batch
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from . import config
from .field_rules import (
    AVAILABILITY_RULES,
    CATEGORY_RULES,
    COLOR_RULES,
    CURRENCY_RULES,
    ID_RULES,
    IMAGE_RULES,
    NAME_RULES,
    PRICE_RULES,
    REFERENCE_RULES,
    SUBCATEGORY_RULES,
    URL_RULES,
    apply_rules,
)
from .models import ExtractionContext, NormalizedProduct

logger = logging.getLogger(__name__)

WRAPPER_KEYS = ("detail", "item", "product")


def candidate_ref(candidate: Any) -> Any:
    """Short identifier for log messages."""
    if not isinstance(candidate, dict):
        return type(candidate).__name__
    for name in ("id", "productId", "reference", "@id"):
        if candidate.get(name) is not None:
            return candidate[name]
    for name in WRAPPER_KEYS:
        inner = candidate.get(name)
        if isinstance(inner, dict):
            return candidate_ref(inner)
    return None


def select_record_layers(
    candidate: Dict[str, Any],
    context: ExtractionContext,
) -> List[Dict[str, Any]]:
    """
    Order the record layers fields are read from.

    If the candidate carries an id and a name itself it is the primary
    layer and its first nested wrapper is kept as a secondary layer.
    Otherwise the first of detail/item/product becomes primary and the
    outer candidate is kept as secondary, so fields only present on the
    wrapper are still found.
    """
    nested = [
        candidate[name] for name in WRAPPER_KEYS if isinstance(candidate.get(name), dict)
    ]

    identified = (
        apply_rules(ID_RULES, [candidate], context) is not None
        and apply_rules(NAME_RULES, [candidate], context) is not None
    )
    if identified or not nested:
        return [candidate, *nested[:1]]

    return [nested[0], candidate]


def to_normalized_product(
    candidate: Any,
    context: ExtractionContext,
    min_id_length: int = config.MIN_ID_LENGTH,
    default_currency: str = config.DEFAULT_CURRENCY,
) -> Optional[NormalizedProduct]:
    """
    Convert one raw candidate into a NormalizedProduct.

    Returns None (never raises) when the candidate is not an object, has
    no id of at least ``min_id_length`` characters, has no name, or blows
    up while its fields are read.
    """
    if not isinstance(candidate, dict):
        logger.debug(
            "to_normalized_product: rejecting non-object candidate of type %s",
            type(candidate).__name__,
        )
        return None

    try:
        layers = select_record_layers(candidate, context)

        product_id = apply_rules(ID_RULES, layers, context)
        if not product_id or len(product_id) < min_id_length:
            logger.debug(
                "to_normalized_product: rejecting candidate due to missing/short id. raw_id=%r",
                candidate_ref(candidate),
            )
            return None

        name = apply_rules(NAME_RULES, layers, context)
        if not name:
            logger.debug(
                "to_normalized_product: rejecting candidate due to missing name. raw_id=%r",
                candidate_ref(candidate),
            )
            return None

        return NormalizedProduct(
            product_id=product_id,
            name=name,
            price=apply_rules(PRICE_RULES, layers, context),
            currency=apply_rules(CURRENCY_RULES, layers, context) or default_currency,
            image_url=apply_rules(IMAGE_RULES, layers, context),
            product_url=apply_rules(URL_RULES, layers, context),
            availability=apply_rules(AVAILABILITY_RULES, layers, context),
            category=apply_rules(CATEGORY_RULES, layers, context),
            subcategory=apply_rules(SUBCATEGORY_RULES, layers, context),
            colors=apply_rules(COLOR_RULES, layers, context),
            reference=apply_rules(REFERENCE_RULES, layers, context),
        )
    except Exception:
        logger.warning(
            "to_normalized_product: dropping malformed candidate. raw_id=%r",
            candidate_ref(candidate),
            exc_info=True,
        )
        return None


def normalize_candidates(
    candidates: Iterable[Any],
    context: ExtractionContext,
    min_id_length: int = config.MIN_ID_LENGTH,
    default_currency: str = config.DEFAULT_CURRENCY,
) -> List[NormalizedProduct]:
    """Normalize a batch, preserving discovery order and dropping rejects."""
    products: List[NormalizedProduct] = []
    skipped_count = 0

    for candidate in candidates:
        product = to_normalized_product(
            candidate,
            context,
            min_id_length=min_id_length,
            default_currency=default_currency,
        )
        if product is None:
            skipped_count += 1
            continue
        products.append(product)

    logger.debug(
        "Normalized candidates (success=%d, skipped=%d)",
        len(products),
        skipped_count,
    )
    return products
