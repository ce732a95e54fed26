"""Candidate Locator

Finds the array of product-like objects inside an arbitrarily nested JSON
payload. Well-known paths are checked first; when none of them hold
products a bounded depth-first traversal tests every array it meets.

Arrays of grouping containers (objects carrying ``elements`` or
``commercialComponents``) are never accepted directly: their children are
concatenated and re-tested one level down, which turns
``productGroups[] -> elements[] -> commercialComponents[]`` into a flat
product list.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Set, Tuple

from . import config

logger = logging.getLogger(__name__)

WELL_KNOWN_PATHS: Tuple[Tuple[str, ...], ...] = (
    ("productGroups",),
    ("products",),
    ("productList",),
    ("category", "products"),
    ("grid", "products"),
    ("viewPayload", "productGroups"),
    ("viewPayload", "products"),
    ("viewPayload", "grid", "products"),
    ("itemListElement",),
)

GROUP_KEYS = ("elements", "commercialComponents")
PRODUCT_ID_KEYS = ("id", "productId")
WRAPPER_KEYS = ("detail", "item", "product")


class ArrayKind(str, Enum):
    PRODUCTS = "products"
    GROUPS = "groups"
    NONE = "none"


def is_media_format(obj: dict, media_id_threshold: int = config.MEDIA_FORMAT_ID_THRESHOLD) -> bool:
    """Small integer id and no name: an image-format enumeration, not a product."""
    ident = obj.get("id")
    return (
        isinstance(ident, int)
        and not isinstance(ident, bool)
        and ident < media_id_threshold
        and not obj.get("name")
    )


def _is_group(obj: Any) -> bool:
    return isinstance(obj, dict) and any(isinstance(obj.get(k), list) for k in GROUP_KEYS)


def classify_array(value: Any, media_id_threshold: int = config.MEDIA_FORMAT_ID_THRESHOLD) -> ArrayKind:
    """Apply the product-array predicate to ``value``.

    Any grouping container in the array makes it a GROUPS level; otherwise
    the first element decides.
    """
    if not isinstance(value, list) or not value:
        return ArrayKind.NONE

    first = value[0]
    if not isinstance(first, dict):
        return ArrayKind.NONE

    # Groups may open with a header or banner element, so look at every entry
    if any(_is_group(element) for element in value):
        return ArrayKind.GROUPS

    if is_media_format(first, media_id_threshold):
        return ArrayKind.NONE

    if any(first.get(k) is not None for k in PRODUCT_ID_KEYS):
        return ArrayKind.PRODUCTS
    if any(isinstance(first.get(k), dict) for k in WRAPPER_KEYS):
        return ArrayKind.PRODUCTS

    return ArrayKind.NONE


def _group_children(groups: List[Any]) -> List[Any]:
    children: List[Any] = []
    for group in groups:
        if not isinstance(group, dict):
            continue
        for name in GROUP_KEYS:
            nested = group.get(name)
            if isinstance(nested, list):
                children.extend(nested)
    return children


@dataclass
class _Traversal:
    max_depth: int
    media_id_threshold: int
    depth_limited: bool = False
    on_path: Set[int] = field(default_factory=set)

    def resolve_array(self, array: List[Any], depth: int) -> Optional[List[Any]]:
        """Products in ``array``, unwrapping grouping levels within the depth bound."""
        while depth <= self.max_depth:
            kind = classify_array(array, self.media_id_threshold)
            if kind is ArrayKind.PRODUCTS:
                return list(array)
            if kind is not ArrayKind.GROUPS:
                return None
            array = _group_children(array)
            depth += 1
        self.depth_limited = True
        return None

    def search(self, node: Any, depth: int, path: str) -> Optional[Tuple[str, List[Any]]]:
        if not isinstance(node, (dict, list)):
            return None
        if depth > self.max_depth:
            self.depth_limited = True
            return None

        marker = id(node)
        if marker in self.on_path:
            logger.debug("Cycle detected at %s; not revisiting", path or "<root>")
            return None

        if isinstance(node, list):
            found = self.resolve_array(node, depth)
            if found:
                return path, found
            children = [(f"{path}[{i}]", child) for i, child in enumerate(node)]
        else:
            children = [
                (f"{path}.{k}" if path else str(k), child) for k, child in node.items()
            ]

        self.on_path.add(marker)
        try:
            for child_path, child in children:
                found = self.search(child, depth + 1, child_path)
                if found is not None:
                    return found
        finally:
            self.on_path.discard(marker)
        return None


def _value_at(payload: Any, path: Tuple[str, ...]) -> Any:
    current = payload
    for step in path:
        if not isinstance(current, dict):
            return None
        current = current.get(step)
    return current


def find_product_array(
    payload: Any,
    max_depth: int = config.MAX_SEARCH_DEPTH,
    media_id_threshold: int = config.MEDIA_FORMAT_ID_THRESHOLD,
) -> Optional[Tuple[str, List[Any]]]:
    """Locate the first product array in ``payload``.

    Returns:
        (path, candidates) for the first match, or None when no array
        satisfies the product-array predicate within ``max_depth``.
    """
    traversal = _Traversal(max_depth=max_depth, media_id_threshold=media_id_threshold)

    if isinstance(payload, list):
        found = traversal.resolve_array(payload, 0)
        if found:
            return "<root>", found

    for path in WELL_KNOWN_PATHS:
        value = _value_at(payload, path)
        if isinstance(value, list):
            found = traversal.resolve_array(value, len(path))
            if found:
                return ".".join(path), found

    traversal.depth_limited = False
    result = traversal.search(payload, 0, "")
    if result is None and traversal.depth_limited:
        logger.warning(
            "Deep search reached max depth %d without finding a product array",
            max_depth,
        )
    return result


def locate_candidates(
    payload: Any,
    max_depth: int = config.MAX_SEARCH_DEPTH,
    media_id_threshold: int = config.MEDIA_FORMAT_ID_THRESHOLD,
) -> List[Any]:
    """Return the raw product candidates in ``payload``, or [] when none are found."""
    if payload is None:
        return []

    result = find_product_array(payload, max_depth=max_depth, media_id_threshold=media_id_threshold)
    if result is None:
        logger.debug("No product array found in payload of type %s", type(payload).__name__)
        return []

    path, candidates = result
    logger.debug("Located %d candidates at %s", len(candidates), path or "<root>")
    return candidates
