"""Field Extractor Rules

The site renames, re-nests and re-units its product fields between
releases and endpoints. Instead of chains of ``a or b or c`` lookups,
each canonical field is described by an ordered tuple of ``FieldRule``
entries. A rule reads one raw location and transforms it; the first rule
producing a non-None value wins.

Rules are evaluated rule-first: rule 1 is tried against every record
layer (e.g. the candidate, then its nested ``detail``) before rule 2 is
tried at all, so a more specific location always beats a generic one.
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from . import config
from .models import ExtractionContext

Record = Dict[str, Any]

# Internal colour/variant suffix, e.g. "495669917-I2024"
VARIANT_SUFFIX_RE = re.compile(r"-I\d+$")
PRICE_TOKEN_RE = re.compile(r"\d[\d.,]*")
SEO_URL_ID_RE = re.compile(r"-p(\d+)\.html")
VIDEO_EXT_RE = re.compile(r"\.(mp4|webm|m3u8|mov)$", re.IGNORECASE)
ABSOLUTE_URL_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")
CAMEL_BOUNDARY_RE = re.compile(r"(?<!^)(?=[A-Z])")

SCHEMA_AVAILABILITY = {
    "instock": "in_stock",
    "outofstock": "out_of_stock",
    "soldout": "out_of_stock",
    "preorder": "pre_order",
    "backorder": "back_order",
    "limitedavailability": "limited_availability",
    "discontinued": "discontinued",
}


@dataclass(frozen=True)
class FieldRule:
    """One location a field may live in, plus how to normalize it."""
    label: str
    read: Callable[[Record, ExtractionContext], Any]
    transform: Callable[[Any, ExtractionContext], Any]


def apply_rules(
    rules: Sequence[FieldRule],
    records: Iterable[Record],
    context: ExtractionContext,
) -> Any:
    """Return the first non-None value produced by ``rules`` over ``records``."""
    layers = [r for r in records if isinstance(r, dict)]
    for rule in rules:
        for record in layers:
            raw = rule.read(record, context)
            if raw is None:
                continue
            value = rule.transform(raw, context)
            if value is not None:
                return value
    return None


# ============================================================================
# Generic helpers
# ============================================================================

def dig(obj: Any, *path: Any) -> Any:
    """Walk dict keys / list indexes, returning None on any miss."""
    current = obj
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or not -len(current) <= step < len(current):
                return None
            current = current[step]
        else:
            if not isinstance(current, dict):
                return None
            current = current.get(step)
        if current is None:
            return None
    return current


def key(*path: Any) -> Callable[[Record, ExtractionContext], Any]:
    """Reader for a fixed path inside the record."""
    def _read(record: Record, context: ExtractionContext) -> Any:
        return dig(record, *path)
    return _read


def first_offer(record: Record) -> Optional[Record]:
    """Structured markup allows ``offers`` to be an object or a list."""
    offers = record.get("offers")
    if isinstance(offers, list):
        offers = offers[0] if offers else None
    return offers if isinstance(offers, dict) else None


def offer_key(name: str) -> Callable[[Record, ExtractionContext], Any]:
    def _read(record: Record, context: ExtractionContext) -> Any:
        offer = first_offer(record)
        return offer.get(name) if offer else None
    return _read


def strip_query(url: str) -> str:
    return url.split("#", 1)[0].split("?", 1)[0]


def absolutize_image_url(url: str, static_host: str = config.STATIC_ASSET_HOST) -> Optional[str]:
    """Absolute https URL with query string and fragment removed."""
    url = url.strip()
    if not url:
        return None
    host = static_host.rstrip("/")
    if url.startswith("//"):
        url = "https:" + url
    elif url.startswith("/"):
        url = host + url
    elif not ABSOLUTE_URL_RE.match(url):
        url = f"{host}/{url}"
    return strip_query(url) or None


def absolutize_product_url(url: str, context: ExtractionContext) -> Optional[str]:
    url = url.strip()
    if not url:
        return None
    if ABSOLUTE_URL_RE.match(url):
        return url
    if url.startswith("//"):
        return "https:" + url
    return f"{context.site_origin}/{url.lstrip('/')}"


# ============================================================================
# Transforms
# ============================================================================

def to_text(raw: Any, context: Optional[ExtractionContext] = None) -> Optional[str]:
    """Non-empty trimmed string; numbers are accepted and stringified."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return str(raw)
    if isinstance(raw, float):
        if not math.isfinite(raw):
            return None
        return str(int(raw)) if raw.is_integer() else str(raw)
    if isinstance(raw, str):
        return raw.strip() or None
    return None


def to_product_id(raw: Any, context: Optional[ExtractionContext] = None) -> Optional[str]:
    text = to_text(raw)
    if text is None:
        return None
    return VARIANT_SUFFIX_RE.sub("", text) or None


def parse_price_text(text: str) -> Optional[float]:
    """First numeric token of a display price, e.g. '£ 1,299.95' -> 1299.95.

    Thousands separators are dropped. When only commas appear and the
    last one is followed by one or two digits it is a decimal comma
    ('29,99 €' -> 29.99).
    """
    match = PRICE_TOKEN_RE.search(text)
    if not match:
        return None
    token = match.group(0).rstrip(".,")
    if "," in token and "." in token:
        if token.rfind(",") > token.rfind("."):
            token = token.replace(".", "").replace(",", ".")
        else:
            token = token.replace(",", "")
    elif "," in token:
        head, _, tail = token.rpartition(",")
        if token.count(",") == 1 and len(tail) in (1, 2):
            token = f"{head}.{tail}"
        else:
            token = token.replace(",", "")
    elif token.count(".") > 1:
        token = token.replace(".", "")
    try:
        value = float(token)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def price_from_number(raw: Any, context: Optional[ExtractionContext] = None) -> Optional[float]:
    """Site integers above 100 are minor units; floats are already major units."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        if raw > config.MINOR_UNIT_PRICE_THRESHOLD:
            return raw / 100
        return float(raw)
    if isinstance(raw, float) and math.isfinite(raw):
        return raw
    return None


def price_from_text(raw: Any, context: Optional[ExtractionContext] = None) -> Optional[float]:
    if isinstance(raw, str):
        return parse_price_text(raw)
    return None


def price_from_value(raw: Any, context: Optional[ExtractionContext] = None) -> Optional[float]:
    return price_from_number(raw) if not isinstance(raw, str) else price_from_text(raw)


def price_from_object(raw: Any, context: Optional[ExtractionContext] = None) -> Optional[float]:
    if not isinstance(raw, dict):
        return None
    for name in ("value", "amount", "formattedPrice"):
        value = price_from_value(raw.get(name))
        if value is not None:
            return value
    return None


def price_from_major(raw: Any, context: Optional[ExtractionContext] = None) -> Optional[float]:
    """Structured-markup prices are always major units."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)) and math.isfinite(raw):
        return float(raw)
    return price_from_text(raw)


def to_currency(raw: Any, context: Optional[ExtractionContext] = None) -> Optional[str]:
    if isinstance(raw, str) and raw.strip():
        return raw.strip().upper()
    return None


def media_url(entry: Any) -> Optional[str]:
    if isinstance(entry, str):
        return entry.strip() or None
    if isinstance(entry, dict):
        for name in ("url", "path", "contentUrl"):
            value = entry.get(name)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


def is_video(entry: Any) -> bool:
    if isinstance(entry, dict):
        for name in ("type", "kind", "mediaType", "@type"):
            value = entry.get(name)
            if isinstance(value, str) and "video" in value.lower():
                return True
    url = media_url(entry)
    return bool(url and VIDEO_EXT_RE.search(strip_query(url)))


def pick_image(raw: Any, context: Optional[ExtractionContext] = None) -> Optional[str]:
    """First non-video media entry, falling back to the first usable one."""
    entries = raw if isinstance(raw, list) else [raw]
    usable = [entry for entry in entries if media_url(entry)]
    if not usable:
        return None
    chosen = next((entry for entry in usable if not is_video(entry)), usable[0])
    return absolutize_image_url(media_url(chosen))


def to_availability(raw: Any, context: Optional[ExtractionContext] = None) -> Optional[str]:
    if not isinstance(raw, str) or not raw.strip():
        return None
    value = raw.strip()
    tail = value.rstrip("/").rsplit("/", 1)[-1]
    mapped = SCHEMA_AVAILABILITY.get(tail.lower())
    if mapped:
        return mapped
    if "/" in value:
        return CAMEL_BOUNDARY_RE.sub("_", tail).lower()
    return value


def from_in_stock(raw: Any, context: Optional[ExtractionContext] = None) -> Optional[str]:
    if isinstance(raw, bool):
        return "in_stock" if raw else "out_of_stock"
    return None


def to_label(raw: Any, context: Optional[ExtractionContext] = None) -> Optional[str]:
    if isinstance(raw, dict):
        raw = raw.get("name")
    return to_text(raw)


def to_color_names(raw: Any, context: Optional[ExtractionContext] = None) -> Optional[List[str]]:
    entries = raw if isinstance(raw, list) else [raw]
    names: List[str] = []
    for entry in entries:
        name = to_label(entry)
        if name and name not in names:
            names.append(name)
    return names or None


# ============================================================================
# URL readers (need the surrounding record, not a single key)
# ============================================================================

def read_seo_path(record: Record, context: ExtractionContext) -> Optional[str]:
    keyword = to_text(dig(record, "seo", "keyword"))
    seo_id = to_text(dig(record, "seo", "seoProductId"))
    if keyword and seo_id:
        return f"{context.locale_prefix}/{keyword}-p{seo_id}.html"
    return None


def read_seo_keyword_path(record: Record, context: ExtractionContext) -> Optional[str]:
    keyword = to_text(dig(record, "seo", "keyword"))
    if keyword:
        return f"{context.locale_prefix}/{keyword}.html"
    return None


def read_generic_path(record: Record, context: ExtractionContext) -> Optional[str]:
    product_id = apply_rules(ID_RULES, [record], context)
    if product_id:
        return f"/product/{product_id}.html"
    return None


def read_id_from_url(record: Record, context: ExtractionContext) -> Optional[str]:
    url = record.get("url")
    if isinstance(url, str):
        match = SEO_URL_ID_RE.search(url)
        if match:
            return match.group(1)
    return None


def _url_transform(raw: Any, context: ExtractionContext) -> Optional[str]:
    text = to_text(raw)
    return absolutize_product_url(text, context) if text else None


# ============================================================================
# Rule tables
# ============================================================================

ID_RULES: Tuple[FieldRule, ...] = (
    FieldRule("id", key("id"), to_product_id),
    FieldRule("productId", key("productId"), to_product_id),
    FieldRule("reference", key("reference"), to_product_id),
    FieldRule("seo.seoProductId", key("seo", "seoProductId"), to_product_id),
    FieldRule("sku", key("sku"), to_product_id),
    FieldRule("productID", key("productID"), to_product_id),
    FieldRule("url:-p<id>.html", read_id_from_url, to_product_id),
)

NAME_RULES: Tuple[FieldRule, ...] = (
    FieldRule("name", key("name"), to_text),
    FieldRule("displayName", key("displayName"), to_text),
    FieldRule("title", key("title"), to_text),
    FieldRule("seo.seoProductId", key("seo", "seoProductId"), to_text),
)

PRICE_RULES: Tuple[FieldRule, ...] = (
    FieldRule("price{}", key("price"), price_from_object),
    FieldRule("price", key("price"), price_from_number),
    FieldRule("price:str", key("price"), price_from_text),
    FieldRule("displayPrice", key("displayPrice"), price_from_value),
    FieldRule("formattedPrice", key("formattedPrice"), price_from_text),
    FieldRule("offers.price", offer_key("price"), price_from_major),
    FieldRule("offers.lowPrice", offer_key("lowPrice"), price_from_major),
)

CURRENCY_RULES: Tuple[FieldRule, ...] = (
    FieldRule("currency", key("currency"), to_currency),
    FieldRule("currencyIso", key("currencyIso"), to_currency),
    FieldRule("price.currency", key("price", "currency"), to_currency),
    FieldRule("price.currencyCode", key("price", "currencyCode"), to_currency),
    FieldRule("offers.priceCurrency", offer_key("priceCurrency"), to_currency),
)

IMAGE_RULES: Tuple[FieldRule, ...] = (
    FieldRule("colors[0].pdpMedia", key("colors", 0, "pdpMedia"), pick_image),
    FieldRule("colors[0].xmedia", key("colors", 0, "xmedia"), pick_image),
    FieldRule("xmedia", key("xmedia"), pick_image),
    FieldRule("image:str", key("image"), lambda raw, ctx: pick_image(raw) if isinstance(raw, str) else None),
    FieldRule("image.url", key("image", "url"), pick_image),
    FieldRule("image[]", key("image"), lambda raw, ctx: pick_image(raw) if isinstance(raw, list) else None),
)

URL_RULES: Tuple[FieldRule, ...] = (
    FieldRule("seo.keyword+seoProductId", read_seo_path, _url_transform),
    FieldRule("seo.keyword", read_seo_keyword_path, _url_transform),
    FieldRule("semanticUrl", key("semanticUrl"), _url_transform),
    FieldRule("url", key("url"), _url_transform),
    FieldRule("/product/{id}.html", read_generic_path, _url_transform),
)

AVAILABILITY_RULES: Tuple[FieldRule, ...] = (
    FieldRule("availability", key("availability"), to_availability),
    FieldRule("inStock", key("inStock"), from_in_stock),
    FieldRule("offers.availability", offer_key("availability"), to_availability),
)

CATEGORY_RULES: Tuple[FieldRule, ...] = (
    FieldRule("category", key("category"), to_label),
    FieldRule("familyName", key("familyName"), to_label),
    FieldRule("categoryName", key("categoryName"), to_label),
    FieldRule("sectionName", key("sectionName"), to_label),
)

SUBCATEGORY_RULES: Tuple[FieldRule, ...] = (
    FieldRule("subcategory", key("subcategory"), to_label),
    FieldRule("subCategory", key("subCategory"), to_label),
    FieldRule("subfamilyName", key("subfamilyName"), to_label),
)

COLOR_RULES: Tuple[FieldRule, ...] = (
    FieldRule("colors", key("colors"), to_color_names),
    FieldRule("color", key("color"), to_color_names),
)

REFERENCE_RULES: Tuple[FieldRule, ...] = (
    FieldRule("displayReference", key("displayReference"), to_text),
    FieldRule("reference", key("reference"), to_text),
)
