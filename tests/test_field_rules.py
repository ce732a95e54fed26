import pytest

from catalog_pipeline.field_rules import (
    FieldRule,
    ID_RULES,
    IMAGE_RULES,
    PRICE_RULES,
    URL_RULES,
    absolutize_image_url,
    absolutize_product_url,
    apply_rules,
    dig,
    key,
    parse_price_text,
    pick_image,
    price_from_number,
    to_availability,
    to_color_names,
    to_product_id,
)
from catalog_pipeline.models import ExtractionContext


@pytest.fixture
def context():
    return ExtractionContext(
        locale="uk/en",
        base_url="https://www.zara.com",
        target_count=10,
    )


# --- dig / apply_rules -------------------------------------------------------


def test_dig_walks_dicts_and_list_indexes():
    data = {"colors": [{"xmedia": [{"url": "a.jpg"}]}]}

    assert dig(data, "colors", 0, "xmedia", 0, "url") == "a.jpg"
    assert dig(data, "colors", 3, "xmedia") is None
    assert dig(data, "colors", "xmedia") is None
    assert dig(None, "anything") is None


def test_apply_rules_is_rule_first_across_layers(context):
    """
    A higher-priority rule on the secondary layer must beat a lower-priority
    rule on the primary layer.
    """
    rules = (
        FieldRule("a", key("a"), lambda raw, ctx: raw),
        FieldRule("b", key("b"), lambda raw, ctx: raw),
    )
    primary = {"b": "from-primary-b"}
    secondary = {"a": "from-secondary-a"}

    assert apply_rules(rules, [primary, secondary], context) == "from-secondary-a"


def test_apply_rules_skips_rules_whose_transform_returns_none(context):
    record = {"price": {"currency": "GBP"}, "displayPrice": "£ 19.99"}

    assert apply_rules(PRICE_RULES, [record], context) == 19.99


def test_apply_rules_ignores_non_dict_layers(context):
    assert apply_rules(ID_RULES, [None, "x", {"id": "12345"}], context) == "12345"


# --- ids ---------------------------------------------------------------------


def test_product_id_strips_variant_suffix():
    assert to_product_id("495669917-I2024") == "495669917"
    assert to_product_id(495669917) == "495669917"
    assert to_product_id("  C04174400  ") == "C04174400"


@pytest.mark.parametrize("raw", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_float_ids_are_rejected(raw, context):
    assert to_product_id(raw) is None
    assert apply_rules(ID_RULES, [{"id": raw, "productId": "12345678"}], context) == "12345678"


def test_product_id_rejects_non_scalar_values():
    assert to_product_id(True) is None
    assert to_product_id({"id": 1}) is None
    assert to_product_id("   ") is None


def test_id_rules_fall_back_through_reference_and_seo(context):
    assert apply_rules(ID_RULES, [{"reference": "04174400-I7"}], context) == "04174400"
    assert apply_rules(ID_RULES, [{"seo": {"seoProductId": "01234567"}}], context) == "01234567"
    assert (
        apply_rules(ID_RULES, [{"url": "https://www.zara.com/uk/en/x-p02731051.html"}], context)
        == "02731051"
    )


# --- prices ------------------------------------------------------------------


@pytest.mark.parametrize("raw", [101, 3599, 2590, 100000])
def test_integer_prices_above_100_are_minor_units(raw):
    assert price_from_number(raw) == raw / 100


@pytest.mark.parametrize("raw", [0, 1, 45, 99, 100])
def test_integer_prices_up_to_100_are_unchanged(raw):
    assert price_from_number(raw) == raw


def test_float_prices_are_major_units():
    assert price_from_number(35.99) == 35.99
    assert price_from_number(150.5) == 150.5
    assert price_from_number(True) is None


@pytest.mark.parametrize(
    "text, expected",
    [
        ("£ 29.99", 29.99),
        ("1,299.95 GBP", 1299.95),
        ("29,99 €", 29.99),
        ("1.299,95 €", 1299.95),
        ("1,299", 1299.0),
        ("From 12 to 20", 12.0),
        ("EUR 5", 5.0),
    ],
)
def test_parse_price_text(text, expected):
    assert parse_price_text(text) == expected


def test_parse_price_text_without_digits_returns_none():
    assert parse_price_text("Sold out") is None


def test_price_rules_read_nested_price_object(context):
    assert apply_rules(PRICE_RULES, [{"price": {"value": 3599}}], context) == 35.99
    assert apply_rules(PRICE_RULES, [{"price": {"amount": 45}}], context) == 45.0
    assert (
        apply_rules(PRICE_RULES, [{"price": {"formattedPrice": "£ 12.50"}}], context)
        == 12.5
    )


def test_string_prices_are_never_divided(context):
    assert apply_rules(PRICE_RULES, [{"price": "3599"}], context) == 3599.0


def test_markup_offer_prices_are_major_units(context):
    record = {"offers": [{"price": 150, "priceCurrency": "GBP"}]}

    assert apply_rules(PRICE_RULES, [record], context) == 150.0


# --- images ------------------------------------------------------------------


def test_absolutize_image_url_variants():
    assert absolutize_image_url("//static/x.jpg?x=1") == "https://static/x.jpg"
    assert (
        absolutize_image_url("/photos/a.jpg?ts=1", static_host="https://static.zara.net")
        == "https://static.zara.net/photos/a.jpg"
    )
    assert (
        absolutize_image_url("photos/a.jpg", static_host="https://static.zara.net/")
        == "https://static.zara.net/photos/a.jpg"
    )
    assert absolutize_image_url("https://cdn/a.jpg#frag") == "https://cdn/a.jpg"
    assert absolutize_image_url("   ") is None


def test_pick_image_prefers_non_video_entries():
    media = [
        {"type": "video", "url": "https://cdn/clip.mp4"},
        {"type": "image", "url": "https://cdn/photo.jpg?w=100"},
    ]

    assert pick_image(media) == "https://cdn/photo.jpg"


def test_pick_image_detects_video_by_extension_and_falls_back():
    only_video = [{"url": "https://cdn/clip.mp4?x=1"}]

    assert pick_image([{"url": "https://cdn/a.webm"}, {"path": "/p/b.jpg"}]).endswith("/p/b.jpg")
    assert pick_image(only_video) == "https://cdn/clip.mp4"
    assert pick_image([{"type": "image"}]) is None


def test_image_rules_prefer_color_media_over_top_level(context):
    record = {
        "xmedia": [{"url": "https://cdn/top.jpg"}],
        "colors": [{"xmedia": [{"url": "https://cdn/color.jpg"}]}],
    }

    assert apply_rules(IMAGE_RULES, [record], context) == "https://cdn/color.jpg"


def test_image_rules_read_plain_and_object_image(context):
    assert apply_rules(IMAGE_RULES, [{"image": "//cdn/a.jpg?x"}], context) == "https://cdn/a.jpg"
    assert apply_rules(IMAGE_RULES, [{"image": {"url": "https://cdn/b.jpg"}}], context) == "https://cdn/b.jpg"
    assert apply_rules(IMAGE_RULES, [{"image": ["https://cdn/c.jpg"]}], context) == "https://cdn/c.jpg"


# --- product urls ------------------------------------------------------------


def test_url_rules_build_seo_url_with_locale_prefix(context):
    record = {"seo": {"keyword": "oxford-shirt", "seoProductId": "04174400"}}

    assert (
        apply_rules(URL_RULES, [record], context)
        == "https://www.zara.com/uk/en/oxford-shirt-p04174400.html"
    )


def test_url_rules_fallback_order(context):
    assert (
        apply_rules(URL_RULES, [{"seo": {"keyword": "plain"}}], context)
        == "https://www.zara.com/uk/en/plain.html"
    )
    assert (
        apply_rules(URL_RULES, [{"semanticUrl": "uk/en/shirt-p1.html"}], context)
        == "https://www.zara.com/uk/en/shirt-p1.html"
    )
    assert (
        apply_rules(URL_RULES, [{"id": 495669917}], context)
        == "https://www.zara.com/product/495669917.html"
    )
    assert apply_rules(URL_RULES, [{"name": "no id"}], context) is None


def test_absolutize_product_url_keeps_absolute_urls(context):
    assert absolutize_product_url("http://other/x", context) == "http://other/x"
    assert absolutize_product_url("//www.zara.com/a", context) == "https://www.zara.com/a"


def test_product_urls_use_site_origin_of_page_url():
    context = ExtractionContext(
        locale="es/es",
        base_url="https://www.zara.com/es/es/mujer-l1.html",
        target_count=1,
    )

    assert absolutize_product_url("/x.html", context) == "https://www.zara.com/x.html"


# --- availability / colors ---------------------------------------------------


def test_to_availability_maps_schema_org_values():
    assert to_availability("https://schema.org/InStock") == "in_stock"
    assert to_availability("http://schema.org/OutOfStock") == "out_of_stock"
    assert to_availability("https://schema.org/OnlineOnly") == "online_only"
    assert to_availability("coming_soon") == "coming_soon"
    assert to_availability("") is None


def test_to_color_names_keeps_names_in_order_without_duplicates():
    colors = [{"name": "Blue"}, "White", {"name": "Blue"}, {"xmedia": []}, 7]

    assert to_color_names(colors) == ["Blue", "White", "7"]
    assert to_color_names([{"xmedia": []}]) is None
    assert to_color_names("Ecru") == ["Ecru"]
