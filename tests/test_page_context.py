import pytest

from catalog_pipeline.models import ExtractionContext
from catalog_pipeline.page_context import (
    build_api_url,
    context_from_page,
    extract_category_id,
    is_blocked_title,
    locale_from_url,
)


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://www.zara.com/uk/en/man-shirts-l737.html", "uk/en"),
        ("https://www.zara.com/es/es/", "es/es"),
        ("https://www.zara.com/man-shirts-l737.html", "uk/en"),
        ("", "uk/en"),
    ],
)
def test_locale_from_url(url, expected):
    assert locale_from_url(url) == expected


def test_extract_category_id_checks_known_locations():
    assert extract_category_id({"viewPayload": {"category": {"id": 2458839}}}) == "2458839"
    assert extract_category_id({"appConfig": {"categoryId": "1180"}}) == "1180"
    assert extract_category_id({"zara": {"category": {"id": 42}}}) == "42"
    assert extract_category_id({"products": []}) is None
    assert extract_category_id(None) is None


def test_build_api_url_uses_locale_and_category():
    context = ExtractionContext(
        locale="uk/en",
        base_url="https://www.zara.com/uk/en/man-shirts-l737.html",
        category_id="2458839",
        target_count=5,
    )

    assert (
        build_api_url(context)
        == "https://www.zara.com/uk/en/category/2458839/products?ajax=true"
    )


def test_build_api_url_requires_category_id():
    context = ExtractionContext(locale="uk/en", base_url="https://www.zara.com", target_count=5)

    with pytest.raises(ValueError):
        build_api_url(context)


def test_context_from_page_prefers_explicit_arguments():
    state = {"viewPayload": {"category": {"id": 2458839}}}

    derived = context_from_page("https://www.zara.com/es/es/mujer-l1.html", state, target_count=3)
    explicit = context_from_page(
        "https://www.zara.com/es/es/mujer-l1.html",
        state,
        target_count=3,
        category_id="999",
        locale="fr/fr",
    )

    assert (derived.locale, derived.category_id, derived.target_count) == ("es/es", "2458839", 3)
    assert (explicit.locale, explicit.category_id) == ("fr/fr", "999")


def test_context_is_immutable():
    context = context_from_page("https://www.zara.com/uk/en/x.html")

    with pytest.raises(Exception):
        context.locale = "es/es"


@pytest.mark.parametrize(
    "title, blocked",
    [
        ("Access Denied", True),
        ("403 Forbidden", True),
        ("You have been Blocked", True),
        ("Shirts | ZARA United Kingdom", False),
        (None, False),
    ],
)
def test_is_blocked_title(title, blocked):
    assert is_blocked_title(title) is blocked
