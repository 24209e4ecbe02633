import pytest

from concierge.schemas.session import ClarifierOption
from concierge.services.chat.filters import (
    apply_manual_facet_value,
    bucketize_price,
    canonicalise_filter_value,
    detect_brand,
    extract_price_filter,
    infer_price_bucket_from_input,
    is_valid_price_bucket,
    sanitize_filters,
    validate_initial_filters,
)

from factories import make_retrieval


@pytest.mark.parametrize(
    "text,expected",
    [
        ("boards under $300", "Under $300"),
        ("something between 100 and 200", "$100-$200"),
        ("over 150 is fine", "Over $150"),
        ("$80 to $120 please", "$80-$120"),
        ("I need 2 boards", None),
    ],
)
def test_extract_price_filter(text: str, expected) -> None:
    assert extract_price_filter(text) == expected


def test_price_bucket_inference_from_loose_wording() -> None:
    assert infer_price_bucket_from_input("something cheap") == "Under $50"
    assert infer_price_bucket_from_input("premium please") == "$200+"
    assert infer_price_bucket_from_input("around 120") == "$100-$150"
    assert infer_price_bucket_from_input("no idea") is None


def test_bucketize_price_edges() -> None:
    assert bucketize_price(50) == "Under $50"
    assert bucketize_price(199.99) == "$150-$200"
    assert bucketize_price(999) == "$200+"
    assert bucketize_price(None) is None
    assert bucketize_price(float("nan")) is None


def test_canonical_values_and_manual_answers() -> None:
    assert canonicalise_filter_value("style", "All-Mountain ") == "all_mountain"
    assert canonicalise_filter_value("vendor", " Burton ") == "Burton"
    assert apply_manual_facet_value("price_bucket", "under 80") == "Under $80"
    assert apply_manual_facet_value("style", "Big Mountain") == "big_mountain"
    assert apply_manual_facet_value("style", "   ") is None


def test_detect_brand_matches_whole_words_only() -> None:
    assert detect_brand("anything from burton?", ["Burton", "Jones"]) == "Burton"
    assert detect_brand("jonestown vibes", ["Jones"]) is None


@pytest.mark.regression
def test_validate_initial_filters_drops_malformed_values() -> None:
    cleaned, removed = validate_initial_filters({"price_bucket": "cheapish", "style": "  ", "vendor": "Burton"})

    assert cleaned == {"vendor": "Burton"}
    assert {item["facet"] for item in removed} == {"price_bucket", "style"}
    assert is_valid_price_bucket("Under $300")
    assert is_valid_price_bucket("$50-$200")
    assert not is_valid_price_bucket("cheapish")


@pytest.mark.regression
def test_sanitizer_drops_stale_values_and_keeps_unknown_facets() -> None:
    retrieval = make_retrieval(3, facets={"style": {"park"}})
    active = {"style": "swallowtail", "vendor": "Nobody", "color": "red", "price_bucket": "Under $300"}

    result = sanitize_filters(active, retrieval)

    assert result.filters == {"color": "red", "price_bucket": "Under $300"}
    assert {item["facet"] for item in result.removed} == {"style", "vendor"}


def test_sanitizer_accepts_canonical_clarifier_values() -> None:
    retrieval = make_retrieval(2)
    clarifiers = {"use_case": [ClarifierOption(label="Backcountry", value="backcountry")]}

    result = sanitize_filters({"use_case": "Backcountry", "style": "powder"}, retrieval, clarifiers)

    assert result.filters == {"use_case": "Backcountry", "style": "powder"}
    assert result.removed == []
