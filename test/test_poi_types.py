from geoquery.config.poi_types import (
    build_keyword_index,
    get_keywords_for_category,
    get_overpass_selector,
    is_valid_category,
    normalize_category,
)


def test_normalize_maps_brands_cuisines_and_plurals():
    assert normalize_category("Starbucks") == "cafe"
    assert normalize_category("cvs") == "pharmacy"
    assert normalize_category("italian") == "restaurant"
    assert normalize_category("food") == "restaurant"
    assert normalize_category("hospitals") == "hospital"
    assert normalize_category("gas_station") == "gas_station"
    assert normalize_category("spaceport") is None
    assert normalize_category(None) is None


def test_keywords_start_with_category_name():
    words = get_keywords_for_category("gas_station")
    assert words[0] == "gas station"
    assert "fuel" in words
    assert len(words) == len(set(words))


def test_overpass_selector_defaults_to_other():
    assert get_overpass_selector("cafe") == "node[amenity=cafe]"
    assert get_overpass_selector("unknown") == "node[amenity]"


def test_keyword_index_covers_every_category():
    index = build_keyword_index()
    assert index["coffee shop"] == "cafe"
    assert index["walgreens"] == "pharmacy"
    assert index["quick bite"] == "restaurant"
    assert all(is_valid_category(category) for category in index.values())
