import math

from geography import (
    GEOGRAPHY_PROFILES,
    MAP_GLOBAL,
    MAP_NONE,
    MAP_REGIONAL,
    detect_geography,
    get_profile,
    location_name,
    locations_of_regions,
    normalize_location,
    region_colors,
    region_of,
)


def test_normalize_location_matches_codes_and_names(us_profile):
    assert normalize_location("CA", us_profile) == "CA"
    assert normalize_location("ca", us_profile) == "CA"
    assert normalize_location("  California ", us_profile) == "CA"
    assert normalize_location("new    york", us_profile) == "NY"
    assert normalize_location("Washington DC", us_profile) == "DC"


def test_normalize_location_unknown_or_missing(us_profile):
    assert normalize_location("Atlantis", us_profile) is None
    assert normalize_location(None, us_profile) is None
    assert normalize_location("   ", us_profile) is None
    assert normalize_location(math.nan, us_profile) is None


def test_world_aliases():
    world = get_profile("WORLD")
    assert normalize_location("USA", world) == "US"
    assert normalize_location("England", world) == "GB"
    assert normalize_location("germany", world) == "DE"


def test_region_of_returns_first_listing_region(us_profile):
    assert region_of("CA", us_profile) == "West"
    assert region_of("NY", us_profile) == "Northeast"
    assert region_of("ZZ", us_profile) is None
    assert region_of(None, us_profile) is None
    # Listed under both West and Central
    assert region_of("MP", get_profile("IN")) == "West"


def test_locations_of_regions_is_ordered_and_deduplicated():
    india = get_profile("IN")
    codes = locations_of_regions(["West", "Central"], india)
    assert codes == ["GA", "GJ", "MH", "MP", "CT", "DD"]
    assert locations_of_regions(["Nowhere"], india) == []


def test_profile_catalog_map_kinds():
    assert set(GEOGRAPHY_PROFILES) == {"US", "IN", "GB", "CA", "WORLD", "GENERIC"}
    assert GEOGRAPHY_PROFILES["US"].map_kind == MAP_REGIONAL
    assert GEOGRAPHY_PROFILES["GENERIC"].map_kind == MAP_NONE
    for profile_id in ("IN", "GB", "CA", "WORLD"):
        assert GEOGRAPHY_PROFILES[profile_id].map_kind == MAP_GLOBAL


def test_get_profile_falls_back_to_world():
    assert get_profile("nope").id == "WORLD"
    assert get_profile(None).id == "WORLD"


def test_detect_geography_picks_best_profile():
    assert detect_geography(["CA", "NY", "Texas"]).id == "US"
    assert detect_geography(["France", "Germany", "Japan"]).id == "WORLD"
    assert detect_geography(["Ontario", "Quebec", "PEI"]).id == "CA"


def test_detect_geography_generic_fallback():
    profile = detect_geography(["Foo", "Bar", "Foo", None])
    assert profile.id == "GENERIC"
    assert profile.locations == {"Foo": "Foo", "Bar": "Bar"}
    assert normalize_location("foo", profile) == "Foo"

    assert detect_geography([]).id == "GENERIC"


def test_location_name_falls_back_to_code(us_profile):
    assert location_name("CA", us_profile) == "California"
    assert location_name("XX", us_profile) == "XX"


def test_region_colors_follow_region_order(us_profile):
    colors = region_colors(us_profile)
    assert list(colors) == ["Northeast", "Midwest", "South", "West"]
    assert colors["Northeast"] == "hsl(172, 66%, 50%)"
    assert colors["West"] == "hsl(38, 92%, 50%)"
