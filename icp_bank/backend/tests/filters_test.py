import pytest

from classifier import FASHION, MOVIE, MUSIC
from filters import (
    CLEARED_FILTERS,
    AppState,
    FilterOptions,
    FilterState,
    apply_app_action,
    apply_filter_action,
    filter_options,
    normalize_filters,
    resolve_effective_roles,
    resolve_effective_selections,
    roles_by_industry,
)
from metrics import aggregate, build_role_metadata


def _total(dataset, state, profile):
    effective = resolve_effective_selections(state, dataset, profile=profile)
    kpis = aggregate(
        dataset.rows,
        effective.locations,
        effective.roles,
        profile=profile,
        available_locations=dataset.available_locations,
    )
    return effective, kpis.total_people


def test_no_filters_selects_everything(sample_dataset, us_profile):
    effective, total = _total(sample_dataset, CLEARED_FILTERS, us_profile)
    assert effective.roles == ("Editor", "Sound Mixer")
    assert effective.locations == ("CA", "NY")
    assert total == 35


def test_industry_filter_implies_roles(sample_dataset, us_profile):
    state = FilterState(industries=(MOVIE,), industry_mode="AND")
    effective, total = _total(sample_dataset, state, us_profile)
    assert effective.roles == ("Editor",)
    assert total == 10


def test_region_filter_reduces_locations(sample_dataset, us_profile):
    state = FilterState(regions=("West",))
    effective, total = _total(sample_dataset, state, us_profile)
    assert effective.locations == ("CA",)
    assert total == 15


def test_regions_and_locations_are_unioned_then_restricted(sample_dataset, us_profile):
    state = FilterState(regions=("West",), locations=("NY", "TX"))
    effective = resolve_effective_selections(state, sample_dataset, profile=us_profile)
    assert effective.locations == ("CA", "NY")


def test_explicit_locations_alone_pass_through(sample_dataset, us_profile):
    state = FilterState(locations=("NY", "TX"))
    effective = resolve_effective_selections(state, sample_dataset, profile=us_profile)
    assert effective.locations == ("NY", "TX")


def test_and_mode_intersects_or_mode_unions(sample_dataset, us_profile):
    and_state = FilterState(roles=("Editor",), industries=(MUSIC,), industry_mode="AND")
    or_state = FilterState(roles=("Editor",), industries=(MUSIC,), industry_mode="OR")

    and_roles = resolve_effective_selections(and_state, sample_dataset, profile=us_profile).roles
    or_roles = resolve_effective_selections(or_state, sample_dataset, profile=us_profile).roles

    assert and_roles == ()
    assert or_roles == ("Editor", "Sound Mixer")
    assert set(and_roles) <= set(or_roles)


def test_and_mode_keeps_explicit_order():
    table = {MOVIE: ["C", "A"], MUSIC: ["B"], FASHION: []}
    state = FilterState(roles=("A", "B", "C"), industries=(MOVIE,), industry_mode="AND")
    assert resolve_effective_roles(state, ["A", "B", "C"], table) == ("A", "C")


def test_or_mode_deduplicates():
    table = {MOVIE: ["A", "C"], MUSIC: [], FASHION: []}
    state = FilterState(roles=("A",), industries=(MOVIE,), industry_mode="OR")
    assert resolve_effective_roles(state, ["A", "C"], table) == ("A", "C")


def test_roles_by_industry_seeds_every_category(sample_dataset):
    table = roles_by_industry(build_role_metadata(sample_dataset))
    assert table[MOVIE] == ["Editor"]
    assert table[MUSIC] == ["Sound Mixer"]
    assert table[FASHION] == []


def test_filter_options(sample_dataset, us_profile):
    options = filter_options(sample_dataset, us_profile, build_role_metadata(sample_dataset))
    assert options.locations == ("CA", "NY")
    assert options.regions == ("Northeast", "Midwest", "South", "West")
    # Ordered by dataset-wide total
    assert options.roles == ("Sound Mixer", "Editor")


def test_normalize_filters_handles_untrusted_payload():
    state = normalize_filters({"roles": "Editor", "industry_mode": "bogus", "locations": ["CA", "CA", ""]})
    assert state.roles == ("Editor",)
    assert state.locations == ("CA",)
    assert state.industry_mode == "AND"
    assert normalize_filters(None) == CLEARED_FILTERS


# ============================================================================
# Reducer
# ============================================================================

OPTIONS = FilterOptions(
    locations=("CA", "NY"),
    regions=("Northeast", "West"),
    roles=("Sound Mixer", "Editor"),
)


def test_reducer_drops_unavailable_picks():
    state = apply_filter_action(CLEARED_FILTERS, "set_locations", ["CA", "TX"], options=OPTIONS)
    assert state.locations == ("CA",)
    state = apply_filter_action(state, "toggle_role", "Gaffer", options=OPTIONS)
    assert state.roles == ()


def test_every_reachable_state_resolves_to_available_locations(sample_dataset, us_profile):
    actions = [
        ("set_locations", ["CA", "TX", "ZZ"]),
        ("toggle_region", "West"),
        ("toggle_location", "NY"),
        ("set_industries", [MUSIC, "Aerospace"]),
        ("set_industry_mode", "or"),
    ]
    state = CLEARED_FILTERS
    available = set(sample_dataset.available_locations)
    for action, value in actions:
        state = apply_filter_action(state, action, value, options=OPTIONS)
        effective = resolve_effective_selections(state, sample_dataset, profile=us_profile)
        assert set(effective.locations) <= available
        assert set(effective.roles) <= {"Editor", "Sound Mixer"}


def test_toggle_twice_restores_state():
    state = apply_filter_action(CLEARED_FILTERS, "toggle_region", "West")
    assert state.regions == ("West",)
    state = apply_filter_action(state, "toggle_region", "West")
    assert state.is_cleared


def test_industry_mode_actions():
    state = apply_filter_action(CLEARED_FILTERS, "set_industry_mode", "or")
    assert state.industry_mode == "OR"
    with pytest.raises(ValueError):
        apply_filter_action(state, "set_industry_mode", "XOR")


def test_bulk_selection_actions():
    state = apply_filter_action(CLEARED_FILTERS, "select_top_roles", 1, options=OPTIONS)
    assert state.roles == ("Sound Mixer",)

    state = apply_filter_action(FilterState(regions=("West",)), "select_all_locations", options=OPTIONS)
    assert state.locations == ("CA", "NY")
    assert state.regions == ()

    with pytest.raises(ValueError):
        apply_filter_action(CLEARED_FILTERS, "select_top_roles", 5)


def test_clear_and_unknown_actions():
    state = FilterState(roles=("Editor",), regions=("West",))
    assert apply_filter_action(state, "clear") is CLEARED_FILTERS
    with pytest.raises(ValueError):
        apply_filter_action(state, "explode")


# ============================================================================
# Application State
# ============================================================================

def test_dataset_added_resets_filters_and_enables_merge():
    state = AppState(filters=FilterState(roles=("Editor",)))
    state = apply_app_action(state, "dataset_added", "a")
    assert state.active_dataset_id == "a"
    assert state.filters.is_cleared
    assert not state.merge_all

    state = apply_app_action(state, "dataset_added", "b")
    assert state.dataset_ids == ("b", "a")
    assert state.active_dataset_id == "b"
    assert state.merge_all


def test_dataset_removed_moves_active_and_disables_merge():
    state = AppState(dataset_ids=("b", "a"), active_dataset_id="b", merge_all=True)
    state = apply_app_action(state, "dataset_removed", "b")
    assert state.dataset_ids == ("a",)
    assert state.active_dataset_id == "a"
    assert not state.merge_all


def test_app_action_validation():
    state = AppState(dataset_ids=("a",), active_dataset_id="a")
    with pytest.raises(ValueError):
        apply_app_action(state, "select_dataset", "missing")
    with pytest.raises(ValueError):
        apply_app_action(state, "set_filters", {"roles": []})
    with pytest.raises(ValueError):
        apply_app_action(state, "reboot")
