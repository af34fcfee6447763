"""
Filter state, filter-state reducers and effective-selection resolution.

The filter state is an immutable value; every user action produces a new
state through `apply_filter_action`. `resolve_effective_selections` turns a
state into the locations and roles actually used for aggregation.
"""
import logging
from dataclasses import dataclass, replace
from typing import Any, Iterable, Literal, Sequence

from classifier import INDUSTRY_CATEGORIES, role_columns
from dataset import Dataset
from geography import GeographyProfile, get_profile, locations_of_regions
from metrics import build_role_metadata
from models import RoleMetadata

logger = logging.getLogger(__name__)

IndustryMode = Literal["AND", "OR"]

TOP_ROLES_DEFAULT = 20


@dataclass(frozen=True)
class FilterState:
    locations: tuple[str, ...] = ()
    regions: tuple[str, ...] = ()
    roles: tuple[str, ...] = ()
    industries: tuple[str, ...] = ()
    industry_mode: IndustryMode = "AND"

    @property
    def is_cleared(self) -> bool:
        return self == CLEARED_FILTERS


CLEARED_FILTERS = FilterState()


@dataclass(frozen=True)
class FilterOptions:
    """Values a user can pick for each facet of the active dataset."""
    locations: tuple[str, ...] = ()
    regions: tuple[str, ...] = ()
    roles: tuple[str, ...] = ()  # ordered by dataset-wide total, descending
    industries: tuple[str, ...] = tuple(INDUSTRY_CATEGORIES)


@dataclass(frozen=True)
class EffectiveSelections:
    locations: tuple[str, ...]
    roles: tuple[str, ...]


def _unique(values: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(values))


def _as_str_tuple(values: Any) -> tuple[str, ...]:
    if not values:
        return ()
    if isinstance(values, str):
        values = [values]
    return _unique(str(v) for v in values if v is not None and str(v).strip())


def normalize_filters(raw: dict | None) -> FilterState:
    """Build a FilterState from an untrusted payload dict."""
    raw = raw or {}
    mode = str(raw.get("industry_mode") or "AND").strip().upper()
    if mode not in ("AND", "OR"):
        mode = "AND"
    return FilterState(
        locations=_as_str_tuple(raw.get("locations")),
        regions=_as_str_tuple(raw.get("regions")),
        roles=_as_str_tuple(raw.get("roles")),
        industries=_as_str_tuple(raw.get("industries")),
        industry_mode=mode,
    )


# ============================================================================
# Derived Tables
# ============================================================================

def roles_by_industry(role_metadata: Sequence[RoleMetadata]) -> dict[str, list[str]]:
    """Industry -> role columns, keeping the metadata order."""
    by_industry: dict[str, list[str]] = {category: [] for category in INDUSTRY_CATEGORIES}
    for meta in role_metadata:
        by_industry.setdefault(meta.industry, []).append(meta.column_name)
    return by_industry


def filter_options(
    dataset: Dataset,
    profile: GeographyProfile | None = None,
    role_metadata: Sequence[RoleMetadata] | None = None,
) -> FilterOptions:
    profile = profile or get_profile(dataset.geography)
    if role_metadata is not None:
        roles = tuple(meta.column_name for meta in role_metadata)
    else:
        roles = tuple(col.name for col in role_columns(dataset.columns))
    return FilterOptions(
        locations=tuple(dataset.available_locations),
        regions=tuple(profile.region_names),
        roles=roles,
    )


# ============================================================================
# Effective Selection Resolution
# ============================================================================

def resolve_effective_roles(
    state: FilterState,
    all_roles: Sequence[str],
    industry_roles_table: dict[str, list[str]],
) -> tuple[str, ...]:
    if not state.industries and not state.roles:
        return tuple(all_roles)

    industry_roles: list[str] = []
    for industry in state.industries:
        industry_roles.extend(industry_roles_table.get(industry, []))

    if not state.roles:
        return _unique(industry_roles)
    if not state.industries:
        return tuple(state.roles)

    if state.industry_mode == "AND":
        industry_set = set(industry_roles)
        return tuple(role for role in state.roles if role in industry_set)
    return _unique([*state.roles, *industry_roles])


def resolve_effective_locations(
    state: FilterState,
    available_locations: Sequence[str],
    profile: GeographyProfile,
) -> tuple[str, ...]:
    """
    Regions and explicit locations are always unioned (there is no AND/OR
    toggle for geography) and then intersected with the available set.
    Explicit locations on their own pass through verbatim.
    """
    region_locations = locations_of_regions(state.regions, profile) if state.regions else []

    if not state.locations and not state.regions:
        return tuple(available_locations)

    available = set(available_locations)
    if not state.locations:
        return tuple(code for code in region_locations if code in available)
    if not state.regions:
        return tuple(state.locations)

    return tuple(code for code in _unique([*region_locations, *state.locations]) if code in available)


def resolve_effective_selections(
    state: FilterState,
    dataset: Dataset,
    *,
    profile: GeographyProfile | None = None,
    role_metadata: Sequence[RoleMetadata] | None = None,
) -> EffectiveSelections:
    """
    Resolve a filter state against a dataset.

    Args:
        state: Current filter state
        dataset: Active (possibly merged) dataset
        profile: Geography profile; defaults to the dataset's profile
        role_metadata: Precomputed role metadata; controls the order of
            industry-implied roles (dataset-wide total, descending)

    Returns:
        EffectiveSelections with the locations and roles to aggregate over
    """
    profile = profile or get_profile(dataset.geography)
    if role_metadata is None:
        role_metadata = build_role_metadata(dataset)

    all_roles = [col.name for col in role_columns(dataset.columns)]
    roles = resolve_effective_roles(state, all_roles, roles_by_industry(role_metadata))
    locations = resolve_effective_locations(state, dataset.available_locations, profile)
    return EffectiveSelections(locations=locations, roles=roles)


# ============================================================================
# Filter Reducer
# ============================================================================

def _restrict(values: Iterable[str], allowed: Sequence[str] | None, facet: str) -> tuple[str, ...]:
    picked = _as_str_tuple(values)
    if allowed is None:
        return picked
    allowed_set = set(allowed)
    kept = tuple(v for v in picked if v in allowed_set)
    if len(kept) != len(picked):
        logger.debug("Dropped %d unknown %s picks", len(picked) - len(kept), facet)
    return kept


def _toggle(current: tuple[str, ...], value: str) -> tuple[str, ...]:
    if value in current:
        return tuple(v for v in current if v != value)
    return (*current, value)


def apply_filter_action(
    state: FilterState,
    action: str,
    value: Any = None,
    *,
    options: FilterOptions | None = None,
) -> FilterState:
    """
    Pure reducer for user filter actions.

    When `options` is given, picks that are not available in the active
    dataset are dropped, so every reachable state only references real
    locations, regions, roles and industries.
    """
    opt = options
    if action == "set_locations":
        return replace(state, locations=_restrict(value or (), opt and opt.locations, "location"))
    if action == "set_regions":
        return replace(state, regions=_restrict(value or (), opt and opt.regions, "region"))
    if action == "set_roles":
        return replace(state, roles=_restrict(value or (), opt and opt.roles, "role"))
    if action == "set_industries":
        return replace(state, industries=_restrict(value or (), opt and opt.industries, "industry"))
    if action == "set_industry_mode":
        mode = str(value).upper()
        if mode not in ("AND", "OR"):
            raise ValueError(f"Invalid industry mode: {value!r}")
        return replace(state, industry_mode=mode)

    if action in ("toggle_location", "toggle_region", "toggle_role", "toggle_industry"):
        facet = action.removeprefix("toggle_")
        attr = "industries" if facet == "industry" else f"{facet}s"
        toggled = _toggle(getattr(state, attr), str(value))
        allowed = getattr(opt, attr) if opt is not None else None
        return replace(state, **{attr: _restrict(toggled, allowed, facet)})

    if action == "select_top_roles":
        if opt is None:
            raise ValueError("select_top_roles requires filter options")
        limit = int(value) if value else TOP_ROLES_DEFAULT
        return replace(state, roles=opt.roles[:limit])
    if action == "select_all_locations":
        if opt is None:
            raise ValueError("select_all_locations requires filter options")
        return replace(state, locations=opt.locations, regions=())
    if action == "clear":
        return CLEARED_FILTERS

    raise ValueError(f"Unknown filter action: {action!r}")


# ============================================================================
# Application State
# ============================================================================

@dataclass(frozen=True)
class AppState:
    filters: FilterState = CLEARED_FILTERS
    dataset_ids: tuple[str, ...] = ()
    active_dataset_id: str | None = None
    merge_all: bool = False


def apply_app_action(state: AppState, action: str, value: Any = None) -> AppState:
    """Pure reducer for dataset-level actions (selection, merge toggle, add/remove)."""
    if action == "select_dataset":
        if value not in state.dataset_ids:
            raise ValueError(f"Unknown dataset: {value!r}")
        return replace(state, active_dataset_id=value)
    if action == "set_merge_all":
        return replace(state, merge_all=bool(value))
    if action == "dataset_added":
        ids = (value, *(i for i in state.dataset_ids if i != value))
        return replace(
            state,
            dataset_ids=ids,
            active_dataset_id=value,
            filters=CLEARED_FILTERS,
            merge_all=state.merge_all or len(ids) > 1,
        )
    if action == "dataset_removed":
        ids = tuple(i for i in state.dataset_ids if i != value)
        active = state.active_dataset_id
        if active == value:
            active = ids[0] if ids else None
        return replace(
            state,
            dataset_ids=ids,
            active_dataset_id=active,
            merge_all=state.merge_all and len(ids) > 1,
        )
    if action == "set_filters":
        if not isinstance(value, FilterState):
            raise ValueError("set_filters expects a FilterState")
        return replace(state, filters=value)
    raise ValueError(f"Unknown app action: {action!r}")
