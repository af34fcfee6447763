"""
Aggregation engine.
Implements the KPI rollup, Pareto curve, concentration/diversity indices,
Gini/Theil distribution metrics and the per-location breakdown tables.
"""
import math
from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Mapping, Sequence

import numpy as np

from classifier import INDUSTRY_CATEGORIES, classify_role_industry, role_columns
from dataset import Dataset, Row
from geography import GeographyProfile, location_name, region_of
from icp import ICPConfig, is_icp_row
from models import (
    DistributionMetrics,
    KPISnapshot,
    LocationSummary,
    ParetoPoint,
    RankedEntry,
    RegionIndustryRow,
    RoleCount,
    RoleMetadata,
    RoleRegionRow,
    TargetingMetrics,
)


# ============================================================================
# Numeric Helpers
# ============================================================================

def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (dashboard rounding)."""
    if value is None or (isinstance(value, float) and (math.isnan(value) or math.isinf(value))):
        return 0
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent_of(count: float, total: float) -> float:
    """count / total * 100, or 0 when total is 0."""
    if not total:
        return 0.0
    return count / total * 100.0


def cell_number(value) -> float | None:
    """Numeric cell value, or None for blanks/NaN/non-numbers."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def ranked_entries(breakdown: Mapping[str, float]) -> list[tuple[str, float]]:
    """
    Entries sorted by value descending. The sort is stable, so ties keep
    first-insertion order.
    """
    return sorted(breakdown.items(), key=lambda item: item[1], reverse=True)


def _top(breakdown: Mapping[str, float]) -> RankedEntry | None:
    ranked = ranked_entries(breakdown)
    if not ranked:
        return None
    name, count = ranked[0]
    return RankedEntry(name=name, count=count)


def _bottom(breakdown: Mapping[str, float]) -> RankedEntry | None:
    ranked = ranked_entries(breakdown)
    if not ranked:
        return None
    name, count = ranked[-1]
    return RankedEntry(name=name, count=count)


# ============================================================================
# Role Metadata
# ============================================================================

def build_role_metadata(dataset: Dataset) -> list[RoleMetadata]:
    """
    Dataset-wide total and industry for every role column, sorted by total
    descending (stable).
    """
    columns = role_columns(dataset.columns)
    if not columns:
        return []

    totals: dict[str, float] = {col.name: 0 for col in columns}
    for row in dataset.rows:
        for name in totals:
            value = cell_number(row.get(name))
            if value is not None:
                totals[name] += value

    grand_total = sum(totals.values())
    metadata = [
        RoleMetadata(
            column_name=name,
            industry=classify_role_industry(name),
            total_people=total,
            percent_of_total=percent_of(total, grand_total),
        )
        for name, total in totals.items()
    ]
    return sorted(metadata, key=lambda m: m.total_people, reverse=True)


# ============================================================================
# KPI Aggregation
# ============================================================================

def select_rows(
    rows: Sequence[Row],
    effective_locations: Iterable[str],
    available_locations: Iterable[str],
) -> list[Row]:
    """
    Restrict rows to the effective locations.

    When the effective set covers every available location no restriction is
    applied, so rows without a recognised location still count.
    """
    effective = set(effective_locations)
    if effective == set(available_locations):
        return list(rows)
    return [row for row in rows if row.location in effective]


def aggregate(
    rows: Sequence[Row],
    effective_locations: Iterable[str] | None,
    effective_roles: Sequence[str],
    *,
    profile: GeographyProfile,
    available_locations: Iterable[str] | None = None,
) -> KPISnapshot:
    """
    Reduce the selected rows to a KPI snapshot.

    Args:
        rows: Dataset rows (unfiltered)
        effective_locations: Resolved location selection; None skips the
            location restriction
        effective_roles: Resolved role selection
        profile: Geography profile used for region lookup
        available_locations: Locations present in the dataset; derived from
            `rows` when omitted

    Returns:
        KPISnapshot. Rows without a normalized location contribute to the
        total, role and industry buckets but not to location/region buckets.
    """
    if effective_locations is not None:
        if available_locations is None:
            available_locations = {row.location for row in rows if row.location}
        rows = select_rows(rows, effective_locations, available_locations)

    roles = list(dict.fromkeys(effective_roles))
    role_industry = {role: classify_role_industry(role) for role in roles}

    total = 0
    role_breakdown: dict[str, float] = {role: 0 for role in roles}
    industry_breakdown: dict[str, float] = {category: 0 for category in INDUSTRY_CATEGORIES}
    region_breakdown: dict[str, float] = {region: 0 for region in profile.regions}
    location_breakdown: dict[str, float] = {}
    location_region: dict[str, str | None] = {}

    for row in rows:
        location = row.location
        region = None
        if location:
            if location not in location_region:
                location_region[location] = region_of(location, profile)
            region = location_region[location]

        for role in roles:
            value = cell_number(row.get(role))
            if value is None:
                continue
            total += value
            role_breakdown[role] += value
            industry = role_industry[role]
            industry_breakdown[industry] = industry_breakdown.get(industry, 0) + value
            if location:
                location_breakdown[location] = location_breakdown.get(location, 0) + value
                if region:
                    region_breakdown[region] = region_breakdown.get(region, 0) + value

    locations_included = sum(1 for v in location_breakdown.values() if v != 0)
    regions_seen = {location_region[loc] for loc in location_breakdown if location_region.get(loc)}
    average = round_half_up(total / locations_included) if locations_included > 0 else 0

    return KPISnapshot(
        total_people=total,
        locations_included=locations_included,
        regions_included=len(regions_seen),
        average_per_location=average,
        top_location=_top(location_breakdown),
        bottom_location=_bottom(location_breakdown),
        top_role=_top(role_breakdown),
        top_industry=_top(industry_breakdown),
        role_coverage=len(roles),
        role_breakdown=role_breakdown,
        industry_breakdown=industry_breakdown,
        region_breakdown=region_breakdown,
        location_breakdown=location_breakdown,
    )


# ============================================================================
# Pareto Analyzer
# ============================================================================

def pareto_of(role_breakdown: Mapping[str, float]) -> list[ParetoPoint]:
    """
    Cumulative-contribution curve over roles, largest first.
    The full sequence is returned; callers truncate for display.
    """
    ranked = ranked_entries(role_breakdown)
    total = sum(count for _, count in ranked)
    points = []
    cumulative = 0
    for role, count in ranked:
        cumulative += count
        points.append(ParetoPoint(
            role=role,
            count=count,
            cumulative=cumulative,
            cumulative_percent=percent_of(cumulative, total),
        ))
    return points


# ============================================================================
# Concentration / Diversity
# ============================================================================

def herfindahl(values: Iterable[float]) -> float:
    """Sum of squared shares; 0 when the values sum to 0."""
    x = np.asarray(list(values), dtype=float)
    total = x.sum()
    if x.size == 0 or total == 0:
        return 0.0
    shares = x / total
    return float((shares ** 2).sum())


def targeting_metrics(kpis: KPISnapshot, profile: GeographyProfile) -> TargetingMetrics:
    total = kpis.total_people

    ranked_locations = ranked_entries(kpis.location_breakdown)
    top3_total = sum(count for _, count in ranked_locations[:3])

    ranked_roles = ranked_entries(kpis.role_breakdown)
    top5_total = sum(count for _, count in ranked_roles[:5])

    ranked_industries = ranked_entries(kpis.industry_breakdown)
    top_industry_total = ranked_industries[0][1] if ranked_industries else 0

    region_values = list(kpis.region_breakdown.values())
    if sum(region_values) > 0:
        diversity = round_half_up((1 - herfindahl(region_values)) * 100)
    else:
        diversity = 0

    return TargetingMetrics(
        concentration_index=round_half_up(percent_of(top3_total, total)),
        average_per_role=round_half_up(total / kpis.role_coverage) if kpis.role_coverage > 0 else 0,
        diversity_score=diversity,
        top5_role_share=round_half_up(percent_of(top5_total, total)),
        top_industry_share=round_half_up(percent_of(top_industry_total, total)),
        top3_locations=[location_name(code, profile) for code, _ in ranked_locations[:3]],
        top5_roles=[role for role, _ in ranked_roles[:5]],
    )


def gini(values: np.ndarray | list) -> float:
    """
    Gini coefficient of a set of values.

    Gini = 0 means every location holds the same amount
    Gini = 1 means one location holds everything
    """
    x = np.asarray(values, dtype=float)
    x = x[x >= 0]

    if x.size == 0:
        return 0.0

    mean = x.mean()
    if mean == 0:
        return 0.0

    # Sum of all pairwise absolute differences / (2 * n^2 * mean)
    diff_sum = np.abs(x[:, None] - x[None, :]).sum()
    n = x.size

    return float(diff_sum / (2.0 * n * n * mean))


def theil(values: np.ndarray | list) -> float:
    """Theil-T index (entropy-based inequality); 0 means perfect equality."""
    x = np.asarray(values, dtype=float)
    x = x[x > 0]

    if x.size == 0:
        return 0.0

    mean = x.mean()
    if mean == 0:
        return 0.0

    ratios = x / mean
    return float((ratios * np.log(ratios)).sum() / x.size)


def equity_score_from_gini(g: float) -> int:
    """Convert a Gini coefficient to a 0-100 equity score (100 = perfectly even)."""
    g = max(0.0, min(g, 1.0))
    score = round_half_up((1.0 - g) * 100)
    return max(0, min(score, 100))


def max_min_ratio(values: np.ndarray | list) -> float:
    x = np.asarray(values, dtype=float)
    x = x[x > 0]

    if x.size == 0:
        return 1.0

    return float(x.max() / x.min())


def distribution_metrics(breakdown: Mapping[str, float]) -> DistributionMetrics:
    """Gini, Theil, max/min ratio and equity score over a breakdown's values."""
    values = np.array(list(breakdown.values()), dtype=float)

    g = gini(values)
    t = theil(values)

    return DistributionMetrics(
        gini=round(g, 4),
        theil=round(t, 4),
        max_min_ratio=round(max_min_ratio(values), 2),
        equity_score=equity_score_from_gini(g),
    )


# ============================================================================
# Breakdown Tables
# ============================================================================

def location_role_breakdown(rows: Iterable[Row], effective_roles: Sequence[str]) -> dict[str, dict[str, float]]:
    """Exact location -> role -> count data for rows with a normalized location."""
    roles = list(dict.fromkeys(effective_roles))
    data: dict[str, dict[str, float]] = {}
    for row in rows:
        if not row.location:
            continue
        per_role = data.setdefault(row.location, {})
        for role in roles:
            value = cell_number(row.get(role))
            if value is not None:
                per_role[role] = per_role.get(role, 0) + value
    return data


def location_summaries(
    rows: Sequence[Row],
    effective_roles: Sequence[str],
    total_people: float,
    profile: GeographyProfile,
    icp_config: ICPConfig | None = None,
) -> list[LocationSummary]:
    """Per-location totals, share of the grand total and top-5 roles, largest first."""
    per_location = location_role_breakdown(rows, effective_roles)

    icp_counts: dict[str, int] = defaultdict(int)
    if icp_config is not None:
        for row in rows:
            if row.location and is_icp_row(row, icp_config):
                icp_counts[row.location] += 1

    summaries = []
    for code, roles in per_location.items():
        location_total = sum(roles.values())
        summaries.append(LocationSummary(
            code=code,
            name=location_name(code, profile),
            region=region_of(code, profile),
            total=location_total,
            percent_of_total=percent_of(location_total, total_people),
            top_roles=[RoleCount(name=name, count=count) for name, count in ranked_entries(roles)[:5]],
            icp_count=icp_counts.get(code, 0),
        ))
    return sorted(summaries, key=lambda s: s.total, reverse=True)


def region_industry_matrix(
    rows: Iterable[Row],
    effective_roles: Sequence[str],
    profile: GeographyProfile,
) -> list[RegionIndustryRow]:
    """Region x industry totals (heatmap data), in profile region order."""
    roles = list(dict.fromkeys(effective_roles))
    data = {region: {category: 0 for category in INDUSTRY_CATEGORIES} for region in profile.regions}

    for row in rows:
        region = region_of(row.location, profile)
        if not region:
            continue
        for role in roles:
            value = cell_number(row.get(role))
            if value is not None:
                industry = classify_role_industry(role)
                data[region][industry] = data[region].get(industry, 0) + value

    return [
        RegionIndustryRow(region=region, industries=industries, total=sum(industries.values()))
        for region, industries in data.items()
    ]


def role_region_matrix(
    rows: Iterable[Row],
    effective_roles: Sequence[str],
    profile: GeographyProfile,
    limit: int = 10,
) -> list[RoleRegionRow]:
    """Role x region totals for the `limit` largest roles."""
    roles = list(dict.fromkeys(effective_roles))
    data = {role: {region: 0 for region in profile.regions} for role in roles}

    for row in rows:
        region = region_of(row.location, profile)
        if not region:
            continue
        for role in roles:
            value = cell_number(row.get(role))
            if value is not None:
                data[role][region] += value

    result = [
        RoleRegionRow(role=role, regions=regions, total=sum(regions.values()))
        for role, regions in data.items()
    ]
    result.sort(key=lambda r: r.total, reverse=True)
    return result[:limit]
