"""
Drill-down tree builder.
Produces the root -> region -> location -> role hierarchy used by the
sunburst view. Role leaves come from one of two named strategies:

- exact_role_leaves: the location's own top roles
- proportional_role_leaves: the global top roles scaled to the location total
  (an approximation used when per-location role data is unavailable)
"""
from typing import Mapping

from geography import GeographyProfile, hsl, location_name, region_base_colors
from metrics import ranked_entries, round_half_up
from models import TreeNode


ROOT_COLOR = "hsl(var(--primary))"
FALLBACK_BASE_COLOR = (200, 70, 50)

TOP_ROLE_LEAVES = 5
ROLE_NAME_MAX = 20


# ============================================================================
# Colors
# ============================================================================

def location_base(base: tuple[int, int, int], index: int, total: int) -> tuple[int, int, float]:
    """Region base color lightened by the location's position within the region."""
    hue, saturation, _ = base
    return hue, saturation, 50 + (index / total) * 20


def role_color(base: tuple[int, int, int], index: int, total: int) -> str:
    hue, saturation, _ = base
    return hsl(hue, saturation - 10, 40 + (index / total) * 35)


def _role_label(role: str) -> str:
    return role[:ROLE_NAME_MAX] + "..." if len(role) > ROLE_NAME_MAX else role


# ============================================================================
# Leaf Strategies
# ============================================================================

def exact_role_leaves(
    location: str,
    location_roles: Mapping[str, float],
    base: tuple[int, int, int],
) -> list[TreeNode]:
    """Top roles of the location's own per-role breakdown."""
    top = [(role, count) for role, count in ranked_entries(location_roles)[:TOP_ROLE_LEAVES] if count > 0]
    return [
        TreeNode(
            id=f"{location}-{role}",
            name=_role_label(role),
            value=count,
            color=role_color(base, i, len(top)),
        )
        for i, (role, count) in enumerate(top)
    ]


def proportional_role_leaves(
    location: str,
    location_total: float,
    role_breakdown: Mapping[str, float],
    base: tuple[int, int, int],
) -> list[TreeNode]:
    """
    Spread the location total over the global top roles.

    Each leaf gets round_half_up(role_count / top_total * location_total),
    where top_total is the sum of the global top roles. This ignores the
    location's real role mix.
    """
    top = ranked_entries(role_breakdown)[:TOP_ROLE_LEAVES]
    top_total = sum(count for _, count in top)
    if top_total <= 0:
        return []

    leaves = []
    for i, (role, count) in enumerate(top):
        value = round_half_up(count / top_total * location_total)
        if value <= 0:
            continue
        leaves.append(TreeNode(
            id=f"{location}-{role}",
            name=_role_label(role),
            value=value,
            color=role_color(base, i, len(top)),
        ))
    return leaves


# ============================================================================
# Tree Assembly
# ============================================================================

def _location_nodes(
    codes: list[str],
    location_breakdown: Mapping[str, float],
    role_breakdown: Mapping[str, float],
    per_location_role_data: Mapping[str, Mapping[str, float]] | None,
    base: tuple[int, int, int],
    profile: GeographyProfile,
) -> list[TreeNode]:
    nodes = []
    for i, code in enumerate(codes):
        total = location_breakdown[code]
        shade = location_base(base, i, len(codes))
        color = hsl(*shade)

        if per_location_role_data is not None and code in per_location_role_data:
            leaves = exact_role_leaves(code, per_location_role_data[code], shade)
        else:
            leaves = proportional_role_leaves(code, total, role_breakdown, shade)

        nodes.append(TreeNode(
            id=code,
            name=location_name(code, profile),
            color=color,
            children=leaves or None,
            value=None if leaves else total,
        ))
    return nodes


def _has_content(node: TreeNode) -> bool:
    return bool(node.children) or (node.value is not None and node.value > 0)


def build_drilldown_tree(
    location_breakdown: Mapping[str, float],
    role_breakdown: Mapping[str, float],
    per_location_role_data: Mapping[str, Mapping[str, float]] | None = None,
    *,
    profile: GeographyProfile,
) -> TreeNode:
    """
    Build the drill-down tree for the current selection.

    Args:
        location_breakdown: Location code -> total
        role_breakdown: Role -> total over the whole selection
        per_location_role_data: Location code -> role -> total; locations
            found here get exact leaves, others the proportional fallback
        profile: Geography profile supplying regions, names and colors

    Returns:
        Root TreeNode. Regions and locations without data are pruned.
    """
    root_name = f"All {profile.region_label or 'Regions'}"

    if not profile.regions:
        codes = [code for code, total in location_breakdown.items() if total > 0]
        children = _location_nodes(
            codes, location_breakdown, role_breakdown, per_location_role_data,
            FALLBACK_BASE_COLOR, profile,
        )
        return TreeNode(id="root", name=root_name, color=ROOT_COLOR,
                        children=[n for n in children if _has_content(n)])

    region_nodes = []
    for region, base in region_base_colors(profile).items():
        codes = [
            code for code in profile.regions[region]
            if location_breakdown.get(code, 0) > 0
        ]
        if not codes:
            continue
        children = [
            n for n in _location_nodes(
                codes, location_breakdown, role_breakdown, per_location_role_data, base, profile,
            )
            if _has_content(n)
        ]
        node = TreeNode(id=region, name=region, color=hsl(*base), children=children or None)
        if _has_content(node):
            region_nodes.append(node)

    return TreeNode(id="root", name=root_name, color=ROOT_COLOR, children=region_nodes)
