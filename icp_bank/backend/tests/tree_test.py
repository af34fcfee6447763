from geography import get_profile, region_colors
from metrics import location_role_breakdown
from tree import ROOT_COLOR, build_drilldown_tree, exact_role_leaves, proportional_role_leaves


LOCATIONS = {"CA": 15, "NY": 20}
ROLES = {"Editor": 10, "Sound Mixer": 25}


def _leaves(node):
    return [(leaf.name, leaf.value) for leaf in node.children]


def _find(node, node_id):
    for child in node.children or []:
        if child.id == node_id:
            return child
    raise AssertionError(f"{node_id} not found under {node.id}")


def test_root_and_region_levels(sample_dataset, us_profile):
    per_location = location_role_breakdown(sample_dataset.rows, ["Editor", "Sound Mixer"])
    tree = build_drilldown_tree(LOCATIONS, ROLES, per_location, profile=us_profile)

    assert tree.id == "root"
    assert tree.name == "All Regions"
    assert tree.color == ROOT_COLOR
    # Regions without data are pruned; order follows the profile
    assert [region.id for region in tree.children] == ["Northeast", "West"]


def test_exact_leaves_use_location_role_data(sample_dataset, us_profile):
    per_location = location_role_breakdown(sample_dataset.rows, ["Editor", "Sound Mixer"])
    tree = build_drilldown_tree(LOCATIONS, ROLES, per_location, profile=us_profile)

    california = _find(_find(tree, "West"), "CA")
    assert california.name == "California"
    assert california.value is None
    assert _leaves(california) == [("Editor", 10), ("Sound Mixer", 5)]
    assert california.children[0].id == "CA-Editor"

    # Zero-valued roles never appear as leaves
    new_york = _find(_find(tree, "Northeast"), "NY")
    assert _leaves(new_york) == [("Sound Mixer", 20)]


def test_proportional_leaves_without_location_role_data(us_profile):
    tree = build_drilldown_tree(LOCATIONS, ROLES, profile=us_profile)
    california = _find(_find(tree, "West"), "CA")
    # Sound Mixer: 25/35 * 15 = 10.71, Editor: 10/35 * 15 = 4.29
    assert _leaves(california) == [("Sound Mixer", 11), ("Editor", 4)]


def test_exact_and_proportional_strategies_differ():
    base = (38, 92, 50)
    exact = exact_role_leaves("CA", {"Editor": 10, "Sound Mixer": 5}, base)
    approx = proportional_role_leaves("CA", 15, ROLES, base)
    assert [leaf.value for leaf in exact] == [10, 5]
    assert [leaf.value for leaf in approx] == [11, 4]
    assert proportional_role_leaves("CA", 15, {"Editor": 0}, base) == []


def test_leaf_count_capped_and_names_truncated():
    roles = {f"Role {i}": 10 - i for i in range(8)}
    roles["Supervising Sound Editor Lead"] = 50
    leaves = exact_role_leaves("CA", roles, (38, 92, 50))
    assert len(leaves) == 5
    assert leaves[0].name == "Supervising Sound Ed..."
    assert leaves[0].id == "CA-Supervising Sound Editor Lead"


def test_colors_derive_from_region_hue(sample_dataset, us_profile):
    per_location = location_role_breakdown(sample_dataset.rows, ["Editor", "Sound Mixer"])
    tree = build_drilldown_tree(LOCATIONS, ROLES, per_location, profile=us_profile)

    west = _find(tree, "West")
    assert west.color == region_colors(us_profile)["West"]
    california = _find(west, "CA")
    assert california.color == "hsl(38, 92%, 50%)"
    assert california.children[0].color == "hsl(38, 82%, 40%)"


def test_empty_breakdown_yields_bare_root(us_profile):
    tree = build_drilldown_tree({"CA": 0}, {}, profile=us_profile)
    assert tree.children == []


def test_profile_without_regions_skips_region_level():
    generic = get_profile("GENERIC")
    tree = build_drilldown_tree({"Springfield": 4, "Shelbyville": 0}, {"Editor": 4}, profile=generic)
    assert tree.name == "All Groups"
    assert [node.id for node in tree.children] == ["Springfield"]
    assert _leaves(tree.children[0]) == [("Editor", 4)]
