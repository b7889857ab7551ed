import pytest

from travel_atlas.processing.view_registry import (
    VIEW_DEFINITIONS,
    VIEW_NAMES,
    VIEWS_BY_NAME,
    ViewLayer,
    dependency_order,
    get_view,
    get_views_for_layer,
)


def test_registry_names_unique():
    assert len(VIEW_NAMES) == len(set(VIEW_NAMES)) == 21


def test_dependencies_are_registered():
    for view in VIEW_DEFINITIONS:
        for upstream in view.depends_on:
            assert upstream in VIEWS_BY_NAME, f"{view.name} depends on unknown {upstream}"


def test_get_view():
    view = get_view("candidate_bus_shortlist")

    assert view.layer == ViewLayer.CANDIDATE
    assert "metric_cbd_growth" in view.depends_on


def test_get_view_unknown():
    with pytest.raises(ValueError, match="Unknown view"):
        get_view("metric_bus_frequency")


def test_views_for_layer():
    quality = [view.name for view in get_views_for_layer(ViewLayer.QUALITY)]

    assert quality == [
        "qa_unmatched_transport",
        "qa_unmatched_flow",
        "qa_unmatched_workplaces",
        "qa_duplicate_area_keys",
    ]
    assert len(get_views_for_layer("metric")) == 10


def test_dependency_order_puts_upstream_first():
    ordered = dependency_order()

    assert sorted(ordered) == sorted(VIEW_NAMES)
    for view in VIEW_DEFINITIONS:
        for upstream in view.depends_on:
            assert ordered.index(upstream) < ordered.index(view.name)


def test_dependency_order_of_subset():
    ordered = dependency_order(["candidate_bus_shortlist", "metric_cbd_volume", "dim_sa2"])

    assert ordered == ["dim_sa2", "metric_cbd_volume", "candidate_bus_shortlist"]


def test_dependency_order_rejects_unknown():
    with pytest.raises(ValueError):
        dependency_order(["dim_sa2", "nope"])


def test_quality_views_follow_their_fact_builds():
    assert get_view("qa_unmatched_transport").depends_on == ("fact_transport_clean",)
    assert get_view("qa_unmatched_flow").depends_on == ("fact_flow_clean",)
