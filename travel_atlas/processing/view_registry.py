"""
NSW Travel-to-Work Atlas - View Registry
Single source of truth for every named analytical output

This registry defines:
- Canonical view names (materialized as <TABLE_PREFIX><name>)
- Layer (dimension, fact, metric, candidate, quality)
- Upstream views each one is derived from

NO view should be stored or exported without being registered here.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Tuple


class ViewLayer(str, Enum):
    """Output layer of a view"""
    DIMENSION = "dimension"
    FACT = "fact"
    METRIC = "metric"
    CANDIDATE = "candidate"
    QUALITY = "quality"  # Diagnostics; never feed analysis


@dataclass(frozen=True)
class ViewDefinition:
    """
    Definition of a single named output view
    """
    name: str  # Canonical view name
    layer: ViewLayer
    description: str
    depends_on: Tuple[str, ...] = ()  # Upstream view names


# ============================================================================
# DIMENSIONS AND FACTS
# ============================================================================

CORE_VIEWS: List[ViewDefinition] = [
    ViewDefinition(
        name="dim_sa2",
        layer=ViewLayer.DIMENSION,
        description="SA2 areas for every census year with a case/whitespace-insensitive name key",
    ),
    ViewDefinition(
        name="dim_cbd_sa2",
        layer=ViewLayer.DIMENSION,
        description="SA2 members of the CBD proxy SA3 per census year",
        depends_on=("dim_sa2",),
    ),
    ViewDefinition(
        name="fact_transport_clean",
        layer=ViewLayer.FACT,
        description="Resolved residence x method-of-travel counts with mode group",
        depends_on=("dim_sa2",),
    ),
    ViewDefinition(
        name="fact_transport_analysis",
        layer=ViewLayer.FACT,
        description="Jurisdiction residents, informative mode labels only",
        depends_on=("fact_transport_clean",),
    ),
    ViewDefinition(
        name="fact_flow_clean",
        layer=ViewLayer.FACT,
        description="Residence x workplace counts, both sides resolved where possible",
        depends_on=("dim_sa2",),
    ),
    ViewDefinition(
        name="fact_flow_analysis",
        layer=ViewLayer.FACT,
        description="Jurisdiction residents with a resolved, geographic workplace",
        depends_on=("fact_flow_clean",),
    ),
]


# ============================================================================
# METRICS
# ============================================================================

METRIC_VIEWS: List[ViewDefinition] = [
    ViewDefinition(
        name="metric_mode_share",
        layer=ViewLayer.METRIC,
        description="Share of informative commuters per mode group, per SA2-year",
        depends_on=("fact_transport_analysis",),
    ),
    ViewDefinition(
        name="metric_wfh",
        layer=ViewLayer.METRIC,
        description="Worked-at-home rate per SA2-year",
        depends_on=("fact_transport_analysis",),
    ),
    ViewDefinition(
        name="metric_mixed_mode",
        layer=ViewLayer.METRIC,
        description="Public transport + private vehicle combined trip rate per SA2-year",
        depends_on=("fact_transport_analysis",),
    ),
    ViewDefinition(
        name="metric_self_containment",
        layer=ViewLayer.METRIC,
        description="Share of residents working in their own SA2",
        depends_on=("fact_flow_analysis",),
    ),
    ViewDefinition(
        name="metric_cbd_volume",
        layer=ViewLayer.METRIC,
        description="CBD-bound commuters and CBD dependency rate per origin SA2-year",
        depends_on=("fact_flow_analysis", "dim_cbd_sa2"),
    ),
    ViewDefinition(
        name="metric_mode_trend",
        layer=ViewLayer.METRIC,
        description="Jurisdiction-wide mode share per census year",
        depends_on=("fact_transport_analysis",),
    ),
    ViewDefinition(
        name="metric_mode_features",
        layer=ViewLayer.METRIC,
        description="Mode shares side by side, one row per SA2-year",
        depends_on=("metric_mode_share", "metric_wfh", "metric_mixed_mode"),
    ),
    ViewDefinition(
        name="metric_cbd_growth",
        layer=ViewLayer.METRIC,
        description="Change in CBD commuters and dependency between two censuses",
        depends_on=("metric_cbd_volume",),
    ),
    ViewDefinition(
        name="metric_workplace_hubs",
        layer=ViewLayer.METRIC,
        description="Destination SA3s ranked by workers for the candidate year",
        depends_on=("fact_flow_analysis",),
    ),
    ViewDefinition(
        name="metric_top_cbd_origins",
        layer=ViewLayer.METRIC,
        description="Origins ranked by CBD-bound commuters for the candidate year",
        depends_on=("metric_cbd_volume",),
    ),
]


# ============================================================================
# CANDIDATES AND QUALITY
# ============================================================================

CANDIDATE_VIEWS: List[ViewDefinition] = [
    ViewDefinition(
        name="candidate_bus_shortlist",
        layer=ViewLayer.CANDIDATE,
        description="Eligible origins ranked by bus-to-CBD candidate score",
        depends_on=("metric_cbd_volume", "metric_mode_features", "metric_cbd_growth"),
    ),
]

QUALITY_VIEWS: List[ViewDefinition] = [
    ViewDefinition(
        name="qa_unmatched_transport",
        layer=ViewLayer.QUALITY,
        description="Transport residence labels that did not resolve to an SA2",
        depends_on=("fact_transport_clean",),
    ),
    ViewDefinition(
        name="qa_unmatched_flow",
        layer=ViewLayer.QUALITY,
        description="OD label pairs with an unresolved residence or workplace",
        depends_on=("fact_flow_clean",),
    ),
    ViewDefinition(
        name="qa_unmatched_workplaces",
        layer=ViewLayer.QUALITY,
        description="Unresolved workplace labels ranked by commuters affected",
        depends_on=("fact_flow_clean",),
    ),
    ViewDefinition(
        name="qa_duplicate_area_keys",
        layer=ViewLayer.QUALITY,
        description="SA2 rows collapsed because their code or name key was duplicated",
    ),
]


# ============================================================================
# AGGREGATED REGISTRIES
# ============================================================================

VIEW_DEFINITIONS: List[ViewDefinition] = CORE_VIEWS + METRIC_VIEWS + CANDIDATE_VIEWS + QUALITY_VIEWS

VIEWS_BY_NAME: Dict[str, ViewDefinition] = {view.name: view for view in VIEW_DEFINITIONS}

VIEW_NAMES: List[str] = [view.name for view in VIEW_DEFINITIONS]


def get_view(view_name: str) -> ViewDefinition:
    """Get view definition by canonical name"""
    if view_name not in VIEWS_BY_NAME:
        raise ValueError(f"Unknown view: {view_name}")
    return VIEWS_BY_NAME[view_name]


def get_views_for_layer(layer: ViewLayer) -> List[ViewDefinition]:
    """Get all views in one output layer"""
    return [view for view in VIEW_DEFINITIONS if view.layer == ViewLayer(layer)]


def dependency_order(view_names: Iterable[str] = None) -> List[str]:
    """
    Order views so that every view follows its upstream views.

    Args:
        view_names: Views to order (default: all registered views)

    Returns:
        List of view names; upstream views outside the selection are not added
    """
    selected = list(VIEW_NAMES if view_names is None else view_names)
    for name in selected:
        get_view(name)

    wanted = set(selected)
    ordered: List[str] = []
    visiting = set()

    def visit(name: str) -> None:
        if name in ordered:
            return
        if name in visiting:
            raise ValueError(f"Dependency cycle at view: {name}")
        visiting.add(name)
        for upstream in VIEWS_BY_NAME[name].depends_on:
            visit(upstream)
        visiting.discard(name)
        if name in wanted:
            ordered.append(name)

    for name in selected:
        visit(name)

    return ordered
