"""
NSW Travel-to-Work Atlas - Bus Candidate Scoring
Ranks origin SA2s as candidates for bus-to-CBD corridors

Two phases:
1. assemble_candidates: eligibility filter, raw components materialized
2. score_candidates: maxima over the whole eligible set, then scores

Score = w_cbd    * cbd_commuters / max(cbd_commuters)
      + w_growth * growth_rate / max(growth_rate)   (0 if max <= 0)
      + w_pt     * (1 - pt_share)
      + w_wfh    * (1 - wfh_share)
      + w_mixed  * mixed_share / max(mixed_share)   (0 if max <= 0)

Scores are only comparable within one run: a different eligible set
gives different maxima.
"""

from typing import Optional

import numpy as np
import pandas as pd

from travel_atlas.processing.pipeline_config import PipelineConfig, ScoringWeights
from travel_atlas.utils.logging import get_logger

logger = get_logger(__name__)

CANDIDATE_COLUMNS = [
    "census_year",
    "sa2_res_code",
    "sa2_res_name_std",
    "cbd_commuters",
    "total_commuters_od",
    "cbd_dependency_rate",
    "pt_share",
    "wfh_share",
    "mixed_share",
    "total_commuters",
    "cbd_growth_rate",
    "growth_rate_scored",
]

COMPONENT_COLUMNS = [
    "cbd_volume_component",
    "growth_component",
    "pt_gap_component",
    "wfh_gap_component",
    "mixed_mode_component",
]

SHORTLIST_COLUMNS = ["rank"] + CANDIDATE_COLUMNS + COMPONENT_COLUMNS + ["bus_candidate_score"]


def assemble_candidates(
    volume: pd.DataFrame,
    features: pd.DataFrame,
    growth: Optional[pd.DataFrame],
    config: PipelineConfig,
) -> pd.DataFrame:
    """
    Phase 1: eligible origins for the candidate year with raw components.

    Args:
        volume: metric_cbd_volume
        features: metric_mode_features
        growth: metric_cbd_growth (None or empty means no growth signal)
        config: Validated pipeline configuration

    Returns:
        DataFrame in CANDIDATE_COLUMNS order
    """
    year = config.candidate_year
    logger.info(f"Assembling bus candidates for {year}")

    base = volume[volume["census_year"] == year].merge(
        features[
            ["census_year", "sa2_res_code", "pt_share", "wfh_share", "mixed_share", "total_commuters"]
        ],
        how="inner",
        on=["census_year", "sa2_res_code"],
    )
    considered = len(base)

    eligible = (
        (base["cbd_commuters"] >= config.min_cbd_commuters)
        & (base["total_commuters_od"] >= config.min_total_commuters)
        & base["pt_share"].notna()
        & base["wfh_share"].notna()
        & base["mixed_share"].notna()
    )
    candidates = base[eligible].copy()

    if growth is not None and not growth.empty:
        candidates = candidates.merge(
            growth[["sa2_res_code", "cbd_growth_rate"]], how="left", on="sa2_res_code"
        )
    else:
        logger.warning("No CBD growth available, growth component is neutral for every candidate")
        candidates["cbd_growth_rate"] = np.nan

    # Missing growth is neutral (0) in the score; the raw rate stays NaN
    candidates["growth_rate_scored"] = candidates["cbd_growth_rate"].astype(float).fillna(0.0)

    logger.info(
        f"Candidates {year}: {len(candidates)} eligible of {considered} origins "
        f"(cbd >= {config.min_cbd_commuters}, total >= {config.min_total_commuters})"
    )
    return candidates[CANDIDATE_COLUMNS].reset_index(drop=True)


def _scaled_by_max(values: pd.Series) -> pd.Series:
    """values / max(values); all zero when the max is not positive."""
    values = values.astype(float)
    peak = values.max()
    if pd.isna(peak) or peak <= 0:
        return pd.Series(0.0, index=values.index)
    return values / peak


def score_candidates(candidates: pd.DataFrame, weights: ScoringWeights) -> pd.DataFrame:
    """
    Phase 2: normalize against the eligible set and rank.

    Ties on score are broken by sa2_res_code ascending.

    Args:
        candidates: Output of assemble_candidates
        weights: Composite score weights

    Returns:
        candidate_bus_shortlist in SHORTLIST_COLUMNS order
    """
    if candidates.empty:
        logger.warning("No eligible bus candidates to score")
        return pd.DataFrame(columns=SHORTLIST_COLUMNS)

    scored = candidates.copy()

    scored["cbd_volume_component"] = _scaled_by_max(scored["cbd_commuters"])
    scored["growth_component"] = _scaled_by_max(scored["growth_rate_scored"])
    scored["pt_gap_component"] = 1 - scored["pt_share"].astype(float)
    scored["wfh_gap_component"] = 1 - scored["wfh_share"].astype(float)
    scored["mixed_mode_component"] = _scaled_by_max(scored["mixed_share"])

    scored["bus_candidate_score"] = (
        weights.cbd_volume * scored["cbd_volume_component"]
        + weights.cbd_growth * scored["growth_component"]
        + weights.pt_gap * scored["pt_gap_component"]
        + weights.wfh_gap * scored["wfh_gap_component"]
        + weights.mixed_mode * scored["mixed_mode_component"]
    )

    scored = scored.sort_values(
        ["bus_candidate_score", "sa2_res_code"], ascending=[False, True], kind="mergesort"
    ).reset_index(drop=True)
    scored["rank"] = np.arange(1, len(scored) + 1)

    top = scored.iloc[0]
    logger.info(
        f"Scored {len(scored)} candidates: top {top['sa2_res_name_std']} "
        f"({top['bus_candidate_score']:.3f}), mean {scored['bus_candidate_score'].mean():.3f}"
    )

    return scored[SHORTLIST_COLUMNS]
