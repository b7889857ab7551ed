"""
NSW Travel-to-Work Atlas - Transport Fact Builder
Joins residence x method-of-travel counts to the SA2 dimension

- Join on (census_year, UPPER(TRIM(residence name)))
- Unmatched raw rows are kept aside for the quality audit
- Analysis view = jurisdiction residents, informative labels only
"""

from dataclasses import dataclass
from typing import Dict

import pandas as pd

from travel_atlas.processing.geography import normalize_name_key, year_areas
from travel_atlas.processing.mode_classifier import classify_modes
from travel_atlas.utils.logging import get_logger

logger = get_logger(__name__)

TRANSPORT_FACT_COLUMNS = [
    "census_year",
    "sa2_res_code",
    "sa2_res_name_std",
    "state_name",
    "sa4_name",
    "gccsa_name",
    "change_flag",
    "change_label",
    "mode_raw",
    "mode_group",
    "is_informative",
    "commuter_count",
]


@dataclass
class TransportFacts:
    """Clean transport facts plus the raw rows that failed to resolve."""

    clean: pd.DataFrame
    unmatched: pd.DataFrame


def jurisdiction_mask(state_names: pd.Series, jurisdiction: str) -> pd.Series:
    """Case/whitespace-insensitive state match; null states never match."""
    target = jurisdiction.strip().upper()
    return normalize_name_key(state_names).eq(target).fillna(False).astype(bool)


def build_year_transport_facts(raw: pd.DataFrame, areas: pd.DataFrame) -> TransportFacts:
    """
    Resolve one census year's transport rows against that year's areas.

    Args:
        raw: Canonical raw transport rows (single year)
        areas: Same-year slice of the SA2 dimension

    Returns:
        TransportFacts for the year
    """
    keyed = raw.copy()
    keyed["sa2_res_key"] = normalize_name_key(keyed["sa2_res_name"])

    lookup = areas[areas["sa2_name_key"].notna()][
        [
            "sa2_name_key",
            "sa2_code",
            "sa2_name",
            "state_name",
            "sa4_name",
            "gccsa_name",
            "change_flag",
            "change_label",
        ]
    ]

    joined = keyed.merge(lookup, how="left", left_on="sa2_res_key", right_on="sa2_name_key")
    matched_mask = joined["sa2_code"].notna()

    unmatched = joined.loc[~matched_mask, list(raw.columns) + ["sa2_res_key"]].reset_index(drop=True)

    clean = classify_modes(joined[matched_mask])
    clean = clean.rename(
        columns={"sa2_code": "sa2_res_code", "sa2_name": "sa2_res_name_std"}
    )
    clean["mode_raw"] = clean["mode_raw_norm"]
    clean = clean[TRANSPORT_FACT_COLUMNS].reset_index(drop=True)

    return TransportFacts(clean=clean, unmatched=unmatched)


def build_transport_facts(raw_by_year: Dict[int, pd.DataFrame], dim: pd.DataFrame) -> TransportFacts:
    """
    Build the unified transport fact table across census years.

    Args:
        raw_by_year: Dict of census_year -> canonical raw transport rows
        dim: Unified SA2 dimension

    Returns:
        TransportFacts (clean union + unmatched raw rows)
    """
    logger.info("Building transport facts")

    clean_frames = []
    unmatched_frames = []

    for year in sorted(raw_by_year):
        facts = build_year_transport_facts(raw_by_year[year], year_areas(dim, year))
        logger.info(
            f"  {year}: {len(facts.clean)} clean rows, {len(facts.unmatched)} unmatched rows"
        )
        if not facts.unmatched.empty:
            logger.warning(
                f"  {year}: {facts.unmatched['sa2_res_key'].nunique()} residence names "
                f"did not resolve ({int(facts.unmatched['commuter_count'].sum())} commuters)"
            )
        clean_frames.append(facts.clean)
        unmatched_frames.append(facts.unmatched)

    if not clean_frames:
        return TransportFacts(
            clean=pd.DataFrame(columns=TRANSPORT_FACT_COLUMNS),
            unmatched=pd.DataFrame(
                columns=["census_year", "sa2_res_name", "mode_raw", "commuter_count", "sa2_res_key"]
            ),
        )

    return TransportFacts(
        clean=pd.concat(clean_frames, ignore_index=True),
        unmatched=pd.concat(unmatched_frames, ignore_index=True),
    )


def filter_transport_analysis(clean: pd.DataFrame, jurisdiction: str) -> pd.DataFrame:
    """
    Jurisdiction residents with informative mode labels.

    This is the canonical input to every mode-share metric.
    """
    mask = jurisdiction_mask(clean["state_name"], jurisdiction) & clean["is_informative"].astype(bool)
    analysis = clean[mask].reset_index(drop=True)

    for year, count in analysis.groupby("census_year").size().items():
        logger.info(f"  transport analysis {year}: {count} rows")

    return analysis
