"""
NSW Travel-to-Work Atlas - Flow Fact Builder
Resolves residence x workplace OD counts against the SA2 dimension

- Residence and workplace sides resolve independently (left joins)
- Clean table keeps every row, resolved or not, for audit
- Analysis view: jurisdiction residents, resolved workplace,
  reserved non-geographic workplace codes removed
- Destination state is never filtered
"""

from typing import Dict, Iterable

import pandas as pd

from travel_atlas.processing.geography import normalize_name_key, year_areas
from travel_atlas.processing.transport_facts import jurisdiction_mask
from travel_atlas.utils.logging import get_logger

logger = get_logger(__name__)

FLOW_FACT_COLUMNS = [
    "census_year",
    "sa2_res_name",
    "sa2_res_code",
    "sa2_res_name_std",
    "res_state_name",
    "res_sa4_name",
    "res_change_flag",
    "res_change_label",
    "sa2_work_name",
    "sa2_work_code",
    "sa2_work_name_std",
    "work_state_name",
    "work_sa3_name",
    "work_sa4_name",
    "work_change_flag",
    "work_change_label",
    "commuter_count",
]

_SIDE_COLUMNS = {
    "sa2_code": "sa2_{side}_code",
    "sa2_name": "sa2_{side}_name_std",
    "state_name": "{side}_state_name",
    "sa3_name": "{side}_sa3_name",
    "sa4_name": "{side}_sa4_name",
    "change_flag": "{side}_change_flag",
    "change_label": "{side}_change_label",
}


def _side_lookup(areas: pd.DataFrame, side: str) -> pd.DataFrame:
    renames = {col: pattern.format(side=side) for col, pattern in _SIDE_COLUMNS.items()}
    renames["sa2_name_key"] = f"sa2_{side}_key"
    keyed = areas[areas["sa2_name_key"].notna()]
    return keyed[list(renames)].rename(columns=renames)


def build_year_flow_facts(raw: pd.DataFrame, areas: pd.DataFrame) -> pd.DataFrame:
    """
    Resolve one census year's OD rows on both sides.

    Args:
        raw: Canonical raw flow rows (single year)
        areas: Same-year slice of the SA2 dimension

    Returns:
        Flow facts in FLOW_FACT_COLUMNS order; unresolved sides have null codes
    """
    keyed = raw.copy()
    keyed["sa2_res_key"] = normalize_name_key(keyed["sa2_res_name"])
    keyed["sa2_work_key"] = normalize_name_key(keyed["sa2_work_name"])

    joined = keyed.merge(_side_lookup(areas, "res"), how="left", on="sa2_res_key")
    joined = joined.merge(_side_lookup(areas, "work"), how="left", on="sa2_work_key")

    return joined[FLOW_FACT_COLUMNS].reset_index(drop=True)


def build_flow_facts(raw_by_year: Dict[int, pd.DataFrame], dim: pd.DataFrame) -> pd.DataFrame:
    """
    Build the unified flow fact table across census years.

    Args:
        raw_by_year: Dict of census_year -> canonical raw flow rows
        dim: Unified SA2 dimension

    Returns:
        fact_flow_clean (all rows, unresolved sides null)
    """
    logger.info("Building flow facts")

    frames = []
    for year in sorted(raw_by_year):
        facts = build_year_flow_facts(raw_by_year[year], year_areas(dim, year))
        unresolved = facts["sa2_res_code"].isna() | facts["sa2_work_code"].isna()
        logger.info(f"  {year}: {len(facts)} flow rows, {int(unresolved.sum())} with an unresolved side")
        frames.append(facts)

    if not frames:
        return pd.DataFrame(columns=FLOW_FACT_COLUMNS)

    return pd.concat(frames, ignore_index=True)


def filter_flow_analysis(
    clean: pd.DataFrame, jurisdiction: str, excluded_workplace_codes: Iterable[str]
) -> pd.DataFrame:
    """
    Analysis-ready OD rows.

    Args:
        clean: fact_flow_clean
        jurisdiction: Residence-side state name (e.g., 'New South Wales')
        excluded_workplace_codes: Reserved non-geographic SA2 codes

    Returns:
        fact_flow_analysis
    """
    excluded = [str(code).strip() for code in excluded_workplace_codes]

    work_codes = clean["sa2_work_code"].astype("string").str.strip()
    mask = (
        jurisdiction_mask(clean["res_state_name"], jurisdiction)
        & work_codes.notna().astype(bool)
        & ~work_codes.isin(excluded).fillna(False).astype(bool)
    )

    analysis = clean[mask].reset_index(drop=True)

    dropped_reserved = int((work_codes.isin(excluded).fillna(False).astype(bool)).sum())
    if dropped_reserved:
        logger.info(f"  excluded {dropped_reserved} flow rows with reserved workplace codes {excluded}")

    for year, commuters in analysis.groupby("census_year")["commuter_count"].sum().items():
        logger.info(f"  flow analysis {year}: {int(commuters)} commuters")

    return analysis
