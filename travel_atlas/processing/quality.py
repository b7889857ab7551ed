"""
NSW Travel-to-Work Atlas - Quality Audit
Diagnostic views for raw SA2 labels that fail to resolve

Unresolved labels are never fatal: they are excluded from analysis
views and surfaced here with the number of commuters they carry.
"""

import numpy as np
import pandas as pd

from travel_atlas.utils.logging import get_logger

logger = get_logger(__name__)

UNMATCHED_TRANSPORT_COLUMNS = [
    "census_year",
    "sa2_res_name",
    "sa2_res_key",
    "row_count",
    "commuters",
]

UNMATCHED_FLOW_COLUMNS = [
    "census_year",
    "sa2_res_name",
    "sa2_work_name",
    "unmatched_side",
    "row_count",
    "commuters",
]

UNMATCHED_WORKPLACE_COLUMNS = ["census_year", "sa2_work_name", "row_count", "commuters"]


def unmatched_transport_keys(unmatched: pd.DataFrame) -> pd.DataFrame:
    """
    Distinct residence labels from the transport feed with no SA2 match.

    Args:
        unmatched: Raw transport rows that failed the dimension join

    Returns:
        One row per (census_year, raw name) with affected row/commuter counts
    """
    if unmatched.empty:
        return pd.DataFrame(columns=UNMATCHED_TRANSPORT_COLUMNS)

    report = (
        unmatched.groupby(["census_year", "sa2_res_name", "sa2_res_key"], dropna=False)
        .agg(row_count=("commuter_count", "size"), commuters=("commuter_count", "sum"))
        .reset_index()
        .sort_values(["census_year", "commuters"], ascending=[True, False], kind="mergesort")
    )

    logger.warning(
        f"Transport QA: {len(report)} unmatched residence labels "
        f"({int(report['commuters'].sum())} commuters)"
    )
    return report[UNMATCHED_TRANSPORT_COLUMNS].reset_index(drop=True)


def unmatched_flow_keys(flow_clean: pd.DataFrame) -> pd.DataFrame:
    """
    Distinct (residence, workplace) label pairs where either side failed to resolve.

    Args:
        flow_clean: fact_flow_clean

    Returns:
        One row per (census_year, residence name, workplace name) with the failing side
    """
    res_missing = flow_clean["sa2_res_code"].isna()
    work_missing = flow_clean["sa2_work_code"].isna()
    failed = flow_clean[res_missing | work_missing].copy()

    if failed.empty:
        return pd.DataFrame(columns=UNMATCHED_FLOW_COLUMNS)

    failed["unmatched_side"] = np.select(
        [res_missing[failed.index] & work_missing[failed.index], res_missing[failed.index]],
        ["both", "residence"],
        default="workplace",
    )

    report = (
        failed.groupby(
            ["census_year", "sa2_res_name", "sa2_work_name", "unmatched_side"], dropna=False
        )
        .agg(row_count=("commuter_count", "size"), commuters=("commuter_count", "sum"))
        .reset_index()
        .sort_values(["census_year", "commuters"], ascending=[True, False], kind="mergesort")
    )

    logger.warning(
        f"Flow QA: {len(report)} unmatched OD label pairs "
        f"({int(report['commuters'].sum())} commuters)"
    )
    return report[UNMATCHED_FLOW_COLUMNS].reset_index(drop=True)


def unmatched_workplace_impact(flow_clean: pd.DataFrame) -> pd.DataFrame:
    """
    Workplace labels that fail to resolve, ranked by commuters affected.

    Args:
        flow_clean: fact_flow_clean

    Returns:
        One row per (census_year, raw workplace name)
    """
    failed = flow_clean[flow_clean["sa2_work_code"].isna()]

    if failed.empty:
        return pd.DataFrame(columns=UNMATCHED_WORKPLACE_COLUMNS)

    report = (
        failed.groupby(["census_year", "sa2_work_name"], dropna=False)
        .agg(row_count=("commuter_count", "size"), commuters=("commuter_count", "sum"))
        .reset_index()
        .sort_values(["census_year", "commuters"], ascending=[True, False], kind="mergesort")
    )

    top = report.iloc[0]
    logger.info(
        f"Largest unresolved workplace: '{top['sa2_work_name']}' "
        f"({int(top['commuters'])} commuters, {top['census_year']})"
    )
    return report[UNMATCHED_WORKPLACE_COLUMNS].reset_index(drop=True)
