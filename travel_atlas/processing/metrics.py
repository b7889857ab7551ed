"""
NSW Travel-to-Work Atlas - Metric Aggregator
Area-year commuting metrics computed from the analysis-ready facts

Metrics:
- Mode share per (year, SA2, mode group), informative rows only
- WFH rate and mixed-mode rate (single-group variants of mode share)
- Self-containment: residents working in their own SA2
- CBD dependency / volume: residents working in the CBD proxy region
- Jurisdiction-wide mode trend per census year
- Mode feature pivot (one row per area-year)
- Workplace hub ranking and top CBD origins for one census year

Every rate is NaN when its denominator is 0, never 0.0.
"""

import numpy as np
import pandas as pd

from travel_atlas.processing.mode_classifier import ModeGroup
from travel_atlas.utils.logging import get_logger

logger = get_logger(__name__)

AREA_KEYS = ["census_year", "sa2_res_code", "sa2_res_name_std"]

# Pivot column per mode group; wfh/mixed shares come from their own rates
PIVOT_SHARE_COLUMNS = {
    ModeGroup.PUBLIC_TRANSPORT.value: "pt_share",
    ModeGroup.PRIVATE_VEHICLE.value: "private_share",
    ModeGroup.ACTIVE_TRANSPORT.value: "active_share",
    ModeGroup.OTHER.value: "other_share",
}

MODE_FEATURE_COLUMNS = AREA_KEYS + [
    "pt_share",
    "private_share",
    "wfh_share",
    "mixed_share",
    "active_share",
    "other_share",
    "total_commuters",
    "wfh_commuters",
    "mixed_commuters",
]


def safe_rate(numerator, denominator) -> np.ndarray:
    """
    Element-wise numerator / denominator, NaN where denominator <= 0.

    Args:
        numerator: Array-like of counts
        denominator: Array-like of counts, same length

    Returns:
        Float array of rates
    """
    num = np.asarray(numerator, dtype=float)
    den = np.asarray(denominator, dtype=float)
    return np.divide(num, den, out=np.full(num.shape, np.nan, dtype=float), where=den > 0)


def _informative(transport: pd.DataFrame) -> pd.DataFrame:
    return transport[transport["is_informative"].astype(bool)]


def mode_share(transport: pd.DataFrame) -> pd.DataFrame:
    """
    Per-category commuter share for each residence area-year.

    Args:
        transport: fact_transport_analysis

    Returns:
        DataFrame with AREA_KEYS, mode_group, commuters, total_commuters, mode_share
    """
    grouped = (
        _informative(transport)
        .groupby(AREA_KEYS + ["mode_group"], dropna=False)["commuter_count"]
        .sum()
        .reset_index(name="commuters")
    )

    grouped["total_commuters"] = grouped.groupby(["census_year", "sa2_res_code"])[
        "commuters"
    ].transform("sum")
    grouped["mode_share"] = safe_rate(grouped["commuters"], grouped["total_commuters"])

    logger.info(f"Mode share: {len(grouped)} area-year-mode rows")
    return grouped.sort_values(AREA_KEYS[:2] + ["mode_group"], kind="mergesort").reset_index(drop=True)


def single_mode_rate(
    transport: pd.DataFrame, group: ModeGroup, count_column: str, rate_column: str
) -> pd.DataFrame:
    """
    Share of one mode group in each area-year's informative commuters.

    Args:
        transport: fact_transport_analysis
        group: Mode group counted in the numerator
        count_column: Output name for the numerator
        rate_column: Output name for the rate

    Returns:
        DataFrame with AREA_KEYS, count_column, total_commuters, rate_column
    """
    rows = _informative(transport).copy()
    in_group = rows["mode_group"].eq(ModeGroup(group).value).fillna(False).astype(bool)
    rows[count_column] = rows["commuter_count"].where(in_group, 0)

    result = (
        rows.groupby(AREA_KEYS, dropna=False)
        .agg(**{count_column: (count_column, "sum"), "total_commuters": ("commuter_count", "sum")})
        .reset_index()
    )
    result[rate_column] = safe_rate(result[count_column], result["total_commuters"])

    return result[AREA_KEYS + [count_column, "total_commuters", rate_column]]


def wfh_rate(transport: pd.DataFrame) -> pd.DataFrame:
    """Worked-at-home share per area-year."""
    return single_mode_rate(transport, ModeGroup.WFH, "wfh_commuters", "wfh_rate")


def mixed_mode_rate(transport: pd.DataFrame) -> pd.DataFrame:
    """Public + private combined trips share per area-year."""
    return single_mode_rate(
        transport, ModeGroup.MIXED_PT_PRIVATE, "mixed_commuters", "mixed_mode_rate"
    )


def _flow_rate(
    flows: pd.DataFrame,
    numerator_mask: pd.Series,
    count_column: str,
    total_column: str,
    rate_column: str,
) -> pd.DataFrame:
    rows = flows.copy()
    rows[count_column] = rows["commuter_count"].where(numerator_mask, 0)

    result = (
        rows.groupby(AREA_KEYS, dropna=False)
        .agg(**{count_column: (count_column, "sum"), total_column: ("commuter_count", "sum")})
        .reset_index()
    )
    result[rate_column] = safe_rate(result[count_column], result[total_column])
    return result[AREA_KEYS + [count_column, total_column, rate_column]]


def self_containment(flows: pd.DataFrame) -> pd.DataFrame:
    """
    Share of each origin's commuters who work in the same SA2.

    Args:
        flows: fact_flow_analysis

    Returns:
        DataFrame with AREA_KEYS, local_workers, total_commuters, self_containment_rate
    """
    local = flows["sa2_res_code"].eq(flows["sa2_work_code"]).fillna(False).astype(bool)
    result = _flow_rate(flows, local, "local_workers", "total_commuters", "self_containment_rate")

    logger.info(f"Self-containment: {len(result)} area-year rows")
    return result


def cbd_volume(flows: pd.DataFrame, cbd: pd.DataFrame) -> pd.DataFrame:
    """
    CBD-bound commuter volume and dependency rate per origin area-year.

    Args:
        flows: fact_flow_analysis
        cbd: dim_cbd_sa2 (census_year, sa2_code, sa2_name)

    Returns:
        DataFrame with AREA_KEYS, cbd_commuters, total_commuters_od, cbd_dependency_rate
    """
    members = (
        cbd[["census_year", "sa2_code"]]
        .drop_duplicates()
        .rename(columns={"sa2_code": "sa2_work_code"})
    )
    tagged = flows.merge(members, how="left", on=["census_year", "sa2_work_code"], indicator=True)
    bound = tagged["_merge"].eq("both")

    result = _flow_rate(tagged, bound, "cbd_commuters", "total_commuters_od", "cbd_dependency_rate")

    for year, commuters in result.groupby("census_year")["cbd_commuters"].sum().items():
        logger.info(f"  CBD-bound commuters {year}: {int(commuters)}")

    return result


def mode_trend(transport: pd.DataFrame) -> pd.DataFrame:
    """
    Jurisdiction-wide mode share per census year (areas ignored).

    Args:
        transport: fact_transport_analysis

    Returns:
        DataFrame with census_year, mode_group, commuters, total_commuters, mode_share_nsw
    """
    trend = (
        _informative(transport)
        .groupby(["census_year", "mode_group"])["commuter_count"]
        .sum()
        .reset_index(name="commuters")
    )
    trend["total_commuters"] = trend.groupby("census_year")["commuters"].transform("sum")
    trend["mode_share_nsw"] = safe_rate(trend["commuters"], trend["total_commuters"])

    return trend.sort_values(["census_year", "mode_group"], kind="mergesort").reset_index(drop=True)


def mode_features(shares: pd.DataFrame, wfh: pd.DataFrame, mixed: pd.DataFrame) -> pd.DataFrame:
    """
    One row per area-year with every mode share side by side.

    A pivot share is NaN when the area-year has no rows in that mode
    group; wfh_share and mixed_share come from their own rates, which
    are 0 rather than NaN when the group is absent but commuters exist.

    Args:
        shares: metric_mode_share
        wfh: metric_wfh
        mixed: metric_mixed_mode

    Returns:
        DataFrame in MODE_FEATURE_COLUMNS order
    """
    if shares.empty:
        return pd.DataFrame(columns=MODE_FEATURE_COLUMNS)

    pivot = shares.groupby(AREA_KEYS + ["mode_group"])["mode_share"].max().unstack("mode_group")
    pivot = pivot.reindex(columns=list(PIVOT_SHARE_COLUMNS)).rename(columns=PIVOT_SHARE_COLUMNS)
    pivot.columns.name = None
    features = pivot.reset_index()

    features = features.merge(
        wfh[["census_year", "sa2_res_code", "wfh_rate", "total_commuters", "wfh_commuters"]],
        how="left",
        on=["census_year", "sa2_res_code"],
    ).rename(columns={"wfh_rate": "wfh_share"})

    features = features.merge(
        mixed[["census_year", "sa2_res_code", "mixed_mode_rate", "mixed_commuters"]],
        how="left",
        on=["census_year", "sa2_res_code"],
    ).rename(columns={"mixed_mode_rate": "mixed_share"})

    logger.info(f"Mode features: {len(features)} area-year rows")
    return features[MODE_FEATURE_COLUMNS].sort_values(AREA_KEYS[:2], kind="mergesort").reset_index(
        drop=True
    )


def workplace_hubs(flows: pd.DataFrame, year: int) -> pd.DataFrame:
    """
    Rank destination SA3s by jurisdiction-resident workers for one year.

    Args:
        flows: fact_flow_analysis
        year: Census year to rank

    Returns:
        DataFrame with census_year, workplace_sa3_hub, workplace_sa4_region,
        total_workers_at_destination, pct_of_jurisdiction_workforce (0-100, 2 dp)
    """
    columns = [
        "census_year",
        "workplace_sa3_hub",
        "workplace_sa4_region",
        "total_workers_at_destination",
        "pct_of_jurisdiction_workforce",
    ]
    rows = flows[flows["census_year"] == year]
    if rows.empty:
        logger.warning(f"No analysis flows for {year}, workplace hub ranking is empty")
        return pd.DataFrame(columns=columns)

    hubs = (
        rows.groupby(["work_sa3_name", "work_sa4_name"], dropna=False)["commuter_count"]
        .sum()
        .reset_index(name="total_workers_at_destination")
        .rename(columns={"work_sa3_name": "workplace_sa3_hub", "work_sa4_name": "workplace_sa4_region"})
    )
    hubs["census_year"] = year
    total = hubs["total_workers_at_destination"].sum()
    hubs["pct_of_jurisdiction_workforce"] = (
        100 * hubs["total_workers_at_destination"] / total if total > 0 else np.nan
    )
    hubs["pct_of_jurisdiction_workforce"] = hubs["pct_of_jurisdiction_workforce"].round(2)

    hubs = hubs.sort_values(
        ["total_workers_at_destination", "workplace_sa3_hub"], ascending=[False, True], kind="mergesort"
    )
    return hubs[columns].reset_index(drop=True)


def top_cbd_origins(volume: pd.DataFrame, year: int) -> pd.DataFrame:
    """
    Origins ranked by CBD-bound commuters for one census year.

    Args:
        volume: metric_cbd_volume
        year: Census year to rank

    Returns:
        DataFrame with sa2_res_code, sa2_res_name_std, cbd_commuters, cbd_dependency_rate
    """
    origins = volume[volume["census_year"] == year][
        ["sa2_res_code", "sa2_res_name_std", "cbd_commuters", "cbd_dependency_rate"]
    ]
    origins = origins.sort_values(
        ["cbd_commuters", "sa2_res_code"], ascending=[False, True], kind="mergesort"
    ).reset_index(drop=True)

    return origins
