"""
NSW Travel-to-Work Atlas - CBD Growth
Two-census change in CBD-bound commuting per origin SA2

Pairs the base-year and target-year CBD volume rows by origin code.
- cbd_commuter_change / cbd_rate_pp_change = target - base
- cbd_growth_rate = change / base, only when the base count is > 0
- Origins present in one year only keep their row with NaN changes
"""

import numpy as np
import pandas as pd

from travel_atlas.utils.logging import get_logger
from travel_atlas.utils.year_policy import growth_window_label

logger = get_logger(__name__)

GROWTH_COLUMNS = [
    "sa2_res_code",
    "sa2_res_name_std",
    "base_year",
    "target_year",
    "cbd_commuters_base",
    "cbd_commuters_target",
    "cbd_rate_base",
    "cbd_rate_target",
    "cbd_commuter_change",
    "cbd_rate_pp_change",
    "cbd_growth_rate",
]


def _year_slice(volume: pd.DataFrame, year: int, suffix: str) -> pd.DataFrame:
    rows = volume[volume["census_year"] == year]
    return rows[["sa2_res_code", "sa2_res_name_std", "cbd_commuters", "cbd_dependency_rate"]].rename(
        columns={
            "sa2_res_name_std": f"name_{suffix}",
            "cbd_commuters": f"cbd_commuters_{suffix}",
            "cbd_dependency_rate": f"cbd_rate_{suffix}",
        }
    )


def cbd_growth(volume: pd.DataFrame, base_year: int = 2016, target_year: int = 2021) -> pd.DataFrame:
    """
    Change in CBD commuters and dependency between two census years.

    Args:
        volume: metric_cbd_volume
        base_year: Earlier census year
        target_year: Later census year

    Returns:
        DataFrame in GROWTH_COLUMNS order, one row per origin code
    """
    label = growth_window_label(base_year, target_year)
    logger.info(f"Calculating CBD growth {label} ({base_year} -> {target_year})")

    paired = _year_slice(volume, base_year, "base").merge(
        _year_slice(volume, target_year, "target"), how="outer", on="sa2_res_code"
    )

    # Prefer the latest published name for the origin
    paired["sa2_res_name_std"] = paired["name_target"].fillna(paired["name_base"])
    paired["base_year"] = base_year
    paired["target_year"] = target_year

    base = paired["cbd_commuters_base"].astype(float)
    target = paired["cbd_commuters_target"].astype(float)

    paired["cbd_commuter_change"] = target - base
    paired["cbd_rate_pp_change"] = (
        paired["cbd_rate_target"].astype(float) - paired["cbd_rate_base"].astype(float)
    )
    paired["cbd_growth_rate"] = np.divide(
        paired["cbd_commuter_change"].to_numpy(dtype=float),
        base.to_numpy(),
        out=np.full(len(paired), np.nan, dtype=float),
        where=base.to_numpy() > 0,
    )

    defined = paired["cbd_growth_rate"].notna()
    logger.info(
        f"CBD growth {label}: {len(paired)} origins, {int(defined.sum())} with a defined growth rate"
    )
    if defined.any():
        logger.info(f"  median growth rate: {paired.loc[defined, 'cbd_growth_rate'].median():.3f}")

    return paired[GROWTH_COLUMNS].sort_values("sa2_res_code", kind="mergesort").reset_index(drop=True)
