"""
NSW Travel-to-Work Atlas - Geography Resolver
Builds one SA2 dimension across census years with a stable text join key

Rules:
- Join key = UPPER(TRIM(name)); nothing else is folded
- (census_year, sa2_code) and (census_year, sa2_name_key) are unique
- Duplicate keys collapse to the lowest code and are reported, never raised
- Change metadata is typed string in every year (null before 2021)
"""

from typing import Dict, Tuple

import pandas as pd

from travel_atlas.ingest.census_feeds import AREA_COLUMNS
from travel_atlas.utils.logging import get_logger

logger = get_logger(__name__)

DIMENSION_COLUMNS = (
    ["census_year"]
    + AREA_COLUMNS[:2]
    + ["sa2_name_key"]
    + AREA_COLUMNS[2:]
    + ["area_sqkm", "change_flag", "change_label"]
)

DUPLICATE_COLUMNS = [
    "census_year",
    "sa2_name_key",
    "sa2_code",
    "sa2_name",
    "kept_sa2_code",
    "reason",
]

STRING_COLUMNS = [c for c in DIMENSION_COLUMNS if c not in ("census_year", "area_sqkm")]


def normalize_name_key(values: pd.Series) -> pd.Series:
    """
    Case/whitespace-insensitive join key for SA2 names.

    Leading/trailing whitespace is removed and the result uppercased.
    Internal spacing, punctuation and accents are left untouched.
    """
    return values.astype("string").str.strip().str.upper()


def _empty_dimension() -> pd.DataFrame:
    dim = pd.DataFrame({col: pd.Series(dtype="string") for col in DIMENSION_COLUMNS})
    dim["census_year"] = dim["census_year"].astype("int64")
    dim["area_sqkm"] = dim["area_sqkm"].astype("float64")
    return dim


def _align_types(dim: pd.DataFrame) -> pd.DataFrame:
    dim = dim.copy()
    dim["census_year"] = dim["census_year"].astype("int64")
    dim["area_sqkm"] = pd.to_numeric(dim["area_sqkm"], errors="coerce").astype("float64")
    for col in STRING_COLUMNS:
        dim[col] = dim[col].astype("string")
    return dim


def resolve_year_areas(areas: pd.DataFrame) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Key and de-duplicate one year's canonical area frame.

    Args:
        areas: Output of adapt_area_feed for a single census year

    Returns:
        Tuple of (resolved areas in DIMENSION_COLUMNS order, dropped duplicates)
    """
    resolved = areas.copy()
    resolved["sa2_name_key"] = normalize_name_key(resolved["sa2_name"])
    resolved = _align_types(resolved[DIMENSION_COLUMNS])

    # Deterministic: lowest code wins, then lowest name key for a shared code
    resolved = resolved.sort_values(
        ["sa2_code", "sa2_name_key"], kind="mergesort", na_position="last"
    )

    duplicates = []

    exact_dupes = resolved.duplicated(subset=["census_year", "sa2_code"], keep="first")
    exact_dupes &= resolved["sa2_code"].notna()
    if exact_dupes.any():
        dropped = resolved[exact_dupes].copy()
        dropped["kept_sa2_code"] = dropped["sa2_code"]
        dropped["reason"] = "duplicate_code"
        duplicates.append(dropped)
        resolved = resolved[~exact_dupes]

    key_dupes = resolved.duplicated(subset=["census_year", "sa2_name_key"], keep="first")
    key_dupes &= resolved["sa2_name_key"].notna()
    if key_dupes.any():
        kept = resolved[~key_dupes].dropna(subset=["sa2_name_key"])
        kept_codes = kept.set_index("sa2_name_key")["sa2_code"]
        dropped = resolved[key_dupes].copy()
        dropped["kept_sa2_code"] = dropped["sa2_name_key"].map(kept_codes).astype("string")
        dropped["reason"] = "duplicate_name_key"
        duplicates.append(dropped)
        resolved = resolved[~key_dupes]

    if duplicates:
        duplicates_df = pd.concat(duplicates, ignore_index=True)[DUPLICATE_COLUMNS]
        logger.warning(
            f"Collapsed {len(duplicates_df)} duplicate SA2 rows "
            f"(year(s) {sorted(duplicates_df['census_year'].unique().tolist())})"
        )
    else:
        duplicates_df = pd.DataFrame(columns=DUPLICATE_COLUMNS)

    resolved = resolved.sort_values(["census_year", "sa2_code"], kind="mergesort")
    return resolved.reset_index(drop=True), duplicates_df


def build_area_dimension(areas_by_year: Dict[int, pd.DataFrame]) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Resolve every year and union into one type-homogeneous SA2 dimension.

    Args:
        areas_by_year: Dict of census_year -> canonical area frame

    Returns:
        Tuple of (dim_sa2, duplicate report)
    """
    logger.info("Building SA2 dimension")

    resolved_frames = []
    duplicate_frames = []

    for year in sorted(areas_by_year):
        resolved, duplicates = resolve_year_areas(areas_by_year[year])
        logger.info(f"  {year}: {len(resolved)} SA2 areas")
        resolved_frames.append(resolved)
        if not duplicates.empty:
            duplicate_frames.append(duplicates)

    if not resolved_frames:
        logger.warning("No area feeds supplied")
        return _empty_dimension(), pd.DataFrame(columns=DUPLICATE_COLUMNS)

    dim = _align_types(pd.concat(resolved_frames, ignore_index=True))
    duplicates = (
        pd.concat(duplicate_frames, ignore_index=True)
        if duplicate_frames
        else pd.DataFrame(columns=DUPLICATE_COLUMNS)
    )

    logger.info(f"SA2 dimension: {len(dim)} rows across {dim['census_year'].nunique()} years")
    return dim, duplicates


def year_areas(dim: pd.DataFrame, year: int) -> pd.DataFrame:
    """Single-year slice of the dimension."""
    return dim[dim["census_year"] == year]


def cbd_areas(dim: pd.DataFrame, region_name: str) -> pd.DataFrame:
    """
    Member SA2s of the CBD proxy region, per census year.

    Args:
        dim: Unified SA2 dimension
        region_name: SA3 name standing in for the CBD (e.g., 'Sydney Inner City')

    Returns:
        DataFrame with census_year, sa2_code, sa2_name
    """
    in_region = dim["sa3_name"].eq(region_name).fillna(False).astype(bool)
    members = dim[in_region][["census_year", "sa2_code", "sa2_name"]]

    if members.empty:
        logger.warning(f"CBD proxy region '{region_name}' matched no SA2 areas")
    else:
        for year, count in members.groupby("census_year").size().items():
            logger.info(f"  CBD proxy {year}: {count} SA2 areas")

    return members.reset_index(drop=True)
