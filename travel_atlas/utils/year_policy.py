"""Census year policy shared by ingestion, metrics and scoring."""

from __future__ import annotations

from typing import Tuple

# Census snapshots covered by the raw feeds, oldest first
CENSUS_YEARS: Tuple[int, ...] = (2011, 2016, 2021)


def latest_census_year() -> int:
    return CENSUS_YEARS[-1]


def is_census_year(year: int) -> bool:
    return year in CENSUS_YEARS


def previous_census_year(year: int) -> int:
    """Census preceding `year`; raises ValueError for the first or an unknown year."""
    if year not in CENSUS_YEARS:
        raise ValueError(f"Not a census year: {year}")
    index = CENSUS_YEARS.index(year)
    if index == 0:
        raise ValueError(f"No census precedes {year}")
    return CENSUS_YEARS[index - 1]


def growth_window_label(base_year: int, target_year: int) -> str:
    """Short label for a two-census window, e.g. '16_21'."""
    return f"{base_year % 100:02d}_{target_year % 100:02d}"
