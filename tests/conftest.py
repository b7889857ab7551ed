"""
Pytest configuration and shared fixtures for NSW Travel-to-Work Atlas tests.
"""

from typing import Dict, List

import pandas as pd
import pytest

from travel_atlas.ingest.census_feeds import (
    AREA_SCHEMAS,
    FLOW_SCHEMAS,
    TRANSPORT_SCHEMAS,
    CensusFeeds,
    CensusYearFeeds,
    adapt_area_feed,
    adapt_flow_feed,
    adapt_transport_feed,
)
from travel_atlas.processing.pipeline_config import PipelineConfig

CBD_CODE = "117031337"
PENRITH_CODE = "124031462"
PARRAMATTA_CODE = "125031486"
MELBOURNE_CODE = "206041122"
MIGRATORY_CODE = "197979799"

# code, name, sa3, sa4, state
SAMPLE_AREAS = [
    (CBD_CODE, "Sydney - Haymarket - The Rocks", "Sydney Inner City", "Sydney - City and Inner South", "New South Wales"),
    (PENRITH_CODE, "Penrith", "Penrith", "Sydney - Outer West and Blue Mountains", "New South Wales"),
    (PARRAMATTA_CODE, "Parramatta - Rosehill", "Parramatta", "Sydney - Parramatta", "New South Wales"),
    (MIGRATORY_CODE, "Migratory - Offshore - Shipping (NSW)", "Migratory - Offshore - Shipping (NSW)",
     "Migratory - Offshore - Shipping (NSW)", "New South Wales"),
    (MELBOURNE_CODE, "Melbourne CBD - East", "Melbourne City", "Melbourne - Inner", "Victoria"),
]

SAMPLE_TRANSPORT = {
    2011: [
        ("Penrith", "Train", "200"),
        ("Penrith", "Car, as driver", "700"),
    ],
    2016: [
        ("Penrith", "Train", "250"),
        ("Penrith", "Car, as driver", "600"),
        ("Penrith", "Worked at home", "50"),
        ("Parramatta - Rosehill", "Bus", "200"),
        ("Parramatta - Rosehill", "Car, as driver", "500"),
        ("Parramatta - Rosehill", "Worked at home", "100"),
    ],
    2021: [
        ("Penrith", "Train", "300"),
        ("Penrith", "Car, as driver", "500"),
        ("Penrith", "Worked at home", "100"),
        ("Penrith", "Train, Car, as driver", "50"),
        ("Penrith", "Walked only", "50"),
        ("Penrith", "Not stated", "40"),
        (" parramatta - rosehill ", "Bus", "200"),
        (" parramatta - rosehill ", "Car, as driver", "300"),
        (" parramatta - rosehill ", "Worked at home", "300"),
        (" parramatta - rosehill ", "Bus, Car, as passenger", "100"),
        (" parramatta - rosehill ", "Bicycle", "100"),
        ("Sydney - Haymarket - The Rocks", "Walked only", "400"),
        ("Sydney - Haymarket - The Rocks", "Train", "100"),
        ("Melbourne CBD - East", "Tram", "500"),
        ("Atlantis", "Train", "7"),
    ],
}

SAMPLE_FLOWS = {
    2011: [
        ("Penrith", "Sydney - Haymarket - The Rocks", "100"),
        ("Penrith", "Penrith", "600"),
    ],
    2016: [
        ("Penrith", "Sydney - Haymarket - The Rocks", "200"),
        ("Penrith", "Penrith", "500"),
        ("Penrith", "Parramatta - Rosehill", "150"),
        ("Parramatta - Rosehill", "Sydney - Haymarket - The Rocks", "150"),
        ("Parramatta - Rosehill", "Parramatta - Rosehill", "400"),
    ],
    2021: [
        ("Penrith", "Sydney - Haymarket - The Rocks", "300"),
        ("Penrith", "Penrith", "400"),
        ("Penrith", "Parramatta - Rosehill", "200"),
        ("Penrith", "Migratory - Offshore - Shipping (NSW)", "10"),
        ("Penrith", "Unknown Place", "5"),
        ("Parramatta - Rosehill", "Sydney - Haymarket - The Rocks", "150"),
        ("Parramatta - Rosehill", "Parramatta - Rosehill", "500"),
        ("Sydney - Haymarket - The Rocks", "Sydney - Haymarket - The Rocks", "400"),
        ("Melbourne CBD - East", "Sydney - Haymarket - The Rocks", "20"),
    ],
}


def raw_area_table(year: int, areas: List[tuple] = None) -> pd.DataFrame:
    """Area table in the year's raw column layout."""
    schema = AREA_SCHEMAS[year]
    cols = schema.columns
    rows = []
    for code, name, sa3, sa4, state in areas or SAMPLE_AREAS:
        row = {
            cols["sa2_code"]: code,
            cols["sa2_name"]: name,
            cols["sa3_code"]: code[:5],
            cols["sa3_name"]: sa3,
            cols["sa4_code"]: code[:3],
            cols["sa4_name"]: sa4,
            cols["gccsa_code"]: "1GSYD" if state == "New South Wales" else "2GMEL",
            cols["gccsa_name"]: "Greater Sydney" if state == "New South Wales" else "Greater Melbourne",
            cols["state_code"]: "1" if state == "New South Wales" else "2",
            cols["state_name"]: state,
            # 2011/2016 report square metres, 2021 square kilometres
            schema.area_column: "2500000" if schema.area_to_sqkm != 1.0 else "2.5",
        }
        if schema.change_flag_column:
            row[schema.change_flag_column] = "0"
            row[schema.change_label_column] = "No change"
        rows.append(row)
    return pd.DataFrame(rows)


def raw_transport_table(year: int) -> pd.DataFrame:
    schema = TRANSPORT_SCHEMAS[year]
    return pd.DataFrame(
        SAMPLE_TRANSPORT[year],
        columns=[schema.residence_column, schema.mode_column, schema.count_column],
    )


def raw_flow_table(year: int) -> pd.DataFrame:
    schema = FLOW_SCHEMAS[year]
    return pd.DataFrame(
        SAMPLE_FLOWS[year],
        columns=[schema.residence_column, schema.workplace_column, schema.count_column],
    )


def raw_tables() -> Dict[str, pd.DataFrame]:
    """Every raw table keyed by its source table name."""
    tables = {}
    for year in sorted(SAMPLE_TRANSPORT):
        tables[AREA_SCHEMAS[year].table] = raw_area_table(year)
        tables[TRANSPORT_SCHEMAS[year].table] = raw_transport_table(year)
        tables[FLOW_SCHEMAS[year].table] = raw_flow_table(year)
    return tables


@pytest.fixture
def sample_raw_tables() -> Dict[str, pd.DataFrame]:
    """Raw census tables (all text, raw column names) for 2011/2016/2021."""
    return raw_tables()


@pytest.fixture
def raw_csv_dir(tmp_path) -> str:
    """Directory of <TABLE>.csv extracts for the sample census."""
    for table, df in raw_tables().items():
        df.to_csv(tmp_path / f"{table}.csv", index=False)
    return str(tmp_path)


@pytest.fixture
def census_feeds() -> CensusFeeds:
    """Sample census adapted into canonical frames."""
    feeds = CensusFeeds()
    for year in sorted(SAMPLE_TRANSPORT):
        feeds.years[year] = CensusYearFeeds(
            year=year,
            areas=adapt_area_feed(raw_area_table(year), AREA_SCHEMAS[year]),
            transport=adapt_transport_feed(raw_transport_table(year), TRANSPORT_SCHEMAS[year]),
            flows=adapt_flow_feed(raw_flow_table(year), FLOW_SCHEMAS[year]),
        )
    return feeds


@pytest.fixture
def pipeline_config() -> PipelineConfig:
    """Default NSW configuration (Sydney Inner City, 2016 -> 2021)."""
    return PipelineConfig()
