"""
NSW Travel-to-Work Atlas - Raw Census Feeds
Loads the three read-only census tables per year and maps each year's
column names onto one canonical shape before any shared logic runs.

Feeds (per census year):
- SA2 area table (codes, names, SA3/SA4/GCCSA/State hierarchy, area)
- SA2 residence x method of travel (commuter counts)
- SA2 residence x SA2 workplace (OD commuter counts)

Schema drift handled here:
- 2011/2016 area in square metres (AREA_ALBERS_SQM), 2021 in km2
- 2011 workplace column is SA2PLACEOFWORK, later years SA2WORKPLACE
- Boundary change flag/label only exist in 2021

Optional columns missing from a feed become typed nulls; required
columns missing from a feed raise FeedSchemaError.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Tuple

import pandas as pd
from sqlalchemy import text

from config.database import get_db, validate_table_name
from config.settings import AREA_TABLES, FLOW_TABLES, TRANSPORT_TABLES, get_settings
from travel_atlas.utils.logging import get_logger
from travel_atlas.utils.year_policy import CENSUS_YEARS

logger = get_logger(__name__)
settings = get_settings()

SQM_PER_SQKM = 1_000_000

AREA_COLUMNS = [
    "sa2_code",
    "sa2_name",
    "sa3_code",
    "sa3_name",
    "sa4_code",
    "sa4_name",
    "gccsa_code",
    "gccsa_name",
    "state_code",
    "state_name",
]

TRANSPORT_RAW_COLUMNS = ["census_year", "sa2_res_name", "mode_raw", "commuter_count"]

FLOW_RAW_COLUMNS = ["census_year", "sa2_res_name", "sa2_work_name", "commuter_count"]


class FeedSchemaError(KeyError):
    """A raw feed is missing a column the pipeline cannot do without."""


@dataclass(frozen=True)
class AreaFeedSchema:
    """Column mapping for one year's SA2 area table."""

    year: int
    table: str
    code_column: str
    area_column: str
    area_to_sqkm: float
    change_flag_column: Optional[str] = None
    change_label_column: Optional[str] = None

    @property
    def columns(self) -> Dict[str, str]:
        """Canonical name -> raw column name (hierarchy + identity)."""
        y = self.year
        return {
            "sa2_code": self.code_column,
            "sa2_name": f"SA2_NAME_{y}",
            "sa3_code": f"SA3_CODE_{y}",
            "sa3_name": f"SA3_NAME_{y}",
            "sa4_code": f"SA4_CODE_{y}",
            "sa4_name": f"SA4_NAME_{y}",
            "gccsa_code": f"GCCSA_CODE_{y}",
            "gccsa_name": f"GCCSA_NAME_{y}",
            "state_code": f"STATE_CODE_{y}",
            "state_name": f"STATE_NAME_{y}",
        }


@dataclass(frozen=True)
class TransportFeedSchema:
    """Column mapping for one year's residence x method-of-travel table."""

    year: int
    table: str
    residence_column: str = "SA2RESIDENCE"
    mode_column: str = "METHODOFTRAVEL"
    count_column: str = "COUNT"


@dataclass(frozen=True)
class FlowFeedSchema:
    """Column mapping for one year's residence x workplace table."""

    year: int
    table: str
    workplace_column: str
    residence_column: str = "SA2RESIDENCE"
    count_column: str = "COUNT"


AREA_SCHEMAS: Dict[int, AreaFeedSchema] = {
    2011: AreaFeedSchema(
        year=2011,
        table=AREA_TABLES[2011],
        code_column="SA2_MAINCODE_2011",
        area_column="AREA_ALBERS_SQM",
        area_to_sqkm=1 / SQM_PER_SQKM,
    ),
    2016: AreaFeedSchema(
        year=2016,
        table=AREA_TABLES[2016],
        code_column="SA2_MAINCODE_2016",
        area_column="AREA_ALBERS_SQM",
        area_to_sqkm=1 / SQM_PER_SQKM,
    ),
    2021: AreaFeedSchema(
        year=2021,
        table=AREA_TABLES[2021],
        code_column="SA2_CODE_2021",
        area_column="AREA_ALBERS_SQKM",
        area_to_sqkm=1.0,
        change_flag_column="CHANGE_FLAG_2021",
        change_label_column="CHANGE_LABEL_2021",
    ),
}

TRANSPORT_SCHEMAS: Dict[int, TransportFeedSchema] = {
    year: TransportFeedSchema(year=year, table=table) for year, table in TRANSPORT_TABLES.items()
}

FLOW_SCHEMAS: Dict[int, FlowFeedSchema] = {
    2011: FlowFeedSchema(year=2011, table=FLOW_TABLES[2011], workplace_column="SA2PLACEOFWORK"),
    2016: FlowFeedSchema(year=2016, table=FLOW_TABLES[2016], workplace_column="SA2WORKPLACE"),
    2021: FlowFeedSchema(year=2021, table=FLOW_TABLES[2021], workplace_column="SA2WORKPLACE"),
}


@dataclass
class CensusYearFeeds:
    """Canonical raw frames for one census year."""

    year: int
    areas: pd.DataFrame
    transport: pd.DataFrame
    flows: pd.DataFrame


@dataclass
class CensusFeeds:
    """Canonical raw frames for every loaded census year."""

    years: Dict[int, CensusYearFeeds] = field(default_factory=dict)

    def areas_by_year(self) -> Dict[int, pd.DataFrame]:
        return {year: feeds.areas for year, feeds in self.years.items()}

    def transport_by_year(self) -> Dict[int, pd.DataFrame]:
        return {year: feeds.transport for year, feeds in self.years.items()}

    def flows_by_year(self) -> Dict[int, pd.DataFrame]:
        return {year: feeds.flows for year, feeds in self.years.items()}


# ---------------------------------------------------------------------------
# Column coercion helpers
# ---------------------------------------------------------------------------


def _require_columns(raw: pd.DataFrame, columns: Iterable[str], table: str) -> None:
    missing = [col for col in columns if col not in raw.columns]
    if missing:
        raise FeedSchemaError(f"{table} is missing required columns: {', '.join(missing)}")


def _text_column(raw: pd.DataFrame, column: Optional[str], table: str) -> pd.Series:
    """Raw column as pandas string dtype; absent columns become typed nulls."""
    if column is None:
        return pd.Series(pd.NA, index=raw.index, dtype="string")
    if column not in raw.columns:
        logger.warning(f"{table}: column {column} not present, filling with nulls")
        return pd.Series(pd.NA, index=raw.index, dtype="string")
    values = raw[column].astype("string").str.strip()
    return values.mask(values == "", pd.NA)


def coerce_counts(values: pd.Series, table: str = "feed") -> pd.Series:
    """
    Coerce raw commuter counts to non-negative integers.

    Non-numeric, missing and negative counts become 0; the number of
    coerced rows is logged rather than raised.
    """
    numeric = pd.to_numeric(values, errors="coerce")
    invalid = numeric.isna() | (numeric < 0)
    if invalid.any():
        logger.warning(f"{table}: coerced {int(invalid.sum())} invalid commuter counts to 0")
    return numeric.where(~invalid, 0).round().astype("int64")


# ---------------------------------------------------------------------------
# Per-year adapters (raw -> canonical)
# ---------------------------------------------------------------------------


def adapt_area_feed(raw: pd.DataFrame, schema: AreaFeedSchema) -> pd.DataFrame:
    """
    Map one year's SA2 area table onto the canonical area shape.

    Args:
        raw: Raw area table as read from the source
        schema: That year's column mapping

    Returns:
        DataFrame with census_year, AREA_COLUMNS, area_sqkm, change_flag, change_label
    """
    _require_columns(raw, [schema.code_column, schema.columns["sa2_name"]], schema.table)

    areas = pd.DataFrame(index=raw.index)
    areas["census_year"] = schema.year
    for canonical, raw_column in schema.columns.items():
        areas[canonical] = _text_column(raw, raw_column, schema.table)

    if schema.area_column in raw.columns:
        areas["area_sqkm"] = pd.to_numeric(raw[schema.area_column], errors="coerce") * schema.area_to_sqkm
    else:
        logger.warning(f"{schema.table}: column {schema.area_column} not present, area_sqkm is null")
        areas["area_sqkm"] = float("nan")

    areas["change_flag"] = _text_column(raw, schema.change_flag_column, schema.table)
    areas["change_label"] = _text_column(raw, schema.change_label_column, schema.table)

    return areas.reset_index(drop=True)


def adapt_transport_feed(raw: pd.DataFrame, schema: TransportFeedSchema) -> pd.DataFrame:
    """Map one year's residence x method-of-travel table onto TRANSPORT_RAW_COLUMNS."""
    _require_columns(
        raw, [schema.residence_column, schema.mode_column, schema.count_column], schema.table
    )

    return pd.DataFrame(
        {
            "census_year": schema.year,
            "sa2_res_name": raw[schema.residence_column].astype("string"),
            "mode_raw": raw[schema.mode_column].astype("string"),
            "commuter_count": coerce_counts(raw[schema.count_column], schema.table),
        }
    ).reset_index(drop=True)


def adapt_flow_feed(raw: pd.DataFrame, schema: FlowFeedSchema) -> pd.DataFrame:
    """Map one year's residence x workplace table onto FLOW_RAW_COLUMNS."""
    _require_columns(
        raw, [schema.residence_column, schema.workplace_column, schema.count_column], schema.table
    )

    return pd.DataFrame(
        {
            "census_year": schema.year,
            "sa2_res_name": raw[schema.residence_column].astype("string"),
            "sa2_work_name": raw[schema.workplace_column].astype("string"),
            "commuter_count": coerce_counts(raw[schema.count_column], schema.table),
        }
    ).reset_index(drop=True)


# ---------------------------------------------------------------------------
# Readers
# ---------------------------------------------------------------------------


def read_raw_table(table: str, source: str = None, raw_dir: str = None) -> pd.DataFrame:
    """
    Read one raw census table.

    Args:
        table: Source table name (e.g., 'SA2_2021_AUST')
        source: 'csv' or 'database' (default: settings.RAW_SOURCE)
        raw_dir: Directory holding <table>.csv (default: settings.RAW_DATA_DIR)

    Returns:
        DataFrame with every column read as text
    """
    source = (source or settings.RAW_SOURCE).strip().lower()

    if source == "csv":
        path = os.path.join(raw_dir or settings.RAW_DATA_DIR, f"{table}.csv")
        if not os.path.exists(path):
            raise FileNotFoundError(f"Raw census extract not found: {path}")
        df = pd.read_csv(path, dtype=str, keep_default_na=False)

    elif source == "database":
        validate_table_name(table)
        with get_db() as db:
            df = pd.read_sql(text(f"SELECT * FROM {table}"), db.connection())
        df = df.astype("string")

    else:
        raise ValueError(f"Unknown raw source: {source}")

    logger.info(f"Read {len(df)} rows from {table} ({source})")
    return df


def load_year_feeds(year: int, source: str = None, raw_dir: str = None) -> CensusYearFeeds:
    """Read and adapt all three feeds for one census year."""
    if year not in AREA_SCHEMAS:
        raise ValueError(f"No feed schema for census year {year}")

    areas = adapt_area_feed(read_raw_table(AREA_SCHEMAS[year].table, source, raw_dir), AREA_SCHEMAS[year])
    transport = adapt_transport_feed(
        read_raw_table(TRANSPORT_SCHEMAS[year].table, source, raw_dir), TRANSPORT_SCHEMAS[year]
    )
    flows = adapt_flow_feed(read_raw_table(FLOW_SCHEMAS[year].table, source, raw_dir), FLOW_SCHEMAS[year])

    logger.info(
        f"Census {year}: {len(areas)} areas, {len(transport)} transport rows, {len(flows)} flow rows"
    )
    return CensusYearFeeds(year=year, areas=areas, transport=transport, flows=flows)


def load_census_feeds(
    years: Tuple[int, ...] = CENSUS_YEARS, source: str = None, raw_dir: str = None
) -> CensusFeeds:
    """
    Load every census year's feeds into canonical frames.

    Args:
        years: Census years to load
        source: 'csv' or 'database' (default: settings.RAW_SOURCE)
        raw_dir: CSV directory override

    Returns:
        CensusFeeds keyed by year
    """
    logger.info(f"Loading census feeds for {list(years)}")
    feeds = CensusFeeds()
    for year in years:
        feeds.years[year] = load_year_feeds(year, source=source, raw_dir=raw_dir)
    return feeds
