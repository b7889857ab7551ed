"""
NSW Travel-to-Work Atlas - View Store
Materializes named views so each can be queried standalone

Outputs:
- Database tables <TABLE_PREFIX><view> (replaced on every run)
- exports/<view>_latest.csv (always current)
- exports/<view>_{YYYYMMDD}.csv (versioned snapshots)
"""

import hashlib
import os
from datetime import datetime
from typing import Dict, Iterable, Optional

import pandas as pd
from sqlalchemy import text

from config.database import engine, log_refresh, table_name
from config.settings import get_settings
from travel_atlas.processing.view_registry import dependency_order, get_view
from travel_atlas.utils.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

DATA_SOURCE = "ABS Census SA2 travel to work"


def _selected(views: Dict[str, pd.DataFrame], names: Optional[Iterable[str]]) -> list:
    wanted = list(views) if names is None else list(names)
    missing = [name for name in wanted if name not in views]
    if missing:
        raise KeyError(f"Views not built: {', '.join(missing)}")
    return dependency_order(wanted)


def store_views(views: Dict[str, pd.DataFrame], names: Optional[Iterable[str]] = None) -> Dict[str, int]:
    """
    Write views to the database, replacing any previous materialization.

    Args:
        views: Dict of view name -> DataFrame
        names: Subset of views to write (default: all)

    Returns:
        Dict of view name -> rows written
    """
    selected = _selected(views, names)
    logger.info(f"Storing {len(selected)} views")

    written = {}
    try:
        with engine.begin() as conn:
            for name in selected:
                df = views[name]
                df.to_sql(table_name(name), con=conn, if_exists="replace", index=False)
                written[name] = len(df)
                logger.info(f"  {table_name(name)}: {len(df)} rows")

    except Exception as e:
        logger.error(f"Storing views failed: {e}", exc_info=True)
        log_refresh(
            layer_name="view_store",
            data_source=DATA_SOURCE,
            status="failed",
            records_processed=sum(len(views[name]) for name in selected),
            records_inserted=sum(written.values()),
            error_message=str(e),
        )
        raise

    log_refresh(
        layer_name="view_store",
        data_source=DATA_SOURCE,
        status="success",
        records_processed=sum(written.values()),
        records_inserted=sum(written.values()),
        metadata={"views": written},
    )
    return written


def load_view(view_name: str) -> pd.DataFrame:
    """
    Read one materialized view back by name, without recomputation.

    Args:
        view_name: Registered view name (e.g., 'candidate_bus_shortlist')

    Returns:
        DataFrame as last stored
    """
    get_view(view_name)
    physical = table_name(view_name)

    with engine.connect() as conn:
        df = pd.read_sql(text(f"SELECT * FROM {physical}"), conn)

    logger.info(f"Loaded {len(df)} rows from {physical}")
    return df


def calculate_file_checksum(file_path: str) -> str:
    """
    Calculate SHA256 checksum of file.

    Args:
        file_path: Path to file

    Returns:
        Hex digest of checksum
    """
    sha256 = hashlib.sha256()

    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            sha256.update(chunk)

    return sha256.hexdigest()


def export_views_csv(
    views: Dict[str, pd.DataFrame],
    names: Optional[Iterable[str]] = None,
    export_dir: Optional[str] = None,
    versioned: bool = True,
) -> Dict[str, dict]:
    """
    Write each view to <view>_latest.csv plus a dated snapshot.

    Args:
        views: Dict of view name -> DataFrame
        names: Subset of views to export (default: all)
        export_dir: Output directory (default: settings.EXPORT_DIR)
        versioned: If True, also write <view>_<YYYYMMDD>.csv

    Returns:
        Dict of view name -> {latest_path, versioned_path, record_count, checksum}
    """
    export_dir = export_dir or settings.EXPORT_DIR
    os.makedirs(export_dir, exist_ok=True)
    version = datetime.utcnow().strftime("%Y%m%d")

    exported = {}
    for name in _selected(views, names):
        df = views[name]

        latest_path = os.path.join(export_dir, f"{name}_latest.csv")
        df.to_csv(latest_path, index=False)

        versioned_path = None
        if versioned:
            versioned_path = os.path.join(export_dir, f"{name}_{version}.csv")
            df.to_csv(versioned_path, index=False)

        exported[name] = {
            "latest_path": latest_path,
            "versioned_path": versioned_path,
            "record_count": len(df),
            "checksum": calculate_file_checksum(latest_path),
        }

    logger.info(f"Exported {len(exported)} views to {export_dir}")
    return exported
