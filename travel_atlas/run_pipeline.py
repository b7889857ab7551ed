"""
NSW Travel-to-Work Atlas - Main Pipeline Orchestration

Runs the complete analytics pipeline from raw census feeds to named views.

Pipeline stages:
1. Geography (SA2 dimension, CBD proxy members)
2. Transport and flow facts
3. Area-year metrics
4. CBD growth
5. Bus candidate scoring
6. Quality audit
7. Store views (database)
8. CSV export

Usage:
    python -m travel_atlas.run_pipeline
    python -m travel_atlas.run_pipeline --source database --no-export
    python -m travel_atlas.run_pipeline --view candidate_bus_shortlist metric_mode_trend
"""

import argparse
import dataclasses
import os
import sys
from datetime import datetime
from typing import Dict, Iterable, Optional

import pandas as pd

from config.database import test_connection
from config.settings import get_settings
from travel_atlas.export.view_store import export_views_csv, store_views
from travel_atlas.ingest.census_feeds import CensusFeeds, load_census_feeds
from travel_atlas.processing import metrics
from travel_atlas.processing.candidate_scoring import assemble_candidates, score_candidates
from travel_atlas.processing.flow_facts import build_flow_facts, filter_flow_analysis
from travel_atlas.processing.geography import build_area_dimension, cbd_areas
from travel_atlas.processing.growth import cbd_growth
from travel_atlas.processing.pipeline_config import ConfigurationError, PipelineConfig
from travel_atlas.processing.quality import (
    unmatched_flow_keys,
    unmatched_transport_keys,
    unmatched_workplace_impact,
)
from travel_atlas.processing.transport_facts import build_transport_facts, filter_transport_analysis
from travel_atlas.processing.view_registry import VIEW_NAMES
from travel_atlas.utils.logging import setup_logging
from travel_atlas.utils.year_policy import latest_census_year, previous_census_year

logger = setup_logging("pipeline")
settings = get_settings()


def _stage(title: str) -> None:
    logger.info("=" * 60)
    logger.info(title)
    logger.info("=" * 60)


def build_analytics_views(feeds: CensusFeeds, config: PipelineConfig) -> Dict[str, pd.DataFrame]:
    """
    Derive every registered view from canonical raw feeds.

    Pure in-memory transform: nothing is read or written here.

    Args:
        feeds: Canonical raw frames per census year
        config: Validated pipeline configuration

    Returns:
        Dict of view name -> DataFrame, in registry order
    """
    views: Dict[str, pd.DataFrame] = {}

    _stage("STAGE 1: GEOGRAPHY")
    views["dim_sa2"], views["qa_duplicate_area_keys"] = build_area_dimension(feeds.areas_by_year())
    views["dim_cbd_sa2"] = cbd_areas(views["dim_sa2"], config.cbd_region_name)

    _stage("STAGE 2: TRANSPORT AND FLOW FACTS")
    transport = build_transport_facts(feeds.transport_by_year(), views["dim_sa2"])
    views["fact_transport_clean"] = transport.clean
    views["fact_transport_analysis"] = filter_transport_analysis(transport.clean, config.jurisdiction)

    views["fact_flow_clean"] = build_flow_facts(feeds.flows_by_year(), views["dim_sa2"])
    views["fact_flow_analysis"] = filter_flow_analysis(
        views["fact_flow_clean"], config.jurisdiction, config.excluded_workplace_codes
    )

    _stage("STAGE 3: AREA-YEAR METRICS")
    transport_analysis = views["fact_transport_analysis"]
    flow_analysis = views["fact_flow_analysis"]

    views["metric_mode_share"] = metrics.mode_share(transport_analysis)
    views["metric_wfh"] = metrics.wfh_rate(transport_analysis)
    views["metric_mixed_mode"] = metrics.mixed_mode_rate(transport_analysis)
    views["metric_self_containment"] = metrics.self_containment(flow_analysis)
    views["metric_cbd_volume"] = metrics.cbd_volume(flow_analysis, views["dim_cbd_sa2"])
    views["metric_mode_trend"] = metrics.mode_trend(transport_analysis)
    views["metric_mode_features"] = metrics.mode_features(
        views["metric_mode_share"], views["metric_wfh"], views["metric_mixed_mode"]
    )
    views["metric_workplace_hubs"] = metrics.workplace_hubs(flow_analysis, config.candidate_year)
    views["metric_top_cbd_origins"] = metrics.top_cbd_origins(
        views["metric_cbd_volume"], config.candidate_year
    )

    _stage("STAGE 4: CBD GROWTH")
    views["metric_cbd_growth"] = cbd_growth(
        views["metric_cbd_volume"],
        base_year=config.growth_base_year,
        target_year=config.candidate_year,
    )

    _stage("STAGE 5: BUS CANDIDATE SCORING")
    candidates = assemble_candidates(
        views["metric_cbd_volume"],
        views["metric_mode_features"],
        views["metric_cbd_growth"],
        config,
    )
    views["candidate_bus_shortlist"] = score_candidates(candidates, config.weights)

    _stage("STAGE 6: QUALITY AUDIT")
    views["qa_unmatched_transport"] = unmatched_transport_keys(transport.unmatched)
    views["qa_unmatched_flow"] = unmatched_flow_keys(views["fact_flow_clean"])
    views["qa_unmatched_workplaces"] = unmatched_workplace_impact(views["fact_flow_clean"])

    return {name: views[name] for name in VIEW_NAMES}


def check_prerequisites(source: str, raw_dir: str, store: bool) -> bool:
    """
    Check that the raw source and the view store are reachable.

    Returns:
        True if all checks pass, False otherwise
    """
    logger.info("Checking prerequisites")

    if (source == "database" or store) and not test_connection():
        logger.error("Database connection failed")
        return False

    if source == "csv" and not os.path.isdir(raw_dir):
        logger.error(f"Raw data directory not found: {raw_dir}")
        return False

    logger.info("Prerequisites check passed")
    return True


def run_pipeline(
    config: PipelineConfig,
    source: Optional[str] = None,
    raw_dir: Optional[str] = None,
    store: bool = True,
    export: bool = True,
    view_names: Optional[Iterable[str]] = None,
) -> Dict[str, pd.DataFrame]:
    """
    Load feeds, build every view, then store and export the selection.

    Args:
        config: Validated pipeline configuration
        source: 'csv' or 'database' (default: settings.RAW_SOURCE)
        raw_dir: CSV directory override
        store: Write views to the database
        export: Write views to CSV
        view_names: Views to store/export (default: all)

    Returns:
        Dict of view name -> DataFrame
    """
    feeds = load_census_feeds(source=source, raw_dir=raw_dir)
    views = build_analytics_views(feeds, config)

    if store:
        _stage("STAGE 7: STORE VIEWS")
        store_views(views, names=view_names)

    if export:
        _stage("STAGE 8: CSV EXPORT")
        export_views_csv(views, names=view_names)

    return views


def config_for_candidate_year(config: PipelineConfig, candidate_year: int) -> PipelineConfig:
    """Re-target the configuration, growth measured from the preceding census."""
    try:
        base_year = previous_census_year(candidate_year)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e
    return dataclasses.replace(config, candidate_year=candidate_year, growth_base_year=base_year)


def main():
    """Main pipeline orchestration"""

    parser = argparse.ArgumentParser(
        description="NSW Travel-to-Work Atlas - Pipeline Orchestration"
    )

    parser.add_argument(
        "--source",
        type=str,
        choices=["csv", "database"],
        help=f"Raw feed source (default: {settings.RAW_SOURCE})"
    )

    parser.add_argument(
        "--raw-dir",
        type=str,
        help=f"Directory of raw CSV extracts (default: {settings.RAW_DATA_DIR})"
    )

    parser.add_argument(
        "--candidate-year",
        type=int,
        help=f"Census year to score candidates for (default: {settings.CANDIDATE_YEAR}; "
             f"latest census is {latest_census_year()})"
    )

    parser.add_argument(
        "--no-store",
        action="store_true",
        help="Skip writing views to the database"
    )

    parser.add_argument(
        "--no-export",
        action="store_true",
        help="Skip CSV export"
    )

    parser.add_argument(
        "--view",
        type=str,
        nargs='+',
        choices=VIEW_NAMES,
        help="Views to store/export (default: all)"
    )

    args = parser.parse_args()

    source = (args.source or settings.RAW_SOURCE).strip().lower()
    raw_dir = args.raw_dir or settings.RAW_DATA_DIR

    # Pipeline start
    start_time = datetime.now()
    logger.info("=" * 60)
    logger.info("NSW Travel-to-Work Atlas - Pipeline Start")
    logger.info(f"Time: {start_time.isoformat()}")
    logger.info(f"Arguments: {vars(args)}")
    logger.info("=" * 60)

    # Configuration fails fast, before any feed is read
    try:
        config = PipelineConfig.from_settings(settings)
        if args.candidate_year is not None:
            config = config_for_candidate_year(config, args.candidate_year)
    except ConfigurationError as e:
        logger.error(f"Invalid pipeline configuration: {e}")
        sys.exit(1)

    logger.info(
        f"Jurisdiction: {config.jurisdiction}, CBD proxy: {config.cbd_region_name}, "
        f"candidates {config.candidate_year} (growth from {config.growth_base_year})"
    )

    if not check_prerequisites(source, raw_dir, store=not args.no_store):
        logger.error("Prerequisites check failed, exiting")
        sys.exit(1)

    try:
        views = run_pipeline(
            config,
            source=source,
            raw_dir=raw_dir,
            store=not args.no_store,
            export=not args.no_export,
            view_names=args.view,
        )

        shortlist = views["candidate_bus_shortlist"]
        end_time = datetime.now()
        duration = (end_time - start_time).total_seconds()

        logger.info("=" * 60)
        logger.info("PIPELINE COMPLETE")
        logger.info(f"Views built: {len(views)}, shortlisted candidates: {len(shortlist)}")
        logger.info(f"Duration: {duration:.1f} seconds")
        logger.info("=" * 60)

        sys.exit(0)

    except KeyboardInterrupt:
        logger.warning("Pipeline interrupted by user")
        sys.exit(130)

    except Exception as e:
        logger.error(f"Pipeline failed with unhandled exception: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
