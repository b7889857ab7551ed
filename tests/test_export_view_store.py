import os

import pandas as pd
import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from travel_atlas.export import view_store


@pytest.fixture
def refresh_log(monkeypatch):
    calls = []
    monkeypatch.setattr(view_store, "log_refresh", lambda **kwargs: calls.append(kwargs))
    return calls


@pytest.fixture
def memory_engine(monkeypatch):
    engine = create_engine(
        "sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False}
    )
    monkeypatch.setattr(view_store, "engine", engine)
    return engine


@pytest.fixture
def views():
    return {
        "dim_sa2": pd.DataFrame(
            {"census_year": [2021, 2021], "sa2_code": ["117031337", "124031462"], "area_sqkm": [2.5, 2.5]}
        ),
        "metric_cbd_volume": pd.DataFrame(
            {"census_year": [2021], "sa2_res_code": ["124031462"], "cbd_commuters": [300]}
        ),
    }


def test_store_then_load(memory_engine, refresh_log, views):
    written = view_store.store_views(views)

    assert written == {"dim_sa2": 2, "metric_cbd_volume": 1}
    loaded = view_store.load_view("metric_cbd_volume")
    assert loaded["sa2_res_code"].tolist() == ["124031462"]
    assert loaded["cbd_commuters"].tolist() == [300]
    assert refresh_log[-1]["status"] == "success"


def test_store_replaces_previous_run(memory_engine, refresh_log, views):
    view_store.store_views(views)
    views["dim_sa2"] = views["dim_sa2"].head(1)

    view_store.store_views(views, names=["dim_sa2"])

    assert len(view_store.load_view("dim_sa2")) == 1


def test_store_failure_is_logged_and_raised(memory_engine, refresh_log, views, monkeypatch):
    def broken_table_name(name):
        raise ValueError(f"Unsafe table name: {name}")

    monkeypatch.setattr(view_store, "table_name", broken_table_name)

    with pytest.raises(ValueError):
        view_store.store_views(views)
    assert refresh_log[-1]["status"] == "failed"


def test_store_unbuilt_view(memory_engine, refresh_log, views):
    with pytest.raises(KeyError):
        view_store.store_views(views, names=["candidate_bus_shortlist"])


def test_load_unknown_view(memory_engine):
    with pytest.raises(ValueError, match="Unknown view"):
        view_store.load_view("not_a_view")


def test_export_views_csv(tmp_path, views):
    exported = view_store.export_views_csv(views, export_dir=str(tmp_path))

    assert set(exported) == {"dim_sa2", "metric_cbd_volume"}
    info = exported["dim_sa2"]
    assert os.path.basename(info["latest_path"]) == "dim_sa2_latest.csv"
    assert os.path.exists(info["versioned_path"])
    assert info["record_count"] == 2
    assert info["checksum"] == view_store.calculate_file_checksum(info["latest_path"])
    assert pd.read_csv(info["latest_path"], dtype=str)["sa2_code"].tolist() == ["117031337", "124031462"]


def test_export_without_snapshot(tmp_path, views):
    exported = view_store.export_views_csv(views, names=["dim_sa2"], export_dir=str(tmp_path), versioned=False)

    assert exported["dim_sa2"]["versioned_path"] is None
    assert sorted(os.listdir(tmp_path)) == ["dim_sa2_latest.csv"]
