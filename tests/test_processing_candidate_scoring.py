import numpy as np
import pandas as pd
import pytest

from travel_atlas.processing.candidate_scoring import (
    SHORTLIST_COLUMNS,
    assemble_candidates,
    score_candidates,
)
from travel_atlas.processing.pipeline_config import PipelineConfig, ScoringWeights


def _volume(rows, year=2021):
    return pd.DataFrame(
        [(year, code, name, cbd, total, cbd / total) for code, name, cbd, total in rows],
        columns=[
            "census_year",
            "sa2_res_code",
            "sa2_res_name_std",
            "cbd_commuters",
            "total_commuters_od",
            "cbd_dependency_rate",
        ],
    )


def _features(rows, year=2021):
    return pd.DataFrame(
        [(year, code, pt, wfh, mixed, 1000) for code, pt, wfh, mixed in rows],
        columns=["census_year", "sa2_res_code", "pt_share", "wfh_share", "mixed_share", "total_commuters"],
    )


def _growth(rows):
    return pd.DataFrame(rows, columns=["sa2_res_code", "cbd_growth_rate"])


def test_nsw_example_scores(pipeline_config):
    volume = _volume([("P", "Penrith", 300, 900), ("R", "Parramatta - Rosehill", 150, 650)])
    features = _features([("P", 0.30, 0.10, 0.05), ("R", 0.20, 0.30, 0.10)])
    growth = _growth([("P", 0.5), ("R", 0.0)])

    candidates = assemble_candidates(volume, features, growth, pipeline_config)
    shortlist = score_candidates(candidates, pipeline_config.weights)

    assert list(shortlist.columns) == SHORTLIST_COLUMNS
    assert shortlist["sa2_res_code"].tolist() == ["P", "R"]
    assert shortlist["rank"].tolist() == [1, 2]
    # 0.4*1 + 0.2*1 + 0.2*0.7 + 0.1*0.9 + 0.1*0.5
    assert shortlist["bus_candidate_score"].iloc[0] == pytest.approx(0.88)
    # 0.4*0.5 + 0.2*0 + 0.2*0.8 + 0.1*0.7 + 0.1*1
    assert shortlist["bus_candidate_score"].iloc[1] == pytest.approx(0.53)


def test_below_cbd_threshold_is_absent(pipeline_config):
    volume = _volume([("A", "Alpha", 40, 900), ("B", "Beta", 60, 900)])
    features = _features([("A", 0.1, 0.1, 0.1), ("B", 0.1, 0.1, 0.1)])

    candidates = assemble_candidates(volume, features, _growth([]), pipeline_config)

    assert candidates["sa2_res_code"].tolist() == ["B"]


def test_below_total_threshold_is_absent(pipeline_config):
    volume = _volume([("A", "Alpha", 100, 499), ("B", "Beta", 100, 500)])
    features = _features([("A", 0.1, 0.1, 0.1), ("B", 0.1, 0.1, 0.1)])

    candidates = assemble_candidates(volume, features, _growth([]), pipeline_config)

    assert candidates["sa2_res_code"].tolist() == ["B"]


def test_undefined_shares_are_ineligible(pipeline_config):
    volume = _volume([("A", "Alpha", 100, 900), ("B", "Beta", 100, 900), ("C", "Gamma", 100, 900)])
    features = _features([("A", np.nan, 0.1, 0.1), ("B", 0.1, 0.1, np.nan), ("C", 0.1, 0.1, 0.1)])

    candidates = assemble_candidates(volume, features, _growth([]), pipeline_config)

    assert candidates["sa2_res_code"].tolist() == ["C"]


def test_only_candidate_year_is_considered(pipeline_config):
    volume = pd.concat(
        [_volume([("A", "Alpha", 100, 900)], year=2016), _volume([("B", "Beta", 100, 900)])]
    )
    features = pd.concat(
        [_features([("A", 0.1, 0.1, 0.1)], year=2016), _features([("B", 0.1, 0.1, 0.1)])]
    )

    candidates = assemble_candidates(volume, features, _growth([]), pipeline_config)

    assert candidates["sa2_res_code"].tolist() == ["B"]
    assert (candidates["census_year"] == 2021).all()


def test_missing_growth_defaults_to_neutral(pipeline_config):
    volume = _volume([("A", "Alpha", 100, 900), ("B", "Beta", 200, 900)])
    features = _features([("A", 0.1, 0.1, 0.1), ("B", 0.1, 0.1, 0.1)])
    growth = _growth([("A", 0.25), ("B", np.nan)])

    candidates = assemble_candidates(volume, features, growth, pipeline_config)
    beta = candidates[candidates["sa2_res_code"] == "B"].iloc[0]

    assert np.isnan(beta["cbd_growth_rate"])
    assert beta["growth_rate_scored"] == 0.0


def test_no_growth_table_is_neutral(pipeline_config):
    volume = _volume([("A", "Alpha", 100, 900)])
    features = _features([("A", 0.1, 0.1, 0.1)])

    candidates = assemble_candidates(volume, features, None, pipeline_config)

    assert candidates["growth_rate_scored"].tolist() == [0.0]


def test_non_positive_growth_max_gives_zero_component():
    weights = ScoringWeights()
    candidates = assemble_candidates(
        _volume([("A", "Alpha", 100, 900), ("B", "Beta", 100, 900)]),
        _features([("A", 0.1, 0.1, 0.1), ("B", 0.1, 0.1, 0.1)]),
        _growth([("A", -0.2), ("B", 0.0)]),
        PipelineConfig(),
    )

    shortlist = score_candidates(candidates, weights)

    assert (shortlist["growth_component"] == 0.0).all()


def test_score_monotonic_in_cbd_volume():
    config = PipelineConfig()
    volume = _volume([("A", "Alpha", 100, 900), ("B", "Beta", 250, 900), ("C", "Gamma", 400, 900)])
    features = _features([("A", 0.2, 0.1, 0.05), ("B", 0.2, 0.1, 0.05), ("C", 0.2, 0.1, 0.05)])

    shortlist = score_candidates(
        assemble_candidates(volume, features, _growth([]), config), config.weights
    )
    by_code = shortlist.set_index("sa2_res_code")["bus_candidate_score"]

    assert by_code["A"] <= by_code["B"] <= by_code["C"]


def test_ties_broken_by_origin_code():
    config = PipelineConfig()
    volume = _volume([("Z", "Zeta", 100, 900), ("A", "Alpha", 100, 900), ("M", "Mu", 100, 900)])
    features = _features([("Z", 0.2, 0.1, 0.05), ("A", 0.2, 0.1, 0.05), ("M", 0.2, 0.1, 0.05)])

    shortlist = score_candidates(
        assemble_candidates(volume, features, _growth([]), config), config.weights
    )

    assert shortlist["sa2_res_code"].tolist() == ["A", "M", "Z"]
    assert shortlist["rank"].tolist() == [1, 2, 3]


def test_normalization_depends_on_eligible_set():
    config = PipelineConfig()
    features = _features([("A", 0.2, 0.1, 0.05), ("B", 0.2, 0.1, 0.05)])

    pair = score_candidates(
        assemble_candidates(
            _volume([("A", "Alpha", 100, 900), ("B", "Beta", 200, 900)]), features, _growth([]), config
        ),
        config.weights,
    )
    alone = score_candidates(
        assemble_candidates(_volume([("A", "Alpha", 100, 900)]), features, _growth([]), config),
        config.weights,
    )

    score_in_pair = pair.set_index("sa2_res_code").loc["A", "cbd_volume_component"]
    assert score_in_pair == pytest.approx(0.5)
    assert alone["cbd_volume_component"].iloc[0] == pytest.approx(1.0)


def test_components_within_unit_interval(pipeline_config):
    volume = _volume([("A", "Alpha", 100, 900), ("B", "Beta", 300, 900)])
    features = _features([("A", 0.4, 0.2, 0.02), ("B", 0.1, 0.05, 0.08)])
    growth = _growth([("A", 0.1), ("B", 0.3)])

    shortlist = score_candidates(
        assemble_candidates(volume, features, growth, pipeline_config), pipeline_config.weights
    )

    for column in ["cbd_volume_component", "growth_component", "pt_gap_component",
                   "wfh_gap_component", "mixed_mode_component"]:
        assert shortlist[column].between(0, 1).all()


def test_empty_candidates():
    shortlist = score_candidates(
        pd.DataFrame(columns=SHORTLIST_COLUMNS), ScoringWeights()
    )

    assert shortlist.empty
    assert list(shortlist.columns) == SHORTLIST_COLUMNS
