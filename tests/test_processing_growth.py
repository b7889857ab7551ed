import numpy as np
import pandas as pd
import pytest

from travel_atlas.processing.growth import GROWTH_COLUMNS, cbd_growth


def _volume(rows):
    return pd.DataFrame(
        rows,
        columns=["census_year", "sa2_res_code", "sa2_res_name_std", "cbd_commuters", "cbd_dependency_rate"],
    )


@pytest.fixture
def volume():
    return _volume(
        [
            (2016, "A", "Alpha", 200, 0.20),
            (2021, "A", "Alpha", 300, 0.30),
            (2016, "B", "Beta", 150, 0.25),
            (2021, "B", "Beta", 150, 0.20),
            (2016, "C", "Gamma", 0, 0.0),
            (2021, "C", "Gamma", 40, 0.10),
            (2021, "D", "Delta", 90, 0.50),
            (2011, "A", "Alpha", 100, 0.10),
        ]
    )


def _origin(growth, code):
    return growth[growth["sa2_res_code"] == code].iloc[0]


def test_growth_columns_and_window(volume):
    growth = cbd_growth(volume, base_year=2016, target_year=2021)

    assert list(growth.columns) == GROWTH_COLUMNS
    assert growth["sa2_res_code"].tolist() == ["A", "B", "C", "D"]
    assert (growth["base_year"] == 2016).all()
    assert (growth["target_year"] == 2021).all()


def test_growth_change_and_rate(volume):
    growth = cbd_growth(volume)
    alpha = _origin(growth, "A")

    assert alpha["cbd_commuters_base"] == 200
    assert alpha["cbd_commuters_target"] == 300
    assert alpha["cbd_commuter_change"] == 100
    assert alpha["cbd_rate_pp_change"] == pytest.approx(0.10)
    assert alpha["cbd_growth_rate"] == pytest.approx(0.5)


def test_growth_rate_zero_only_when_counts_equal(volume):
    growth = cbd_growth(volume)

    assert _origin(growth, "B")["cbd_growth_rate"] == 0.0
    nonzero = growth[growth["cbd_commuters_base"] != growth["cbd_commuters_target"]]
    assert (nonzero["cbd_growth_rate"].dropna() != 0).all()


def test_growth_rate_undefined_when_base_is_zero(volume):
    gamma = _origin(cbd_growth(volume), "C")

    assert gamma["cbd_commuter_change"] == 40
    assert np.isnan(gamma["cbd_growth_rate"])


def test_origin_missing_from_base_year(volume):
    delta = _origin(cbd_growth(volume), "D")

    assert delta["sa2_res_name_std"] == "Delta"
    assert np.isnan(delta["cbd_commuters_base"])
    assert np.isnan(delta["cbd_commuter_change"])
    assert np.isnan(delta["cbd_growth_rate"])


def test_other_window(volume):
    growth = cbd_growth(volume, base_year=2011, target_year=2016)
    alpha = _origin(growth, "A")

    assert alpha["cbd_growth_rate"] == pytest.approx(1.0)
    assert np.isnan(_origin(growth, "B")["cbd_growth_rate"])


def test_empty_volume():
    growth = cbd_growth(_volume([]))

    assert growth.empty
    assert list(growth.columns) == GROWTH_COLUMNS
