"""
Tests for TrendEstimator
=========================
"""

import pytest

from resource_ml.services.aggregator import MonthlySeries
from resource_ml.services.trend import TrendEstimator
from resource_ml.utils.constants import TREND_CONFIG, TRENDS, merged_config


@pytest.fixture
def estimator():
    return TrendEstimator()


def test_last_month_spike_reads_as_increasing(estimator, make_series, spike_values):
    prediction = estimator.estimate(make_series(spike_values))

    assert prediction.trend == "increasing"
    assert 0.0 < prediction.confidence < 0.95
    assert prediction.risk_factor == pytest.approx(1 - prediction.confidence)
    assert prediction.growth_rate == pytest.approx(0.05)
    assert prediction.anomaly_score == pytest.approx(1 / 12)


def test_all_zero_series(estimator, make_series):
    prediction = estimator.estimate(make_series([0.0] * 12))

    assert prediction.predicted_quantity == 0.0
    assert prediction.confidence <= 0.3
    assert prediction.trend == "stable"
    assert prediction.lower_bound == 0.0


def test_empty_series(estimator):
    prediction = estimator.estimate(MonthlySeries(entity_id="x"))

    assert prediction.predicted_quantity == 0.0
    assert prediction.confidence == 0.0
    assert prediction.trend == "stable"
    assert prediction.risk_factor == 1.0


def test_single_month(estimator, make_series):
    prediction = estimator.estimate(make_series([5.0]))

    assert prediction.trend == "stable"
    assert prediction.predicted_quantity == 5.0
    assert prediction.confidence <= 0.3


def test_constant_series(estimator, make_series):
    prediction = estimator.estimate(make_series([10.0] * 12))

    assert prediction.trend == "stable"
    assert prediction.predicted_quantity == pytest.approx(10.0)
    assert prediction.seasonality_factor == pytest.approx(1.0)
    assert prediction.confidence == pytest.approx(0.95)
    assert prediction.growth_rate == 0.0


def test_decreasing_series(estimator, make_series):
    prediction = estimator.estimate(make_series([20.0 - i for i in range(12)]))

    assert prediction.trend == "decreasing"
    assert prediction.growth_rate == pytest.approx(-0.05)
    # Projection 8.0 scaled by last October (20) over the mean (14.5)
    assert prediction.predicted_quantity == pytest.approx(8.0 * 20.0 / 14.5)


def test_sparse_history_caps_confidence(estimator, make_series):
    prediction = estimator.estimate(make_series([0.0] * 10 + [12.0, 12.0]))

    assert prediction.confidence <= 0.3


def test_bounds_contain_prediction_and_stay_non_negative(estimator, make_series):
    noisy = [1.0, 0.0, 5.0, 0.0, 2.0, 0.0, 8.0, 0.0, 1.0, 0.0, 0.0, 9.0]
    prediction = estimator.estimate(make_series(noisy))

    assert prediction.trend in TRENDS
    assert prediction.lower_bound >= 0.0
    assert prediction.lower_bound <= prediction.predicted_quantity <= prediction.upper_bound
    assert 0.0 <= prediction.confidence <= 1.0


def test_seasonality_factor_is_clipped(estimator, make_series):
    # Target month (October) was three times the usual level last year
    series = make_series([30.0] + [10.0] * 11)

    assert estimator.seasonality_factor(series) == pytest.approx(2.0)


def test_seasonality_needs_enough_history(estimator, make_series):
    series = make_series([30.0] + [0.0] * 8 + [10.0, 10.0, 10.0])

    assert estimator.seasonality_factor(series) == 1.0


def test_seasonality_with_zero_mean(estimator, make_series):
    assert estimator.seasonality_factor(make_series([0.0] * 12)) == 1.0


def test_custom_stable_threshold(make_series, spike_values):
    estimator = TrendEstimator(merged_config(TREND_CONFIG, {"stable_slope_ratio": 0.5}))

    assert estimator.estimate(make_series(spike_values)).trend == "stable"


def test_estimate_all_keeps_keys(estimator, make_series):
    predictions = estimator.estimate_all({
        "rice": make_series([10.0] * 12, "rice"),
        "milk": make_series([0.0] * 12, "milk"),
    })

    assert set(predictions) == {"rice", "milk"}


def test_prediction_to_dict(estimator, make_series):
    payload = estimator.estimate(make_series([10.0] * 12)).to_dict()

    assert set(payload) == {
        "predictedQuantity", "confidence", "trend", "seasonalityFactor",
        "upperBound", "lowerBound", "riskFactor", "growthRate", "anomalyScore",
    }
