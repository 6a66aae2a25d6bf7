"""
Tests for RentalCostPredictor
==============================
"""

import pandas as pd
import pytest

from resource_ml.services.rental import RentalCostPredictor


@pytest.fixture
def predictor():
    return RentalCostPredictor()


def test_short_history_uses_fixed_cost_defaults(predictor, make_series):
    prediction = predictor.predict(make_series([800.0]), 800.0)

    assert prediction.predicted_amount == 800.0
    assert prediction.confidence == pytest.approx(0.95)
    assert prediction.risk_factor == pytest.approx(0.1)
    assert prediction.lower_bound < 800.0 < prediction.upper_bound


def test_flat_fleet(predictor, make_series, reference_date):
    prediction = predictor.predict(make_series([1000.0] * 12), 1000.0, reference_date=reference_date)

    assert prediction.predicted_amount == pytest.approx(1000.0)
    assert prediction.confidence == pytest.approx(0.95)
    assert prediction.lower_bound == pytest.approx(1000.0)
    assert prediction.upper_bound == pytest.approx(1000.0)
    assert prediction.risk_factor == pytest.approx(0.1 * 0.2)


def test_step_change_detection(predictor):
    assert predictor.detect_step_changes([1000.0] * 6 + [1500.0] * 6) == [6]
    assert predictor.detect_step_changes([1000.0] * 12) == []
    assert predictor.detect_step_changes([1000.0, 1500.0]) == []


def test_recent_addition_not_priced_in(predictor, make_series, reference_date):
    series = make_series([1000.0] * 6 + [1500.0] * 6)

    prediction = predictor.predict(series, 1500.0, reference_date=reference_date)

    assert prediction.predicted_amount == pytest.approx(1500.0)


def test_overdue_addition_priced_in(predictor, make_series, reference_date):
    # Additions in 2025-11 and 2026-01, nothing since: cadence 2 months, 9 months elapsed
    series = make_series([1000.0, 1500.0, 1500.0] + [2000.0] * 9)

    prediction = predictor.predict(series, 2000.0, reference_date=reference_date)

    assert prediction.predicted_amount == pytest.approx(2000.0 + 500.0 * 0.8)
    assert prediction.upper_bound > prediction.predicted_amount
    assert prediction.risk_factor <= 0.5


def test_addition_probability_table(predictor, make_series):
    series = make_series([1.0] * 12)
    periods = pd.PeriodIndex(series.months, freq="M")

    # Step in the last month, default cadence of 12 months
    assert predictor.addition_probability(periods, [11], 12.0, periods[11]) == 0.1
    assert predictor.addition_probability(periods, [0], 12.0, periods[11]) == 0.4
    assert predictor.addition_probability(periods, [], 12.0, periods[11]) == 0.1


def test_zero_fleet(predictor, make_series, reference_date):
    prediction = predictor.predict(make_series([0.0] * 12), 0.0, reference_date=reference_date)

    assert prediction.predicted_amount == 0.0
    assert 0.0 <= prediction.confidence <= 1.0
