"""
Tests for BudgetForecaster
===========================
"""

import pytest

from resource_ml.services.budget import BudgetForecaster, BudgetLine, BudgetPrediction
from resource_ml.services.trend import ConsumptionPrediction


@pytest.fixture
def forecaster():
    return BudgetForecaster()


def _line(item_id, quantity, price, category="dairy", confidence=0.8, growth=0.0):
    return BudgetLine(
        item_id=item_id,
        category=category,
        unit_price=price,
        prediction=ConsumptionPrediction(
            predicted_quantity=quantity, confidence=confidence, growth_rate=growth
        ),
    )


@pytest.fixture
def fleet():
    return BudgetPrediction(
        predicted_amount=500.0, confidence=0.9, upper_bound=520.0, lower_bound=490.0, risk_factor=0.05
    )


def test_default_horizons(forecaster):
    assert [f.months for f in forecaster.forecast([])] == [1, 3, 12, 24, 36]


def test_growth_multiplier(forecaster):
    assert forecaster.growth_multiplier(0.0, 12) == pytest.approx(12.0)
    assert forecaster.growth_multiplier(0.05, 3) == pytest.approx(1 + 1.05 + 1.05 ** 2)
    # Clipped to the configured maximum
    assert forecaster.growth_multiplier(0.5, 3) == pytest.approx(1 + 1.05 + 1.05 ** 2)


def test_amounts_and_weighted_confidence(forecaster, fleet):
    forecasts = {f.months: f for f in forecaster.forecast([_line("milk", 10.0, 2.0)], [fleet])}

    one = forecasts[1].prediction
    assert one.predicted_amount == pytest.approx(520.0)
    assert one.confidence == pytest.approx((20.0 * 0.8 + 500.0 * 0.9) / 520.0)

    assert forecasts[12].prediction.predicted_amount == pytest.approx(240.0 + 6000.0)


def test_interval_width_grows_with_horizon(forecaster, fleet):
    lines = [
        _line("milk", 10.0, 2.0, growth=0.03),
        _line("rice", 40.0, 1.0, category="grains", confidence=0.3, growth=-0.02),
        _line("salt", 1.0, 0.5, category="", confidence=0.1),
    ]
    forecasts = forecaster.forecast(lines, [fleet])

    def widths(select):
        return [select(f).upper_bound - select(f).lower_bound for f in forecasts]

    total = widths(lambda f: f.prediction)
    assert total == sorted(total)

    for category in forecasts[0].category_predictions:
        per_category = widths(lambda f: f.category_predictions[category])
        assert per_category == sorted(per_category)


def test_bounds_and_risk_are_sane(forecaster, fleet):
    for forecast in forecaster.forecast([_line("milk", 10.0, 2.0, confidence=0.0)], [fleet]):
        prediction = forecast.prediction
        assert 0.0 <= prediction.lower_bound <= prediction.predicted_amount <= prediction.upper_bound
        assert 0.0 <= prediction.risk_factor < 1.0
        assert 0.0 <= prediction.confidence <= 1.0


def test_category_breakdown(forecaster, fleet):
    lines = [_line("milk", 10.0, 2.0), _line("salt", 2.0, 1.0, category="")]
    categories = forecaster.forecast(lines, [fleet])[0].category_predictions

    assert set(categories) == {"dairy", "uncategorized", "vehicle_rental"}
    assert categories["vehicle_rental"].predicted_amount == pytest.approx(500.0)
    assert categories["uncategorized"].predicted_amount == pytest.approx(2.0)


def test_nothing_predicted(forecaster):
    forecast = forecaster.forecast([_line("milk", 0.0, 2.0)])[0]

    assert forecast.prediction.predicted_amount == 0.0
    assert forecast.prediction.confidence == 0.0
    assert forecast.prediction.upper_bound == 0.0
    assert forecast.prediction.lower_bound == 0.0


def test_risk_factor_grows_with_horizon(forecaster):
    risks = [forecaster.risk_factor(0.5, months) for months in (1, 3, 12, 24, 36)]

    assert risks == sorted(risks)
    assert risks[0] == pytest.approx(0.05 + 0.5 * 0.25)


def test_forecast_to_dict(forecaster, fleet):
    payload = forecaster.forecast([_line("milk", 10.0, 2.0)], [fleet])[0].to_dict()

    assert payload["months"] == 1
    assert set(payload["prediction"]) == {
        "predictedAmount", "confidence", "upperBound", "lowerBound", "riskFactor",
    }
    assert set(payload["categoryPredictions"]) == {"dairy", "vehicle_rental"}
