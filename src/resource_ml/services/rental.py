"""
Vehicle Rental Cost Service
============================
Predicts the recurring monthly rental cost of the fleet.

Design Principles:
- Rentals are fixed costs: the current recurring amount is the baseline
- Fleet growth arrives in steps, so history is read as a sequence of
  step changes rather than a slope
- Another addition is only priced in when it is more likely than not

Key Steps:
1. Step changes: month-over-month change above 10% of the previous month
   or above mean + 2 std of the absolute first differences
2. Addition size: average of the positive step changes
3. Cadence: average months between step changes (12 when unknown)
4. Probability of another addition from months since the last step
   relative to the cadence
5. Confidence from stability (coefficient of variation), risk from
   volatility (average relative month-over-month change)
"""

import pandas as pd
import numpy as np
from typing import Dict, List, Optional, Any

from .aggregator import MonthlySeries
from .budget import BudgetPrediction
from ..utils.logger import get_logger
from ..utils.constants import RENTAL_CONFIG

logger = get_logger(__name__)


class RentalCostPredictor:
    """
    Step-change aware predictor for recurring rental costs.

    Usage
    -----
    >>> predictor = RentalCostPredictor()
    >>> prediction = predictor.predict(fleet_series, current_monthly_amount=4200.0,
    ...                                reference_date="2026-10-18")
    >>> prediction.predicted_amount >= 4200.0
    True
    """

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize the predictor.

        Parameters
        ----------
        config : dict, optional
            Custom configuration. Uses defaults if not provided.
        """
        self.config = config or RENTAL_CONFIG

        logger.info(
            f"RentalCostPredictor initialized: step change above "
            f"{self.config['step_change_pct']:.0%} or {self.config['step_change_sigma']} sigma"
        )

    def predict(
        self,
        series: MonthlySeries,
        current_monthly_amount: float,
        reference_date: Any = None,
        months_ahead: int = 1
    ) -> BudgetPrediction:
        """
        Predict the monthly recurring cost ``months_ahead`` months out.

        Parameters
        ----------
        series : MonthlySeries
            Monthly rental cost history
        current_monthly_amount : float
            Sum of monthly amounts of currently active rentals
        reference_date : date-like, optional
            "Now" for the months-since-last-step calculation. Defaults to
            the last month of the series.
        months_ahead : int
            Forecast distance; confidence decays with it

        Returns
        -------
        BudgetPrediction
            Monthly amount with interval and risk
        """
        current = max(0.0, float(current_monthly_amount or 0.0))
        values = series.values_array

        if len(values) < 2:
            band = self.config["short_history_band"]
            return BudgetPrediction(
                predicted_amount=current,
                confidence=self.config["short_history_confidence"],
                upper_bound=current * (1 + band),
                lower_bound=current * (1 - band),
                risk_factor=self.config["short_history_risk"],
            )

        periods = pd.PeriodIndex(series.months, freq='M')
        if reference_date is None:
            now = periods[-1]
        else:
            now = pd.Timestamp(reference_date).to_period('M')

        steps = self.detect_step_changes(values)
        additions = [values[i] - values[i - 1] for i in steps if values[i] > values[i - 1]]
        avg_addition = float(np.mean(additions)) if additions else 0.0

        cadence = self.step_cadence(periods, steps)
        probability = self.addition_probability(periods, steps, cadence, now)

        predicted = current
        if probability > self.config["addition_probability_floor"] and avg_addition > 0:
            predicted += avg_addition * probability

        time_factor = max(
            self.config["min_time_factor"],
            1 - months_ahead * self.config["horizon_decay"]
        )
        confidence = min(self.config["max_confidence"], self.stability(values) * time_factor)

        volatility = self.volatility(values)
        addition_share = probability * (avg_addition / current) if current > 0 else 0.0
        upper_factor = 1 + volatility * self.config["volatility_band"] + addition_share
        lower_factor = max(self.config["lower_bound_floor"], 1 - volatility * self.config["volatility_band"])

        risk = min(
            self.config["max_risk_factor"],
            volatility * self.config["volatility_risk_weight"]
            + probability * self.config["addition_risk_weight"]
        )

        logger.info(
            f"Rental cost prediction: {predicted:,.2f}/month from {current:,.2f} current, "
            f"{len(steps)} step changes, addition probability {probability:.0%}"
        )

        return BudgetPrediction(
            predicted_amount=predicted,
            confidence=float(confidence),
            upper_bound=predicted * upper_factor,
            lower_bound=predicted * lower_factor,
            risk_factor=float(risk),
        )

    def detect_step_changes(self, values: np.ndarray) -> List[int]:
        """Indices whose change from the previous month is a step change."""
        values = np.asarray(values, dtype=float)
        if len(values) < 3:
            return []

        diffs = np.abs(np.diff(values))
        threshold = diffs.mean() + self.config["step_change_sigma"] * diffs.std()

        steps = []
        for i in range(1, len(values)):
            change = abs(values[i] - values[i - 1])
            if change == 0:
                continue
            previous = values[i - 1]
            relative = change / previous if previous > 0 else np.inf
            if change > threshold or relative > self.config["step_change_pct"]:
                steps.append(i)

        return steps

    def step_cadence(self, periods: pd.PeriodIndex, steps: List[int]) -> float:
        """Average months between step changes."""
        if len(steps) < 2:
            return float(self.config["default_frequency_months"])

        gaps = [(periods[b] - periods[a]).n for a, b in zip(steps, steps[1:])]
        return float(np.mean(gaps))

    def addition_probability(
        self,
        periods: pd.PeriodIndex,
        steps: List[int],
        cadence: float,
        now: pd.Period
    ) -> float:
        """Probability of another fleet addition, from timing vs. cadence."""
        if not steps:
            return self.config["no_history_probability"]

        if cadence <= 0:
            cadence = float(self.config["default_frequency_months"])

        months_since = (now - periods[steps[-1]]).n
        relative_timing = months_since / cadence

        for ceiling, probability in self.config["addition_probabilities"]:
            if relative_timing < ceiling:
                return probability
        return self.config["overdue_probability"]

    def stability(self, values: np.ndarray) -> float:
        """1 for flat history, down to ``min_stability`` for volatile history."""
        if len(values) < 3:
            return self.config["limited_history_stability"]

        mean = float(np.mean(values))
        if mean <= 0:
            return 1.0

        cv = float(np.std(values)) / mean
        return max(self.config["min_stability"], 1 - cv * 2)

    def volatility(self, values: np.ndarray) -> float:
        """Average relative month-over-month change, scaled and capped."""
        if len(values) < 3:
            return self.config["limited_history_volatility"]

        previous, current = values[:-1], values[1:]
        mask = previous > 0
        if not mask.any():
            return 0.0

        changes = np.abs((current[mask] - previous[mask]) / previous[mask])
        return float(min(self.config["max_volatility"], changes.mean() * 2))
