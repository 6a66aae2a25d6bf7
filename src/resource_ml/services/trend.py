"""
Trend Estimation Service
=========================
Fits a linear trend and a same-month seasonality factor to a monthly series
and projects the next period.

Design Principles:
- Explainable: least-squares slope plus a single seasonal multiplier
- Honest about uncertainty: sparse or volatile history lowers confidence,
  and fewer than 3 active months can never report high confidence
- Never negative: quantities and amounts are floored at zero

Key Steps:
1. Linear trend (scipy.stats.linregress over month index vs. value)
   - "stable" when |slope| is below 5% of the series mean per month
2. Seasonality factor
   - Average of the same calendar month in history divided by the series
     mean; 1.0 for empty history or a zero mean
3. Confidence
   - Grows with the number of non-zero months
   - Shrinks with the coefficient of variation
4. Prediction interval
   - t-distribution interval around the projection when at least 3 points
     are available, otherwise a fixed band
"""

import pandas as pd
import numpy as np
from typing import Dict, Optional, Any
from dataclasses import dataclass
from scipy import stats

from .aggregator import MonthlySeries
from ..utils.logger import get_logger
from ..utils.constants import TREND_CONFIG

logger = get_logger(__name__)


@dataclass
class ConsumptionPrediction:
    """
    Next-period prediction for a single series.

    Attributes
    ----------
    predicted_quantity : float
        Projected value for the target month (>= 0)
    confidence : float
        Self-assessed reliability in [0, 1]
    trend : str
        "increasing", "decreasing" or "stable"
    seasonality_factor : float
        Multiplier applied for the target calendar month
    upper_bound, lower_bound : float
        Prediction interval (lower bound >= 0)
    risk_factor : float
        1 - confidence, in [0, 1]
    growth_rate : float
        Monthly slope as a share of the mean; 0 for stable series
    anomaly_score : float
        Share of months whose |z| exceeds the spike threshold
    data_points : int
        Months in the series
    nonzero_months : int
        Months with any activity
    """
    predicted_quantity: float
    confidence: float
    trend: str = "stable"
    seasonality_factor: float = 1.0
    upper_bound: float = 0.0
    lower_bound: float = 0.0
    risk_factor: float = 1.0
    growth_rate: float = 0.0
    anomaly_score: float = 0.0
    data_points: int = 0
    nonzero_months: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "predictedQuantity": self.predicted_quantity,
            "confidence": self.confidence,
            "trend": self.trend,
            "seasonalityFactor": self.seasonality_factor,
            "upperBound": self.upper_bound,
            "lowerBound": self.lower_bound,
            "riskFactor": self.risk_factor,
            "growthRate": self.growth_rate,
            "anomalyScore": self.anomaly_score,
        }


class TrendEstimator:
    """
    Trend + seasonality estimator for monthly series.

    Usage
    -----
    >>> estimator = TrendEstimator()
    >>> prediction = estimator.estimate(series)
    >>> prediction.trend, round(prediction.confidence, 2)
    ('increasing', 0.55)

    Confidence Logic:
    - history factor = non-zero months / 12 (capped at 1)
    - variability factor = 1 / (1 + coefficient of variation)
    - confidence = history x variability, capped at 0.95
    - fewer than 3 non-zero months: capped at 0.3
    """

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize the estimator.

        Parameters
        ----------
        config : dict, optional
            Custom configuration. Uses defaults if not provided.
        """
        self.config = config or TREND_CONFIG

        logger.info(
            f"TrendEstimator initialized: stable below "
            f"{self.config['stable_slope_ratio']:.0%} of mean per month"
        )

    def estimate_all(
        self,
        series_map: Dict[Any, MonthlySeries],
        horizon: int = 1
    ) -> Dict[Any, ConsumptionPrediction]:
        """
        Estimate every series in a mapping.

        Returns
        -------
        Dict[Any, ConsumptionPrediction]
            Predictions keyed like the input
        """
        predictions = {
            key: self.estimate(series, horizon=horizon)
            for key, series in series_map.items()
        }

        counts = {trend: 0 for trend in ("increasing", "decreasing", "stable")}
        for prediction in predictions.values():
            counts[prediction.trend] += 1

        logger.info(
            f"Trend estimation complete for {len(predictions)} series: "
            f"{counts['increasing']} increasing, {counts['decreasing']} decreasing, "
            f"{counts['stable']} stable"
        )

        return predictions

    def estimate(self, series: MonthlySeries, horizon: int = 1) -> ConsumptionPrediction:
        """
        Predict the value ``horizon`` months after the end of the series.

        Parameters
        ----------
        series : MonthlySeries
            Contiguous monthly history
        horizon : int
            Months ahead of the last observed month (default: next month)

        Returns
        -------
        ConsumptionPrediction
            Prediction with trend, seasonality and interval
        """
        values = series.values_array
        n = len(values)

        if n == 0:
            return ConsumptionPrediction(predicted_quantity=0.0, confidence=0.0)

        nonzero = int(np.count_nonzero(values > 0))
        confidence = self.calculate_confidence(values)

        if n == 1 or nonzero < 2:
            # One active point cannot establish a slope
            level = max(float(values[-1]) if n == 1 else float(values.mean()), 0.0)
            band = level * self.config["fallback_band_ratio"]
            return ConsumptionPrediction(
                predicted_quantity=level,
                confidence=confidence,
                trend="stable",
                seasonality_factor=1.0,
                upper_bound=level + band,
                lower_bound=max(0.0, level - band),
                risk_factor=1.0 - confidence,
                data_points=n,
                nonzero_months=nonzero,
            )

        x = np.arange(n, dtype=float)
        fit = stats.linregress(x, values)
        slope, intercept = float(fit.slope), float(fit.intercept)

        mean = float(values.mean())
        normalized_slope = slope / mean if mean > 0 else 0.0
        trend = self.classify_trend(normalized_slope)

        x_future = n - 1 + horizon
        projected = intercept + slope * x_future

        seasonality_factor = self.seasonality_factor(series, horizon)
        predicted = max(0.0, projected * seasonality_factor)

        margin = self._interval_margin(x, values, slope, intercept, x_future)
        if margin is None or not np.isfinite(margin):
            margin = predicted * self.config["fallback_band_ratio"]
        else:
            margin *= seasonality_factor

        max_growth = self.config["max_monthly_growth"]
        growth_rate = 0.0 if trend == "stable" else float(np.clip(normalized_slope, -max_growth, max_growth))

        return ConsumptionPrediction(
            predicted_quantity=predicted,
            confidence=confidence,
            trend=trend,
            seasonality_factor=seasonality_factor,
            upper_bound=predicted + margin,
            lower_bound=max(0.0, predicted - margin),
            risk_factor=1.0 - confidence,
            growth_rate=growth_rate,
            anomaly_score=self.spike_share(values),
            data_points=n,
            nonzero_months=nonzero,
        )

    def classify_trend(self, normalized_slope: float) -> str:
        """Map a slope expressed as a share of the mean to a trend label."""
        threshold = self.config["stable_slope_ratio"]
        if abs(normalized_slope) < threshold:
            return "stable"
        return "increasing" if normalized_slope > 0 else "decreasing"

    def seasonality_factor(self, series: MonthlySeries, horizon: int = 1) -> float:
        """
        Same-calendar-month average of the target month over the series mean.

        Returns 1.0 when the mean is zero, when history is too sparse, or
        when the target month never occurs in the series.
        """
        values = series.values_array
        if len(values) == 0 or len(series.months) != len(values):
            return 1.0

        mean = float(values.mean())
        if mean <= 0:
            return 1.0

        if np.count_nonzero(values > 0) < self.config["seasonality_min_nonzero_months"]:
            return 1.0

        periods = pd.PeriodIndex(series.months, freq='M')
        target_month = (periods[-1] + horizon).month
        same_month = values[periods.month == target_month]

        if len(same_month) == 0:
            return 1.0

        low, high = self.config["seasonality_bounds"]
        return float(np.clip(same_month.mean() / mean, low, high))

    def calculate_confidence(self, values: np.ndarray) -> float:
        """
        Confidence from history depth and variability, bounded to [0, 1].
        """
        if len(values) == 0:
            return 0.0

        nonzero = int(np.count_nonzero(values > 0))
        mean = float(values.mean())
        if nonzero == 0 or mean <= 0:
            return 0.0

        cv = float(values.std()) / mean
        history_factor = min(1.0, nonzero / self.config["full_history_months"])
        variability_factor = 1.0 / (1.0 + cv)

        confidence = min(self.config["max_confidence"], history_factor * variability_factor)

        if nonzero < self.config["min_nonzero_months"] or len(values) == 1:
            confidence = min(confidence, self.config["low_confidence_ceiling"])

        return float(np.clip(confidence, 0.0, 1.0))

    def spike_share(self, values: np.ndarray) -> float:
        """Share of months whose |z| exceeds the spike threshold."""
        if len(values) < 2:
            return 0.0

        std = float(values.std())
        if std == 0:
            return 0.0

        z = np.abs((values - values.mean()) / std)
        return float(np.mean(z > self.config["spike_zscore"]))

    def _interval_margin(
        self,
        x: np.ndarray,
        values: np.ndarray,
        slope: float,
        intercept: float,
        x_future: float
    ) -> Optional[float]:
        """
        Half-width of the t-distribution prediction interval at ``x_future``.

        Returns None when fewer than 3 points are available.
        """
        n = len(values)
        if n < 3:
            return None

        dof = n - 2
        residuals = values - (intercept + slope * x)
        std_error = np.sqrt(np.sum(residuals ** 2) / dof)
        ss_x = np.sum((x - x.mean()) ** 2)

        t_critical = stats.t.ppf((1 + self.config["confidence_level"]) / 2, dof)
        spread = np.sqrt(1 + 1 / n + (x_future - x.mean()) ** 2 / ss_x)

        return float(t_critical * std_error * spread)
