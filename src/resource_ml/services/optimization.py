"""
Optimization Advice Service
============================
Compares actual monthly usage with a trimmed baseline and turns the gap
into a quantity recommendation.

Design Principles:
- Baseline, not target: the recommended quantity is what the item used
  once the heaviest months are set aside
- No spurious advice: nothing is emitted unless the baseline undercuts
  actual usage by more than the savings threshold
- Every recommendation names its reason and how hard it is to act on

Reason Precedence:
1. insufficient_data   - fewer than 3 active months
2. increasing_trend    - trend estimator says usage is rising
3. consumption_spikes  - spike months or a flagged latest month
4. seasonal_pattern    - seasonality factor outside 0.9-1.1
5. stable_consumption  - everything else
"""

import numpy as np
from typing import Dict, List, Optional, Any
from dataclasses import dataclass

from .aggregator import MonthlySeries
from .anomaly import AnomalyResult
from .trend import ConsumptionPrediction, TrendEstimator
from ..models.records import SupplyItem
from ..utils.logger import get_logger
from ..utils.constants import (
    OPTIMIZATION_CONFIG,
    TREND_CONFIG,
    REASON_DESCRIPTIONS,
    DEFAULT_REASON_DESCRIPTION,
)

logger = get_logger(__name__)


def _to_float(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if np.isfinite(number) and number > 0 else 0.0


@dataclass
class Recommendation:
    """
    Quantity recommendation for one supply item.

    Attributes
    ----------
    recommended_quantity : float
        Suggested monthly quantity
    actual_quantity : float
        Current mean monthly usage
    potential_savings : float
        Monthly saving at the catalog price
    annual_savings : float
        potential_savings x 12
    confidence : float
        Confidence carried over from the item's prediction
    implementation_difficulty : str
        "easy", "medium" or "hard"
    reason_code : str
        Closed-set reason code
    reason : str
        Human-readable description of the reason code
    """
    recommended_quantity: float
    actual_quantity: float
    potential_savings: float
    annual_savings: float
    confidence: float
    implementation_difficulty: str
    reason_code: str
    reason: str = ""

    @property
    def reduction_pct(self) -> float:
        if self.actual_quantity <= 0:
            return 0.0
        return (self.actual_quantity - self.recommended_quantity) / self.actual_quantity

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "recommendedQuantity": self.recommended_quantity,
            "actualQuantity": self.actual_quantity,
            "potentialSavings": self.potential_savings,
            "annualSavings": self.annual_savings,
            "confidence": self.confidence,
            "implementationDifficulty": self.implementation_difficulty,
            "reasonCode": self.reason_code,
            "reason": self.reason,
        }


class OptimizationAdvisor:
    """
    Trimmed-mean optimization advisor.

    Usage
    -----
    >>> advisor = OptimizationAdvisor()
    >>> recommendation = advisor.advise(series, supply, prediction)
    >>> recommendation.reason_code if recommendation else None
    'increasing_trend'

    Difficulty (relative reduction vs. actual usage):
    - easy:   < 15%
    - medium: < 35%
    - hard:   anything larger
    """

    def __init__(self, config: Optional[Dict] = None, trend_config: Optional[Dict] = None):
        """
        Initialize the advisor.

        Parameters
        ----------
        config : dict, optional
            Custom configuration. Uses defaults if not provided.
        trend_config : dict, optional
            Configuration for predictions computed on demand.
        """
        self.config = config or OPTIMIZATION_CONFIG
        self.trend_config = trend_config or TREND_CONFIG
        self.difficulty_thresholds = self.config.get('difficulty_thresholds', {
            'easy': 0.15,
            'medium': 0.35
        })
        self._estimator = None

        logger.info(
            f"OptimizationAdvisor initialized: trim {self.config['trim_fraction']:.0%}, "
            f"min savings {self.config['min_savings_threshold']:.0%}"
        )

    @property
    def estimator(self) -> TrendEstimator:
        if self._estimator is None:
            self._estimator = TrendEstimator(self.trend_config)
        return self._estimator

    def advise(
        self,
        series: MonthlySeries,
        supply: Optional[SupplyItem] = None,
        prediction: Optional[ConsumptionPrediction] = None,
        anomaly: Optional[AnomalyResult] = None
    ) -> Optional[Recommendation]:
        """
        Build a recommendation for one item, or None when there is none.

        Parameters
        ----------
        series : MonthlySeries
            Monthly quantity series of the item
        supply : SupplyItem, optional
            Catalog entry; supplies the price (0 when missing)
        prediction : ConsumptionPrediction, optional
            Item prediction; estimated from ``series`` when not given
        anomaly : AnomalyResult, optional
            Latest-month anomaly result of the item

        Returns
        -------
        Recommendation or None
        """
        values = series.values_array
        if len(values) == 0:
            return None

        actual = float(values.mean())
        if actual <= 0:
            return None

        recommended = self.trimmed_baseline(values)
        if recommended >= actual * (1 - self.config["min_savings_threshold"]):
            return None

        if prediction is None:
            prediction = self.estimator.estimate(series)

        price = _to_float(supply.price_per_unit) if supply is not None else 0.0
        delta = actual - recommended
        monthly_savings = delta * price

        reason_code = self.reason_code(series, prediction, anomaly)

        return Recommendation(
            recommended_quantity=recommended,
            actual_quantity=actual,
            potential_savings=monthly_savings,
            annual_savings=monthly_savings * self.config["months_per_year"],
            confidence=float(prediction.confidence),
            implementation_difficulty=self.difficulty(delta / actual),
            reason_code=reason_code,
            reason=REASON_DESCRIPTIONS.get(reason_code, DEFAULT_REASON_DESCRIPTION),
        )

    def advise_all(
        self,
        series_map: Dict[Any, MonthlySeries],
        supplies: Dict[Any, SupplyItem],
        predictions: Optional[Dict[Any, ConsumptionPrediction]] = None,
        anomalies: Optional[Dict[Any, AnomalyResult]] = None
    ) -> Dict[Any, Recommendation]:
        """
        Advise every item of a mapping; items without advice are left out.
        """
        predictions = predictions or {}
        anomalies = anomalies or {}

        recommendations = {}
        for item_id, series in series_map.items():
            recommendation = self.advise(
                series,
                supplies.get(item_id),
                predictions.get(item_id),
                anomalies.get(item_id),
            )
            if recommendation is not None:
                recommendations[item_id] = recommendation

        total = sum(r.potential_savings for r in recommendations.values())
        logger.info(
            f"Optimization complete: {len(recommendations)}/{len(series_map)} items, "
            f"potential savings {total:,.2f}/month"
        )

        return recommendations

    def trimmed_baseline(self, values: np.ndarray) -> float:
        """Mean after dropping the highest ``trim_fraction`` of months."""
        ordered = np.sort(np.asarray(values, dtype=float))
        drop = int(np.floor(len(ordered) * self.config["trim_fraction"]))
        kept = ordered[:max(1, len(ordered) - drop)]
        return float(kept.mean())

    def reason_code(
        self,
        series: MonthlySeries,
        prediction: ConsumptionPrediction,
        anomaly: Optional[AnomalyResult] = None
    ) -> str:
        """Pick the reason code following the documented precedence."""
        if series.nonzero_months < self.trend_config["min_nonzero_months"]:
            return "insufficient_data"

        if prediction.trend == "increasing":
            return "increasing_trend"

        spiky = prediction.anomaly_score > self.config["spike_share"]
        if spiky or (anomaly is not None and anomaly.severity != "low"):
            return "consumption_spikes"

        low, high = self.config["seasonal_band"]
        if not low <= prediction.seasonality_factor <= high:
            return "seasonal_pattern"

        return "stable_consumption"

    def difficulty(self, relative_delta: float) -> str:
        """Map a relative reduction to an implementation difficulty."""
        if relative_delta < self.difficulty_thresholds["easy"]:
            return "easy"
        if relative_delta < self.difficulty_thresholds["medium"]:
            return "medium"
        return "hard"
