"""
Budget Forecasting Service
===========================
Rolls item-level predictions and recurring vehicle costs up into budget
totals for several horizons.

Design Principles:
- Cumulative: a horizon's amount is the spend over all its months
- Compounding: each item's monthly growth rate is applied month over month
- Wider with distance: risk grows with the log of the horizon and shrinks
  with the aggregate confidence, so intervals never narrow as h grows

Formulas:
- growth(h) = sum over m in [0, h) of (1 + g) ** m
- amount(h) = sum(q x price x growth(h)) + sum(vehicle monthly x h)
- risk(h)   = (base + (1 - confidence) x weight) x (1 + k x ln(h)),
              capped below 1
- bounds    = amount -/+ amount x risk
"""

import numpy as np
from typing import Dict, List, Optional, Any
from dataclasses import dataclass, field

from .trend import ConsumptionPrediction
from ..utils.logger import get_logger
from ..utils.constants import BUDGET_CONFIG, VEHICLE_RENTAL_CATEGORY

logger = get_logger(__name__)


@dataclass
class BudgetPrediction:
    """
    Monetary prediction with an interval.

    Attributes
    ----------
    predicted_amount : float
        Expected spend (>= 0)
    confidence : float
        Reliability in [0, 1]
    upper_bound, lower_bound : float
        Interval around the amount (lower bound >= 0)
    risk_factor : float
        Relative half-width of the interval, in [0, 1)
    """
    predicted_amount: float
    confidence: float
    upper_bound: float
    lower_bound: float
    risk_factor: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "predictedAmount": self.predicted_amount,
            "confidence": self.confidence,
            "upperBound": self.upper_bound,
            "lowerBound": self.lower_bound,
            "riskFactor": self.risk_factor,
        }


@dataclass
class BudgetLine:
    """
    One item's contribution to the budget.

    Attributes
    ----------
    item_id : Any
        Supply item identifier
    category : str
        Supply category used for the breakdown
    unit_price : float
        Price per unit
    prediction : ConsumptionPrediction
        Monthly quantity prediction for the item
    """
    item_id: Any
    category: str
    unit_price: float
    prediction: ConsumptionPrediction

    @property
    def monthly_amount(self) -> float:
        return max(0.0, float(self.prediction.predicted_quantity)) * max(0.0, float(self.unit_price or 0))


@dataclass
class BudgetForecast:
    """
    Budget for one horizon: the total plus a per-category breakdown.
    """
    months: int
    prediction: BudgetPrediction
    category_predictions: Dict[str, BudgetPrediction] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "months": self.months,
            "prediction": self.prediction.to_dict(),
            "categoryPredictions": {
                category: prediction.to_dict()
                for category, prediction in self.category_predictions.items()
            },
        }


class BudgetForecaster:
    """
    Multi-horizon budget forecaster.

    Usage
    -----
    >>> forecaster = BudgetForecaster()
    >>> forecasts = forecaster.forecast(lines, [fleet_prediction])
    >>> [f.months for f in forecasts]
    [1, 3, 12, 24, 36]
    """

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize the forecaster.

        Parameters
        ----------
        config : dict, optional
            Custom configuration. Uses defaults if not provided.
        """
        self.config = config or BUDGET_CONFIG
        self.horizons = sorted(int(h) for h in self.config.get('horizons', [1, 3, 12, 24, 36]))

        logger.info(f"BudgetForecaster initialized for horizons: {self.horizons}")

    def forecast(
        self,
        lines: List[BudgetLine],
        vehicle_predictions: Optional[List[BudgetPrediction]] = None
    ) -> List[BudgetForecast]:
        """
        Forecast every configured horizon.

        Parameters
        ----------
        lines : List[BudgetLine]
            Item predictions with prices and categories
        vehicle_predictions : List[BudgetPrediction], optional
            Monthly recurring vehicle cost predictions

        Returns
        -------
        List[BudgetForecast]
            One forecast per horizon, shortest first
        """
        vehicle_predictions = vehicle_predictions or []
        uncategorized = self.config.get("uncategorized_label", "uncategorized")

        by_category: Dict[str, List[BudgetLine]] = {}
        for line in lines:
            by_category.setdefault(line.category or uncategorized, []).append(line)

        forecasts = []
        for months in self.horizons:
            item_parts = [self._line_part(line, months) for line in lines]
            vehicle_parts = [self._vehicle_part(p, months) for p in vehicle_predictions]

            total = self._combine(item_parts + vehicle_parts, months)

            categories = {
                category: self._combine([self._line_part(line, months) for line in members], months)
                for category, members in sorted(by_category.items())
            }
            if vehicle_predictions:
                categories[VEHICLE_RENTAL_CATEGORY] = self._combine(vehicle_parts, months)

            forecasts.append(BudgetForecast(
                months=months,
                prediction=total,
                category_predictions=categories,
            ))

        if forecasts:
            longest = forecasts[-1].prediction
            logger.info(
                f"Budget forecast complete: {len(lines)} items, {len(vehicle_predictions)} vehicle "
                f"streams, {self.horizons[-1]}-month total {longest.predicted_amount:,.2f}"
            )

        return forecasts

    def growth_multiplier(self, growth_rate: float, months: int) -> float:
        """Sum of ``(1 + g) ** m`` for m in [0, months)."""
        cap = self.config["max_monthly_growth"]
        g = float(np.clip(growth_rate or 0.0, -cap, cap))
        return float(np.sum((1.0 + g) ** np.arange(months)))

    def risk_factor(self, confidence: float, months: int) -> float:
        """Relative interval half-width for an aggregate confidence and horizon."""
        base = self.config["base_risk"] + (1.0 - confidence) * self.config["confidence_risk_weight"]
        risk = base * (1.0 + self.config["horizon_risk_growth"] * np.log(max(months, 1)))
        return float(min(self.config["max_risk_factor"], max(0.0, risk)))

    def _line_part(self, line: BudgetLine, months: int) -> tuple:
        amount = line.monthly_amount * self.growth_multiplier(line.prediction.growth_rate, months)
        return amount, line.monthly_amount, float(line.prediction.confidence)

    def _vehicle_part(self, prediction: BudgetPrediction, months: int) -> tuple:
        monthly = max(0.0, float(prediction.predicted_amount))
        return monthly * months, monthly, float(prediction.confidence)

    def _combine(self, parts: List[tuple], months: int) -> BudgetPrediction:
        """
        Sum amounts and weight confidences by first-month amount.

        Weights do not depend on the horizon, so the aggregate confidence
        (and with it the risk ordering across horizons) stays fixed.
        """
        amount = float(sum(a for a, _, _ in parts))
        weight = float(sum(w for _, w, _ in parts))
        confidence = float(sum(w * c for _, w, c in parts) / weight) if weight > 0 else 0.0
        confidence = float(np.clip(confidence, 0.0, 1.0))

        risk = self.risk_factor(confidence, months)

        return BudgetPrediction(
            predicted_amount=amount,
            confidence=confidence,
            upper_bound=amount * (1 + risk),
            lower_bound=max(0.0, amount * (1 - risk)),
            risk_factor=risk,
        )
