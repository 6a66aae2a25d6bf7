"""
Analysis Orchestration Service
===============================
Runs the full compute graph over one batch of records and returns a
single ``AnalysisResult``.

Design Principles:
- One invocation, one result: nothing is cached between calls
- Every stage is logged with its timing (LogContext)
- Services are configured per section; missing sections use defaults
- The request boundary never raises: unexpected failures become a
  structured error payload

Pipeline:
    records -> validation -> monthly series
            -> trend + anomaly per item
            -> optimization, budget (+ rental costs), group detectors
            -> AnalysisResult
"""

import pandas as pd
from typing import Dict, List, Optional, Any, Iterable, Mapping, Type
from dataclasses import dataclass, field

from .aggregator import TimeSeriesAggregator
from .trend import TrendEstimator, ConsumptionPrediction
from .anomaly import AnomalyScorer, AnomalyResult
from .optimization import OptimizationAdvisor, Recommendation, _to_float
from .budget import BudgetForecaster, BudgetForecast, BudgetLine, BudgetPrediction
from .rental import RentalCostPredictor
from .group_detectors import (
    KitchenConsumptionDetector,
    AssetDisposalAnalyzer,
    LocationOverpurchaseDetector,
    KitchenAnomaly,
    AssetDisposal,
    LocationOverpurchase,
)
from ..models.explanation import InsightsGenerator
from ..models.records import Kitchen, RecordValidationError, SupplyItem
from ..utils.logger import get_logger, LogContext
from ..utils.constants import (
    AGGREGATION_CONFIG,
    TREND_CONFIG,
    ANOMALY_CONFIG,
    OPTIMIZATION_CONFIG,
    BUDGET_CONFIG,
    RENTAL_CONFIG,
    GROUP_DETECTOR_CONFIG,
    merged_config,
)

logger = get_logger(__name__)


def _as_records(items: Optional[Iterable[Any]], record_type: Type, label: str) -> List[Any]:
    """Build catalog records from instances or mappings, skipping broken rows."""
    records = []
    for item in items or []:
        if isinstance(item, record_type):
            records.append(item)
            continue
        try:
            records.append(record_type.from_dict(item))
        except (RecordValidationError, TypeError, AttributeError) as e:
            logger.warning(f"Skipped {label} entry: {e}")
    return records


@dataclass
class AnalysisResult:
    """
    Aggregated output of one analysis run.

    Attributes
    ----------
    consumption_predictions : Dict[Any, ConsumptionPrediction]
        Next-month prediction per item with consumption history
    optimization_recommendations : Dict[Any, Recommendation]
        Items with a recommendation (items without one are left out)
    budget_predictions : List[BudgetForecast]
        One forecast per horizon
    anomaly_detections : Dict[Any, AnomalyResult]
        Items whose latest month is a medium/high anomaly
    kitchen_anomalies : List[KitchenAnomaly]
    asset_disposals : List[AssetDisposal]
    location_overpurchasing : List[LocationOverpurchase]
    supplies : Dict[Any, SupplyItem]
        Catalog used to label items in the output
    """
    consumption_predictions: Dict[Any, ConsumptionPrediction] = field(default_factory=dict)
    optimization_recommendations: Dict[Any, Recommendation] = field(default_factory=dict)
    budget_predictions: List[BudgetForecast] = field(default_factory=list)
    anomaly_detections: Dict[Any, AnomalyResult] = field(default_factory=dict)
    kitchen_anomalies: List[KitchenAnomaly] = field(default_factory=list)
    asset_disposals: List[AssetDisposal] = field(default_factory=list)
    location_overpurchasing: List[LocationOverpurchase] = field(default_factory=list)
    supplies: Dict[Any, SupplyItem] = field(default_factory=dict)

    def _supply_name(self, item_id: Any) -> str:
        supply = self.supplies.get(item_id)
        return supply.name if supply else str(item_id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "consumptionPredictions": [
                {"supplyId": item_id, "prediction": prediction.to_dict()}
                for item_id, prediction in self.consumption_predictions.items()
            ],
            "optimizationRecommendations": [
                {
                    "supplyId": item_id,
                    "supplyName": self._supply_name(item_id),
                    "category": self.supplies[item_id].category if item_id in self.supplies else "",
                    "recommendation": recommendation.to_dict(),
                }
                for item_id, recommendation in self.optimization_recommendations.items()
            ],
            "budgetPredictions": [forecast.to_dict() for forecast in self.budget_predictions],
            "anomalyDetections": [
                {
                    "supplyId": item_id,
                    "supplyName": self._supply_name(item_id),
                    "anomalyResult": result.to_dict(),
                }
                for item_id, result in self.anomaly_detections.items()
            ],
            "kitchenAnomalies": [a.to_dict() for a in self.kitchen_anomalies],
            "assetDisposals": [d.to_dict() for d in self.asset_disposals],
            "locationOverpurchasing": [loc.to_dict() for loc in self.location_overpurchasing],
        }


class AnalysisEngine:
    """
    Entry point of the analysis layer.

    Usage
    -----
    >>> engine = AnalysisEngine(reference_date="2026-10-18")
    >>> result = engine.run_full_analysis(
    ...     consumption=records, supplies=catalog, rentals=rentals,
    ...     assets=assets, asset_history=history, kitchens=kitchens
    ... )
    >>> payload = result.to_dict()

    Configuration
    -------------
    ``config`` may carry one override dict per section: "aggregation",
    "trend", "anomaly", "optimization", "budget", "rental" and
    "group_detectors" (with "kitchen", "disposal", "location").
    """

    def __init__(self, config: Optional[Dict] = None, reference_date: Any = None):
        """
        Initialize the engine.

        Parameters
        ----------
        config : dict, optional
            Per-section overrides. Uses defaults if not provided.
        reference_date : date-like, optional
            End of the analysis window. Defaults to today.
        """
        self.config = config or {}
        self.reference_date = pd.Timestamp(
            reference_date if reference_date is not None else pd.Timestamp.today()
        ).normalize()

        groups = self.config.get("group_detectors", {})

        self.aggregator = TimeSeriesAggregator(
            reference_date=self.reference_date,
            config=merged_config(AGGREGATION_CONFIG, self.config.get("aggregation")),
        )
        self.trend_config = merged_config(TREND_CONFIG, self.config.get("trend"))
        self.anomaly_config = merged_config(ANOMALY_CONFIG, self.config.get("anomaly"))

        self.estimator = TrendEstimator(self.trend_config)
        self.scorer = AnomalyScorer(self.anomaly_config)
        self.advisor = OptimizationAdvisor(
            merged_config(OPTIMIZATION_CONFIG, self.config.get("optimization")),
            trend_config=self.trend_config,
        )
        self.forecaster = BudgetForecaster(merged_config(BUDGET_CONFIG, self.config.get("budget")))
        self.rental_predictor = RentalCostPredictor(merged_config(RENTAL_CONFIG, self.config.get("rental")))

        self.group_config = {
            name: merged_config(GROUP_DETECTOR_CONFIG[name], groups.get(name))
            for name in ("kitchen", "disposal", "location")
        }

        logger.info(
            f"AnalysisEngine initialized: reference date {self.reference_date.date()}, "
            f"window {self.aggregator.month_labels[0]} to {self.aggregator.month_labels[-1]}"
        )

    # -------------------------------------------------------------------------
    # Item-level analysis
    # -------------------------------------------------------------------------

    def generate_comprehensive_analysis(
        self,
        consumption: Iterable[Any],
        supplies: Optional[Iterable[Any]] = None,
        rentals: Optional[Iterable[Any]] = None
    ) -> AnalysisResult:
        """
        Predictions, recommendations, budget and item anomalies.

        Parameters
        ----------
        consumption : Iterable
            Consumption records (instances or mappings)
        supplies : Iterable, optional
            Supply catalog (instances or mappings)
        rentals : Iterable, optional
            Rental records (instances or mappings)

        Returns
        -------
        AnalysisResult
            With the group detector lists left empty
        """
        catalog = {s.item_id: s for s in _as_records(supplies, SupplyItem, "supply")}

        with LogContext(logger, "Aggregating consumption"):
            series = self.aggregator.aggregate(
                list(consumption or []), key="item_id", supplies=catalog.values()
            )

        with LogContext(logger, "Estimating trends and anomalies"):
            predictions = self.estimator.estimate_all(series)
            scored = self.scorer.score_all(series)

        with LogContext(logger, "Building optimization advice"):
            recommendations = self.advisor.advise_all(series, catalog, predictions, scored)

        with LogContext(logger, "Forecasting budget"):
            lines = [
                BudgetLine(
                    item_id=item_id,
                    category=catalog[item_id].category if item_id in catalog else "",
                    unit_price=_to_float(catalog[item_id].price_per_unit) if item_id in catalog else 0.0,
                    prediction=prediction,
                )
                for item_id, prediction in predictions.items()
            ]
            vehicle_predictions = self._rental_predictions(rentals)
            budget = self.forecaster.forecast(lines, vehicle_predictions)

        return AnalysisResult(
            consumption_predictions=predictions,
            optimization_recommendations=recommendations,
            budget_predictions=budget,
            anomaly_detections={k: r for k, r in scored.items() if r.is_anomaly},
            supplies=catalog,
        )

    def _rental_predictions(self, rentals: Optional[Iterable[Any]]) -> List[BudgetPrediction]:
        """Fleet-level recurring cost prediction; empty when there are no rentals."""
        frame = self.aggregator.rental_frame(list(rentals or []))
        if len(frame) == 0:
            return []

        fleet = self.aggregator.aggregate_spans(frame, key=None).get("all")
        if fleet is None:
            return []

        ref = self.reference_date
        active = (
            frame["start_date"].notna()
            & (frame["start_date"] <= self.aggregator.window_end)
            & (frame["end_date"].isna() | (frame["end_date"] >= ref))
        )
        current = float(frame.loc[active, "monthly_amount"].sum())

        return [self.rental_predictor.predict(fleet, current, reference_date=ref)]

    # -------------------------------------------------------------------------
    # Group analyses
    # -------------------------------------------------------------------------

    def detect_kitchen_consumption_anomalies(
        self,
        consumption: Iterable[Any],
        supplies: Optional[Iterable[Any]] = None,
        kitchens: Optional[Iterable[Any]] = None
    ) -> List[KitchenAnomaly]:
        """Kitchens whose usage of an item is a high outlier among kitchens."""
        detector = KitchenConsumptionDetector(
            config=self.group_config["kitchen"],
            scorer_config=self.anomaly_config,
            aggregator=self.aggregator,
        )
        return detector.detect(
            list(consumption or []),
            _as_records(supplies, SupplyItem, "supply"),
            _as_records(kitchens, Kitchen, "kitchen"),
        )

    def analyze_asset_disposals(
        self,
        asset_history: Iterable[Any],
        assets: Iterable[Any]
    ) -> List[AssetDisposal]:
        """DISPOSED events in the window, classified by asset value."""
        analyzer = AssetDisposalAnalyzer(
            config=self.group_config["disposal"],
            aggregator=self.aggregator,
        )
        return analyzer.analyze(list(asset_history or []), list(assets or []))

    def detect_location_overpurchasing(self, assets: Iterable[Any]) -> List[LocationOverpurchase]:
        """Locations whose recent-purchase share is a high outlier among locations."""
        detector = LocationOverpurchaseDetector(
            config=self.group_config["location"],
            scorer_config=self.anomaly_config,
            reference_date=self.reference_date,
        )
        return detector.detect(list(assets or []))

    # -------------------------------------------------------------------------
    # Full run
    # -------------------------------------------------------------------------

    def run_full_analysis(
        self,
        consumption: Iterable[Any] = None,
        supplies: Optional[Iterable[Any]] = None,
        rentals: Optional[Iterable[Any]] = None,
        assets: Optional[Iterable[Any]] = None,
        asset_history: Optional[Iterable[Any]] = None,
        kitchens: Optional[Iterable[Any]] = None
    ) -> AnalysisResult:
        """
        Run every analysis and combine the outputs.

        Returns
        -------
        AnalysisResult
            Item-level results plus the three group detector lists
        """
        consumption = list(consumption or [])
        supplies = list(supplies or [])
        assets = list(assets or [])

        with LogContext(logger, "Comprehensive analysis"):
            result = self.generate_comprehensive_analysis(consumption, supplies, rentals)

        with LogContext(logger, "Group anomaly detection"):
            result.kitchen_anomalies = self.detect_kitchen_consumption_anomalies(
                consumption, supplies, kitchens
            )
            result.asset_disposals = self.analyze_asset_disposals(asset_history, assets)
            result.location_overpurchasing = self.detect_location_overpurchasing(assets)

        logger.info(
            f"Analysis complete: {len(result.consumption_predictions)} predictions, "
            f"{len(result.optimization_recommendations)} recommendations, "
            f"{len(result.anomaly_detections)} item anomalies, "
            f"{len(result.kitchen_anomalies)} kitchen anomalies, "
            f"{len(result.asset_disposals)} disposals, "
            f"{len(result.location_overpurchasing)} overpurchasing locations"
        )

        return result


def run_analysis_request(
    records: Mapping[str, Any],
    config: Optional[Dict] = None,
    reference_date: Any = None,
    include_insights: bool = False
) -> Dict[str, Any]:
    """
    Request-level wrapper: run the full analysis and return a JSON-ready dict.

    Parameters
    ----------
    records : Mapping
        Keys "consumption", "supplies", "rentals", "assets",
        "assetHistory" (or "asset_history") and "kitchens"; all optional
    config : dict, optional
        Engine configuration overrides
    reference_date : date-like, optional
        End of the analysis window
    include_insights : bool
        Attach the insights digest under "insights"

    Returns
    -------
    Dict[str, Any]
        ``AnalysisResult.to_dict()``, or ``{"error", "details"}`` when the
        run failed unexpectedly
    """
    try:
        engine = AnalysisEngine(config=config, reference_date=reference_date)
        result = engine.run_full_analysis(
            consumption=records.get("consumption"),
            supplies=records.get("supplies"),
            rentals=records.get("rentals"),
            assets=records.get("assets"),
            asset_history=records.get("assetHistory", records.get("asset_history")),
            kitchens=records.get("kitchens"),
        )
        payload = result.to_dict()

        if include_insights:
            payload["insights"] = InsightsGenerator().generate(payload)

        return payload
    except Exception as e:
        logger.exception("Failed to generate analysis")
        return {
            "error": "Failed to generate analysis",
            "details": str(e) or e.__class__.__name__,
        }
