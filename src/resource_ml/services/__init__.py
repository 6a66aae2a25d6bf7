"""
Services Package
=================
Analysis services of the resource-tracking application.

Modules:
- aggregator: Monthly series from point events and date spans
- trend: Linear trend + seasonality predictions
- anomaly: Z-score anomaly scoring
- optimization: Trimmed-baseline quantity recommendations
- rental: Recurring vehicle rental cost prediction
- budget: Multi-horizon budget forecasts
- group_detectors: Kitchen, disposal and location analyses
- analysis: Orchestration and the request-level wrapper
"""

from .aggregator import TimeSeriesAggregator, MonthlySeries
from .trend import TrendEstimator, ConsumptionPrediction
from .anomaly import AnomalyScorer, AnomalyResult
from .optimization import OptimizationAdvisor, Recommendation
from .rental import RentalCostPredictor
from .budget import BudgetForecaster, BudgetForecast, BudgetLine, BudgetPrediction
from .group_detectors import (
    KitchenConsumptionDetector,
    AssetDisposalAnalyzer,
    LocationOverpurchaseDetector,
)
from .analysis import AnalysisEngine, AnalysisResult, run_analysis_request

__all__ = [
    'TimeSeriesAggregator',
    'MonthlySeries',
    'TrendEstimator',
    'ConsumptionPrediction',
    'AnomalyScorer',
    'AnomalyResult',
    'OptimizationAdvisor',
    'Recommendation',
    'RentalCostPredictor',
    'BudgetForecaster',
    'BudgetForecast',
    'BudgetLine',
    'BudgetPrediction',
    'KitchenConsumptionDetector',
    'AssetDisposalAnalyzer',
    'LocationOverpurchaseDetector',
    'AnalysisEngine',
    'AnalysisResult',
    'run_analysis_request',
]
