"""
Resource ML - Consumption Forecasting & Anomaly Detection
==========================================================

Analysis layer of the resource-tracking application. Turns historical
consumption, rental and asset records into predictions, optimization
advice, budget forecasts and anomaly flags.

Modules:
- models: Input records and the insights digest
- services: Aggregation, trend, anomaly, optimization, budget and group
  detectors, plus the orchestrating engine
- utils: Logging, constants and record validation

Usage:
    from resource_ml import AnalysisEngine

    engine = AnalysisEngine(reference_date="2026-10-18")
    result = engine.run_full_analysis(consumption=records, supplies=catalog)
    payload = result.to_dict()
"""

__version__ = "1.0.0"

from .services.analysis import AnalysisEngine, AnalysisResult, run_analysis_request
from .models.explanation import InsightsGenerator, get_reason_description
from .models.records import (
    RecordValidationError,
    ConsumptionRecord,
    SupplyItem,
    Kitchen,
    RentalRecord,
    AssetRecord,
    AssetHistoryEvent,
)

__all__ = [
    'AnalysisEngine',
    'AnalysisResult',
    'run_analysis_request',
    'InsightsGenerator',
    'get_reason_description',
    'RecordValidationError',
    'ConsumptionRecord',
    'SupplyItem',
    'Kitchen',
    'RentalRecord',
    'AssetRecord',
    'AssetHistoryEvent',
]
