"""
Models Package
===============
Data models for the analysis layer.

Modules:
- records: Typed input records built from service rows
- explanation: Insights digest built from an analysis payload
"""

from .records import (
    RecordValidationError,
    ConsumptionRecord,
    SupplyItem,
    Kitchen,
    RentalRecord,
    AssetRecord,
    AssetHistoryEvent,
)
from .explanation import InsightsGenerator, get_reason_description

__all__ = [
    'RecordValidationError',
    'ConsumptionRecord',
    'SupplyItem',
    'Kitchen',
    'RentalRecord',
    'AssetRecord',
    'AssetHistoryEvent',
    'InsightsGenerator',
    'get_reason_description',
]
