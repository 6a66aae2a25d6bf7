"""
Shared fixtures: a fixed reference date and small record sets.
"""

import pandas as pd
import pytest

from resource_ml.models.records import ConsumptionRecord, SupplyItem, Kitchen
from resource_ml.services.aggregator import MonthlySeries

REFERENCE_DATE = "2026-10-18"

# Complete window months for the reference date, oldest first (2025-10 .. 2026-09)
WINDOW = [p.strftime("%Y-%m") for p in pd.period_range(end="2026-09", periods=12, freq="M")]


def monthly_records(item_id, values, kitchen_id=None, unit_price=None):
    """One consumption record on the 15th of each window month."""
    return [
        ConsumptionRecord(
            item_id=item_id,
            kitchen_id=kitchen_id,
            quantity=value,
            date=f"{month}-15",
            unit_price=unit_price,
        )
        for month, value in zip(WINDOW[-len(values):], values)
    ]


@pytest.fixture
def reference_date():
    return REFERENCE_DATE


@pytest.fixture
def make_series():
    """Build a MonthlySeries ending at the last complete month."""
    def _make(values, entity_id="item"):
        months = [p.strftime("%Y-%m") for p in pd.period_range(end="2026-09", periods=len(values), freq="M")]
        return MonthlySeries(entity_id=entity_id, months=months, values=[float(v) for v in values])
    return _make


@pytest.fixture
def spike_values():
    return [10.0] * 11 + [50.0]


@pytest.fixture
def supplies():
    return [
        SupplyItem(item_id="rice", name="Rice", category="grains", unit="kg", price_per_unit=2.0),
        SupplyItem(item_id="milk", name="Milk", category="dairy", unit="l", price_per_unit=1.5),
        SupplyItem(item_id="salt", name="Salt", category="", unit="kg", price_per_unit=0.5),
    ]


@pytest.fixture
def kitchens():
    return [
        Kitchen(kitchen_id="k1", name="Main Kitchen", floor_number="1"),
        Kitchen(kitchen_id="k2", name="Staff Kitchen", floor_number="2"),
        Kitchen(kitchen_id="k3", name="Cafe", floor_number="3"),
        Kitchen(kitchen_id="k4", name="Banquet Kitchen", floor_number="4"),
    ]


@pytest.fixture
def kitchen_consumption():
    """Rice: k4 uses five times what k1-k3 use. Milk: only k1 and k2."""
    records = []
    for kitchen_id in ("k1", "k2", "k3"):
        records += monthly_records("rice", [10.0] * 12, kitchen_id=kitchen_id)
    records += monthly_records("rice", [50.0] * 12, kitchen_id="k4")
    records += monthly_records("milk", [5.0] * 12, kitchen_id="k1")
    records += monthly_records("milk", [40.0] * 12, kitchen_id="k2")
    return records


@pytest.fixture
def make_records():
    return monthly_records
