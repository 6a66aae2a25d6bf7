"""
Tests for input records and RecordValidator
============================================
"""

import pandas as pd
import pytest

from resource_ml.models.records import (
    AssetHistoryEvent,
    AssetRecord,
    ConsumptionRecord,
    Kitchen,
    RecordValidationError,
    RentalRecord,
    SupplyItem,
)
from resource_ml.utils.constants import CONSUMPTION_SCHEMA, RENTAL_SCHEMA
from resource_ml.utils.validators import RecordValidator, parse_timestamp


def test_consumption_from_camel_case():
    record = ConsumptionRecord.from_dict({
        "foodSupplyId": 7, "kitchenId": 2, "quantity": 3.5,
        "createdAt": "2026-09-01T08:00:00Z", "unitPrice": 1.25,
    })

    assert record == ConsumptionRecord(
        item_id=7, kitchen_id=2, quantity=3.5, date="2026-09-01T08:00:00Z", unit_price=1.25
    )


def test_missing_identifier_raises():
    with pytest.raises(RecordValidationError):
        ConsumptionRecord.from_dict({"quantity": 1})

    with pytest.raises(RecordValidationError):
        AssetRecord.from_dict({"assetId": "  "})


def test_catalog_defaults():
    supply = SupplyItem.from_dict({"id": 3})
    kitchen = Kitchen.from_dict({"id": "k9", "floorNumber": 2})

    assert supply.name == "Item 3"
    assert supply.price_per_unit == 0
    assert kitchen.name == "Kitchen k9"
    assert kitchen.floor_number == "2"


def test_rental_reads_nested_vehicle():
    rental = RentalRecord.from_dict({
        "vehicle": {"id": "v1", "rentalAmount": 900, "type": "van"},
        "startDate": "2026-01-01",
    })

    assert rental.vehicle_id == "v1"
    assert rental.monthly_amount == 900
    assert rental.vehicle_type == "van"
    assert rental.end_date is None


def test_asset_location_key():
    asset = AssetRecord.from_dict({"id": "a1", "roomNumber": "101", "purchaseAmount": 10})

    assert asset.location_key == ("", "Unknown", "101")


def test_history_action_is_upper_cased():
    event = AssetHistoryEvent.from_dict({"assetId": "a1", "action": "disposed", "details": None})

    assert event.action == "DISPOSED"
    assert event.details == {}


@pytest.mark.parametrize("details, expected", [
    ("disposed by facilities", {}),
    (["moved", "scrapped"], {}),
    ('{"disposedAt": "2026-09-03"}', {"disposedAt": "2026-09-03"}),
    ('["not", "a", "mapping"]', {}),
    ({"disposedAt": "2026-09-03"}, {"disposedAt": "2026-09-03"}),
])
def test_history_details_keep_only_mappings(details, expected):
    event = AssetHistoryEvent.from_dict({"assetId": "a1", "action": "DISPOSED", "details": details})

    assert event.details == expected


def test_to_frame_coerces_bad_values():
    validator = RecordValidator()
    records = [
        ConsumptionRecord(item_id="rice", quantity="abc", date="2026-09-01"),
        ConsumptionRecord(item_id="rice", quantity=-4, date="not a date"),
        {"itemId": "milk", "quantity": "2.5", "date": "2026-09-02", "unitPrice": None},
        {"quantity": 1},
    ]

    frame, result = validator.to_frame(records, ConsumptionRecord, CONSUMPTION_SCHEMA)

    assert list(frame["item_id"]) == ["rice", "rice", "milk"]
    assert list(frame["quantity"]) == [0.0, 0.0, 2.5]
    assert list(frame["unit_price"]) == [0.0, 0.0, 0.0]
    assert pd.isna(frame["date"].iloc[1])
    assert result.info["skipped_rows"] == 1
    assert result.is_valid
    assert len(result.warnings) == 4


def test_to_frame_empty():
    frame, result = RecordValidator().to_frame([], RentalRecord, RENTAL_SCHEMA)

    assert len(frame) == 0
    assert "monthly_amount" in frame.columns
    assert result.info["row_count"] == 0


def test_unsupported_row_type_is_skipped():
    frame, result = RecordValidator().to_frame([42], ConsumptionRecord, CONSUMPTION_SCHEMA)

    assert len(frame) == 0
    assert result.info["skipped_rows"] == 1


@pytest.mark.parametrize("value, expected", [
    ("2026-10-18", pd.Timestamp("2026-10-18")),
    ("2026-10-18T10:00:00+02:00", pd.Timestamp("2026-10-18 08:00:00")),
    (pd.Timestamp("2026-01-05"), pd.Timestamp("2026-01-05")),
])
def test_parse_timestamp(value, expected):
    assert parse_timestamp(value) == expected


@pytest.mark.parametrize("value", [None, "", "   ", "yesterday-ish"])
def test_parse_timestamp_invalid(value):
    assert pd.isna(parse_timestamp(value))


def test_instance_without_identifier_is_skipped():
    records = [
        ConsumptionRecord(item_id=None, quantity=3, date="2026-09-01"),
        ConsumptionRecord(item_id="  ", quantity=3, date="2026-09-01"),
        ConsumptionRecord(item_id="rice", quantity=3, date="2026-09-01"),
    ]

    frame, result = RecordValidator().to_frame(records, ConsumptionRecord, CONSUMPTION_SCHEMA)

    assert list(frame["item_id"]) == ["rice"]
    assert result.info["skipped_rows"] == 2
    assert result.is_valid


def test_no_usable_rows_is_an_error():
    records = [RentalRecord(vehicle_id=None, start_date="2026-01-01"), "garbage"]

    frame, result = RecordValidator().to_frame(records, RentalRecord, RENTAL_SCHEMA)

    assert len(frame) == 0
    assert not result.is_valid
    assert result.errors == ["No usable rental rows"]


def test_price_floor_is_configurable():
    validator = RecordValidator({"quantity_min": 0, "price_min": 1.0})
    records = [ConsumptionRecord(item_id="rice", quantity=-2, date="2026-09-01", unit_price=0.25)]

    frame, _ = validator.to_frame(records, ConsumptionRecord, CONSUMPTION_SCHEMA)

    assert frame["quantity"].iloc[0] == 0.0
    assert frame["unit_price"].iloc[0] == 1.0
