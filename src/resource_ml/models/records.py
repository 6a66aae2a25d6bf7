"""
Input Records
=============
Typed, read-only records handed to the engine by the surrounding service.

Each record can be built from the camelCase rows the service fetches
(``itemId``, ``pricePerUnit``, ...) or from snake_case mappings. Identifiers
are required; numeric and date fields are kept as given and coerced later
at the aggregation boundary (see ``utils.validators``).
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional


class RecordValidationError(ValueError):
    """Raised when a record is missing a required identifier."""


def _pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _require(data: Mapping[str, Any], record_type: str, *keys: str) -> Any:
    value = _pick(data, *keys)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise RecordValidationError(f"{record_type} is missing required field '{keys[0]}'")
    return value


def _details(value: Any) -> Dict[str, Any]:
    """Keep structured history details; free text and lists carry none."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return {}
    return dict(value) if isinstance(value, Mapping) else {}


@dataclass(frozen=True)
class ConsumptionRecord:
    """
    One consumption or waste event.

    Attributes
    ----------
    item_id : Any
        Supply item consumed
    kitchen_id : Any
        Kitchen that consumed it (may be None for central stock)
    quantity : Any
        Quantity consumed, expected >= 0
    date : Any
        When it was consumed (datetime, date or ISO string)
    unit_price : Any
        Price per unit at consumption time; None falls back to the catalog
    """
    item_id: Any
    kitchen_id: Any = None
    quantity: Any = 0
    date: Any = None
    unit_price: Any = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ConsumptionRecord':
        return cls(
            item_id=_require(data, "ConsumptionRecord", "item_id", "itemId", "foodSupplyId"),
            kitchen_id=_pick(data, "kitchen_id", "kitchenId"),
            quantity=_pick(data, "quantity", default=0),
            date=_pick(data, "date", "createdAt"),
            unit_price=_pick(data, "unit_price", "unitPrice"),
        )


@dataclass(frozen=True)
class SupplyItem:
    """Static catalog entry joined to consumption records by ``item_id``."""
    item_id: Any
    name: str = ""
    category: str = ""
    unit: str = ""
    price_per_unit: Any = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'SupplyItem':
        item_id = _require(data, "SupplyItem", "item_id", "itemId", "id")
        return cls(
            item_id=item_id,
            name=_pick(data, "name", default=f"Item {item_id}"),
            category=_pick(data, "category", default=""),
            unit=_pick(data, "unit", default=""),
            price_per_unit=_pick(data, "price_per_unit", "pricePerUnit", default=0),
        )


@dataclass(frozen=True)
class Kitchen:
    """Kitchen catalog entry used to label kitchen anomalies."""
    kitchen_id: Any
    name: str = ""
    floor_number: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Kitchen':
        kitchen_id = _require(data, "Kitchen", "kitchen_id", "kitchenId", "id")
        return cls(
            kitchen_id=kitchen_id,
            name=_pick(data, "name", default=f"Kitchen {kitchen_id}"),
            floor_number=str(_pick(data, "floor_number", "floorNumber", default="")),
        )


@dataclass(frozen=True)
class RentalRecord:
    """A vehicle rental contract; ``end_date`` None means still active."""
    vehicle_id: Any
    start_date: Any = None
    end_date: Any = None
    monthly_amount: Any = 0
    vehicle_type: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'RentalRecord':
        vehicle = data.get("vehicle") or {}
        return cls(
            vehicle_id=_require(
                {**vehicle, **data}, "RentalRecord", "vehicle_id", "vehicleId", "id"
            ),
            start_date=_pick(data, "start_date", "startDate"),
            end_date=_pick(data, "end_date", "endDate"),
            monthly_amount=_pick(
                data, "monthly_amount", "monthlyAmount",
                default=_pick(vehicle, "rentalAmount", default=0)
            ),
            vehicle_type=_pick(data, "vehicle_type", "vehicleType",
                               default=_pick(vehicle, "type", default="")),
        )


@dataclass(frozen=True)
class AssetRecord:
    """An asset with its location key and purchase details."""
    asset_id: Any
    name: str = ""
    building: str = ""
    floor_number: str = ""
    room_number: str = ""
    purchase_amount: Any = 0
    purchase_date: Any = None
    status: str = ""

    @property
    def location_key(self) -> tuple:
        return (
            str(self.building or ""),
            str(self.floor_number or "Unknown"),
            str(self.room_number or "Unknown"),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'AssetRecord':
        asset_id = _require(data, "AssetRecord", "asset_id", "assetId", "id")
        return cls(
            asset_id=asset_id,
            name=_pick(data, "name", default=f"Asset {asset_id}"),
            building=str(_pick(data, "building", default="")),
            floor_number=str(_pick(data, "floor_number", "floorNumber", default="")),
            room_number=str(_pick(data, "room_number", "roomNumber", default="")),
            purchase_amount=_pick(data, "purchase_amount", "purchaseAmount", default=0),
            purchase_date=_pick(data, "purchase_date", "purchaseDate", "createdAt"),
            status=_pick(data, "status", default=""),
        )


@dataclass(frozen=True)
class AssetHistoryEvent:
    """An entry of an asset's history; only DISPOSED events are analyzed."""
    asset_id: Any
    action: str = ""
    timestamp: Any = None
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'AssetHistoryEvent':
        return cls(
            asset_id=_require(data, "AssetHistoryEvent", "asset_id", "assetId"),
            action=str(_pick(data, "action", default="")).upper(),
            timestamp=_pick(data, "timestamp", "createdAt"),
            details=_details(_pick(data, "details")),
        )
