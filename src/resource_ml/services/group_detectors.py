"""
Group Anomaly Detectors
========================
Peer-group consumers of the anomaly scorer: kitchens against kitchens,
locations against locations, plus a value-threshold disposal classifier.

Design Principles:
- Leave-one-out peers: an entity is never part of its own reference
- Above-peer only: using less than the peers is never flagged
- Safe denominators: a location without assets is excluded, never scored
- Every flag carries the location or kitchen detail an operator needs
  to follow up

Detectors:
1. KitchenConsumptionDetector
   - Observed: a kitchen's average monthly consumption of an item
   - Reference: the same item's average in every other kitchen
2. AssetDisposalAnalyzer
   - DISPOSED events in the trailing window
   - high when the purchase amount exceeds a fixed threshold or the 90th
     percentile of catalog purchase amounts
3. LocationOverpurchaseDetector
   - Observed: share of a location's assets bought in the last 30 days
   - Reference: the same share at every other location
"""

import pandas as pd
import numpy as np
from typing import Dict, List, Optional, Any, Iterable
from dataclasses import dataclass, field

from .aggregator import TimeSeriesAggregator
from .anomaly import AnomalyScorer
from ..models.records import AssetHistoryEvent, AssetRecord, Kitchen, SupplyItem
from ..utils.logger import get_logger
from ..utils.validators import RecordValidator, parse_timestamp
from ..utils.constants import (
    ANOMALY_CONFIG,
    GROUP_DETECTOR_CONFIG,
    SEVERITIES,
    DISPOSED_ACTION,
    UNKNOWN_LOCATION,
    ASSET_SCHEMA,
    ASSET_HISTORY_SCHEMA,
    merged_config,
)

logger = get_logger(__name__)


def _severity_rank(severity: str) -> int:
    return SEVERITIES.index(severity) if severity in SEVERITIES else 0


def _location_columns(frame: pd.DataFrame) -> pd.DataFrame:
    """Normalized building/floor/room columns; blanks become "Unknown"."""
    def clean(column: str, blank: str) -> pd.Series:
        values = frame[column].fillna("").astype(str).str.strip()
        return values.where(values != "", blank)

    return pd.DataFrame({
        "building": clean("building", ""),
        "floor_number": clean("floor_number", UNKNOWN_LOCATION),
        "room_number": clean("room_number", UNKNOWN_LOCATION),
    }, index=frame.index)


def _location_label(building: str, floor_number: str, room_number: str) -> str:
    label = f"Floor {floor_number}, Room {room_number}"
    return f"Building {building}, {label}" if building else label


def _peer_scorer(scorer_config: Optional[Dict], min_peers: int) -> AnomalyScorer:
    return AnomalyScorer(merged_config(scorer_config or ANOMALY_CONFIG, {
        "min_reference_points": min_peers,
    }))


# =============================================================================
# KITCHEN CONSUMPTION
# =============================================================================

@dataclass
class KitchenItemDetail:
    """
    One item a kitchen uses noticeably more of than its peers.

    Attributes
    ----------
    item_id : Any
        Supply item
    food_name : str
        Catalog name of the item
    avg_consumption : float
        Peer kitchens' average monthly consumption
    kitchen_consumption : float
        This kitchen's average monthly consumption
    percentage_above_avg : float or None
        Percentage above the peer average; None when peers consume nothing
    unit : str
        Catalog unit
    severity : str
        Item-level severity
    score : float
        Item-level |z|
    """
    item_id: Any
    food_name: str
    avg_consumption: float
    kitchen_consumption: float
    percentage_above_avg: Optional[float]
    unit: str
    severity: str
    score: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "supplyId": self.item_id,
            "foodName": self.food_name,
            "avgConsumption": self.avg_consumption,
            "kitchenConsumption": self.kitchen_consumption,
            "percentageAboveAvg": self.percentage_above_avg,
            "unit": self.unit,
            "severity": self.severity,
            "anomalyScore": self.score,
        }


@dataclass
class KitchenAnomaly:
    """A flagged kitchen and the items behind the flag."""
    kitchen_id: Any
    kitchen_name: str
    floor_number: str
    anomaly_score: float
    severity: str
    details: List[KitchenItemDetail] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "kitchenId": self.kitchen_id,
            "kitchenName": self.kitchen_name,
            "floorNumber": self.floor_number,
            "anomalyScore": self.anomaly_score,
            "severity": self.severity,
            "details": [detail.to_dict() for detail in self.details],
        }


class KitchenConsumptionDetector:
    """
    Flags kitchens whose usage of an item is an outlier among kitchens.

    Usage
    -----
    >>> detector = KitchenConsumptionDetector(reference_date="2026-10-18")
    >>> anomalies = detector.detect(consumption_records, supplies, kitchens)
    >>> [a.kitchen_name for a in anomalies]
    ['Kitchen 3']
    """

    def __init__(
        self,
        config: Optional[Dict] = None,
        scorer_config: Optional[Dict] = None,
        aggregator: Optional[TimeSeriesAggregator] = None,
        reference_date: Any = None
    ):
        self.config = config or GROUP_DETECTOR_CONFIG["kitchen"]
        self.aggregator = aggregator or TimeSeriesAggregator(reference_date=reference_date)
        self.scorer = _peer_scorer(scorer_config, self.config["min_peer_kitchens"])

        logger.info(
            f"KitchenConsumptionDetector initialized: flag at '{self.config['flag_severity']}', "
            f"min {self.config['min_peer_kitchens']} peer kitchens"
        )

    def detect(
        self,
        records: Iterable[Any],
        supplies: Optional[Iterable[SupplyItem]] = None,
        kitchens: Optional[Iterable[Kitchen]] = None
    ) -> List[KitchenAnomaly]:
        """
        Score every (kitchen, item) pair against the other kitchens.

        Parameters
        ----------
        records : Iterable
            Consumption records; rows without a kitchen are ignored
        supplies : Iterable[SupplyItem], optional
            Catalog for item names and units
        kitchens : Iterable[Kitchen], optional
            Catalog for kitchen names and floors

        Returns
        -------
        List[KitchenAnomaly]
            Flagged kitchens, highest score first
        """
        supplies = list(supplies or [])
        catalog = {supply.item_id: supply for supply in supplies}
        kitchen_catalog = {kitchen.kitchen_id: kitchen for kitchen in kitchens or []}

        series = self.aggregator.aggregate(records, key=["kitchen_id", "item_id"], supplies=supplies)

        # item -> kitchen -> average monthly consumption
        usage: Dict[Any, Dict[Any, float]] = {}
        for (kitchen_id, item_id), monthly in series.items():
            usage.setdefault(item_id, {})[kitchen_id] = monthly.mean

        flagged: Dict[Any, List[KitchenItemDetail]] = {}
        for item_id, by_kitchen in usage.items():
            for kitchen_id, observed in by_kitchen.items():
                peers = [value for other, value in by_kitchen.items() if other != kitchen_id]
                result = self.scorer.score(observed, peers, recent=[])

                if not result.is_anomaly or result.z_score <= 0:
                    continue

                supply = catalog.get(item_id)
                peer_avg = result.expected
                flagged.setdefault(kitchen_id, []).append(KitchenItemDetail(
                    item_id=item_id,
                    food_name=supply.name if supply else str(item_id),
                    avg_consumption=peer_avg,
                    kitchen_consumption=observed,
                    percentage_above_avg=(
                        (observed - peer_avg) / peer_avg * 100 if peer_avg > 0 else None
                    ),
                    unit=supply.unit if supply else "",
                    severity=result.severity,
                    score=result.score,
                ))

        flag_rank = _severity_rank(self.config["flag_severity"])
        anomalies = []
        for kitchen_id, details in flagged.items():
            worst = max(details, key=lambda d: (_severity_rank(d.severity), d.score))
            if _severity_rank(worst.severity) < flag_rank:
                continue

            kitchen = kitchen_catalog.get(kitchen_id)
            anomalies.append(KitchenAnomaly(
                kitchen_id=kitchen_id,
                kitchen_name=kitchen.name if kitchen and kitchen.name else f"Kitchen {kitchen_id}",
                floor_number=str(kitchen.floor_number) if kitchen and kitchen.floor_number else UNKNOWN_LOCATION,
                anomaly_score=worst.score,
                severity=worst.severity,
                details=sorted(details, key=lambda d: d.score, reverse=True),
            ))

        anomalies.sort(key=lambda a: a.anomaly_score, reverse=True)
        logger.info(
            f"Kitchen analysis complete: {len(anomalies)} of "
            f"{len({k for k, _ in series})} kitchens flagged"
        )

        return anomalies


# =============================================================================
# ASSET DISPOSALS
# =============================================================================

@dataclass
class AssetDisposal:
    """A disposal in the trailing window with its value classification."""
    asset_id: Any
    asset_name: str
    disposed_at: pd.Timestamp
    building: str
    floor_number: str
    room_number: str
    purchase_amount: float
    severity: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "assetId": self.asset_id,
            "assetName": self.asset_name,
            "disposedAt": self.disposed_at.isoformat() if pd.notna(self.disposed_at) else None,
            "building": self.building,
            "floorNumber": self.floor_number,
            "roomNumber": self.room_number,
            "purchaseAmount": self.purchase_amount,
            "severity": self.severity,
        }


class AssetDisposalAnalyzer:
    """
    Classifies disposals by the value of the disposed asset.

    Usage
    -----
    >>> analyzer = AssetDisposalAnalyzer(reference_date="2026-10-18")
    >>> disposals = analyzer.analyze(history_events, assets)
    >>> [d.severity for d in disposals]
    ['high', 'low']
    """

    def __init__(
        self,
        config: Optional[Dict] = None,
        aggregator: Optional[TimeSeriesAggregator] = None,
        reference_date: Any = None
    ):
        self.config = config or GROUP_DETECTOR_CONFIG["disposal"]
        self.aggregator = aggregator or TimeSeriesAggregator(reference_date=reference_date)
        self.validator = RecordValidator()

        logger.info(
            f"AssetDisposalAnalyzer initialized: threshold "
            f"{self.config.get('high_value_threshold') or str(self.config['high_value_percentile']) + 'th pct'}"
        )

    def value_threshold(self, amounts: pd.Series) -> Optional[float]:
        """Fixed threshold when configured, else the catalog percentile."""
        fixed = self.config.get("high_value_threshold")
        if fixed is not None:
            return float(fixed)

        amounts = amounts[amounts > 0]
        if len(amounts) == 0:
            return None

        return float(np.percentile(amounts, self.config["high_value_percentile"]))

    def analyze(
        self,
        history: Iterable[Any],
        assets: Iterable[Any]
    ) -> List[AssetDisposal]:
        """
        Collect DISPOSED events in the window and classify them.

        Parameters
        ----------
        history : Iterable
            ``AssetHistoryEvent`` instances or mappings
        assets : Iterable
            ``AssetRecord`` instances or mappings (the catalog)

        Returns
        -------
        List[AssetDisposal]
            Disposals in event order
        """
        asset_frame, _ = self.validator.to_frame(assets, AssetRecord, ASSET_SCHEMA)
        events, _ = self.validator.to_frame(history, AssetHistoryEvent, ASSET_HISTORY_SCHEMA)

        if len(events) == 0:
            logger.info("Disposal analysis complete: no history events")
            return []

        threshold = self.value_threshold(asset_frame["purchase_amount"])

        lookup = {}
        if len(asset_frame) > 0:
            asset_frame = asset_frame.join(_location_columns(asset_frame), rsuffix="_clean")
            lookup = {row["asset_id"]: row for row in asset_frame.to_dict("records")}

        disposed = events[events["action"].astype(str).str.upper() == DISPOSED_ACTION]

        disposals = []
        for event in disposed.itertuples(index=False):
            details = event.details if isinstance(event.details, dict) else {}
            disposed_at = parse_timestamp(details.get("disposedAt"))
            if pd.isna(disposed_at):
                disposed_at = event.timestamp

            if pd.isna(disposed_at) or not (
                self.aggregator.window_start <= disposed_at <= self.aggregator.window_end
            ):
                continue

            asset = lookup.get(event.asset_id)
            amount = float(asset["purchase_amount"]) if asset else 0.0
            high = threshold is not None and amount > threshold

            disposals.append(AssetDisposal(
                asset_id=event.asset_id,
                asset_name=asset["name"] if asset else f"Asset {event.asset_id}",
                disposed_at=disposed_at,
                building=asset["building_clean"] if asset else "",
                floor_number=asset["floor_number_clean"] if asset else UNKNOWN_LOCATION,
                room_number=asset["room_number_clean"] if asset else UNKNOWN_LOCATION,
                purchase_amount=amount,
                severity="high" if high else "low",
            ))

        high_count = sum(1 for d in disposals if d.severity == "high")
        logger.info(
            f"Disposal analysis complete: {len(disposals)} disposals in window, "
            f"{high_count} high value"
        )

        return disposals


# =============================================================================
# LOCATION OVERPURCHASING
# =============================================================================

@dataclass
class LocationOverpurchase:
    """A location buying noticeably faster than its peers."""
    location: str
    building: str
    floor_number: str
    room_number: str
    total_assets: int
    total_value: float
    recent_purchases: int
    recent_purchase_pct: float
    anomaly_score: float
    severity: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "location": self.location,
            "building": self.building,
            "floorNumber": self.floor_number,
            "roomNumber": self.room_number,
            "totalAssets": self.total_assets,
            "totalValue": self.total_value,
            "recentPurchases": self.recent_purchases,
            "recentPurchasePct": self.recent_purchase_pct,
            "anomalyScore": self.anomaly_score,
            "severity": self.severity,
        }


class LocationOverpurchaseDetector:
    """
    Flags locations whose recent-purchase share is a high outlier.

    Usage
    -----
    >>> detector = LocationOverpurchaseDetector(reference_date="2026-10-18")
    >>> flagged = detector.detect(assets)
    >>> [(f.location, f.severity) for f in flagged]
    [('Floor 2, Room B', 'high')]
    """

    def __init__(
        self,
        config: Optional[Dict] = None,
        scorer_config: Optional[Dict] = None,
        reference_date: Any = None
    ):
        self.config = config or GROUP_DETECTOR_CONFIG["location"]
        self.reference_date = pd.Timestamp(
            reference_date if reference_date is not None else pd.Timestamp.today()
        ).normalize()
        self.scorer = _peer_scorer(scorer_config, self.config["min_peer_locations"])
        self.validator = RecordValidator()

        logger.info(
            f"LocationOverpurchaseDetector initialized: recent = last "
            f"{self.config['recent_days']} days"
        )

    def location_stats(self, assets: Iterable[Any]) -> pd.DataFrame:
        """
        Per-location asset counts, value and recent-purchase share.

        Locations with no assets are dropped.
        """
        frame, _ = self.validator.to_frame(assets, AssetRecord, ASSET_SCHEMA)
        columns = ["building", "floor_number", "room_number",
                   "total_assets", "total_value", "recent_purchases", "recent_purchase_pct"]
        if len(frame) == 0:
            return pd.DataFrame(columns=columns)

        work = _location_columns(frame)
        recent_start = self.reference_date - pd.Timedelta(days=self.config["recent_days"])
        recent_end = self.reference_date + pd.Timedelta(days=1)
        dates = frame["purchase_date"]
        work["recent"] = (dates.notna() & (dates >= recent_start) & (dates < recent_end)).astype(int)
        work["purchase_amount"] = frame["purchase_amount"]

        stats = work.groupby(["building", "floor_number", "room_number"], sort=True).agg(
            total_assets=("recent", "size"),
            total_value=("purchase_amount", "sum"),
            recent_purchases=("recent", "sum"),
        ).reset_index()

        stats = stats[stats["total_assets"] > 0].copy()
        stats["recent_purchase_pct"] = stats["recent_purchases"] / stats["total_assets"]

        return stats[columns].reset_index(drop=True)

    def detect(self, assets: Iterable[Any]) -> List[LocationOverpurchase]:
        """
        Score each location's recent-purchase share against the others.

        Returns
        -------
        List[LocationOverpurchase]
            Above-peer medium/high outliers with at least one recent
            purchase, highest score first
        """
        stats = self.location_stats(assets)
        shares = stats["recent_purchase_pct"].astype(float).tolist()
        report = set(self.config["report_severities"])

        flagged = []
        for i, row in enumerate(stats.itertuples(index=False)):
            if row.recent_purchases <= 0:
                continue

            peers = shares[:i] + shares[i + 1:]
            result = self.scorer.score(row.recent_purchase_pct, peers, recent=[])

            if result.z_score <= 0 or result.severity not in report:
                continue

            flagged.append(LocationOverpurchase(
                location=_location_label(row.building, row.floor_number, row.room_number),
                building=row.building,
                floor_number=row.floor_number,
                room_number=row.room_number,
                total_assets=int(row.total_assets),
                total_value=float(row.total_value),
                recent_purchases=int(row.recent_purchases),
                recent_purchase_pct=float(row.recent_purchase_pct),
                anomaly_score=result.score,
                severity=result.severity,
            ))

        flagged.sort(key=lambda f: f.anomaly_score, reverse=True)
        logger.info(
            f"Location analysis complete: {len(flagged)} of {len(stats)} locations flagged"
        )

        return flagged
