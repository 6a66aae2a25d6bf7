"""
Time Series Aggregation Service
================================
Buckets raw transactional records into per-entity monthly series over a
fixed trailing window.

Design Principles:
- Contiguous months: every series has exactly ``window_months`` entries
- Gaps are zero-filled, never omitted (omission would bias trend slopes)
- Malformed quantities count as zero instead of being dropped
- Only complete months are bucketed by default; a half-elapsed reference
  month would read as a sudden drop
- Pure function of its inputs: the reference date is passed in, not cached

Two bucketing modes:
1. Point events (consumption, purchases): summed into the month they fall in
2. Spans (rentals): the monthly amount is added to every month the
   ``[start, end]`` range overlaps; an open end runs to the reference date
"""

import pandas as pd
import numpy as np
from typing import Dict, List, Optional, Any, Iterable, Sequence, Union
from dataclasses import dataclass, field

from ..models.records import ConsumptionRecord, RentalRecord, SupplyItem
from ..utils.logger import get_logger, log_series_summary
from ..utils.constants import AGGREGATION_CONFIG, CONSUMPTION_SCHEMA, RENTAL_SCHEMA
from ..utils.validators import RecordValidator, ValidationResult

logger = get_logger(__name__)

KeySpec = Union[str, Sequence[str]]


def _native(value: Any) -> Any:
    """Unwrap numpy scalars so keys stay JSON friendly."""
    return value.item() if isinstance(value, np.generic) else value


@dataclass
class MonthlySeries:
    """
    Contiguous monthly totals for one entity.

    Attributes
    ----------
    entity_id : Any
        Grouping key value (item id, kitchen id, or a tuple for composite keys)
    months : List[str]
        Chronologically ordered month labels (``YYYY-MM``)
    values : List[float]
        Total quantity or value per month, zero where nothing happened
    """
    entity_id: Any
    months: List[str] = field(default_factory=list)
    values: List[float] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.values)

    @property
    def values_array(self) -> np.ndarray:
        return np.asarray(self.values, dtype=float)

    @property
    def nonzero_months(self) -> int:
        return int(np.count_nonzero(self.values_array > 0))

    @property
    def total(self) -> float:
        return float(self.values_array.sum()) if len(self) else 0.0

    @property
    def mean(self) -> float:
        return float(self.values_array.mean()) if len(self) else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "entityId": self.entity_id,
            "months": [
                {"month": month, "value": float(value)}
                for month, value in zip(self.months, self.values)
            ],
        }


class TimeSeriesAggregator:
    """
    Build per-entity monthly series from flat record lists.

    Usage
    -----
    >>> aggregator = TimeSeriesAggregator(reference_date="2026-10-18")
    >>> series = aggregator.aggregate(consumption_records, key="item_id")
    >>> series["flour"].values
    [12.0, 0.0, 9.5, ...]
    """

    def __init__(
        self,
        window_months: int = None,
        reference_date: Any = None,
        config: Optional[Dict] = None
    ):
        """
        Initialize the aggregator.

        Parameters
        ----------
        window_months : int, optional
            Length of the trailing window. Default from config (12).
        reference_date : date-like, optional
            Last day of the event window. Defaults to today. Series end
            at the month before it unless ``include_current_month`` is set.
        config : dict, optional
            Custom configuration. Uses defaults if not provided.
        """
        self.config = config or AGGREGATION_CONFIG
        self.window_months = int(window_months or self.config["window_months"])

        if self.window_months < 1:
            raise ValueError("window_months must be at least 1")

        if reference_date is None:
            reference_date = pd.Timestamp.today()
        self.reference_date = pd.Timestamp(reference_date).normalize()

        self.validator = RecordValidator()

        reference_month = self.reference_date.to_period('M')
        last_month = reference_month
        if not self.config.get("include_current_month", False):
            last_month = reference_month - 1

        self.periods = pd.period_range(end=last_month, periods=self.window_months, freq='M')

        # Event window (disposals, open rentals): trailing months through the reference day.
        # Anything after the reference day has not happened yet
        self.window_start = (reference_month - (self.window_months - 1)).start_time
        self.window_end = self.reference_date + pd.Timedelta(days=1) - pd.Timedelta(microseconds=1)

        # Bucketed series stop at the last month they cover
        self.series_start = self.periods[0].start_time
        self.series_end = min(self.periods[-1].end_time, self.window_end)

    @property
    def month_labels(self) -> List[str]:
        fmt = self.config.get("month_format", "%Y-%m")
        return [period.strftime(fmt) for period in self.periods]

    def consumption_frame(
        self,
        records: Iterable[Any],
        supplies: Optional[Iterable[SupplyItem]] = None
    ) -> pd.DataFrame:
        """
        Validate consumption records and attach an effective unit price.

        The record's own unit price wins; a missing or zero price falls back
        to the catalog's ``price_per_unit``.

        Returns
        -------
        pd.DataFrame
            Columns of ``ConsumptionRecord`` plus ``price`` and ``amount``
        """
        frame, result = self.validator.to_frame(records, ConsumptionRecord, CONSUMPTION_SCHEMA)
        self._log_validation(result)

        catalog = {}
        for supply in supplies or []:
            try:
                catalog[supply.item_id] = float(supply.price_per_unit or 0)
            except (TypeError, ValueError):
                catalog[supply.item_id] = 0.0

        if len(frame) == 0:
            frame["price"] = pd.Series(dtype=float)
            frame["amount"] = pd.Series(dtype=float)
            return frame

        fallback = frame["item_id"].map(catalog).fillna(0.0).astype(float)
        frame["price"] = frame["unit_price"].where(frame["unit_price"] > 0, fallback)
        frame["amount"] = frame["quantity"] * frame["price"]

        return frame

    def rental_frame(self, records: Iterable[Any]) -> pd.DataFrame:
        """Validate rental records into a frame."""
        frame, result = self.validator.to_frame(records, RentalRecord, RENTAL_SCHEMA)
        self._log_validation(result)
        return frame

    def aggregate(
        self,
        records: Iterable[Any],
        key: KeySpec = "item_id",
        value_column: str = "quantity",
        supplies: Optional[Iterable[SupplyItem]] = None
    ) -> Dict[Any, MonthlySeries]:
        """
        Aggregate consumption records into monthly series.

        Parameters
        ----------
        records : Iterable
            ``ConsumptionRecord`` instances or mappings
        key : str or list of str
            Grouping column(s): "item_id", "kitchen_id" or both
        value_column : str
            "quantity" for usage, "amount" for spend (quantity x price)
        supplies : Iterable[SupplyItem], optional
            Catalog used for the price fallback

        Returns
        -------
        Dict[Any, MonthlySeries]
            One series per key present in the input
        """
        frame = self.consumption_frame(records, supplies)
        return self.aggregate_frame(frame, key, value_column=value_column, date_column="date")

    def aggregate_frame(
        self,
        frame: pd.DataFrame,
        key: KeySpec,
        value_column: str,
        date_column: str
    ) -> Dict[Any, MonthlySeries]:
        """
        Bucket an already-validated frame of point events into months.

        Every distinct key in ``frame`` gets a full-length series, even when
        all of its rows fall outside the window or carry invalid dates.
        """
        key_cols = [key] if isinstance(key, str) else list(key)
        label = "/".join(key_cols)

        if len(frame) == 0:
            log_series_summary(logger, label, 0, self.month_labels)
            return {}

        work = frame.dropna(subset=key_cols)
        if len(work) < len(frame):
            logger.warning(
                f"Ignored {len(frame) - len(work)} rows without a '{label}' value"
            )

        all_keys = [
            tuple(_native(v) for v in row)
            for row in work[key_cols].drop_duplicates().itertuples(index=False, name=None)
        ]

        dates = work[date_column]
        in_window = dates.notna() & (dates >= self.series_start) & (dates <= self.series_end)
        windowed = work.loc[in_window, key_cols + [value_column]].copy()
        windowed["_month"] = work.loc[in_window, date_column].dt.to_period('M')

        lookup = {}
        if len(windowed) > 0:
            totals = windowed.groupby(key_cols + ["_month"], sort=False)[value_column].sum()
            lookup = totals.to_dict()

        series = {}
        for key_values in all_keys:
            values = [float(lookup.get(key_values + (period,), 0.0)) for period in self.periods]
            entity_id = key_values[0] if len(key_values) == 1 else key_values
            series[entity_id] = MonthlySeries(
                entity_id=entity_id,
                months=self.month_labels,
                values=values,
            )

        log_series_summary(logger, label, len(series), self.month_labels)
        return series

    def aggregate_spans(
        self,
        frame: pd.DataFrame,
        key: Optional[str],
        value_column: str = "monthly_amount",
        start_column: str = "start_date",
        end_column: str = "end_date"
    ) -> Dict[Any, MonthlySeries]:
        """
        Spread recurring amounts across every window month a span overlaps.

        Parameters
        ----------
        frame : pd.DataFrame
            Validated frame (see ``rental_frame``)
        key : str or None
            Grouping column; None puts every span into a single series
            keyed by "all"
        value_column : str
            Recurring monthly amount
        start_column, end_column : str
            Span bounds; rows without a start are ignored, a missing end
            means the span is still open

        Returns
        -------
        Dict[Any, MonthlySeries]
            One series per key
        """
        if len(frame) == 0:
            return {}

        work = frame[frame[start_column].notna()].copy()
        skipped = len(frame) - len(work)
        if skipped:
            logger.warning(f"Ignored {skipped} spans without a valid start date")

        # Spans booked to start after the reference day contribute nothing yet
        work = work[work[start_column] <= self.window_end].copy()

        if key is None:
            work["_key"] = "all"
        else:
            work["_key"] = work[key].fillna("").astype(str)

        keys = list(dict.fromkeys(frame[key].fillna("").astype(str))) if key else ["all"]
        ends = work[end_column].fillna(self.reference_date)

        series = {k: np.zeros(len(self.periods)) for k in keys}
        for i, period in enumerate(self.periods):
            period_end = min(period.end_time, self.window_end)
            active = (work[start_column] <= period_end) & (ends >= period.start_time)
            if not active.any():
                continue
            monthly = work.loc[active].groupby("_key")[value_column].sum()
            for k, amount in monthly.items():
                series[k][i] += float(amount)

        result = {
            k: MonthlySeries(entity_id=k, months=self.month_labels, values=[float(v) for v in vals])
            for k, vals in series.items()
        }

        log_series_summary(logger, key or "span", len(result), self.month_labels)
        return result

    def _log_validation(self, result: ValidationResult) -> None:
        for warning in result.warnings:
            logger.warning(f"[{result.info.get('schema')}] {warning}")
        for error in result.errors:
            logger.error(f"[{result.info.get('schema')}] {error}")
