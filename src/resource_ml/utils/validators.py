"""
Record Validation Utilities
============================
Coercion of in-memory records into typed DataFrames at the aggregation
boundary.

Design Principles:
- Never silently fail - always log issues
- Return structured validation results
- A single bad row never blanks out a forecast: malformed numbers become
  zero, malformed dates become NaT, rows without an identifier or with an
  unreadable shape are skipped
"""

import dataclasses
import pandas as pd
import numpy as np
from typing import Dict, List, Any, Iterable, Mapping, Optional, Tuple, Type
from dataclasses import dataclass, field

from .logger import get_logger
from .constants import DATA_QUALITY_THRESHOLDS
from ..models.records import RecordValidationError

logger = get_logger(__name__)


def parse_timestamp(value: Any) -> pd.Timestamp:
    """
    Parse one date-like value to a naive Timestamp (UTC wall time).

    Returns NaT for None, empty strings and anything unparseable.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return pd.NaT

    try:
        parsed = pd.to_datetime(value, errors='coerce', utc=True)
    except (TypeError, ValueError):
        return pd.NaT

    if pd.isna(parsed):
        return pd.NaT

    return parsed.tz_convert(None)


@dataclass
class ValidationResult:
    """
    Structured result of a validation operation.

    Attributes
    ----------
    is_valid : bool
        Overall validation status
    errors : List[str]
        Critical issues that prevent processing
    warnings : List[str]
        Non-critical issues to be aware of
    info : Dict[str, Any]
        Additional validation metadata
    """
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    info: Dict[str, Any] = field(default_factory=dict)

    def add_error(self, message: str) -> None:
        """Add an error and mark as invalid."""
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        """Add a warning (doesn't affect validity)."""
        self.warnings.append(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "is_valid": self.is_valid,
            "errors": self.errors,
            "warnings": self.warnings,
            "info": self.info
        }


class RecordValidator:
    """
    Converts record collections into DataFrames that match a schema.

    Usage
    -----
    validator = RecordValidator()
    frame, result = validator.to_frame(records, ConsumptionRecord, CONSUMPTION_SCHEMA)

    if result.warnings:
        print(f"Coerced rows: {result.warnings}")
    """

    def __init__(self, thresholds: Optional[Dict] = None):
        """
        Initialize validator with optional custom thresholds.

        Parameters
        ----------
        thresholds : dict, optional
            Custom thresholds for validation. Uses defaults if not provided.
        """
        self.thresholds = thresholds or DATA_QUALITY_THRESHOLDS

    def to_frame(
        self,
        records: Iterable[Any],
        record_type: Type,
        schema: Dict[str, Any]
    ) -> Tuple[pd.DataFrame, ValidationResult]:
        """
        Build a DataFrame from records, coercing malformed fields.

        Parameters
        ----------
        records : Iterable
            Record dataclass instances or mappings accepted by
            ``record_type.from_dict``
        record_type : type
            Record dataclass the rows are expected to match
        schema : dict
            Schema with id/numeric/date column lists

        Returns
        -------
        Tuple[pd.DataFrame, ValidationResult]
            Coerced frame (one row per usable record) and what was fixed
        """
        result = ValidationResult()
        result.info["schema"] = schema.get("name", record_type.__name__)

        rows = []
        skipped = 0
        id_columns = schema.get("id_columns", [])
        for record in records or []:
            try:
                rows.append(self._as_row(record, record_type, id_columns))
            except (TypeError, ValueError) as e:
                skipped += 1
                result.add_warning(str(e))

        columns = [f.name for f in dataclasses.fields(record_type)]
        frame = pd.DataFrame(rows, columns=columns)

        result.info["row_count"] = len(frame)
        result.info["skipped_rows"] = skipped

        if skipped:
            logger.warning(f"Skipped {skipped} unusable {result.info['schema']} rows")
            if not rows:
                result.add_error(f"No usable {result.info['schema']} rows")

        for col in schema.get("numeric_columns", []):
            self._coerce_numeric(frame, col, result)

        for col in schema.get("date_columns", []):
            self._coerce_dates(frame, col, result)

        return frame, result

    def _as_row(self, record: Any, record_type: Type, id_columns: List[str]) -> Dict[str, Any]:
        """Normalize one record to a plain dict of its dataclass fields."""
        if isinstance(record, record_type):
            row = {f.name: getattr(record, f.name) for f in dataclasses.fields(record_type)}
            for col in id_columns:
                value = row.get(col)
                if value is None or (isinstance(value, str) and not value.strip()):
                    raise RecordValidationError(
                        f"{record_type.__name__} is missing required field '{col}'"
                    )
            return row

        if isinstance(record, Mapping):
            built = record_type.from_dict(record)
            return {f.name: getattr(built, f.name) for f in dataclasses.fields(record_type)}

        raise RecordValidationError(
            f"Unsupported {record_type.__name__} row of type {type(record).__name__}"
        )

    def _coerce_numeric(self, frame: pd.DataFrame, col: str, result: ValidationResult) -> None:
        """Replace non-numeric and negative values with zero."""
        if col not in frame.columns or len(frame) == 0:
            return

        raw = frame[col]
        numeric = pd.to_numeric(raw, errors='coerce')

        # None is a legitimate "not provided" for optional prices
        invalid = numeric.isna() & raw.notna()
        if invalid.any():
            result.add_warning(
                f"Column '{col}': {int(invalid.sum())} non-numeric values replaced with 0"
            )

        floor = self.thresholds.get("quantity_min" if col == "quantity" else "price_min", 0)
        negative = numeric < floor
        if negative.any():
            result.add_warning(
                f"Column '{col}': {int(negative.sum())} negative values clamped to {floor}"
            )
            numeric = numeric.where(~negative, floor)

        numeric = numeric.replace([np.inf, -np.inf], np.nan)
        result.info[f"{col}_missing"] = int(numeric.isna().sum())
        frame[col] = numeric.fillna(0).astype(float)

    def _coerce_dates(self, frame: pd.DataFrame, col: str, result: ValidationResult) -> None:
        """Parse dates; unparseable values become NaT."""
        if col not in frame.columns or len(frame) == 0:
            return

        raw = frame[col]
        parsed = pd.Series(
            pd.to_datetime([parse_timestamp(value) for value in raw]),
            index=frame.index
        )

        invalid = parsed.isna() & raw.notna()
        if invalid.any():
            result.add_warning(
                f"Column '{col}': {int(invalid.sum())} unparseable dates excluded"
            )

        frame[col] = parsed
