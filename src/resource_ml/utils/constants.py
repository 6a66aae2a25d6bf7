"""
System-Wide Constants and Configurations
==========================================
Centralized location for all thresholds, vocabularies and defaults used
by the analysis engine.

Design Principles:
- All magic numbers are defined here
- Every service accepts an override dict with the same keys
- Closed vocabularies (trend, severity, reason codes) live next to the
  thresholds that produce them
"""

from typing import Dict, List, Any

# =============================================================================
# LOGGING
# =============================================================================

LOGGING_CONFIG = {
    "level": "INFO",
    "format": "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    "datefmt": "%Y-%m-%d %H:%M:%S",
}

# =============================================================================
# VOCABULARIES
# =============================================================================

TRENDS = ("increasing", "decreasing", "stable")

SEVERITIES = ("low", "medium", "high")

DIFFICULTIES = ("easy", "medium", "hard")

REASON_CODES = (
    "increasing_trend",
    "consumption_spikes",
    "seasonal_pattern",
    "stable_consumption",
    "insufficient_data",
)

DISPOSED_ACTION = "DISPOSED"

VEHICLE_RENTAL_CATEGORY = "vehicle_rental"

UNKNOWN_LOCATION = "Unknown"

REASON_DESCRIPTIONS = {
    "increasing_trend": (
        "Consumption is increasing rapidly, suggesting potential waste or inefficiency"
    ),
    "consumption_spikes": (
        "Irregular consumption spikes detected, indicating potential inventory management issues"
    ),
    "seasonal_pattern": (
        "Seasonal consumption pattern identified, allowing for targeted quantity adjustments"
    ),
    "stable_consumption": (
        "Stable consumption pattern with opportunity for modest optimization"
    ),
    "insufficient_data": (
        "Limited historical data available, conservative optimization recommended"
    ),
}

DEFAULT_REASON_DESCRIPTION = "Optimization opportunity based on consumption analysis"

# =============================================================================
# TIME SERIES AGGREGATION
# =============================================================================

AGGREGATION_CONFIG = {
    # Trailing window length in months
    "window_months": 12,

    # Series end at the last complete month unless the partial reference
    # month is asked for explicitly
    "include_current_month": False,

    # Label format of each monthly bucket
    "month_format": "%Y-%m",
}

# =============================================================================
# TREND ESTIMATION
# =============================================================================

TREND_CONFIG = {
    # |slope| below this share of the series mean (per month) is "stable"
    "stable_slope_ratio": 0.05,

    # Fewer non-zero months than this caps confidence at the low ceiling
    "min_nonzero_months": 3,
    "low_confidence_ceiling": 0.3,

    # Non-zero months needed for full history credit in the confidence
    "full_history_months": 12,
    "max_confidence": 0.95,

    # Prediction interval level (t-distribution)
    "confidence_level": 0.95,

    # Fallback band (+/- share of prediction) when no interval can be fitted
    "fallback_band_ratio": 0.5,

    # Same-month seasonality needs this much non-zero history
    "seasonality_min_nonzero_months": 6,
    "seasonality_bounds": (0.5, 2.0),

    # Growth rate handed to the budget forecaster is clipped to this
    "max_monthly_growth": 0.05,

    # |z| above this marks a month as a spike in the anomaly share
    "spike_zscore": 2.0,
}

# =============================================================================
# ANOMALY SCORING
# =============================================================================

ANOMALY_CONFIG = {
    # Severity thresholds on |z|
    "high_threshold": 3.0,
    "medium_threshold": 1.5,

    # Standard deviation floor: max(absolute, relative * |mean|)
    "epsilon": 1e-6,
    "relative_epsilon": 0.01,

    # Reference distributions shorter than this are not scored
    "min_reference_points": 3,

    # Trailing reference points inspected for a sustained shift
    "recent_window": 3,

    # Max/min ratio of reference values that counts as a seasonal swing
    "seasonal_ratio": 1.5,
}

ANOMALY_CAUSES = {
    "insufficient_data": ["Insufficient data for anomaly detection"],
    "none": ["No anomalies detected"],
    "spike": [
        "Unusually high single-period spike",
        "Possible inventory error or special event",
    ],
    "sustained_increase": [
        "Sustained elevated baseline",
        "Possible change in usage pattern or unrecorded waste",
    ],
    "drop": [
        "Sudden decrease in consumption",
        "Possible supply shortage or reduced demand",
    ],
    "seasonal": ["Seasonal pattern detected"],
}

# =============================================================================
# OPTIMIZATION ADVICE
# =============================================================================

OPTIMIZATION_CONFIG = {
    # Share of highest months excluded from the recommended baseline
    "trim_fraction": 0.10,

    # Baseline must undercut actual usage by more than this share
    "min_savings_threshold": 0.05,

    # Relative delta boundaries for implementation difficulty
    "difficulty_thresholds": {
        "easy": 0.15,     # delta < 15% of actual usage
        "medium": 0.35,   # delta < 35% of actual usage
        # anything larger is "hard"
    },

    # Share of spike months that triggers "consumption_spikes"
    "spike_share": 0.10,

    # Seasonality factor outside this band triggers "seasonal_pattern"
    "seasonal_band": (0.9, 1.1),

    "months_per_year": 12,
}

# =============================================================================
# VEHICLE RENTAL COSTS
# =============================================================================

RENTAL_CONFIG = {
    # Month-over-month change above this share is a step change
    "step_change_pct": 0.10,

    # Adaptive threshold: mean + k * std of absolute first differences
    "step_change_sigma": 2.0,

    # Cadence assumed when fewer than two step changes were seen
    "default_frequency_months": 12,

    # Probability of another addition by months-since-last / cadence
    "addition_probabilities": [
        (0.5, 0.1),
        (0.8, 0.2),
        (1.0, 0.4),
        (1.2, 0.6),
        (1.5, 0.7),
    ],
    "overdue_probability": 0.8,
    "no_history_probability": 0.1,

    # Expected addition only counted above this probability
    "addition_probability_floor": 0.5,

    # Stability/volatility shaping
    "min_stability": 0.7,
    "max_confidence": 0.98,
    "max_volatility": 0.5,
    "max_risk_factor": 0.5,

    # Confidence decays per forecast month, down to this floor
    "horizon_decay": 0.05,
    "min_time_factor": 0.7,

    # Limited history (fewer than 3 months) defaults
    "limited_history_stability": 0.9,
    "limited_history_volatility": 0.05,

    # Bounds and risk shaping
    "volatility_band": 0.5,
    "lower_bound_floor": 0.95,
    "short_history_band": 0.05,
    "volatility_risk_weight": 0.3,
    "addition_risk_weight": 0.2,

    # Too little history: fixed-cost defaults
    "short_history_confidence": 0.95,
    "short_history_risk": 0.1,
}

# =============================================================================
# BUDGET FORECASTING
# =============================================================================

BUDGET_CONFIG = {
    "horizons": [1, 3, 12, 24, 36],

    # risk(h) = (base + (1 - confidence) * weight) * (1 + growth * ln(h))
    "base_risk": 0.05,
    "confidence_risk_weight": 0.25,
    "horizon_risk_growth": 0.5,
    "max_risk_factor": 0.95,

    # Per-item monthly growth is clipped to +/- this before compounding
    "max_monthly_growth": 0.05,

    "uncategorized_label": "uncategorized",
}

# =============================================================================
# GROUP ANOMALY DETECTORS
# =============================================================================

GROUP_DETECTOR_CONFIG = {
    "kitchen": {
        # Kitchens are flagged when any item reaches this severity
        "flag_severity": "high",

        # Items need at least this many other kitchens as peers (a single
        # peer has no spread to measure against)
        "min_peer_kitchens": 2,
    },
    "disposal": {
        # Fixed currency threshold; when None the percentile is used
        "high_value_threshold": None,
        "high_value_percentile": 90,
    },
    "location": {
        # Purchases newer than this count as recent
        "recent_days": 30,

        # Locations need at least this many peers to be scored; a single
        # peer is enough to compare two rooms
        "min_peer_locations": 1,

        # Severities reported in the output
        "report_severities": ["medium", "high"],
    },
}


def merged_config(defaults: Dict[str, Any], overrides: Dict[str, Any] = None) -> Dict[str, Any]:
    """Return ``defaults`` updated with ``overrides`` (one level deep)."""
    config = dict(defaults)
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(config.get(key), dict):
            nested = dict(config[key])
            nested.update(value)
            config[key] = nested
        else:
            config[key] = value
    return config

# =============================================================================
# RECORD SCHEMAS
# =============================================================================
# Fields coerced at the aggregation boundary. Identifiers are required;
# numeric fields fall back to 0 and date fields to NaT when malformed.

CONSUMPTION_SCHEMA = {
    "name": "consumption",
    "id_columns": ["item_id"],
    "numeric_columns": ["quantity", "unit_price"],
    "date_columns": ["date"],
}

RENTAL_SCHEMA = {
    "name": "rental",
    "id_columns": ["vehicle_id"],
    "numeric_columns": ["monthly_amount"],
    "date_columns": ["start_date", "end_date"],
}

ASSET_SCHEMA = {
    "name": "asset",
    "id_columns": ["asset_id"],
    "numeric_columns": ["purchase_amount"],
    "date_columns": ["purchase_date"],
}

ASSET_HISTORY_SCHEMA = {
    "name": "asset_history",
    "id_columns": ["asset_id"],
    "numeric_columns": [],
    "date_columns": ["timestamp"],
}

DATA_QUALITY_THRESHOLDS = {
    # Negative quantities/prices are clamped to zero
    "quantity_min": 0,
    "price_min": 0,
}

# =============================================================================
# INSIGHTS DIGEST
# =============================================================================

INSIGHTS_CONFIG = {
    "currency_symbol": "$",

    # Optimizations listed in the digest, by monthly savings
    "top_optimizations": 5,
}
