"""
Anomaly Scoring Service
========================
Scores an observed value against a reference distribution.

Design Principles:
- One number: |z| is the score, severity is a tier on top of it
- No division blow-ups: the standard deviation is floored at an epsilon
  that scales with the reference mean
- Causes are hints, not verdicts: an ordered rule table maps sub-signals
  to human-readable possibilities

Severity Tiers:
- high:   |z| >= 3.0
- medium: |z| >= 1.5
- low:    anything else
"""

import numpy as np
from typing import Dict, List, Optional, Any, Sequence
from dataclasses import dataclass, field

from .aggregator import MonthlySeries
from ..utils.logger import get_logger
from ..utils.constants import ANOMALY_CONFIG, ANOMALY_CAUSES

logger = get_logger(__name__)


@dataclass
class AnomalyResult:
    """
    Deviation assessment for one observed value.

    Attributes
    ----------
    score : float
        Absolute z-score (>= 0)
    severity : str
        "low", "medium" or "high"
    possible_causes : List[str]
        Ordered cause hints
    is_anomaly : bool
        True when severity is medium or high
    z_score : float
        Signed z-score (positive = above the reference mean)
    observed : float
        Value that was scored
    expected : float
        Reference mean
    """
    score: float
    severity: str
    possible_causes: List[str] = field(default_factory=list)
    is_anomaly: bool = False
    z_score: float = 0.0
    observed: float = 0.0
    expected: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "isAnomaly": self.is_anomaly,
            "anomalyScore": self.score,
            "severity": self.severity,
            "possibleCauses": list(self.possible_causes),
            "zScore": self.z_score,
            "observed": self.observed,
            "expected": self.expected,
        }


class AnomalyScorer:
    """
    Z-score based anomaly scorer.

    Usage
    -----
    >>> scorer = AnomalyScorer()
    >>> result = scorer.score(50, [10] * 11)
    >>> result.severity
    'high'

    Cause Rules (checked in order):
    1. spike: observed above the reference mean
    2. sustained_increase: the trailing reference points already sit
       above the reference mean by more than one deviation
    3. drop: observed below the reference mean
    4. seasonal: reference max/min ratio above 1.5
    """

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize the scorer.

        Parameters
        ----------
        config : dict, optional
            Custom configuration. Uses defaults if not provided.
        """
        self.config = config or ANOMALY_CONFIG
        self.causes = self.config.get('causes', ANOMALY_CAUSES)

        logger.info(
            f"AnomalyScorer initialized: medium >= {self.config['medium_threshold']}, "
            f"high >= {self.config['high_threshold']}"
        )

    def score(
        self,
        observed: float,
        reference: Sequence[float],
        recent: Optional[Sequence[float]] = None
    ) -> AnomalyResult:
        """
        Score ``observed`` against ``reference``.

        Parameters
        ----------
        observed : float
            Value under test
        reference : sequence of float
            Historical or peer values
        recent : sequence of float, optional
            Trailing reference points used for the sustained-shift rule.
            Defaults to the last ``recent_window`` reference values.

        Returns
        -------
        AnomalyResult
            Score, severity and cause hints
        """
        observed = float(observed or 0.0)
        values = np.asarray(list(reference), dtype=float)
        values = values[np.isfinite(values)]

        if len(values) < self.config["min_reference_points"]:
            return AnomalyResult(
                score=0.0,
                severity="low",
                possible_causes=list(self.causes["insufficient_data"]),
                observed=observed,
                expected=float(values.mean()) if len(values) else 0.0,
            )

        mean = float(values.mean())
        std = float(values.std())
        epsilon = max(self.config["epsilon"], self.config["relative_epsilon"] * abs(mean))

        z = (observed - mean) / max(std, epsilon)
        score = abs(z)
        severity = self.classify_severity(score)

        if recent is None:
            recent = values[-self.config["recent_window"]:]

        return AnomalyResult(
            score=float(score),
            severity=severity,
            possible_causes=self._possible_causes(z, severity, values, np.asarray(recent, dtype=float)),
            is_anomaly=severity != "low",
            z_score=float(z),
            observed=observed,
            expected=mean,
        )

    def score_series(self, series: MonthlySeries) -> AnomalyResult:
        """Score the most recent month of a series against the earlier months."""
        values = series.values_array
        if len(values) == 0:
            return self.score(0.0, [])

        return self.score(values[-1], values[:-1])

    def score_all(self, series_map: Dict[Any, MonthlySeries]) -> Dict[Any, AnomalyResult]:
        """
        Score the latest month of every series in a mapping.

        Returns
        -------
        Dict[Any, AnomalyResult]
            Results keyed like the input
        """
        results = {key: self.score_series(series) for key, series in series_map.items()}

        flagged = sum(1 for result in results.values() if result.is_anomaly)
        logger.info(f"Anomaly scoring complete: {flagged}/{len(results)} series flagged")

        return results

    def classify_severity(self, score: float) -> str:
        """Map an absolute z-score to a severity tier."""
        if score >= self.config["high_threshold"]:
            return "high"
        if score >= self.config["medium_threshold"]:
            return "medium"
        return "low"

    def _possible_causes(
        self,
        z: float,
        severity: str,
        reference: np.ndarray,
        recent: np.ndarray
    ) -> List[str]:
        """Walk the rule table in order and collect matching cause hints."""
        if severity == "low":
            return list(self.causes["none"])

        mean = float(reference.mean())
        std = float(reference.std())

        causes = []
        if z > 0:
            causes.extend(self.causes["spike"])
            if len(recent) and recent.mean() > mean + std and std > 0:
                causes.extend(self.causes["sustained_increase"])
        elif z < 0:
            causes.extend(self.causes["drop"])

        low, high = reference.min(), reference.max()
        if low > 0 and high / low > self.config["seasonal_ratio"]:
            causes.extend(self.causes["seasonal"])

        return causes
