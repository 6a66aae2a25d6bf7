"""
Insights Digest Layer
======================
Turn an analysis payload into a digest a facilities manager can read.

Design Principles:
- No statistics jargon in the key points
- Specific numbers ("$1,240.00 per year", "85% confidence")
- Only the most valuable optimizations are listed
- Works on the JSON-ready payload, so it can run wherever the payload goes

Every digest has the same sections:
1. summary - key points across all analyses
2. predictions, optimizations, anomalies, budget
3. kitchenAnomalies, assetDisposals, locationOverpurchasing
"""

from typing import Dict, List, Optional, Any

from ..utils.logger import get_logger
from ..utils.constants import (
    INSIGHTS_CONFIG,
    REASON_DESCRIPTIONS,
    DEFAULT_REASON_DESCRIPTION,
)

logger = get_logger(__name__)


def get_reason_description(reason_code: str) -> str:
    """Human-readable description of an optimization reason code."""
    return REASON_DESCRIPTIONS.get(reason_code, DEFAULT_REASON_DESCRIPTION)


def _pct(value: Optional[float]) -> str:
    return f"{(value or 0) * 100:.0f}%"


class InsightsGenerator:
    """
    Builds the insights digest from ``AnalysisResult.to_dict()`` output.

    Usage
    -----
    >>> generator = InsightsGenerator()
    >>> insights = generator.generate(result.to_dict())
    >>> insights["summary"]["keyPoints"][0]
    'Potential annual savings of $1,240.00 identified through quantity optimization'
    """

    SECTIONS = {
        "summary": (
            "Analysis Summary",
            "Insights based on your historical data",
        ),
        "predictions": (
            "Consumption Predictions",
            "Predictions for future consumption patterns",
        ),
        "optimizations": (
            "Optimization Opportunities",
            "Data-driven recommendations for quantity optimization",
        ),
        "anomalies": (
            "Detected Anomalies",
            "Unusual patterns detected in your consumption data",
        ),
        "budget": (
            "Budget Forecasting",
            "Budget predictions with confidence intervals",
        ),
        "kitchenAnomalies": (
            "Kitchen Consumption Anomalies",
            "Kitchens with unusually high consumption patterns",
        ),
        "assetDisposals": (
            "Recent Asset Disposals",
            "Recently disposed assets that may require attention",
        ),
        "locationOverpurchasing": (
            "Location Overpurchasing",
            "Locations with unusually high asset acquisition rates",
        ),
    }

    def __init__(self, config: Optional[Dict] = None):
        self.config = config or INSIGHTS_CONFIG
        self.currency = self.config.get("currency_symbol", "$")

    def _money(self, amount: Optional[float]) -> str:
        return f"{self.currency}{(amount or 0):,.2f}"

    def generate(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Build the digest.

        Parameters
        ----------
        payload : dict
            Output of ``AnalysisResult.to_dict()``

        Returns
        -------
        Dict[str, Any]
            Sections with title, description and items (the summary has
            keyPoints, the budget section has predictions)
        """
        insights = {
            key: {"title": title, "description": description}
            for key, (title, description) in self.SECTIONS.items()
        }

        recommendations = payload.get("optimizationRecommendations", [])
        budget = payload.get("budgetPredictions", [])
        anomalies = payload.get("anomalyDetections", [])
        kitchens = payload.get("kitchenAnomalies", [])
        disposals = payload.get("assetDisposals", [])
        locations = payload.get("locationOverpurchasing", [])

        insights["predictions"]["items"] = [
            self.format_prediction(entry) for entry in payload.get("consumptionPredictions", [])
        ]
        insights["optimizations"]["items"] = self.top_optimizations(recommendations)
        insights["anomalies"]["items"] = [self.format_anomaly(entry) for entry in anomalies]
        insights["budget"]["predictions"] = [self.format_budget(entry) for entry in budget]
        insights["kitchenAnomalies"]["items"] = [self.format_kitchen(entry) for entry in kitchens]
        insights["assetDisposals"]["items"] = [self.format_disposal(entry) for entry in disposals]
        insights["locationOverpurchasing"]["items"] = [self.format_location(entry) for entry in locations]

        insights["summary"]["keyPoints"] = self.key_points(
            recommendations, budget, anomalies, kitchens, disposals, locations
        )

        logger.info(
            f"Insights generated: {len(insights['summary']['keyPoints'])} key points, "
            f"{len(insights['optimizations']['items'])} optimizations listed"
        )

        return insights

    def key_points(
        self,
        recommendations: List[Dict],
        budget: List[Dict],
        anomalies: List[Dict],
        kitchens: List[Dict],
        disposals: List[Dict],
        locations: List[Dict]
    ) -> List[str]:
        """Summary sentences, most general first."""
        points = []

        if recommendations:
            annual = sum(r["recommendation"]["annualSavings"] for r in recommendations)
            points.append(
                f"Potential annual savings of {self._money(annual)} identified through "
                f"quantity optimization"
            )

        next_month = next((b for b in budget if b["months"] == 1), None)
        if next_month:
            prediction = next_month["prediction"]
            points.append(
                f"Next month's budget is predicted to be {self._money(prediction['predictedAmount'])} "
                f"with {_pct(prediction['confidence'])} confidence"
            )

        if anomalies:
            points.append(
                f"{len(anomalies)} anomalies detected in your consumption patterns that require attention"
            )

        if not points:
            points.append(
                "Analysis shows stable consumption patterns with no significant anomalies"
            )

        for kitchen in kitchens:
            if kitchen["severity"] == "high":
                points.append(
                    f'Kitchen "{kitchen["kitchenName"]}" on Floor {kitchen["floorNumber"]} has '
                    f"unusually high consumption patterns that require attention"
                )

        for disposal in disposals:
            if disposal["severity"] == "high":
                points.append(
                    f'High-value asset "{disposal["assetName"]}" '
                    f'({self._money(disposal["purchaseAmount"])}) was disposed from '
                    f'Floor {disposal["floorNumber"]}, Room {disposal["roomNumber"]}'
                )

        for location in locations:
            if location["severity"] == "high":
                points.append(
                    f"{location['location']} has acquired {location['recentPurchases']} new "
                    f"assets recently, suggesting potential overpurchasing"
                )

        return points

    def top_optimizations(self, recommendations: List[Dict]) -> List[Dict[str, Any]]:
        """The highest-saving recommendations, formatted."""
        saving = [r for r in recommendations if r["recommendation"]["potentialSavings"] > 0]
        saving.sort(key=lambda r: r["recommendation"]["potentialSavings"], reverse=True)

        items = []
        for entry in saving[:self.config.get("top_optimizations", 5)]:
            rec = entry["recommendation"]
            items.append({
                "id": entry["supplyId"],
                "name": entry.get("supplyName", ""),
                "category": entry.get("category", ""),
                "currentUsage": rec["actualQuantity"],
                "recommendedUsage": rec["recommendedQuantity"],
                "monthlySavings": rec["potentialSavings"],
                "yearlySavings": rec["annualSavings"],
                "confidence": _pct(rec["confidence"]),
                "difficulty": rec["implementationDifficulty"],
                "reason": get_reason_description(rec["reasonCode"]),
            })
        return items

    def format_prediction(self, entry: Dict) -> Dict[str, Any]:
        prediction = entry["prediction"]
        return {
            "id": entry["supplyId"],
            "predictedQuantity": f"{prediction['predictedQuantity']:.2f}",
            "confidence": _pct(prediction["confidence"]),
            "trend": prediction["trend"],
            "seasonalityFactor": f"{prediction['seasonalityFactor']:.2f}",
        }

    def format_anomaly(self, entry: Dict) -> Dict[str, Any]:
        result = entry["anomalyResult"]
        return {
            "id": entry["supplyId"],
            "name": entry.get("supplyName", ""),
            "severity": result["severity"],
            "score": f"{result['anomalyScore']:.2f}",
            "causes": list(result["possibleCauses"]),
        }

    def format_budget(self, entry: Dict) -> Dict[str, Any]:
        prediction = entry["prediction"]
        return {
            "months": entry["months"],
            "amount": f"{prediction['predictedAmount']:.2f}",
            "confidence": _pct(prediction["confidence"]),
            "upperBound": f"{prediction['upperBound']:.2f}",
            "lowerBound": f"{prediction['lowerBound']:.2f}",
            "riskFactor": _pct(prediction["riskFactor"]),
        }

    def format_kitchen(self, entry: Dict) -> Dict[str, Any]:
        return {
            "id": entry["kitchenId"],
            "name": entry["kitchenName"],
            "floorNumber": entry["floorNumber"],
            "severity": entry["severity"],
            "anomalyScore": f"{entry['anomalyScore']:.2f}",
            "details": [
                {
                    "foodName": detail["foodName"],
                    "avgConsumption": detail["avgConsumption"],
                    "kitchenConsumption": detail["kitchenConsumption"],
                    "percentageAboveAvg": (
                        f"{detail['percentageAboveAvg']:.0f}%"
                        if detail["percentageAboveAvg"] is not None else "n/a"
                    ),
                    "unit": detail["unit"],
                }
                for detail in entry["details"]
            ],
        }

    def format_disposal(self, entry: Dict) -> Dict[str, Any]:
        return {
            "id": entry["assetId"],
            "name": entry["assetName"],
            "disposedAt": entry["disposedAt"],
            "floorNumber": entry["floorNumber"],
            "roomNumber": entry["roomNumber"],
            "purchaseAmount": f"{entry['purchaseAmount']:.2f}",
            "severity": entry["severity"],
        }

    def format_location(self, entry: Dict) -> Dict[str, Any]:
        return {
            "location": entry["location"],
            "floorNumber": entry["floorNumber"],
            "roomNumber": entry["roomNumber"],
            "totalAssets": entry["totalAssets"],
            "totalValue": f"{entry['totalValue']:.2f}",
            "recentPurchases": entry["recentPurchases"],
            "severity": entry["severity"],
        }
