"""
Tests for InsightsGenerator
============================
"""

import pytest

from resource_ml.models.explanation import InsightsGenerator, get_reason_description
from resource_ml.utils.constants import DEFAULT_REASON_DESCRIPTION, REASON_CODES


@pytest.fixture
def generator():
    return InsightsGenerator()


def _recommendation(item_id, savings, reason_code="stable_consumption"):
    return {
        "supplyId": item_id,
        "supplyName": item_id.title(),
        "category": "grains",
        "recommendation": {
            "recommendedQuantity": 8.0,
            "actualQuantity": 10.0,
            "potentialSavings": savings,
            "annualSavings": savings * 12,
            "confidence": 0.85,
            "implementationDifficulty": "medium",
            "reasonCode": reason_code,
            "reason": "",
        },
    }


def _budget(months, amount, confidence):
    return {
        "months": months,
        "prediction": {
            "predictedAmount": amount,
            "confidence": confidence,
            "upperBound": amount * 1.2,
            "lowerBound": amount * 0.8,
            "riskFactor": 0.2,
        },
        "categoryPredictions": {},
    }


def test_every_reason_code_has_a_description():
    for code in REASON_CODES:
        assert get_reason_description(code) != DEFAULT_REASON_DESCRIPTION


def test_unknown_reason_code():
    assert get_reason_description("made_up") == DEFAULT_REASON_DESCRIPTION


def test_empty_payload_reads_as_stable(generator):
    insights = generator.generate({})

    assert insights["summary"]["keyPoints"] == [
        "Analysis shows stable consumption patterns with no significant anomalies"
    ]
    assert set(insights) == set(InsightsGenerator.SECTIONS)
    assert insights["optimizations"]["items"] == []


def test_key_points(generator):
    payload = {
        "optimizationRecommendations": [_recommendation("rice", 10.0), _recommendation("milk", 5.0)],
        "budgetPredictions": [_budget(1, 1234.5, 0.85), _budget(3, 3000.0, 0.85)],
        "anomalyDetections": [{
            "supplyId": "salt",
            "supplyName": "Salt",
            "anomalyResult": {"severity": "high", "anomalyScore": 4.2, "possibleCauses": ["Spike"]},
        }],
    }

    key_points = generator.generate(payload)["summary"]["keyPoints"]

    assert key_points == [
        "Potential annual savings of $180.00 identified through quantity optimization",
        "Next month's budget is predicted to be $1,234.50 with 85% confidence",
        "1 anomalies detected in your consumption patterns that require attention",
    ]


def test_group_key_points_only_for_high_severity(generator):
    payload = {
        "kitchenAnomalies": [
            {"kitchenId": "k4", "kitchenName": "Banquet Kitchen", "floorNumber": "4",
             "anomalyScore": 5.0, "severity": "high", "details": []},
        ],
        "assetDisposals": [
            {"assetId": "a1", "assetName": "Oven", "disposedAt": "2026-10-01T00:00:00",
             "floorNumber": "2", "roomNumber": "201", "purchaseAmount": 4200.0, "severity": "high"},
            {"assetId": "a2", "assetName": "Chair", "disposedAt": "2026-10-01T00:00:00",
             "floorNumber": "2", "roomNumber": "201", "purchaseAmount": 40.0, "severity": "low"},
        ],
        "locationOverpurchasing": [
            {"location": "Floor 1, Room B", "floorNumber": "1", "roomNumber": "B", "totalAssets": 10,
             "totalValue": 500.0, "recentPurchases": 8, "severity": "medium"},
        ],
    }

    key_points = generator.generate(payload)["summary"]["keyPoints"]

    assert key_points[1:] == [
        'Kitchen "Banquet Kitchen" on Floor 4 has unusually high consumption patterns that require attention',
        'High-value asset "Oven" ($4,200.00) was disposed from Floor 2, Room 201',
    ]


def test_top_optimizations(generator):
    recommendations = [_recommendation(f"item{i}", float(i)) for i in range(8)]
    recommendations.append(_recommendation("bump", 3.5, reason_code="increasing_trend"))

    items = generator.top_optimizations(recommendations)

    assert [item["id"] for item in items] == ["item7", "item6", "item5", "item4", "bump"]
    assert items[-1]["reason"] == get_reason_description("increasing_trend")
    assert items[0]["confidence"] == "85%"
    assert items[0]["yearlySavings"] == 84.0


def test_zero_savings_are_not_listed(generator):
    assert generator.top_optimizations([_recommendation("rice", 0.0)]) == []


def test_formatting(generator):
    kitchen = generator.format_kitchen({
        "kitchenId": "k4", "kitchenName": "Banquet Kitchen", "floorNumber": "4",
        "anomalyScore": 12.3456, "severity": "high",
        "details": [
            {"foodName": "Rice", "avgConsumption": 10.0, "kitchenConsumption": 50.0,
             "percentageAboveAvg": 400.0, "unit": "kg"},
            {"foodName": "Salt", "avgConsumption": 0.0, "kitchenConsumption": 3.0,
             "percentageAboveAvg": None, "unit": "kg"},
        ],
    })

    assert kitchen["anomalyScore"] == "12.35"
    assert [d["percentageAboveAvg"] for d in kitchen["details"]] == ["400%", "n/a"]

    budget = generator.format_budget(_budget(12, 1000.0, 0.5))
    assert budget["amount"] == "1000.00"
    assert budget["confidence"] == "50%"
    assert budget["riskFactor"] == "20%"


def test_custom_currency():
    generator = InsightsGenerator({"currency_symbol": "EUR ", "top_optimizations": 1})

    insights = generator.generate({
        "optimizationRecommendations": [_recommendation("rice", 10.0), _recommendation("milk", 5.0)],
    })

    assert insights["summary"]["keyPoints"][0].startswith("Potential annual savings of EUR 180.00")
    assert len(insights["optimizations"]["items"]) == 1
