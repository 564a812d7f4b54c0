"""Tests for the account health score."""

from app.services.analyzers.health_score import (
    WEIGHTS,
    HealthInputs,
    build_inputs,
    compute_health_score,
    score_account,
    status_for,
)

from conftest import make_campaign


def rsa(campaign_id="111", headlines=8, descriptions=3):
    return {
        "campaign_id": campaign_id,
        "headlines": [f"Headline {i}" for i in range(headlines)],
        "descriptions": [f"Description {i}" for i in range(descriptions)],
    }


def keyword(campaign_id="111", quality_score=8):
    return {"campaign_id": campaign_id, "quality_score": quality_score}


def test_weights_sum_to_one():
    assert round(sum(WEIGHTS.values()), 6) == 1.0


def test_status_thresholds():
    assert status_for(90) == "excellent"
    assert status_for(89.9) == "good"
    assert status_for(75) == "good"
    assert status_for(60) == "warning"
    assert status_for(59.9) == "critical"


def test_perfect_account():
    score = compute_health_score(HealthInputs(
        active_campaigns=2,
        complete_campaigns=2,
        impressions=1000,
        clicks=100,
        conversions=10,
        total_cost=100.0,
        converting_cost=100.0,
        quality_scores=[10, 10],
        avg_headlines=8,
        avg_descriptions=3,
    ))

    assert score.overall == 100.0
    assert score.status == "excellent"
    assert score.issues == []


def test_empty_account():
    score = compute_health_score(HealthInputs())

    assert score.breakdown == {
        "structure": 0.0,
        "performance": 0.0,
        "budget_efficiency": 100.0,
        "keyword_quality": 50.0,
        "ad_copy": 0.0,
    }
    assert score.overall == 30.0
    assert score.status == "critical"
    assert {"category": "structure", "severity": "critical", "message": "No active campaigns"} in score.issues


def test_low_ctr_and_no_conversions_are_critical():
    score = compute_health_score(HealthInputs(
        active_campaigns=1,
        complete_campaigns=1,
        impressions=10000,
        clicks=50,
        conversions=0,
        total_cost=100.0,
        converting_cost=0.0,
        quality_scores=[7],
        avg_headlines=8,
        avg_descriptions=3,
    ))

    critical = [i for i in score.issues if i["severity"] == "critical"]
    categories = [i["category"] for i in critical]
    assert categories.count("performance") == 2
    assert "budget_efficiency" in categories
    # ctr 0.5% -> 15, cvr 0 -> 10
    assert score.breakdown["performance"] == 13.0
    assert score.breakdown["budget_efficiency"] == 0.0


def test_partial_structure_and_thin_ads():
    score = compute_health_score(HealthInputs(
        active_campaigns=4,
        complete_campaigns=3,
        impressions=1000,
        clicks=40,
        conversions=2,
        total_cost=80.0,
        converting_cost=60.0,
        quality_scores=[6, 8],
        avg_headlines=4,
        avg_descriptions=3,
    ))

    assert score.breakdown["structure"] == 75.0
    # ctr 4% -> 70, cvr 5% -> 100
    assert score.breakdown["performance"] == 82.0
    assert score.breakdown["budget_efficiency"] == 75.0
    assert score.breakdown["keyword_quality"] == 70.0
    assert score.breakdown["ad_copy"] == 70.0
    assert any("headlines" in i["message"] for i in score.issues)


def test_sub_scores_are_clamped():
    score = compute_health_score(HealthInputs(
        active_campaigns=1,
        complete_campaigns=1,
        impressions=100,
        clicks=10,
        conversions=5,
        total_cost=10.0,
        converting_cost=10.0,
        quality_scores=[10],
        avg_headlines=15,
        avg_descriptions=4,
    ))

    assert all(0 <= s <= 100 for s in score.breakdown.values())
    assert 0 <= score.overall <= 100


def test_to_dict_breakdown_shape():
    data = compute_health_score(HealthInputs()).to_dict()

    assert data["breakdown"]["keyword_quality"] == {"score": 50.0, "weight": 0.20, "status": "critical"}
    assert set(data) == {"overall", "status", "breakdown", "issues"}


class TestBuildInputs:
    def test_aggregates_snapshots(self):
        campaigns = [
            make_campaign(id="111", cost=80.0, conversions=4),
            make_campaign(id="222", cost=20.0, conversions=0),
            make_campaign(id="333", status="PAUSED", cost=0.0, conversions=0, impressions=0, clicks=0),
        ]
        keywords = [keyword("111", 8), keyword("222", None), keyword("222", 6)]
        ads = [rsa("111", 6, 2), rsa("222", 10, 4), {"campaign_id": "333", "headlines": [], "descriptions": []}]

        inputs = build_inputs(campaigns, keywords, ads)

        assert inputs.active_campaigns == 2
        assert inputs.complete_campaigns == 2
        assert inputs.impressions == 2000
        assert inputs.total_cost == 100.0
        assert inputs.converting_cost == 80.0
        assert inputs.quality_scores == [8, 6]
        assert inputs.avg_headlines == 8.0
        assert inputs.avg_descriptions == 3.0

    def test_campaign_without_keywords_is_incomplete(self):
        inputs = build_inputs([make_campaign(id="111")], [], [rsa("111")])
        assert inputs.complete_campaigns == 0

    def test_score_account(self):
        score = score_account([make_campaign()], [keyword()], [rsa()])
        assert score.breakdown["structure"] == 100.0
        assert score.breakdown["ad_copy"] == 100.0
