"""Tests for the enterprise audit: period comparison, ad checks and recommendations."""

from datetime import date

from app.services.analyzers.audit import (
    aggregate,
    audit_ads,
    audit_periods,
    build_recommendations,
    compare_periods,
    is_significant,
    run_enterprise_audit,
)
from app.services.analyzers.health_score import HealthScore

from conftest import FakeAdsClient, make_campaign


def rsa(ad_id="1", headlines=8, descriptions=3, urls=("https://example.com",)):
    return {
        "ad_id": ad_id,
        "ad_group_id": "5",
        "campaign_id": "111",
        "campaign_name": "Brand Search",
        "type": "RESPONSIVE_SEARCH_AD",
        "final_urls": list(urls),
        "headlines": [f"H{i}" for i in range(headlines)],
        "descriptions": [f"D{i}" for i in range(descriptions)],
    }


def flat_deltas(**pcts):
    return {metric: {"pct": pct} for metric, pct in pcts.items()}


class TestComparePeriods:
    def test_aggregate_derives_ctr_and_cpa(self):
        totals = aggregate([
            make_campaign(impressions=1000, clicks=50, cost=100.0, conversions=5),
            make_campaign(impressions=1000, clicks=50, cost=100.0, conversions=5),
        ])

        assert totals["ctr"] == 0.05
        assert totals["cpa"] == 20.0

    def test_aggregate_empty(self):
        assert aggregate([]) == {
            "impressions": 0.0, "clicks": 0.0, "cost": 0.0, "conversions": 0.0, "ctr": 0.0, "cpa": 0.0,
        }

    def test_deltas(self):
        deltas = compare_periods({"cost": 75.0, "clicks": 120.0}, {"cost": 100.0, "clicks": 0.0})

        assert deltas["cost"] == {"current": 75.0, "baseline": 100.0, "abs": -25.0, "pct": -25.0}
        assert deltas["clicks"]["pct"] == 0.0
        assert set(deltas) == {"impressions", "clicks", "cost", "conversions", "ctr", "cpa"}

    def test_significance_needs_clicks_in_both_periods(self):
        assert is_significant(100, 100) is True
        assert is_significant(500, 99) is False

    def test_audit_periods(self):
        current, baseline = audit_periods(date(2024, 6, 15))

        assert current == (date(2024, 5, 16), date(2024, 6, 14))
        assert baseline == (date(2024, 4, 16), date(2024, 5, 15))


class TestAuditAds:
    def test_healthy_rsa_has_no_issues(self):
        assert audit_ads([rsa()]) == []

    def test_missing_and_malformed_urls_are_critical(self):
        issues = audit_ads([rsa("1", urls=()), rsa("2", urls=("example.com/landing",))])

        assert [(i["ad_id"], i["issue"], i["severity"]) for i in issues] == [
            ("1", "broken_final_url", "Critical"),
            ("2", "broken_final_url", "Critical"),
        ]
        assert "example.com/landing" in issues[1]["message"]

    def test_thin_rsa(self):
        issues = audit_ads([rsa(headlines=5, descriptions=2)])
        assert {i["issue"] for i in issues} == {"few_headlines", "few_descriptions"}
        assert all(i["severity"] == "Medium" for i in issues)

    def test_asset_checks_only_apply_to_rsas(self):
        ad = rsa(headlines=0, descriptions=0)
        ad["type"] = "EXPANDED_TEXT_AD"
        assert audit_ads([ad]) == []


class TestBuildRecommendations:
    def test_priority_order(self):
        health = HealthScore(
            overall=40.0,
            status="critical",
            breakdown={},
            issues=[
                {"category": "keyword_quality", "severity": "warning", "message": "QS low"},
                {"category": "performance", "severity": "critical", "message": "CTR 0.50% is below 1%"},
                {"category": "ad_copy", "severity": "warning", "message": "thin ads"},
            ],
        )
        ad_issues = audit_ads([rsa("1", urls=()), rsa("2", headlines=3)])

        recs = build_recommendations(
            flat_deltas(cost=-35.0, conversions=-40.0), ad_issues, sitelink_count=2, health=health
        )

        assert [r["priority"] for r in recs] == ["Critical", "High", "High", "High", "Medium", "Medium", "Low"]
        assert recs[0]["ad_ids"] == ["1"]
        assert {r["title"] for r in recs if r["priority"] == "High"} == {
            "Spend dropped sharply", "Conversions declining", "Health check failed",
        }
        # ad_copy warnings are already covered by the RSA asset recommendation
        assert all(r["description"] != "thin ads" for r in recs)

    def test_conversion_drop_ignored_when_not_significant(self):
        recs = build_recommendations(flat_deltas(conversions=-50.0), [], sitelink_count=4, significant=False)
        assert recs == []

    def test_spend_drop_threshold_is_exclusive(self):
        assert build_recommendations(flat_deltas(cost=-20.0), [], sitelink_count=4) == []


def test_run_enterprise_audit():
    current = [make_campaign(clicks=150, cost=50.0, conversions=2)]
    baseline = [make_campaign(clicks=150, cost=100.0, conversions=5)]
    client = FakeAdsClient(
        campaigns=current,
        baseline_campaigns=baseline,
        ads=[rsa("1", urls=("ftp://example.com",))],
        keywords=[{"campaign_id": "111", "quality_score": 8}],
        sitelinks=1,
    )

    result = run_enterprise_audit(client, "123-456-7890", date(2024, 6, 15))

    assert result["customer_id"] == "1234567890"
    assert result["periods"]["current"] == {"start": "2024-05-16", "end": "2024-06-14"}
    assert result["comparison"]["cost"]["pct"] == -50.0
    assert result["significant"] is True
    assert result["sitelink_count"] == 1
    assert result["recommendations"][0]["priority"] == "Critical"
    titles = [r["title"] for r in result["recommendations"]]
    assert "Spend dropped sharply" in titles
    assert "Conversions declining" in titles
    assert "Add sitelinks" in titles
    assert 0 <= result["health_score"]["overall"] <= 100
