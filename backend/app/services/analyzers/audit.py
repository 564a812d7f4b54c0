"""
Enterprise Account Audit.

WHAT:
    Period-over-period comparison, ad asset checks, sitelink coverage and
    the health score, merged into one prioritised recommendation list.

WHY:
    The audit is what a user reads first after connecting an account; it
    has to rank the few things worth doing today above the long tail.

FLOW:
    1. Fetch campaigns for the last 30 days and the 30 days before
    2. compare_periods() → {abs, pct} deltas per metric
    3. audit_ads() → RSA asset and final URL issues
    4. count_sitelinks()
    5. score_account() → health score
    6. build_recommendations() → sorted Critical > High > Medium > Low

REFERENCES:
    - backend/app/services/analyzers/health_score.py
    - backend/app/services/ai_insights.py (summarize_audit)
"""

import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from app.services.analyzers.health_score import (
    RECOMMENDED_DESCRIPTIONS,
    RECOMMENDED_HEADLINES,
    HealthScore,
    score_account,
)
from app.services.google_ads_client import GAdsClient, clean_customer_id

logger = logging.getLogger(__name__)

PRIORITY_ORDER = {"Critical": 0, "High": 1, "Medium": 2, "Low": 3}

COMPARED_METRICS = ("impressions", "clicks", "cost", "conversions", "ctr", "cpa")
MIN_SITELINKS = 4
SPEND_DROP_THRESHOLD = -20.0
SIGNIFICANCE_MIN_CLICKS = 100
AUDIT_PERIOD_DAYS = 30


def aggregate(campaigns: List[Dict[str, Any]]) -> Dict[str, float]:
    """Account totals with ctr and cpa derived from the sums."""
    totals = {
        "impressions": float(sum(c.get("impressions") or 0 for c in campaigns)),
        "clicks": float(sum(c.get("clicks") or 0 for c in campaigns)),
        "cost": float(sum(c.get("cost") or 0 for c in campaigns)),
        "conversions": float(sum(c.get("conversions") or 0 for c in campaigns)),
    }
    totals["ctr"] = totals["clicks"] / totals["impressions"] if totals["impressions"] else 0.0
    totals["cpa"] = totals["cost"] / totals["conversions"] if totals["conversions"] else 0.0
    return totals


def compare_periods(current: Dict[str, float], baseline: Dict[str, float]) -> Dict[str, Dict[str, float]]:
    """
    Per-metric deltas.

    pct is 0 when the baseline is 0 (no meaningful relative change).
    """
    deltas: Dict[str, Dict[str, float]] = {}
    for metric in COMPARED_METRICS:
        cur = float(current.get(metric) or 0.0)
        base = float(baseline.get(metric) or 0.0)
        diff = cur - base
        deltas[metric] = {
            "current": round(cur, 4),
            "baseline": round(base, 4),
            "abs": round(diff, 4),
            "pct": round(diff / base * 100, 2) if base else 0.0,
        }
    return deltas


def is_significant(current_clicks: float, baseline_clicks: float) -> bool:
    return current_clicks >= SIGNIFICANCE_MIN_CLICKS and baseline_clicks >= SIGNIFICANCE_MIN_CLICKS


def _url_ok(url: str) -> bool:
    parsed = urlparse(url or "")
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def audit_ads(ads: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Issues per ad: thin RSA assets and missing or malformed final URLs."""
    issues: List[Dict[str, Any]] = []
    for ad in ads:
        base = {
            "ad_id": ad.get("ad_id"),
            "ad_group_id": ad.get("ad_group_id"),
            "campaign_id": ad.get("campaign_id"),
            "campaign_name": ad.get("campaign_name"),
        }
        urls = ad.get("final_urls") or []
        if not urls or not all(_url_ok(u) for u in urls):
            issues.append({
                **base,
                "issue": "broken_final_url",
                "severity": "Critical",
                "message": "Ad has a missing or malformed final URL" if not urls
                else f"Malformed final URL: {next(u for u in urls if not _url_ok(u))}",
            })

        if ad.get("type") != "RESPONSIVE_SEARCH_AD":
            continue
        headlines = len(ad.get("headlines") or [])
        descriptions = len(ad.get("descriptions") or [])
        if headlines < RECOMMENDED_HEADLINES:
            issues.append({
                **base,
                "issue": "few_headlines",
                "severity": "Medium",
                "message": f"Only {headlines} headlines (recommended {RECOMMENDED_HEADLINES}+)",
            })
        if descriptions < RECOMMENDED_DESCRIPTIONS:
            issues.append({
                **base,
                "issue": "few_descriptions",
                "severity": "Medium",
                "message": f"Only {descriptions} descriptions (recommended {RECOMMENDED_DESCRIPTIONS}+)",
            })
    return issues


def _rec(priority: str, category: str, title: str, description: str, **extra: Any) -> Dict[str, Any]:
    return {"priority": priority, "category": category, "title": title, "description": description, **extra}


def build_recommendations(
    deltas: Dict[str, Dict[str, float]],
    ad_issues: List[Dict[str, Any]],
    sitelink_count: int,
    health: Optional[HealthScore] = None,
    significant: bool = True,
) -> List[Dict[str, Any]]:
    """Merge findings into recommendations sorted Critical > High > Medium > Low."""
    recs: List[Dict[str, Any]] = []

    broken = [i for i in ad_issues if i["issue"] == "broken_final_url"]
    if broken:
        recs.append(_rec(
            "Critical", "ads", "Fix broken final URLs",
            f"{len(broken)} ad(s) send clicks to a missing or malformed URL",
            ad_ids=[i["ad_id"] for i in broken],
        ))

    spend_pct = deltas.get("cost", {}).get("pct", 0.0)
    if spend_pct < SPEND_DROP_THRESHOLD:
        recs.append(_rec(
            "High", "budget", "Spend dropped sharply",
            f"Spend is down {abs(spend_pct):.1f}% versus the previous period; check budgets, bids and disapprovals",
        ))

    conv_pct = deltas.get("conversions", {}).get("pct", 0.0)
    if significant and conv_pct < -20.0:
        recs.append(_rec(
            "High", "performance", "Conversions declining",
            f"Conversions are down {abs(conv_pct):.1f}% versus the previous period",
        ))

    thin = [i for i in ad_issues if i["issue"] in ("few_headlines", "few_descriptions")]
    if thin:
        recs.append(_rec(
            "Medium", "ads", "Add more RSA assets",
            f"{len({i['ad_id'] for i in thin})} responsive search ad(s) have fewer than "
            f"{RECOMMENDED_HEADLINES} headlines or {RECOMMENDED_DESCRIPTIONS} descriptions",
            ad_ids=sorted({i["ad_id"] for i in thin}),
        ))

    if sitelink_count < MIN_SITELINKS:
        recs.append(_rec(
            "Medium", "extensions", "Add sitelinks",
            f"{sitelink_count} sitelink(s) active; at least {MIN_SITELINKS} are recommended",
        ))

    if health is not None:
        for issue in health.issues:
            if issue["severity"] == "critical":
                recs.append(_rec("High", issue["category"], "Health check failed", issue["message"]))
            elif issue["severity"] == "warning" and issue["category"] != "ad_copy":
                recs.append(_rec("Low", issue["category"], "Health check warning", issue["message"]))

    recs.sort(key=lambda r: PRIORITY_ORDER.get(r["priority"], len(PRIORITY_ORDER)))
    return recs


def audit_periods(today: date, days: int = AUDIT_PERIOD_DAYS):
    """(current, baseline) date ranges: the last `days` full days and the span before."""
    end = today - timedelta(days=1)
    start = end - timedelta(days=days - 1)
    baseline_end = start - timedelta(days=1)
    baseline_start = baseline_end - timedelta(days=days - 1)
    return (start, end), (baseline_start, baseline_end)


def run_enterprise_audit(client: GAdsClient, customer_id: str, today: date) -> Dict[str, Any]:
    customer_id = clean_customer_id(customer_id)
    current_range, baseline_range = audit_periods(today)

    logger.info("[GOOGLE_ADS] Running audit for %s (%s to %s)", customer_id, *current_range)

    current_campaigns = client.list_campaigns(customer_id, date_range=current_range)
    baseline_campaigns = client.list_campaigns(customer_id, date_range=baseline_range)
    ads = client.list_ads(customer_id)
    keywords = client.list_keywords(customer_id, date_range=current_range)
    sitelinks = client.count_sitelinks(customer_id)

    current = aggregate(current_campaigns)
    baseline = aggregate(baseline_campaigns)
    deltas = compare_periods(current, baseline)
    significant = is_significant(current["clicks"], baseline["clicks"])
    ad_issues = audit_ads(ads)
    health = score_account(current_campaigns, keywords, ads)
    recommendations = build_recommendations(deltas, ad_issues, sitelinks, health, significant)

    return {
        "customer_id": customer_id,
        "periods": {
            "current": {"start": current_range[0].isoformat(), "end": current_range[1].isoformat()},
            "baseline": {"start": baseline_range[0].isoformat(), "end": baseline_range[1].isoformat()},
        },
        "comparison": deltas,
        "significant": significant,
        "ad_issues": ad_issues,
        "sitelink_count": sitelinks,
        "health_score": health.to_dict(),
        "recommendations": recommendations,
    }
