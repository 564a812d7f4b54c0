"""
Account Health Score.

WHAT:
    A 0-100 score summarising account health from five weighted sub-scores:
    structure, performance, budget efficiency, keyword quality, ad copy.

WHY:
    One number for the dashboard, with per-area issues so the user knows
    where points were lost.

SCORING:
    structure          share of active campaigns with both ads and keywords
    performance        0.6 * CTR tier score + 0.4 * conversion-rate tier score
    budget_efficiency  share of spend that went to converting campaigns
    keyword_quality    average quality score * 10 (50 when no scores)
    ad_copy            min(headlines/8, 1) * 60 + min(descriptions/3, 1) * 40

    Every sub-score is clamped to [0, 100]; the overall score is the clamped
    weighted sum rounded to one decimal.

REFERENCES:
    - backend/app/services/analyzers/audit.py (uses score_account)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

WEIGHTS = {
    "structure": 0.20,
    "performance": 0.25,
    "budget_efficiency": 0.20,
    "keyword_quality": 0.20,
    "ad_copy": 0.15,
}

BENCHMARKS = {
    "avgCtr": 0.035,
    "goodCtr": 0.05,
    "excellentCtr": 0.08,
    "avgQualityScore": 7,
}

CRITICAL_CTR = 0.01
RECOMMENDED_HEADLINES = 8
RECOMMENDED_DESCRIPTIONS = 3


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def status_for(score: float) -> str:
    if score >= 90:
        return "excellent"
    if score >= 75:
        return "good"
    if score >= 60:
        return "warning"
    return "critical"


@dataclass
class HealthInputs:
    """Aggregates the score is computed from."""

    active_campaigns: int = 0
    complete_campaigns: int = 0  # active campaigns with >= 1 ad and >= 1 keyword
    impressions: int = 0
    clicks: int = 0
    conversions: float = 0.0
    total_cost: float = 0.0
    converting_cost: float = 0.0
    quality_scores: List[int] = field(default_factory=list)
    avg_headlines: Optional[float] = None
    avg_descriptions: Optional[float] = None


@dataclass
class HealthScore:
    overall: float
    status: str
    breakdown: Dict[str, float]
    issues: List[Dict[str, str]]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": self.overall,
            "status": self.status,
            "breakdown": {
                name: {"score": score, "weight": WEIGHTS[name], "status": status_for(score)}
                for name, score in self.breakdown.items()
            },
            "issues": self.issues,
        }


def _issue(category: str, severity: str, message: str) -> Dict[str, str]:
    return {"category": category, "severity": severity, "message": message}


def _ctr_score(ctr: float) -> float:
    if ctr >= BENCHMARKS["excellentCtr"]:
        return 100.0
    if ctr >= BENCHMARKS["goodCtr"]:
        return 85.0
    if ctr >= BENCHMARKS["avgCtr"]:
        return 70.0
    if ctr >= 0.02:
        return 55.0
    if ctr >= CRITICAL_CTR:
        return 40.0
    return 15.0


def _conversion_rate_score(cvr: float) -> float:
    if cvr >= 0.05:
        return 100.0
    if cvr >= 0.03:
        return 80.0
    if cvr >= 0.01:
        return 60.0
    if cvr > 0:
        return 40.0
    return 10.0


def _structure(inputs: HealthInputs, issues: List[Dict[str, str]]) -> float:
    if inputs.active_campaigns == 0:
        issues.append(_issue("structure", "critical", "No active campaigns"))
        return 0.0
    incomplete = inputs.active_campaigns - inputs.complete_campaigns
    if incomplete > 0:
        issues.append(_issue(
            "structure", "warning",
            f"{incomplete} active campaign(s) missing ads or keywords",
        ))
    return clamp(100.0 * inputs.complete_campaigns / inputs.active_campaigns)


def _performance(inputs: HealthInputs, issues: List[Dict[str, str]]) -> float:
    if inputs.impressions == 0:
        issues.append(_issue("performance", "warning", "No impressions in the period"))
        return 0.0
    ctr = inputs.clicks / inputs.impressions
    if ctr < CRITICAL_CTR:
        issues.append(_issue("performance", "critical", f"CTR {ctr:.2%} is below 1%"))
    elif ctr < BENCHMARKS["avgCtr"]:
        issues.append(_issue(
            "performance", "warning",
            f"CTR {ctr:.2%} is below the {BENCHMARKS['avgCtr']:.1%} benchmark",
        ))
    cvr = inputs.conversions / inputs.clicks if inputs.clicks else 0.0
    if inputs.clicks and inputs.conversions == 0:
        issues.append(_issue("performance", "critical", f"{inputs.clicks} clicks with no conversions"))
    return clamp(0.6 * _ctr_score(ctr) + 0.4 * _conversion_rate_score(cvr))


def _budget_efficiency(inputs: HealthInputs, issues: List[Dict[str, str]]) -> float:
    if inputs.total_cost <= 0:
        return 100.0
    share = inputs.converting_cost / inputs.total_cost
    if share < 0.5:
        wasted = inputs.total_cost - inputs.converting_cost
        issues.append(_issue(
            "budget_efficiency", "critical" if share < 0.2 else "warning",
            f"${wasted:.2f} spent on campaigns without conversions",
        ))
    return clamp(100.0 * share)


def _keyword_quality(inputs: HealthInputs, issues: List[Dict[str, str]]) -> float:
    if not inputs.quality_scores:
        return 50.0
    avg = sum(inputs.quality_scores) / len(inputs.quality_scores)
    if avg < BENCHMARKS["avgQualityScore"]:
        issues.append(_issue(
            "keyword_quality", "critical" if avg < 5 else "warning",
            f"Average quality score {avg:.1f} is below {BENCHMARKS['avgQualityScore']}",
        ))
    return clamp(avg * 10)


def _ad_copy(inputs: HealthInputs, issues: List[Dict[str, str]]) -> float:
    if inputs.avg_headlines is None or inputs.avg_descriptions is None:
        issues.append(_issue("ad_copy", "warning", "No responsive search ads found"))
        return 0.0
    if inputs.avg_headlines < RECOMMENDED_HEADLINES:
        issues.append(_issue(
            "ad_copy", "warning",
            f"Ads average {inputs.avg_headlines:.1f} headlines (recommended {RECOMMENDED_HEADLINES}+)",
        ))
    if inputs.avg_descriptions < RECOMMENDED_DESCRIPTIONS:
        issues.append(_issue(
            "ad_copy", "warning",
            f"Ads average {inputs.avg_descriptions:.1f} descriptions (recommended {RECOMMENDED_DESCRIPTIONS}+)",
        ))
    return clamp(
        min(inputs.avg_headlines / RECOMMENDED_HEADLINES, 1.0) * 60
        + min(inputs.avg_descriptions / RECOMMENDED_DESCRIPTIONS, 1.0) * 40
    )


def compute_health_score(inputs: HealthInputs) -> HealthScore:
    issues: List[Dict[str, str]] = []
    breakdown = {
        "structure": round(_structure(inputs, issues), 1),
        "performance": round(_performance(inputs, issues), 1),
        "budget_efficiency": round(_budget_efficiency(inputs, issues), 1),
        "keyword_quality": round(_keyword_quality(inputs, issues), 1),
        "ad_copy": round(_ad_copy(inputs, issues), 1),
    }
    overall = round(clamp(sum(breakdown[k] * w for k, w in WEIGHTS.items())), 1)
    return HealthScore(overall=overall, status=status_for(overall), breakdown=breakdown, issues=issues)


def build_inputs(
    campaigns: List[Dict[str, Any]],
    keywords: List[Dict[str, Any]],
    ads: List[Dict[str, Any]],
) -> HealthInputs:
    """Aggregate fetched campaign, keyword and ad snapshots."""
    active = [c for c in campaigns if c.get("status") == "ENABLED"]
    with_ads = {str(a.get("campaign_id")) for a in ads}
    with_keywords = {str(k.get("campaign_id")) for k in keywords}
    complete = [c for c in active if str(c.get("id")) in with_ads and str(c.get("id")) in with_keywords]

    rsas = [a for a in ads if a.get("headlines") or a.get("descriptions")]
    avg_headlines = sum(len(a.get("headlines") or []) for a in rsas) / len(rsas) if rsas else None
    avg_descriptions = sum(len(a.get("descriptions") or []) for a in rsas) / len(rsas) if rsas else None

    return HealthInputs(
        active_campaigns=len(active),
        complete_campaigns=len(complete),
        impressions=sum(int(c.get("impressions") or 0) for c in campaigns),
        clicks=sum(int(c.get("clicks") or 0) for c in campaigns),
        conversions=sum(float(c.get("conversions") or 0) for c in campaigns),
        total_cost=sum(float(c.get("cost") or 0) for c in campaigns),
        converting_cost=sum(float(c.get("cost") or 0) for c in campaigns if (c.get("conversions") or 0) > 0),
        quality_scores=[k["quality_score"] for k in keywords if k.get("quality_score") is not None],
        avg_headlines=avg_headlines,
        avg_descriptions=avg_descriptions,
    )


def score_account(
    campaigns: List[Dict[str, Any]],
    keywords: List[Dict[str, Any]],
    ads: List[Dict[str, Any]],
) -> HealthScore:
    return compute_health_score(build_inputs(campaigns, keywords, ads))
