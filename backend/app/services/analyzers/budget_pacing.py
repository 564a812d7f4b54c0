"""
Budget Pacing.

WHAT:
    Compares month-to-date spend with what the daily budget would have
    spent by today, and projects the month.

WHY:
    Overspending burns the monthly allocation early; underpacing leaves
    reach on the table. Both are easy to miss in a campaign list.

RULES:
    expected = daily_budget * days_elapsed
    ratio    = actual / expected
    ratio > 1.5  -> overspending
    ratio < 0.8  -> underpacing
    otherwise    -> on_track
    budget == 0  -> no_budget
"""

import calendar
from datetime import date
from typing import Any, Dict, List

OVERSPEND_RATIO = 1.5
UNDERPACE_RATIO = 0.8


def compute_pacing(campaign: Dict[str, Any], today: date) -> Dict[str, Any]:
    """
    Pacing for one campaign.

    Parameters:
        campaign: Snapshot with "budget" (daily) and "cost" (month to date)
        today: Reference date; today's spend counts as a full day
    """
    daily_budget = float(campaign.get("budget") or 0.0)
    actual = float(campaign.get("cost") or 0.0)
    days_in_month = calendar.monthrange(today.year, today.month)[1]
    days_elapsed = today.day
    days_remaining = days_in_month - days_elapsed

    result: Dict[str, Any] = {
        "campaign_id": str(campaign.get("id")),
        "campaign_name": campaign.get("name"),
        "daily_budget": round(daily_budget, 2),
        "actual_spend": round(actual, 2),
        "days_elapsed": days_elapsed,
        "days_in_month": days_in_month,
    }

    if daily_budget <= 0:
        result.update({
            "status": "no_budget",
            "expected_spend": 0.0,
            "pacing_ratio": None,
            "projected_month_spend": round(actual / days_elapsed * days_in_month, 2),
            "recommended_daily_budget": None,
        })
        return result

    expected = daily_budget * days_elapsed
    ratio = actual / expected
    if ratio > OVERSPEND_RATIO:
        status = "overspending"
    elif ratio < UNDERPACE_RATIO:
        status = "underpacing"
    else:
        status = "on_track"

    monthly_budget = daily_budget * days_in_month
    if days_remaining > 0:
        recommended = max(0.0, (monthly_budget - actual) / days_remaining)
    else:
        recommended = daily_budget

    result.update({
        "status": status,
        "expected_spend": round(expected, 2),
        "pacing_ratio": round(ratio, 3),
        "projected_month_spend": round(actual / days_elapsed * days_in_month, 2),
        "monthly_budget": round(monthly_budget, 2),
        "recommended_daily_budget": round(recommended, 2),
    })
    return result


def summarize_pacing(campaigns: List[Dict[str, Any]], today: date) -> Dict[str, Any]:
    """Pacing for every campaign plus status counts."""
    rows = [compute_pacing(c, today) for c in campaigns]
    counts: Dict[str, int] = {"overspending": 0, "underpacing": 0, "on_track": 0, "no_budget": 0}
    for r in rows:
        counts[r["status"]] += 1
    return {"as_of": today.isoformat(), "campaigns": rows, "summary": counts}
