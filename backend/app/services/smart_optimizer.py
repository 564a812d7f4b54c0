"""
Smart Optimizer
===============

WHAT: Turns campaign and search term snapshots into a list of proposed
      OptimizationActions the user can approve and execute.
WHY: The executor only applies what it is given; this is where "what
     should we change" is decided.
REFERENCES:
    - backend/app/services/analyzers/custom_rules.py (pause proposals)
    - backend/app/services/ai_insights.py (search term labels)
    - backend/app/services/optimization_executor.py (consumer)

PROPOSALS:
    1. Negative keywords: top 3 BLOCK terms by cost, per campaign
    2. Budget increase (+20%) for high-performing campaigns
    3. Whatever the custom rules flag (pause, alerts, bids, budget cuts)
"""

import logging
from typing import Any, Dict, List, Optional

from app.services.ai_insights import classify_term_by_rules
from app.services.analyzers.custom_rules import CustomRule, evaluate_rules
from app.services.optimization_executor import OptimizationAction

logger = logging.getLogger(__name__)

HIGH_PERFORMER_SCORE = 0.3
BUDGET_INCREASE_PCT = 20
MAX_NEGATIVE_KEYWORDS = 3


def campaign_score(campaign: Dict[str, Any]) -> float:
    """ctr * 0.4 + (conversions / cost) * 0.6; 0 when nothing was spent."""
    cost = float(campaign.get("cost") or 0)
    if cost <= 0:
        return 0.0
    ctr = float(campaign.get("ctr") or 0)
    conversions = float(campaign.get("conversions") or 0)
    return ctr * 0.4 + (conversions / cost) * 0.6


def is_high_performing(campaign: Dict[str, Any]) -> bool:
    return campaign_score(campaign) > HIGH_PERFORMER_SCORE


def _negative_keyword_actions(
    search_terms: List[Dict[str, Any]],
    classifications: Optional[List[Dict[str, Any]]],
) -> List[OptimizationAction]:
    if classifications is None:
        classifications = [classify_term_by_rules(t) for t in search_terms]
    labels = {
        str(c.get("search_term") or "").lower(): c.get("classification")
        for c in classifications
    }

    blocked: Dict[str, List[Dict[str, Any]]] = {}
    for term in search_terms:
        if labels.get(str(term.get("search_term") or "").lower()) == "BLOCK":
            blocked.setdefault(str(term.get("campaign_id")), []).append(term)

    actions = []
    for campaign_id, terms in blocked.items():
        top = sorted(terms, key=lambda t: float(t.get("cost") or 0), reverse=True)[:MAX_NEGATIVE_KEYWORDS]
        wasted = sum(float(t.get("cost") or 0) for t in top)
        actions.append(OptimizationAction(
            id=f"negatives_{campaign_id}",
            type="add_negative_keywords",
            campaign_id=campaign_id,
            payload={
                "keywords": [t["search_term"] for t in top],
                "match_type": "PHRASE",
                "wasted_spend": round(wasted, 2),
            },
            title=f"Block {len(top)} wasteful search term(s) in {top[0].get('campaign_name') or campaign_id}",
        ))
    return actions


def _budget_increase_actions(campaigns: List[Dict[str, Any]]) -> List[OptimizationAction]:
    actions = []
    for c in campaigns:
        budget = float(c.get("budget") or 0)
        if c.get("status") != "ENABLED" or budget <= 0 or not is_high_performing(c):
            continue
        new_budget = round(budget * (1 + BUDGET_INCREASE_PCT / 100), 2)
        actions.append(OptimizationAction(
            id=f"scale_{c['id']}",
            type="update_budget",
            campaign_id=str(c["id"]),
            payload={
                "amount": new_budget,
                "budget_resource_name": c.get("budget_resource_name"),
                "score": round(campaign_score(c), 3),
            },
            title=f"Increase budget for {c.get('name')} to ${new_budget:.2f}/day",
        ))
    return actions


def suggest_optimizations(
    campaigns: List[Dict[str, Any]],
    search_terms: Optional[List[Dict[str, Any]]] = None,
    classifications: Optional[List[Dict[str, Any]]] = None,
    rules: Optional[List[CustomRule]] = None,
) -> List[OptimizationAction]:
    """
    Proposed actions, deduplicated by ID.

    Parameters:
        campaigns: Snapshots from list_campaigns()
        search_terms: Snapshots from list_search_terms()
        classifications: Labels from classify_search_terms(); rules are used when omitted
        rules: Custom rule set; defaults when omitted
    """
    actions: List[OptimizationAction] = []
    actions += _negative_keyword_actions(search_terms or [], classifications)
    actions += _budget_increase_actions(campaigns)
    actions += [o.to_action() for o in evaluate_rules(campaigns, rules)]

    # A campaign being paused should not also be scaled
    paused = {a.campaign_id for a in actions if a.type == "pause_campaign"}
    seen = set()
    unique: List[OptimizationAction] = []
    for a in actions:
        if a.id in seen or (a.type == "update_budget" and a.campaign_id in paused):
            continue
        seen.add(a.id)
        unique.append(a)

    logger.info(
        "[OPTIMIZER] Suggested %d optimizations for %d campaigns", len(unique), len(campaigns)
    )
    return unique
