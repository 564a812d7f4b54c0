"""
Custom Optimization Rules.

WHAT:
    User-editable rules ("if clicks >= 50 and no conversions, pause") that
    are evaluated against campaign snapshots and turned into proposed
    optimizations.

WHY:
    The built-in heuristics cover common waste patterns; rules let an
    account manager encode their own thresholds without a deploy.

DESIGN:
    - A rule = condition (see conditions.py) + action + priority
    - Campaign snapshots are flattened into an observations dict first, so
      derived metrics (average_cpc, daily_spend, budget_utilization) are
      available to conditions
    - Evaluation never raises for a single bad campaign; it is logged and
      skipped

REFERENCES:
    - backend/app/services/analyzers/conditions.py
    - backend/app/services/optimization_executor.py (executes to_action())
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from app.services.analyzers.conditions import (
    CompositeCondition,
    Condition,
    EvalContext,
    FieldEqualsCondition,
    ThresholdCondition,
    condition_from_dict,
)
from app.services.optimization_executor import OptimizationAction

logger = logging.getLogger(__name__)

# Campaign metrics from list_campaigns() cover LAST_30_DAYS
DEFAULT_PERIOD_DAYS = 30


class RuleAction(str, Enum):
    pause_campaign = "pause_campaign"
    reduce_budget = "reduce_budget"
    add_negative_keywords = "add_negative_keywords"
    adjust_bids = "adjust_bids"
    alert_only = "alert_only"


ESTIMATED_IMPACT = {
    RuleAction.pause_campaign: "Stop wasteful spend immediately",
    RuleAction.reduce_budget: "-30% spend, maintain performance",
    RuleAction.add_negative_keywords: "-10% wasteful clicks",
    RuleAction.adjust_bids: "Optimize cost per click",
    RuleAction.alert_only: "Manual review recommended",
}

IMPACT_BY_PRIORITY = {"high": "High", "medium": "Medium", "low": "Low"}

RULE_CONFIDENCE = 95


@dataclass
class CustomRule:
    """
    One optimization rule.

    Attributes:
        id: Stable identifier (used in optimization IDs)
        name: Display name
        description: Shown in the optimization description
        condition: When the rule fires
        action: What to propose when it fires
        action_params: e.g. {"percentage": 25} for reduce_budget
        priority: high / medium / low
        enabled: Disabled rules are never evaluated
    """

    id: str
    name: str
    description: str
    condition: Condition
    action: RuleAction
    action_params: Dict[str, Any] = field(default_factory=dict)
    priority: str = "medium"
    enabled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "condition": self.condition.to_dict(),
            "condition_text": self.condition.explain(),
            "action": self.action.value,
            "action_params": self.action_params,
            "priority": self.priority,
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CustomRule":
        if not isinstance(data.get("action_params") or {}, dict):
            raise ValueError("action_params must be an object")
        priority = str(data.get("priority", "medium")).lower()
        if priority not in IMPACT_BY_PRIORITY:
            raise ValueError(f"Invalid rule priority: {priority}")
        return cls(
            id=str(data["id"]),
            name=data["name"],
            description=data.get("description", ""),
            condition=condition_from_dict(data["condition"]),
            action=RuleAction(data["action"]),
            action_params=dict(data.get("action_params") or {}),
            priority=priority,
            enabled=bool(data.get("enabled", True)),
        )


@dataclass
class CustomOptimization:
    """A rule that fired for one campaign."""

    id: str
    rule_id: str
    campaign_id: str
    campaign_name: str
    title: str
    description: str
    action: RuleAction
    action_params: Dict[str, Any]
    impact: str
    confidence: int
    estimated_impact: str
    triggered_by: str
    explanation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "ruleId": self.rule_id,
            "campaignId": self.campaign_id,
            "campaignName": self.campaign_name,
            "title": self.title,
            "description": self.description,
            "type": self.action.value,
            "actionParams": self.action_params,
            "impact": self.impact,
            "confidence": self.confidence,
            "estimatedImpact": self.estimated_impact,
            "triggeredBy": self.triggered_by,
            "explanation": self.explanation,
        }

    def to_action(self) -> OptimizationAction:
        payload = dict(self.action_params)
        if self.action == RuleAction.alert_only:
            payload.setdefault("message", self.description)
        return OptimizationAction(
            id=self.id,
            type=self.action.value,
            campaign_id=self.campaign_id,
            payload=payload,
            title=self.title,
        )


def campaign_observations(campaign: Dict[str, Any], period_days: int = DEFAULT_PERIOD_DAYS) -> Dict[str, Any]:
    """Flatten a campaign snapshot and add derived metrics."""
    clicks = campaign.get("clicks") or 0
    impressions = campaign.get("impressions") or 0
    cost = campaign.get("cost") or 0.0
    budget = campaign.get("budget") or 0.0

    ctr = campaign.get("ctr")
    if ctr is None:
        ctr = clicks / impressions if impressions else 0.0

    daily_spend = cost / period_days if period_days else 0.0

    observations = dict(campaign)
    observations.update({
        "clicks": clicks,
        "impressions": impressions,
        "cost": cost,
        "conversions": campaign.get("conversions") or 0,
        "ctr": ctr,
        # Derived from totals; the API's averageCpc is ignored when clicks are 0
        "average_cpc": cost / clicks if clicks else 0.0,
        "daily_spend": daily_spend,
        "budget_utilization": daily_spend / budget if budget else None,
    })
    return observations


def default_rules() -> List[CustomRule]:
    """Built-in rule set."""
    return [
        CustomRule(
            id="high_clicks_no_conversions",
            name="High Clicks, No Conversions",
            description="Campaign has received many clicks without a single conversion",
            condition=CompositeCondition("and", [
                ThresholdCondition("clicks", "gte", 50),
                ThresholdCondition("conversions", "eq", 0),
            ]),
            action=RuleAction.pause_campaign,
            priority="high",
        ),
        CustomRule(
            id="low_ctr_high_spend",
            name="Low CTR, High Spend",
            description="CTR below 1% while spending over $100",
            condition=CompositeCondition("and", [
                ThresholdCondition("ctr", "lt", 0.01),
                ThresholdCondition("cost", "gt", 100),
            ]),
            action=RuleAction.alert_only,
            priority="medium",
        ),
        CustomRule(
            id="zero_impressions",
            name="Zero Impressions",
            description="Enabled campaign is not serving",
            condition=CompositeCondition("and", [
                FieldEqualsCondition("status", "ENABLED"),
                ThresholdCondition("impressions", "eq", 0),
            ]),
            action=RuleAction.alert_only,
            priority="medium",
        ),
        CustomRule(
            id="expensive_keywords",
            name="Expensive Clicks",
            description="Average cost per click above $10",
            condition=ThresholdCondition("average_cpc", "gt", 10),
            action=RuleAction.adjust_bids,
            action_params={"action": "reduce", "percentage": 20},
            priority="medium",
        ),
        CustomRule(
            id="budget_overspend",
            name="Budget Overspend",
            description="Daily spend exceeds 150% of the daily budget",
            condition=ThresholdCondition("budget_utilization", "gt", 1.5),
            action=RuleAction.reduce_budget,
            action_params={"percentage": 25},
            priority="high",
            enabled=False,
        ),
    ]


def _build_optimization(rule: CustomRule, campaign: Dict[str, Any], explanation: str) -> CustomOptimization:
    campaign_id = str(campaign.get("id"))
    name = campaign.get("name") or campaign_id
    clicks = campaign.get("clicks") or 0
    cost = float(campaign.get("cost") or 0.0)
    return CustomOptimization(
        id=f"custom_{rule.id}_{campaign_id}",
        rule_id=rule.id,
        campaign_id=campaign_id,
        campaign_name=name,
        title=f"{rule.name}: {name}",
        description=f"{rule.description} - Campaign: {name} ({clicks} clicks, ${cost:.2f} spend)",
        action=rule.action,
        action_params=dict(rule.action_params),
        impact=IMPACT_BY_PRIORITY.get(rule.priority, "Medium"),
        confidence=RULE_CONFIDENCE,
        estimated_impact=ESTIMATED_IMPACT.get(rule.action, "Custom optimization"),
        triggered_by=f"Rule: {rule.name}",
        explanation=explanation,
    )


def evaluate_rules(
    campaigns: List[Dict[str, Any]],
    rules: Optional[List[CustomRule]] = None,
    period_days: int = DEFAULT_PERIOD_DAYS,
) -> List[CustomOptimization]:
    """
    Evaluate enabled rules against every campaign.

    Returns one optimization per (rule, campaign) match, rules in their
    given order within each campaign.
    """
    rules = default_rules() if rules is None else rules
    active = [r for r in rules if r.enabled]
    optimizations: List[CustomOptimization] = []

    for campaign in campaigns:
        try:
            context = EvalContext(
                observations=campaign_observations(campaign, period_days),
                entity_id=str(campaign.get("id")),
                entity_name=campaign.get("name"),
            )
        except Exception as e:
            logger.warning("[OPTIMIZER] Could not read metrics for campaign %s: %s", campaign.get("id"), e)
            continue

        for rule in active:
            try:
                result = rule.condition.evaluate(context)
                if result.met:
                    optimizations.append(_build_optimization(rule, campaign, result.explanation))
            except Exception as e:
                # One broken rule must not hide the others
                logger.warning(
                    "[OPTIMIZER] Rule %s failed for campaign %s: %s", rule.id, campaign.get("id"), e
                )

    logger.info(
        "[OPTIMIZER] %d rules over %d campaigns produced %d optimizations",
        len(active), len(campaigns), len(optimizations)
    )
    return optimizations
