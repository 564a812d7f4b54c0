"""
Batch Optimization Executor.

WHAT:
    Applies a batch of proposed optimizations (pause, budget change,
    negative keywords, bid adjustment, alerts) to one Google Ads customer.

WHY:
    Users approve optimizations in bulk. One failing mutation must not
    abort the rest, and the UI needs a per-item outcome it can line up with
    what it sent: the result list always has exactly one entry per input
    action, in input order.

FLOW (per action):
    1. Approval check → unapproved actions are recorded as skipped
    2. Dispatch by type → Google Ads mutation (alert_only mutates nothing)
    3. Capture success/error + duration
    4. Log → optimization_executions row (when a session is given)

REFERENCES:
    - backend/app/services/google_ads_client.py (mutations)
    - backend/app/services/analyzers/custom_rules.py (produces actions)
    - backend/app/services/smart_optimizer.py (produces actions)
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session

from app.models import OptimizationExecution, OptimizationTypeEnum
from app.services.google_ads_client import GAdsClient, clean_customer_id
from app.telemetry import capture_exception

logger = logging.getLogger(__name__)


@dataclass
class OptimizationAction:
    """
    A proposed mutation.

    Attributes:
        id: Stable identifier the UI uses for approval
        type: One of OptimizationTypeEnum values
        campaign_id: Target campaign (not needed for alert_only)
        payload: Type-specific parameters (percentage, keywords, amount, ...)
        title: Human-readable label
    """

    id: str
    type: str
    campaign_id: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)
    title: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "campaign_id": self.campaign_id,
            "payload": self.payload,
            "title": self.title,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OptimizationAction":
        return cls(
            id=str(data["id"]),
            type=data["type"],
            campaign_id=str(data["campaign_id"]) if data.get("campaign_id") is not None else None,
            payload=dict(data.get("payload") or {}),
            title=data.get("title"),
        )


@dataclass
class ActionResult:
    """
    Result of one optimization.

    Attributes:
        optimization_id: ID of the action this result belongs to
        success: Whether the mutation (or alert) completed
        error: Error message if failed or skipped
        response: Google Ads response or computed state change
        skipped: True when the action was not approved
        duration_ms: Execution time in milliseconds
    """

    optimization_id: str
    action_type: str
    campaign_id: Optional[str]
    success: bool
    title: Optional[str] = None
    error: Optional[str] = None
    response: Optional[Dict[str, Any]] = None
    skipped: bool = False
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "optimization_id": self.optimization_id,
            "action_type": self.action_type,
            "campaign_id": self.campaign_id,
            "title": self.title,
            "success": self.success,
            "error": self.error,
            "response": self.response,
            "skipped": self.skipped,
            "duration_ms": self.duration_ms,
        }


@dataclass
class BatchResult:
    results: List[ActionResult]

    @property
    def executed_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if not r.success and not r.skipped)

    @property
    def skipped_count(self) -> int:
        return sum(1 for r in self.results if r.skipped)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "results": [r.to_dict() for r in self.results],
            "executed_count": self.executed_count,
            "failed_count": self.failed_count,
            "skipped_count": self.skipped_count,
            "total": len(self.results),
        }


class OptimizationExecutor:
    """
    Executes optimization actions against one customer.

    WHAT: Routes each action to the matching Google Ads mutation
    WHY: Per-item isolation, audit trail, one result per input
    """

    def __init__(
        self,
        client: GAdsClient,
        customer_id: str,
        db: Optional[Session] = None,
        user_id: Optional[Any] = None,
    ):
        self.client = client
        self.customer_id = clean_customer_id(customer_id)
        self.db = db
        self.user_id = user_id
        self._handlers = {
            OptimizationTypeEnum.pause_campaign.value: self._pause_campaign,
            OptimizationTypeEnum.enable_campaign.value: self._enable_campaign,
            OptimizationTypeEnum.add_negative_keywords.value: self._add_negative_keywords,
            OptimizationTypeEnum.adjust_bids.value: self._adjust_bids,
            OptimizationTypeEnum.reduce_budget.value: self._reduce_budget,
            OptimizationTypeEnum.update_budget.value: self._update_budget,
            OptimizationTypeEnum.alert_only.value: self._alert_only,
        }

    def execute(
        self,
        actions: Sequence[OptimizationAction],
        approved_ids: Optional[Iterable[str]] = None,
    ) -> BatchResult:
        """
        Execute actions, one result per action in input order.

        Parameters:
            actions: Actions to apply
            approved_ids: When given, only these IDs run; others are skipped
        """
        approved = set(approved_ids) if approved_ids is not None else None
        results: List[ActionResult] = []

        logger.info(
            "[OPTIMIZER] Executing %d optimizations for %s (approved=%s)",
            len(actions), self.customer_id, "all" if approved is None else len(approved)
        )

        for action in actions:
            if approved is not None and action.id not in approved:
                results.append(ActionResult(
                    optimization_id=action.id,
                    action_type=action.type,
                    campaign_id=action.campaign_id,
                    title=action.title,
                    success=False,
                    skipped=True,
                    error="not approved",
                ))
                continue
            results.append(self.execute_one(action))

        batch = BatchResult(results=results)
        self._log(batch)
        logger.info(
            "[OPTIMIZER] Done: %d succeeded, %d failed, %d skipped",
            batch.executed_count, batch.failed_count, batch.skipped_count
        )
        return batch

    def execute_one(self, action: OptimizationAction) -> ActionResult:
        start = time.time()
        try:
            handler = self._handlers.get(action.type)
            if handler is None:
                raise ValueError(f"Unsupported optimization type: {action.type}")
            response = handler(action)
            return ActionResult(
                optimization_id=action.id,
                action_type=action.type,
                campaign_id=action.campaign_id,
                title=action.title,
                success=True,
                response=response,
                duration_ms=int((time.time() - start) * 1000),
            )
        except Exception as e:
            logger.warning("[OPTIMIZER] Optimization %s failed: %s", action.id, e)
            capture_exception(e, extra={"optimization_id": action.id, "customer_id": self.customer_id})
            return ActionResult(
                optimization_id=action.id,
                action_type=action.type,
                campaign_id=action.campaign_id,
                title=action.title,
                success=False,
                error=str(e),
                duration_ms=int((time.time() - start) * 1000),
            )

    # --- Handlers -------------------------------------------------------
    @staticmethod
    def _require_campaign(action: OptimizationAction) -> str:
        if not action.campaign_id:
            raise ValueError(f"{action.type} requires a campaign_id")
        return action.campaign_id

    def _pause_campaign(self, action: OptimizationAction) -> Dict[str, Any]:
        return self.client.pause_campaign(self.customer_id, self._require_campaign(action))

    def _enable_campaign(self, action: OptimizationAction) -> Dict[str, Any]:
        return self.client.enable_campaign(self.customer_id, self._require_campaign(action))

    def _add_negative_keywords(self, action: OptimizationAction) -> Dict[str, Any]:
        keywords = action.payload.get("keywords") or []
        return self.client.add_negative_keywords(
            self.customer_id,
            self._require_campaign(action),
            keywords,
            match_type=action.payload.get("match_type", "BROAD"),
        )

    def _adjust_bids(self, action: OptimizationAction) -> Dict[str, Any]:
        """Explicit bids from payload["bids"], else scale every keyword bid by a percentage."""
        campaign_id = self._require_campaign(action)
        explicit = action.payload.get("bids")
        if explicit:
            updates = [(b["ad_group_id"], b["criterion_id"], float(b["cpc_bid"])) for b in explicit]
        else:
            percentage = float(action.payload.get("percentage", 20))
            direction = -1 if action.payload.get("action", "reduce") == "reduce" else 1
            factor = 1 + direction * percentage / 100
            updates = [
                (kw["ad_group_id"], kw["criterion_id"], max(0.01, round(kw["cpc_bid"] * factor, 2)))
                for kw in self.client.list_keywords(self.customer_id, campaign_id=campaign_id)
                if kw.get("cpc_bid")
            ]
        if not updates:
            raise ValueError(f"No keyword bids to adjust in campaign {campaign_id}")
        return self.client.update_keyword_bids(self.customer_id, updates)

    def _reduce_budget(self, action: OptimizationAction) -> Dict[str, Any]:
        campaign_id = self._require_campaign(action)
        percentage = float(action.payload.get("percentage", 20))
        if not 0 < percentage < 100:
            raise ValueError(f"Budget reduction must be between 0 and 100 percent, got {percentage}")
        budget = self.client.get_campaign_budget(self.customer_id, campaign_id)
        new_amount = round(budget["amount"] * (1 - percentage / 100), 2)
        response = self.client.update_campaign_budget(self.customer_id, budget["resource_name"], new_amount)
        return {"budget_before": budget["amount"], "budget_after": new_amount, "api_response": response}

    def _update_budget(self, action: OptimizationAction) -> Dict[str, Any]:
        campaign_id = self._require_campaign(action)
        if "amount" not in action.payload:
            raise ValueError("update_budget requires payload.amount")
        new_amount = float(action.payload["amount"])
        resource_name = action.payload.get("budget_resource_name")
        budget_before = None
        if not resource_name:
            budget = self.client.get_campaign_budget(self.customer_id, campaign_id)
            resource_name = budget["resource_name"]
            budget_before = budget["amount"]
        response = self.client.update_campaign_budget(self.customer_id, resource_name, new_amount)
        return {"budget_before": budget_before, "budget_after": new_amount, "api_response": response}

    def _alert_only(self, action: OptimizationAction) -> Dict[str, Any]:
        return {"alert": action.payload.get("message", "Manual review recommended")}

    # --- Audit log ------------------------------------------------------
    def _log(self, batch: BatchResult) -> None:
        if self.db is None:
            return
        valid_types = {t.value for t in OptimizationTypeEnum}
        for r in batch.results:
            if r.skipped:
                continue
            self.db.add(OptimizationExecution(
                user_id=self.user_id,
                customer_id=self.customer_id,
                optimization_id=r.optimization_id,
                action_type=OptimizationTypeEnum(r.action_type) if r.action_type in valid_types else None,
                campaign_id=r.campaign_id,
                success=r.success,
                error=r.error,
                response=r.response,
            ))
        self.db.commit()


def execute_optimizations(
    client: GAdsClient,
    customer_id: str,
    actions: Sequence[OptimizationAction],
    approved_ids: Optional[Iterable[str]] = None,
    db: Optional[Session] = None,
    user_id: Optional[Any] = None,
) -> BatchResult:
    """Convenience wrapper around OptimizationExecutor.execute()."""
    return OptimizationExecutor(client, customer_id, db=db, user_id=user_id).execute(actions, approved_ids)
