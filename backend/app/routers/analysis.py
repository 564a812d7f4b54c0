"""Account analysis endpoints.

WHAT:
    Health score, budget pacing, custom rules, enterprise audit and
    optimization suggestions for one customer.

WHY:
    Deterministic analyses the dashboard shows without an OpenAI key; the
    suggestions feed the approval + execute workflow.

REFERENCES:
    - backend/app/services/analyzers/
    - backend/app/services/smart_optimizer.py
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from .. import schemas
from ..services.ai_insights import classify_search_terms
from ..services.analyzers.audit import run_enterprise_audit
from ..services.analyzers.budget_pacing import summarize_pacing
from ..services.analyzers.custom_rules import CustomRule, default_rules, evaluate_rules
from ..services.analyzers.health_score import score_account
from ..services.google_ads_client import GAdsClient, clean_customer_id
from ..services.smart_optimizer import suggest_optimizations
from .google_ads_deps import get_customer_client

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/customers",
    tags=["Analysis"],
    responses={
        401: {"model": schemas.ErrorResponse, "description": "Unauthorized"},
        403: {"model": schemas.ErrorResponse, "description": "No access path"},
        429: {"model": schemas.ErrorResponse, "description": "Quota exhausted"},
    },
)


def _parse_rules(raw: list) -> list:
    try:
        return [CustomRule.from_dict(r) for r in raw]
    except (KeyError, ValueError, TypeError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid rule: {e}")


@router.get("/{customer_id}/health-score", summary="Account health score")
def health_score(customer_id: str, client: GAdsClient = Depends(get_customer_client)):
    campaigns = client.list_campaigns(customer_id)
    keywords = client.list_keywords(customer_id)
    ads = client.list_ads(customer_id)
    score = score_account(campaigns, keywords, ads)
    return {"success": True, "customer_id": clean_customer_id(customer_id), **score.to_dict()}


@router.get("/{customer_id}/budget-pacing", summary="Month-to-date budget pacing")
def budget_pacing(customer_id: str, client: GAdsClient = Depends(get_customer_client)):
    campaigns = client.list_campaigns(customer_id, date_range="THIS_MONTH", active_only=True)
    return {"success": True, **summarize_pacing(campaigns, date.today())}


@router.get("/{customer_id}/custom-rules", summary="Evaluate the default rules")
def default_custom_rules(customer_id: str, client: GAdsClient = Depends(get_customer_client)):
    rules = default_rules()
    optimizations = evaluate_rules(client.list_campaigns(customer_id), rules)
    return {
        "success": True,
        "rules": [r.to_dict() for r in rules],
        "optimizations": [o.to_dict() for o in optimizations],
    }


@router.post("/{customer_id}/custom-rules", summary="Evaluate a custom rule set")
def custom_rules(
    customer_id: str,
    payload: schemas.CustomRulesRequest,
    client: GAdsClient = Depends(get_customer_client),
):
    rules = _parse_rules(payload.rules)
    optimizations = evaluate_rules(client.list_campaigns(customer_id), rules)
    return {
        "success": True,
        "rules": [r.to_dict() for r in rules],
        "optimizations": [o.to_dict() for o in optimizations],
    }


@router.get("/{customer_id}/audit", summary="Enterprise audit")
def audit(customer_id: str, client: GAdsClient = Depends(get_customer_client)):
    return {"success": True, **run_enterprise_audit(client, customer_id, date.today())}


@router.post("/{customer_id}/optimizations/suggest", summary="Suggest optimizations")
def suggest(
    customer_id: str,
    payload: Optional[schemas.SuggestRequest] = None,
    client: GAdsClient = Depends(get_customer_client),
):
    """
    Proposed optimizations to review and approve.

    Search terms are labelled by rules unless use_ai is set.
    """
    payload = payload or schemas.SuggestRequest()
    rules = _parse_rules(payload.rules) if payload.rules else None

    campaigns = client.list_campaigns(customer_id)
    search_terms = client.list_search_terms(customer_id)
    classifications = None
    if payload.use_ai:
        classifications = classify_search_terms(search_terms)["classifications"]

    actions = suggest_optimizations(campaigns, search_terms, classifications, rules)
    return {"success": True, "optimizations": [a.to_dict() for a in actions], "total": len(actions)}
