"""AI insight endpoints.

WHAT:
    LLM-backed campaign analysis, search term classification, audit
    summaries and ad copy generation.

WHY:
    All of these degrade to rule-based output ("fallback": true) when the
    model is unavailable, so the endpoints answer 200 either way.

REFERENCES:
    - backend/app/services/ai_insights.py
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends

from .. import schemas
from ..deps import get_current_user
from ..models import User
from ..services import ai_insights
from ..services.analyzers.audit import run_enterprise_audit
from ..services.google_ads_client import GAdsClient
from .google_ads_deps import get_customer_client

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["Insights"],
    responses={
        401: {"model": schemas.ErrorResponse, "description": "Unauthorized"},
    },
)


@router.post("/customers/{customer_id}/insights/campaigns", summary="AI campaign analysis")
def campaign_insights(customer_id: str, client: GAdsClient = Depends(get_customer_client)):
    result = ai_insights.analyze_campaigns(client.list_campaigns(customer_id))
    return {"success": True, **result}


@router.post("/customers/{customer_id}/insights/search-terms", summary="AI search term classification")
def search_term_insights(
    customer_id: str,
    campaign_id: Optional[str] = None,
    client: GAdsClient = Depends(get_customer_client),
):
    terms = client.list_search_terms(customer_id, campaign_id=campaign_id)
    return {"success": True, **ai_insights.classify_search_terms(terms)}


@router.post("/customers/{customer_id}/insights/audit-summary", summary="AI audit summary")
def audit_summary(
    customer_id: str,
    payload: Optional[schemas.AuditSummaryRequest] = None,
    client: GAdsClient = Depends(get_customer_client),
):
    audit = payload.audit if payload and payload.audit else run_enterprise_audit(client, customer_id, date.today())
    return {"success": True, **ai_insights.summarize_audit(audit)}


@router.post("/insights/ad-copy", summary="Generate RSA ad copy")
def ad_copy(
    payload: schemas.AdCopyRequest,
    current_user: User = Depends(get_current_user),
):
    logger.info("[AI_INSIGHTS] Ad copy requested by user %s", current_user.id)
    return {"success": True, **ai_insights.generate_ad_copy(payload.business, payload.keywords)}
