"""Campaign listing and mutation endpoints.

WHAT:
    Customer-scoped campaigns, ads, keywords and search terms, plus the
    direct mutations (create, pause, budget, negative keywords).

WHY:
    These are the building blocks the dashboard renders and the manual
    actions a user can take outside the optimization workflow.

REFERENCES:
    - backend/app/services/google_ads_client.py
    - backend/app/routers/google_ads_deps.py (login-customer-id resolution)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from .. import schemas
from ..services.google_ads_client import DATE_RANGE_PRESETS, CampaignDraft, GAdsClient, clean_customer_id
from .google_ads_deps import get_customer_client

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/customers",
    tags=["Campaigns"],
    responses={
        401: {"model": schemas.ErrorResponse, "description": "Unauthorized"},
        403: {"model": schemas.ErrorResponse, "description": "No access path"},
        429: {"model": schemas.ErrorResponse, "description": "Quota exhausted"},
    },
)


def _check_date_range(date_range: str) -> str:
    if date_range not in DATE_RANGE_PRESETS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported date range: {date_range}",
        )
    return date_range


@router.get("/{customer_id}/campaigns", summary="List campaigns")
def list_campaigns(
    customer_id: str,
    date_range: str = Query("LAST_30_DAYS", description="GAQL date preset"),
    active_only: bool = Query(False, description="Only ENABLED campaigns"),
    client: GAdsClient = Depends(get_customer_client),
):
    campaigns = client.list_campaigns(customer_id, date_range=_check_date_range(date_range), active_only=active_only)
    return {"success": True, "customer_id": clean_customer_id(customer_id), "campaigns": campaigns}


@router.get("/{customer_id}/ads", summary="List ads")
def list_ads(
    customer_id: str,
    campaign_id: Optional[str] = Query(None),
    client: GAdsClient = Depends(get_customer_client),
):
    return {"success": True, "ads": client.list_ads(customer_id, campaign_id=campaign_id)}


@router.get("/{customer_id}/keywords", summary="List keywords")
def list_keywords(
    customer_id: str,
    campaign_id: Optional[str] = Query(None),
    date_range: str = Query("LAST_30_DAYS"),
    client: GAdsClient = Depends(get_customer_client),
):
    keywords = client.list_keywords(customer_id, campaign_id=campaign_id, date_range=_check_date_range(date_range))
    return {"success": True, "keywords": keywords}


@router.get("/{customer_id}/search-terms", summary="List search terms")
def list_search_terms(
    customer_id: str,
    campaign_id: Optional[str] = Query(None),
    date_range: str = Query("LAST_30_DAYS"),
    client: GAdsClient = Depends(get_customer_client),
):
    terms = client.list_search_terms(customer_id, campaign_id=campaign_id, date_range=_check_date_range(date_range))
    return {"success": True, "search_terms": terms}


@router.post("/{customer_id}/campaigns", status_code=status.HTTP_201_CREATED, summary="Create campaign")
def create_campaign(
    customer_id: str,
    payload: schemas.CampaignCreateRequest,
    client: GAdsClient = Depends(get_customer_client),
):
    """
    Create a paused Search campaign with budget, ad group, keywords and,
    when enough assets are given, a responsive search ad.
    """
    draft = CampaignDraft(**payload.model_dump())
    result = client.create_campaign(customer_id, draft)
    return {"success": True, **result}


@router.post("/{customer_id}/campaigns/{campaign_id}/pause", summary="Pause campaign")
def pause_campaign(
    customer_id: str,
    campaign_id: str,
    client: GAdsClient = Depends(get_customer_client),
):
    response = client.pause_campaign(customer_id, campaign_id)
    return {"success": True, "campaign_id": campaign_id, "response": response}


@router.post("/{customer_id}/campaigns/{campaign_id}/budget", summary="Update campaign budget")
def update_budget(
    customer_id: str,
    campaign_id: str,
    payload: schemas.BudgetUpdateRequest,
    client: GAdsClient = Depends(get_customer_client),
):
    budget = client.get_campaign_budget(customer_id, campaign_id)
    response = client.update_campaign_budget(customer_id, budget["resource_name"], payload.amount)
    return {
        "success": True,
        "campaign_id": campaign_id,
        "budget_before": budget["amount"],
        "budget_after": payload.amount,
        "response": response,
    }


@router.post("/{customer_id}/negative-keywords", summary="Add negative keywords")
def add_negative_keywords(
    customer_id: str,
    payload: schemas.NegativeKeywordsRequest,
    client: GAdsClient = Depends(get_customer_client),
):
    response = client.add_negative_keywords(
        customer_id, payload.campaign_id, payload.keywords, match_type=payload.match_type
    )
    return {"success": True, "campaign_id": payload.campaign_id, "response": response}
