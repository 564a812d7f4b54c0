"""Google Ads account and MCC hierarchy endpoints.

WHAT:
    Account listing, MCC hierarchy detection/lookup and login-customer-id
    resolution.

REFERENCES:
    - backend/app/services/mcc_resolver.py
    - backend/app/routers/google_ads_deps.py
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..deps import get_current_user
from ..models import McCHierarchyRecord, User
from ..services.credential_service import GoogleAdsCredentials
from ..services.google_ads_client import GAdsClient
from ..services.mcc_resolver import ManagerAccountResolver, detect_hierarchy, get_login_customer_id
from .google_ads_deps import get_base_client, get_credentials, get_resolver

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/accounts",
    tags=["Accounts"],
    responses={
        401: {"model": schemas.ErrorResponse, "description": "Unauthorized"},
        403: {"model": schemas.ErrorResponse, "description": "No access path"},
        412: {"model": schemas.ErrorResponse, "description": "Credentials not configured"},
    },
)


@router.get("", summary="List accessible accounts")
def list_accounts(client: GAdsClient = Depends(get_base_client)):
    """Accessible customers with name, currency and manager flag.

    Accounts that cannot be read are still listed with accessible=false.
    """
    accounts = client.list_accounts()
    return {"success": True, "accounts": accounts}


@router.post("/hierarchy/detect", summary="Detect MCC hierarchy")
def detect(
    payload: Optional[schemas.HierarchyDetectRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    credentials: GoogleAdsCredentials = Depends(get_credentials),
    client: GAdsClient = Depends(get_base_client),
):
    """Rebuild the stored hierarchy from the primary account."""
    primary = (payload.primary_customer_id if payload else None) or credentials.customer_id
    if not primary:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No primary customer ID given or configured")
    result = detect_hierarchy(db, current_user.id, client, primary)
    return {"success": True, **result}


@router.get("/hierarchy", summary="Stored MCC hierarchy")
def get_hierarchy(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    records = (
        db.query(McCHierarchyRecord)
        .filter(McCHierarchyRecord.user_id == current_user.id)
        .order_by(McCHierarchyRecord.level, McCHierarchyRecord.customer_id)
        .all()
    )
    return {"success": True, "accounts": [r.to_dict() for r in records]}


@router.get(
    "/{customer_id}/login-customer-id",
    response_model=schemas.LoginCustomerIdResponse,
    summary="Resolve login-customer-id",
)
def login_customer_id(
    customer_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    resolver: ManagerAccountResolver = Depends(get_resolver),
):
    """Which login-customer-id to send for `customer_id`, and how it was found."""
    return get_login_customer_id(db, current_user.id, customer_id, resolver)
