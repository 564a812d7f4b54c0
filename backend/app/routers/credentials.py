"""Google Ads credential management endpoints.

WHAT:
    Status, save and connection test for the user's Google Ads credentials.

WHY:
    Users can bring their own developer token and OAuth client; everyone
    else runs on the shared service credentials. The UI needs to know which
    applies before it calls any account endpoint.

REFERENCES:
    - backend/app/services/credential_service.py
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..deps import get_current_user
from ..models import User
from ..services.credential_service import (
    create_client,
    credentials_status,
    resolve_credentials,
    save_user_credentials,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/credentials",
    tags=["Credentials"],
    responses={
        401: {"model": schemas.ErrorResponse, "description": "Unauthorized"},
        412: {"model": schemas.ErrorResponse, "description": "Credentials not configured"},
    },
)


@router.get("/status", response_model=schemas.CredentialsStatusResponse, summary="Credential status")
def get_status(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Whether Google Ads calls can be made for the current user, and with what."""
    return credentials_status(db, current_user)


@router.put("", response_model=schemas.CredentialsStatusResponse, summary="Save credentials")
def put_credentials(
    payload: schemas.CredentialsUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Create or update the user's credentials.

    Secrets are stored encrypted; empty secret fields keep the stored value.
    """
    save_user_credentials(
        db,
        current_user,
        uses_own_credentials=payload.uses_own_credentials,
        customer_id=payload.customer_id,
        developer_token=payload.developer_token,
        client_id=payload.client_id,
        client_secret=payload.client_secret,
        refresh_token=payload.refresh_token,
    )
    return credentials_status(db, current_user)


@router.post("/test", summary="Test credentials")
def test_credentials(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Refresh a token and list accessible customers.

    Failures surface through the standard error body (412 not configured,
    401 refresh rejected, 403/502 Google Ads errors).
    """
    credentials = resolve_credentials(db, current_user)
    customers = create_client(credentials).list_accessible_customers()
    logger.info(
        "[CREDENTIALS] Test for user %s succeeded: %d accessible customers",
        current_user.id, len(customers)
    )
    return {
        "success": True,
        "accessible_customers": customers,
        **credentials.public_dict(),
    }
