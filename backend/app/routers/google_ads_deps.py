"""Router dependencies for Google Ads access.

WHAT:
    FastAPI dependencies that resolve the current user's credentials and
    build a client scoped to the right login-customer-id.

WHY:
    Every customer-scoped route needs the same credential + MCC resolution;
    keeping it in dependencies lets tests swap in a fake client with
    `app.dependency_overrides`.
"""

import logging

from fastapi import Depends, Path
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import get_current_user
from ..models import User
from ..services.credential_service import GoogleAdsCredentials, create_client, resolve_credentials
from ..services.google_ads_client import GAdsClient, clean_customer_id
from ..services.mcc_resolver import ManagerAccountResolver
from ..telemetry import set_google_ads_context

logger = logging.getLogger(__name__)


def get_credentials(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> GoogleAdsCredentials:
    return resolve_credentials(db, current_user)


def get_base_client(credentials: GoogleAdsCredentials = Depends(get_credentials)) -> GAdsClient:
    """Client without a login-customer-id (account listing, hierarchy detection)."""
    return create_client(credentials)


def get_resolver(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    client: GAdsClient = Depends(get_base_client),
) -> ManagerAccountResolver:
    return ManagerAccountResolver(client, db=db, user_id=current_user.id)


def get_customer_client(
    customer_id: str = Path(description="Google Ads customer ID, dashes optional"),
    resolver: ManagerAccountResolver = Depends(get_resolver),
) -> GAdsClient:
    """Client carrying the login-customer-id resolved for `customer_id`."""
    target = clean_customer_id(customer_id)
    client = resolver.client_for(target)
    logger.info(
        "[MCC] Using login-customer-id %s for %s (%s)",
        client.login_customer_id, target, resolver.last_method
    )
    set_google_ads_context(target, client.login_customer_id)
    return client
