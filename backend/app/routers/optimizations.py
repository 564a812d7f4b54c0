"""Optimization execution endpoint.

WHAT:
    Executes approved optimizations against one customer and logs every
    executed item to optimization_executions.

REFERENCES:
    - backend/app/services/optimization_executor.py
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..deps import get_current_user
from ..models import User
from ..services.google_ads_client import GAdsClient
from ..services.optimization_executor import OptimizationAction, execute_optimizations
from .google_ads_deps import get_customer_client

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/customers",
    tags=["Optimizations"],
    responses={
        401: {"model": schemas.ErrorResponse, "description": "Unauthorized"},
    },
)


@router.post("/{customer_id}/optimizations/execute", summary="Execute optimizations")
def execute(
    customer_id: str,
    payload: schemas.ExecuteRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    client: GAdsClient = Depends(get_customer_client),
):
    """
    One result per submitted optimization, in order.

    Individual failures do not fail the request; check each result's
    success flag.
    """
    actions = [OptimizationAction.from_dict(item.model_dump()) for item in payload.optimizations]
    batch = execute_optimizations(
        client,
        customer_id,
        actions,
        approved_ids=payload.approved_ids,
        db=db,
        user_id=current_user.id,
    )
    return batch.to_dict()
