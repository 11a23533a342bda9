# Disputes Router for the Creator Marketplace
# Admin review and resolution of disputed contracts

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database.config import get_db
from database.models import User
from schemas.marketplace import ContractResponse, DisputeResolveRequest
from auth.roles import Permission
from auth.decorators import require_admin, require_permission
from core.stripe_service import StripeService, get_stripe_service
from services.dispute_service import DisputeService

router = APIRouter(prefix="/admin/disputes", tags=["Admin - Disputes"])


# ============================================================================
# ADMIN DISPUTE ENDPOINTS
# ============================================================================

@router.get("")
async def list_disputes(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    gateway: StripeService = Depends(get_stripe_service),
    current_user: User = Depends(require_admin())
):
    """List contracts currently in dispute."""
    contracts, total = DisputeService(db, gateway).list_disputed_contracts(page, limit)
    return {
        "disputes": [ContractResponse.model_validate(c) for c in contracts],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": (total + limit - 1) // limit,
        },
    }


@router.post("/{contract_id}/resolve", response_model=ContractResponse)
async def resolve_dispute(
    contract_id: str,
    request: DisputeResolveRequest,
    db: Session = Depends(get_db),
    gateway: StripeService = Depends(get_stripe_service),
    current_user: User = Depends(require_permission(Permission.RESOLVE_DISPUTES))
):
    """
    Resolve a dispute.

    - complete: contract goes back to waiting for reviews
    - cancel: contract is cancelled and the brand refunded
    - refund: winner=brand completes, winner=creator or platform cancels and refunds
    """
    return DisputeService(db, gateway).resolve(
        contract_id,
        request.resolution.value,
        request.winner.value,
        request.reason,
        current_user,
    )
