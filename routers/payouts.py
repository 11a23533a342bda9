"""
Admin Payout Management Router
Allows admins to process pending withdrawals and audit completed payouts
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database.config import get_db
from database.models import User
from schemas.marketplace import (
    WithdrawalResponse,
    WithdrawalApproveRequest,
    WithdrawalRejectRequest,
    PayoutReportFilters,
)
from auth.decorators import require_admin
from services.withdrawal_service import WithdrawalService
from services.payout_verification_service import PayoutVerificationService

router = APIRouter(prefix="/admin/payouts", tags=["Admin - Payouts"])


# ============================================================================
# ADMIN PAYOUT ENDPOINTS
# ============================================================================

@router.get("/metrics")
async def get_payout_metrics(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin())
):
    """Withdrawal, contract workflow and fee totals for the admin dashboard."""
    return PayoutVerificationService(db).get_metrics()


@router.get("/pending")
async def get_pending_withdrawals(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin())
):
    """Get all withdrawal requests waiting for an admin."""
    withdrawals, total = WithdrawalService(db).list_pending(page, limit)
    return {
        "withdrawals": [
            {
                **WithdrawalResponse.model_validate(w).model_dump(),
                "creator": {
                    "id": w.creator.id,
                    "name": w.creator.name,
                    "email": w.creator.email,
                } if w.creator else None,
            }
            for w in withdrawals
        ],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": (total + limit - 1) // limit,
        },
    }


@router.get("/report")
async def get_verification_report(
    filters: PayoutReportFilters = Depends(),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin())
):
    """Verification status of every withdrawal matching the filters."""
    return PayoutVerificationService(db).generate_report(
        start_date=filters.start_date,
        end_date=filters.end_date,
        status=filters.status.value if filters.status else None,
        withdrawal_method=filters.withdrawal_method,
        page=page,
        limit=limit,
    )


@router.post("/{withdrawal_id}/approve", response_model=WithdrawalResponse)
async def approve_withdrawal(
    withdrawal_id: str,
    request: WithdrawalApproveRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin())
):
    """Mark a withdrawal as paid out. Approving twice returns the completed withdrawal."""
    return WithdrawalService(db).approve_withdrawal(withdrawal_id, current_user, request.transaction_id)


@router.post("/{withdrawal_id}/reject", response_model=WithdrawalResponse)
async def reject_withdrawal(
    withdrawal_id: str,
    request: WithdrawalRejectRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin())
):
    """Reject a pending withdrawal and return the amount to the creator."""
    return WithdrawalService(db).reject_withdrawal(withdrawal_id, current_user, request.reason)


@router.get("/{withdrawal_id}/verify")
async def verify_withdrawal(
    withdrawal_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin())
):
    """Check a withdrawal against the creator's current bank account."""
    return PayoutVerificationService(db).verify_withdrawal(withdrawal_id)
