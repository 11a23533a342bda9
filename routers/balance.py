# Balance Router for the Creator Marketplace
# Creator balance, ledger history and withdrawal requests

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List

from database.config import get_db
from database.models import User
from schemas.marketplace import (
    BalanceResponse,
    LedgerEntryResponse,
    WithdrawalCreate,
    WithdrawalResponse,
)
from auth.roles import UserType as UserTypeRole, Permission
from auth.decorators import require_user_type, require_permission
from services.ledger_service import LedgerService
from services.withdrawal_service import WithdrawalService

router = APIRouter(prefix="/balance", tags=["Balance"])


# ============================================================================
# BALANCE ENDPOINTS
# ============================================================================

@router.get("", response_model=BalanceResponse)
async def get_balance(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.CREATOR))
):
    """
    Get the creator's balance.
    Creates an empty balance on first access.
    """
    ledger = LedgerService(db)
    try:
        balance = ledger.get_or_create_balance(current_user.id, lock=False)
        db.commit()
    except IntegrityError:
        # A concurrent first read inserted the row
        db.rollback()
        balance = ledger.get_balance(current_user.id)
    return balance


@router.get("/ledger")
async def get_ledger(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.CREATOR))
):
    """Balance movements, newest first."""
    entries, total = LedgerService(db).history(current_user.id, page, limit)
    return {
        "entries": [LedgerEntryResponse.model_validate(e) for e in entries],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": (total + limit - 1) // limit,
        },
    }


# ============================================================================
# WITHDRAWAL ENDPOINTS
# ============================================================================

@router.post("/withdrawals", response_model=WithdrawalResponse, status_code=status.HTTP_201_CREATED)
async def request_withdrawal(
    request: WithdrawalCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.WITHDRAW_FUNDS))
):
    """
    Request a payout from the available balance.
    The amount is reserved immediately and returned if an admin rejects it.
    """
    return WithdrawalService(db).request_withdrawal(
        current_user,
        request.amount,
        method=request.withdrawal_method,
        details=request.withdrawal_details,
    )


@router.get("/withdrawals", response_model=List[WithdrawalResponse])
async def get_my_withdrawals(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.CREATOR))
):
    withdrawals, _ = WithdrawalService(db).list_withdrawals(current_user, page, limit)
    return withdrawals
