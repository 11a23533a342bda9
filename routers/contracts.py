# Contracts Router for the Creator Marketplace
# Funding, completion, cancellation and disputes for brand-creator contracts

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from database.config import get_db
from database.models import User
from schemas.marketplace import (
    ContractPayRequest,
    ContractCancelRequest,
    ContractDisputeRequest,
    ContractResponse,
    JobPaymentResponse,
    AuditLogResponse,
)
from auth.roles import UserType as UserTypeRole
from auth.decorators import require_user_type, require_admin
from core.stripe_service import StripeService, get_stripe_service
from services.audit_service import ContractAuditService
from services.contract_service import ContractService
from services.payment_service import ContractPaymentService

router = APIRouter(prefix="/contracts", tags=["Contracts"])

any_party = require_user_type(UserTypeRole.BRAND, UserTypeRole.CREATOR)


def contract_response(service: ContractService, contract) -> ContractResponse:
    response = ContractResponse.model_validate(contract)
    return response.model_copy(update=service.review_flags(contract))


# ============================================================================
# CONTRACT ENDPOINTS
# ============================================================================

@router.get("/{contract_id}", response_model=ContractResponse)
async def get_contract(
    contract_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(any_party)
):
    """Get a contract with its payment and review progress."""
    service = ContractService(db)
    contract = service.get_contract_for_party(contract_id, current_user)
    return contract_response(service, contract)


@router.post("/{contract_id}/pay", response_model=JobPaymentResponse)
async def pay_contract(
    contract_id: str,
    request: ContractPayRequest,
    db: Session = Depends(get_db),
    gateway: StripeService = Depends(get_stripe_service),
    current_user: User = Depends(require_user_type(UserTypeRole.BRAND))
):
    """
    Charge the brand's card and activate the contract.
    Card failures return 402 with the failure reason.
    """
    contract = ContractService(db).get_contract_for_party(contract_id, current_user)
    return ContractPaymentService(db, gateway).charge_contract(contract, current_user, request.payment_method_id)


@router.post("/{contract_id}/complete", response_model=ContractResponse)
async def complete_contract(
    contract_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.BRAND))
):
    """Accept the delivered work; both parties are then asked to review."""
    service = ContractService(db)
    contract = service.complete(contract_id, current_user)
    return contract_response(service, contract)


@router.post("/{contract_id}/cancel", response_model=ContractResponse)
async def cancel_contract(
    contract_id: str,
    request: ContractCancelRequest,
    db: Session = Depends(get_db),
    gateway: StripeService = Depends(get_stripe_service),
    current_user: User = Depends(require_user_type(UserTypeRole.BRAND))
):
    """Cancel an active contract and refund the escrowed payment."""
    service = ContractService(db, gateway)
    contract = service.cancel(contract_id, current_user, request.reason)
    return contract_response(service, contract)


@router.post("/{contract_id}/dispute", response_model=ContractResponse)
async def dispute_contract(
    contract_id: str,
    request: ContractDisputeRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(any_party)
):
    """Open a dispute; an admin decides how the contract ends."""
    service = ContractService(db)
    contract = service.dispute(contract_id, current_user, request.reason)
    return contract_response(service, contract)


@router.get("/{contract_id}/audit", response_model=List[AuditLogResponse])
async def get_contract_audit(
    contract_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin())
):
    """Admin view of every transition and override on a contract."""
    ContractService(db).get_contract(contract_id)
    return ContractAuditService(db).history(contract_id)
