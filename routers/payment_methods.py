# Payment Methods Router for the Creator Marketplace
# Brands save gateway-tokenized cards used to fund contracts

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List

from database.config import get_db
from database.models import User
from database.marketplace_models import BrandPaymentMethod
from schemas.marketplace import PaymentMethodCreate, PaymentMethodResponse
from auth.roles import UserType as UserTypeRole
from auth.decorators import require_user_type
from core.stripe_service import StripeService, get_stripe_service
from services.payment_service import ContractPaymentService

router = APIRouter(prefix="/payment-methods", tags=["Payment Methods"])


# ============================================================================
# PAYMENT METHOD ENDPOINTS
# ============================================================================

@router.get("", response_model=List[PaymentMethodResponse])
async def get_my_payment_methods(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.BRAND))
):
    """List the brand's saved cards, default first."""
    return db.query(BrandPaymentMethod).filter(
        BrandPaymentMethod.user_id == current_user.id
    ).order_by(BrandPaymentMethod.is_default.desc(), BrandPaymentMethod.created_at.desc()).all()


@router.post("", response_model=PaymentMethodResponse, status_code=status.HTTP_201_CREATED)
async def save_payment_method(
    request: PaymentMethodCreate,
    db: Session = Depends(get_db),
    gateway: StripeService = Depends(get_stripe_service),
    current_user: User = Depends(require_user_type(UserTypeRole.BRAND))
):
    """
    Attach a card to the brand's gateway customer.
    The customer is created on first use.
    """
    service = ContractPaymentService(db, gateway)
    return service.save_payment_method(current_user, request.payment_method_id, request.make_default)
