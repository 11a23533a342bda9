# Domain errors for the marketplace escrow workflow.
# They subclass HTTPException so routers can let them propagate untouched.

from typing import Optional
from fastapi import HTTPException, status


class MarketplaceError(HTTPException):
    """Base class for business errors that map onto an HTTP status."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(status_code=status_code or self.status_code, detail=detail)


class NotFoundError(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND


class PermissionDeniedError(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN


class BusinessRuleError(MarketplaceError):
    """Conflict with the current state: duplicate review, already processed, etc."""
    status_code = status.HTTP_400_BAD_REQUEST


class LedgerError(BusinessRuleError):
    """A balance movement would overdraw a bucket."""


class PaymentGatewayError(MarketplaceError):
    """Charge or refund failed at the payment gateway."""

    INSUFFICIENT_FUNDS = "insufficient_funds"
    CARD_DECLINED = "card_declined"
    GATEWAY_UNREACHABLE = "gateway_unreachable"
    PAYMENT_INCOMPLETE = "payment_incomplete"
    GATEWAY_ERROR = "gateway_error"

    def __init__(self, reason: str, message: Optional[str] = None):
        self.reason = reason
        code = (
            status.HTTP_502_BAD_GATEWAY
            if reason in (self.GATEWAY_UNREACHABLE, self.GATEWAY_ERROR)
            else status.HTTP_402_PAYMENT_REQUIRED
        )
        super().__init__(
            detail={"reason": reason, "message": message or reason.replace("_", " ").capitalize()},
            status_code=code,
        )
