# Marketplace Routers Module
# Exports all modular API routers for the marketplace

from routers.payment_methods import router as payment_methods_router
from routers.contracts import router as contracts_router
from routers.reviews import router as reviews_router
from routers.balance import router as balance_router
from routers.disputes import router as disputes_router
from routers.payouts import router as payouts_router

__all__ = [
    'payment_methods_router',
    'contracts_router',
    'reviews_router',
    'balance_router',
    'disputes_router',
    'payouts_router',
]
