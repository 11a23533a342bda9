import os
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv()

# Platform Fees
PLATFORM_FEE_PERCENT = Decimal(os.getenv("PLATFORM_FEE_PERCENT", "5"))
PLATFORM_CURRENCY = os.getenv("PLATFORM_CURRENCY", "brl")

# Card gateway
STRIPE_API_BASE = os.getenv("STRIPE_API_BASE", "https://api.stripe.com/v1")
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
STRIPE_PUBLIC_KEY = os.getenv("STRIPE_PUBLIC_KEY", "")
STRIPE_TIMEOUT_SECONDS = float(os.getenv("STRIPE_TIMEOUT_SECONDS", 30))

# Withdrawal Settings
MIN_WITHDRAWAL_AMOUNT = Decimal(os.getenv("MIN_WITHDRAWAL_AMOUNT", "1"))
MAX_WITHDRAWAL_AMOUNT = Decimal(os.getenv("MAX_WITHDRAWAL_AMOUNT", "1000000"))

# Payout verification
PAYOUT_MAX_PROCESSING_HOURS = int(os.getenv("PAYOUT_MAX_PROCESSING_HOURS", 72))

# Logging / HTTP
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
