from datetime import timedelta
from typing import Tuple

# Plan tags stored on profiles and used to pick Stripe prices
PLANS: Tuple[str, ...] = ("basic", "pro")
DEFAULT_PLAN = "basic"

BILLING_FREQUENCIES: Tuple[str, ...] = ("monthly", "yearly")
DEFAULT_FREQUENCY = "monthly"

TRIAL_DAYS = 14
TRIAL_PERIOD = timedelta(days=TRIAL_DAYS)

CODE_TTL = timedelta(hours=1)
CODE_MIN = 100000
CODE_MAX = 999999


def normalize_plan(plan: str) -> str:
    """Lowercase plan tag, falling back to the default plan when blank."""
    return (plan or "").strip().lower() or DEFAULT_PLAN


def is_known_plan(plan: str) -> bool:
    return plan in PLANS
