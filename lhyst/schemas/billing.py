from pydantic import BaseModel

from lhyst.core.plans import DEFAULT_FREQUENCY, DEFAULT_PLAN


class CheckoutSessionRequest(BaseModel):
    plan: str = DEFAULT_PLAN
    frequency: str = DEFAULT_FREQUENCY  # "monthly" or "yearly"


class CheckoutSessionResponse(BaseModel):
    url: str
    id: str
