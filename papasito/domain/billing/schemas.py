"""Billing domain schemas - Pydantic models for validation"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class CreateSubscriptionRequest(BaseModel):
    """Body of POST /api/subscription/create"""

    model_config = ConfigDict(populate_by_name=True)

    plan_type: Literal["PREMIUM", "VIP"] = Field(alias="planType")
    billing_cycle: Literal["monthly", "yearly"] = Field(default="monthly", alias="billingCycle")
    payment_method_id: Optional[str] = Field(default=None, alias="paymentMethodId")
    metadata: Optional[dict[str, str]] = None
