"""Wallet domain schemas - Pydantic models for validation"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class BankDetails(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    account_name: Optional[str] = Field(default=None, alias="accountName")
    account_number: Optional[str] = Field(default=None, alias="accountNumber")
    routing_number: Optional[str] = Field(default=None, alias="routingNumber")
    swift_code: Optional[str] = Field(default=None, alias="swiftCode")


class WithdrawRequest(BaseModel):
    """Body of POST /api/wallet/withdraw"""

    model_config = ConfigDict(populate_by_name=True)

    amount: float = Field(ge=50, le=10000)
    payment_method: Literal["bank_transfer", "paypal", "crypto"] = Field(alias="paymentMethod")
    bank_details: Optional[BankDetails] = Field(default=None, alias="bankDetails")
