from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

PaymentType = Literal["boost_issue", "subscription"]

class BoostCheckoutIn(BaseModel):
    issue_id: str = Field(min_length=1, max_length=32)

class ConfirmIn(BaseModel):
    session_id: str = Field(min_length=1)

class CheckoutOut(BaseModel):
    session_id: str
    url: Optional[str] = None

class PaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    amount: int
    currency: str
    customer_email: str
    customer_name: str
    transaction_id: str
    payment_type: PaymentType
    payment_status: str
    issue_id: Optional[str] = None
    issue_title: Optional[str] = None
    paid_at: datetime

class SettlementOut(BaseModel):
    success: bool
    created: bool = False
    message: Optional[str] = None
    payment: Optional[PaymentOut] = None

class PaymentList(BaseModel):
    items: List[PaymentOut]
