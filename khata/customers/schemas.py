from pydantic import BaseModel, ConfigDict
from typing import Optional, List
from decimal import Decimal
import uuid
from datetime import datetime
from khata.transactions.models import TransactionType
from khata.transactions.schemas import TransactionInfo


class CustomerCreate(BaseModel):
    # aggregates are not accepted here, they always start at zero
    model_config = ConfigDict(extra="forbid")

    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None

    # optional opening entry, recorded right after the customer is created
    opening_amount: Optional[Decimal] = None
    opening_type: TransactionType = TransactionType.CREDIT
    opening_description: Optional[str] = None


class CustomerUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    is_active: Optional[bool] = None


class CustomerInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    total_credit: Decimal
    total_paid: Decimal
    balance: Decimal
    is_active: bool
    created_at: datetime
    updated_at: datetime


class BalanceInfo(BaseModel):
    customer_id: uuid.UUID
    total_credit: Decimal
    total_paid: Decimal
    balance: Decimal


class CustomerCreated(BaseModel):
    """Outcome of creating a customer with an optional opening entry.

    The customer is kept even when the opening transaction fails, so the
    two outcomes are reported separately.
    """
    customer: CustomerInfo
    opening_transaction: Optional[TransactionInfo] = None
    opening_transaction_recorded: bool = False
    opening_transaction_error: Optional[str] = None


class CustomerStatement(BaseModel):
    customer: CustomerInfo
    transactions: List[TransactionInfo]
    credit_total: Decimal
    payment_total: Decimal
    generated_at: datetime
