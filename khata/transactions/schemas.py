from pydantic import BaseModel, ConfigDict
import uuid
from decimal import Decimal
from khata.transactions.models import TransactionType
from datetime import datetime
from typing import Optional


class TransactionInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    customer_id: uuid.UUID
    amount: Decimal
    type: TransactionType
    description: Optional[str] = None
    transaction_date: datetime
    created_at: datetime


class TransactionInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    customer_id: uuid.UUID
    amount: Decimal
    type: TransactionType
    description: Optional[str] = None
    # defaults to now, naive values are read in the ledger timezone
    transaction_date: Optional[datetime] = None


class RecordedTransaction(BaseModel):
    """What the caller sees after a write: the new row and the post-commit balance."""
    transaction: TransactionInfo
    total_credit: Decimal
    total_paid: Decimal
    balance: Decimal
