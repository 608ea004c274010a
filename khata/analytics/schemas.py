from pydantic import BaseModel
from decimal import Decimal
from datetime import date, datetime
from typing import List, Optional
from khata.transactions.models import TransactionType
import uuid


class CollectionItem(BaseModel):
    id: uuid.UUID
    customer_id: uuid.UUID
    customer_name: str
    amount: Decimal
    type: TransactionType
    description: Optional[str] = None
    transaction_date: datetime


class DailyCollection(BaseModel):
    date: date
    total_collection: Decimal
    transactions: List[CollectionItem]


class CollectionRange(BaseModel):
    start_date: date
    end_date: date
    total_collection: Decimal
    days: List[DailyCollection]


class LedgerSummary(BaseModel):
    total_credit: Decimal
    total_paid: Decimal
    total_outstanding: Decimal
    total_customers: int
    active_customers: int
