from sqlmodel import SQLModel, Field, Column
import uuid
from decimal import Decimal
from enum import Enum
from typing import Optional
from datetime import datetime
import sqlalchemy as sa
from khata.utils.dates import utc_now


class TransactionType(str, Enum):
    # customer owes more
    CREDIT = "CREDIT"
    # money collected from the customer
    PAYMENT = "PAYMENT"


class Transaction(SQLModel, table=True):
    __tablename__ = "transactions"
    __table_args__ = (
        sa.CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    customer_id: uuid.UUID = Field(foreign_key="customers.id", ondelete="CASCADE", index=True)
    # copied from the customer so owner-scoped queries need no join
    owner_id: str = Field(index=True)

    amount: Decimal = Field(max_digits=12, decimal_places=2)
    type: TransactionType
    description: Optional[str] = None

    # when the money changed hands, may be backdated
    transaction_date: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(sa.DateTime(timezone=True), nullable=False, index=True)
    )
    # when the row was written
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(sa.DateTime(timezone=True), nullable=False)
    )
