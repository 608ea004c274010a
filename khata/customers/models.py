from sqlmodel import SQLModel, Field, Column
import uuid
from decimal import Decimal
from typing import Optional
from datetime import datetime
import sqlalchemy as sa
from khata.utils.dates import utc_now


class Customer(SQLModel, table=True):
    __tablename__ = "customers"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    # Tenant partition key, taken from the identity token
    owner_id: str = Field(index=True)

    name: str = Field(index=True)
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None

    # Aggregates, only written by TransactionServices.record_transaction
    total_credit: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    total_paid: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    # total_credit - total_paid, negative when the customer has overpaid
    balance: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)

    is_active: bool = Field(default=True)

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(sa.DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(sa.DateTime(timezone=True), nullable=False, index=True)
    )
