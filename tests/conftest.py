"""Shared fixtures: a throwaway SQLite ledger and services wired to it."""

from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from khata.analytics.services import AnalyticsServices
from khata.customers import models as _customer_models  # noqa: F401
from khata.customers.schemas import CustomerCreate
from khata.customers.services import CustomerServices
from khata.db.main import build_engine
from khata.transactions import models as _transaction_models  # noqa: F401
from khata.transactions.models import TransactionType
from khata.transactions.schemas import TransactionInput
from khata.transactions.services import TransactionServices

OWNER = "user_2kRavi0wner"
OTHER_OWNER = "user_2kSomeoneElse"


class RecordingInvalidator:
    """Stands in for the Redis signal and remembers who was signalled."""

    def __init__(self) -> None:
        self.owners = []

    async def ledger_changed(self, owner_id: str) -> None:
        self.owners.append(owner_id)


@pytest_asyncio.fixture
async def engine(tmp_path):
    """File backed so several connections can share it"""
    db_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")

    async with db_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield db_engine

    await db_engine.dispose()


@pytest.fixture
def session_maker(engine):
    return sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_maker) -> AsyncSession:
    async with session_maker() as db_session:
        yield db_session


@pytest.fixture
def invalidator() -> RecordingInvalidator:
    return RecordingInvalidator()


@pytest.fixture
def transaction_services(invalidator) -> TransactionServices:
    return TransactionServices(invalidator)


@pytest.fixture
def customer_services(transaction_services, invalidator) -> CustomerServices:
    return CustomerServices(transaction_services, invalidator)


@pytest.fixture
def analytics_services(transaction_services) -> AnalyticsServices:
    return AnalyticsServices(transaction_services)


@pytest_asyncio.fixture
async def ravi(session_maker, customer_services):
    """Customer with an empty ledger, created in a session that is already closed"""
    async with session_maker() as db_session:
        return await customer_services.create_customer(
            CustomerCreate(name="Ravi", phone="+91 98765 43210"), db_session, OWNER
        )


def credit(customer_id, amount: str, **kwargs) -> TransactionInput:
    return TransactionInput(
        customer_id=customer_id, amount=Decimal(amount), type=TransactionType.CREDIT, **kwargs
    )


def payment(customer_id, amount: str, **kwargs) -> TransactionInput:
    return TransactionInput(
        customer_id=customer_id, amount=Decimal(amount), type=TransactionType.PAYMENT, **kwargs
    )
