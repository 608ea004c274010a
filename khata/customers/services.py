from khata.customers.schemas import (
    CustomerCreate, CustomerUpdate, CustomerInfo, CustomerCreated,
    BalanceInfo, CustomerStatement,
)
from sqlmodel.ext.asyncio.session import AsyncSession
from khata.customers.models import Customer
from khata.transactions.models import Transaction, TransactionType
from khata.transactions.schemas import TransactionInput, TransactionInfo
from khata.transactions.services import TransactionServices
from sqlmodel import select, desc, asc, or_, col
from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from khata.errors import LedgerError, ValidationError, NotFoundError, StorageError
from khata.utils.money import to_money, to_positive_amount, ZERO
from khata.utils.dates import utc_now
from khata.utils.invalidation import ledger_invalidator
from typing import List, Optional
import uuid
import logging

logger = logging.getLogger(__name__)


def _clean_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Customer name is required")
    return name


class CustomerServices():

    def __init__(self, transaction_services: TransactionServices = None, invalidator=None):
        self.invalidator = invalidator or ledger_invalidator
        self.transaction_services = transaction_services or TransactionServices(self.invalidator)

    async def _fetch_customer(self, customer_id: uuid.UUID, session: AsyncSession, owner_id: str) -> Customer:
        # another owner's customer looks exactly like a missing one
        statement = select(Customer).where(Customer.id == customer_id, Customer.owner_id == owner_id)
        result = await session.exec(statement)
        customer = result.first()

        if not customer:
            raise NotFoundError("Customer not found")

        return customer

    async def create_customer(self, customer: CustomerCreate, session: AsyncSession, owner_id: str) -> Customer:
        customer_dict = customer.model_dump(
            exclude={"opening_amount", "opening_type", "opening_description"}
        )
        customer_dict["name"] = _clean_name(customer_dict.get("name"))

        # Aggregates always start at zero, only recorded transactions move them
        new_customer = Customer(**customer_dict, owner_id=owner_id)

        session.add(new_customer)

        try:
            # Commit the transaction
            await session.commit()

            # Reload the object from the database to ensure we have all generated fields
            await session.refresh(new_customer)

        except SQLAlchemyError as e:
            # If anything fails, undo all changes to keep the data consistent
            await session.rollback()
            logger.exception("Failed to create customer for owner %s", owner_id)
            raise StorageError("Failed to create customer") from e

        logger.info("Created customer %s for owner %s", new_customer.id, owner_id)
        await self.invalidator.ledger_changed(owner_id)

        return new_customer

    async def create_customer_with_opening_transaction(
        self, customer: CustomerCreate, session: AsyncSession, owner_id: str
    ) -> CustomerCreated:
        """Create a customer and, when an opening amount is given, record it.

        The two steps are separate units. A failure in the second one
        leaves the customer in place and is reported on the result, it is
        not raised.
        """
        opening_amount = None
        if customer.opening_amount is not None:
            opening_amount = to_money(customer.opening_amount)
            if opening_amount < 0:
                raise ValidationError("Opening amount must not be negative")
            # zero means there is no opening entry
            if opening_amount == 0:
                opening_amount = None
            else:
                opening_amount = to_positive_amount(opening_amount)

        new_customer = await self.create_customer(customer, session, owner_id)

        # snapshot before the second step, a rollback there expires the instance
        created = CustomerCreated(customer=CustomerInfo.model_validate(new_customer))

        if opening_amount is None:
            return created

        opening_input = TransactionInput(
            customer_id=new_customer.id,
            amount=opening_amount,
            type=customer.opening_type,
            description=customer.opening_description or "Opening balance",
        )

        try:
            updated_customer, opening_transaction = await self.transaction_services.record_transaction(
                opening_input, session, owner_id
            )
        except LedgerError as e:
            logger.warning(
                "Customer %s created but opening %s of %s failed: %s",
                created.customer.id, customer.opening_type.value, opening_amount, e.message
            )
            created.opening_transaction_error = e.message
            return created

        created.customer = CustomerInfo.model_validate(updated_customer)
        created.opening_transaction = TransactionInfo.model_validate(opening_transaction)
        created.opening_transaction_recorded = True

        return created

    async def get_all_customers(self, session: AsyncSession, owner_id: str, search: Optional[str] = None) -> List[Customer]:
        """List the owner's customers, most recently updated first.

        `id` breaks ties so the order is stable between calls. `search`
        matches a name or phone substring, case-insensitively.
        """
        statement = select(Customer).where(Customer.owner_id == owner_id)

        if search and search.strip():
            pattern = f"%{search.strip()}%"
            statement = statement.where(
                or_(col(Customer.name).ilike(pattern), col(Customer.phone).ilike(pattern))
            )

        statement = statement.order_by(desc(Customer.updated_at), asc(Customer.id))

        try:
            result = await session.exec(statement)
            return list(result.all())

        except SQLAlchemyError as e:
            await session.rollback()
            logger.exception("Failed to list customers for owner %s", owner_id)
            raise StorageError() from e

    async def get_customer_by_id(self, customer_id: uuid.UUID, session: AsyncSession, owner_id: str) -> Customer:
        try:
            return await self._fetch_customer(customer_id, session, owner_id)

        except SQLAlchemyError as e:
            await session.rollback()
            logger.exception("Failed to fetch customer %s (owner %s)", customer_id, owner_id)
            raise StorageError() from e

    async def get_balance(self, customer_id: uuid.UUID, session: AsyncSession, owner_id: str) -> BalanceInfo:
        customer = await self.get_customer_by_id(customer_id, session, owner_id)

        return BalanceInfo(
            customer_id=customer.id,
            total_credit=customer.total_credit,
            total_paid=customer.total_paid,
            balance=customer.balance,
        )

    async def get_customer_statement(self, customer_id: uuid.UUID, session: AsyncSession, owner_id: str) -> CustomerStatement:
        customer = await self.get_customer_by_id(customer_id, session, owner_id)
        transactions = await self.transaction_services.get_customer_transactions(customer_id, session, owner_id)

        credit_total = sum((t.amount for t in transactions if t.type == TransactionType.CREDIT), ZERO)
        payment_total = sum((t.amount for t in transactions if t.type == TransactionType.PAYMENT), ZERO)

        return CustomerStatement(
            customer=CustomerInfo.model_validate(customer),
            transactions=[TransactionInfo.model_validate(t) for t in transactions],
            credit_total=credit_total,
            payment_total=payment_total,
            generated_at=utc_now(),
        )

    async def update_customer(self, customer_id: uuid.UUID, update_data: CustomerUpdate, session: AsyncSession, owner_id: str) -> Customer:
        # Convert the input to a dictionary, excluding unset values
        update_dict = update_data.model_dump(exclude_unset=True)

        if not update_dict:
            raise ValidationError("You must provide at least one field to update")

        if "name" in update_dict:
            update_dict["name"] = _clean_name(update_dict["name"])

        if update_dict.get("is_active", True) is None:
            raise ValidationError("is_active must be true or false")

        try:
            customer = await self._fetch_customer(customer_id, session, owner_id)

            for key, value in update_dict.items():
                setattr(customer, key, value)
            customer.updated_at = utc_now()

            session.add(customer)
            await session.commit()
            await session.refresh(customer)

        except LedgerError:
            await session.rollback()
            raise

        except SQLAlchemyError as e:
            await session.rollback()
            logger.exception("Failed to update customer %s (owner %s)", customer_id, owner_id)
            raise StorageError("Failed to update customer") from e

        await self.invalidator.ledger_changed(owner_id)
        return customer

    async def delete_customer(self, customer_id: uuid.UUID, session: AsyncSession, owner_id: str) -> bool:
        try:
            customer = await self._fetch_customer(customer_id, session, owner_id)

            # the FK cascades too, this keeps backends without FK enforcement consistent
            await session.exec(
                delete(Transaction).where(
                    Transaction.customer_id == customer.id,
                    Transaction.owner_id == owner_id,
                )
            )
            await session.delete(customer)
            await session.commit()

        except LedgerError:
            await session.rollback()
            raise

        except SQLAlchemyError as e:
            await session.rollback()
            logger.exception("Failed to delete customer %s (owner %s)", customer_id, owner_id)
            raise StorageError("Failed to delete customer") from e

        logger.info("Deleted customer %s for owner %s", customer_id, owner_id)
        await self.invalidator.ledger_changed(owner_id)

        return True
