from sqlmodel import select, desc
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from khata.transactions.models import Transaction, TransactionType
from khata.transactions.schemas import TransactionInput
from khata.customers.models import Customer
from khata.db.main import set_lock_timeout, is_lock_timeout
from khata.errors import LedgerError, ValidationError, NotFoundError, ConflictBusy, StorageError
from khata.utils.money import to_positive_amount, MAX_AMOUNT
from khata.utils.dates import utc_now, to_utc
from khata.utils.invalidation import ledger_invalidator
from datetime import datetime
from typing import List, Optional, Tuple
import uuid
import logging

logger = logging.getLogger(__name__)


class TransactionServices:
    """Writes to the transaction log and keeps customer aggregates in step.

    `record_transaction` is the only code path that creates a Transaction
    row or changes `total_credit`, `total_paid` or `balance`.
    """

    def __init__(self, invalidator=None):
        self.invalidator = invalidator or ledger_invalidator

    @staticmethod
    def transaction_type(value) -> TransactionType:
        try:
            return TransactionType(value)
        except ValueError:
            raise ValidationError("Transaction type must be CREDIT or PAYMENT")

    def build_transaction(
        self,
        customer: Customer,
        amount,
        transaction_type,
        description: Optional[str] = None,
        transaction_date: Optional[datetime] = None,
    ) -> Transaction:
        fields = {
            "customer_id": customer.id,
            "owner_id": customer.owner_id,
            "amount": to_positive_amount(amount),
            "type": self.transaction_type(transaction_type),
            "description": description,
        }
        if transaction_date is not None:
            fields["transaction_date"] = to_utc(transaction_date)

        return Transaction(**fields)

    async def record_transaction(
        self, transaction_input: TransactionInput, session: AsyncSession, owner_id: str
    ) -> Tuple[Customer, Transaction]:
        """Append a transaction and update the customer's aggregates atomically.

        The customer row is locked before it is read, so two writers for
        the same customer run one after the other and the second always
        computes from the first one's committed totals. Nothing is visible
        unless both the aggregate update and the insert commit.

        Args:
            transaction_input: Customer id, amount, type and optional
                description/date.
            session: Database session, one per request.
            owner_id: Authenticated owner the customer must belong to.

        Returns:
            The updated customer and the new transaction.

        Raises:
            ValidationError: Non-positive or oversized amount, unknown type,
                or a customer total that would pass the column maximum.
            NotFoundError: Customer missing or owned by someone else.
            ConflictBusy: The customer row stayed locked past the timeout.
            StorageError: Any other database failure.
        """
        amount = to_positive_amount(transaction_input.amount)
        transaction_type = self.transaction_type(transaction_input.type)

        try:
            await set_lock_timeout(session)

            # populate_existing so a copy already in the identity map is
            # overwritten by the row read under the lock
            customer_statement = (
                select(Customer)
                .where(Customer.id == transaction_input.customer_id, Customer.owner_id == owner_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            customer_result = await session.exec(customer_statement)
            customer = customer_result.first()

            if not customer:
                raise NotFoundError("Customer not found")

            new_transaction = self.build_transaction(
                customer,
                amount,
                transaction_type,
                description=transaction_input.description,
                transaction_date=transaction_input.transaction_date,
            )

            if transaction_type == TransactionType.CREDIT:
                total_credit, total_paid = customer.total_credit + amount, customer.total_paid
            else:
                total_credit, total_paid = customer.total_credit, customer.total_paid + amount

            # aggregates share the NUMERIC(12, 2) limit of a single amount
            if max(total_credit, total_paid) > MAX_AMOUNT:
                raise ValidationError(
                    f"Customer total would exceed {MAX_AMOUNT}"
                )

            customer.total_credit = total_credit
            customer.total_paid = total_paid

            customer.balance = customer.total_credit - customer.total_paid
            customer.updated_at = utc_now()

            session.add(customer)
            session.add(new_transaction)

            await session.commit()

        except LedgerError:
            await session.rollback()
            raise

        except DBAPIError as e:
            await session.rollback()

            if is_lock_timeout(e):
                logger.warning(
                    "Lock timeout recording %s for customer %s (owner %s)",
                    transaction_type.value, transaction_input.customer_id, owner_id
                )
                raise ConflictBusy() from e

            logger.exception(
                "Failed to record %s of %s for customer %s (owner %s)",
                transaction_type.value, amount, transaction_input.customer_id, owner_id
            )
            raise StorageError("Failed to record transaction") from e

        except SQLAlchemyError as e:
            await session.rollback()
            logger.exception(
                "Failed to record %s of %s for customer %s (owner %s)",
                transaction_type.value, amount, transaction_input.customer_id, owner_id
            )
            raise StorageError("Failed to record transaction") from e

        logger.info(
            "Recorded %s %s of %s for customer %s, balance now %s",
            new_transaction.id, transaction_type.value, amount, customer.id, customer.balance
        )

        await self.invalidator.ledger_changed(owner_id)

        return customer, new_transaction

    async def get_customer_transactions(self, customer_id: uuid.UUID, session: AsyncSession, owner_id: str) -> List[Transaction]:
        statement = (
            select(Transaction)
            .where(Transaction.customer_id == customer_id, Transaction.owner_id == owner_id)
            .order_by(desc(Transaction.transaction_date), desc(Transaction.created_at))
        )

        try:
            result = await session.exec(statement)
            return list(result.all())

        except SQLAlchemyError as e:
            await session.rollback()
            logger.exception("Failed to list transactions for customer %s (owner %s)", customer_id, owner_id)
            raise StorageError() from e

    async def get_transactions_in_range(
        self,
        session: AsyncSession,
        owner_id: str,
        start: datetime,
        end: datetime,
        transaction_type: Optional[TransactionType] = None,
    ) -> List[Tuple[Transaction, str]]:
        """Transactions dated within [start, end], each paired with its customer's name."""
        statement = (
            select(Transaction, Customer.name)
            .join(Customer, Customer.id == Transaction.customer_id)
            .where(
                Transaction.owner_id == owner_id,
                Customer.owner_id == owner_id,
                Transaction.transaction_date >= to_utc(start),
                Transaction.transaction_date <= to_utc(end),
            )
            .order_by(desc(Transaction.transaction_date), desc(Transaction.created_at))
        )

        if transaction_type is not None:
            statement = statement.where(Transaction.type == self.transaction_type(transaction_type))

        try:
            result = await session.exec(statement)
            return [(transaction, customer_name) for transaction, customer_name in result.all()]

        except SQLAlchemyError as e:
            await session.rollback()
            logger.exception("Failed to list transactions between %s and %s (owner %s)", start, end, owner_id)
            raise StorageError() from e
