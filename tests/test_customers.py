"""Customer store operations: create, read, list, update, delete."""

import uuid
from decimal import Decimal

import pytest
from pydantic import ValidationError as SchemaValidationError

from khata.customers.schemas import CustomerCreate, CustomerUpdate
from khata.customers.services import CustomerServices
from khata.errors import ConflictBusy, NotFoundError, ValidationError
from khata.transactions.models import TransactionType
from tests.conftest import OTHER_OWNER, OWNER, credit, payment


class TestCreateCustomer:

    @pytest.mark.asyncio
    async def test_new_customer_has_empty_ledger(self, session, customer_services) -> None:
        """Ravi without an opening entry starts at zero"""
        customer = await customer_services.create_customer(CustomerCreate(name="Ravi"), session, OWNER)

        assert customer.owner_id == OWNER
        assert customer.total_credit == Decimal("0")
        assert customer.total_paid == Decimal("0")
        assert customer.balance == Decimal("0")
        assert customer.is_active is True

    @pytest.mark.asyncio
    async def test_name_is_stripped(self, session, customer_services) -> None:
        customer = await customer_services.create_customer(CustomerCreate(name="  Meena  "), session, OWNER)
        assert customer.name == "Meena"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["", "   "])
    async def test_empty_name_rejected(self, session, customer_services, name) -> None:
        with pytest.raises(ValidationError):
            await customer_services.create_customer(CustomerCreate(name=name), session, OWNER)

        assert await customer_services.get_all_customers(session, OWNER) == []

    def test_aggregates_cannot_be_supplied(self) -> None:
        with pytest.raises(SchemaValidationError):
            CustomerCreate(name="Ravi", total_credit=Decimal("500"))

    @pytest.mark.asyncio
    async def test_create_signals_invalidation(self, session, customer_services, invalidator) -> None:
        await customer_services.create_customer(CustomerCreate(name="Ravi"), session, OWNER)
        assert invalidator.owners == [OWNER]


class TestGetCustomer:

    @pytest.mark.asyncio
    async def test_get_by_id(self, session, customer_services, ravi) -> None:
        customer = await customer_services.get_customer_by_id(ravi.id, session, OWNER)
        assert customer.name == "Ravi"

    @pytest.mark.asyncio
    async def test_unknown_id_not_found(self, session, customer_services) -> None:
        with pytest.raises(NotFoundError):
            await customer_services.get_customer_by_id(uuid.uuid4(), session, OWNER)

    @pytest.mark.asyncio
    async def test_other_owner_sees_not_found(self, session, customer_services, ravi) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            await customer_services.get_customer_by_id(ravi.id, session, OTHER_OWNER)

        assert exc_info.value.message == "Customer not found"

    @pytest.mark.asyncio
    async def test_get_balance(self, session, customer_services, transaction_services, ravi) -> None:
        await transaction_services.record_transaction(credit(ravi.id, "750.50"), session, OWNER)

        balance = await customer_services.get_balance(ravi.id, session, OWNER)

        assert balance.customer_id == ravi.id
        assert balance.total_credit == Decimal("750.50")
        assert balance.total_paid == Decimal("0")
        assert balance.balance == Decimal("750.50")


class TestListCustomers:

    @pytest.mark.asyncio
    async def test_scoped_to_owner(self, session, customer_services) -> None:
        await customer_services.create_customer(CustomerCreate(name="Ravi"), session, OWNER)
        await customer_services.create_customer(CustomerCreate(name="Asha"), session, OTHER_OWNER)

        customers = await customer_services.get_all_customers(session, OWNER)

        assert [c.name for c in customers] == ["Ravi"]

    @pytest.mark.asyncio
    async def test_most_recently_updated_first(self, session, customer_services, transaction_services) -> None:
        first = await customer_services.create_customer(CustomerCreate(name="First"), session, OWNER)
        await customer_services.create_customer(CustomerCreate(name="Second"), session, OWNER)

        # a transaction touches updated_at and moves the customer to the top
        await transaction_services.record_transaction(credit(first.id, "10"), session, OWNER)

        customers = await customer_services.get_all_customers(session, OWNER)

        assert [c.name for c in customers] == ["First", "Second"]

    @pytest.mark.asyncio
    async def test_search_by_name_or_phone(self, session, customer_services) -> None:
        await customer_services.create_customer(CustomerCreate(name="Ravi Kumar", phone="98765"), session, OWNER)
        await customer_services.create_customer(CustomerCreate(name="Asha", phone="12345"), session, OWNER)

        by_name = await customer_services.get_all_customers(session, OWNER, search="ravi")
        by_phone = await customer_services.get_all_customers(session, OWNER, search="234")

        assert [c.name for c in by_name] == ["Ravi Kumar"]
        assert [c.name for c in by_phone] == ["Asha"]


class TestUpdateCustomer:

    @pytest.mark.asyncio
    async def test_updates_contact_fields(self, session, customer_services, ravi) -> None:
        updated = await customer_services.update_customer(
            ravi.id, CustomerUpdate(phone="555", is_active=False), session, OWNER
        )

        assert updated.phone == "555"
        assert updated.is_active is False
        assert updated.name == "Ravi"

    @pytest.mark.asyncio
    async def test_update_keeps_aggregates(self, session, customer_services, transaction_services, ravi) -> None:
        await transaction_services.record_transaction(credit(ravi.id, "100"), session, OWNER)

        updated = await customer_services.update_customer(ravi.id, CustomerUpdate(notes="pays monthly"), session, OWNER)

        assert updated.total_credit == Decimal("100")
        assert updated.balance == Decimal("100")

    def test_aggregates_not_updatable(self) -> None:
        with pytest.raises(SchemaValidationError):
            CustomerUpdate(balance=Decimal("0"))

    @pytest.mark.asyncio
    async def test_empty_update_rejected(self, session, customer_services, ravi) -> None:
        with pytest.raises(ValidationError):
            await customer_services.update_customer(ravi.id, CustomerUpdate(), session, OWNER)

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self, session, customer_services, ravi) -> None:
        with pytest.raises(ValidationError):
            await customer_services.update_customer(ravi.id, CustomerUpdate(name=" "), session, OWNER)

    @pytest.mark.asyncio
    async def test_other_owner_cannot_update(self, session, customer_services, ravi) -> None:
        with pytest.raises(NotFoundError):
            await customer_services.update_customer(ravi.id, CustomerUpdate(name="Mallory"), session, OTHER_OWNER)

        customer = await customer_services.get_customer_by_id(ravi.id, session, OWNER)
        assert customer.name == "Ravi"


class TestDeleteCustomer:

    @pytest.mark.asyncio
    async def test_delete_cascades_transactions(self, session, customer_services, transaction_services, ravi) -> None:
        """Deleting Ravi removes the history as well"""
        await transaction_services.record_transaction(credit(ravi.id, "5000"), session, OWNER)

        assert await customer_services.delete_customer(ravi.id, session, OWNER) is True

        with pytest.raises(NotFoundError):
            await customer_services.get_customer_by_id(ravi.id, session, OWNER)
        assert await transaction_services.get_customer_transactions(ravi.id, session, OWNER) == []

    @pytest.mark.asyncio
    async def test_delete_unknown_not_found(self, session, customer_services) -> None:
        with pytest.raises(NotFoundError):
            await customer_services.delete_customer(uuid.uuid4(), session, OWNER)

    @pytest.mark.asyncio
    async def test_other_owner_cannot_delete(self, session, customer_services, ravi) -> None:
        with pytest.raises(NotFoundError):
            await customer_services.delete_customer(ravi.id, session, OTHER_OWNER)

        assert await customer_services.get_customer_by_id(ravi.id, session, OWNER)


class BusyTransactions:
    """Opening step that always loses the race for the customer lock."""

    async def record_transaction(self, transaction_input, session, owner_id):
        await session.rollback()
        raise ConflictBusy()


class TestOpeningTransaction:

    @pytest.mark.asyncio
    async def test_opening_credit_recorded(self, session, customer_services) -> None:
        """Ravi starts with 5000 on credit"""
        created = await customer_services.create_customer_with_opening_transaction(
            CustomerCreate(name="Ravi", opening_amount=Decimal("5000")), session, OWNER
        )

        assert created.opening_transaction_recorded is True
        assert created.opening_transaction_error is None
        assert created.opening_transaction.type == TransactionType.CREDIT
        assert created.opening_transaction.description == "Opening balance"
        assert created.customer.total_credit == Decimal("5000.00")
        assert created.customer.balance == Decimal("5000.00")

    @pytest.mark.asyncio
    async def test_opening_payment_gives_advance(self, session, customer_services) -> None:
        created = await customer_services.create_customer_with_opening_transaction(
            CustomerCreate(name="Asha", opening_amount=Decimal("300"), opening_type=TransactionType.PAYMENT),
            session,
            OWNER,
        )

        assert created.customer.total_paid == Decimal("300.00")
        assert created.customer.balance == Decimal("-300.00")

    @pytest.mark.asyncio
    async def test_zero_opening_means_none(self, session, customer_services, transaction_services) -> None:
        created = await customer_services.create_customer_with_opening_transaction(
            CustomerCreate(name="Ravi", opening_amount=Decimal("0")), session, OWNER
        )

        assert created.opening_transaction_recorded is False
        assert created.opening_transaction is None
        assert created.opening_transaction_error is None
        assert await transaction_services.get_customer_transactions(created.customer.id, session, OWNER) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["-5", "10000000000"])
    async def test_bad_opening_amount_creates_nothing(self, session, customer_services, amount) -> None:
        with pytest.raises(ValidationError):
            await customer_services.create_customer_with_opening_transaction(
                CustomerCreate(name="Ravi", opening_amount=Decimal(amount)), session, OWNER
            )

        assert await customer_services.get_all_customers(session, OWNER) == []

    @pytest.mark.asyncio
    async def test_failed_opening_keeps_customer(self, session, invalidator) -> None:
        services = CustomerServices(BusyTransactions(), invalidator)

        created = await services.create_customer_with_opening_transaction(
            CustomerCreate(name="Ravi", opening_amount=Decimal("5000")), session, OWNER
        )

        assert created.opening_transaction_recorded is False
        assert created.opening_transaction is None
        assert created.opening_transaction_error == ConflictBusy.default_message
        assert created.customer.balance == Decimal("0")

        stored = await services.get_customer_by_id(created.customer.id, session, OWNER)
        assert stored.name == "Ravi"
        assert stored.total_credit == Decimal("0")


class TestCustomerStatement:

    @pytest.mark.asyncio
    async def test_statement_totals_match_listed_rows(self, session, customer_services, transaction_services, ravi) -> None:
        await transaction_services.record_transaction(credit(ravi.id, "5000"), session, OWNER)
        await transaction_services.record_transaction(payment(ravi.id, "2000"), session, OWNER)

        statement = await customer_services.get_customer_statement(ravi.id, session, OWNER)

        assert len(statement.transactions) == 2
        assert statement.credit_total == Decimal("5000.00")
        assert statement.payment_total == Decimal("2000.00")
        assert statement.customer.balance == statement.credit_total - statement.payment_total

    @pytest.mark.asyncio
    async def test_statement_for_other_owner_not_found(self, session, customer_services, ravi) -> None:
        with pytest.raises(NotFoundError):
            await customer_services.get_customer_statement(ravi.id, session, OTHER_OWNER)
