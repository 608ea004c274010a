import asyncio
import sys
from decimal import Decimal, InvalidOperation

from khata.customers.schemas import CustomerCreate
from khata.customers.services import CustomerServices
from khata.db.main import async_session_maker, init_db
from khata.errors import LedgerError

customer_services = CustomerServices()


async def create_customer(owner_id: str, name: str, opening_amount: Decimal, phone: str = None):
    await init_db()

    async with async_session_maker() as session:
        try:
            created = await customer_services.create_customer_with_opening_transaction(
                CustomerCreate(name=name, phone=phone, opening_amount=opening_amount),
                session,
                owner_id,
            )
        except LedgerError as e:
            print(f"Failed to create customer: {e.message}")
            return

    print("Successfully created customer!")
    print(f"Name: {created.customer.name}")
    print(f"Customer ID: {created.customer.id}")
    print(f"Balance: {created.customer.balance}")
    if created.opening_transaction_error:
        print(f"Opening transaction not recorded: {created.opening_transaction_error}")
    print("-" * 30)


if __name__ == "__main__":
    if len(sys.argv) in (4, 5):
        # python seed_customers.py <owner_id> <name> <opening_amount> [phone]
        try:
            amount = Decimal(sys.argv[3])
        except InvalidOperation:
            print(f"Error: '{sys.argv[3]}' is not a valid amount.")
            sys.exit(1)
        phone = sys.argv[4] if len(sys.argv) == 5 else None
        asyncio.run(create_customer(sys.argv[1], sys.argv[2], amount, phone))
    else:
        print("Usage: python seed_customers.py <owner_id> <name> <opening_amount> [phone]")
        print("Example: python seed_customers.py user_2kRavi0wner 'Ravi Kumar' 5000 '+91 98765 43210'")
