from fastapi import APIRouter, Depends, Request, Response, status
from khata.utils.auth import get_current_user
from khata.transactions.schemas import TransactionInput, TransactionInfo, RecordedTransaction
from khata.transactions.services import TransactionServices
from khata.customers.services import CustomerServices
from sqlmodel.ext.asyncio.session import AsyncSession
from khata.db.main import get_Session
from khata.utils.limiter import limiter
from khata.utils.responses import Result, ok
from typing import List
import uuid


transaction_router = APIRouter()
transaction_services = TransactionServices()
customer_services = CustomerServices(transaction_services)


@transaction_router.post("/", response_model=Result[RecordedTransaction], status_code=status.HTTP_200_OK)
@limiter.limit("60/minute")
async def record_transaction(
    request: Request,
    response: Response,
    transaction: TransactionInput,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    owner_id = user_details.get("user_id")

    customer, new_transaction = await transaction_services.record_transaction(transaction, session, owner_id)

    # balance is the committed value, read under the same lock as the insert
    recorded = RecordedTransaction(
        transaction=TransactionInfo.model_validate(new_transaction),
        total_credit=customer.total_credit,
        total_paid=customer.total_paid,
        balance=customer.balance,
    )

    return ok(recorded, "transaction recorded successfully")


@transaction_router.get("/customer/{customer_id}", response_model=Result[List[TransactionInfo]], status_code=status.HTTP_200_OK)
@limiter.limit("100/minute")
async def get_customer_transactions(
    request: Request,
    response: Response,
    customer_id: uuid.UUID,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    owner_id = user_details.get("user_id")

    # unknown or foreign customer is a 404, not an empty history
    await customer_services.get_customer_by_id(customer_id, session, owner_id)

    transactions = await transaction_services.get_customer_transactions(customer_id, session, owner_id)

    return ok(transactions, "customer transaction history fetched successfully")
