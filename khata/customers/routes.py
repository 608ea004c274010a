from fastapi import APIRouter, Depends, Request, Response, status
from khata.utils.auth import get_current_user
from khata.customers.schemas import (
    CustomerCreate, CustomerInfo, CustomerUpdate, CustomerCreated,
    BalanceInfo, CustomerStatement,
)
from khata.customers.services import CustomerServices
from sqlmodel.ext.asyncio.session import AsyncSession
from khata.db.main import get_Session
from khata.utils.limiter import limiter
from khata.utils.responses import Result, ok
from typing import List, Optional
import uuid


customer_router = APIRouter()
customer_services = CustomerServices()


@customer_router.post("/", response_model=Result[CustomerCreated], status_code=status.HTTP_200_OK)
@limiter.limit("20/minute")
async def create_customer(
    request: Request,
    response: Response,
    customer: CustomerCreate,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    owner_id = user_details.get("user_id")

    created = await customer_services.create_customer_with_opening_transaction(customer, session, owner_id)

    if created.opening_transaction_error:
        message = f"customer created, opening transaction failed: {created.opening_transaction_error}"
    elif created.opening_transaction_recorded:
        message = "customer created with opening transaction"
    else:
        message = "customer created successfully"

    return ok(created, message)


@customer_router.get("/", response_model=Result[List[CustomerInfo]], status_code=status.HTTP_200_OK)
@limiter.limit("100/minute")
async def get_all_customers(
    request: Request,
    response: Response,
    search: Optional[str] = None,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    owner_id = user_details.get("user_id")

    customers = await customer_services.get_all_customers(session, owner_id, search=search)

    return ok(customers, "customers fetched successfully")


@customer_router.get("/{id}", response_model=Result[CustomerInfo], status_code=status.HTTP_200_OK)
@limiter.limit("100/minute")
async def get_customer(
    request: Request,
    response: Response,
    id: uuid.UUID,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    owner_id = user_details.get("user_id")

    customer = await customer_services.get_customer_by_id(id, session, owner_id)

    return ok(customer, "customer fetched successfully")


@customer_router.get("/{id}/balance", response_model=Result[BalanceInfo], status_code=status.HTTP_200_OK)
@limiter.limit("100/minute")
async def get_customer_balance(
    request: Request,
    response: Response,
    id: uuid.UUID,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    owner_id = user_details.get("user_id")

    balance = await customer_services.get_balance(id, session, owner_id)

    return ok(balance, "balance fetched successfully")


@customer_router.get("/{id}/statement", response_model=Result[CustomerStatement], status_code=status.HTTP_200_OK)
@limiter.limit("30/minute")
async def get_customer_statement(
    request: Request,
    response: Response,
    id: uuid.UUID,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    owner_id = user_details.get("user_id")

    statement = await customer_services.get_customer_statement(id, session, owner_id)

    return ok(statement, "statement fetched successfully")


@customer_router.patch("/{id}", response_model=Result[CustomerInfo], status_code=status.HTTP_200_OK)
@limiter.limit("20/minute")
async def update_customer(
    request: Request,
    response: Response,
    id: uuid.UUID,
    update_data: CustomerUpdate,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    owner_id = user_details.get("user_id")

    customer = await customer_services.update_customer(id, update_data, session, owner_id)

    return ok(customer, "customer updated successfully")


@customer_router.delete("/{id}", response_model=Result[dict], status_code=status.HTTP_200_OK)
@limiter.limit("20/minute")
async def delete_customer(
    request: Request,
    response: Response,
    id: uuid.UUID,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    owner_id = user_details.get("user_id")

    await customer_services.delete_customer(id, session, owner_id)

    return ok({}, "customer deleted successfully")
