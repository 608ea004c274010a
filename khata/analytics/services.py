from sqlmodel import select, func
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from khata.customers.models import Customer
from khata.transactions.models import TransactionType
from khata.transactions.services import TransactionServices
from khata.analytics.schemas import CollectionItem, DailyCollection, CollectionRange, LedgerSummary
from khata.errors import ValidationError, StorageError
from khata.utils.money import ZERO
from khata.utils.dates import local_day_bounds, local_date, today
from datetime import date, timedelta
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)

MAX_RANGE_DAYS = 366


def _collection_item(transaction, customer_name: str) -> CollectionItem:
    return CollectionItem(
        id=transaction.id,
        customer_id=transaction.customer_id,
        customer_name=customer_name,
        amount=transaction.amount,
        type=transaction.type,
        description=transaction.description,
        transaction_date=transaction.transaction_date,
    )


def _daily_collection(day: date, items: List[CollectionItem]) -> DailyCollection:
    # the total is derived from the listed rows, never queried separately
    return DailyCollection(
        date=day,
        total_collection=sum((item.amount for item in items), ZERO),
        transactions=items,
    )


class AnalyticsServices:

    def __init__(self, transaction_services: TransactionServices = None):
        self.transaction_services = transaction_services or TransactionServices()

    async def get_daily_collections(self, session: AsyncSession, owner_id: str, day: Optional[date] = None) -> DailyCollection:
        """Money collected on one day in the ledger timezone.

        Only PAYMENT transactions are listed and summed; credits given out
        on the same day are not collections.
        """
        day = day or today()
        start, end = local_day_bounds(day)

        rows = await self.transaction_services.get_transactions_in_range(
            session, owner_id, start, end, TransactionType.PAYMENT
        )

        return _daily_collection(day, [_collection_item(t, name) for t, name in rows])

    async def get_collections(self, session: AsyncSession, owner_id: str, start_day: date, end_day: date) -> CollectionRange:
        if start_day > end_day:
            raise ValidationError("start date must not be after end date")

        days = (end_day - start_day).days + 1
        if days > MAX_RANGE_DAYS:
            raise ValidationError(f"date range must not exceed {MAX_RANGE_DAYS} days")

        start, _ = local_day_bounds(start_day)
        _, end = local_day_bounds(end_day)

        rows = await self.transaction_services.get_transactions_in_range(
            session, owner_id, start, end, TransactionType.PAYMENT
        )

        by_day = {start_day + timedelta(days=i): [] for i in range(days)}
        for transaction, name in rows:
            by_day[local_date(transaction.transaction_date)].append(_collection_item(transaction, name))

        # Fill gaps with empty days
        daily = [_daily_collection(day, items) for day, items in by_day.items()]

        return CollectionRange(
            start_date=start_day,
            end_date=end_day,
            total_collection=sum((d.total_collection for d in daily), ZERO),
            days=daily,
        )

    async def get_ledger_summary(self, session: AsyncSession, owner_id: str) -> LedgerSummary:
        totals_stmt = select(
            func.sum(Customer.total_credit),
            func.sum(Customer.total_paid),
            func.sum(Customer.balance),
            func.count(Customer.id),
        ).where(Customer.owner_id == owner_id)
        active_stmt = select(func.count(Customer.id)).where(
            Customer.owner_id == owner_id,
            Customer.is_active == True,  # noqa: E712
        )

        try:
            totals_result = await session.exec(totals_stmt)
            total_credit, total_paid, total_outstanding, total_customers = totals_result.one()

            active_result = await session.exec(active_stmt)
            active_customers = active_result.one()

        except SQLAlchemyError as e:
            await session.rollback()
            logger.exception("Failed to build ledger summary for owner %s", owner_id)
            raise StorageError() from e

        return LedgerSummary(
            total_credit=total_credit or ZERO,
            total_paid=total_paid or ZERO,
            total_outstanding=total_outstanding or ZERO,
            total_customers=total_customers or 0,
            active_customers=active_customers or 0,
        )
