from fastapi import APIRouter, Depends, Request, Response
from sqlmodel.ext.asyncio.session import AsyncSession
from khata.db.main import get_Session
from khata.utils.auth import get_current_user
from khata.utils.limiter import limiter
from khata.utils.responses import Result, ok
from khata.analytics.services import AnalyticsServices
from khata.analytics.schemas import DailyCollection, CollectionRange, LedgerSummary
from datetime import date
from typing import Optional

analytics_router = APIRouter()
analytics_services = AnalyticsServices()


@analytics_router.get("/daily-collections", response_model=Result[DailyCollection])
@limiter.limit("100/minute")
async def get_daily_collections(
    request: Request,
    response: Response,
    day: Optional[date] = None,
    session: AsyncSession = Depends(get_Session),
    current_user: dict = Depends(get_current_user)
):
    """Payments collected on one day, today when no day is given."""
    owner_id = current_user.get("user_id")
    collections = await analytics_services.get_daily_collections(session, owner_id, day)
    return ok(collections, "daily collections fetched successfully")


@analytics_router.get("/collections", response_model=Result[CollectionRange])
@limiter.limit("30/minute")
async def get_collections(
    request: Request,
    response: Response,
    start: date,
    end: date,
    session: AsyncSession = Depends(get_Session),
    current_user: dict = Depends(get_current_user)
):
    """Payments collected per day over an inclusive date range."""
    owner_id = current_user.get("user_id")
    collections = await analytics_services.get_collections(session, owner_id, start, end)
    return ok(collections, "collections fetched successfully")


@analytics_router.get("/summary", response_model=Result[LedgerSummary])
@limiter.limit("100/minute")
async def get_summary(
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_Session),
    current_user: dict = Depends(get_current_user)
):
    """Ledger totals across all of the owner's customers."""
    owner_id = current_user.get("user_id")
    summary = await analytics_services.get_ledger_summary(session, owner_id)
    return ok(summary, "summary fetched successfully")
