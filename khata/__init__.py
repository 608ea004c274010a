from fastapi import FastAPI, HTTPException, Request, status
from contextlib import asynccontextmanager
from khata.config import Config
from khata.db.main import init_db
from khata.db.redis import redis_client, check_redis_connection

from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from khata.errors import ErrorKind, LedgerError
from khata.customers.routes import customer_router
from khata.transactions.routes import transaction_router
from khata.analytics.routes import analytics_router
from khata.utils.limiter import limiter
import logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=Config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Server started")

    # 1. Initialize the database
    await init_db()

    # 2. Check Redis Connection
    await check_redis_connection()

    yield

    # 3. Clean up Redis connections on shutdown
    logger.info("Closing Redis connection")
    if redis_client:
        await redis_client.aclose()
    logger.info("Server closed")

app = FastAPI(
    title="Khata Ledger API",
    description="Customer credit and payment ledger with daily collections",
    lifespan=lifespan
)

# Required for SlowAPI to function correctly on routes
app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def health_check():
    return {
        "success": True,
        "message": "Server Working",
        "data": None
    }


def error_response(status_code: int, message: str, error=None, headers=None, **extra):
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "message": message,
            "data": None,
            "error": error,
            **extra
        },
        headers=headers,
    )


@app.exception_handler(LedgerError)
async def ledger_exception_handler(request: Request, exc: LedgerError):
    headers = {"Retry-After": "1"} if exc.retryable else None
    return error_response(exc.status_code, exc.message, exc.kind.value, headers=headers)


@app.exception_handler(HTTPException)
async def custom_http_exception_handler(request: Request, exc: HTTPException):
    return error_response(exc.status_code, exc.detail, headers=getattr(exc, "headers", None))


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded):
    return error_response(status.HTTP_429_TOO_MANY_REQUESTS, f"Rate limit exceeded: {exc.detail}")


def format_validation_errors(errors):
    formatted = []
    for err in errors:
        # Skip the first element if it's "body", "query", etc.
        loc = err["loc"]
        field = ".".join(str(l) for l in loc[1:]) if len(loc) > 1 else str(loc[0])
        formatted.append({
            "field": field,
            "message": err["msg"]
        })
    return formatted


@app.exception_handler(RequestValidationError)
async def custom_validation_exception_handler(request: Request, exc: RequestValidationError):
    return error_response(
        422,
        "Validation error",
        "validation_error",
        errors=format_validation_errors(exc.errors()),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "internal server error",
        ErrorKind.STORAGE.value,
    )

# Register all routers
app.include_router(customer_router, prefix="/api/customers", tags=["Customers"])
app.include_router(transaction_router, prefix="/api/transactions", tags=["Transactions"])
app.include_router(analytics_router, prefix="/api/analytics", tags=["Analytics"])
