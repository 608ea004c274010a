from sqlalchemy import event, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from khata.config import Config
from sqlmodel import SQLModel
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession


PG_LOCK_NOT_AVAILABLE = "55P03"


def configure_sqlite_locking(engine: AsyncEngine):
    """Make every SQLite transaction take the database write lock up front.

    SQLite ignores SELECT ... FOR UPDATE, so without this two writers can
    read the same customer snapshot. BEGIN IMMEDIATE serializes them, and
    the driver's busy timeout plays the role of the lock timeout. Foreign
    keys are switched on so the transactions FK cascades.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # stop the driver from emitting its own deferred BEGIN
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["timeout"] = Config.LOCK_TIMEOUT_MS / 1000

    new_engine = create_async_engine(url=url, echo=echo, connect_args=connect_args)

    if new_engine.dialect.name == "sqlite":
        configure_sqlite_locking(new_engine)

    return new_engine


engine = build_engine(Config.DATABASE_URL, echo=Config.DATABASE_ECHO)


async def init_db():
    async with engine.begin() as conn:
        # Import all models here to ensure they are registered on SQLModel.metadata
        from khata.customers import models as _customer_models
        from khata.transactions import models as _transaction_models
        await conn.run_sync(SQLModel.metadata.create_all)


# Session factory configured for async operations
async_session_maker = sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_Session():
    async with async_session_maker() as session:
        yield session


async def set_lock_timeout(session: AsyncSession):
    # SQLite gets its timeout from the connect args instead
    if session.get_bind().dialect.name == "postgresql":
        await session.execute(text(f"SET LOCAL lock_timeout = {int(Config.LOCK_TIMEOUT_MS)}"))


def is_lock_timeout(exc: DBAPIError) -> bool:
    orig = getattr(exc, "orig", None)
    if orig is None:
        return False

    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate == PG_LOCK_NOT_AVAILABLE:
        return True

    return "database is locked" in str(orig).lower()
