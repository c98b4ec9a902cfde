import logging
from contextlib import asynccontextmanager, contextmanager
from functools import wraps
from typing import AsyncIterator, Dict, Iterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm.exc import StaleDataError

from schoolfees.core.config import settings
from schoolfees.core.exceptions import InvalidStateError, ServiceError, StoreError

logger = logging.getLogger(__name__)


def _connect_args(database_url: str, timeout: float) -> Dict[str, float]:
    """Driver-level timeouts so no store call blocks indefinitely."""
    if database_url.startswith("postgresql+asyncpg"):
        return {"timeout": timeout, "command_timeout": timeout}
    if database_url.startswith("sqlite"):
        return {"timeout": timeout}
    return {}


# pool_pre_ping: check connection is alive before use (avoids "connection is closed" errors
# when DB or network closed idle connections).
# pool_recycle: discard connections after this many seconds to avoid stale connections.
engine = create_async_engine(
    settings.database_url,
    echo=False,
    future=True,
    pool_pre_ping=True,
    pool_recycle=300,
    connect_args=_connect_args(settings.database_url, settings.store_timeout_seconds),
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session


@asynccontextmanager
async def transactional(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Unit of work for a single mutation. Everything added to the session inside the block
    (the mutation and its audit entry) commits together or is rolled back together.
    """
    try:
        yield db
        await db.commit()
    except ServiceError:
        await db.rollback()
        raise
    except (StaleDataError, IntegrityError) as exc:
        await db.rollback()
        logger.warning("Concurrent write rejected: %s", exc)
        raise InvalidStateError("Record was changed by another request; re-fetch and retry") from exc
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Store failure, transaction rolled back")
        raise StoreError("The data store is unavailable; no changes were applied") from exc


@contextmanager
def store_errors() -> Iterator[None]:
    """Surface store failures outside a unit of work as StoreError."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception("Store failure while reading")
        raise StoreError("The data store is unavailable; try again later") from exc


def store_call(func):
    """Run a service coroutine under store_errors()."""

    @wraps(func)
    async def wrapper(*args, **kwargs):
        with store_errors():
            return await func(*args, **kwargs)

    return wrapper
