import logging

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from leadcrm.core.config import settings
from leadcrm.models import Base  # noqa: F401  registers every table on Base.metadata

logger = logging.getLogger(__name__)

database_url = settings.get_database_url

engine_kwargs = {
    "echo": settings.DATABASE_ECHO,
    "future": True,
    "pool_pre_ping": True,
}
if settings.is_postgres:
    engine_kwargs.update(
        pool_recycle=300,
        pool_timeout=30,
        pool_size=10,
        max_overflow=20,
        connect_args={
            "server_settings": {
                "application_name": "leadcrm_fastapi",
            },
        },
    )

async_engine = create_async_engine(database_url, **engine_kwargs)

AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    expire_on_commit=False,
    autoflush=True,
    autocommit=False,
)


async def get_async_db():
    """Request-scoped session. Commits on success, rolls back on error."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def create_tables():
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")
