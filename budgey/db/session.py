from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from budgey.db.settings import get_settings

settings = get_settings()

engine = create_async_engine(settings.database_url, future=True)
AsyncSessionLocal = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
