from __future__ import annotations
from functools import lru_cache
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from intake.db import models


@lru_cache(maxsize=None)
def get_engine(database_url: str) -> AsyncEngine:
    # um engine (e pool) por URL e por processo
    return create_async_engine(database_url, echo=False)


def make_sessionmaker(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)
