"""
Create all tables from the ORM metadata.

Run once against an empty database:
  python -m app.db.init_db
"""
import asyncio

import app.auth.models  # noqa: F401  (register users / refresh_tokens)
import app.core.models  # noqa: F401
from app.core.logging import get_logger, setup_logging
from app.db.session import Base, engine

logger = get_logger("db.init")


async def create_tables() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Created %d tables", len(Base.metadata.tables))


async def main() -> None:
    setup_logging()
    try:
        await create_tables()
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
