"""Initialize database tables (local development; use alembic elsewhere)."""
import asyncio
import logging

from stockroom.database import init_db


async def init():
    """Create all tables."""
    print("Creating database tables...")
    await init_db()
    print("Database tables created successfully!")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(init())
