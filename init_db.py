"""Initialize the family hub database schema.

Creates every table the API uses. Pass ``--drop`` to recreate them from
scratch (destroys existing data).
"""

import asyncio
import sys

from hub.config import settings
from hub.db import engine
from hub.models import Base


async def init_database(drop: bool = False):
    """Create all database tables."""
    print(f"Initializing database: {settings.db.url.split('@')[-1]}")

    async with engine.begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
            print("Dropped existing tables")

        await conn.run_sync(Base.metadata.create_all)
        print("Created all tables")

    await engine.dispose()
    print(f"Tables: {', '.join(Base.metadata.tables.keys())}")


async def main():
    """Main entry point."""
    try:
        await init_database(drop="--drop" in sys.argv[1:])
    except Exception as e:
        print(f"\nError initializing database: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
