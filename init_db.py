"""Create the database tables and apply pending column migrations"""
import asyncio
from taskops.database import engine, init_schema


async def init():
    added = await init_schema()
    await engine.dispose()
    print(f"Database ready. Columns added: {', '.join(added) or 'none'}")


if __name__ == "__main__":
    asyncio.run(init())
