"""Create the pricebook tables and, with --demo, load the demo registries"""
import argparse
import asyncio

from pricebook.database import engine, Base
from pricebook.models import *  # noqa: F401,F403 - register every table on Base.metadata


async def init(demo: bool) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print(f"Created tables: {', '.join(sorted(Base.metadata.tables))}")

    if demo:
        from pricebook.main import seed_demo_registries
        await seed_demo_registries()
        print("Loaded demo suppliers, customers and products.")

    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--demo", action="store_true", help="seed demo registries")
    asyncio.run(init(parser.parse_args().demo))
