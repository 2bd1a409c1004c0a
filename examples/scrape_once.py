#!/usr/bin/env python3
"""Example: scrape one FEMS device twice over a shared pool; the second scrape reuses the session."""

import asyncio
import sys

from fems_exporter import ConnectionPool, RemoteAddress, scrape


async def main() -> int:
    address = RemoteAddress.parse("192.168.1.20:502")  # change to your FEMS
    fems_id = "home"

    pool = ConnectionPool(timeout=3.0)
    try:
        for _ in range(2):
            result = await scrape(pool, address, fems_id)
            if not result.ok:
                print(result.body, file=sys.stderr)
                return 1
            print(result.body, end="")
        print(f"sessions open: {len(pool)}")
    finally:
        await pool.close()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
