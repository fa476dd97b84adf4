#!/usr/bin/env uv run
# /// script
# requires-python = ">=3.9"
# dependencies = [
#     "shellcache",
# ]
#
# [tool.uv.sources]
# shellcache = { path = "../", editable = true }
# ///

import asyncio

import anysqlite
import httpx

from shellcache import (
    AsyncContentTransport,
    AsyncContentWorker,
    AsyncInMemoryVersionStore,
    AsyncSQLiteStorage,
    WorkerConfig,
)

TEMPLATE = "<!doctype html><html><body>%_CONTENT_REPLACE_%</body></html>"


async def fetch_and_print(client: httpx.AsyncClient, url: str) -> None:
    print(f"\n➡ Sending request to {url}...")
    response = await client.get(url)

    print(f"📍 Status: {response.status_code}")
    print(f"🔄 From Cache: {response.extensions.get('from_cache', False)}")
    print(f"🗂 Cache Name: {response.extensions.get('cache_name')}")


async def main() -> None:
    worker = AsyncContentWorker(
        httpx.AsyncHTTPTransport(),
        TEMPLATE,
        WorkerConfig(origin="https://web.dev", network_timeout=5),
        storage=AsyncSQLiteStorage(connection=await anysqlite.connect(":memory:")),
        version_store=AsyncInMemoryVersionStore(),
    )

    async with httpx.AsyncClient(transport=AsyncContentTransport(worker)) as client:
        await worker.activate(await worker.install())
        await fetch_and_print(client, "https://fonts.googleapis.com/css?family=Roboto")
        await fetch_and_print(client, "https://fonts.googleapis.com/css?family=Roboto")
        await fetch_and_print(client, "https://web.dev/blog/")


if __name__ == "__main__":
    asyncio.run(main())
