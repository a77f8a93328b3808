"""
Example 01: Streaming a File Through a Large Object
====================================================

Demonstrates the composite stream operations:
- create_and_writable_stream() to upload a file in chunks
- open_and_readable_stream() to read it back with its size up front
- settled() to observe the automatic close of each handle
- An EventBus subscriber for out-of-band close failures

Needs a PostgreSQL server:
    PGLO_DSN=postgresql://localhost/postgres uv run python examples/01_stream_file.py path/to/file
"""

import asyncio
import hashlib
import os
import sys
from pathlib import Path

import psycopg

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pglo import EventBus, LargeObjectEvent, LargeObjectManager  # noqa: E402


async def main(path: Path) -> None:
    dsn = os.environ.get("PGLO_DSN", "postgresql://localhost/postgres")
    bus = EventBus()
    bus.subscribe(
        LargeObjectEvent.CLOSE_FAILED,
        lambda event, payload: print(f"  ! close failed for {payload['oid']}: {payload['error']}"),
    )

    async with await psycopg.AsyncConnection.connect(dsn) as conn:
        print(f"Uploading {path} ({path.stat().st_size} bytes)")
        async with conn.transaction():
            manager = LargeObjectManager(conn, event_bus=bus)
            oid, writer = await manager.create_and_writable_stream()
            with path.open("rb") as fh:
                written = await writer.write_from(fh)
            await writer.settled()
        print(f"  oid={oid} written={written}")

        print("Reading it back")
        digest = hashlib.sha256()
        async with conn.transaction():
            manager = LargeObjectManager(conn, event_bus=bus)
            size, reader = await manager.open_and_readable_stream(oid, 64 * 1024)
            async for chunk in reader:
                digest.update(chunk)
            await reader.settled()
            await manager.unlink(oid)

        original = hashlib.sha256(path.read_bytes()).hexdigest()
        print(f"  size={size} match={digest.hexdigest() == original}")


if __name__ == "__main__":
    if len(sys.argv) != 2:
        sys.exit("usage: 01_stream_file.py FILE")
    asyncio.run(main(Path(sys.argv[1])))
