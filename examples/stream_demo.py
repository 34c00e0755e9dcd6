#!/usr/bin/env python3
"""Stream Demo - Shows live, shared and collected process output."""

import asyncio
import sys

from spawn_stream import ProcessExitError, spawn, spawn_output, spawn_split_output

TICKER = "\n".join(
    [
        "import sys, time",
        "for i in range(3):",
        "    print(f'tick {i}', flush=True)",
        "    time.sleep(0.2)",
        "sys.stderr.write('done\\n')",
    ]
)


async def demo_streaming():
    """Demonstrate streaming, multicast and aggregation."""
    print("Process Stream Demo")
    print("=" * 50)
    print(f"Platform: {sys.platform}")
    print()

    print("Streaming events as they arrive:")
    async for event in spawn(sys.executable, ["-c", TICKER]):
        print(f"  [{event.source}] {event.text.rstrip()}")
    print()

    # Two subscribers attached before the first event share one process
    print("Two subscribers, one process:")
    stream = spawn(sys.executable, ["-c", TICKER])
    async with stream.subscribe() as first, stream.subscribe() as second:
        left = [event.text async for event in first]
        right = [event.text async for event in second]
    print(f"  first saw {len(left)} chunks, second saw {len(right)} chunks")
    print(f"  pid: {stream.metadata.pid if stream.metadata else 'unknown'}")
    print()

    print("Collected output:")
    out = await spawn_output(sys.executable, ["-c", TICKER])
    print(f"  merged: {out.split()}")
    out, err = await spawn_split_output(sys.executable, ["-c", TICKER])
    print(f"  stdout: {out.split()}  stderr: {err.split()}")
    print()

    print("A failing command:")
    try:
        await spawn_output(sys.executable, ["-c", "print('partial'); raise SystemExit(3)"])
    except ProcessExitError as e:
        print(f"  exit code {e.exit_code}, output so far: {e.stdout.strip()!r}")
    print()

    print("Stream demo completed successfully!")


if __name__ == "__main__":
    asyncio.run(demo_streaming())
