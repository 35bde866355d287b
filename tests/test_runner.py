# tests/test_runner.py

from __future__ import annotations

import asyncio
import threading

from taskboard.connectors.runner import start_in_background


def test_background_runner_submits_and_stops() -> None:
    seen: list[str] = []

    async def main(stop_event: asyncio.Event) -> None:
        seen.append("started")
        await stop_event.wait()
        seen.append("stopped")

    runner = start_in_background("test", main)
    assert runner is not None

    async def work() -> str:
        await asyncio.sleep(0)
        return threading.current_thread().name

    assert runner.submit(work(), timeout=5.0) == "test-loop"

    runner.stop()
    runner.join(timeout=5.0)
    assert not runner.is_alive()
    assert seen == ["started", "stopped"]
