# src/taskboard/tasks/sweep.py

from __future__ import annotations

"""
Reconciliation sweep.

Task messages live on a chat backend where users can delete them at any time.
The sweep walks every tracked task:
- message gone      -> mark the task for removal,
- message present   -> re-render in place (urgency depends on the clock),
- backend failure   -> log and move on.

Marked tasks are removed from the store in one batch after the whole pass.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..core.errors import NotFoundError, TaskBotError

if TYPE_CHECKING:
    from .lifecycle import LifecycleEngine

logger = logging.getLogger(__name__)

DAY_SECONDS = 24 * 3600.0


@dataclass(slots=True)
class SweepReport:
    refreshed: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


async def run_sweep(engine: LifecycleEngine) -> SweepReport:
    store = engine.task_store
    messenger = engine.messenger
    report = SweepReport()
    # task id -> message id that was found missing
    missing: dict[str, str | None] = {}

    for task_id in list(store.all().keys()):
        async with engine.lock_for(task_id):
            # Re-read under the lock: a press may have moved or removed it.
            task = store.get(task_id)
            if task is None:
                continue

            try:
                if not task.message_id:
                    raise NotFoundError(f"Task {task_id} has no message")
                await messenger.get_message(task.channel_id, task.message_id)
            except NotFoundError:
                logger.info("Sweep: message for task %s is gone; removing task", task_id)
                missing[task_id] = task.message_id
                continue
            except TaskBotError:
                logger.exception("Sweep: could not resolve message for task %s", task_id)
                report.failed.append(task_id)
                continue

            try:
                await engine.refresh(task)
            except NotFoundError:
                logger.info("Sweep: message for task %s vanished during refresh; removing task", task_id)
                missing[task_id] = task.message_id
            except TaskBotError:
                logger.exception("Sweep: refresh failed for task %s", task_id)
                report.failed.append(task_id)
            else:
                report.refreshed.append(task_id)

    for task_id, message_id in missing.items():
        current = store.get(task_id)
        if current is None or current.message_id != message_id:
            # Moved (archived) or cancelled by a press after it was checked.
            continue
        store.remove(task_id)
        engine.forget_lock(task_id)
        report.removed.append(task_id)
    store.save_all()

    logger.info(
        "Sweep done: refreshed=%d removed=%d failed=%d",
        len(report.refreshed),
        len(report.removed),
        len(report.failed),
    )
    return report


async def run_sweep_scheduler(
        engine: LifecycleEngine,
        *,
        interval_seconds: float = DAY_SECONDS,
        run_at_start: bool = False,
) -> None:
    """
    Run the sweep every interval_seconds.

    A failed pass is logged and never stops the loop.
    To stop the scheduler, cancel the coroutine/task.
    """
    sleep_s = max(1.0, float(interval_seconds))

    if not run_at_start:
        await asyncio.sleep(sleep_s)

    while True:
        try:
            await run_sweep(engine)
        except Exception:
            logger.exception("Sweep pass failed")

        await asyncio.sleep(sleep_s)
