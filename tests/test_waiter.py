import asyncio
import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from lockbroker.modules.queue import (
    NotFound,
    Notifier,
    QueueModule,
    WaitTimeout,
    Waiter,
    WorkItem,
    WorkItemStatus,
)


@pytest.fixture
def notifier():
    return Notifier()


async def _processing_item(store) -> WorkItem:
    item = await store.insert(WorkItem(id="cmd-1", action=2, requester_id="A"))
    await store.claim_next("2026-01-01T00:00:00+00:00")
    return item


# =============================================================================
# Notifier
# =============================================================================


@pytest.mark.asyncio
async def test_notify_sets_every_subscriber(notifier):
    """Test all subscriptions for an id are woken"""
    first = notifier.subscribe("cmd-1")
    second = notifier.subscribe("cmd-1")
    other = notifier.subscribe("cmd-2")

    notifier.notify("cmd-1")

    assert first.is_set()
    assert second.is_set()
    assert not other.is_set()


@pytest.mark.asyncio
async def test_unsubscribe_drops_empty_entries(notifier):
    """Test unsubscribing the last waiter removes the id entirely"""
    event = notifier.subscribe("cmd-1")
    assert notifier.subscriber_count("cmd-1") == 1

    notifier.unsubscribe("cmd-1", event)
    notifier.unsubscribe("cmd-1", event)

    assert notifier.subscriber_count("cmd-1") == 0
    notifier.notify("cmd-1")


# =============================================================================
# Waiter
# =============================================================================


@pytest.mark.asyncio
async def test_wait_returns_terminal_item_immediately(memory_store, notifier):
    """Test an item that is already finished resolves without waiting"""
    await _processing_item(memory_store)
    await memory_store.mark_terminal("cmd-1", WorkItemStatus.COMPLETED, "2026-01-01T00:00:01+00:00")
    waiter = Waiter(memory_store, notifier, poll_interval=10)

    item = await waiter.await_outcome("cmd-1", timeout=0.01)

    assert item.status == WorkItemStatus.COMPLETED
    assert notifier.subscriber_count("cmd-1") == 0


@pytest.mark.asyncio
async def test_wait_wakes_on_notification(memory_store):
    """Test a completion in the same process ends the wait before the next poll"""
    queue = QueueModule(memory_store, poll_interval=30)
    await _processing_item(memory_store)

    async def finish():
        await asyncio.sleep(0.05)
        await queue.complete("cmd-1", True)

    loop = asyncio.get_running_loop()
    started = loop.time()
    item, _ = await asyncio.gather(queue.await_outcome("cmd-1", timeout=5), finish())

    assert item.status == WorkItemStatus.COMPLETED
    assert loop.time() - started < 2


@pytest.mark.asyncio
async def test_wait_polls_for_unnotified_changes(memory_store, notifier):
    """Test a completion written by another process is picked up by polling"""
    await _processing_item(memory_store)
    waiter = Waiter(memory_store, notifier, poll_interval=0.02)

    async def finish_elsewhere():
        await asyncio.sleep(0.05)
        await memory_store.mark_terminal(
            "cmd-1", WorkItemStatus.FAILED, "2026-01-01T00:00:01+00:00", "Jammed"
        )

    item, _ = await asyncio.gather(waiter.await_outcome("cmd-1", timeout=2), finish_elsewhere())

    assert item.status == WorkItemStatus.FAILED
    assert item.failure_reason == "Jammed"


@pytest.mark.asyncio
async def test_wait_timeout_cleans_up(memory_store, notifier):
    """Test a timeout raises, leaves the item alone and drops the subscription"""
    await _processing_item(memory_store)
    waiter = Waiter(memory_store, notifier, poll_interval=0.02)

    with pytest.raises(WaitTimeout) as exc_info:
        await waiter.await_outcome("cmd-1", timeout=0.1)

    assert exc_info.value.item_id == "cmd-1"
    assert (await memory_store.get("cmd-1")).status == WorkItemStatus.PROCESSING
    assert notifier.subscriber_count("cmd-1") == 0


@pytest.mark.asyncio
async def test_wait_unknown_item(memory_store, notifier):
    """Test waiting on an unknown id raises NotFound"""
    waiter = Waiter(memory_store, notifier)

    with pytest.raises(NotFound):
        await waiter.await_outcome("missing", timeout=1)

    assert notifier.subscriber_count("missing") == 0


@pytest.mark.asyncio
async def test_many_waiters_resolve_independently(memory_store):
    """Test each waiter resolves with its own item only"""
    queue = QueueModule(memory_store, claim_guard=False, poll_interval=0.05)
    first_id = await queue.submit(1, "A")
    second_id = await queue.submit(2, "B")
    await queue.claim_next()

    first_wait = asyncio.create_task(queue.await_outcome(first_id, timeout=2))
    second_wait = asyncio.create_task(queue.await_outcome(second_id, timeout=0.2))
    await asyncio.sleep(0.01)

    await queue.complete(first_id, True)

    assert (await first_wait).id == first_id
    with pytest.raises(WaitTimeout):
        await second_wait
