import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from langchain_core.language_models import FakeListChatModel

from flowmind.application.app import create_app
from flowmind.application.broadcast.change_broadcaster import ChangeBroadcaster
from flowmind.application.broadcast.events import EventType, StoreChangeEvent
from flowmind.application.processing_loop import ProcessingLoop
from flowmind.domain.models.term import Atom
from flowmind.domain.models.thought import Category, Status, Thought
from flowmind.infrastructure.persistence.state_store import JsonStateStore


@pytest.fixture
def loop(engine, settings) -> ProcessingLoop:
    return ProcessingLoop(engine, persistence=JsonStateStore(settings.state_file))


async def test_initialize_bootstraps_empty_rule_store(loop, rules):
    await loop.initialize()
    descriptions = {r.metadata.description for r in await rules.get_all()}
    assert "Fact -> Add to Memory" in descriptions
    assert "Ask User How to Handle Failure Log" in descriptions

    # a second initialize keeps the existing rules
    await loop.initialize()
    assert await rules.count() == 2
    await loop.shutdown()


async def test_initialize_survives_corrupt_snapshot(loop, settings, rules):
    settings.state_file.write_text("garbage", encoding="utf-8")
    await loop.initialize()
    assert await rules.count() == 2
    await loop.shutdown()


async def test_step_processes_and_publishes(loop, llm):
    events = []

    async def collect(event):
        events.append(event)

    loop.broadcaster.subscribe(collect)
    llm.responses = ["Book flights"]

    submitted = await loop.submit_input("Plan a trip")
    assert await loop.step() == 1

    changed = {
        item["id"]: item
        for event in events if isinstance(event, StoreChangeEvent) and event.store == "thoughts"
        for item in event.changed
    }
    assert changed[submitted.id]["status"] == "done"
    assert any(item["category"] == "goal" for item in changed.values())


async def test_respond_by_prefix_resumes_waiting_thought(loop, engine, thoughts):
    await loop.initialize()
    question = await engine.add_thought(Thought(category=Category.QUERY, content=Atom("what next?")))
    await loop.step()

    waiting = await thoughts.get(question.id)
    assert waiting.status == Status.WAITING

    assert await loop.respond(waiting.metadata.waiting_for[:8], "go to rome")

    assert (await thoughts.get(question.id)).status == Status.PENDING
    assert await loop.respond("zzzzzzzz", "nobody asked") is False
    await loop.shutdown()


async def test_running_loop_ticks_until_paused(loop, thoughts):
    await loop.submit_input("Plan a trip")
    loop.start()
    assert loop.is_running

    for _ in range(50):
        if not await thoughts.get_pending():
            break
        await asyncio.sleep(0.02)
    await loop.pause()

    assert not loop.is_running
    assert not await thoughts.get_pending()
    status = await loop.status()
    assert status.running is False
    assert status.summary["thoughts"]["done"] >= 1


async def test_shutdown_flushes_state(loop, settings):
    await loop.initialize()
    await loop.submit_input("remember me")
    loop.start()

    await loop.shutdown()

    data = json.loads(settings.state_file.read_text(encoding="utf-8"))
    assert any(t["content"] == {"kind": "Atom", "name": "remember me"} for t in data["thoughts"].values())
    assert len(data["rules"]) == 2


async def test_broadcaster_drops_failing_subscriber(thoughts, rules):
    broadcaster = ChangeBroadcaster(thoughts, rules)
    healthy = AsyncMock()
    broken = AsyncMock(side_effect=ConnectionError("gone"))
    broadcaster.subscribe(broken)
    broadcaster.subscribe(healthy)

    await thoughts.add(Thought(category=Category.INPUT, content=Atom("a")))
    events = await broadcaster.publish()

    assert [e.type for e in events] == [EventType.STORE_CHANGE]
    healthy.assert_awaited_once()
    assert broadcaster.subscribers == [healthy]
    assert await broadcaster.publish() == []


async def test_broadcast_reports_deletions(thoughts, rules):
    broadcaster = ChangeBroadcaster(thoughts, rules)
    added = await thoughts.add(Thought(category=Category.INPUT, content=Atom("short lived")))
    await broadcaster.publish()
    await thoughts.delete(added.id)

    events = await broadcaster.publish()

    assert events[0].deleted == [added.id]
    assert events[0].changed == []


async def test_create_app_runs_end_to_end(settings):
    app = create_app(FakeListChatModel(responses=["Book flights"]), settings=settings)
    await app.initialize()

    submitted = await app.submit_input("Plan a trip")
    await app.step()
    await app.shutdown()

    thoughts = await app.engine.thoughts.get_all()
    assert next(t for t in thoughts if t.id == submitted.id).status == Status.DONE
    assert [t.content for t in thoughts if t.category == Category.GOAL] == [Atom("Book flights")]
    assert settings.state_file.exists()


async def test_pause_and_run_task_by_prefix(loop, engine, thoughts, llm):
    llm.responses = ["Book flights"]
    submitted = await loop.submit_input("Plan a trip")

    assert await loop.pause_task(submitted.id[:8])
    assert await loop.step() == 0

    tasks = await loop.list_tasks()
    assert [(t["id"], t["task_status"]) for t in tasks] == [(submitted.id, "paused")]

    assert await loop.run_task(submitted.id[:8])
    assert await loop.step() == 1
    tasks = await loop.list_tasks()
    assert tasks[0]["task_status"] == "running"
    assert tasks[0]["descendants"] == 1

    assert await loop.pause_task("zzzzzzzz") is False
