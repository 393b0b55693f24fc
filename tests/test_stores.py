import asyncio

import pytest

from flowmind.domain.models.term import Atom
from flowmind.domain.models.thought import Category, Rule, RuleMetadata, Status, Thought, ThoughtMetadata


def make_thought(text="t", category=Category.INPUT, **metadata) -> Thought:
    return Thought(category=category, content=Atom(text), metadata=ThoughtMetadata(**metadata))


async def test_add_stamps_created_and_update_preserves_it(thoughts):
    added = await thoughts.add(make_thought())
    assert added.metadata.created_at is not None

    await asyncio.sleep(0.001)
    added.status = Status.DONE
    assert await thoughts.update(added)

    stored = await thoughts.get(added.id)
    assert stored.status == Status.DONE
    assert stored.metadata.created_at == added.metadata.created_at
    assert stored.metadata.modified_at > stored.metadata.created_at


async def test_update_merges_metadata_the_caller_did_not_set(thoughts):
    added = await thoughts.add(make_thought(tags=["travel"], priority=2.0, error="old"))

    fresh = Thought(id=added.id, category=Category.GOAL, content=Atom("rewritten"), metadata=ThoughtMetadata(retries=1))
    assert await thoughts.update(fresh)

    stored = await thoughts.get(added.id)
    assert stored.category == Category.GOAL
    assert stored.content == Atom("rewritten")
    assert stored.metadata.retries == 1
    assert stored.metadata.tags == ["travel"]
    assert stored.metadata.priority == 2.0
    assert stored.metadata.error == "old"
    assert stored.metadata.created_at == added.metadata.created_at


async def test_update_applies_explicit_clears(thoughts):
    added = await thoughts.add(make_thought(error="old", waiting_for="prompt-1"))

    added.metadata.error = None
    added.metadata.waiting_for = None
    added.metadata.tags.append("seen")
    await thoughts.update(added)

    stored = await thoughts.get(added.id)
    assert stored.metadata.error is None
    assert stored.metadata.waiting_for is None
    assert stored.metadata.tags == ["seen"]


async def test_update_of_unknown_id_is_rejected(thoughts):
    assert not await thoughts.update(make_thought())
    assert await thoughts.count() == 0


async def test_returned_items_are_copies(thoughts):
    added = await thoughts.add(make_thought())
    added.status = Status.FAILED
    assert (await thoughts.get(added.id)).status == Status.PENDING


async def test_find_by_id_prefix(thoughts):
    a = await thoughts.add(Thought(id="abc111", category=Category.INPUT, content=Atom("a")))
    await thoughts.add(Thought(id="abc222", category=Category.INPUT, content=Atom("b")))

    assert (await thoughts.find_by_id_prefix("abc1")).id == a.id
    assert await thoughts.find_by_id_prefix("abc") is None
    assert await thoughts.find_by_id_prefix("ab") is None
    assert await thoughts.find_by_id_prefix("zzz") is None
    assert (await thoughts.find_by_id_prefix("abc111")).id == a.id


async def test_listeners_fire_after_every_mutation(thoughts):
    calls = []

    def listener():
        calls.append(1)

    thoughts.subscribe(listener)
    added = await thoughts.add(make_thought())
    await thoughts.update(added)
    await thoughts.delete(added.id)
    thoughts.unsubscribe(listener)
    await thoughts.add(make_thought())

    assert len(calls) == 3


async def test_failing_listener_does_not_break_mutation(thoughts):
    def broken():
        raise RuntimeError("boom")

    thoughts.subscribe(broken)
    added = await thoughts.add(make_thought())
    assert await thoughts.get(added.id) is not None


async def test_extract_delta_returns_and_clears(thoughts):
    kept = await thoughts.add(make_thought("kept"))
    removed = await thoughts.add(make_thought("removed"))
    await thoughts.delete(removed.id)

    delta = await thoughts.extract_delta()
    assert delta.store == "thoughts"
    assert [t.id for t in delta.changed] == [kept.id]
    assert delta.deleted == [removed.id]
    assert (await thoughts.extract_delta()).is_empty


async def test_load_replaces_contents_without_delta(thoughts):
    await thoughts.add(make_thought("old"))
    await thoughts.extract_delta()

    await thoughts.load([make_thought("new")])
    everything = await thoughts.get_all()
    assert [t.content for t in everything] == [Atom("new")]
    assert (await thoughts.extract_delta()).is_empty


async def test_pending_and_descendants(thoughts):
    root = await thoughts.add(make_thought("root"))
    child = await thoughts.add(root.spawn(Category.GOAL, Atom("child"), provenance="test"))
    grandchild = await thoughts.add(child.spawn(Category.STRATEGY, Atom("grandchild"), provenance="test"))
    done = make_thought("done")
    done.status = Status.DONE
    await thoughts.add(done)

    descendants = {t.id for t in await thoughts.get_descendants(root.id)}
    assert descendants == {child.id, grandchild.id}
    assert grandchild.metadata.parent_id == child.id
    assert grandchild.root_id == root.id

    pending = {t.id for t in await thoughts.get_pending()}
    assert pending == {root.id, child.id, grandchild.id}

    roots = {t.id for t in await thoughts.get_roots()}
    assert roots == {root.id, done.id}


async def test_prompt_correlation_queries(thoughts):
    waiting = make_thought("waiting", waiting_for="p-1")
    waiting.status = Status.WAITING
    await thoughts.add(waiting)
    prompt = make_thought("question?", category=Category.USER_PROMPT, prompt_id="p-1")
    await thoughts.add(prompt)

    assert (await thoughts.find_pending_prompt("p-1")).id == prompt.id
    assert (await thoughts.find_waiting_thought("p-1")).id == waiting.id
    assert await thoughts.find_pending_prompt("p-2") is None


async def test_search_by_tag(thoughts):
    tagged = await thoughts.add(make_thought(tags=["suggested_goal"]))
    await thoughts.add(make_thought())
    assert [t.id for t in await thoughts.search_by_tag("suggested_goal")] == [tagged.id]


async def test_rule_search_by_description(rules):
    rule = Rule(pattern=Atom("a"), action=Atom("b"), metadata=RuleMetadata(description="Fact -> Add to Memory"))
    await rules.add(rule)
    assert [r.id for r in await rules.search_by_description("memory")] == [rule.id]
    assert await rules.search_by_description("goal") == []
