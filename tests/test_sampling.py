from collections import Counter

from flowmind.domain.models.belief import Belief
from flowmind.domain.models.term import Atom
from flowmind.domain.models.thought import Category, Status, Thought, ThoughtMetadata


async def add(engine, text, priority=None, belief=None, category=Category.INPUT) -> Thought:
    return await engine.add_thought(Thought(
        category=category,
        content=Atom(text),
        belief=belief or Belief(),
        metadata=ThoughtMetadata(priority=priority)
    ))


async def test_priority_weighted_sampling_ratio(engine):
    heavy = await add(engine, "heavy", priority=9)
    await add(engine, "light", priority=1)

    counts = Counter()
    for _ in range(10_000):
        counts[(await engine.sample_thought()).id] += 1

    assert 8800 <= counts[heavy.id] <= 9200


async def test_belief_is_the_default_weight(engine):
    confident = await add(engine, "confident", belief=Belief(pos=98, neg=0))
    await add(engine, "doubtful", belief=Belief(pos=0, neg=98))

    counts = Counter()
    for _ in range(2_000):
        counts[(await engine.sample_thought()).id] += 1

    assert counts[confident.id] > 1_800


async def test_zero_priority_stays_selectable(engine):
    zero = await add(engine, "zero", priority=0)
    negative = await add(engine, "negative", priority=-5)

    seen = {(await engine.sample_thought()).id for _ in range(200)}
    assert seen == {zero.id, negative.id}


async def test_active_and_non_pending_thoughts_are_skipped(engine, thoughts):
    in_flight = await add(engine, "in flight")
    done = await add(engine, "done")
    done.status = Status.DONE
    await thoughts.update(done)
    await add(engine, "question", category=Category.USER_PROMPT)
    eligible = await add(engine, "eligible")

    engine._active_ids.add(in_flight.id)
    picks = {(await engine.sample_thought()).id for _ in range(50)}
    assert picks == {eligible.id}


async def test_nothing_to_sample(engine):
    assert await engine.sample_thought() is None
    assert await engine.process_one() is False
    assert await engine.process_batch() == 0
