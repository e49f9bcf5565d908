"""Event bus tests."""

import asyncio

import pytest

from flowtide.events import InMemoryEventBus


@pytest.mark.asyncio
async def test_inmemory_publish_subscribe():
    bus = InMemoryEventBus()
    received = []

    async def on_event(event):
        received.append(event)

    await bus.subscribe("user.registered", on_event)
    event = await bus.publish("user.registered", {"userId": 7})
    await bus.publish("user.deleted", {"userId": 7})
    await bus.drain()

    assert len(received) == 1
    assert received[0].id == event.id
    assert received[0].type == "user.registered"
    assert received[0].payload == {"userId": 7}


@pytest.mark.asyncio
async def test_wildcard_receives_every_topic_in_order():
    bus = InMemoryEventBus()
    topics = []
    await bus.subscribe("*", lambda event: topics.append(event.type))

    await bus.publish("a", {})
    await bus.publish("b", {})
    await bus.publish("c", {})
    await bus.drain()
    assert topics == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_publish_does_not_wait_for_subscribers():
    bus = InMemoryEventBus()
    release = asyncio.Event()
    finished = []

    async def slow(event):
        await release.wait()
        finished.append(event.type)

    await bus.subscribe("topic", slow)
    await asyncio.wait_for(bus.publish("topic", {}), timeout=1)
    assert finished == []
    assert bus.pending_deliveries == 1

    release.set()
    await bus.drain()
    assert finished == ["topic"]
    assert bus.pending_deliveries == 0


@pytest.mark.asyncio
async def test_drain_waits_for_chained_publishes():
    bus = InMemoryEventBus()
    received = []

    async def relay(event):
        await bus.publish("second", {})

    await bus.subscribe("first", relay)
    await bus.subscribe("second", lambda event: received.append(event.type))

    await bus.publish("first", {})
    await bus.drain()
    assert received == ["second"]


@pytest.mark.asyncio
async def test_cancelled_subscription_stops_delivery():
    bus = InMemoryEventBus()
    received = []
    subscription = await bus.subscribe("topic", lambda event: received.append(event))

    await bus.publish("topic", {"n": 1})
    await bus.drain()
    await subscription.cancel()
    await bus.publish("topic", {"n": 2})
    await bus.drain()

    assert [e.payload["n"] for e in received] == [1]
    assert bus.subscriber_count("topic") == 0


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_block_others():
    bus = InMemoryEventBus()
    received = []

    async def broken(event):
        raise RuntimeError("subscriber bug")

    await bus.subscribe("topic", broken)
    await bus.subscribe("topic", lambda event: received.append(event))

    await bus.publish("topic", {})
    await bus.drain()
    assert len(received) == 1


@pytest.mark.asyncio
async def test_recent_events_are_bounded():
    bus = InMemoryEventBus(history_size=3)
    for n in range(5):
        await bus.publish("topic", {"n": n})

    recent = await bus.get_recent_events(50)
    assert [e.payload["n"] for e in recent] == [2, 3, 4]
    assert [e.payload["n"] for e in await bus.get_recent_events(2)] == [3, 4]
    assert await bus.get_recent_events(0) == []


@pytest.mark.asyncio
async def test_redis_event_bus_import():
    """RedisEventBus can be constructed without contacting a server."""
    from flowtide.events.redis import RedisEventBus

    bus = RedisEventBus(url="redis://localhost:6379/0", channel_prefix="test:")
    assert bus.url == "redis://localhost:6379/0"
    assert bus.history_key == "test:events"
