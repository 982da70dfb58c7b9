"""
Tests for DecisionChangeFeed
"""
import asyncio
import threading

import pytest
from factories import drain_loop, make_record

from adjudication.services.decision_change_feed import (ChangeEventType,
                                                        DecisionChangeFeed)


@pytest.mark.asyncio
async def test_subscription_is_scoped_to_matrix(feed):
    """Test subscribers only see their own matrix"""
    m1_events, m2_events = [], []
    feed.subscribe("M1", m1_events.append)
    feed.subscribe("M2", m2_events.append)

    feed.publish(ChangeEventType.INSERT, make_record(matrix_id="M1"))
    feed.publish(ChangeEventType.INSERT, make_record(matrix_id="M2"))
    feed.publish(ChangeEventType.UPDATE, make_record(matrix_id="M1"))
    await drain_loop()

    assert [e.event_type for e in m1_events] == [ChangeEventType.INSERT, ChangeEventType.UPDATE]
    assert len(m2_events) == 1


@pytest.mark.asyncio
async def test_delivery_happens_on_the_loop_not_inline(feed):
    """Test publish schedules delivery instead of calling handlers directly"""
    events = []
    feed.subscribe("M1", events.append)

    event = feed.publish(ChangeEventType.INSERT, make_record())

    assert events == []
    await drain_loop()
    assert events == [event]


@pytest.mark.asyncio
async def test_events_published_from_threads_arrive_in_sequence_order(feed):
    """Test cross-thread publication keeps a single global order"""
    events = []
    feed.subscribe("M1", events.append)

    def publish_many():
        for i in range(20):
            feed.publish(ChangeEventType.INSERT, make_record(uccs_code=i))

    threads = [threading.Thread(target=publish_many) for _ in range(3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    await drain_loop()

    sequences = [e.sequence for e in events]
    assert len(sequences) == 60
    assert sequences == sorted(sequences)


@pytest.mark.asyncio
async def test_close_is_idempotent_and_stops_delivery(feed):
    """Test a closed subscription receives nothing and is released once"""
    events = []
    subscription = feed.subscribe("M1", events.append)
    assert feed.active_subscriptions("M1") == 1

    feed.publish(ChangeEventType.INSERT, make_record())
    subscription.close()
    subscription.close()
    await drain_loop()

    assert events == []
    assert subscription.closed
    assert feed.active_subscriptions() == 0


@pytest.mark.asyncio
async def test_subscription_context_manager_releases(feed):
    """Test scoped acquisition releases the subscription"""
    async with feed.subscribe("M1", lambda e: None) as subscription:
        assert feed.active_subscriptions("M1") == 1
    assert subscription.closed
    assert feed.active_subscriptions("M1") == 0

    with feed.subscribe("M1", lambda e: None):
        assert feed.active_subscriptions("M1") == 1
    assert feed.active_subscriptions("M1") == 0


@pytest.mark.asyncio
async def test_failing_handler_does_not_affect_other_subscribers(feed):
    """Test a raising handler is logged and others still receive the event"""
    received = []

    def broken(event):
        raise RuntimeError("render failed")

    feed.subscribe("M1", broken)
    feed.subscribe("M1", received.append)

    feed.publish(ChangeEventType.INSERT, make_record())
    feed.publish(ChangeEventType.INSERT, make_record())
    await drain_loop()

    assert len(received) == 2


def test_subscribe_requires_a_loop_outside_async_context():
    """Test subscribing without a running loop needs an explicit loop"""
    feed = DecisionChangeFeed()
    with pytest.raises(RuntimeError):
        feed.subscribe("M1", lambda e: None)

    loop = asyncio.new_event_loop()
    try:
        subscription = feed.subscribe("M1", lambda e: None, loop=loop)
        assert feed.active_subscriptions("M1") == 1
        subscription.close()
    finally:
        loop.close()


def test_publish_to_closed_loop_drops_subscription():
    """Test a subscriber whose loop is gone is released on next publish"""
    feed = DecisionChangeFeed()
    loop = asyncio.new_event_loop()
    subscription = feed.subscribe("M1", lambda e: None, loop=loop)
    loop.close()

    feed.publish(ChangeEventType.INSERT, make_record())

    assert subscription.closed
    assert feed.active_subscriptions() == 0
