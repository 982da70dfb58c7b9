"""
Tests for LiveDecisionView
"""
from unittest.mock import AsyncMock, Mock

import pytest
from factories import (drain_loop, insert_invalid_level, make_event,
                       make_record)

from adjudication.core.errors import BackendError
from adjudication.models.decision import (DecisionKey, DecisionLevel,
                                          DecisionPayload)
from adjudication.services.decision_change_feed import ChangeEventType
from adjudication.services.decision_store import DecisionStoreGateway
from adjudication.services.live_decision_view import (IGNORED, INSERTED,
                                                      REPLACED, STALE,
                                                      LiveDecisionView)


def _view(store=None):
    return LiveDecisionView(store or Mock(spec=DecisionStoreGateway), "M1")


def test_update_event_replaces_in_place():
    """Test an update keeps size and every other record's position"""
    records = [make_record(uccs_code=code) for code in (101, 150, 205, 310)]
    view = _view()
    view.load_snapshot(records)
    target = records[1]

    changed = make_record(
        uccs_code=150,
        decision_id=target.id,
        decision_level=DecisionLevel.RED,
        look_back_period=7,
        offset_seconds=10,
    )
    result = view.apply(make_event(changed, ChangeEventType.UPDATE))

    assert result == REPLACED
    assert len(view) == 4
    assert view.decisions[1] == changed
    assert [r.id for r in view.decisions] == [r.id for r in records]
    assert view.decisions[0] == records[0]
    assert view.decisions[2:] == records[2:]


def test_insert_event_on_empty_snapshot():
    """Test an insert into an empty view yields one record"""
    view = _view()
    view.load_snapshot([])
    record = make_record()

    assert view.apply(make_event(record)) == INSERTED
    assert view.decisions == [record]


def test_inserts_keep_arrival_order_not_code_order():
    """Test new records are appended in arrival order"""
    view = _view()
    view.load_snapshot([])
    y1 = make_record(uccs_code=900)
    y2 = make_record(uccs_code=100)

    view.apply(make_event(y1))
    view.apply(make_event(y2))

    assert [r.id for r in view.decisions] == [y1.id, y2.id]
    assert view.position_of(y2.id) == 1


def test_repeated_event_does_not_duplicate():
    """Test an event for a known id never appends a second copy"""
    view = _view()
    view.load_snapshot([])
    record = make_record()

    view.apply(make_event(record, ChangeEventType.INSERT))
    view.apply(make_event(record, ChangeEventType.UPDATE))

    assert len(view) == 1


def test_update_for_unknown_id_is_appended():
    """Test an update for a record the view has not seen is treated as insert"""
    view = _view()
    view.load_snapshot([make_record(uccs_code=101)])
    other = make_record(uccs_code=205, collaborator_email="bob@x.com")

    assert view.apply(make_event(other, ChangeEventType.UPDATE)) == INSERTED
    assert view.decisions[-1] == other


def test_older_event_does_not_overwrite_newer_record():
    """Test a stale event is dropped"""
    current = make_record(decision_level=DecisionLevel.RED, offset_seconds=20)
    view = _view()
    view.load_snapshot([current])

    old = make_record(decision_id=current.id, decision_level=DecisionLevel.GREEN, offset_seconds=5)

    assert view.apply(make_event(old, ChangeEventType.UPDATE)) == STALE
    assert view.get(current.id).decision_level == DecisionLevel.RED


def test_delete_event_is_ignored():
    """Test delete events leave the collection unchanged"""
    record = make_record()
    view = _view()
    view.load_snapshot([record])

    assert view.apply(make_event(record, ChangeEventType.DELETE)) == IGNORED
    assert view.decisions == [record]


def test_snapshot_fully_replaces_collection():
    """Test reseeding drops whatever was held before"""
    view = _view()
    view.load_snapshot([make_record(uccs_code=1), make_record(uccs_code=2)])
    replacement = make_record(uccs_code=3)

    view.load_snapshot([replacement])

    assert view.decisions == [replacement]
    assert view.position_of(replacement.id) == 0


def test_on_change_called_for_merged_events_only():
    """Test the listener fires for inserts and replacements"""
    calls = []
    view = _view()
    view.on_change = lambda event, v: calls.append(event.event_type)
    record = make_record()
    view.load_snapshot([])

    view.apply(make_event(record))
    view.apply(make_event(record, ChangeEventType.DELETE))
    view.apply(make_event(make_record(decision_id=record.id, offset_seconds=-5), ChangeEventType.UPDATE))

    assert calls == [ChangeEventType.INSERT]


@pytest.mark.asyncio
async def test_open_seeds_from_store_and_follows_feed(store):
    """Test the view picks up changes committed after it opened"""
    seeded = await store.insert_decision(
        DecisionKey(matrix_id="M1", collaborator_email="bob@x.com", uccs_code=205),
        DecisionPayload(decision_level=DecisionLevel.YELLOW),
    )

    async with LiveDecisionView(store, "M1") as view:
        assert [r.id for r in view.decisions] == [seeded.id]

        created = await store.insert_decision(
            DecisionKey(matrix_id="M1", collaborator_email="alice@x.com", uccs_code=101),
            DecisionPayload(decision_level=DecisionLevel.GREEN),
        )
        await store.update_decision(seeded.id, DecisionPayload(decision_level=DecisionLevel.RED))
        await drain_loop()

        assert [r.id for r in view.decisions] == [seeded.id, created.id]
        assert view.get(seeded.id).decision_level == DecisionLevel.RED


@pytest.mark.asyncio
async def test_events_during_snapshot_load_are_replayed():
    """Test events arriving before the snapshot lands are not lost"""
    captured = {}
    existing = make_record(uccs_code=101, offset_seconds=0)
    arrived_early = make_record(uccs_code=205, offset_seconds=1)

    store = Mock(spec=DecisionStoreGateway)

    def subscribe(matrix_id, on_event):
        captured["on_event"] = on_event
        return Mock(closed=False)

    async def list_decisions(matrix_id):
        # Delivered while the snapshot query is in flight
        captured["on_event"](make_event(arrived_early))
        captured["on_event"](make_event(existing, ChangeEventType.UPDATE))
        return [existing]

    store.subscribe_decision_changes = Mock(side_effect=subscribe)
    store.list_decisions = AsyncMock(side_effect=list_decisions)

    view = await LiveDecisionView(store, "M1").open()

    assert [r.id for r in view.decisions] == [existing.id, arrived_early.id]


@pytest.mark.asyncio
async def test_snapshot_failure_leaves_view_empty_but_live():
    """Test a failed snapshot does not block the view"""
    captured = {}
    store = Mock(spec=DecisionStoreGateway)
    subscription = Mock(closed=False)

    def subscribe(matrix_id, on_event):
        captured["on_event"] = on_event
        return subscription

    store.subscribe_decision_changes = Mock(side_effect=subscribe)
    store.list_decisions = AsyncMock(side_effect=BackendError("timeout", operation="list"))

    view = await LiveDecisionView(store, "M1").open()
    assert len(view) == 0

    record = make_record()
    captured["on_event"](make_event(record))
    assert view.decisions == [record]

    view.close()
    subscription.close.assert_called_once()


@pytest.mark.asyncio
async def test_repeated_activation_does_not_leak_subscriptions(store, feed):
    """Test each open/close cycle releases its subscription"""
    for _ in range(3):
        async with LiveDecisionView(store, "M1"):
            assert feed.active_subscriptions("M1") == 1
    assert feed.active_subscriptions("M1") == 0


@pytest.mark.asyncio
async def test_close_releases_subscription_when_body_raises(store, feed):
    """Test the subscription is released on error exit"""
    with pytest.raises(RuntimeError):
        async with LiveDecisionView(store, "M1"):
            raise RuntimeError("view crashed")
    assert feed.active_subscriptions() == 0


@pytest.mark.asyncio
async def test_unreadable_snapshot_row_leaves_view_empty(store, engine, feed):
    """Test a snapshot that cannot be converted is logged and the view stays live"""
    insert_invalid_level(engine)

    async with LiveDecisionView(store, "M1") as view:
        assert len(view) == 0
        assert view.is_open
        assert feed.active_subscriptions("M1") == 1
