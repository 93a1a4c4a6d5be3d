"""
Unit Tests for the Change Feed
Tests for: event kinds, predicates, cancellation
"""
import asyncio
import pytest

from digilib.services.change_feed import ChangeFeed, ChangeKind, MaterialPredicate


def snapshot(material_id="m-1", category="Academic", approved=False, title="Notes"):
    return {"id": material_id, "category": category, "approved": approved, "title": title}


class TestMaterialPredicate:
    def test_none_fields_match_anything(self):
        assert MaterialPredicate().matches(snapshot()) is True

    def test_equality_on_category_and_approved(self):
        predicate = MaterialPredicate(category="Academic", approved=True)

        assert predicate.matches(snapshot(approved=True)) is True
        assert predicate.matches(snapshot(approved=False)) is False
        assert predicate.matches(snapshot(category="General", approved=True)) is False

    def test_missing_snapshot_never_matches(self):
        assert MaterialPredicate().matches(None) is False


class TestChangeFeed:
    """Test event computation and delivery"""

    async def test_approval_is_added_for_published_view(self):
        """Test a record entering the predicate yields an added event"""
        feed = ChangeFeed()
        subscription = feed.subscribe(category="Academic", approved=True)

        feed.publish(snapshot(approved=False), snapshot(approved=True))
        event = await subscription.get(timeout=1)

        assert event.kind == ChangeKind.ADDED
        assert event.material["approved"] is True
        subscription.cancel()

    async def test_delete_is_removed_with_last_snapshot(self):
        """Test a deleted record yields removed carrying its last state"""
        feed = ChangeFeed()
        subscription = feed.subscribe(category="Academic", approved=True)

        feed.publish(snapshot(approved=True), None)
        event = await subscription.get(timeout=1)

        assert event.kind == ChangeKind.REMOVED
        assert event.material_id == "m-1"
        subscription.cancel()

    async def test_change_within_predicate_is_modified(self):
        feed = ChangeFeed()
        subscription = feed.subscribe(approved=True)

        feed.publish(snapshot(approved=True, title="Old"), snapshot(approved=True, title="New"))
        event = await subscription.get(timeout=1)

        assert event.kind == ChangeKind.MODIFIED
        assert event.material["title"] == "New"
        subscription.cancel()

    async def test_unrelated_changes_are_not_delivered(self):
        """Test a pending insert is invisible to a published-only subscriber"""
        feed = ChangeFeed()
        published = feed.subscribe(category="Academic", approved=True)
        pending = feed.subscribe(approved=False)

        delivered = feed.publish(None, snapshot(approved=False))

        assert delivered == 1
        assert published.pending() == 0
        assert (await pending.get(timeout=1)).kind == ChangeKind.ADDED
        feed.close()

    async def test_events_arrive_in_publish_order(self):
        feed = ChangeFeed()
        subscription = feed.subscribe()

        feed.publish(None, snapshot("m-1"))
        feed.publish(None, snapshot("m-2"))

        first = await subscription.get(timeout=1)
        second = await subscription.get(timeout=1)
        assert [first.material_id, second.material_id] == ["m-1", "m-2"]
        subscription.cancel()

    async def test_cancel_stops_delivery_and_iteration(self):
        """Test a cancelled subscription is detached and its iterator ends"""
        feed = ChangeFeed()
        subscription = feed.subscribe()

        subscription.cancel()
        feed.publish(None, snapshot())

        assert feed.subscriber_count == 0
        assert [event async for event in subscription] == []

    async def test_cancel_wakes_a_waiting_consumer(self):
        feed = ChangeFeed()
        subscription = feed.subscribe()

        waiter = asyncio.create_task(subscription.get())
        await asyncio.sleep(0)
        subscription.cancel()

        assert await asyncio.wait_for(waiter, timeout=1) is None

    async def test_context_manager_cancels(self):
        feed = ChangeFeed()

        async with feed.subscribe(approved=True) as subscription:
            assert feed.subscriber_count == 1

        assert subscription.cancelled is True
        assert feed.subscriber_count == 0

    async def test_get_times_out_without_events(self):
        feed = ChangeFeed()
        subscription = feed.subscribe()

        assert await subscription.get(timeout=0.01) is None
        subscription.cancel()

    def test_event_serialization(self):
        feed = ChangeFeed()
        subscription = feed.subscribe()

        event = subscription.offer(None, snapshot())
        data = event.to_dict()

        assert data["type"] == "added"
        assert data["material_id"] == "m-1"
        assert "timestamp" in data
