import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock
from pinquiz.realtime.notifier import (
    INSERT, UPDATE, Subscription, SupabaseChangeNotifier, record_from_payload,
)


def realtime_client():
    client = MagicMock()
    channel = MagicMock()
    channel.subscribe = AsyncMock()
    client.channel.return_value = channel
    client.remove_channel = AsyncMock()
    return client, channel


class TestSubscription:
    """Matching rows against a (table, filter) subscription"""

    def test_matches_table_event_and_filter(self):
        subscription = Subscription("game_players", {"session_id": "s1"}, (INSERT,), AsyncMock())

        assert subscription.matches("game_players", INSERT, {"session_id": "s1"})
        assert not subscription.matches("game_players", UPDATE, {"session_id": "s1"})
        assert not subscription.matches("game_players", INSERT, {"session_id": "s2"})
        assert not subscription.matches("game_answers", INSERT, {"session_id": "s1"})

    def test_inactive_subscription_matches_nothing(self):
        subscription = Subscription("game_players", {}, (INSERT,), AsyncMock())
        subscription.active = False

        assert not subscription.matches("game_players", INSERT, {})


class TestPayloads:
    """Row extraction from postgres_changes payloads"""

    def test_record_under_data(self):
        payload = {"data": {"type": "UPDATE", "record": {"id": "s1", "status": "active"}}}
        assert record_from_payload(payload) == {"id": "s1", "status": "active"}

    def test_record_under_new(self):
        assert record_from_payload({"new": {"id": "p1"}}) == {"id": "p1"}

    def test_empty_payload(self):
        assert record_from_payload({}) == {}


class TestSupabaseChangeNotifier:
    """Channel management against the Supabase realtime client"""

    def test_filter_string(self):
        assert SupabaseChangeNotifier.filter_string({"session_id": "s1"}) == "session_id=eq.s1"
        assert SupabaseChangeNotifier.filter_string({}) is None

    def test_filter_string_single_column_only(self):
        with pytest.raises(ValueError):
            SupabaseChangeNotifier.filter_string({"session_id": "s1", "question_index": 0})

    @pytest.mark.asyncio
    async def test_subscribe_registers_each_event(self):
        client, channel = realtime_client()
        notifier = SupabaseChangeNotifier(client)

        subscription = await notifier.subscribe("game_sessions", {"id": "s1"}, AsyncMock(), events=(UPDATE,))

        channel.on_postgres_changes.assert_called_once()
        args, kwargs = channel.on_postgres_changes.call_args
        assert args == (UPDATE,)
        assert kwargs["table"] == "game_sessions"
        assert kwargs["filter"] == "id=eq.s1"
        channel.subscribe.assert_awaited_once()
        assert subscription.channel is channel

    @pytest.mark.asyncio
    async def test_dispatch_delivers_record(self):
        client, channel = realtime_client()
        notifier = SupabaseChangeNotifier(client)
        handler = AsyncMock()

        await notifier.subscribe("game_players", {"session_id": "s1"}, handler, events=(INSERT,))
        callback = channel.on_postgres_changes.call_args.kwargs["callback"]
        callback({"data": {"record": {"id": "p1", "session_id": "s1"}}})
        await asyncio.sleep(0)

        handler.assert_awaited_once_with(INSERT, {"id": "p1", "session_id": "s1"})

    @pytest.mark.asyncio
    async def test_no_delivery_after_unsubscribe(self):
        client, channel = realtime_client()
        notifier = SupabaseChangeNotifier(client)
        handler = AsyncMock()

        subscription = await notifier.subscribe("game_players", {}, handler, events=(INSERT,))
        callback = channel.on_postgres_changes.call_args.kwargs["callback"]
        await notifier.unsubscribe(subscription)
        callback({"new": {"id": "p1"}})
        await asyncio.sleep(0)

        handler.assert_not_awaited()
        client.remove_channel.assert_awaited_once_with(channel)

    @pytest.mark.asyncio
    async def test_unsubscribe_twice_removes_channel_once(self):
        client, _ = realtime_client()
        notifier = SupabaseChangeNotifier(client)

        subscription = await notifier.subscribe("game_players", {}, AsyncMock())
        await notifier.unsubscribe(subscription)
        await notifier.unsubscribe(subscription)

        assert client.remove_channel.await_count == 1

    @pytest.mark.asyncio
    async def test_scoped_subscription_released_on_error(self):
        client, channel = realtime_client()
        notifier = SupabaseChangeNotifier(client)

        with pytest.raises(RuntimeError):
            async with notifier.subscription("game_answers", {"session_id": "s1"}, AsyncMock()) as subscription:
                raise RuntimeError("screen closed")

        assert not subscription.active
        client.remove_channel.assert_awaited_once_with(channel)
