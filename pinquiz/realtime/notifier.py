"""
Change notification subscriptions.

A subscription is keyed by (table, filter) and delivers inserted or updated
rows to an async handler. Delivery is at-least-once with no ordering across
tables, so handlers must be idempotent. ``subscription()`` is the scoped form:
the channel is removed on every exit path.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence
from uuid import uuid4

from supabase import AsyncClient

from pinquiz.database import get_supabase_admin_client

logger = logging.getLogger(__name__)

INSERT = "INSERT"
UPDATE = "UPDATE"

ChangeHandler = Callable[[str, dict], Awaitable[None]]


class Subscription:
    def __init__(self, table: str, filters: Dict[str, Any], events: Sequence[str], handler: ChangeHandler):
        self.id = uuid4().hex
        self.table = table
        self.filters = dict(filters or {})
        self.events = tuple(events)
        self.handler = handler
        self.channel: Any = None
        self.active = True

    def matches(self, table: str, event: str, record: dict) -> bool:
        if not self.active or table != self.table or event not in self.events:
            return False
        return all(str(record.get(key)) == str(value) for key, value in self.filters.items())

    def __repr__(self):
        return f"<Subscription(table={self.table}, filters={self.filters}, events={self.events})>"


class ChangeNotifier:
    """Base subscribe/unsubscribe contract"""

    async def subscribe(self, table: str, filters: Dict[str, Any], handler: ChangeHandler,
                        events: Sequence[str] = (INSERT, UPDATE)) -> Subscription:
        raise NotImplementedError

    async def unsubscribe(self, subscription: Subscription) -> None:
        raise NotImplementedError

    @asynccontextmanager
    async def subscription(self, table: str, filters: Dict[str, Any], handler: ChangeHandler,
                           events: Sequence[str] = (INSERT, UPDATE)):
        handle = await self.subscribe(table, filters, handler, events)
        try:
            yield handle
        finally:
            await self.unsubscribe(handle)


def record_from_payload(payload: dict) -> dict:
    """Pull the new row out of a postgres_changes payload"""
    data = payload.get("data", payload)
    return data.get("record") or data.get("new") or {}


class SupabaseChangeNotifier(ChangeNotifier):
    """Change notifier backed by Supabase realtime postgres_changes channels"""

    def __init__(self, client: AsyncClient = None):
        self._client = client
        self._tasks = set()

    async def client(self) -> AsyncClient:
        if self._client is None:
            self._client = await get_supabase_admin_client()
        return self._client

    @staticmethod
    def filter_string(filters: Dict[str, Any]) -> Optional[str]:
        if not filters:
            return None
        if len(filters) > 1:
            # postgres_changes accepts a single column filter
            raise ValueError("Only one filter column is supported per subscription")
        (column, value), = filters.items()
        return f"{column}=eq.{value}"

    def _dispatcher(self, subscription: Subscription, event: str):
        def dispatch(payload):
            if not subscription.active:
                return
            record = record_from_payload(payload)
            task = asyncio.ensure_future(subscription.handler(event, record))
            self._tasks.add(task)
            task.add_done_callback(self._task_done)
        return dispatch

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception():
            logger.error(f"Change handler failed: {task.exception()}")

    async def subscribe(self, table, filters, handler, events=(INSERT, UPDATE)) -> Subscription:
        subscription = Subscription(table, filters, events, handler)
        client = await self.client()
        channel = client.channel(f"{table}_changes_{subscription.id[:8]}")
        for event in subscription.events:
            channel.on_postgres_changes(
                event,
                callback=self._dispatcher(subscription, event),
                table=table,
                schema="public",
                filter=self.filter_string(subscription.filters),
            )
        await channel.subscribe()
        subscription.channel = channel
        logger.debug(f"Subscribed {subscription}")
        return subscription

    async def unsubscribe(self, subscription: Subscription) -> None:
        if not subscription.active:
            return
        subscription.active = False
        if subscription.channel is not None:
            client = await self.client()
            try:
                await client.remove_channel(subscription.channel)
            except Exception as e:
                logger.warning(f"Error removing channel for {subscription}: {e}")
        logger.debug(f"Unsubscribed {subscription}")


# Global notifier instance
notifier = SupabaseChangeNotifier()
