import itertools
from collections import defaultdict

import pytest
from httpx import ASGITransport, AsyncClient

from pinquiz.errors import ConflictError, DuplicateAnswerError, TransientWriteError
from pinquiz.game.host import HostController
from pinquiz.game.player import PlayerAgent
from pinquiz.main import app
from pinquiz.realtime.notifier import INSERT, UPDATE, ChangeNotifier, Subscription
from pinquiz.routes.deps import get_notifier, get_store
from pinquiz.store import GameStore
from pinquiz.utils.auth_utils import get_current_user

# Countdowns in tests never tick on their own; tests call countdown.tick()
MANUAL_TICKS = 3600


class MemoryNotifier(ChangeNotifier):
    """Delivers change events inline to matching subscriptions.

    ``deliveries`` > 1 replays every event, ``hold()``/``release()`` delays
    delivery so tests can reorder or drop notifications.
    """

    def __init__(self):
        self.subscriptions = []
        self.deliveries = 1
        self.held = None

    async def subscribe(self, table, filters, handler, events=(INSERT, UPDATE)):
        subscription = Subscription(table, filters, events, handler)
        self.subscriptions.append(subscription)
        return subscription

    async def unsubscribe(self, subscription):
        subscription.active = False
        if subscription in self.subscriptions:
            self.subscriptions.remove(subscription)

    def active(self, table=None):
        return [s for s in self.subscriptions if table is None or s.table == table]

    def hold(self):
        self.held = []

    async def release(self):
        pending, self.held = self.held or [], None
        for table, event, record in pending:
            await self.publish(table, event, record)

    async def publish(self, table, event, record):
        if self.held is not None:
            self.held.append((table, event, dict(record)))
            return
        for subscription in list(self.subscriptions):
            if subscription.matches(table, event, record):
                for _ in range(self.deliveries):
                    await subscription.handler(event, dict(record))


class MemoryDatabase:
    """In-memory stand-in for ``pinquiz.database.Database``.

    Enforces the same uniqueness rules as the SQL schema: one answer per
    (session, player, question index) and one open session per pin.
    """

    def __init__(self, notifier: MemoryNotifier = None):
        self.tables = defaultdict(list)
        self.notifier = notifier
        self.failures = []
        self._ids = itertools.count(1)

    def rows(self, table):
        return [dict(row) for row in self.tables[table]]

    def fail_next(self, operation, table, after=0):
        """Make a later matching call raise TransientWriteError, letting ``after`` calls through first"""
        self.failures.append([operation, table, after])

    def _check_failure(self, operation, table):
        for failure in self.failures:
            if failure[:2] == [operation, table]:
                if failure[2] == 0:
                    self.failures.remove(failure)
                    raise TransientWriteError()
                failure[2] -= 1
                return

    def _check_unique(self, table, row):
        for existing in self.tables[table]:
            if table == "game_answers" and all(
                existing[key] == row[key] for key in ("session_id", "player_id", "question_index")
            ):
                raise DuplicateAnswerError()
            if (table == "game_sessions" and existing["game_pin"] == row["game_pin"]
                    and "completed" not in (existing["status"], row["status"])):
                raise ConflictError("Duplicate game_sessions record")

    @staticmethod
    def _matches(row, filters):
        for key, value in (filters or {}).items():
            if value is None:
                if row.get(key) is not None:
                    return False
            elif row.get(key) != value:
                return False
        return True

    async def _publish(self, table, event, row):
        if self.notifier is not None:
            await self.notifier.publish(table, event, row)

    async def insert(self, table, data):
        self._check_failure("insert", table)
        row = dict(data)
        row.setdefault("id", f"{table}-{next(self._ids):04d}")
        self._check_unique(table, row)
        self.tables[table].append(row)
        await self._publish(table, INSERT, row)
        return dict(row)

    async def select(self, table, columns="*", filters=None, limit=None, order_by=None, desc=False):
        self._check_failure("select", table)
        rows = [dict(row) for row in self.tables[table] if self._matches(row, filters)]
        for column in reversed(order_by or []):
            rows.sort(key=lambda row: (row.get(column) is None, row.get(column)), reverse=desc)
        if limit:
            rows = rows[:limit]
        if columns != "*":
            keys = [column.strip() for column in columns.split(",")]
            rows = [{key: row.get(key) for key in keys} for row in rows]
        return rows

    async def update(self, table, data, filters):
        self._check_failure("update", table)
        updated = []
        for row in self.tables[table]:
            if self._matches(row, filters):
                row.update(data)
                updated.append(dict(row))
        for row in updated:
            await self._publish(table, UPDATE, row)
        return updated[0] if updated else None

    async def delete(self, table, filters):
        self._check_failure("delete", table)
        removed = [row for row in self.tables[table] if self._matches(row, filters)]
        self.tables[table] = [row for row in self.tables[table] if row not in removed]
        return removed


@pytest.fixture
def notifier():
    return MemoryNotifier()

@pytest.fixture
def database(notifier):
    return MemoryDatabase(notifier)

@pytest.fixture
def store(database):
    return GameStore(database)

@pytest.fixture
def current_user():
    """The authenticated host; tests may swap the id to act as someone else"""
    return {"id": "user-host", "email": "host@example.com"}

@pytest.fixture
def geo_quiz_data():
    """Single question quiz used by the end-to-end scenarios"""
    return {
        "title": "Geo",
        "description": "European capitals",
        "questions": [
            {
                "text": "Capital of France?",
                "time_limit": 30,
                "options": [
                    {"text": "Paris", "is_correct": True},
                    {"text": "Lyon"},
                    {"text": "Nice"},
                    {"text": "Metz"},
                ],
            }
        ],
    }

@pytest.fixture
def capitals_quiz_data():
    """Two question quiz"""
    return {
        "title": "Capitals",
        "questions": [
            {
                "text": "Capital of France?",
                "time_limit": 30,
                "options": [
                    {"text": "Paris", "is_correct": True},
                    {"text": "Lyon"},
                ],
            },
            {
                "text": "Capital of Italy?",
                "time_limit": 20,
                "options": [
                    {"text": "Milan"},
                    {"text": "Rome", "is_correct": True},
                    {"text": "Turin"},
                ],
            },
        ],
    }

@pytest.fixture
async def geo_quiz(store, current_user, geo_quiz_data):
    return await store.create_quiz(current_user["id"], geo_quiz_data)

@pytest.fixture
async def capitals_quiz(store, current_user, capitals_quiz_data):
    return await store.create_quiz(current_user["id"], capitals_quiz_data)

@pytest.fixture
async def open_host(store, notifier, current_user):
    """Factory for live host controllers; each records the views it emits in ``.views``"""
    controllers = []

    async def _open(session_id, host_id=None):
        views = []
        controller = await HostController.load(
            store, notifier, session_id, host_id or current_user["id"],
            on_view=views.append, tick_interval=MANUAL_TICKS,
        )
        controller.views = views
        await controller.open()
        controllers.append(controller)
        return controller

    yield _open
    for controller in controllers:
        await controller.close()

@pytest.fixture
async def open_player(store, notifier):
    """Factory for live player agents; each records the views it emits in ``.views``"""
    agents = []

    async def _open(session_id, player_id):
        views = []
        agent = PlayerAgent(store, notifier, session_id, player_id,
                            on_view=views.append, tick_interval=MANUAL_TICKS)
        agent.views = views
        await agent.open()
        agents.append(agent)
        return agent

    yield _open
    for agent in agents:
        await agent.close()

@pytest.fixture
async def client(store, notifier, current_user):
    """API client wired to the in-memory store and notifier"""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_current_user] = lambda: current_user
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
