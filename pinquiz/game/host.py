"""
Host side of a live game.

The host is the only actor that writes the session record. Every write is
conditional on the state the host believes the record is in (and on its own
host_id), so a stale controller cannot move a game backwards or reopen a
completed one.

    NotStarted (lobby) -> Showing(0) -> Results(0) -> Showing(1) -> ... -> Ended
"""

import asyncio
import logging
from contextlib import AsyncExitStack
from typing import List, Optional

from pinquiz.errors import (
    AuthorizationError, ConflictError, InvalidTransitionError, TransientWriteError, ValidationError,
)
from pinquiz.game.pin import generate_unique_pin
from pinquiz.game.scoring import aggregate_scores, leaderboard
from pinquiz.game.timer import Countdown, invoke
from pinquiz.models.game import GameSession, Player, PlayerScore, Question, SessionStatus
from pinquiz.models.realtime import HostState, HostView, OptionView, QuestionView, RosterEntry
from pinquiz.realtime.notifier import INSERT
from pinquiz.config import settings

logger = logging.getLogger(__name__)


async def create_game(store, quiz_id: str, host_id: str) -> GameSession:
    """Open a new waiting session for a quiz under a fresh pin"""
    await store.get_quiz(quiz_id)
    questions = await store.list_questions(quiz_id)
    if not questions:
        raise ValidationError("This quiz doesn't have any questions")

    for _ in range(settings.pin_max_attempts):
        pin = await generate_unique_pin(store)
        try:
            session = await store.create_session(quiz_id, host_id, pin)
        except ConflictError:
            # another host took the pin between the check and the insert
            continue
        logger.info(f"Host {host_id} opened session {session.id} with pin {pin}")
        return session

    raise TransientWriteError("Failed to create game session")


def question_view(question: Question, index: int) -> QuestionView:
    return QuestionView(
        id=question.id,
        index=index,
        text=question.text,
        time_limit=question.time_limit,
        options=[OptionView(id=option.id, text=option.text) for option in question.options],
    )


class HostController:
    def __init__(self, store, notifier, session: GameSession, host_id: str,
                 on_view=None, tick_interval: float = None):
        self.store = store
        self.notifier = notifier
        self.session = session
        self.host_id = host_id
        self.on_view = on_view
        self.tick_interval = tick_interval

        self.state = HostState.LOBBY
        self.quiz_title = ""
        self.questions: List[Question] = []
        self.players: List[Player] = []
        self.question: Optional[Question] = None
        self.answer_count = 0
        self.scores: List[PlayerScore] = []
        self.countdown: Optional[Countdown] = None

        self.live = False
        self._lock = asyncio.Lock()
        self._stack: Optional[AsyncExitStack] = None

    @classmethod
    async def load(cls, store, notifier, session_id: str, host_id: str, **kwargs) -> "HostController":
        session = await store.get_session(session_id)
        if session.host_id != host_id:
            logger.warning(f"User {host_id} tried to control session {session_id}")
            raise AuthorizationError()

        controller = cls(store, notifier, session, host_id, **kwargs)
        await controller.refresh()
        return controller

    @property
    def question_index(self) -> Optional[int]:
        return self.session.current_question_index

    async def refresh(self):
        """Rebuild local state from the stored records"""
        quiz = await self.store.get_quiz(self.session.quiz_id)
        self.quiz_title = quiz.title
        self.questions = await self.store.list_questions(self.session.quiz_id)
        self.players = await self.store.list_players(self.session.id)

        if self.session.status == SessionStatus.WAITING:
            self.state = HostState.LOBBY
        elif self.session.status == SessionStatus.ACTIVE:
            await self._load_question(self.session.current_question_index)
            self.state = HostState.SHOWING
        else:
            self.scores = await self.compute_scores()
            self.state = HostState.ENDED

    # Live mode: subscriptions and countdown

    async def open(self):
        self._stack = AsyncExitStack()
        try:
            await self._stack.enter_async_context(
                self.notifier.subscription("game_players", {"session_id": self.session.id},
                                           self.on_player_change, events=(INSERT,))
            )
            await self._stack.enter_async_context(
                self.notifier.subscription("game_answers", {"session_id": self.session.id},
                                           self.on_answer_change, events=(INSERT,))
            )
            self.live = True
            # Roster may have grown between refresh() and subscribing
            self.players = await self.store.list_players(self.session.id)
            if self.state == HostState.SHOWING:
                self._start_countdown()
            await self.emit()
        except BaseException:
            await self.close()
            raise

    async def close(self):
        self.live = False
        if self.countdown:
            self.countdown.cancel()
        if self._stack is not None:
            stack, self._stack = self._stack, None
            await stack.aclose()

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def on_player_change(self, event: str, record: dict):
        player = Player(**record)
        if any(existing.id == player.id for existing in self.players):
            return
        self.players.append(player)
        logger.info(f"Player {player.player_name} joined session {self.session.id}")
        await self.emit()

    async def on_answer_change(self, event: str, record: dict):
        if self.state != HostState.SHOWING or record.get("question_index") != self.question_index:
            return
        answers = await self.store.list_answers(self.session.id, question_index=self.question_index)
        self.answer_count = len({answer.player_id for answer in answers})
        await self.emit()

    # Transitions

    async def start_game(self):
        async with self._lock:
            if self.state != HostState.LOBBY:
                raise InvalidTransitionError("The game has already started")

            self.players = await self.store.list_players(self.session.id)
            if not self.players:
                raise InvalidTransitionError("Wait for players to join before starting")
            if not self.questions:
                raise ValidationError("This quiz doesn't have any questions")

            await self._set_status(SessionStatus.ACTIVE, 0, "The game has already started")
            logger.info(f"Session {self.session.id} started with {len(self.players)} players")
            await self._show(0)

    async def show_results(self):
        async with self._lock:
            await self._show_results()

    async def next_question(self):
        async with self._lock:
            if self.state == HostState.SHOWING:
                # host skipped the rest of the countdown
                await self._show_results()
            if self.state != HostState.RESULTS:
                raise InvalidTransitionError("There is no question to advance from")

            next_index = self.question_index + 1
            if next_index >= len(self.questions):
                await self._end_game()
                return

            updated = await self.store.update_session(
                self.session.id,
                {"current_question_index": next_index},
                expected={"status": SessionStatus.ACTIVE.value, "host_id": self.host_id,
                          "current_question_index": self.question_index},
            )
            if updated is None:
                raise InvalidTransitionError("The game is no longer active")

            self.session = updated
            logger.info(f"Session {self.session.id} advanced to question {next_index}")
            await self._show(next_index)

    async def _show(self, index: int):
        await self._load_question(index)
        self.state = HostState.SHOWING
        if self.live:
            self._start_countdown()
        await self.emit()

    async def _load_question(self, index: int):
        self.question = await self.store.get_question(self.session.quiz_id, index, include_correctness=True)
        answers = await self.store.list_answers(self.session.id, question_index=index)
        self.answer_count = len({answer.player_id for answer in answers})

    def _start_countdown(self):
        if self.countdown:
            self.countdown.cancel()
        self.countdown = Countdown(
            self.question.time_limit,
            on_tick=self._on_tick,
            on_expire=self.show_results,
            interval=self.tick_interval,
        )
        self.countdown.start()

    async def _on_tick(self, remaining: int):
        await self.emit()

    async def _show_results(self):
        if self.state == HostState.RESULTS:
            return
        if self.state != HostState.SHOWING:
            raise InvalidTransitionError("No question is being shown")

        if self.countdown:
            self.countdown.cancel()
        self.scores = await self.compute_scores()
        self.state = HostState.RESULTS
        await self.emit()

    async def _set_status(self, target: SessionStatus, index: Optional[int], message: str):
        """Conditional status write; only succeeds if the stored row still matches what this host saw"""
        current = self.session.status
        if not current.can_transition_to(target):
            raise InvalidTransitionError(message)

        expected = {"status": current.value, "host_id": self.host_id}
        if current == SessionStatus.ACTIVE:
            expected["current_question_index"] = self.question_index
        updated = await self.store.update_session(
            self.session.id,
            {"status": target.value, "current_question_index": index},
            expected=expected,
        )
        if updated is None:
            raise InvalidTransitionError(message)
        self.session = updated

    async def _end_game(self):
        await self._set_status(SessionStatus.COMPLETED, None, "The game is no longer active")
        self.question = None
        self.scores = await self.compute_scores()
        self.state = HostState.ENDED
        logger.info(f"Session {self.session.id} completed")
        await self.emit()

    async def compute_scores(self) -> List[PlayerScore]:
        players = await self.store.list_players(self.session.id)
        answers = await self.store.list_answers(self.session.id)
        return aggregate_scores(players, answers, self.questions)

    # Views

    def view(self) -> HostView:
        view = HostView(
            state=self.state,
            session_id=self.session.id,
            game_pin=self.session.game_pin,
            quiz_title=self.quiz_title,
            players=[RosterEntry(id=player.id, name=player.player_name) for player in self.players],
            question_count=len(self.questions),
            answer_count=self.answer_count,
        )
        if self.state in (HostState.SHOWING, HostState.RESULTS) and self.question:
            view.question = question_view(self.question, self.question_index)
            view.time_remaining = self.countdown.remaining if self.countdown else self.question.time_limit
        if self.state == HostState.RESULTS:
            correct = self.question.correct_option()
            view.correct_option_id = correct.id if correct else None
            view.time_remaining = 0
            view.leaderboard = leaderboard(self.scores)
        if self.state == HostState.ENDED:
            view.leaderboard = self.scores
        return view

    async def emit(self):
        await invoke(self.on_view, self.view())
