"""
Player side of a live game: joining by pin, then following the session record.

A player agent never writes the session. It derives everything it shows from
(status, current_question_index) plus whether it already answered the active
index, so replayed or duplicated notifications are harmless.
"""

import asyncio
import logging
from contextlib import AsyncExitStack
from enum import Enum
from typing import Optional

from pinquiz.config import settings
from pinquiz.errors import (
    DuplicateAnswerError, GameNotFoundError, InvalidTransitionError, NotFoundError, QuizError, ValidationError,
)
from pinquiz.game.host import question_view
from pinquiz.game.scoring import aggregate_scores, find_player_score
from pinquiz.game.timer import Countdown, invoke
from pinquiz.models.game import Answer, GameSession, Player, Question, SessionStatus
from pinquiz.models.realtime import PlayerState, PlayerView
from pinquiz.realtime.notifier import UPDATE

logger = logging.getLogger(__name__)


class JoinStep(str, Enum):
    PIN = "pin"
    NAME = "name"
    JOINED = "joined"


def clean_player_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Please enter your name")
    if len(name) > settings.max_player_name_length:
        raise ValidationError(f"Name cannot exceed {settings.max_player_name_length} characters")
    return name


class JoinFlow:
    """Two-step join: pin entry, then name entry. Failures leave the step unchanged."""

    def __init__(self, store):
        self.store = store
        self.step = JoinStep.PIN
        self.session: Optional[GameSession] = None
        self.player: Optional[Player] = None

    async def enter_pin(self, pin: str) -> GameSession:
        if self.step != JoinStep.PIN:
            raise InvalidTransitionError("A game has already been selected")

        pin = (pin or "").strip()
        if not pin:
            raise ValidationError("Please enter a game PIN")
        if len(pin) != 6 or not pin.isdigit():
            # no open game can hold a pin of another shape
            raise GameNotFoundError()

        session = await self.store.find_waiting_session(pin)
        if session is None:
            raise GameNotFoundError()

        self.session = session
        self.step = JoinStep.NAME
        return session

    async def enter_name(self, name: str) -> Player:
        if self.step != JoinStep.NAME:
            raise InvalidTransitionError("Enter a game PIN first")

        name = clean_player_name(name)
        self.player = await join_session(self.store, self.session.id, name)
        self.step = JoinStep.JOINED
        return self.player


async def join_session(store, session_id: str, name: str) -> Player:
    """Add a player to a session that is still waiting for its host"""
    name = clean_player_name(name)
    session = await store.get_session(session_id)
    if session.status != SessionStatus.WAITING:
        raise InvalidTransitionError("This game has already started")

    player = await store.insert_player(session.id, name)
    logger.info(f"Player {player.id} ({name}) joined session {session.id}")
    return player


async def record_answer(store, session_id: str, player_id: str, question: Question,
                        question_index: int, option_id: str, time_remaining: int) -> Answer:
    """Grade a choice against the stored correct option and append it to the answer log"""
    options = await store.list_options(question.id, include_correctness=True)
    if not any(option.id == option_id for option in options):
        raise ValidationError("That option does not belong to this question")

    correct_ids = [option.id for option in options if option.is_correct]
    time_remaining = min(max(time_remaining, 0), question.time_limit)

    answer = Answer(
        session_id=session_id,
        player_id=player_id,
        question_id=question.id,
        question_index=question_index,
        option_id=option_id,
        is_correct=correct_ids == [option_id],
        time_taken=question.time_limit - time_remaining,
    )
    try:
        saved = await store.insert_answer(answer)
    except DuplicateAnswerError:
        logger.info(f"Duplicate answer from {player_id} for question {question_index} rejected")
        raise

    logger.info(f"Answer recorded for player {player_id}, question {question_index}, correct={saved.is_correct}")
    return saved


class PlayerAgent:
    def __init__(self, store, notifier, session_id: str, player_id: str,
                 on_view=None, tick_interval: float = None):
        self.store = store
        self.notifier = notifier
        self.session_id = session_id
        self.player_id = player_id
        self.on_view = on_view
        self.tick_interval = tick_interval

        self.state = PlayerState.LOADING
        self.session: Optional[GameSession] = None
        self.player: Optional[Player] = None
        self.question: Optional[Question] = None
        self.question_index: Optional[int] = None
        self.countdown: Optional[Countdown] = None
        self.answered = False
        self.selected_option_id: Optional[str] = None
        self.last_answer_correct: Optional[bool] = None
        self.score: Optional[int] = None
        self.rank: Optional[int] = None
        self.total_players: Optional[int] = None

        self._lock = asyncio.Lock()
        self._stack: Optional[AsyncExitStack] = None

    @property
    def time_remaining(self) -> int:
        return self.countdown.remaining if self.countdown else 0

    async def open(self):
        self.player = await self.store.get_player(self.session_id, self.player_id)
        self._stack = AsyncExitStack()
        try:
            await self._stack.enter_async_context(
                self.notifier.subscription("game_sessions", {"id": self.session_id},
                                           self.on_session_change, events=(UPDATE,))
            )
            # Catch up with whatever happened before the subscription existed
            await self.apply_session(await self.store.get_session(self.session_id))
        except BaseException:
            await self.close()
            raise

    async def close(self):
        self._stop_countdown()
        if self._stack is not None:
            stack, self._stack = self._stack, None
            await stack.aclose()

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def on_session_change(self, event: str, record: dict):
        await self.apply_session(GameSession(**record))

    async def apply_session(self, session: GameSession):
        """Derive local state from a session record; repeated or stale records are no-ops"""
        async with self._lock:
            if self.state == PlayerState.FINAL:
                return

            if session.status == SessionStatus.WAITING:
                if self.state == PlayerState.LOADING:
                    self.session = session
                    self.state = PlayerState.WAITING_FOR_HOST
                    await self.emit()
            elif session.status == SessionStatus.ACTIVE:
                index = session.current_question_index
                # the index only moves forward within a session
                if index is None or (self.question_index is not None and index <= self.question_index):
                    return
                self.session = session
                await self._load_question(session, index)
            else:
                self.session = session
                await self._load_final()

    async def _load_question(self, session: GameSession, index: int):
        self._stop_countdown()
        question = await self.store.get_question(session.quiz_id, index, include_correctness=False)

        self.question = question
        self.question_index = index
        self.answered = False
        self.selected_option_id = None
        self.last_answer_correct = None

        existing = await self.store.list_answers(self.session_id, self.player_id, index)
        if existing:
            self.answered = True
            self.selected_option_id = existing[0].option_id
            self.last_answer_correct = existing[0].is_correct

        self.countdown = Countdown(
            question.time_limit,
            on_tick=self._on_tick,
            on_expire=self._on_expire,
            interval=self.tick_interval,
        )
        self.countdown.start()
        self.state = PlayerState.WAITING_FOR_NEXT if self.answered else PlayerState.QUESTION
        await self.emit()

    async def _load_final(self):
        self._stop_countdown()
        players = await self.store.list_players(self.session_id)
        answers = await self.store.list_answers(self.session_id)
        questions = await self.store.list_questions(self.session.quiz_id)
        scores = aggregate_scores(players, answers, questions)

        entry = find_player_score(scores, self.player_id)
        if entry is None:
            raise NotFoundError("Player not found in this game")
        self.score = entry.score
        self.rank = entry.rank
        self.total_players = len(scores)
        self.question = None
        self.state = PlayerState.FINAL
        await self.emit()

    def _stop_countdown(self):
        if self.countdown:
            self.countdown.cancel()

    async def _on_tick(self, remaining: int):
        if self.state == PlayerState.QUESTION:
            await self.emit()

    async def _on_expire(self):
        if self.state == PlayerState.QUESTION:
            self.state = PlayerState.WAITING_FOR_NEXT
            await self.emit()

    async def submit_answer(self, option_id: str) -> Answer:
        if self.state != PlayerState.QUESTION or self.question is None:
            raise InvalidTransitionError("There is no question to answer")
        if self.answered:
            raise InvalidTransitionError("You already answered this question")
        if self.time_remaining <= 0:
            raise InvalidTransitionError("Time is up for this question")

        index = self.question_index
        self.answered = True
        self.selected_option_id = option_id

        try:
            answer = await record_answer(
                self.store, self.session_id, self.player_id, self.question,
                index, option_id, self.time_remaining,
            )
        except DuplicateAnswerError:
            # the answer log already holds one for this index: stay answered
            if self.question_index == index:
                self.state = PlayerState.WAITING_FOR_NEXT
                await self.emit()
            raise
        except QuizError:
            if self.question_index == index:
                self.answered = False
                self.selected_option_id = None
                await self.emit()
            raise

        if self.question_index == index:
            self.last_answer_correct = answer.is_correct
            self.state = PlayerState.WAITING_FOR_NEXT
            await self.emit()
        return answer

    def view(self) -> PlayerView:
        view = PlayerView(
            state=self.state,
            session_id=self.session_id,
            player_id=self.player_id,
            answered=self.answered,
            selected_option_id=self.selected_option_id,
            last_answer_correct=self.last_answer_correct,
        )
        if self.state in (PlayerState.QUESTION, PlayerState.WAITING_FOR_NEXT) and self.question:
            view.question = question_view(self.question, self.question_index)
            view.time_remaining = self.time_remaining
        if self.state == PlayerState.FINAL:
            view.score = self.score
            view.rank = self.rank
            view.total_players = self.total_players
        return view

    async def emit(self):
        await invoke(self.on_view, self.view())
