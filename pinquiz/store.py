"""
Collaborator operations over the Supabase tables.

``GameStore`` is the only place that knows table and column names. The game
logic in ``pinquiz.game`` talks to it and to the change notifier, never to
the database client directly.
"""

import logging
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from pinquiz.database import Database, db
from pinquiz.errors import NotFoundError, QuizError, TransientWriteError, ValidationError
from pinquiz.models.game import Answer, GameSession, Option, Player, Question, Quiz, SessionStatus
from pinquiz.models.requests import QuizCreate
from pinquiz.utils.time_utils import now_iso

logger = logging.getLogger(__name__)

QUIZZES = "quizzes"
QUESTIONS = "questions"
OPTIONS = "options"
SESSIONS = "game_sessions"
PLAYERS = "game_players"
ANSWERS = "game_answers"

PLAYER_OPTION_COLUMNS = "id,question_id,text,position"


def parse_quiz(data) -> QuizCreate:
    """Validate a raw quiz payload, raising the PinQuiz ValidationError"""
    if isinstance(data, QuizCreate):
        return data
    try:
        return QuizCreate.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        raise ValidationError(first["msg"].removeprefix("Value error, ")) from e


class GameStore:
    def __init__(self, database: Database = None):
        self.db = database or db

    # Quiz Store

    async def create_quiz(self, owner_id: str, quiz_data) -> str:
        """Create quiz, questions and options; roll back every created row on failure"""
        quiz_data = parse_quiz(quiz_data)
        created = []

        try:
            quiz = await self._insert_tracked(created, QUIZZES, {
                "user_id": owner_id,
                "title": quiz_data.title,
                "description": quiz_data.description,
                "created_at": now_iso(),
            })

            for position, question_data in enumerate(quiz_data.questions):
                question = await self._insert_tracked(created, QUESTIONS, {
                    "quiz_id": quiz["id"],
                    "text": question_data.text,
                    "time_limit": question_data.time_limit,
                    "position": position,
                })

                for option_position, option_data in enumerate(question_data.options):
                    await self._insert_tracked(created, OPTIONS, {
                        "question_id": question["id"],
                        "text": option_data.text,
                        "is_correct": option_data.is_correct,
                        "position": option_position,
                    })
        except QuizError:
            await self._rollback(created)
            raise TransientWriteError("Failed to save quiz, nothing was stored")

        logger.info(f"Quiz {quiz['id']} created with {len(quiz_data.questions)} questions")
        return quiz["id"]

    async def _insert_tracked(self, created: list, table: str, data: dict) -> dict:
        row = await self.db.insert(table, data)
        if not row:
            raise TransientWriteError(f"Insert into {table} returned no row")
        created.append((table, row["id"]))
        return row

    async def _rollback(self, created: list):
        logger.warning(f"Rolling back {len(created)} rows of a partially created quiz")
        for table, row_id in reversed(created):
            try:
                await self.db.delete(table, {"id": row_id})
            except QuizError:
                logger.error(f"Could not roll back {table} row {row_id}")

    async def list_quizzes(self, owner_id: str) -> List[dict]:
        """Owner's quizzes, newest first, each with its question count"""
        quizzes = await self.db.select(QUIZZES, "*", {"user_id": owner_id}, order_by=["created_at"], desc=True)
        for quiz in quizzes:
            questions = await self.db.select(QUESTIONS, "id", {"quiz_id": quiz["id"]})
            quiz["question_count"] = len(questions)
        return quizzes

    async def get_quiz(self, quiz_id: str, with_questions: bool = False) -> Quiz:
        rows = await self.db.select(QUIZZES, "*", {"id": quiz_id})
        if not rows:
            raise NotFoundError("Quiz not found")
        quiz = Quiz(**rows[0])
        if with_questions:
            quiz.questions = await self.list_questions(quiz_id)
            for question in quiz.questions:
                question.options = await self.list_options(question.id, include_correctness=True)
        return quiz

    async def list_questions(self, quiz_id: str) -> List[Question]:
        rows = await self.db.select(QUESTIONS, "*", {"quiz_id": quiz_id}, order_by=["position", "id"])
        return [Question(**row) for row in rows]

    async def list_options(self, question_id: str, include_correctness: bool) -> List[Option]:
        columns = "*" if include_correctness else PLAYER_OPTION_COLUMNS
        rows = await self.db.select(OPTIONS, columns, {"question_id": question_id}, order_by=["position", "id"])
        options = [Option(**row) for row in rows]
        if not include_correctness:
            for option in options:
                option.is_correct = None
        return options

    async def get_question(self, quiz_id: str, index: int, include_correctness: bool = False) -> Question:
        """Question at ``index`` in quiz order, with its options"""
        questions = await self.list_questions(quiz_id)
        if index is None or not 0 <= index < len(questions):
            raise NotFoundError("Question not found")
        question = questions[index]
        question.options = await self.list_options(question.id, include_correctness)
        return question

    # Session Registry

    async def create_session(self, quiz_id: str, host_id: str, pin: str) -> GameSession:
        row = await self.db.insert(SESSIONS, {
            "quiz_id": quiz_id,
            "host_id": host_id,
            "game_pin": pin,
            "status": SessionStatus.WAITING.value,
            "current_question_index": None,
            "created_at": now_iso(),
        })
        if not row:
            raise TransientWriteError("Failed to create game session")
        return GameSession(**row)

    async def get_session(self, session_id: str) -> GameSession:
        rows = await self.db.select(SESSIONS, "*", {"id": session_id})
        if not rows:
            raise NotFoundError("Game session not found")
        return GameSession(**rows[0])

    async def update_session(self, session_id: str, fields: dict, expected: dict = None) -> Optional[GameSession]:
        """Update the session row; with ``expected`` the write only applies if those columns match.

        Returns the updated session, or None if no row matched.
        """
        filters = {"id": session_id}
        filters.update(expected or {})
        row = await self.db.update(SESSIONS, fields, filters)
        return GameSession(**row) if row else None

    async def find_waiting_session(self, pin: str) -> Optional[GameSession]:
        rows = await self.db.select(
            SESSIONS, "*", {"game_pin": pin, "status": SessionStatus.WAITING.value},
            order_by=["created_at"], desc=True, limit=1,
        )
        return GameSession(**rows[0]) if rows else None

    async def pin_in_use(self, pin: str) -> bool:
        """True if a non-completed session already holds this pin"""
        rows = await self.db.select(SESSIONS, "id,status", {"game_pin": pin})
        return any(row["status"] != SessionStatus.COMPLETED.value for row in rows)

    # Roster

    async def insert_player(self, session_id: str, name: str) -> Player:
        row = await self.db.insert(PLAYERS, {
            "session_id": session_id,
            "player_name": name,
            "joined_at": now_iso(),
        })
        if not row:
            raise TransientWriteError("Failed to join game")
        return Player(**row)

    async def get_player(self, session_id: str, player_id: str) -> Player:
        rows = await self.db.select(PLAYERS, "*", {"id": player_id, "session_id": session_id})
        if not rows:
            raise NotFoundError("Player not found in this game")
        return Player(**rows[0])

    async def list_players(self, session_id: str) -> List[Player]:
        rows = await self.db.select(PLAYERS, "*", {"session_id": session_id}, order_by=["joined_at", "id"])
        return [Player(**row) for row in rows]

    # Answer Log

    async def insert_answer(self, answer: Answer) -> Answer:
        data = answer.model_dump(exclude={"id", "created_at"})
        data["created_at"] = now_iso()
        row = await self.db.insert(ANSWERS, data)
        if not row:
            raise TransientWriteError("Failed to submit answer")
        return Answer(**row)

    async def list_answers(self, session_id: str, player_id: str = None, question_index: int = None) -> List[Answer]:
        filters = {"session_id": session_id}
        if player_id is not None:
            filters["player_id"] = player_id
        if question_index is not None:
            filters["question_index"] = question_index
        rows = await self.db.select(ANSWERS, "*", filters, order_by=["created_at"])
        return [Answer(**row) for row in rows]
