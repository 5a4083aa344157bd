from pydantic import BaseModel
from typing import List, Optional
from enum import Enum


class SessionStatus(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"

    def can_transition_to(self, target: "SessionStatus") -> bool:
        """Status only moves forward: waiting -> active -> completed"""
        order = [SessionStatus.WAITING, SessionStatus.ACTIVE, SessionStatus.COMPLETED]
        return order.index(target) == order.index(self) + 1


class Option(BaseModel):
    id: str
    question_id: str
    text: str
    # None when read through the player-facing projection
    is_correct: Optional[bool] = None
    position: int = 0


class Question(BaseModel):
    id: str
    quiz_id: str
    text: str
    time_limit: int
    position: int = 0
    options: List[Option] = []

    def correct_option(self) -> Optional[Option]:
        for option in self.options:
            if option.is_correct:
                return option
        return None


class Quiz(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[str] = None
    questions: List[Question] = []


class GameSession(BaseModel):
    id: str
    quiz_id: str
    host_id: str
    game_pin: str
    status: SessionStatus = SessionStatus.WAITING
    current_question_index: Optional[int] = None
    created_at: Optional[str] = None


class Player(BaseModel):
    id: str
    session_id: str
    player_name: str
    joined_at: Optional[str] = None


class Answer(BaseModel):
    id: Optional[str] = None
    session_id: str
    player_id: str
    question_id: str
    question_index: int
    option_id: str
    is_correct: bool
    time_taken: int
    created_at: Optional[str] = None


class PlayerScore(BaseModel):
    player_id: str
    player_name: str
    score: int = 0
    correct_answers: int = 0
    rank: int = 0
