from pydantic import BaseModel
from typing import List, Optional
from enum import Enum
import time

from pinquiz.models.game import PlayerScore


class MessageType(str, Enum):
    # Host commands
    START_GAME = "start_game"
    SHOW_RESULTS = "show_results"
    NEXT_QUESTION = "next_question"

    # Player commands
    ANSWER = "answer"

    # Pushed views
    HOST_VIEW = "host_view"
    PLAYER_VIEW = "player_view"

    # Status messages
    ERROR = "error"


class HostState(str, Enum):
    LOBBY = "lobby"
    SHOWING = "showing"
    RESULTS = "results"
    ENDED = "ended"


class PlayerState(str, Enum):
    LOADING = "loading"
    WAITING_FOR_HOST = "waiting_for_host"
    QUESTION = "question"
    WAITING_FOR_NEXT = "waiting_for_next"
    FINAL = "final"


class OptionView(BaseModel):
    id: str
    text: str


class QuestionView(BaseModel):
    id: str
    index: int
    text: str
    time_limit: int
    options: List[OptionView]


class RosterEntry(BaseModel):
    id: str
    name: str


class PlayerView(BaseModel):
    state: PlayerState = PlayerState.LOADING
    session_id: str
    player_id: str
    question: Optional[QuestionView] = None
    time_remaining: int = 0
    answered: bool = False
    selected_option_id: Optional[str] = None
    last_answer_correct: Optional[bool] = None
    score: Optional[int] = None
    rank: Optional[int] = None
    total_players: Optional[int] = None


class HostView(BaseModel):
    state: HostState = HostState.LOBBY
    session_id: str
    game_pin: str
    quiz_title: str = ""
    players: List[RosterEntry] = []
    question: Optional[QuestionView] = None
    question_count: int = 0
    time_remaining: int = 0
    answer_count: int = 0
    correct_option_id: Optional[str] = None
    leaderboard: List[PlayerScore] = []


class BaseMessage(BaseModel):
    type: MessageType
    timestamp: Optional[float] = None

    def __init__(self, **data):
        if 'timestamp' not in data:
            data['timestamp'] = time.time()
        super().__init__(**data)


class AnswerMessage(BaseMessage):
    type: MessageType = MessageType.ANSWER
    option_id: str


class HostViewMessage(BaseMessage):
    type: MessageType = MessageType.HOST_VIEW
    view: HostView


class PlayerViewMessage(BaseMessage):
    type: MessageType = MessageType.PLAYER_VIEW
    view: PlayerView


class ErrorMessage(BaseMessage):
    type: MessageType = MessageType.ERROR
    message: str
