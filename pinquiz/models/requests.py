from pydantic import BaseModel, field_validator, model_validator
from typing import List, Optional
from pinquiz.config import settings


class OptionCreate(BaseModel):
    text: str
    is_correct: bool = False

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Option text cannot be empty")
        if len(value) > 200:
            raise ValueError("Option text cannot exceed 200 characters")
        return value.strip()


class QuestionCreate(BaseModel):
    text: str
    time_limit: int = settings.default_time_limit
    options: List[OptionCreate]

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Question text cannot be empty")
        if len(value) > 500:
            raise ValueError("Question text cannot exceed 500 characters")
        return value.strip()

    @field_validator("time_limit")
    @classmethod
    def time_limit_in_range(cls, value: int) -> int:
        if not settings.min_time_limit <= value <= settings.max_time_limit:
            raise ValueError(
                f"Time limit must be between {settings.min_time_limit} and {settings.max_time_limit} seconds"
            )
        return value

    @model_validator(mode="after")
    def exactly_one_correct(self):
        if len(self.options) < 2:
            raise ValueError("A question needs at least 2 options")
        correct = sum(1 for option in self.options if option.is_correct)
        if correct == 0:
            raise ValueError("No correct answer selected")
        if correct > 1:
            raise ValueError("Only one option can be correct")
        return self


class QuizCreate(BaseModel):
    title: str
    description: Optional[str] = ""
    questions: List[QuestionCreate]

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Please add a title for your quiz")
        return value.strip()

    @field_validator("questions")
    @classmethod
    def playable(cls, value: List[QuestionCreate]) -> List[QuestionCreate]:
        if not value:
            raise ValueError("A quiz needs at least one question")
        if len(value) > settings.max_questions_per_quiz:
            raise ValueError(f"Maximum {settings.max_questions_per_quiz} questions allowed per quiz")
        return value


class SessionCreate(BaseModel):
    quiz_id: str


class PinLookup(BaseModel):
    game_pin: str

    @field_validator("game_pin")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Please enter a game PIN")
        return value


class PlayerJoin(BaseModel):
    player_name: str


class AnswerSubmit(BaseModel):
    option_id: str
    time_remaining: int
