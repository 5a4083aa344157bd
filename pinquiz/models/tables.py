from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, ForeignKey,
    UniqueConstraint, CheckConstraint, Index, func,
)
from sqlalchemy import text as sql_text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

def _uuid_pk():
    return Column(UUID(as_uuid=False), primary_key=True, server_default=sql_text("gen_random_uuid()"))


class Quiz(Base):
    __tablename__ = "quizzes"

    id = _uuid_pk()
    user_id = Column(UUID(as_uuid=False), nullable=False)  # auth.users id of the owner
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    questions = relationship("Question", back_populates="quiz", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Quiz(id={self.id}, title={self.title})>"


class Question(Base):
    __tablename__ = "questions"

    id = _uuid_pk()
    quiz_id = Column(UUID(as_uuid=False), ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False)
    text = Column(Text, nullable=False)
    time_limit = Column(Integer, nullable=False, default=30)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("time_limit BETWEEN 5 AND 120", name="question_time_limit_range"),
    )

    quiz = relationship("Quiz", back_populates="questions")
    options = relationship("Option", back_populates="question", cascade="all, delete-orphan")


class Option(Base):
    __tablename__ = "options"

    id = _uuid_pk()
    question_id = Column(UUID(as_uuid=False), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    text = Column(Text, nullable=False)
    is_correct = Column(Boolean, nullable=False, default=False)
    position = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        # At most one correct option per question
        Index("uq_one_correct_option", "question_id", unique=True,
              postgresql_where=sql_text("is_correct")),
    )

    question = relationship("Question", back_populates="options")


class GameSession(Base):
    __tablename__ = "game_sessions"

    id = _uuid_pk()
    quiz_id = Column(UUID(as_uuid=False), ForeignKey("quizzes.id"), nullable=False)
    host_id = Column(UUID(as_uuid=False), nullable=False)
    game_pin = Column(String(6), nullable=False)
    status = Column(String, nullable=False, default="waiting")
    current_question_index = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("status IN ('waiting', 'active', 'completed')", name="game_session_status"),
        CheckConstraint(
            "(status = 'active') = (current_question_index IS NOT NULL)",
            name="game_session_index_only_when_active",
        ),
        # Two open games never share a pin
        Index("uq_open_game_pin", "game_pin", unique=True,
              postgresql_where=sql_text("status <> 'completed'")),
    )

    def __repr__(self):
        return f"<GameSession(id={self.id}, pin={self.game_pin}, status={self.status})>"


class GamePlayer(Base):
    __tablename__ = "game_players"

    id = _uuid_pk()
    session_id = Column(UUID(as_uuid=False), ForeignKey("game_sessions.id", ondelete="CASCADE"), nullable=False)
    player_name = Column(String(15), nullable=False)
    joined_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("char_length(player_name) BETWEEN 1 AND 15", name="game_player_name_length"),
    )


class GameAnswer(Base):
    __tablename__ = "game_answers"

    id = _uuid_pk()
    session_id = Column(UUID(as_uuid=False), ForeignKey("game_sessions.id", ondelete="CASCADE"), nullable=False)
    player_id = Column(UUID(as_uuid=False), ForeignKey("game_players.id", ondelete="CASCADE"), nullable=False)
    question_id = Column(UUID(as_uuid=False), ForeignKey("questions.id"), nullable=False)
    question_index = Column(Integer, nullable=False)
    option_id = Column(UUID(as_uuid=False), ForeignKey("options.id"), nullable=False)
    is_correct = Column(Boolean, nullable=False, default=False)
    time_taken = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # One answer per player per question
    __table_args__ = (
        UniqueConstraint("session_id", "player_id", "question_index", name="unique_player_question_answer"),
    )
