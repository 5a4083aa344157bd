from .game import SessionStatus, Quiz, Question, Option, GameSession, Player, Answer, PlayerScore

__all__ = ["SessionStatus", "Quiz", "Question", "Option", "GameSession", "Player", "Answer", "PlayerScore"]
