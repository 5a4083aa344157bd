"""
Error taxonomy for the game protocol.

Every error carries a short user-facing ``message``; the API layer maps the
class to an HTTP status and the websocket layer sends it as an error message.
"""


class QuizError(Exception):
    """Base class for all PinQuiz errors"""

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    default_message = "Something went wrong"


class NotFoundError(QuizError):
    default_message = "Not found"


class GameNotFoundError(NotFoundError):
    default_message = "Game not found. Please check the PIN and try again"


class AuthorizationError(QuizError):
    default_message = "You are not the host of this game"


class ValidationError(QuizError):
    default_message = "Invalid input"


class InvalidTransitionError(QuizError):
    """Operation is not allowed in the current lifecycle state"""
    default_message = "That action is not allowed right now"


class ConflictError(QuizError):
    """A storage uniqueness constraint rejected the write"""
    default_message = "That record already exists"


class DuplicateAnswerError(ConflictError):
    default_message = "You already answered this question"


class TransientWriteError(QuizError):
    """A collaborator read or write failed; the caller may retry manually"""
    default_message = "Could not reach the game server, please try again"
