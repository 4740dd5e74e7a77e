"""
Exception types raised by the Hero Trivia engine.
"""


class QuizEngineError(Exception):
    """Base exception for game engine errors."""
    pass


class InvalidTransitionError(QuizEngineError):
    """Raised when a session is in the wrong state for the requested operation."""
    pass


class InsufficientDataError(QuizEngineError):
    """Raised when the subject dataset cannot support question generation."""
    pass


class AlreadyUnlockedError(QuizEngineError):
    """Raised when unlocking an achievement the profile already holds."""
    pass


class PersistenceError(QuizEngineError):
    """Raised when the profile cannot be read from or written to storage."""
    pass
