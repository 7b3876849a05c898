from enum import Enum


class Difficulty(str, Enum):
    """Difficulty labels a user can attach to a problem."""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class AuthProvider(str, Enum):
    PASSWORD = "password"
    GOOGLE = "google"


class ErrorKind(str, Enum):
    """Failure categories reported by problem store operations."""
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    WINDOW_EXPIRED = "window_expired"
    PERSISTENCE = "persistence"
