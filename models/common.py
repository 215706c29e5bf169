# models/common.py
from datetime import datetime, timezone
from typing import Literal

Difficulty = Literal["easy", "medium", "hard"]
StudentLevel = Literal["beginner", "intermediate", "advanced"]

DIFFICULTIES = ("easy", "medium", "hard")
STUDENT_LEVELS = ["beginner", "intermediate", "advanced"]
DIFFICULTY_MARKS = {"easy": 1, "medium": 2, "hard": 3}


def default_marks(difficulty: str) -> int:
    return DIFFICULTY_MARKS.get((difficulty or "").lower(), 2)


def utcnow() -> datetime:
    """Current time as naive UTC, which is what Mongo hands back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value):
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
