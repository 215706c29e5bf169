# models/assignment.py
from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import List, Literal, Optional

from .common import STUDENT_LEVELS, StudentLevel, to_naive_utc

AssignmentType = Literal["assignment", "quiz", "test"]


class Question(BaseModel):
    id: Optional[str] = None  # UUID as string, filled in on save
    question: str = Field(..., min_length=1)
    options: List[str] = []
    correctAnswer: Optional[str] = None
    points: int = Field(1, ge=0)


class AssignmentCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    instructions: Optional[str] = None
    type: AssignmentType = "assignment"
    totalPoints: Optional[int] = Field(None, ge=0)
    dueDate: datetime
    allowLateSubmission: bool = False
    targetLevels: List[StudentLevel] = Field(default_factory=lambda: list(STUDENT_LEVELS))
    questions: List[Question] = []
    timeLimit: Optional[int] = Field(None, ge=1)  # In minutes

    @field_validator("dueDate")
    @classmethod
    def normalize_due_date(cls, value):
        return to_naive_utc(value)


class AssignmentUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    instructions: Optional[str] = None
    type: Optional[AssignmentType] = None
    totalPoints: Optional[int] = Field(None, ge=0)
    dueDate: Optional[datetime] = None
    allowLateSubmission: Optional[bool] = None
    targetLevels: Optional[List[StudentLevel]] = None
    questions: Optional[List[Question]] = None
    timeLimit: Optional[int] = Field(None, ge=1)

    @field_validator("dueDate")
    @classmethod
    def normalize_due_date(cls, value):
        return to_naive_utc(value)
