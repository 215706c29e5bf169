# models/dpp.py
from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import List, Literal, Optional

from .common import to_naive_utc

DEFAULT_ALLOWED_FILE_TYPES = [".pdf", ".doc", ".docx", ".txt"]
DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
DEFAULT_MAX_FILES = 5


class MCQOption(BaseModel):
    id: Optional[str] = None
    text: str
    isCorrect: bool = False


class MCQQuestion(BaseModel):
    id: Optional[str] = None
    question: str = Field(..., min_length=1)
    options: List[MCQOption] = Field(..., min_length=2)
    explanation: Optional[str] = None
    difficulty: Optional[str] = None  # Checked against DIFFICULTIES by the route
    marks: int = Field(1, ge=0)


class AssignmentFile(BaseModel):
    id: Optional[str] = None
    fileName: str
    fileUrl: str
    description: Optional[str] = None
    difficulty: Optional[str] = None  # Checked against DIFFICULTIES by the route
    points: int = Field(10, ge=0)


class DPPCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    classroomId: str
    type: Literal["mcq", "file"]
    questions: List[MCQQuestion] = []
    assignmentFiles: List[AssignmentFile] = []
    instructions: Optional[str] = None
    allowedFileTypes: Optional[List[str]] = None
    maxFileSize: Optional[int] = Field(None, gt=0)
    maxFiles: Optional[int] = Field(None, ge=1)
    dueDate: Optional[datetime] = None
    tags: List[str] = []
    estimatedTime: int = Field(30, ge=1)  # In minutes

    @field_validator("dueDate")
    @classmethod
    def normalize_due_date(cls, value):
        return to_naive_utc(value)


class DPPUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    type: Optional[Literal["mcq", "file"]] = None
    questions: Optional[List[MCQQuestion]] = None
    instructions: Optional[str] = None
    allowedFileTypes: Optional[List[str]] = None
    maxFileSize: Optional[int] = Field(None, gt=0)
    maxFiles: Optional[int] = Field(None, ge=1)
    dueDate: Optional[datetime] = None
    tags: Optional[List[str]] = None
    estimatedTime: Optional[int] = Field(None, ge=1)

    @field_validator("dueDate")
    @classmethod
    def normalize_due_date(cls, value):
        return to_naive_utc(value)


class MCQAnswer(BaseModel):
    questionId: str
    selectedOptionId: str


class MCQSubmitRequest(BaseModel):
    answers: List[MCQAnswer]


class DPPGradeRequest(BaseModel):
    score: float
    feedback: Optional[str] = None
