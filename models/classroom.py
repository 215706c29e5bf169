# models/classroom.py
from pydantic import BaseModel, Field
from typing import Optional

from .common import StudentLevel


class ClassroomCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    subject: Optional[str] = None
    description: Optional[str] = None


class EnrollStudent(BaseModel):
    studentId: str
    level: StudentLevel = "beginner"
