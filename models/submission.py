# models/submission.py
from pydantic import BaseModel
from typing import List, Optional

STATUS_NOT_STARTED = "not-started"
STATUS_IN_PROGRESS = "in-progress"
STATUS_SUBMITTED = "submitted"
STATUS_GRADED = "graded"
STATUS_RETURNED = "returned"

# Once a submission reaches one of these the student can no longer change it
SUBMITTED_STATES = [STATUS_SUBMITTED, STATUS_GRADED, STATUS_RETURNED]


class AnswerIn(BaseModel):
    questionId: str
    answer: str


class SubmissionWrite(BaseModel):
    content: Optional[str] = None
    answers: Optional[List[AnswerIn]] = None


class GradeRequest(BaseModel):
    points: float
    feedback: Optional[str] = None
