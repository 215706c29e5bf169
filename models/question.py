# models/question.py
from pydantic import BaseModel, Field, ValidationInfo, field_validator, model_validator
from typing import List, Optional

from config import MAX_GENERATED_QUESTIONS
from .common import DIFFICULTIES, Difficulty, default_marks

OPTIONS_PER_QUESTION = 4


class GenerateQuestionsRequest(BaseModel):
    topic: str = Field(..., min_length=1, max_length=500)
    numberOfQuestions: int = Field(5, ge=1, le=MAX_GENERATED_QUESTIONS)
    difficulty: Difficulty = "medium"


class DocumentQuestionsRequest(BaseModel):
    documentText: str = Field(..., min_length=1)
    numberOfQuestions: int = Field(5, ge=1, le=MAX_GENERATED_QUESTIONS)
    difficulty: Difficulty = "medium"


class GeneratedOption(BaseModel):
    text: str
    isCorrect: bool = False

    @model_validator(mode="before")
    @classmethod
    def accept_bare_string(cls, data):
        if isinstance(data, str):
            return {"text": data}
        return data

    @field_validator("text")
    @classmethod
    def strip_text(cls, value):
        return value.strip()


class GeneratedQuestion(BaseModel):
    """One MCQ as returned by the completion service.

    Only ``question`` and ``options`` are required. Everything else is filled in
    from the requested difficulty passed as validation context::

        GeneratedQuestion.model_validate(raw, context={"difficulty": "hard"})

    After validation there are exactly four options with exactly one marked
    correct, a non-empty explanation, a difficulty in easy/medium/hard and marks.
    """

    question: str = Field(..., min_length=1)
    options: List[GeneratedOption]
    explanation: Optional[str] = None
    difficulty: Optional[str] = None
    marks: Optional[float] = None

    @field_validator("question")
    @classmethod
    def strip_question(cls, value):
        value = value.strip()
        if not value:
            raise ValueError("question text is empty")
        return value

    @model_validator(mode="after")
    def apply_defaults(self, info: ValidationInfo):
        requested = (info.context or {}).get("difficulty", "medium")

        options = list(self.options)
        while len(options) < OPTIONS_PER_QUESTION:
            options.append(GeneratedOption(text=f"Option {len(options) + 1}"))
        options = options[:OPTIONS_PER_QUESTION]
        if sum(1 for opt in options if opt.isCorrect) != 1:
            options = [GeneratedOption(text=opt.text, isCorrect=(i == 0)) for i, opt in enumerate(options)]
        self.options = options

        if not (self.explanation or "").strip():
            self.explanation = f"Explanation for: {self.question}"
        else:
            self.explanation = self.explanation.strip()

        difficulty = (self.difficulty or "").strip().lower()
        self.difficulty = difficulty if difficulty in DIFFICULTIES else requested
        if not self.marks or self.marks < 0:
            self.marks = default_marks(self.difficulty)
        return self


class GeneratedQuestionSet(BaseModel):
    questions: List[GeneratedQuestion]
