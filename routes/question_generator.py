# routes/question_generator.py
from fastapi import APIRouter, Depends
from .auth import require_teacher
from models.question import DocumentQuestionsRequest, GenerateQuestionsRequest
from .question_generator_groq import generate_mcq_questions, generate_mcq_questions_from_document
import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/generate-questions", tags=["question-generator"])


@router.post("/")
async def generate_questions(request: GenerateQuestionsRequest, current_user: dict = Depends(require_teacher)):
    logger.info(
        f"Generating {request.numberOfQuestions} {request.difficulty} questions on '{request.topic}' "
        f"for teacher {current_user['id']}"
    )
    questions = await generate_mcq_questions(request.topic, request.numberOfQuestions, request.difficulty)
    return {"questions": questions, "total": len(questions)}


@router.post("/document")
async def generate_questions_from_document(
    request: DocumentQuestionsRequest, current_user: dict = Depends(require_teacher)
):
    logger.info(
        f"Generating {request.numberOfQuestions} {request.difficulty} questions from a "
        f"{len(request.documentText)}-character document for teacher {current_user['id']}"
    )
    questions = await generate_mcq_questions_from_document(
        request.documentText, request.numberOfQuestions, request.difficulty
    )
    return {"questions": questions, "total": len(questions)}
