import httpx
import logging

from config import (
    AI_REQUEST_TIMEOUT,
    DOCUMENT_EXCERPT_LIMIT,
    GROQ_API_KEY,
    GROQ_BASE_URL,
    GROQ_MODELS,
)
from models.common import default_marks
from .ai_response_parser import AIResponseError, parse_ai_response

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

TOPIC_SYSTEM_PROMPT = "You are an expert educator. Create multiple choice questions in valid JSON format only."
DOCUMENT_SYSTEM_PROMPT = (
    "You are an expert educator. Create multiple choice questions based on the provided "
    "document content in valid JSON format only."
)


def create_mcq_prompt(topics, number_of_questions, difficulty):
    return f"""Create {number_of_questions} multiple choice questions about "{topics}".

Format: Return valid JSON only, no extra text.

{{
  "questions": [
    {{
      "question": "What is the main concept in number theory?",
      "options": [
        {{"text": "Properties of integers", "isCorrect": true}},
        {{"text": "Geometry shapes", "isCorrect": false}},
        {{"text": "Calculus derivatives", "isCorrect": false}},
        {{"text": "Matrix operations", "isCorrect": false}}
      ],
      "explanation": "Number theory studies properties of integers",
      "difficulty": "{difficulty}",
      "marks": {default_marks(difficulty)}
    }}
  ]
}}

Requirements:
- Difficulty: {difficulty}
- Exactly 4 options per question
- Only one correct answer
- Educational and clear questions
- Topics: {topics}

Generate exactly {number_of_questions} questions now:"""


def truncate_document(content, limit=DOCUMENT_EXCERPT_LIMIT):
    if len(content) > limit:
        return content[:limit] + "..."
    return content


def create_document_mcq_prompt(document_text, number_of_questions, difficulty):
    excerpt = truncate_document(document_text)
    return f"""Based on the following document content, create {number_of_questions} multiple choice questions.

DOCUMENT CONTENT:
{excerpt}

Format: Return valid JSON only, no extra text.

{{
  "questions": [
    {{
      "question": "Based on the document, what is the main concept discussed?",
      "options": [
        {{"text": "Correct answer from document", "isCorrect": true}},
        {{"text": "Plausible but incorrect option", "isCorrect": false}},
        {{"text": "Another incorrect option", "isCorrect": false}},
        {{"text": "Fourth incorrect option", "isCorrect": false}}
      ],
      "explanation": "Brief explanation referencing the document",
      "difficulty": "{difficulty}",
      "marks": {default_marks(difficulty)}
    }}
  ]
}}

Requirements:
- Difficulty: {difficulty}
- Exactly 4 options per question
- Only one correct answer
- Questions must be based on the document content provided
- Create educational and clear questions
- Include brief explanations that reference the document

Generate exactly {number_of_questions} questions now:"""


def generate_fallback_questions(topics, number_of_questions, difficulty):
    """Templated questions used when no completion model produced a usable answer."""
    logger.info(f"Generating {number_of_questions} fallback questions for '{topics}'")
    marks = default_marks(difficulty)
    return [
        {
            "question": f"Question {i + 1}: What is an important concept related to {topics}?",
            "options": [
                {"text": f"Core concept {i + 1} of {topics}", "isCorrect": True},
                {"text": "Alternative concept A", "isCorrect": False},
                {"text": "Alternative concept B", "isCorrect": False},
                {"text": "Alternative concept C", "isCorrect": False},
            ],
            "explanation": f"This question covers fundamental aspects of {topics}",
            "difficulty": difficulty,
            "marks": marks,
        }
        for i in range(number_of_questions)
    ]


async def request_completion(client, model, system_prompt, prompt, max_tokens, api_key, base_url):
    response = await client.post(
        f"{base_url}/chat/completions",
        json={
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.7,
            "max_tokens": max_tokens,
        },
        headers={
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        },
    )
    response.raise_for_status()
    response_data = response.json()
    if "choices" not in response_data or not response_data["choices"]:
        raise AIResponseError("Completion response missing 'choices' field")

    choice = response_data["choices"][0]
    if "message" in choice and "content" in choice["message"]:
        return choice["message"]["content"]
    elif "text" in choice:
        return choice["text"]
    raise AIResponseError("Completion response missing expected content field")


async def generate_with_fallback(
    system_prompt,
    prompt,
    number_of_questions,
    difficulty,
    fallback_topic,
    max_tokens,
    models=None,
    client=None,
    api_key=None,
    base_url=None,
):
    """
    Try each model in order and return the first successfully parsed question list.
    Falls back to templated questions when every model fails.
    Args:
        models (list): Ordered model identifiers; defaults to the configured list.
        client (httpx.AsyncClient): Optional client, mainly for tests.
    Returns:
        list: Question dicts, never more than ``number_of_questions``.
    """
    models = list(GROQ_MODELS if models is None else models)
    api_key = api_key if api_key is not None else GROQ_API_KEY
    base_url = base_url or GROQ_BASE_URL

    if not api_key:
        logger.warning("GROQ_API_KEY not configured, using fallback questions")
        return generate_fallback_questions(fallback_topic, number_of_questions, difficulty)

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=AI_REQUEST_TIMEOUT)
    try:
        for model in models:
            logger.info(f"Trying model: {model}")
            try:
                content = await request_completion(
                    client, model, system_prompt, prompt, max_tokens, api_key, base_url
                )
                questions = parse_ai_response(content, number_of_questions, difficulty)
                logger.info(f"Successfully generated {len(questions)} questions with model: {model}")
                return questions
            except httpx.HTTPStatusError as e:
                logger.error(f"Model {model} returned HTTP {e.response.status_code}")
            except httpx.RequestError as e:
                logger.error(f"Model {model} request error: {type(e).__name__}: {str(e)}")
            except (AIResponseError, ValueError, KeyError, TypeError) as e:
                logger.error(f"Model {model} gave an unusable response: {str(e)}")
    finally:
        if owns_client:
            await client.aclose()

    logger.warning("All AI models failed, using fallback questions")
    return generate_fallback_questions(fallback_topic, number_of_questions, difficulty)


async def generate_mcq_questions(topics, number_of_questions, difficulty="medium", **kwargs):
    prompt = create_mcq_prompt(topics, number_of_questions, difficulty)
    return await generate_with_fallback(
        TOPIC_SYSTEM_PROMPT, prompt, number_of_questions, difficulty, topics, 1500, **kwargs
    )


async def generate_mcq_questions_from_document(document_text, number_of_questions, difficulty="medium", **kwargs):
    prompt = create_document_mcq_prompt(document_text, number_of_questions, difficulty)
    return await generate_with_fallback(
        DOCUMENT_SYSTEM_PROMPT, prompt, number_of_questions, difficulty, "document content", 2000, **kwargs
    )
