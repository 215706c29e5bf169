import json
import re
import logging

from pydantic import ValidationError

from models.question import GeneratedQuestionSet

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

CODE_FENCE_PATTERN = re.compile(r"```(?:json|JSON)?\s*|\s*```")

TYPOGRAPHIC_REPLACEMENTS = [
    ("“", '"'),    # left double quote
    ("”", '"'),    # right double quote
    ("‘", "'"),    # left single quote
    ("’", "'"),    # right single quote
    ("…", "..."),  # ellipsis
    ("–", "-"),    # en dash
    ("—", "--"),   # em dash
]


class AIResponseError(ValueError):
    """The completion text could not be turned into a question set."""


def clean_ai_response(text):
    """
    Strip Markdown code fences and replace typographic quotes, ellipses and
    dashes with their ASCII equivalents.
    Args:
        text (str): Raw message content from the completion service.
    Returns:
        str: The cleaned text.
    """
    cleaned = CODE_FENCE_PATTERN.sub("", text.strip())
    for original, replacement in TYPOGRAPHIC_REPLACEMENTS:
        cleaned = cleaned.replace(original, replacement)
    return cleaned


def extract_json_object(text):
    """
    Return the first top-level JSON object embedded in the text, ignoring any
    prose before or after it.
    Args:
        text (str): Cleaned completion text.
    Returns:
        dict: The decoded object.
    Raises:
        AIResponseError: If no '{' starts a decodable JSON object.
    """
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            value, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(value, dict):
            return value
        start = text.find("{", start + 1)
    raise AIResponseError("No JSON object found in AI response")


def parse_ai_response(ai_response, expected_questions, difficulty):
    """
    Turn raw completion text into validated question dicts.
    Args:
        ai_response (str): Message content from the completion service.
        expected_questions (int): Upper bound on the number of questions returned.
        difficulty (str): Requested difficulty, used for missing fields.
    Returns:
        list: At most ``expected_questions`` question dicts, each with four options
              and exactly one correct option.
    """
    if not isinstance(ai_response, str) or not ai_response.strip():
        raise AIResponseError("Empty AI response")

    logger.info(f"Raw AI response length: {len(ai_response)}")
    cleaned = clean_ai_response(ai_response)
    payload = extract_json_object(cleaned)
    if not isinstance(payload.get("questions"), list):
        raise AIResponseError("Invalid response format: missing questions array")

    # Anything past the requested count is dropped unvalidated
    payload = {**payload, "questions": payload["questions"][:expected_questions]}
    try:
        question_set = GeneratedQuestionSet.model_validate(payload, context={"difficulty": difficulty})
    except ValidationError as e:
        logger.warning(f"AI response failed schema validation: {e.error_count()} error(s)")
        raise AIResponseError(f"Invalid response format: {e.errors()[0]['msg']}") from e

    questions = [q.model_dump() for q in question_set.questions]
    logger.info(f"Validated questions: {len(questions)}")
    return questions
