"""Scoring rules shared by assignments and DPPs.

Nothing in here touches the database; callers persist the computed fields.
"""
from fastapi import HTTPException
import logging

from models.common import to_naive_utc

logger = logging.getLogger(__name__)


def total_points(questions):
    return sum(q.get("points") or 0 for q in questions)


def latest_answers(answers):
    """One answer per questionId; a repeated questionId keeps its last answer."""
    latest = {}
    for answer in answers:
        latest.pop(answer["questionId"], None)
        latest[answer["questionId"]] = answer
    return list(latest.values())


def grade_answers(questions, answers):
    """
    Exact-match grading for assignment quizzes and tests.
    Args:
        questions (list): Stored questions with 'id', 'correctAnswer' and 'points'.
        answers (list): Dicts with 'questionId' and 'answer'.
    Returns:
        tuple: (graded answers, earned points). Each answered question is returned once
               with 'isCorrect' and 'pointsEarned'; answers to unknown questions
               earn nothing and are not counted.
    """
    by_id = {q["id"]: q for q in questions}
    graded = []
    earned = 0
    for answer in latest_answers(answers):
        question = by_id.get(answer["questionId"])
        is_correct = False
        points = 0
        if question is not None:
            is_correct = answer["answer"] == question.get("correctAnswer")
            if is_correct:
                points = question.get("points") or 0
                earned += points
        graded.append({
            "questionId": answer["questionId"],
            "answer": answer["answer"],
            "isCorrect": is_correct,
            "pointsEarned": points,
        })
    return graded, earned


def calculate_percentage(points, total):
    if not total:
        return 0
    return round(points / total * 100, 2)


def correct_option_id(question):
    """Id of the single correct option, or None when zero or several are marked."""
    correct = [opt for opt in question.get("options", []) if opt.get("isCorrect")]
    if len(correct) != 1:
        return None
    return correct[0].get("id")


def score_mcq(questions, answers):
    """
    Score DPP MCQ answers given as (questionId, selectedOptionId) pairs.
    A question without a uniquely correct option earns zero for everyone, and a
    question answered more than once is scored on its last answer.
    Returns:
        tuple: (per-answer results, score)
    """
    by_id = {q["id"]: q for q in questions}
    results = []
    score = 0
    for answer in latest_answers(answers):
        question = by_id.get(answer["questionId"])
        is_correct = False
        points = 0
        if question is not None:
            correct_id = correct_option_id(question)
            if correct_id is None:
                logger.warning(f"Question {question['id']} has no uniquely correct option, scoring 0")
            elif answer["selectedOptionId"] == correct_id:
                is_correct = True
                points = question.get("marks") or 0
                score += points
        results.append({
            "questionId": answer["questionId"],
            "selectedOptionId": answer["selectedOptionId"],
            "isCorrect": is_correct,
            "pointsEarned": points,
        })
    return results, score


def is_late(due_date, now):
    if due_date is None:
        return False
    return to_naive_utc(now) > to_naive_utc(due_date)


def validate_score(score, max_score):
    if score < 0 or score > max_score:
        raise HTTPException(status_code=400, detail=f"Score must be between 0 and {max_score}")
