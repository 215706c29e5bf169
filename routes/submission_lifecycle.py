"""Submission state transitions for assignments and DPPs.

Assignment submissions move ``not-started`` (no record) -> ``in-progress`` ->
``submitted`` -> ``graded`` -> ``returned``. Every write is a single Mongo
operation, and the (assignmentId, studentId) unique index turns a lost race on
the first write into "Assignment already submitted".
"""
from fastapi import HTTPException
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
import uuid
import logging

from models.submission import (
    STATUS_GRADED,
    STATUS_IN_PROGRESS,
    STATUS_RETURNED,
    STATUS_SUBMITTED,
    SUBMITTED_STATES,
)
from .grading import calculate_percentage, grade_answers, is_late, score_mcq, validate_score

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ALREADY_SUBMITTED = "Assignment already submitted"
DEADLINE_PASSED = "Assignment deadline has passed and late submissions are not allowed"
DPP_ALREADY_SUBMITTED = "You have already submitted this DPP"


def is_auto_gradable(assignment):
    return assignment.get("type", "assignment") != "assignment"


def check_deadline(assignment, now):
    """Return the late flag, rejecting when late work is not accepted."""
    late = is_late(assignment.get("dueDate"), now)
    if late and not assignment.get("allowLateSubmission", False):
        raise HTTPException(status_code=400, detail=DEADLINE_PASSED)
    return late


def ensure_open(submission):
    if submission and submission.get("status") in SUBMITTED_STATES:
        raise HTTPException(status_code=400, detail=ALREADY_SUBMITTED)


async def find_submission(db, assignment_id, student_id):
    return await db.submissions.find_one({"assignmentId": assignment_id, "studentId": student_id}, {"_id": 0})


def build_submit_fields(assignment, existing, content, answers, now, late):
    existing = existing or {}
    if answers is None:
        answers = [{"questionId": a["questionId"], "answer": a["answer"]} for a in existing.get("answers", [])]
    fields = {
        "content": content if content is not None else existing.get("content", ""),
        "answers": answers,
        "isLateSubmission": late,
        "status": STATUS_SUBMITTED,
        "submittedAt": now,
        "updatedAt": now,
    }
    if is_auto_gradable(assignment):
        graded, earned = grade_answers(assignment.get("questions", []), answers)
        fields.update({
            "answers": graded,
            "grade": {
                "points": earned,
                "percentage": calculate_percentage(earned, assignment.get("totalPoints", 0)),
                "feedback": None,
            },
            "status": STATUS_GRADED,
            "gradedAt": now,
            "gradedBy": assignment["teacherId"],
        })
    return fields


async def _upsert_open_submission(db, assignment_id, student_id, fields, now):
    on_insert = {
        "id": str(uuid.uuid4()),
        "startedAt": now,
        "isLateSubmission": False,
        "grade": {"points": None, "percentage": None, "feedback": None},
    }
    on_insert = {k: v for k, v in on_insert.items() if k not in fields}
    try:
        return await db.submissions.find_one_and_update(
            {"assignmentId": assignment_id, "studentId": student_id, "status": STATUS_IN_PROGRESS},
            {"$set": fields, "$setOnInsert": on_insert},
            upsert=True,
            projection={"_id": 0},
            return_document=ReturnDocument.AFTER,
        )
    except DuplicateKeyError:
        # Someone else already moved this submission past in-progress
        logger.warning(f"Concurrent submission for assignment {assignment_id} by student {student_id}")
        raise HTTPException(status_code=400, detail=ALREADY_SUBMITTED)


async def save_draft(db, assignment, student_id, content, answers, now):
    existing = await find_submission(db, assignment["id"], student_id)
    ensure_open(existing)
    fields = {"updatedAt": now}
    if content is not None:
        fields["content"] = content
    if answers is not None:
        fields["answers"] = answers
    return await _upsert_open_submission(db, assignment["id"], student_id, fields, now)


async def submit_assignment(db, assignment, student_id, content, answers, now):
    """
    Submit a student's work, auto-grading quizzes and tests in the same write.
    Raises:
        HTTPException: 400 when the deadline has passed or the work was already submitted.
    """
    late = check_deadline(assignment, now)
    existing = await find_submission(db, assignment["id"], student_id)
    ensure_open(existing)
    fields = build_submit_fields(assignment, existing, content, answers, now, late)
    submission = await _upsert_open_submission(db, assignment["id"], student_id, fields, now)
    logger.info(
        f"Student {student_id} submitted assignment {assignment['id']} "
        f"(status={submission['status']}, late={late})"
    )
    return submission


async def grade_submission(db, submission, assignment, points, feedback, teacher_id, now):
    if submission.get("status") not in SUBMITTED_STATES:
        raise HTTPException(status_code=400, detail="Submission has not been submitted yet")
    validate_score(points, assignment.get("totalPoints", 0))
    fields = {
        "grade": {
            "points": points,
            "percentage": calculate_percentage(points, assignment.get("totalPoints", 0)),
            "feedback": feedback,
        },
        "status": STATUS_GRADED,
        "gradedBy": teacher_id,
        "gradedAt": now,
        "updatedAt": now,
    }
    await db.submissions.update_one({"id": submission["id"]}, {"$set": fields})
    return {**submission, **fields}


async def return_submission(db, submission, now):
    if submission.get("status") != STATUS_GRADED:
        raise HTTPException(status_code=400, detail="Only graded submissions can be returned")
    fields = {"status": STATUS_RETURNED, "returnedAt": now, "updatedAt": now}
    await db.submissions.update_one({"id": submission["id"]}, {"$set": fields})
    return {**submission, **fields}


def find_dpp_submission(dpp, student_id):
    for submission in dpp.get("submissions", []):
        if submission["studentId"] == student_id:
            return submission
    return None


def ensure_dpp_not_submitted(dpp, student_id):
    if find_dpp_submission(dpp, student_id):
        raise HTTPException(status_code=400, detail=DPP_ALREADY_SUBMITTED)


async def _push_dpp_submission(db, dpp, submission):
    result = await db.dpps.update_one(
        {"id": dpp["id"], "submissions.studentId": {"$ne": submission["studentId"]}},
        {"$push": {"submissions": submission}},
    )
    if result.modified_count == 0:
        raise HTTPException(status_code=400, detail=DPP_ALREADY_SUBMITTED)
    return submission


async def submit_dpp_mcq(db, dpp, student_id, answers, now):
    ensure_dpp_not_submitted(dpp, student_id)
    results, score = score_mcq(dpp.get("questions", []), answers)
    submission = {
        "id": str(uuid.uuid4()),
        "studentId": student_id,
        "answers": results,
        "fileSubmissions": [],
        "score": score,
        "maxScore": dpp["maxScore"],
        "isLate": is_late(dpp.get("dueDate"), now),
        "submittedAt": now,
        "feedback": None,
        "gradedAt": now,
        "gradedBy": None,
    }
    await _push_dpp_submission(db, dpp, submission)
    logger.info(f"Student {student_id} scored {score}/{dpp['maxScore']} on DPP {dpp['id']}")
    return submission


async def submit_dpp_files(db, dpp, student_id, file_submissions, now):
    ensure_dpp_not_submitted(dpp, student_id)
    submission = {
        "id": str(uuid.uuid4()),
        "studentId": student_id,
        "answers": [],
        "fileSubmissions": file_submissions,
        "score": 0,  # Graded by the teacher later
        "maxScore": dpp["maxScore"],
        "isLate": is_late(dpp.get("dueDate"), now),
        "submittedAt": now,
        "feedback": None,
        "gradedAt": None,
        "gradedBy": None,
    }
    await _push_dpp_submission(db, dpp, submission)
    logger.info(f"Student {student_id} submitted {len(file_submissions)} file(s) to DPP {dpp['id']}")
    return submission


async def grade_dpp_submission(db, dpp, submission_id, score, feedback, teacher_id, now):
    submission = next((s for s in dpp.get("submissions", []) if s["id"] == submission_id), None)
    if not submission:
        raise HTTPException(status_code=404, detail="Submission not found")
    validate_score(score, dpp["maxScore"])
    await db.dpps.update_one(
        {"id": dpp["id"], "submissions.id": submission_id},
        {"$set": {
            "submissions.$.score": score,
            "submissions.$.feedback": feedback,
            "submissions.$.gradedAt": now,
            "submissions.$.gradedBy": teacher_id,
        }},
    )
    return {**submission, "score": score, "feedback": feedback, "gradedAt": now, "gradedBy": teacher_id}
