# routes/assignments.py
from fastapi import APIRouter, HTTPException, Depends
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError
import uuid
import logging

from database import get_db
from models.assignment import AssignmentCreate, AssignmentUpdate
from models.common import utcnow
from models.submission import (
    STATUS_GRADED,
    STATUS_NOT_STARTED,
    SUBMITTED_STATES,
    GradeRequest,
    SubmissionWrite,
)
from .auth import get_current_user, require_student, require_teacher
from .classrooms import find_enrollment, get_accessible_classroom, get_owned_classroom
from .grading import total_points
from . import submission_lifecycle

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/assignments", tags=["assignments"])

DEFAULT_TOTAL_POINTS = 100


def prepare_questions(questions):
    prepared = []
    for question in questions:
        question_dict = question.model_dump()
        question_dict["id"] = question_dict.get("id") or str(uuid.uuid4())
        prepared.append(question_dict)
    return prepared


def student_view(assignment):
    """Copy of the assignment without correct answers."""
    view = dict(assignment)
    view["questions"] = [
        {k: v for k, v in q.items() if k != "correctAnswer"} for q in assignment.get("questions", [])
    ]
    return view


async def get_owned_assignment(db, assignment_id, teacher_id):
    assignment = await db.assignments.find_one({"id": assignment_id, "teacherId": teacher_id}, {"_id": 0})
    if not assignment:
        raise HTTPException(404, "Assignment not found or access denied")
    return assignment


async def get_submittable_assignment(db, assignment_id, student_id):
    assignment = await db.assignments.find_one({"id": assignment_id}, {"_id": 0})
    if not assignment:
        raise HTTPException(404, "Assignment not found")
    if not assignment.get("isPublished"):
        raise HTTPException(400, "Assignment is not yet published")

    classroom = await db.classrooms.find_one({"id": assignment["classroomId"]}, {"_id": 0})
    enrollment = find_enrollment(classroom, student_id) if classroom else None
    if not enrollment:
        raise HTTPException(403, "Access denied to this assignment")
    if enrollment["level"] not in assignment.get("targetLevels", []):
        raise HTTPException(403, "This assignment is not for your level")
    return assignment


async def get_teacher_submission(db, submission_id, teacher_id):
    submission = await db.submissions.find_one({"id": submission_id}, {"_id": 0})
    if not submission:
        raise HTTPException(404, "Submission not found")
    assignment = await db.assignments.find_one({"id": submission["assignmentId"]}, {"_id": 0})
    if not assignment or assignment["teacherId"] != teacher_id:
        raise HTTPException(403, "Access denied to grade this submission")
    return submission, assignment


@router.post("/classroom/{classroom_id}", status_code=201)
async def create_assignment(
    classroom_id: str,
    assignment: AssignmentCreate,
    current_user: dict = Depends(require_teacher),
    db=Depends(get_db),
):
    await get_owned_classroom(db, classroom_id, current_user["id"])

    questions = prepare_questions(assignment.questions)
    if questions:
        calculated_total = total_points(questions)
    else:
        calculated_total = assignment.totalPoints if assignment.totalPoints is not None else DEFAULT_TOTAL_POINTS

    now = utcnow()
    assignment_dict = assignment.model_dump()
    assignment_dict.update({
        "id": str(uuid.uuid4()),
        "classroomId": classroom_id,
        "teacherId": current_user["id"],
        "questions": questions,
        "totalPoints": calculated_total,
        "isPublished": False,
        "publishedAt": None,
        "createdAt": now,
        "updatedAt": now,
    })
    try:
        await db.assignments.insert_one(assignment_dict)
        await db.classrooms.update_one({"id": classroom_id}, {"$inc": {"totalAssignments": 1}})
    except PyMongoError:
        logger.error("Create assignment error", exc_info=True)
        raise HTTPException(500, "Server error while creating assignment")
    assignment_dict.pop("_id", None)
    logger.info(f"Teacher {current_user['id']} created {assignment_dict['type']} {assignment_dict['id']}")
    return {"message": "Assignment created successfully", "assignment": assignment_dict}


@router.get("/classroom/{classroom_id}")
async def get_classroom_assignments(
    classroom_id: str, current_user: dict = Depends(get_current_user), db=Depends(get_db)
):
    classroom = await get_accessible_classroom(db, classroom_id, current_user)

    query = {"classroomId": classroom_id}
    if current_user["role"] == "student":
        query["isPublished"] = True
        enrollment = find_enrollment(classroom, current_user["id"])
        query["targetLevels"] = {"$in": [enrollment["level"]]}

    assignments = await db.assignments.find(query, {"_id": 0}).sort([("dueDate", 1), ("createdAt", -1)]).to_list(None)

    if current_user["role"] == "student":
        result = []
        for assignment in assignments:
            submission = await db.submissions.find_one(
                {"assignmentId": assignment["id"], "studentId": current_user["id"]}, {"_id": 0}
            )
            view = student_view(assignment)
            view["submissionStatus"] = submission["status"] if submission else STATUS_NOT_STARTED
            view["hasSubmission"] = submission is not None
            result.append(view)
        assignments = result
    else:
        for assignment in assignments:
            total = await db.submissions.count_documents(
                {"assignmentId": assignment["id"], "status": {"$in": SUBMITTED_STATES}}
            )
            graded = await db.submissions.count_documents({"assignmentId": assignment["id"], "status": STATUS_GRADED})
            assignment["submissionStats"] = {"total": total, "graded": graded, "pending": total - graded}

    return {"assignments": assignments, "total": len(assignments)}


@router.get("/{assignment_id}")
async def get_assignment(assignment_id: str, current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    assignment = await db.assignments.find_one({"id": assignment_id}, {"_id": 0})
    if not assignment:
        raise HTTPException(404, "Assignment not found")
    classroom = await db.classrooms.find_one({"id": assignment["classroomId"]}, {"_id": 0})
    if current_user["role"] == "teacher":
        allowed = assignment["teacherId"] == current_user["id"]
    else:
        allowed = classroom is not None and find_enrollment(classroom, current_user["id"]) is not None
    if not allowed:
        raise HTTPException(403, "Access denied to this assignment")

    if current_user["role"] == "student":
        if not assignment.get("isPublished"):
            raise HTTPException(404, "Assignment not found")
        submission = await submission_lifecycle.find_submission(db, assignment_id, current_user["id"])
        return {"assignment": student_view(assignment), "submission": submission}
    return {"assignment": assignment, "submission": None}


@router.put("/{assignment_id}")
async def update_assignment(
    assignment_id: str,
    update: AssignmentUpdate,
    current_user: dict = Depends(require_teacher),
    db=Depends(get_db),
):
    existing = await get_owned_assignment(db, assignment_id, current_user["id"])

    update_data = update.model_dump(exclude_unset=True)
    if update.questions is not None:
        update_data["questions"] = prepare_questions(update.questions)
    questions = update_data.get("questions", existing.get("questions", []))
    if questions:
        # Question points are the only source of totalPoints once questions exist
        update_data["totalPoints"] = total_points(questions)
    update_data["updatedAt"] = utcnow()

    updated = await db.assignments.find_one_and_update(
        {"id": assignment_id}, {"$set": update_data}, projection={"_id": 0}, return_document=ReturnDocument.AFTER
    )
    return {"message": "Assignment updated successfully", "assignment": updated}


@router.put("/{assignment_id}/publish")
async def publish_assignment(assignment_id: str, current_user: dict = Depends(require_teacher), db=Depends(get_db)):
    assignment = await db.assignments.find_one_and_update(
        {"id": assignment_id, "teacherId": current_user["id"]},
        {"$set": {"isPublished": True, "publishedAt": utcnow()}},
        projection={"_id": 0},
        return_document=ReturnDocument.AFTER,
    )
    if not assignment:
        raise HTTPException(404, "Assignment not found or access denied")
    return {"message": "Assignment published successfully", "assignment": assignment}


@router.delete("/{assignment_id}")
async def delete_assignment(assignment_id: str, current_user: dict = Depends(require_teacher), db=Depends(get_db)):
    assignment = await db.assignments.find_one_and_delete({"id": assignment_id, "teacherId": current_user["id"]})
    if not assignment:
        raise HTTPException(404, "Assignment not found or access denied")
    try:
        await db.submissions.delete_many({"assignmentId": assignment_id})
        await db.classrooms.update_one({"id": assignment["classroomId"]}, {"$inc": {"totalAssignments": -1}})
    except PyMongoError:
        logger.error("Delete assignment error", exc_info=True)
        raise HTTPException(500, "Server error while deleting assignment")
    logger.info(f"Deleted assignment {assignment_id} and its submissions")
    return {"message": "Assignment deleted successfully"}


@router.put("/{assignment_id}/draft")
async def save_draft(
    assignment_id: str,
    body: SubmissionWrite,
    current_user: dict = Depends(require_student),
    db=Depends(get_db),
):
    assignment = await get_submittable_assignment(db, assignment_id, current_user["id"])
    answers = [a.model_dump() for a in body.answers] if body.answers is not None else None
    submission = await submission_lifecycle.save_draft(
        db, assignment, current_user["id"], body.content, answers, utcnow()
    )
    return {"message": "Draft saved", "submission": submission}


@router.post("/{assignment_id}/submit")
async def submit_assignment(
    assignment_id: str,
    body: SubmissionWrite,
    current_user: dict = Depends(require_student),
    db=Depends(get_db),
):
    assignment = await get_submittable_assignment(db, assignment_id, current_user["id"])
    answers = [a.model_dump() for a in body.answers] if body.answers is not None else None
    submission = await submission_lifecycle.submit_assignment(
        db, assignment, current_user["id"], body.content, answers, utcnow()
    )
    return {"message": "Assignment submitted successfully", "submission": submission}


@router.get("/{assignment_id}/submissions")
async def get_assignment_submissions(
    assignment_id: str, current_user: dict = Depends(require_teacher), db=Depends(get_db)
):
    assignment = await get_owned_assignment(db, assignment_id, current_user["id"])
    submissions = await db.submissions.find({"assignmentId": assignment_id}, {"_id": 0}).sort("submittedAt", -1).to_list(None)
    return {
        "submissions": submissions,
        "total": len(submissions),
        "assignment": {
            "id": assignment["id"],
            "title": assignment["title"],
            "type": assignment["type"],
            "totalPoints": assignment["totalPoints"],
        },
    }


@router.put("/submissions/{submission_id}/grade")
async def grade_submission(
    submission_id: str,
    body: GradeRequest,
    current_user: dict = Depends(require_teacher),
    db=Depends(get_db),
):
    submission, assignment = await get_teacher_submission(db, submission_id, current_user["id"])
    graded = await submission_lifecycle.grade_submission(
        db, submission, assignment, body.points, body.feedback, current_user["id"], utcnow()
    )
    logger.info(f"Teacher {current_user['id']} graded submission {submission_id}: {body.points}")
    return {"message": "Submission graded successfully", "submission": graded}


@router.put("/submissions/{submission_id}/return")
async def return_submission(
    submission_id: str, current_user: dict = Depends(require_teacher), db=Depends(get_db)
):
    submission, _ = await get_teacher_submission(db, submission_id, current_user["id"])
    returned = await submission_lifecycle.return_submission(db, submission, utcnow())
    return {"message": "Submission returned successfully", "submission": returned}
