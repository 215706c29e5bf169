# routes/dpp.py
from fastapi import APIRouter, HTTPException, Depends, File, Form, UploadFile
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError
from datetime import timedelta
from typing import List, Literal, Optional
import uuid
import logging

from database import get_db
from models.common import DIFFICULTIES, utcnow
from models.dpp import (
    DEFAULT_ALLOWED_FILE_TYPES,
    DEFAULT_MAX_FILE_SIZE,
    DEFAULT_MAX_FILES,
    DPPCreate,
    DPPGradeRequest,
    DPPUpdate,
    MCQSubmitRequest,
)
from .auth import get_current_user, require_student, require_teacher
from .analytics import build_dpp_analytics
from .classrooms import get_accessible_classroom, get_owned_classroom
from .file_storage import remove_files, store_uploads, stored_path, validate_uploads
from . import submission_lifecycle

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dpp", tags=["dpp"])

DEFAULT_DUE_IN = timedelta(days=1)


def check_difficulties(items, label):
    for item in items:
        if item.difficulty not in DIFFICULTIES:
            raise HTTPException(400, f"Each {label} must have a valid difficulty level (easy, medium, hard)")


def prepare_mcq_questions(questions):
    prepared = []
    for question in questions:
        question_dict = question.model_dump()
        question_dict["id"] = question_dict.get("id") or str(uuid.uuid4())
        for option in question_dict["options"]:
            option["id"] = option.get("id") or str(uuid.uuid4())
        prepared.append(question_dict)
    return prepared


def prepare_assignment_files(files):
    prepared = []
    for assignment_file in files:
        file_dict = assignment_file.model_dump()
        file_dict["id"] = file_dict.get("id") or str(uuid.uuid4())
        prepared.append(file_dict)
    return prepared


def student_view(dpp, student_id, now):
    """Hide correct answers and other students' submissions."""
    view = dict(dpp)
    submission = submission_lifecycle.find_dpp_submission(dpp, student_id)
    view["hasSubmitted"] = submission is not None
    view["submission"] = submission
    view["isOverdue"] = dpp.get("dueDate") is not None and now > dpp["dueDate"]
    if dpp["type"] == "mcq":
        view["questions"] = [
            {
                **{k: v for k, v in q.items() if k != "explanation"},
                "options": [{"id": opt["id"], "text": opt["text"]} for opt in q["options"]],
            }
            for q in dpp.get("questions", [])
        ]
    view["submissions"] = [submission] if submission else []
    return view


async def get_owned_dpp(db, dpp_id, teacher_id):
    dpp = await db.dpps.find_one({"id": dpp_id, "teacherId": teacher_id}, {"_id": 0})
    if not dpp:
        raise HTTPException(404, "DPP not found or you do not have permission")
    return dpp


async def get_student_dpp(db, dpp_id, student_id, expected_type):
    dpp = await db.dpps.find_one({"id": dpp_id}, {"_id": 0})
    if not dpp:
        raise HTTPException(404, "DPP not found")
    if dpp["type"] != expected_type:
        kind = "an MCQ" if expected_type == "mcq" else "a file submission"
        raise HTTPException(400, f"This DPP is not {kind} type")
    if not dpp.get("isPublished"):
        raise HTTPException(400, "This DPP is not published")
    submission_lifecycle.ensure_dpp_not_submitted(dpp, student_id)
    classroom = await db.classrooms.find_one({"id": dpp["classroomId"], "students.studentId": student_id})
    if not classroom:
        raise HTTPException(403, "You are not enrolled in this classroom")
    return dpp


@router.post("/", status_code=201)
async def create_dpp(dpp: DPPCreate, current_user: dict = Depends(require_teacher), db=Depends(get_db)):
    await get_owned_classroom(db, dpp.classroomId, current_user["id"])

    now = utcnow()
    dpp_dict = {
        "id": str(uuid.uuid4()),
        "title": dpp.title,
        "description": dpp.description,
        "classroomId": dpp.classroomId,
        "teacherId": current_user["id"],
        "type": dpp.type,
        "tags": dpp.tags,
        "estimatedTime": dpp.estimatedTime,
        "questions": [],
        "assignmentFiles": [],
        "dueDate": dpp.dueDate or now + DEFAULT_DUE_IN,
        "isPublished": True,  # DPPs go live as soon as they are created
        "publishedAt": now,
        "submissions": [],
        "createdAt": now,
        "updatedAt": now,
    }

    if dpp.type == "mcq":
        if not dpp.questions:
            raise HTTPException(400, "MCQ type DPP must have at least one question")
        check_difficulties(dpp.questions, "MCQ question")
        dpp_dict["questions"] = prepare_mcq_questions(dpp.questions)
        dpp_dict["maxScore"] = sum(q["marks"] for q in dpp_dict["questions"])
    else:
        if not dpp.assignmentFiles:
            raise HTTPException(400, "File type DPP must have at least one assignment file")
        check_difficulties(dpp.assignmentFiles, "assignment file")
        dpp_dict["assignmentFiles"] = prepare_assignment_files(dpp.assignmentFiles)
        dpp_dict.update({
            "instructions": dpp.instructions or "",
            "allowedFileTypes": dpp.allowedFileTypes or DEFAULT_ALLOWED_FILE_TYPES,
            "maxFileSize": dpp.maxFileSize or DEFAULT_MAX_FILE_SIZE,
            "maxFiles": dpp.maxFiles or DEFAULT_MAX_FILES,
            "maxScore": sum(f["points"] for f in dpp_dict["assignmentFiles"]),
        })

    try:
        await db.dpps.insert_one(dpp_dict)
    except PyMongoError:
        logger.error("Error creating DPP", exc_info=True)
        raise HTTPException(500, "Failed to create DPP")
    dpp_dict.pop("_id", None)
    logger.info(f"Teacher {current_user['id']} created {dpp.type} DPP {dpp_dict['id']}")
    return {"message": "DPP created successfully", "dpp": dpp_dict}


@router.get("/classroom/{classroom_id}")
async def get_classroom_dpps(
    classroom_id: str,
    page: int = 1,
    limit: int = 10,
    status: Literal["all", "active", "overdue"] = "all",
    sortBy: Literal["createdAt", "dueDate", "title"] = "createdAt",
    sortOrder: Literal["asc", "desc"] = "desc",
    current_user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    await get_accessible_classroom(db, classroom_id, current_user)
    page = max(page, 1)
    limit = min(max(limit, 1), 100)

    now = utcnow()
    query = {"classroomId": classroom_id, "isPublished": True}
    if status == "active":
        query["dueDate"] = {"$gte": now}
    elif status == "overdue":
        query["dueDate"] = {"$lt": now}

    total = await db.dpps.count_documents(query)
    dpps = await db.dpps.find(query, {"_id": 0}).sort(sortBy, -1 if sortOrder == "desc" else 1) \
        .skip((page - 1) * limit).limit(limit).to_list(None)

    if current_user["role"] == "student":
        dpps = [student_view(dpp, current_user["id"], now) for dpp in dpps]

    return {
        "dpps": dpps,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }


@router.get("/{dpp_id}")
async def get_dpp(dpp_id: str, current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    dpp = await db.dpps.find_one({"id": dpp_id}, {"_id": 0})
    if not dpp:
        raise HTTPException(404, "DPP not found")

    if current_user["role"] == "teacher":
        allowed = dpp["teacherId"] == current_user["id"]
    else:
        allowed = await db.classrooms.find_one(
            {"id": dpp["classroomId"], "students.studentId": current_user["id"]}
        ) is not None
    if not allowed:
        raise HTTPException(403, "You do not have access to this DPP")

    if current_user["role"] == "student":
        if not dpp.get("isPublished"):
            raise HTTPException(404, "DPP not found")
        return {"dpp": student_view(dpp, current_user["id"], utcnow())}
    return {"dpp": dpp}


@router.put("/{dpp_id}")
async def update_dpp(
    dpp_id: str, update: DPPUpdate, current_user: dict = Depends(require_teacher), db=Depends(get_db)
):
    dpp = await get_owned_dpp(db, dpp_id, current_user["id"])
    update_data = update.model_dump(exclude_unset=True)

    if dpp.get("submissions") and ({"type", "questions"} & update_data.keys()):
        raise HTTPException(400, "Cannot modify question type or content after submissions have been made")

    new_type = update_data.get("type", dpp["type"])
    if "questions" in update_data:
        if new_type != "mcq":
            raise HTTPException(400, "Only MCQ type DPPs have questions")
        if not update.questions:
            raise HTTPException(400, "MCQ type DPP must have at least one question")
        check_difficulties(update.questions, "MCQ question")
        update_data["questions"] = prepare_mcq_questions(update.questions)
        update_data["maxScore"] = sum(q["marks"] for q in update_data["questions"])
    elif new_type != dpp["type"]:
        raise HTTPException(400, "Changing the DPP type requires new content for that type")
    update_data["updatedAt"] = utcnow()

    updated = await db.dpps.find_one_and_update(
        {"id": dpp_id}, {"$set": update_data}, projection={"_id": 0}, return_document=ReturnDocument.AFTER
    )
    return {"message": "DPP updated successfully", "dpp": updated}


@router.delete("/{dpp_id}")
async def delete_dpp(dpp_id: str, current_user: dict = Depends(require_teacher), db=Depends(get_db)):
    await get_owned_dpp(db, dpp_id, current_user["id"])
    await db.dpps.delete_one({"id": dpp_id})
    logger.info(f"Deleted DPP {dpp_id}")
    return {"message": "DPP deleted successfully"}


@router.put("/{dpp_id}/publish")
async def toggle_publish_dpp(dpp_id: str, current_user: dict = Depends(require_teacher), db=Depends(get_db)):
    dpp = await get_owned_dpp(db, dpp_id, current_user["id"])
    is_published = not dpp.get("isPublished", False)
    fields = {"isPublished": is_published}
    if is_published:
        fields["publishedAt"] = utcnow()
    await db.dpps.update_one({"id": dpp_id}, {"$set": fields})
    published_at = fields.get("publishedAt", dpp.get("publishedAt"))
    return {
        "message": f"DPP {'published' if is_published else 'unpublished'} successfully",
        "dpp": {"isPublished": is_published, "publishedAt": published_at},
    }


@router.post("/{dpp_id}/submit/mcq")
async def submit_mcq_answers(
    dpp_id: str,
    body: MCQSubmitRequest,
    current_user: dict = Depends(require_student),
    db=Depends(get_db),
):
    dpp = await get_student_dpp(db, dpp_id, current_user["id"], "mcq")
    submission = await submission_lifecycle.submit_dpp_mcq(
        db, dpp, current_user["id"], [a.model_dump() for a in body.answers], utcnow()
    )
    return {
        "message": "MCQ answers submitted successfully",
        "submission": {
            "score": submission["score"],
            "maxScore": submission["maxScore"],
            "isLate": submission["isLate"],
            "submittedAt": submission["submittedAt"],
        },
    }


@router.post("/{dpp_id}/submit/files")
async def submit_files(
    dpp_id: str,
    files: List[UploadFile] = File(...),
    assignmentFileIds: Optional[List[str]] = Form(None),
    current_user: dict = Depends(require_student),
    db=Depends(get_db),
):
    dpp = await get_student_dpp(db, dpp_id, current_user["id"], "file")
    max_file_size = dpp.get("maxFileSize", DEFAULT_MAX_FILE_SIZE)
    validate_uploads(
        files,
        dpp.get("allowedFileTypes", DEFAULT_ALLOWED_FILE_TYPES),
        max_file_size,
        dpp.get("maxFiles", DEFAULT_MAX_FILES),
    )
    if assignmentFileIds and len(assignmentFileIds) != len(files):
        raise HTTPException(400, "Number of assignment file IDs must match number of uploaded files")

    file_submissions = await store_uploads(files, max_file_size)
    assignment_files = {f["id"]: f for f in dpp.get("assignmentFiles", [])}
    for index, file_submission in enumerate(file_submissions):
        assignment_file = assignment_files.get(assignmentFileIds[index]) if assignmentFileIds else None
        if assignment_file:
            file_submission["assignmentFileId"] = assignment_file["id"]
            file_submission["difficulty"] = assignment_file["difficulty"]

    try:
        submission = await submission_lifecycle.submit_dpp_files(
            db, dpp, current_user["id"], file_submissions, utcnow()
        )
    except Exception:
        remove_files([stored_path(f["fileUrl"]) for f in file_submissions])
        raise

    return {
        "message": "Files submitted successfully",
        "submission": {
            "fileSubmissions": [
                {"fileName": f["fileName"], "fileSize": f["fileSize"], "uploadedAt": f["uploadedAt"]}
                for f in file_submissions
            ],
            "isLate": submission["isLate"],
            "submittedAt": submission["submittedAt"],
        },
    }


@router.put("/{dpp_id}/submissions/{submission_id}/grade")
async def grade_dpp_submission(
    dpp_id: str,
    submission_id: str,
    body: DPPGradeRequest,
    current_user: dict = Depends(require_teacher),
    db=Depends(get_db),
):
    dpp = await get_owned_dpp(db, dpp_id, current_user["id"])
    submission = await submission_lifecycle.grade_dpp_submission(
        db, dpp, submission_id, body.score, body.feedback, current_user["id"], utcnow()
    )
    return {"message": "Submission graded successfully", "submission": submission}


@router.get("/{dpp_id}/analytics")
async def get_dpp_analytics(dpp_id: str, current_user: dict = Depends(require_teacher), db=Depends(get_db)):
    dpp = await get_owned_dpp(db, dpp_id, current_user["id"])
    classroom = await db.classrooms.find_one({"id": dpp["classroomId"]}, {"_id": 0})
    total_students = len(classroom.get("students", [])) if classroom else 0

    student_ids = [s["studentId"] for s in dpp.get("submissions", [])]
    students = await db.users.find(
        {"id": {"$in": student_ids}}, {"_id": 0, "id": 1, "name": 1, "email": 1}
    ).to_list(None)
    students_by_id = {s["id"]: s for s in students}

    return build_dpp_analytics(dpp, total_students, students_by_id)
