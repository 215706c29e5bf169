# routes/classrooms.py
from fastapi import APIRouter, HTTPException, Depends
from pymongo.errors import PyMongoError
import uuid
import logging

from database import get_db
from models.classroom import ClassroomCreate, EnrollStudent
from models.common import utcnow
from .auth import get_current_user, require_teacher

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/classrooms", tags=["classrooms"])


def find_enrollment(classroom, student_id):
    for entry in classroom.get("students", []):
        if entry["studentId"] == student_id:
            return entry
    return None


def has_access(classroom, user):
    if user["role"] == "teacher":
        return classroom["teacherId"] == user["id"]
    return find_enrollment(classroom, user["id"]) is not None


async def get_owned_classroom(db, classroom_id, teacher_id):
    classroom = await db.classrooms.find_one({"id": classroom_id, "teacherId": teacher_id}, {"_id": 0})
    if not classroom:
        raise HTTPException(404, "Classroom not found or access denied")
    return classroom


async def get_accessible_classroom(db, classroom_id, user):
    classroom = await db.classrooms.find_one({"id": classroom_id}, {"_id": 0})
    if not classroom:
        raise HTTPException(404, "Classroom not found")
    if not has_access(classroom, user):
        raise HTTPException(403, "Access denied to this classroom")
    return classroom


@router.post("/", status_code=201)
async def create_classroom(classroom: ClassroomCreate, current_user: dict = Depends(require_teacher), db=Depends(get_db)):
    classroom_dict = classroom.model_dump()
    classroom_dict.update({
        "id": str(uuid.uuid4()),
        "teacherId": current_user["id"],
        "students": [],
        "totalAssignments": 0,
        "createdAt": utcnow(),
    })
    try:
        await db.classrooms.insert_one(classroom_dict)
    except PyMongoError:
        logger.error("Create classroom error", exc_info=True)
        raise HTTPException(500, "Server error while creating classroom")
    classroom_dict.pop("_id", None)
    logger.info(f"Teacher {current_user['id']} created classroom {classroom_dict['id']}")
    return {"message": "Classroom created successfully", "classroom": classroom_dict}


@router.get("/")
async def get_classrooms(current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    if current_user["role"] == "teacher":
        query = {"teacherId": current_user["id"]}
    else:
        query = {"students.studentId": current_user["id"]}
    classrooms = await db.classrooms.find(query, {"_id": 0}).to_list(None)
    return {"classrooms": classrooms, "total": len(classrooms)}


@router.get("/{classroom_id}")
async def get_classroom(classroom_id: str, current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    classroom = await get_accessible_classroom(db, classroom_id, current_user)
    return {"classroom": classroom}


@router.post("/{classroom_id}/students")
async def enroll_student(
    classroom_id: str,
    enrollment: EnrollStudent,
    current_user: dict = Depends(require_teacher),
    db=Depends(get_db),
):
    classroom = await get_owned_classroom(db, classroom_id, current_user["id"])
    student = await db.users.find_one({"id": enrollment.studentId, "role": "student"})
    if not student:
        raise HTTPException(404, f"Student with id {enrollment.studentId} not found")
    if find_enrollment(classroom, enrollment.studentId):
        raise HTTPException(400, "Student already enrolled in this classroom")

    entry = {"studentId": enrollment.studentId, "level": enrollment.level, "joinedAt": utcnow()}
    await db.classrooms.update_one({"id": classroom_id}, {"$push": {"students": entry}})
    logger.info(f"Enrolled student {enrollment.studentId} in classroom {classroom_id} at level {enrollment.level}")
    return {"message": "Student enrolled", "enrollment": entry}
