"""Shared fixtures: in-memory Motor database, app client and user switching."""
import asyncio
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from database import get_db, init_db
from main import app
from models.common import utcnow
from routes.auth import get_current_user

TEACHER = {"id": "teacher-1", "name": "Ada Lovelace", "email": "ada@example.com", "role": "teacher"}
OTHER_TEACHER = {"id": "teacher-2", "name": "Alan Turing", "email": "alan@example.com", "role": "teacher"}
STUDENT = {"id": "student-1", "name": "Grace Hopper", "email": "grace@example.com", "role": "student"}
OTHER_STUDENT = {"id": "student-2", "name": "Katherine Johnson", "email": "kj@example.com", "role": "student"}
OUTSIDER = {"id": "student-3", "name": "Edsger Dijkstra", "email": "ed@example.com", "role": "student"}

CLASSROOM_ID = "classroom-1"


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def db():
    database = AsyncMongoMockClient()["classroom_test"]
    run(init_db(database))
    run(database.users.insert_many([
        dict(user, password="unused") for user in (TEACHER, OTHER_TEACHER, STUDENT, OTHER_STUDENT, OUTSIDER)
    ]))
    run(database.classrooms.insert_one({
        "id": CLASSROOM_ID,
        "name": "Physics 101",
        "teacherId": TEACHER["id"],
        "students": [
            {"studentId": STUDENT["id"], "level": "beginner", "joinedAt": utcnow()},
            {"studentId": OTHER_STUDENT["id"], "level": "advanced", "joinedAt": utcnow()},
        ],
        "totalAssignments": 0,
        "createdAt": utcnow(),
    }))
    return database


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login_as():
    """Make every following request come from the given user."""
    def _login(user):
        app.dependency_overrides[get_current_user] = lambda: user
    return _login


def future(days=7):
    return (utcnow() + timedelta(days=days)).isoformat()


def past(days=1):
    return (utcnow() - timedelta(days=days)).isoformat()
