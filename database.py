# database.py
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING

from config import MONGODB_URI, MONGODB_DB

client = AsyncIOMotorClient(MONGODB_URI)
db = client[MONGODB_DB]


async def get_db():
    return db


async def init_db(database):
    await database.users.create_index("id", unique=True)
    await database.users.create_index("email", unique=True)
    await database.classrooms.create_index("id", unique=True)
    await database.assignments.create_index("id", unique=True)
    await database.submissions.create_index("id", unique=True)
    # One submission per student per assignment
    await database.submissions.create_index(
        [("assignmentId", ASCENDING), ("studentId", ASCENDING)], unique=True
    )
    await database.dpps.create_index("id", unique=True)
