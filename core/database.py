# core/database.py
from datetime import datetime, timezone
import logging

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING

from core.config import MONGODB_URI, MONGODB_DB

logger = logging.getLogger(__name__)

client = AsyncIOMotorClient(MONGODB_URI)
db = client[MONGODB_DB]


def get_db():
    return db


def utcnow() -> datetime:
    # Naive UTC, matching what pymongo hands back for stored dates
    return datetime.now(timezone.utc).replace(tzinfo=None)


def clean(doc):
    """Drop Mongo's internal _id so documents serialize as plain JSON."""
    if doc is not None:
        doc.pop("_id", None)
    return doc


async def init_db(database=None):
    database = database if database is not None else db
    await database.users.create_index("id", unique=True)
    await database.users.create_index("email", unique=True)
    await database.quizzes.create_index("id", unique=True)
    await database.quizzes.create_index("urlSlug", unique=True, sparse=True)
    await database.quizzes.create_index([("createdAt", DESCENDING)])
    await database.quiz_attempts.create_index("id", unique=True)
    # One open attempt per (quiz, email); closes the start-attempt race
    await database.quiz_attempts.create_index(
        [("quiz", ASCENDING), ("studentEmail", ASCENDING)],
        unique=True,
        partialFilterExpression={"status": "open"},
        name="one_open_attempt_per_student",
    )
    await database.quiz_attempts.create_index([("studentUserId", ASCENDING)])
    logger.info(f"Indexes ensured on database {database.name}")
