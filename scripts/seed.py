# scripts/seed.py
"""Create an admin account and a sample quiz.

Run with ``python -m scripts.seed``. Reads ADMIN_NAME, ADMIN_EMAIL,
ADMIN_PASSWORD, RESET_ADMIN_PASSWORD and CREATE_SAMPLE_QUIZ from the
environment (or .env).
"""
import asyncio
import logging
import os
import secrets
import uuid

from core.database import clean, db, init_db, utcnow
from core.logging_config import configure_logging
from models.quiz import Question, QuizCreate
from models.user import Role
from services import auth_service, quiz_service

logger = logging.getLogger(__name__)

SAMPLE_QUIZ_TITLE = "Sample Quiz"

SAMPLE_QUESTIONS = [
    {"questionText": "What is 2 + 2?", "options": ["1", "2", "3", "4"], "correctOptionIndex": 3, "marks": 1},
    {"questionText": "Capital of France?", "options": ["Berlin", "Madrid", "Paris", "Rome"], "correctOptionIndex": 2, "marks": 1},
    {"questionText": "Which is a Python web framework?", "options": ["React", "Laravel", "FastAPI", "Rails"], "correctOptionIndex": 2, "marks": 1},
]


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() == "true"


async def ensure_admin(database) -> dict:
    name = os.getenv("ADMIN_NAME", "Admin User")
    email = os.getenv("ADMIN_EMAIL", "admin@example.com").strip().lower()
    configured_password = os.getenv("ADMIN_PASSWORD")
    reset = _env_flag("RESET_ADMIN_PASSWORD", "false")

    user = await database.users.find_one({"email": email})
    if not user:
        password = configured_password or secrets.token_hex(7)
        user = {
            "id": str(uuid.uuid4()),
            "name": name,
            "email": email,
            "password": auth_service.hash_password(password),
            "role": Role.ADMIN.value,
            "createdAt": utcnow(),
        }
        await database.users.insert_one(user)
        return {"user": user, "created": True, "password": password}

    if reset and configured_password:
        await database.users.update_one(
            {"id": user["id"]},
            {"$set": {"password": auth_service.hash_password(configured_password)}},
        )
        return {"user": user, "created": False, "reset": True, "password": configured_password}

    return {"user": user, "created": False}


async def ensure_sample_quiz(database, admin: dict):
    if not _env_flag("CREATE_SAMPLE_QUIZ", "true"):
        return None
    existing = await database.quizzes.find_one({"createdBy": admin["id"], "title": SAMPLE_QUIZ_TITLE})
    if existing:
        return clean(existing)
    data = QuizCreate(
        title=SAMPLE_QUIZ_TITLE,
        description="A quick sample quiz to verify the flow.",
        examDuration=10,
        tabSwitchLimit=2,
        questions=[Question(**q) for q in SAMPLE_QUESTIONS],
    )
    return await quiz_service.create_quiz(database, data, admin)


async def seed(database=None):
    database = database if database is not None else db
    logger.info(f"Seeding database {database.name}")
    await init_db(database)
    admin = await ensure_admin(database)
    quiz = await ensure_sample_quiz(database, admin["user"])
    return admin, quiz


def main():
    configure_logging()
    admin, quiz = asyncio.run(seed())
    user = admin["user"]
    if admin["created"]:
        print(f"Created admin {user['email']} with password {admin['password']}")
    elif admin.get("reset"):
        print(f"Reset password for admin {user['email']}")
    else:
        print(f"Admin {user['email']} already exists")
    if quiz:
        print(f"Sample quiz ready: id={quiz['id']} slug={quiz['urlSlug']}")


if __name__ == "__main__":
    main()
