# services/quiz_service.py
import logging
import random
import re
import string
import uuid
from typing import List, Optional

from pymongo import DESCENDING, ReturnDocument

from core.database import clean, utcnow
from core.errors import InvalidStateError, NotFoundError, UnauthorizedError
from models.quiz import QuizCreate, QuizForTaking, QuizUpdate
from services import access_policy

logger = logging.getLogger(__name__)

SLUG_SUFFIX_LENGTH = 9
_SLUG_ALPHABET = string.ascii_lowercase + string.digits


def compute_total_marks(questions: List[dict]) -> int:
    return sum(q.get("marks", 0) for q in questions or [])


def generate_slug(title: str) -> str:
    base = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    suffix = "".join(random.choices(_SLUG_ALPHABET, k=SLUG_SUFFIX_LENGTH))
    return f"{base}-{suffix}" if base else suffix


def prepare_questions(questions) -> List[dict]:
    """Dump question models to documents, assigning ids to new questions."""
    prepared = []
    for question in questions or []:
        q = question.model_dump() if hasattr(question, "model_dump") else dict(question)
        q["id"] = q.get("id") or str(uuid.uuid4())
        prepared.append(q)
    return prepared


async def find_quiz(db, quiz_id: str) -> Optional[dict]:
    return clean(await db.quizzes.find_one({"id": quiz_id}))


async def get_quiz_or_404(db, quiz_id: str) -> dict:
    quiz = await find_quiz(db, quiz_id)
    if not quiz:
        raise NotFoundError(f"Quiz not found with id of {quiz_id}")
    return quiz


async def create_quiz(db, data: QuizCreate, creator: dict) -> dict:
    quiz_dict = data.model_dump(exclude={"questions", "urlSlug"})
    quiz_dict["id"] = str(uuid.uuid4())
    quiz_dict["createdBy"] = creator["id"]
    quiz_dict["questions"] = prepare_questions(data.questions)
    quiz_dict["totalMarks"] = compute_total_marks(quiz_dict["questions"])
    quiz_dict["urlSlug"] = data.urlSlug or generate_slug(data.title)
    now = utcnow()
    quiz_dict["createdAt"] = now
    quiz_dict["updatedAt"] = now

    await db.quizzes.insert_one(quiz_dict)
    logger.info(f"Quiz {quiz_dict['id']} created by {creator['id']} with {len(quiz_dict['questions'])} questions")
    return clean(quiz_dict)


async def list_quizzes(db, caller: dict) -> List[dict]:
    # Admins see every quiz, everyone else only active ones
    query = {} if access_policy.can_view_inactive_quizzes(caller) else {"isActive": True}
    quizzes = await db.quizzes.find(query, {"_id": 0}).sort("createdAt", DESCENDING).to_list(None)
    return quizzes


async def get_quiz(db, quiz_id: str, caller: dict) -> dict:
    quiz = await get_quiz_or_404(db, quiz_id)
    if not quiz.get("isActive") and not access_policy.can_view_inactive_quizzes(caller):
        logger.warning(f"User {caller['id']} denied access to inactive quiz {quiz_id}")
        raise UnauthorizedError("Not authorized to access this quiz")
    return quiz


async def count_attempts(db, quiz_id: str) -> int:
    return await db.quiz_attempts.count_documents({"quiz": quiz_id})


async def update_quiz(db, quiz_id: str, changes: QuizUpdate, caller: dict) -> dict:
    quiz = await get_quiz_or_404(db, quiz_id)
    if not access_policy.can_mutate_quiz(caller, quiz):
        logger.warning(f"User {caller['id']} denied update of quiz {quiz_id}")
        raise UnauthorizedError(f"User {caller['id']} is not authorized to update this quiz")

    update = changes.model_dump(exclude_unset=True)
    if await count_attempts(db, quiz_id) > 0 and not access_policy.is_frozen_update_allowed(update.keys()):
        raise InvalidStateError("Cannot update quiz with existing attempts")

    # Explicit nulls on required fields are ignored rather than stored
    for field in ("title", "examDuration", "tabSwitchLimit", "isActive", "questions", "urlSlug"):
        if field in update and update[field] is None:
            del update[field]

    if "questions" in update:
        update["questions"] = prepare_questions(changes.questions)
        update["totalMarks"] = compute_total_marks(update["questions"])
    update["updatedAt"] = utcnow()

    updated = await db.quizzes.find_one_and_update(
        {"id": quiz_id},
        {"$set": update},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise NotFoundError(f"Quiz not found with id of {quiz_id}")
    logger.info(f"Quiz {quiz_id} updated by {caller['id']}: {sorted(k for k in update if k != 'updatedAt')}")
    return clean(updated)


async def delete_quiz(db, quiz_id: str, caller: dict) -> None:
    quiz = await get_quiz_or_404(db, quiz_id)
    if not access_policy.can_mutate_quiz(caller, quiz):
        logger.warning(f"User {caller['id']} denied delete of quiz {quiz_id}")
        raise UnauthorizedError(f"User {caller['id']} is not authorized to delete this quiz")
    await db.quizzes.delete_one({"id": quiz_id})
    logger.info(f"Quiz {quiz_id} deleted by {caller['id']}")


async def get_quiz_by_slug(db, slug: str) -> dict:
    quiz = await db.quizzes.find_one({"urlSlug": slug, "isActive": True}, {"_id": 0})
    if not quiz:
        raise NotFoundError(f"Quiz not found with slug of {slug}")
    # Metadata only, the questions (and their answer key) stay private
    questions = quiz.pop("questions", [])
    quiz["questionCount"] = len(questions)
    return quiz


async def get_quiz_for_taking(db, quiz_id: str) -> dict:
    quiz = await get_quiz_or_404(db, quiz_id)
    if not quiz.get("isActive"):
        raise InvalidStateError("This quiz is not currently active")
    # The public question model has no correctOptionIndex, so the answer key is dropped
    return QuizForTaking.model_validate(quiz).model_dump()
