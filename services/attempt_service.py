# services/attempt_service.py
"""Quiz attempt lifecycle.

An attempt starts ``open`` and closes exactly once, either ``submitted``
(answers graded) or ``terminated`` (tab-switch limit exceeded). Closing
writes are conditional on the attempt still being open, so a late or
duplicate request never re-grades or re-terminates a closed attempt.
Feedback is the only field that may change after close.
"""
import logging
import uuid
from datetime import datetime
from typing import List, Optional, Tuple

from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from core.database import clean, utcnow
from core.errors import InvalidStateError, NotFoundError, UnauthorizedError
from models.attempt import AttemptStatus, QuizAttempt
from services import access_policy, quiz_service

logger = logging.getLogger(__name__)

OPEN = AttemptStatus.OPEN.value

QUIZ_SUMMARY_FIELDS = ("id", "title", "description", "createdBy", "totalMarks", "examDuration", "urlSlug")


def is_open(attempt: dict) -> bool:
    return attempt.get("endTime") is None and not attempt.get("isTerminatedDueToTabSwitch", False)


def compute_time_spent(start: datetime, end: datetime) -> int:
    return max(0, int((end - start).total_seconds()))


def remaining_seconds(attempt: dict, quiz: Optional[dict], now: Optional[datetime] = None) -> int:
    """Seconds left on the exam clock. Advisory only, the server does not
    close attempts when it runs out."""
    if not quiz or not is_open(attempt):
        return 0
    now = now or utcnow()
    elapsed = (now - attempt["startTime"]).total_seconds()
    return max(0, int(quiz["examDuration"] * 60 - elapsed))


def grade_answers(quiz: dict, answers) -> Tuple[List[dict], int]:
    questions = {q["id"]: q for q in quiz.get("questions", [])}
    graded = []
    score = 0
    for answer in answers:
        question_id = answer["questionId"]
        selected = answer["selectedOptionIndex"]
        question = questions.get(question_id)
        if question is None:
            # Unknown question ids are dropped, not rejected
            continue
        is_correct = selected == question["correctOptionIndex"]
        marks_awarded = question["marks"] if is_correct else 0
        score += marks_awarded
        graded.append({
            "questionId": question_id,
            "selectedOptionIndex": selected,
            "isCorrect": is_correct,
            "marksAwarded": marks_awarded,
        })
    return graded, score


def quiz_summary(quiz: Optional[dict]) -> Optional[dict]:
    if not quiz:
        return None
    return {field: quiz.get(field) for field in QUIZ_SUMMARY_FIELDS}


async def find_attempt(db, attempt_id: str) -> Optional[dict]:
    return clean(await db.quiz_attempts.find_one({"id": attempt_id}))


async def get_attempt_or_404(db, attempt_id: str) -> dict:
    attempt = await find_attempt(db, attempt_id)
    if not attempt:
        raise NotFoundError("Attempt not found")
    return attempt


async def find_open_attempt(db, quiz_id: str, email: str) -> Optional[dict]:
    return clean(await db.quiz_attempts.find_one({"quiz": quiz_id, "studentEmail": email, "status": OPEN}))


async def start_attempt(db, quiz_id: str, name: str, email: str, user_id: Optional[str] = None) -> Tuple[dict, bool]:
    """Return ``(attempt, created)``. An open attempt for the same quiz and
    email is resumed instead of creating a second one."""
    quiz = await quiz_service.find_quiz(db, quiz_id)
    if not quiz:
        raise NotFoundError("Quiz not found")
    if not quiz.get("isActive"):
        raise InvalidStateError("This quiz is not currently active")

    email = email.strip().lower()
    existing = await find_open_attempt(db, quiz_id, email)
    if existing:
        logger.info(f"Resuming attempt {existing['id']} for {email} on quiz {quiz_id}")
        existing["remainingTime"] = remaining_seconds(existing, quiz)
        return existing, False

    now = utcnow()
    attempt = QuizAttempt(
        id=str(uuid.uuid4()),
        quiz=quiz_id,
        studentName=name.strip(),
        studentEmail=email,
        studentUserId=user_id,
        maxScore=quiz.get("totalMarks", 0),
        tabSwitchLimit=quiz.get("tabSwitchLimit", 3),
        status=AttemptStatus.OPEN,
        startTime=now,
        createdAt=now,
    ).model_dump()

    try:
        await db.quiz_attempts.insert_one(attempt)
    except DuplicateKeyError:
        # Lost a race with a concurrent start for the same student
        existing = await find_open_attempt(db, quiz_id, email)
        if not existing:
            raise
        logger.info(f"Concurrent start for {email} on quiz {quiz_id}, resuming {existing['id']}")
        existing["remainingTime"] = remaining_seconds(existing, quiz)
        return existing, False

    logger.info(f"Attempt {attempt['id']} started for {email} on quiz {quiz_id}")
    attempt = clean(attempt)
    attempt["remainingTime"] = remaining_seconds(attempt, quiz, now)
    return attempt, True


async def _close_attempt(db, attempt: dict, fields: dict) -> Optional[dict]:
    """Apply a closing write only if the attempt is still open."""
    end_time = fields["endTime"]
    fields["timeSpent"] = compute_time_spent(attempt["startTime"], end_time)
    closed = await db.quiz_attempts.find_one_and_update(
        {"id": attempt["id"], "status": OPEN},
        {"$set": fields},
        return_document=ReturnDocument.AFTER,
    )
    return clean(closed)


async def record_tab_switch(db, attempt_id: str) -> dict:
    """Count one tab switch; terminate the attempt when the limit is exceeded.

    Returns ``{"tabSwitchCount", "tabSwitchLimit", "terminated", "attempt"}``.
    """
    # Conditional $inc so concurrent events are never lost
    attempt = clean(await db.quiz_attempts.find_one_and_update(
        {"id": attempt_id, "status": OPEN},
        {"$inc": {"tabSwitchCount": 1}},
        return_document=ReturnDocument.AFTER,
    ))
    if attempt is None:
        await get_attempt_or_404(db, attempt_id)
        raise InvalidStateError("This attempt has already been submitted or terminated")

    terminated = attempt["tabSwitchCount"] > attempt["tabSwitchLimit"]
    if terminated:
        closed = await _close_attempt(db, attempt, {
            "status": AttemptStatus.TERMINATED.value,
            "isTerminatedDueToTabSwitch": True,
            "score": 0,
            "endTime": utcnow(),
        })
        attempt = closed or await get_attempt_or_404(db, attempt_id)
        terminated = bool(attempt.get("isTerminatedDueToTabSwitch"))
        logger.warning(
            f"Attempt {attempt_id} terminated after {attempt['tabSwitchCount']} tab switches "
            f"(limit {attempt['tabSwitchLimit']})"
        )
    else:
        logger.info(f"Tab switch {attempt['tabSwitchCount']}/{attempt['tabSwitchLimit']} on attempt {attempt_id}")

    return {
        "tabSwitchCount": attempt["tabSwitchCount"],
        "tabSwitchLimit": attempt["tabSwitchLimit"],
        "terminated": terminated,
        "attempt": attempt,
    }


async def submit_answers(db, attempt_id: str, answers) -> Tuple[dict, Optional[str]]:
    """Grade and close an open attempt. Returns ``(attempt, message)``;
    closed attempts come back unchanged with a message saying why."""
    attempt = await get_attempt_or_404(db, attempt_id)

    if attempt.get("isTerminatedDueToTabSwitch"):
        return attempt, "Exam was terminated due to malpractice"
    if attempt.get("endTime") is not None:
        return attempt, "Attempt was already submitted"

    quiz = await quiz_service.find_quiz(db, attempt["quiz"]) or {}
    graded, score = grade_answers(quiz, answers)
    closed = await _close_attempt(db, attempt, {
        "status": AttemptStatus.SUBMITTED.value,
        "answers": graded,
        "score": score,
        "endTime": utcnow(),
    })
    if closed is None:
        # Closed by a concurrent request in the meantime
        return await get_attempt_or_404(db, attempt_id), "Attempt was already submitted"

    logger.info(f"Attempt {attempt_id} submitted: {score}/{closed['maxScore']} over {len(graded)} answers")
    return closed, None


async def submit_feedback(db, attempt_id: str, feedback: str) -> dict:
    attempt = await db.quiz_attempts.find_one_and_update(
        {"id": attempt_id},
        {"$set": {"feedback": feedback}},
        return_document=ReturnDocument.AFTER,
    )
    if not attempt:
        raise NotFoundError("Attempt not found")
    logger.info(f"Feedback recorded on attempt {attempt_id}")
    return clean(attempt)


async def get_attempt(db, attempt_id: str, caller: dict) -> dict:
    attempt = await find_attempt(db, attempt_id)
    if attempt is None:
        # Only admins learn whether an attempt id exists
        if not access_policy.is_admin(caller):
            raise UnauthorizedError("Not authorized to view this attempt")
        raise NotFoundError("Attempt not found")

    quiz = await quiz_service.find_quiz(db, attempt["quiz"])
    if not access_policy.can_view_attempt(caller, attempt, quiz):
        logger.warning(f"User {caller['id']} denied access to attempt {attempt_id}")
        raise UnauthorizedError("Not authorized to view this attempt")

    attempt["remainingTime"] = remaining_seconds(attempt, quiz)
    attempt["quiz"] = quiz_summary(quiz) or attempt["quiz"]
    return attempt


async def list_quiz_attempts(db, quiz_id: str, caller: dict) -> List[dict]:
    quiz = await quiz_service.get_quiz_or_404(db, quiz_id)
    if not access_policy.can_list_quiz_attempts(caller, quiz):
        logger.warning(f"User {caller['id']} denied attempt listing for quiz {quiz_id}")
        raise UnauthorizedError("Not authorized to view attempts for this quiz")
    return await db.quiz_attempts.find({"quiz": quiz_id}, {"_id": 0}).sort("createdAt", DESCENDING).to_list(None)


async def list_my_attempts(db, caller: dict) -> List[dict]:
    attempts = await db.quiz_attempts.find(
        access_policy.my_attempts_filter(caller), {"_id": 0}
    ).sort("createdAt", DESCENDING).to_list(None)

    quiz_ids = list({a["quiz"] for a in attempts})
    quizzes = await db.quizzes.find({"id": {"$in": quiz_ids}}, {"_id": 0}).to_list(None)
    by_id = {q["id"]: q for q in quizzes}
    for attempt in attempts:
        attempt["quiz"] = quiz_summary(by_id.get(attempt["quiz"])) or attempt["quiz"]
    return attempts
