import asyncio

import pytest
from pymongo.errors import DuplicateKeyError

from core.errors import InvalidStateError, NotFoundError
from models.quiz import Question, QuizCreate
from services import attempt_service, quiz_service

from conftest import SAMPLE_QUESTIONS

CREATOR = {"id": "admin-1"}


class RacingAttempts:
    """Attempts collection whose inserts collide with a concurrent start."""

    def __init__(self, collection):
        self._collection = collection

    def __getattr__(self, name):
        return getattr(self._collection, name)

    async def insert_one(self, document):
        raise DuplicateKeyError("E11000 duplicate key error")


class RacingDb:
    def __init__(self, database):
        self._database = database
        self.quiz_attempts = RacingAttempts(database.quiz_attempts)

    def __getattr__(self, name):
        return getattr(self._database, name)


async def make_quiz(db, **overrides):
    fields = {"title": "Lifecycle", "examDuration": 5, "tabSwitchLimit": 2, "questions": [Question(**q) for q in SAMPLE_QUESTIONS]}
    fields.update(overrides)
    return await quiz_service.create_quiz(db, QuizCreate(**fields), CREATOR)


async def start(db, quiz, email="stu@example.com"):
    attempt, _ = await attempt_service.start_attempt(db, quiz["id"], "Stu", email)
    return attempt


async def test_start_copies_quiz_policy(db):
    quiz = await make_quiz(db)
    attempt, created = await attempt_service.start_attempt(db, quiz["id"], " Stu ", " Stu@Example.com ", "user-9")
    assert created
    assert attempt["studentName"] == "Stu"
    assert attempt["studentEmail"] == "stu@example.com"
    assert attempt["studentUserId"] == "user-9"
    assert attempt["maxScore"] == 7
    assert attempt["tabSwitchLimit"] == 2
    assert attempt["status"] == "open"
    assert attempt["score"] == 0
    assert attempt["endTime"] is None
    assert attempt["remainingTime"] == 300


async def test_start_resumes_open_attempt(db):
    quiz = await make_quiz(db)
    first, created = await attempt_service.start_attempt(db, quiz["id"], "Stu", "stu@example.com")
    second, created_again = await attempt_service.start_attempt(db, quiz["id"], "Stu", "STU@example.com")
    assert created and not created_again
    assert first["id"] == second["id"]
    assert await db.quiz_attempts.count_documents({}) == 1


async def test_start_creates_new_attempt_after_close(db):
    quiz = await make_quiz(db)
    first = await start(db, quiz)
    await attempt_service.submit_answers(db, first["id"], [])
    second = await start(db, quiz)
    assert second["id"] != first["id"]


async def test_start_on_missing_quiz(db):
    with pytest.raises(NotFoundError):
        await attempt_service.start_attempt(db, "nope", "Stu", "stu@example.com")


async def test_start_on_inactive_quiz(db):
    quiz = await make_quiz(db, isActive=False)
    with pytest.raises(InvalidStateError):
        await attempt_service.start_attempt(db, quiz["id"], "Stu", "stu@example.com")


async def test_start_race_resolves_to_existing_attempt(db, monkeypatch):
    quiz = await make_quiz(db)
    winner = await start(db, quiz)

    real_find = attempt_service.find_open_attempt
    calls = []

    async def find_missing_first(database, quiz_id, email):
        calls.append(email)
        if len(calls) == 1:
            return None
        return await real_find(database, quiz_id, email)

    monkeypatch.setattr(attempt_service, "find_open_attempt", find_missing_first)

    attempt, created = await attempt_service.start_attempt(RacingDb(db), quiz["id"], "Stu", "stu@example.com")
    assert not created
    assert attempt["id"] == winner["id"]


async def test_tab_switches_up_to_limit_do_not_terminate(db):
    quiz = await make_quiz(db, tabSwitchLimit=3)
    attempt = await start(db, quiz)
    for expected in range(1, 4):
        result = await attempt_service.record_tab_switch(db, attempt["id"])
        assert result["tabSwitchCount"] == expected
        assert result["terminated"] is False
    stored = await attempt_service.find_attempt(db, attempt["id"])
    assert stored["status"] == "open"
    assert stored["endTime"] is None


async def test_exceeding_tab_switch_limit_terminates(db):
    quiz = await make_quiz(db, tabSwitchLimit=2)
    attempt = await start(db, quiz)
    for _ in range(2):
        await attempt_service.record_tab_switch(db, attempt["id"])
    result = await attempt_service.record_tab_switch(db, attempt["id"])

    assert result["terminated"] is True
    assert result["tabSwitchCount"] == 3
    terminated = result["attempt"]
    assert terminated["isTerminatedDueToTabSwitch"] is True
    assert terminated["status"] == "terminated"
    assert terminated["score"] == 0
    assert terminated["endTime"] is not None
    assert terminated["timeSpent"] >= 0


async def test_zero_limit_terminates_on_first_switch(db):
    quiz = await make_quiz(db, tabSwitchLimit=0)
    attempt = await start(db, quiz)
    result = await attempt_service.record_tab_switch(db, attempt["id"])
    assert result["terminated"] is True


async def test_tab_switch_on_closed_attempt_is_rejected(db):
    quiz = await make_quiz(db)
    attempt = await start(db, quiz)
    await attempt_service.submit_answers(db, attempt["id"], [])
    with pytest.raises(InvalidStateError):
        await attempt_service.record_tab_switch(db, attempt["id"])
    stored = await attempt_service.find_attempt(db, attempt["id"])
    assert stored["tabSwitchCount"] == 0


async def test_tab_switch_on_missing_attempt(db):
    with pytest.raises(NotFoundError):
        await attempt_service.record_tab_switch(db, "missing")


async def test_submit_grades_and_closes(db):
    quiz = await make_quiz(db)
    attempt = await start(db, quiz)
    q1, q2 = quiz["questions"]
    answers = [
        {"questionId": q1["id"], "selectedOptionIndex": 3},
        {"questionId": q2["id"], "selectedOptionIndex": 0},
        {"questionId": "not-a-question", "selectedOptionIndex": 1},
    ]
    submitted, message = await attempt_service.submit_answers(db, attempt["id"], answers)

    assert message is None
    assert submitted["score"] == 2
    assert submitted["status"] == "submitted"
    assert submitted["endTime"] is not None
    assert [a["isCorrect"] for a in submitted["answers"]] == [True, False]
    assert [a["marksAwarded"] for a in submitted["answers"]] == [2, 0]


async def test_second_submit_returns_first_result(db):
    quiz = await make_quiz(db)
    attempt = await start(db, quiz)
    q1, q2 = quiz["questions"]
    first, _ = await attempt_service.submit_answers(db, attempt["id"], [{"questionId": q1["id"], "selectedOptionIndex": 3}])
    second, message = await attempt_service.submit_answers(
        db, attempt["id"], [{"questionId": q2["id"], "selectedOptionIndex": 2}]
    )
    assert message == "Attempt was already submitted"
    assert second["score"] == first["score"] == 2
    assert second["answers"] == first["answers"]
    assert second["endTime"] == first["endTime"]


async def test_submit_after_termination_keeps_zero_score(db):
    quiz = await make_quiz(db, tabSwitchLimit=0)
    attempt = await start(db, quiz)
    await attempt_service.record_tab_switch(db, attempt["id"])
    q1, _ = quiz["questions"]

    result, message = await attempt_service.submit_answers(db, attempt["id"], [{"questionId": q1["id"], "selectedOptionIndex": 3}])
    assert message == "Exam was terminated due to malpractice"
    assert result["score"] == 0
    assert result["answers"] == []
    assert result["isTerminatedDueToTabSwitch"] is True


async def test_submit_on_missing_attempt(db):
    with pytest.raises(NotFoundError):
        await attempt_service.submit_answers(db, "missing", [])


async def test_feedback_allowed_after_close(db):
    quiz = await make_quiz(db)
    attempt = await start(db, quiz)
    await attempt_service.submit_answers(db, attempt["id"], [])
    updated = await attempt_service.submit_feedback(db, attempt["id"], "Nice quiz")
    assert updated["feedback"] == "Nice quiz"
    assert updated["status"] == "submitted"


async def test_feedback_on_missing_attempt(db):
    with pytest.raises(NotFoundError):
        await attempt_service.submit_feedback(db, "missing", "hello")


async def test_tab_switch_refused_once_store_marks_attempt_closed(db):
    quiz = await make_quiz(db)
    attempt = await start(db, quiz)
    await db.quiz_attempts.update_one({"id": attempt["id"]}, {"$set": {"status": "submitted"}})
    with pytest.raises(InvalidStateError):
        await attempt_service.record_tab_switch(db, attempt["id"])
    stored = await attempt_service.find_attempt(db, attempt["id"])
    assert stored["tabSwitchCount"] == 0


async def test_submit_does_not_overwrite_attempt_closed_in_store(db):
    quiz = await make_quiz(db)
    attempt = await start(db, quiz)
    # Only the status flips, so the early endTime check does not catch it
    await db.quiz_attempts.update_one({"id": attempt["id"]}, {"$set": {"status": "terminated"}})
    answers = [{"questionId": q["id"], "selectedOptionIndex": q["correctOptionIndex"]} for q in quiz["questions"]]

    result, message = await attempt_service.submit_answers(db, attempt["id"], answers)

    assert message == "Attempt was already submitted"
    assert result["score"] == 0
    assert result["answers"] == []
    assert result["status"] == "terminated"


async def test_concurrent_tab_switches_are_all_counted(db):
    quiz = await make_quiz(db, tabSwitchLimit=5)
    attempt = await start(db, quiz)
    results = await asyncio.gather(*(attempt_service.record_tab_switch(db, attempt["id"]) for _ in range(3)))
    assert sorted(r["tabSwitchCount"] for r in results) == [1, 2, 3]
    stored = await attempt_service.find_attempt(db, attempt["id"])
    assert stored["tabSwitchCount"] == 3
