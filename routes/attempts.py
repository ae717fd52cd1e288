# routes/attempts.py
from fastapi import APIRouter, Depends, Response
from typing import Optional

from core.database import get_db
from models.attempt import FeedbackRequest, StartAttemptRequest, SubmitAnswersRequest
from services import attempt_service
from .auth import get_current_user, get_optional_user

router = APIRouter(prefix="/api/attempts", tags=["attempts"])


@router.post("/start")
async def start_attempt(
    request: StartAttemptRequest,
    response: Response,
    current_user: Optional[dict] = Depends(get_optional_user),
    db=Depends(get_db),
):
    user_id = current_user["id"] if current_user else None
    attempt, created = await attempt_service.start_attempt(db, request.quizId, request.name, request.email, user_id)
    if created:
        response.status_code = 201
        return {"success": True, "data": attempt}
    return {"success": True, "data": attempt, "message": "Resuming existing attempt"}


@router.post("/{attempt_id}/answers")
async def submit_answers(
    attempt_id: str,
    request: SubmitAnswersRequest,
    current_user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    answers = [answer.model_dump() for answer in request.answers]
    attempt, message = await attempt_service.submit_answers(db, attempt_id, answers)
    body = {"success": True, "data": attempt}
    if message:
        body["message"] = message
    return body


@router.patch("/{attempt_id}/tabswitch")
async def record_tab_switch(attempt_id: str, current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    result = await attempt_service.record_tab_switch(db, attempt_id)
    attempt = result.pop("attempt")
    if result["terminated"]:
        result["attempt"] = attempt
        return {
            "success": True,
            "data": result,
            "message": "Attempt terminated due to excessive tab switching - Malpractice detected",
        }
    return {"success": True, "data": result}


@router.post("/{attempt_id}/feedback")
async def submit_feedback(
    attempt_id: str,
    request: FeedbackRequest,
    current_user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    attempt = await attempt_service.submit_feedback(db, attempt_id, request.feedback)
    return {"success": True, "data": attempt}


# Must stay above /{id}
@router.get("/my-attempts")
async def get_my_attempts(current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    attempts = await attempt_service.list_my_attempts(db, current_user)
    return {"success": True, "count": len(attempts), "data": attempts}


@router.get("/{id}")
async def get_attempt(id: str, current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    attempt = await attempt_service.get_attempt(db, id, current_user)
    return {"success": True, "data": attempt}
