# routes/quizzes.py
from fastapi import APIRouter, Depends

from core.database import get_db
from models.quiz import QuizCreate, QuizUpdate
from services import attempt_service, quiz_service
from .auth import get_current_user, require_admin

router = APIRouter(prefix="/api/quizzes", tags=["quizzes"])


# Public views, registered before /{id} so the literal segments win
@router.get("/slug/{slug}")
async def get_quiz_by_slug(slug: str, db=Depends(get_db)):
    quiz = await quiz_service.get_quiz_by_slug(db, slug)
    return {"success": True, "data": quiz}


@router.get("/take/{id}")
async def get_quiz_for_taking(id: str, db=Depends(get_db)):
    quiz = await quiz_service.get_quiz_for_taking(db, id)
    return {"success": True, "data": quiz}


@router.get("")
@router.get("/", include_in_schema=False)
async def get_quizzes(current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    quizzes = await quiz_service.list_quizzes(db, current_user)
    return {"success": True, "count": len(quizzes), "data": quizzes}


@router.post("", status_code=201)
@router.post("/", status_code=201, include_in_schema=False)
async def create_quiz(quiz: QuizCreate, current_user: dict = Depends(require_admin), db=Depends(get_db)):
    created = await quiz_service.create_quiz(db, quiz, current_user)
    return {"success": True, "data": created}


@router.get("/{id}")
async def get_quiz(id: str, current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    quiz = await quiz_service.get_quiz(db, id, current_user)
    return {"success": True, "data": quiz}


@router.put("/{id}")
async def update_quiz(id: str, changes: QuizUpdate, current_user: dict = Depends(require_admin), db=Depends(get_db)):
    quiz = await quiz_service.update_quiz(db, id, changes, current_user)
    return {"success": True, "data": quiz}


@router.delete("/{id}")
async def delete_quiz(id: str, current_user: dict = Depends(require_admin), db=Depends(get_db)):
    await quiz_service.delete_quiz(db, id, current_user)
    return {"success": True, "data": {}}


@router.get("/{quiz_id}/attempts")
async def get_quiz_attempts(quiz_id: str, current_user: dict = Depends(require_admin), db=Depends(get_db)):
    attempts = await attempt_service.list_quiz_attempts(db, quiz_id, current_user)
    return {"success": True, "count": len(attempts), "data": attempts}
