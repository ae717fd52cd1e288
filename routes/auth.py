# routes/auth.py
from fastapi import APIRouter, Cookie, Depends, Response
from fastapi.security import OAuth2PasswordBearer
from typing import Optional
import logging

from core.config import JWT_COOKIE_EXPIRE_DAYS, is_production
from core.database import get_db
from core.errors import UnauthorizedError
from models.user import LoginRequest, Role, UserRegister
from services import access_policy, auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

TOKEN_COOKIE = "token"


def session_token(
    token: Optional[str] = Depends(oauth2_scheme),
    token_cookie: Optional[str] = Cookie(None, alias=TOKEN_COOKIE),
) -> Optional[str]:
    raw = token or token_cookie
    if not raw or raw == "none":
        return None
    return raw


async def resolve_caller(db, raw: str) -> dict:
    payload = auth_service.decode_token(raw)
    user = await auth_service.get_user_by_id(db, payload["id"])
    if not user:
        logger.warning(f"Token for unknown user {payload['id']}")
        raise UnauthorizedError()
    return auth_service.caller_from_user(user)


async def get_optional_user(raw: Optional[str] = Depends(session_token), db=Depends(get_db)):
    # Public routes treat a stale or invalid credential as no session
    if raw is None:
        return None
    try:
        return await resolve_caller(db, raw)
    except UnauthorizedError:
        logger.warning("Ignoring invalid credential on public route")
        return None


async def get_current_user(raw: Optional[str] = Depends(session_token), db=Depends(get_db)):
    if raw is None:
        raise UnauthorizedError()
    return await resolve_caller(db, raw)


async def require_admin(current_user: dict = Depends(get_current_user)):
    if not access_policy.is_admin(current_user):
        logger.warning(f"User {current_user['id']} with role {current_user['role'].value} hit an admin route")
        raise UnauthorizedError(f"User role {current_user['role'].value} is not authorized to access this route")
    return current_user


def token_response(response: Response, user: dict, status_code: int) -> dict:
    token = auth_service.create_token(user["id"], user["role"])
    response.status_code = status_code
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=JWT_COOKIE_EXPIRE_DAYS * 24 * 60 * 60,
        httponly=True,
        secure=is_production(),
        samesite="strict",
    )
    return {"success": True, "token": token, "data": user}


@router.post("/register")
async def register(request: UserRegister, response: Response, db=Depends(get_db)):
    user = await auth_service.register_user(db, request)
    return token_response(response, user, 201)


@router.post("/register/student")
async def register_student(request: UserRegister, response: Response, db=Depends(get_db)):
    user = await auth_service.register_user(db, request, role=Role.STUDENT)
    return token_response(response, user, 201)


@router.post("/register/admin")
async def register_admin(request: UserRegister, response: Response, db=Depends(get_db)):
    user = await auth_service.register_user(db, request, role=Role.ADMIN)
    return token_response(response, user, 201)


@router.post("/login")
async def login(request: LoginRequest, response: Response, db=Depends(get_db)):
    user = await auth_service.authenticate(db, request.email, request.password)
    return token_response(response, user, 200)


@router.get("/me")
async def get_me(current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    user = await auth_service.get_user_by_id(db, current_user["id"])
    return {"success": True, "data": auth_service.public_user(user)}


@router.get("/logout")
async def logout(response: Response, current_user: dict = Depends(get_current_user)):
    response.set_cookie(TOKEN_COOKIE, "none", max_age=10, httponly=True)
    logger.info(f"User {current_user['id']} logged out")
    return {"success": True, "data": {}}
