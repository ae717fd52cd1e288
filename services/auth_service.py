# services/auth_service.py
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from core.config import JWT_ALGORITHM, JWT_EXPIRE_DAYS, JWT_SECRET, admin_signup_code
from core.database import clean, utcnow
from core.errors import ForbiddenError, UnauthorizedError, ValidationError
from models.user import Role, UserRegister
from services import access_policy

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def create_token(user_id: str, role: str) -> str:
    expires = datetime.now(timezone.utc) + timedelta(days=JWT_EXPIRE_DAYS)
    return jwt.encode({"id": user_id, "role": role, "exp": expires}, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"Rejected token: {e}")
        raise UnauthorizedError()
    if not payload.get("id") or not payload.get("role"):
        logger.warning("Rejected token: missing id or role")
        raise UnauthorizedError()
    return payload


def public_user(user: dict) -> dict:
    return {
        "id": user["id"],
        "name": user["name"],
        "email": user["email"],
        "role": user["role"],
        "createdAt": user.get("createdAt"),
    }


def caller_from_user(user: dict) -> dict:
    try:
        role = Role(user.get("role"))
    except ValueError:
        logger.warning(f"User {user['id']} has unknown role {user.get('role')!r}")
        raise UnauthorizedError()
    return {
        "id": user["id"],
        "name": user["name"],
        "email": user["email"],
        "role": role,
    }


async def get_user_by_id(db, user_id: str) -> Optional[dict]:
    return clean(await db.users.find_one({"id": user_id}))


async def register_user(db, data: UserRegister, role: Optional[Role] = None) -> dict:
    role = role or data.role
    if await db.users.find_one({"email": data.email}):
        raise ValidationError("User already exists")

    if role is Role.ADMIN:
        admin_exists = await db.users.find_one({"role": Role.ADMIN.value}) is not None
        configured = admin_signup_code()
        if not access_policy.can_register_admin(data.adminCode, configured, admin_exists):
            logger.warning(f"Admin signup refused for {data.email}")
            if configured:
                raise ForbiddenError("Invalid or missing admin access code")
            raise ForbiddenError("Admin creation is restricted. Set ADMIN_SIGNUP_CODE in environment.")

    user_dict = {
        "id": str(uuid.uuid4()),
        "name": data.name,
        "email": data.email,
        "password": hash_password(data.password),
        "role": role.value,
        "createdAt": utcnow(),
    }
    await db.users.insert_one(user_dict)
    logger.info(f"Registered {role.value} {user_dict['id']} ({data.email})")
    return public_user(user_dict)


async def authenticate(db, email: Optional[str], password: Optional[str]) -> dict:
    if not email or not password:
        raise ValidationError("Please provide an email and password")
    user = await db.users.find_one({"email": email.strip().lower()})
    if not user or not verify_password(password, user["password"]):
        logger.warning(f"Failed login for {email}")
        raise UnauthorizedError("Invalid credentials")
    logger.info(f"User {user['id']} logged in")
    return public_user(user)
