# core/config.py
import os
from dotenv import load_dotenv

load_dotenv()

MONGODB_URI = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
MONGODB_DB = os.getenv("MONGODB_DB", "quiz_db")

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_DAYS = int(os.getenv("JWT_EXPIRE_DAYS", "30"))
JWT_COOKIE_EXPIRE_DAYS = int(os.getenv("JWT_COOKIE_EXPIRE_DAYS", "7"))

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
FRONTEND_URL = os.getenv("FRONTEND_URL")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def admin_signup_code():
    # Read per call so the gate follows the live environment
    return os.getenv("ADMIN_SIGNUP_CODE") or None


def is_production() -> bool:
    return ENVIRONMENT == "production"
