# models/user.py
from enum import Enum
from pydantic import BaseModel, Field, field_validator
from typing import Optional


class Role(str, Enum):
    STUDENT = "student"
    ADMIN = "admin"


class UserRegister(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str
    password: str = Field(..., min_length=6)
    role: Role = Role.STUDENT
    adminCode: Optional[str] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Please provide a name")
        return value

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        value = value.strip().lower()
        if "@" not in value or value.startswith("@") or value.endswith("@"):
            raise ValueError("Please provide a valid email")
        return value


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None

