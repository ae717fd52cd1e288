# models/attempt.py
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from typing import List, Optional


class AttemptStatus(str, Enum):
    OPEN = "open"
    SUBMITTED = "submitted"
    TERMINATED = "terminated"


class StartAttemptRequest(BaseModel):
    quizId: str
    name: str = Field(..., min_length=1)
    email: str

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Please provide student name")
        return value

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("Please provide student email")
        return value


class SubmittedAnswer(BaseModel):
    questionId: str
    selectedOptionIndex: int = Field(..., ge=0, le=3)


class SubmitAnswersRequest(BaseModel):
    answers: List[SubmittedAnswer] = []


class FeedbackRequest(BaseModel):
    feedback: str = ""

    @field_validator("feedback")
    @classmethod
    def strip_feedback(cls, value: str) -> str:
        return value.strip()


class Answer(BaseModel):
    questionId: str
    selectedOptionIndex: int = Field(..., ge=0, le=3)
    isCorrect: bool = False
    marksAwarded: int = 0


class QuizAttempt(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    id: str
    quiz: str
    studentName: str
    studentEmail: str
    studentUserId: Optional[str] = None
    score: int = 0
    maxScore: int
    tabSwitchCount: int = 0
    tabSwitchLimit: int
    isTerminatedDueToTabSwitch: bool = False
    status: AttemptStatus = AttemptStatus.OPEN
    startTime: datetime
    endTime: Optional[datetime] = None
    timeSpent: int = 0  # In seconds
    answers: List[Answer] = []
    feedback: Optional[str] = None
    createdAt: datetime
