# models/quiz.py
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional


class Question(BaseModel):
    id: Optional[str] = None  # UUID as string, assigned on save
    questionText: str = Field(..., min_length=1)
    options: List[str]
    correctOptionIndex: int = Field(..., ge=0, le=3)
    marks: int = Field(..., ge=1)

    @field_validator("questionText")
    @classmethod
    def strip_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Please provide question text")
        return value

    @field_validator("options")
    @classmethod
    def exactly_four_options(cls, value: List[str]) -> List[str]:
        if len(value) != 4:
            raise ValueError("There must be exactly 4 options")
        return value


class QuizCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    questions: List[Question] = []
    examDuration: int = Field(..., ge=1)  # minutes
    tabSwitchLimit: int = Field(3, ge=0)
    isActive: bool = True
    urlSlug: Optional[str] = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Please provide a title for the quiz")
        return value


class QuizUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    questions: Optional[List[Question]] = None
    examDuration: Optional[int] = Field(None, ge=1)
    tabSwitchLimit: Optional[int] = Field(None, ge=0)
    isActive: Optional[bool] = None
    urlSlug: Optional[str] = None


class PublicQuestion(BaseModel):
    id: str
    questionText: str
    options: List[str]
    marks: int


class QuizForTaking(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    examDuration: int
    tabSwitchLimit: int
    totalMarks: int
    questions: List[PublicQuestion]

