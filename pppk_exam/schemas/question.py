# pppk_exam/schemas/question.py
from typing import List

from pydantic import BaseModel, Field, field_validator


class QuestionOptionSeed(BaseModel):
    option_text: str
    score: int = Field(..., ge=0, le=10)

    @field_validator("option_text")
    @classmethod
    def option_text_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("option text cannot be empty")
        return v


class QuestionSeed(BaseModel):
    """One record of a question-bank JSON file."""
    id: str | int | None = None
    category: str
    question_text: str
    options: List[QuestionOptionSeed] = Field(..., min_length=1)
