from typing import Literal

from pydantic import BaseModel, Field


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str = Field(min_length=1)


class ChatRequest(BaseModel):
    question: str = Field(min_length=1, max_length=4000)
    history: list[ChatTurn] = Field(default_factory=list, max_length=20)
    days: int | None = Field(default=None, ge=1, le=90)


class ChatResponse(BaseModel):
    reply: str
    model: str
    wellness_score: int
    days_with_data: int
