from typing import Literal

from pydantic import BaseModel, Field, field_validator


class InsightMessage(BaseModel):
    role: Literal["user", "assistant"] = Field(..., description="Author of the message")
    content: str = Field(..., description="Message text")


class InsightRequest(BaseModel):
    messages: list[InsightMessage] = Field(
        ...,
        min_length=1,
        description="Conversation so far in chronological order, ending with the newest user question",
    )
    ticker: str | None = Field(
        default=None,
        max_length=10,
        description="Optional ticker symbol the insight should focus on",
    )

    @field_validator("ticker")
    @classmethod
    def normalize_ticker(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().upper()
        return normalized or None


class InsightErrorResponse(BaseModel):
    error: str = Field(..., description="Human-readable failure reason")
