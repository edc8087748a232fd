"""
Pydantic schemas for the comparison chat: turn transport, delegated
extractor output and partner reference data.
"""
import os
from typing import Optional, Literal, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator

MAX_MESSAGE_LENGTH = 4000

SUPPORTED_COUNTRIES = [
    code.strip().lower()
    for code in os.getenv("SUPPORTED_COUNTRIES", "us,canada").split(",")
    if code.strip()
]


class ChatRequest(BaseModel):
    """Schema for one user turn."""
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId", min_length=1, max_length=128, description="Client session identifier")
    message: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH, description="User's message")
    locale: Optional[str] = Field(None, max_length=10, description="Template locale, e.g. 'it' or 'en'")

    @field_validator('message')
    @classmethod
    def validate_message_not_blank(cls, v: str) -> str:
        """Reject whitespace-only messages."""
        if not v.strip():
            raise ValueError("message must not be blank")
        return v


class ChatResponse(BaseModel):
    """Schema for the reply to a turn."""
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["ok", "limit_reached"] = Field(..., description="Turn outcome for the client")
    reply: str = Field(..., description="Text to display")
    cta_marker: Optional[str] = Field(None, alias="ctaMarker", description="Placeholder the client turns into a sign-up button")


class DelegatedSlots(BaseModel):
    """Slot values as returned by the delegated extractor. No type coercion."""
    model_config = ConfigDict(extra="forbid")

    budget: Optional[PositiveInt] = Field(..., strict=True)
    country_code: Optional[str] = Field(..., alias="countryCode", strict=True)
    duration_weeks: Optional[PositiveInt] = Field(..., alias="durationWeeks", strict=True)
    goal: Optional[str] = Field(..., strict=True)
    city: Optional[str] = Field(None, strict=True)

    @field_validator('country_code')
    @classmethod
    def validate_country_code(cls, v: Optional[str]) -> Optional[str]:
        """Only configured destinations may be set."""
        if v is None:
            return v
        code = v.strip().lower()
        if code not in SUPPORTED_COUNTRIES:
            raise ValueError(f"Unsupported country code: {v}")
        return code

    @field_validator('goal', 'city')
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip() or None

    def to_deltas(self) -> Dict[str, Any]:
        """Slot name -> value, skipping unset values."""
        return {name: value for name, value in self.model_dump().items() if value is not None}


class DelegatedDecision(BaseModel):
    """Full turn decision from the delegated extractor."""
    model_config = ConfigDict(extra="forbid")

    updated_slots: DelegatedSlots = Field(..., alias="updatedSlots")
    action: Literal["need_more", "ready", "off_topic"] = Field(...)
    user_message: str = Field(..., alias="userMessage", min_length=1, strict=True)

    @field_validator('user_message')
    @classmethod
    def validate_user_message(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("userMessage must not be blank")
        return v.strip()


class CandidateProgram(BaseModel):
    """One partner school entry from the per-country reference data."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    city: str = Field("")
    tuition_per_week: float = Field(..., ge=0)
    housing_per_week: float = Field(..., ge=0)
    fees: float = Field(0, ge=0)
    notes: str = Field("")
