"""Pydantic models for request and response validation."""

from datetime import datetime, timezone
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic_core import PydanticCustomError

from exercise_tracker.validation import resolve_date


def format_date(value: datetime) -> str:
    """Render a datetime as UTC ISO 8601 with milliseconds and a ``Z`` suffix."""
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class NewUserRequest(BaseModel):
    """Request model for user creation."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    username: Optional[str] = Field(None, validate_default=True, description="Username")

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: Optional[str]) -> str:
        """Username is required and may not be empty."""
        if not v:
            raise PydanticCustomError("required", "Path `username` is required.")
        return v


class AddExerciseRequest(BaseModel):
    """Request model for adding an exercise.

    Presence of the required fields is checked by the handler before
    validation, so every field is optional here.
    """

    model_config = ConfigDict(coerce_numbers_to_str=True, populate_by_name=True)

    user_id: Optional[str] = Field(None, alias="userId", description="Owning user identifier")
    description: Optional[str] = Field(None, description="What was done")
    duration: Optional[float] = Field(None, allow_inf_nan=False, description="Duration in minutes")
    date: datetime = Field(None, validate_default=True, description="When it took place")

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, v: Optional[float]) -> Optional[Union[int, float]]:
        """Integral durations are kept as ``int`` so they serialize without ``.0``."""
        if v is not None and v.is_integer():
            return int(v)
        return v

    @field_validator("date", mode="before")
    @classmethod
    def validate_date(cls, v: Any) -> datetime:
        """Missing or unparsable dates mean now."""
        return resolve_date(v)


class UserResponse(BaseModel):
    """Public projection of a user."""

    id: str = Field(..., description="User identifier")
    username: str = Field(..., description="Username")


class ExerciseLogEntry(BaseModel):
    """Exercise as it appears in a user's log."""

    id: str = Field(..., description="Exercise identifier")
    description: str = Field(..., description="What was done")
    duration: Union[int, float] = Field(..., description="Duration in minutes")
    date: datetime = Field(..., description="When the exercise took place")

    @field_serializer("date")
    def serialize_date(self, value: datetime) -> str:
        return format_date(value)


class ExerciseResponse(ExerciseLogEntry):
    """Newly added exercise combined with its owner's username."""

    username: str = Field(..., description="Username of the owning user")


class ExerciseLogResponse(UserResponse):
    """User augmented with their (filtered) exercise log."""

    log: List[ExerciseLogEntry] = Field(..., description="Matching exercises")
    count: int = Field(..., description="Number of exercises returned")


class SoftErrorResponse(BaseModel):
    """Application-level failure reported with HTTP 200."""

    error: str = Field(..., description="What went wrong")
