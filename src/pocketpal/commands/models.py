"""Data models for local commands."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ScheduleCommand(BaseModel):
    """A schedule entry extracted from free text."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(description="Derived item title")
    description: str = Field(default="", description="Original text when it differs from the title")
    date_time: datetime = Field(description="Resolved due date and time")
    source_text: str = Field(description="The text the command was extracted from")
    date_found: bool = Field(default=False, description="Whether a date expression was resolved")
    time_found: bool = Field(default=False, description="Whether a time expression was resolved")
