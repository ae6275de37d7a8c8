"""
Reminder request and response schemas.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ReminderCreateRequest(BaseModel):
    """
    Create a reminder.

    ``type`` and ``preferred_channel`` are checked against the notification
    enums by the route, which answers 400 for unknown values.
    """

    user_id: Optional[str] = None
    type: str
    content: str = Field(..., min_length=1)
    subject: Optional[str] = Field(None, max_length=255)
    preferred_channel: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ReminderBatchRequest(BaseModel):
    reminders: List[ReminderCreateRequest] = Field(..., min_length=1, max_length=1000)


class InteractionCreateRequest(BaseModel):
    type: str
    metadata: Optional[Dict[str, Any]] = None


class RenewalRemindersRequest(BaseModel):
    days_ahead: int = Field(7, ge=0, le=60)
    channel: str = "BOTH"


class InteractionResponse(BaseModel):
    id: str
    type: str
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="extra_data")
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReminderResponse(BaseModel):
    id: str
    user_id: str
    channel: str
    type: str
    status: str
    subject: Optional[str] = None
    content: str
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="extra_data")
    scheduled_at: datetime
    sent_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    opened_at: Optional[datetime] = None
    clicked_at: Optional[datetime] = None
    error_message: Optional[str] = None
    interactions: List[InteractionResponse] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)
