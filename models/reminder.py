"""Reminder models shared by the store, the scheduler and the bot."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class ReminderKind(str, Enum):
    """What the reminder's subject is."""

    EVENT = "event"
    TASK = "task"


class ReminderTarget(str, Enum):
    """Who a task reminder was fanned out to."""

    ME = "ME"
    RESPONSIBLE = "RESPONSIBLE"
    ALL = "ALL"


class StoreOutcome(str, Enum):
    """Result of a conditional write on a single reminder."""

    OK = "ok"
    ALREADY_HANDLED = "already_handled"
    NOT_FOUND = "not_found"


class ReminderRecord(BaseModel):
    """Persisted instruction to notify a chat at a specific time."""

    id: str
    subject_id: str = Field(..., description="Owning task or event ID")
    chat_id: str = Field(..., description="Recipient Telegram chat ID")
    fire_at: datetime
    sent_at: Optional[datetime] = None
    tries: int = Field(default=0, ge=0)
    reply_to_message_id: Optional[int] = None
    kind: ReminderKind = ReminderKind.EVENT
    target: Optional[ReminderTarget] = None
    offset_minutes: Optional[int] = Field(default=None, ge=0)
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "id": "uuid-here",
                "subject_id": "clx0event",
                "chat_id": "123456789",
                "fire_at": "2026-01-01T09:50:00+00:00",
                "kind": "event",
                "offset_minutes": 10,
            }
        }

    @property
    def is_pending(self) -> bool:
        return self.sent_at is None


class ReminderCreate(BaseModel):
    """Reminder creation model."""

    subject_id: str
    chat_id: str
    fire_at: datetime
    kind: ReminderKind = ReminderKind.EVENT
    target: Optional[ReminderTarget] = None
    offset_minutes: Optional[int] = Field(default=None, ge=0)
    reply_to_message_id: Optional[int] = None
    created_by: Optional[str] = None

    class Config:
        use_enum_values = True


class SendResult(BaseModel):
    """Outcome of one notifier call."""

    ok: bool
    code: Optional[str] = None
    description: Optional[str] = None
    message_id: Optional[int] = None

    @classmethod
    def success(cls, message_id: Optional[int] = None) -> "SendResult":
        return cls(ok=True, message_id=message_id)

    @classmethod
    def failure(cls, code: str, description: Optional[str] = None) -> "SendResult":
        return cls(ok=False, code=code, description=description)


class ReminderMessage(BaseModel):
    """Outbound message body built from a fresh reminder record."""

    text: str
    reply_markup: Optional[Any] = None
