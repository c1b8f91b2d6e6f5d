from typing import Any, Dict, List, Optional
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON

from .constants import DEFAULT_STATUS


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Complaint(SQLModel, table=True):
    __tablename__ = "complaints"
    id: str = Field(primary_key=True)
    submitter_id: str = Field(index=True)
    submitter_handle: Optional[str] = None
    full_name: str
    address: str
    phone: str
    national_id: Optional[str] = None
    section: str = Field(index=True)
    summary: str
    # One of ComplaintStatus values; validated by the repository
    status: str = Field(default=DEFAULT_STATUS.value, index=True)
    # Ordered list of {"kind": "photo"|"video", "ref": "<file id>"}
    media: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    assignee: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None


class Comment(SQLModel, table=True):
    __tablename__ = "comments"
    id: Optional[int] = Field(default=None, primary_key=True)
    # No foreign key: comments outlive a deleted complaint
    complaint_id: str = Field(index=True)
    admin_id: str
    text: str
    created_at: datetime = Field(default_factory=utcnow)


class BlockedUser(SQLModel, table=True):
    __tablename__ = "blocked_users"
    user_id: str = Field(primary_key=True)
    reason: Optional[str] = None
    blocked_at: datetime = Field(default_factory=utcnow)


class AuditEntry(SQLModel, table=True):
    __tablename__ = "audit_log"
    id: Optional[int] = Field(default=None, primary_key=True)
    actor_id: str
    action: str
    details: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
