"""Async persistence for complaints, comments, blocks and the audit trail."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, List, Optional
import logging
import secrets

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlmodel import select, func, col
from sqlmodel.ext.asyncio.session import AsyncSession

from .constants import ID_SCHEME_SHORT, ComplaintStatus, parse_status
from .errors import ComplaintNotFoundError, InvalidStatusError, PersistenceError
from .models import AuditEntry, BlockedUser, Comment, Complaint, utcnow

logger = logging.getLogger(__name__)


def generate_complaint_id(scheme: str, user_id: str, now: Optional[datetime] = None) -> str:
    """Build a complaint id.

    `composite` ids are "<userId>_<epoch ms>"; `short` ids are a random
    six-digit code and must be checked for collisions by the caller.
    """
    if scheme == ID_SCHEME_SHORT:
        return str(100000 + secrets.randbelow(900000))
    now = now or utcnow()
    return f"{user_id}_{int(now.timestamp() * 1000)}"


def _utc(value: datetime) -> datetime:
    # SQLite stores naive UTC strings; compare with naive UTC bounds
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.replace(tzinfo=None)


class ComplaintRepository:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            try:
                yield session
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.error("Repository %s failed: %s", operation, exc)
                raise PersistenceError(f"{operation} failed") from exc

    async def _load(self, session: AsyncSession, complaint_id: str) -> Complaint:
        complaint = await session.get(Complaint, complaint_id)
        if complaint is None:
            raise ComplaintNotFoundError(complaint_id)
        return complaint

    # ------------------------------------------------------------------
    # Complaints
    # ------------------------------------------------------------------

    async def insert_complaint(self, complaint: Complaint) -> Complaint:
        async with self._session("insert_complaint") as session:
            session.add(complaint)
            await session.commit()
            await session.refresh(complaint)
        logger.info("Stored complaint %s from user %s", complaint.id, complaint.submitter_id)
        return complaint

    async def complaint_exists(self, complaint_id: str) -> bool:
        async with self._session("complaint_exists") as session:
            return await session.get(Complaint, complaint_id) is not None

    async def get_complaint(self, complaint_id: str) -> Complaint:
        async with self._session("get_complaint") as session:
            return await self._load(session, complaint_id)

    async def update_status(self, complaint_id: str, value: str) -> ComplaintStatus:
        """Set the status and return the previous one.

        Values outside the three-state set raise InvalidStatusError and leave
        the row untouched.
        """
        status = parse_status(value)
        if status is None:
            raise InvalidStatusError(value)
        async with self._session("update_status") as session:
            complaint = await self._load(session, complaint_id)
            previous = parse_status(complaint.status) or ComplaintStatus.PENDING
            complaint.status = status.value
            complaint.updated_at = utcnow()
            session.add(complaint)
            await session.commit()
        return previous

    async def update_assignee(self, complaint_id: str, assignee: str) -> Complaint:
        async with self._session("update_assignee") as session:
            complaint = await self._load(session, complaint_id)
            complaint.assignee = assignee
            complaint.updated_at = utcnow()
            session.add(complaint)
            await session.commit()
            await session.refresh(complaint)
            return complaint

    async def update_summary(self, complaint_id: str, summary: str) -> Complaint:
        async with self._session("update_summary") as session:
            complaint = await self._load(session, complaint_id)
            complaint.summary = summary
            complaint.updated_at = utcnow()
            session.add(complaint)
            await session.commit()
            await session.refresh(complaint)
            return complaint

    async def delete_complaint(self, complaint_id: str) -> None:
        """Hard delete. Comments are left in place."""
        async with self._session("delete_complaint") as session:
            complaint = await self._load(session, complaint_id)
            await session.delete(complaint)
            await session.commit()

    async def list_by_user(self, user_id: str) -> List[Complaint]:
        async with self._session("list_by_user") as session:
            result = await session.exec(
                select(Complaint)
                .where(Complaint.submitter_id == user_id)
                .order_by(col(Complaint.created_at).desc())
            )
            return list(result.all())

    async def list_by_section(self, section: str) -> List[Complaint]:
        async with self._session("list_by_section") as session:
            result = await session.exec(
                select(Complaint)
                .where(Complaint.section == section)
                .order_by(col(Complaint.created_at).desc())
            )
            return list(result.all())

    async def list_by_status(self, status: ComplaintStatus) -> List[Complaint]:
        async with self._session("list_by_status") as session:
            result = await session.exec(
                select(Complaint)
                .where(Complaint.status == status.value)
                .order_by(col(Complaint.created_at))
            )
            return list(result.all())

    async def list_all(self) -> List[Complaint]:
        async with self._session("list_all") as session:
            result = await session.exec(select(Complaint).order_by(col(Complaint.created_at)))
            return list(result.all())

    async def distinct_submitters(self) -> List[str]:
        async with self._session("distinct_submitters") as session:
            result = await session.exec(select(Complaint.submitter_id).distinct())
            return list(result.all())

    async def count_all(self) -> int:
        async with self._session("count_all") as session:
            result = await session.exec(select(func.count(Complaint.id)))
            return int(result.one())

    async def count_created_between(self, start: datetime, end: datetime) -> int:
        """Complaints created in the half-open interval [start, end)."""
        async with self._session("count_created_between") as session:
            result = await session.exec(
                select(func.count(Complaint.id)).where(
                    Complaint.created_at >= _utc(start),
                    Complaint.created_at < _utc(end),
                )
            )
            return int(result.one())

    async def status_counts(self) -> Dict[ComplaintStatus, int]:
        counts = {status: 0 for status in ComplaintStatus}
        async with self._session("status_counts") as session:
            result = await session.exec(
                select(Complaint.status, func.count(Complaint.id)).group_by(Complaint.status)
            )
            for value, count in result.all():
                status = parse_status(value)
                if status is not None:
                    counts[status] += int(count)
        return counts

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    async def add_comment(self, complaint_id: str, admin_id: str, text: str) -> Comment:
        comment = Comment(complaint_id=complaint_id, admin_id=admin_id, text=text)
        async with self._session("add_comment") as session:
            session.add(comment)
            await session.commit()
            await session.refresh(comment)
        return comment

    async def list_comments(self, complaint_id: str) -> List[Comment]:
        async with self._session("list_comments") as session:
            result = await session.exec(
                select(Comment)
                .where(Comment.complaint_id == complaint_id)
                .order_by(col(Comment.created_at), col(Comment.id))
            )
            return list(result.all())

    # ------------------------------------------------------------------
    # Blocked users
    # ------------------------------------------------------------------

    async def set_blocked(self, user_id: str, reason: Optional[str] = None) -> BlockedUser:
        """Block `user_id`, replacing any earlier reason."""
        async with self._session("set_blocked") as session:
            blocked = await session.get(BlockedUser, user_id)
            if blocked is None:
                blocked = BlockedUser(user_id=user_id, reason=reason)
            else:
                blocked.reason = reason
                blocked.blocked_at = utcnow()
            session.add(blocked)
            await session.commit()
            await session.refresh(blocked)
            return blocked

    async def is_blocked(self, user_id: str) -> bool:
        async with self._session("is_blocked") as session:
            return await session.get(BlockedUser, user_id) is not None

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    async def append_audit(self, actor_id: str, action: str, details: Optional[str] = None) -> AuditEntry:
        entry = AuditEntry(actor_id=actor_id, action=action, details=details)
        async with self._session("append_audit") as session:
            session.add(entry)
            await session.commit()
            await session.refresh(entry)
        return entry

    async def recent_audit(self, limit: int = 20) -> List[AuditEntry]:
        async with self._session("recent_audit") as session:
            result = await session.exec(
                select(AuditEntry).order_by(col(AuditEntry.id).desc()).limit(limit)
            )
            return list(result.all())
