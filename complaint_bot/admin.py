"""
Administrator commands and dashboard callbacks.

Every entry point checks the static administrator allow-list first. A
refused attempt gets the fixed refusal text and an audit entry; nothing else
runs.
"""

from datetime import datetime, timedelta, timezone, tzinfo
from functools import partial
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple
import logging

from .constants import (
    CB_CANCEL_BROADCAST,
    CB_EXPORT,
    CB_FILTER_PREFIX,
    CB_SEND_BROADCAST,
    CB_START_BROADCAST,
    CB_STATUS_PREFIX,
    SECTION_KEY_TO_TAG,
    STATUS_KEYS,
    Step,
)
from .dispatcher import DeliveryDispatcher
from .errors import (
    AdminPermissionError,
    ComplaintNotFoundError,
    InvalidStatusError,
    PersistenceError,
)
from .events import Transport
from .i18n import PRIMARY_LANGUAGE, t
from .keyboards import broadcast_keyboard, broadcast_prompt_keyboard, dashboard_keyboard, status_keyboard
from .models import as_utc, utcnow
from .reporting import build_report, complaint_to_row, export_filename
from .repository import ComplaintRepository
from .sessions import SessionStore

logger = logging.getLogger(__name__)

# Admin-facing text is always rendered in the primary locale
ADMIN_LANGUAGE = PRIMARY_LANGUAGE
FILTER_LISTING_LIMIT = 20
AUDIT_DEFAULT_LIMIT = 10
AUDIT_MAX_LIMIT = 50

CommandHandler = Callable[[str, List[str]], Awaitable[None]]


class AdminCommandRouter:
    def __init__(
        self,
        repository: ComplaintRepository,
        dispatcher: DeliveryDispatcher,
        sessions: SessionStore,
        transport: Transport,
        admin_ids: Iterable[str],
        tz: tzinfo = timezone.utc,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.dispatcher = dispatcher
        self.sessions = sessions
        self.transport = transport
        self.admin_ids = frozenset(admin_ids)
        self.tz = tz
        self._clock = clock
        self._commands: Dict[str, CommandHandler] = {
            "status": self._status,
            "assign": self._assign,
            "delete": self._delete,
            "block": self._block,
            "reply": self._reply,
            "comment": self._comment,
            "export": self._export,
            "stats": self._stats,
            "broadcast": self._broadcast,
            "dashboard": self._dashboard,
            "audit": self._audit,
            "view": self._view,
        }

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def is_admin(self, actor_id: str) -> bool:
        return str(actor_id) in self.admin_ids

    def require_admin(self, actor_id: str, command: str) -> None:
        if not self.is_admin(actor_id):
            raise AdminPermissionError(actor_id, command)

    async def handle_command(self, actor_id: str, command: str, args: List[str]) -> bool:
        """Run an admin command. Returns False if `command` is not an admin command."""
        handler = self._commands.get(command)
        if handler is None:
            return False
        await self._guarded(actor_id, f"/{command}", partial(handler, actor_id, args))
        return True

    async def handle_callback(self, actor_id: str, data: str) -> bool:
        """Route dashboard buttons. Returns False for data this router does not own."""
        action: Callable[[], Awaitable[None]]
        if data.startswith(CB_FILTER_PREFIX):
            action = partial(self._filter, actor_id, data[len(CB_FILTER_PREFIX):])
        elif data.startswith(CB_STATUS_PREFIX):
            action = partial(self._status_button, actor_id, data[len(CB_STATUS_PREFIX):])
        elif data == CB_EXPORT:
            action = partial(self._export, actor_id, [])
        elif data == CB_START_BROADCAST:
            action = partial(self._broadcast, actor_id, [])
        elif data == CB_SEND_BROADCAST:
            action = partial(self._send_broadcast, actor_id)
        elif data == CB_CANCEL_BROADCAST:
            action = partial(self._cancel_broadcast, actor_id)
        else:
            return False
        await self._guarded(actor_id, data, action)
        return True

    async def handle_broadcast_text(self, actor_id: str, text: str) -> None:
        """Capture the message typed while a broadcast is being prepared."""
        await self._guarded(actor_id, "broadcast", partial(self._capture_broadcast, actor_id, text))

    async def _capture_broadcast(self, actor_id: str, text: str) -> None:
        session = self.sessions.get(actor_id)
        if session is None or session.step is not Step.BROADCAST:
            return
        session.draft.broadcast_message = text
        self.sessions.set(session)
        await self._say(
            actor_id,
            t(ADMIN_LANGUAGE, "broadcastConfirm", message=text),
            keyboard=broadcast_keyboard(ADMIN_LANGUAGE),
        )

    async def _guarded(self, actor_id: str, label: str, action: Callable[[], Awaitable[None]]) -> None:
        try:
            self.require_admin(actor_id, label)
            await action()
        except AdminPermissionError as exc:
            logger.warning("Refused admin action: %s", exc)
            await self._say(actor_id, t(ADMIN_LANGUAGE, "invalidCommand"))
            await self._audit_safely(actor_id, "admin_denied", label)
        except ComplaintNotFoundError as exc:
            await self._say(actor_id, t(ADMIN_LANGUAGE, "complaintNotFound"))
            logger.info("Admin %s referenced missing complaint %s", actor_id, exc.complaint_id)
        except InvalidStatusError as exc:
            await self._say(actor_id, t(ADMIN_LANGUAGE, exc.message_key))
        except PersistenceError:
            await self._say(actor_id, t(ADMIN_LANGUAGE, "genericError"))

    async def _say(self, actor_id: str, text: str, **kwargs) -> bool:
        return await self.dispatcher.send_to(actor_id, text, **kwargs)

    async def _audit_safely(self, actor_id: str, action: str, details: str) -> None:
        try:
            await self.repository.append_audit(actor_id, action, details)
        except PersistenceError:
            logger.error("Could not record audit entry %s for %s", action, actor_id)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def change_status(self, actor_id: str, complaint_id: str, value: str) -> None:
        previous = await self.repository.update_status(complaint_id, value)
        complaint = await self.repository.get_complaint(complaint_id)
        await self._audit_safely(
            actor_id, "status_change", f"{complaint_id}: {previous.value} -> {complaint.status}"
        )
        language = self.sessions.language_for(complaint.submitter_id)
        await self.dispatcher.send_to(
            complaint.submitter_id,
            t(language, "statusUpdated", complaint_id=complaint_id, status=complaint.status),
        )
        await self._say(
            actor_id,
            t(
                ADMIN_LANGUAGE,
                "adminStatusUpdated",
                complaint_id=complaint_id,
                old_status=previous.value,
                status=complaint.status,
            ),
        )

    async def _status(self, actor_id: str, args: List[str]) -> None:
        if len(args) < 2:
            raise InvalidStatusError(" ".join(args))
        await self.change_status(actor_id, args[0], " ".join(args[1:]))

    async def _status_button(self, actor_id: str, payload: str) -> None:
        key, _, complaint_id = payload.partition(":")
        if not complaint_id:
            raise InvalidStatusError(payload)
        await self.change_status(actor_id, complaint_id, key)

    async def _assign(self, actor_id: str, args: List[str]) -> None:
        if len(args) < 2:
            await self._say(actor_id, t(ADMIN_LANGUAGE, "assignUsage"))
            return
        complaint_id, assignee = args[0], " ".join(args[1:])
        await self.repository.update_assignee(complaint_id, assignee)
        await self.repository.append_audit(actor_id, "assign", f"{complaint_id} -> {assignee}")
        await self._say(actor_id, t(ADMIN_LANGUAGE, "assignSuccess", complaint_id=complaint_id, assignee=assignee))

    async def _delete(self, actor_id: str, args: List[str]) -> None:
        if len(args) != 1:
            await self._say(actor_id, t(ADMIN_LANGUAGE, "deleteUsage"))
            return
        complaint_id = args[0]
        await self.repository.delete_complaint(complaint_id)
        await self.repository.append_audit(actor_id, "delete_complaint", complaint_id)
        await self._say(actor_id, t(ADMIN_LANGUAGE, "deleteSuccess", complaint_id=complaint_id))

    async def _block(self, actor_id: str, args: List[str]) -> None:
        if not args:
            await self._say(actor_id, t(ADMIN_LANGUAGE, "blockUsage"))
            return
        user_id = args[0]
        reason = " ".join(args[1:]) or None
        await self.repository.set_blocked(user_id, reason)
        self.sessions.delete(user_id)
        await self.repository.append_audit(actor_id, "block_user", f"{user_id}: {reason or '-'}")
        await self.dispatcher.send_to(user_id, t(self.sessions.language_for(user_id), "blockedUser"))
        await self._say(actor_id, t(ADMIN_LANGUAGE, "blockSuccess", user_id=user_id))

    async def _reply(self, actor_id: str, args: List[str]) -> None:
        if len(args) < 2:
            await self._say(actor_id, t(ADMIN_LANGUAGE, "replyUsage"))
            return
        complaint_id, text = args[0], " ".join(args[1:])
        complaint = await self.repository.get_complaint(complaint_id)
        language = self.sessions.language_for(complaint.submitter_id)
        sent = await self.dispatcher.send_to(
            complaint.submitter_id, t(language, "replyMessage", complaint_id=complaint_id, text=text)
        )
        if not sent:
            await self._say(actor_id, t(ADMIN_LANGUAGE, "replyFailed"))
            return
        await self.repository.append_audit(actor_id, "reply", f"{complaint_id}: {text}")
        await self._say(actor_id, t(ADMIN_LANGUAGE, "replySent", complaint_id=complaint_id))

    async def _comment(self, actor_id: str, args: List[str]) -> None:
        if len(args) < 2:
            await self._say(actor_id, t(ADMIN_LANGUAGE, "commentUsage"))
            return
        complaint_id, text = args[0], " ".join(args[1:])
        await self.repository.get_complaint(complaint_id)
        await self.repository.add_comment(complaint_id, actor_id, text)
        await self.repository.append_audit(actor_id, "comment", f"{complaint_id}: {text}")
        await self._say(actor_id, t(ADMIN_LANGUAGE, "commentAdded", complaint_id=complaint_id))

    async def export_report(self, chat_id: str, success_key: str = "exportSuccess") -> bool:
        """Build the spreadsheet and send it to `chat_id`."""
        complaints = await self.repository.list_all()
        now = self._clock()
        content = build_report([complaint_to_row(c) for c in complaints], now=now, tz=self.tz)
        try:
            await self.transport.send_document(chat_id, export_filename(now), content)
        except Exception:
            logger.exception("Failed to send report to %s", chat_id)
            await self._say(chat_id, t(ADMIN_LANGUAGE, "exportFailed"))
            return False
        await self._say(chat_id, t(ADMIN_LANGUAGE, success_key))
        return True

    async def _export(self, actor_id: str, args: List[str]) -> None:
        if await self.export_report(actor_id):
            await self.repository.append_audit(actor_id, "export_report", "Exported complaints report")

    def today_bounds(self) -> Tuple[datetime, datetime]:
        """Start and end of the current local day, as aware datetimes."""
        local_now = self._clock().astimezone(self.tz)
        start = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
        return start, start + timedelta(days=1)

    async def _stats(self, actor_id: str, args: List[str]) -> None:
        start, end = self.today_bounds()
        today = await self.repository.count_created_between(start, end)
        total = await self.repository.count_all()
        await self._say(
            actor_id,
            t(ADMIN_LANGUAGE, "statsToday", day=start.strftime("%Y-%m-%d"), today=today, total=total),
        )

    async def _broadcast(self, actor_id: str, args: List[str]) -> None:
        self.sessions.start(actor_id, Step.BROADCAST)
        await self._say(
            actor_id,
            t(ADMIN_LANGUAGE, "broadcastPrompt"),
            keyboard=broadcast_prompt_keyboard(ADMIN_LANGUAGE),
        )

    async def _send_broadcast(self, actor_id: str) -> None:
        session = self.sessions.get(actor_id)
        message = session.draft.broadcast_message if session and session.step is Step.BROADCAST else None
        if not message:
            await self._say(actor_id, t(ADMIN_LANGUAGE, "broadcastEmpty"))
            return
        recipients = await self.repository.distinct_submitters()
        failed = await self.dispatcher.broadcast(message, recipients)
        self.sessions.delete(actor_id)
        await self.repository.append_audit(
            actor_id, "broadcast", f"{message} (failed: {len(failed)})"
        )
        if failed:
            await self._say(
                actor_id,
                t(ADMIN_LANGUAGE, "broadcastPartial", count=len(failed), targets=", ".join(failed)),
            )
        else:
            await self._say(actor_id, t(ADMIN_LANGUAGE, "broadcastSuccess"))

    async def _cancel_broadcast(self, actor_id: str) -> None:
        self.sessions.delete(actor_id)
        await self._say(actor_id, t(ADMIN_LANGUAGE, "broadcastCancelled"))

    async def _dashboard(self, actor_id: str, args: List[str]) -> None:
        counts = await self.repository.status_counts()
        fields = {STATUS_KEYS[status]: count for status, count in counts.items()}
        await self._say(
            actor_id,
            t(ADMIN_LANGUAGE, "adminDashboard", total=sum(counts.values()), **fields),
            keyboard=dashboard_keyboard(ADMIN_LANGUAGE),
        )
        await self.repository.append_audit(actor_id, "view_dashboard", "Admin viewed dashboard")

    async def _filter(self, actor_id: str, section_key: str) -> None:
        tag = SECTION_KEY_TO_TAG.get(section_key)
        complaints = await self.repository.list_by_section(tag) if tag else []
        if not complaints:
            await self._say(actor_id, t(ADMIN_LANGUAGE, "noComplaints"))
            return
        await self._say(actor_id, t(ADMIN_LANGUAGE, "filterHeader", section=tag))
        for complaint in complaints[:FILTER_LISTING_LIMIT]:
            await self._say(
                actor_id,
                t(
                    ADMIN_LANGUAGE,
                    "filterItem",
                    complaint_id=complaint.id,
                    full_name=complaint.full_name,
                    status=complaint.status,
                    created_at=self._local(complaint.created_at),
                ).strip(),
                keyboard=status_keyboard(complaint.id),
            )

    async def _audit(self, actor_id: str, args: List[str]) -> None:
        limit = AUDIT_DEFAULT_LIMIT
        if args and args[0].isdigit():
            limit = max(1, min(int(args[0]), AUDIT_MAX_LIMIT))
        entries = await self.repository.recent_audit(limit)
        if not entries:
            await self._say(actor_id, t(ADMIN_LANGUAGE, "auditEmpty"))
            return
        lines = [
            t(
                ADMIN_LANGUAGE,
                "auditLine",
                created_at=self._local(entry.created_at),
                actor_id=entry.actor_id,
                action=entry.action,
                details=entry.details or "",
            )
            for entry in entries
        ]
        await self._say(actor_id, t(ADMIN_LANGUAGE, "auditHeader") + "\n".join(lines))

    async def _view(self, actor_id: str, args: List[str]) -> None:
        if len(args) != 1:
            await self._say(actor_id, t(ADMIN_LANGUAGE, "viewUsage"))
            return
        complaint = await self.repository.get_complaint(args[0])
        comments = await self.repository.list_comments(complaint.id)
        detail = t(
            ADMIN_LANGUAGE,
            "complaintDetail",
            complaint_id=complaint.id,
            full_name=complaint.full_name,
            handle=complaint.submitter_handle or t(ADMIN_LANGUAGE, "unknownHandle"),
            submitter_id=complaint.submitter_id,
            phone=complaint.phone,
            section=complaint.section,
            summary=complaint.summary,
            status=complaint.status,
            assignee=complaint.assignee or t(ADMIN_LANGUAGE, "unassigned"),
            created_at=self._local(complaint.created_at),
        )
        if comments:
            comment_lines = "\n".join(
                t(
                    ADMIN_LANGUAGE,
                    "commentLine",
                    created_at=self._local(c.created_at),
                    admin_id=c.admin_id,
                    text=c.text,
                )
                for c in comments
            )
        else:
            comment_lines = t(ADMIN_LANGUAGE, "noComments")
        await self._say(actor_id, f"{detail}\n\n{comment_lines}", keyboard=status_keyboard(complaint.id))

    def _local(self, value: Optional[datetime]) -> str:
        value = as_utc(value)
        if value is None:
            return ""
        return value.astimezone(self.tz).strftime("%Y-%m-%d %H:%M")
