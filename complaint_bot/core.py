"""
Bot core: the single entry point for inbound events and maintenance jobs.

Every event passes the same gate before any routing:

1. non-private chats are ignored
2. blocked users are refused
3. the per-user rate limiter is consulted
4. free text is checked by the moderation filter

Then callbacks, commands and wizard input are routed. A completed wizard is
stored first and only then fanned out through the dispatcher.
"""

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any, Callable, Dict, Iterable, List, Optional
import logging
import time
from zoneinfo import ZoneInfo

from .admin import ADMIN_LANGUAGE, AdminCommandRouter
from .config import Settings
from .constants import (
    CB_LANGUAGE_PREFIX,
    FALLBACK_SECTION_TAG,
    ID_SCHEME_COMPOSITE,
    ComplaintStatus,
    Step,
)
from .dispatcher import DeliveryDispatcher, failed_targets
from .errors import ComplaintNotFoundError, DeliveryError, PersistenceError
from .events import InboundEvent, Transport
from .i18n import SUPPORTED_LANGUAGES, t
from .keyboards import Keyboard, confirmation_keyboard, language_keyboard
from .models import Complaint, as_utc, utcnow
from .moderation import ModerationFilter
from .observability import (
    blocked_events_total,
    complaint_submissions_total,
    delivery_failures_total,
    inbound_events_total,
    moderated_messages_total,
    rate_limited_events_total,
)
from .rate_limiter import RateLimiter
from .reporting import complaint_to_row
from .repository import ComplaintRepository, generate_complaint_id
from .sessions import ConversationSession, Draft, SessionStore
from .wizard import Action, Reply, WizardMachine

logger = logging.getLogger(__name__)

MAX_ID_ATTEMPTS = 5


def _event_kind(event: InboundEvent) -> str:
    if event.is_callback:
        return "callback"
    if event.is_command:
        return "command"
    if event.media is not None:
        return "media"
    if event.contact_phone:
        return "contact"
    return "text"


class ComplaintBotCore:
    def __init__(
        self,
        repository: ComplaintRepository,
        transport: Transport,
        admin_ids: Iterable[str],
        group_id: str,
        *,
        require_national_id: bool = False,
        id_scheme: str = ID_SCHEME_COMPOSITE,
        rate_limiter: Optional[RateLimiter] = None,
        moderation: Optional[ModerationFilter] = None,
        sessions: Optional[SessionStore] = None,
        tz: tzinfo = timezone.utc,
        bot_username: Optional[str] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.transport = transport
        self.group_id = str(group_id)
        self.require_national_id = require_national_id
        self.id_scheme = id_scheme
        self.rate_limiter = rate_limiter or RateLimiter()
        self.moderation = moderation or ModerationFilter()
        self.sessions = sessions or SessionStore()
        self.tz = tz
        self.bot_username = bot_username
        self._clock = clock
        self._started = time.monotonic()

        self.wizard = WizardMachine(require_national_id=require_national_id)
        self.dispatcher = DeliveryDispatcher(transport, [str(a) for a in admin_ids], self.group_id)
        self.admin = AdminCommandRouter(
            repository,
            self.dispatcher,
            self.sessions,
            transport,
            self.dispatcher.admin_ids,
            tz=tz,
            clock=clock,
        )
        self._user_commands = {
            "start": self._cmd_start,
            "cancel": self._cmd_cancel,
            "mycomplaints": self._cmd_my_complaints,
            "edit": self._cmd_edit,
            "language": self._cmd_language,
            "help": self._cmd_help,
        }

    @classmethod
    def from_settings(
        cls, settings: Settings, repository: ComplaintRepository, transport: Transport
    ) -> "ComplaintBotCore":
        return cls(
            repository,
            transport,
            settings.admin_ids,
            settings.group_id,
            require_national_id=settings.require_national_id,
            id_scheme=settings.complaint_id_scheme,
            rate_limiter=RateLimiter(settings.rate_limit_max_events, settings.rate_limit_window_seconds),
            moderation=ModerationFilter.with_extra_words(settings.extra_blocked_words),
            sessions=SessionStore(
                ttl_seconds=settings.session_ttl_seconds, default_language=settings.default_language
            ),
            tz=ZoneInfo(settings.timezone),
            bot_username=settings.bot_username,
        )

    # ------------------------------------------------------------------
    # Inbound events
    # ------------------------------------------------------------------

    async def handle_inbound_event(self, event: InboundEvent) -> None:
        if not event.is_private:
            logger.debug("Ignoring event from non-private chat %s", event.chat_id)
            return

        user_id = event.user_id
        inbound_events_total.labels(kind=_event_kind(event)).inc()

        try:
            blocked = await self.repository.is_blocked(user_id)
        except PersistenceError:
            logger.error("Blocked-user lookup failed for %s; refusing event", user_id)
            await self._answer(event)
            await self._send(user_id, t(self._language(user_id), "genericError"))
            return
        if blocked:
            blocked_events_total.inc()
            await self._answer(event)
            await self._send(user_id, t(self._language(user_id), "blockedUser"))
            return

        if not self.rate_limiter.allow(user_id):
            rate_limited_events_total.inc()
            logger.info("Rate limit exceeded for user %s", user_id)
            await self._answer(event)
            await self._send(user_id, t(self._language(user_id), "rateLimit"))
            return

        if await self._moderate(event):
            return

        if event.is_callback:
            await self._handle_callback(event)
        elif event.is_command:
            await self._handle_command(event)
        else:
            await self._handle_step_input(event)

    async def handle_admin_command(self, actor_id: str, command: str, args: List[str]) -> bool:
        return await self.admin.handle_command(str(actor_id), command, list(args))

    async def _moderate(self, event: InboundEvent) -> bool:
        match = self.moderation.find_match(event.free_text)
        if match is None:
            return False
        moderated_messages_total.inc()
        user_id = event.user_id
        logger.warning("Offensive message from user %s (matched %r)", user_id, match)
        await self._send(user_id, t(self._language(user_id), "offensiveWarning"))
        await self.dispatcher.notify_admins(
            t(
                ADMIN_LANGUAGE,
                "offensiveAdminNotice",
                handle=event.handle or t(ADMIN_LANGUAGE, "unknownHandle"),
                user_id=user_id,
                text=event.free_text,
            )
        )
        await self._audit(user_id, "offensive_message", event.free_text)
        return True

    async def _handle_callback(self, event: InboundEvent) -> None:
        data = event.callback_data or ""
        try:
            if data.startswith(CB_LANGUAGE_PREFIX):
                await self._set_language(event.user_id, data[len(CB_LANGUAGE_PREFIX):])
            elif await self.admin.handle_callback(event.user_id, data):
                pass
            else:
                session = self.sessions.get(event.user_id)
                if session is not None:
                    await self._advance(session, event)
        finally:
            await self._answer(event)

    async def _handle_command(self, event: InboundEvent) -> None:
        command = event.command
        handler = self._user_commands.get(command)
        if handler is not None:
            await handler(event)
        elif not await self.handle_admin_command(event.user_id, command, event.args):
            await self._send(event.user_id, t(self._language(event.user_id), "unknownCommand"))

    async def _handle_step_input(self, event: InboundEvent) -> None:
        session = self.sessions.get(event.user_id)
        if session is None:
            return
        if session.step is Step.BROADCAST:
            if event.text:
                await self.admin.handle_broadcast_text(event.user_id, event.text.strip())
            return
        await self._advance(session, event)

    # ------------------------------------------------------------------
    # Wizard
    # ------------------------------------------------------------------

    async def _advance(self, session: ConversationSession, event: InboundEvent) -> None:
        if not self.wizard.handles(session.step):
            return
        transition = self.wizard.transition(session, event)
        if transition.action is Action.CANCEL:
            self.sessions.delete(session.user_id)
            await self._send_replies(session.user_id, transition.replies)
            return

        self.wizard.apply(session, transition)
        self.sessions.set(session)
        await self._send_replies(session.user_id, transition.replies)

        if transition.action is Action.SUBMIT:
            await self._submit(session)
        elif transition.action is Action.SAVE_EDIT:
            await self._save_edit(session)

    async def _new_complaint_id(self, user_id: str) -> str:
        now = self._clock()
        for attempt in range(MAX_ID_ATTEMPTS):
            candidate = generate_complaint_id(self.id_scheme, user_id, now + timedelta(milliseconds=attempt))
            if not await self.repository.complaint_exists(candidate):
                return candidate
        raise PersistenceError(f"Could not allocate a unique complaint id for {user_id}")

    def build_complaint(self, complaint_id: str, session: ConversationSession) -> Complaint:
        draft = session.draft
        return Complaint(
            id=complaint_id,
            submitter_id=session.user_id,
            submitter_handle=draft.handle,
            full_name=draft.full_name or "",
            address=draft.address or "",
            phone=draft.phone or "",
            national_id=draft.national_id if self.require_national_id else None,
            section=draft.section or FALLBACK_SECTION_TAG,
            summary=draft.summary or "",
            media=[item.model_dump() for item in draft.media],
            created_at=self._clock(),
        )

    async def _submit(self, session: ConversationSession) -> None:
        user_id = session.user_id
        language = session.language
        try:
            complaint_id = await self._new_complaint_id(user_id)
            complaint = await self.repository.insert_complaint(self.build_complaint(complaint_id, session))
        except PersistenceError:
            complaint_submissions_total.labels(outcome="failed").inc()
            logger.exception("Submission for user %s was not stored", user_id)
            await self._send(user_id, t(language, "submitFailed"), keyboard=confirmation_keyboard(language))
            return

        failures = await self.dispatcher.deliver_complaint(complaint)
        self.sessions.delete(user_id)
        if failures:
            complaint_submissions_total.labels(outcome="partial").inc()
            delivery_failures_total.inc(len(failures))
            targets = ", ".join(failed_targets(failures))
            await self._send(user_id, t(language, "partialSuccess", complaint_id=complaint.id, targets=targets))
        else:
            complaint_submissions_total.labels(outcome="delivered").inc()
            await self._send(user_id, t(language, "success", complaint_id=complaint.id))
        await self._audit(user_id, "submit_complaint", f"Complaint ID: {complaint.id}")

    async def _save_edit(self, session: ConversationSession) -> None:
        user_id = session.user_id
        language = session.language
        complaint_id = session.draft.complaint_id
        try:
            complaint = await self.repository.update_summary(complaint_id, session.draft.summary)
        except ComplaintNotFoundError:
            self.sessions.delete(user_id)
            await self._send(user_id, t(language, "complaintNotFound"))
            return
        except PersistenceError:
            await self._send(user_id, t(language, "editFailed"))
            return

        self.sessions.delete(user_id)
        await self._send(user_id, t(language, "editSuccess", complaint_id=complaint.id))
        await self.dispatcher.notify_admins(
            t(ADMIN_LANGUAGE, "editNotice", complaint_id=complaint.id, summary=complaint.summary)
        )
        await self._audit(user_id, "edit_complaint", f"Complaint ID: {complaint.id}")

    # ------------------------------------------------------------------
    # Submitter commands
    # ------------------------------------------------------------------

    async def _cmd_start(self, event: InboundEvent) -> None:
        session = self.sessions.start(event.user_id, self.wizard.first_step)
        await self._send_replies(event.user_id, [self.wizard.prompt_for(session.step, session.language)])

    async def _cmd_cancel(self, event: InboundEvent) -> None:
        self.sessions.delete(event.user_id)
        await self._send(event.user_id, t(self._language(event.user_id), "cancelled"), remove_keyboard=True)

    async def _cmd_my_complaints(self, event: InboundEvent) -> None:
        language = self._language(event.user_id)
        complaints = await self.repository.list_by_user(event.user_id)
        if not complaints:
            await self._send(event.user_id, t(language, "noUserComplaints"))
            return
        items = "\n\n".join(
            t(
                language,
                "myComplaintsItem",
                complaint_id=c.id,
                section=c.section,
                summary=c.summary,
                status=c.status,
                created_at=self._local(c.created_at),
            )
            for c in complaints
        )
        await self._send(event.user_id, t(language, "myComplaints", items=items))

    async def _cmd_edit(self, event: InboundEvent) -> None:
        language = self._language(event.user_id)
        if len(event.args) != 1:
            await self._send(event.user_id, t(language, "editUsage"))
            return
        try:
            complaint = await self.repository.get_complaint(event.args[0])
        except ComplaintNotFoundError:
            complaint = None
        if complaint is None or complaint.submitter_id != event.user_id:
            await self._send(event.user_id, t(language, "complaintNotFound"))
            return
        session = self.sessions.start(event.user_id, Step.EDIT_SUMMARY, Draft(complaint_id=complaint.id))
        await self._send_replies(event.user_id, [self.wizard.prompt_for(session.step, language)])

    async def _cmd_language(self, event: InboundEvent) -> None:
        await self._send(event.user_id, t(self._language(event.user_id), "languagePrompt"), keyboard=language_keyboard())

    async def _cmd_help(self, event: InboundEvent) -> None:
        await self._send(event.user_id, t(self._language(event.user_id), "help"))

    async def _set_language(self, user_id: str, language: str) -> None:
        if language not in SUPPORTED_LANGUAGES:
            return
        self.sessions.set_language(user_id, language)
        await self._send(user_id, t(language, "languageChanged"))

    # ------------------------------------------------------------------
    # Maintenance hooks (driven by the scheduler)
    # ------------------------------------------------------------------

    async def get_complaint_dataset(self) -> List[Dict[str, Any]]:
        return [complaint_to_row(c) for c in await self.repository.list_all()]

    async def run_daily_reminder(self) -> int:
        """Remind submitters of complaints that are still pending."""
        pending = await self.repository.list_by_status(ComplaintStatus.PENDING)
        sent = 0
        for complaint in pending:
            language = self.sessions.language_for(complaint.submitter_id)
            if await self.dispatcher.send_to(
                complaint.submitter_id, t(language, "reminder", complaint_id=complaint.id)
            ):
                sent += 1
        logger.info("Sent %d of %d pending reminders", sent, len(pending))
        return sent

    async def run_weekly_stats(self) -> int:
        now = self._clock()
        count = await self.repository.count_created_between(now - timedelta(days=7), now)
        await self.dispatcher.notify_admins(t(ADMIN_LANGUAGE, "weeklyStats", count=count))
        return count

    async def run_periodic_export(self) -> None:
        for admin_id in self.dispatcher.admin_ids:
            await self.admin.export_report(admin_id, success_key="autoReport")

    async def run_membership_check(self) -> bool:
        try:
            reachable = await self.transport.check_chat(self.group_id)
        except DeliveryError:
            reachable = False
        if not reachable:
            logger.error("Bot cannot reach staff group %s", self.group_id)
            await self.dispatcher.notify_admins(t(ADMIN_LANGUAGE, "membershipLost"))
        return reachable

    async def run_group_announcement(self) -> bool:
        if not self.bot_username:
            logger.info("BOT_USERNAME not configured; skipping group announcement")
            return False
        text = t(ADMIN_LANGUAGE, "groupAnnouncement", bot_mention=f"@{self.bot_username.lstrip('@')}")
        if await self.dispatcher.send_to(self.group_id, text):
            return True
        await self.dispatcher.notify_admins(
            t(ADMIN_LANGUAGE, "groupAnnouncementFailed", group_id=self.group_id)
        )
        return False

    async def run_status_report(self) -> None:
        uptime = int(time.monotonic() - self._started)
        total = await self.repository.count_all()
        await self.dispatcher.notify_admins(
            t(
                ADMIN_LANGUAGE,
                "statusReport",
                hours=uptime // 3600,
                minutes=(uptime % 3600) // 60,
                sessions=len(self.sessions),
                total=total,
            )
        )

    async def run_housekeeping(self) -> None:
        evicted = self.sessions.evict_idle()
        purged = self.rate_limiter.purge_expired()
        logger.debug("Housekeeping: %d idle sessions evicted, %d limiter windows purged", evicted, purged)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _language(self, user_id: str) -> str:
        session = self.sessions.get(user_id)
        return session.language if session else self.sessions.language_for(user_id)

    def _local(self, value: Optional[datetime]) -> str:
        value = as_utc(value)
        return value.astimezone(self.tz).strftime("%Y-%m-%d %H:%M") if value else ""

    async def _send(
        self, user_id: str, text: str, keyboard: Optional[Keyboard] = None, remove_keyboard: bool = False
    ) -> bool:
        return await self.dispatcher.send_to(user_id, text, keyboard=keyboard, remove_keyboard=remove_keyboard)

    async def _send_replies(self, user_id: str, replies: List[Reply]) -> None:
        for reply in replies:
            await self._send(user_id, reply.text, keyboard=reply.keyboard, remove_keyboard=reply.remove_keyboard)

    async def _answer(self, event: InboundEvent) -> None:
        if not event.callback_id:
            return
        try:
            await self.transport.answer_callback(event.callback_id)
        except DeliveryError as exc:
            logger.debug("Could not answer callback %s: %s", event.callback_id, exc)

    async def _audit(self, actor_id: str, action: str, details: Optional[str]) -> None:
        try:
            await self.repository.append_audit(actor_id, action, details)
        except PersistenceError:
            logger.error("Could not record audit entry %s for %s", action, actor_id)
