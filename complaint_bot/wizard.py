"""Table-driven intake wizard.

`WizardMachine.transition` is a pure decision: given a session and an inbound
event it returns the next step, the draft field updates and the replies to
send. It never touches the repository or the transport. The core applies the
transition to the session and carries out its `action`.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
import logging

from .constants import (
    ADDRESS_MIN_LENGTH,
    CB_BACK,
    CB_CANCEL,
    CB_DONE,
    CB_EDIT,
    CB_SECTION_PREFIX,
    CB_SUBMIT,
    NAME_MIN_LENGTH,
    NATIONAL_ID_PATTERN,
    PHONE_PATTERN,
    SECTION_KEY_TO_TAG,
    SUMMARY_MIN_LENGTH,
    WIZARD_SEQUENCE,
    Step,
)
from .errors import InputValidationError
from .events import InboundEvent
from .i18n import SUPPORTED_LANGUAGES, t
from .keyboards import (
    Keyboard,
    back_keyboard,
    confirmation_keyboard,
    contact_keyboard,
    media_keyboard,
    section_keyboard,
)
from .sessions import ConversationSession, Draft, MediaItem

logger = logging.getLogger(__name__)

# Reply-keyboard and typed equivalents of the Back and Done buttons
BACK_TEXTS = frozenset(t(language, "back") for language in SUPPORTED_LANGUAGES)
DONE_TEXTS = frozenset(t(language, "doneButton") for language in SUPPORTED_LANGUAGES)


class Action(str, Enum):
    NONE = "none"
    SUBMIT = "submit"
    SAVE_EDIT = "save_edit"
    CANCEL = "cancel"


@dataclass
class Reply:
    text: str
    keyboard: Optional[Keyboard] = None
    remove_keyboard: bool = False


@dataclass
class Transition:
    step: Step
    updates: Dict[str, Any] = field(default_factory=dict)
    media: Optional[MediaItem] = None
    reset_draft: bool = False
    replies: List[Reply] = field(default_factory=list)
    action: Action = Action.NONE


Handler = Callable[[ConversationSession, InboundEvent], Transition]


def _require_text(event: InboundEvent, min_length: int, message_key: str) -> str:
    text = (event.text or "").strip()
    if len(text) < min_length:
        raise InputValidationError(message_key, f"expected at least {min_length} characters")
    return text


class WizardMachine:
    def __init__(self, require_national_id: bool = False):
        self.require_national_id = require_national_id
        self.sequence: List[Step] = [
            step for step in WIZARD_SEQUENCE if require_national_id or step is not Step.ASK_NATIONAL_ID
        ]
        self._handlers: Dict[Step, Handler] = {
            Step.ASK_NAME: self._on_name,
            Step.ASK_ADDRESS: self._on_address,
            Step.ASK_PHONE: self._on_phone,
            Step.ASK_NATIONAL_ID: self._on_national_id,
            Step.ASK_SECTION: self._on_section,
            Step.ASK_SUMMARY: self._on_summary,
            Step.ASK_MEDIA: self._on_media,
            Step.ASK_CONFIRMATION: self._on_confirmation,
            Step.EDIT_SUMMARY: self._on_edit_summary,
        }

    # ------------------------------------------------------------------
    # Sequence helpers
    # ------------------------------------------------------------------

    @property
    def first_step(self) -> Step:
        return self.sequence[0]

    def next_step(self, step: Step) -> Step:
        index = self.sequence.index(step)
        return self.sequence[min(index + 1, len(self.sequence) - 1)]

    def previous_step(self, step: Step) -> Step:
        index = self.sequence.index(step)
        return self.sequence[max(index - 1, 0)]

    def handles(self, step: Step) -> bool:
        return step in self._handlers

    # ------------------------------------------------------------------
    # Prompts
    # ------------------------------------------------------------------

    def keyboard_for(self, step: Step, language: str) -> Optional[Keyboard]:
        if step is Step.ASK_PHONE:
            return contact_keyboard(language)
        if step is Step.ASK_SECTION:
            return section_keyboard(language)
        if step is Step.ASK_MEDIA:
            return media_keyboard(language)
        if step is Step.ASK_CONFIRMATION:
            return confirmation_keyboard(language)
        if step in (Step.ASK_ADDRESS, Step.ASK_NATIONAL_ID, Step.ASK_SUMMARY):
            return back_keyboard(language)
        return None

    def prompt_for(self, step: Step, language: str, draft: Optional[Draft] = None) -> Reply:
        keyboard = self.keyboard_for(step, language)
        if step is Step.ASK_CONFIRMATION:
            return Reply(self.render_confirmation(draft or Draft(), language), keyboard)
        key = {
            Step.ASK_NAME: "askName",
            Step.ASK_ADDRESS: "askAddress",
            Step.ASK_PHONE: "askPhone",
            Step.ASK_NATIONAL_ID: "askNationalId",
            Step.ASK_SECTION: "askSection",
            Step.ASK_SUMMARY: "askSummary",
            Step.ASK_MEDIA: "askMedia",
            Step.EDIT_SUMMARY: "editComplaint",
        }[step]
        return Reply(t(language, key), keyboard)

    def render_confirmation(self, draft: Draft, language: str) -> str:
        national_id_line = ""
        if self.require_national_id and draft.national_id:
            national_id_line = t(language, "nationalIdLine", national_id=draft.national_id)
        media_count = (
            t(language, "mediaCount", count=len(draft.media)) if draft.media else t(language, "mediaNone")
        )
        return t(
            language,
            "confirm",
            full_name=draft.full_name or "",
            address=draft.address or "",
            phone=draft.phone or "",
            national_id_line=national_id_line,
            section=draft.section or "",
            summary=draft.summary or "",
            media_count=media_count,
        )

    # ------------------------------------------------------------------
    # Transition / apply
    # ------------------------------------------------------------------

    def transition(self, session: ConversationSession, event: InboundEvent) -> Transition:
        if event.callback_data == CB_CANCEL:
            return Transition(
                step=session.step,
                replies=[Reply(t(session.language, "cancelled"), remove_keyboard=True)],
                action=Action.CANCEL,
            )

        if self._is_back(event) and session.step in self.sequence:
            return self._back(session)

        handler = self._handlers.get(session.step)
        if handler is None:
            logger.debug("No wizard handler for step %s", session.step.value)
            return Transition(step=session.step)

        try:
            return handler(session, event)
        except InputValidationError as exc:
            logger.debug(
                "Rejected input for user %s at %s: %s", session.user_id, session.step.value, exc
            )
            return Transition(
                step=session.step,
                replies=[
                    Reply(
                        t(session.language, exc.message_key),
                        self.keyboard_for(session.step, session.language),
                    )
                ],
            )

    @staticmethod
    def apply(session: ConversationSession, transition: Transition) -> ConversationSession:
        if transition.reset_draft:
            session.draft = Draft()
        for name, value in transition.updates.items():
            setattr(session.draft, name, value)
        if transition.media is not None:
            session.draft.media.append(transition.media)
        session.step = transition.step
        return session

    # ------------------------------------------------------------------
    # Step handlers
    # ------------------------------------------------------------------

    @staticmethod
    def _is_back(event: InboundEvent) -> bool:
        return event.callback_data == CB_BACK or (event.text or "").strip() in BACK_TEXTS

    def _back(self, session: ConversationSession) -> Transition:
        target = self.previous_step(session.step)
        replies = []
        if session.step is Step.ASK_PHONE:
            # Leaving the reply-keyboard step
            replies.append(Reply(t(session.language, "back"), remove_keyboard=True))
        replies.append(self.prompt_for(target, session.language, session.draft))
        return Transition(step=target, replies=replies)

    def _advance(
        self,
        session: ConversationSession,
        updates: Dict[str, Any],
        leading: Optional[List[Reply]] = None,
    ) -> Transition:
        target = self.next_step(session.step)
        preview = replace(session.draft, **updates)
        replies = list(leading or [])
        replies.append(self.prompt_for(target, session.language, preview))
        return Transition(step=target, updates=updates, replies=replies)

    def _ignore_callback(self, session: ConversationSession, event: InboundEvent) -> Optional[Transition]:
        # Stray button presses from older messages are not step input
        if event.is_callback:
            return Transition(step=session.step)
        return None

    def _on_name(self, session: ConversationSession, event: InboundEvent) -> Transition:
        ignored = self._ignore_callback(session, event)
        if ignored:
            return ignored
        full_name = _require_text(event, NAME_MIN_LENGTH, "invalidName")
        return self._advance(session, {"full_name": full_name, "handle": event.handle})

    def _on_address(self, session: ConversationSession, event: InboundEvent) -> Transition:
        ignored = self._ignore_callback(session, event)
        if ignored:
            return ignored
        address = _require_text(event, ADDRESS_MIN_LENGTH, "invalidAddress")
        return self._advance(session, {"address": address})

    def _on_phone(self, session: ConversationSession, event: InboundEvent) -> Transition:
        ignored = self._ignore_callback(session, event)
        if ignored:
            return ignored
        if event.contact_phone:
            phone = event.contact_phone
        else:
            phone = (event.text or "").strip()
            if not PHONE_PATTERN.match(phone):
                raise InputValidationError("invalidPhone", f"bad phone {phone!r}")
        saved = Reply(t(session.language, "phoneSaved"), remove_keyboard=True)
        return self._advance(session, {"phone": phone}, leading=[saved])

    def _on_national_id(self, session: ConversationSession, event: InboundEvent) -> Transition:
        ignored = self._ignore_callback(session, event)
        if ignored:
            return ignored
        national_id = (event.text or "").strip()
        if not NATIONAL_ID_PATTERN.match(national_id):
            raise InputValidationError("invalidNationalId")
        return self._advance(session, {"national_id": national_id})

    def _on_section(self, session: ConversationSession, event: InboundEvent) -> Transition:
        data = event.callback_data or ""
        if not data.startswith(CB_SECTION_PREFIX):
            return Transition(step=session.step)
        tag = SECTION_KEY_TO_TAG.get(data[len(CB_SECTION_PREFIX):])
        if tag is None:
            return Transition(step=session.step)
        return self._advance(session, {"section": tag})

    def _on_summary(self, session: ConversationSession, event: InboundEvent) -> Transition:
        ignored = self._ignore_callback(session, event)
        if ignored:
            return ignored
        summary = _require_text(event, SUMMARY_MIN_LENGTH, "invalidSummary")
        return self._advance(session, {"summary": summary})

    def _on_media(self, session: ConversationSession, event: InboundEvent) -> Transition:
        if event.callback_data == CB_DONE or (event.text or "").strip() in DONE_TEXTS:
            return self._advance(session, {})
        if event.media is not None:
            return Transition(
                step=session.step,
                media=event.media,
                replies=[Reply(t(session.language, "mediaReceived"), media_keyboard(session.language))],
            )
        if event.is_callback:
            return Transition(step=session.step)
        raise InputValidationError("invalidMedia")

    def _on_confirmation(self, session: ConversationSession, event: InboundEvent) -> Transition:
        if event.callback_data == CB_SUBMIT:
            return Transition(step=session.step, action=Action.SUBMIT)
        if event.callback_data == CB_EDIT:
            return Transition(
                step=self.first_step,
                reset_draft=True,
                replies=[self.prompt_for(self.first_step, session.language)],
            )
        return Transition(step=session.step)

    def _on_edit_summary(self, session: ConversationSession, event: InboundEvent) -> Transition:
        ignored = self._ignore_callback(session, event)
        if ignored:
            return ignored
        summary = _require_text(event, SUMMARY_MIN_LENGTH, "invalidSummary")
        return Transition(step=session.step, updates={"summary": summary}, action=Action.SAVE_EDIT)
