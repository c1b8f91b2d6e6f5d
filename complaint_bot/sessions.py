"""In-memory conversation sessions keyed by user id."""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Literal, Optional
import logging
import time

from pydantic import BaseModel

from .constants import Step
from .i18n import PRIMARY_LANGUAGE

logger = logging.getLogger(__name__)


class MediaItem(BaseModel):
    kind: Literal["photo", "video"]
    ref: str


@dataclass
class Draft:
    """Partially collected complaint fields."""

    full_name: Optional[str] = None
    handle: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    national_id: Optional[str] = None
    section: Optional[str] = None
    summary: Optional[str] = None
    media: List[MediaItem] = field(default_factory=list)
    # Edit path: the complaint whose summary is being replaced
    complaint_id: Optional[str] = None
    # Admin broadcast path: captured text awaiting confirmation
    broadcast_message: Optional[str] = None


@dataclass
class ConversationSession:
    user_id: str
    step: Step
    draft: Draft = field(default_factory=Draft)
    language: str = PRIMARY_LANGUAGE
    updated_at: float = 0.0


class SessionStore:
    """Process-local session store.

    Sessions are not persisted; a restart drops every in-flight wizard. The
    user's language choice is kept separately so it survives session
    teardown for the life of the process.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        default_language: str = PRIMARY_LANGUAGE,
    ):
        self.ttl_seconds = ttl_seconds
        self.default_language = default_language
        self._clock = clock
        self._sessions: Dict[str, ConversationSession] = {}
        self._languages: Dict[str, str] = {}

    def get(self, user_id: str) -> Optional[ConversationSession]:
        session = self._sessions.get(user_id)
        if session is None:
            return None
        if self.ttl_seconds and self._clock() - session.updated_at > self.ttl_seconds:
            logger.info("Evicting idle session for user %s at step %s", user_id, session.step.value)
            del self._sessions[user_id]
            return None
        return session

    def set(self, session: ConversationSession) -> None:
        session.updated_at = self._clock()
        self._sessions[session.user_id] = session

    def delete(self, user_id: str) -> None:
        self._sessions.pop(user_id, None)

    def start(self, user_id: str, step: Step, draft: Optional[Draft] = None) -> ConversationSession:
        """Create (or replace) a session in the user's remembered language."""
        session = ConversationSession(
            user_id=user_id,
            step=step,
            draft=draft or Draft(),
            language=self.language_for(user_id),
        )
        self.set(session)
        return session

    def language_for(self, user_id: str) -> str:
        return self._languages.get(user_id, self.default_language)

    def set_language(self, user_id: str, language: str) -> None:
        self._languages[user_id] = language
        session = self._sessions.get(user_id)
        if session is not None:
            session.language = language

    def evict_idle(self) -> int:
        """Drop every session idle longer than the TTL. Returns the count."""
        if not self.ttl_seconds:
            return 0
        now = self._clock()
        stale = [uid for uid, s in self._sessions.items() if now - s.updated_at > self.ttl_seconds]
        for uid in stale:
            del self._sessions[uid]
        if stale:
            logger.info("Evicted %d idle sessions", len(stale))
        return len(stale)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, user_id: str) -> bool:
        return self.get(user_id) is not None
