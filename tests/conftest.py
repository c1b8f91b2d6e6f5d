from dataclasses import dataclass
from typing import List, Optional, Set, Tuple

import pytest
import pytest_asyncio

from complaint_bot.core import ComplaintBotCore
from complaint_bot.database import create_engine, create_session_factory, init_db
from complaint_bot.errors import DeliveryError
from complaint_bot.events import InboundEvent
from complaint_bot.keyboards import Keyboard
from complaint_bot.repository import ComplaintRepository
from complaint_bot.sessions import MediaItem

ADMIN_ID = "900"
GROUP_ID = "-100500"
USER_ID = "42"


@dataclass
class Sent:
    chat_id: str
    kind: str
    body: str
    keyboard: Optional[Keyboard] = None
    caption: Optional[str] = None


class FakeTransport:
    """Records every outbound call; can be told to fail for chosen targets."""

    def __init__(self):
        self.sent: List[Sent] = []
        self.answered: List[str] = []
        self.fail_targets: Set[str] = set()
        self.fail_items: Set[Tuple[str, str]] = set()
        self.chat_ok = True

    def _check(self, chat_id: str, kind: str) -> None:
        if chat_id in self.fail_targets or (chat_id, kind) in self.fail_items:
            raise DeliveryError(chat_id, kind, "chat not found")

    async def send_text(self, chat_id, text, keyboard=None, html=False, remove_keyboard=False):
        self._check(chat_id, "text")
        self.sent.append(Sent(chat_id, "text", text, keyboard))

    async def send_photo(self, chat_id, ref, caption=None):
        self._check(chat_id, "photo")
        self.sent.append(Sent(chat_id, "photo", ref, caption=caption))

    async def send_video(self, chat_id, ref, caption=None):
        self._check(chat_id, "video")
        self.sent.append(Sent(chat_id, "video", ref, caption=caption))

    async def send_document(self, chat_id, filename, content, caption=None):
        self._check(chat_id, "document")
        self.sent.append(Sent(chat_id, "document", filename))

    async def answer_callback(self, callback_id, text=None):
        self.answered.append(callback_id)

    async def check_chat(self, chat_id):
        return self.chat_ok

    def to(self, chat_id: str, kind: Optional[str] = None) -> List[Sent]:
        return [s for s in self.sent if s.chat_id == chat_id and (kind is None or s.kind == kind)]

    def texts_to(self, chat_id: str) -> List[str]:
        return [s.body for s in self.to(chat_id, "text")]

    def last_text_to(self, chat_id: str) -> str:
        texts = self.texts_to(chat_id)
        assert texts, f"nothing was sent to {chat_id}"
        return texts[-1]

    def clear(self) -> None:
        self.sent.clear()
        self.answered.clear()


def make_event(
    text: Optional[str] = None,
    user_id: str = USER_ID,
    *,
    callback: Optional[str] = None,
    contact: Optional[str] = None,
    photo: Optional[str] = None,
    video: Optional[str] = None,
    chat_type: str = "private",
    handle: Optional[str] = "citizen",
) -> InboundEvent:
    media = None
    if photo:
        media = MediaItem(kind="photo", ref=photo)
    elif video:
        media = MediaItem(kind="video", ref=video)
    return InboundEvent(
        user_id=user_id,
        chat_id=user_id,
        chat_type=chat_type,
        handle=handle,
        text=text,
        contact_phone=contact,
        media=media,
        callback_data=callback,
        callback_id=f"cb-{callback}" if callback else None,
    )


@pytest.fixture
def event():
    return make_event


@pytest_asyncio.fixture
async def engine():
    engine = create_engine("sqlite+aiosqlite://")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def repository(engine):
    return ComplaintRepository(create_session_factory(engine))


@pytest.fixture
def transport():
    return FakeTransport()


@pytest_asyncio.fixture
async def core(repository, transport):
    return ComplaintBotCore(repository, transport, [ADMIN_ID], GROUP_ID)


async def run_wizard(core, user_id: str = USER_ID, photos=("photo-1",), section: str = "roads") -> None:
    """Drive one user through the whole intake wizard up to the confirmation step."""
    await core.handle_inbound_event(make_event("/start", user_id))
    await core.handle_inbound_event(make_event("Ali Valiev", user_id))
    await core.handle_inbound_event(make_event("Toshkent, Chilanzor", user_id))
    await core.handle_inbound_event(make_event("+998901234567", user_id))
    await core.handle_inbound_event(make_event(user_id=user_id, callback=f"section:{section}"))
    await core.handle_inbound_event(make_event("Ko'chada chiroq yonmayapti", user_id))
    for ref in photos:
        await core.handle_inbound_event(make_event(user_id=user_id, photo=ref))
    await core.handle_inbound_event(make_event(user_id=user_id, callback="ready"))
