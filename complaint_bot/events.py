"""Inbound event model and the outbound transport contract.

The core only ever sees `InboundEvent` objects and talks back through a
`Transport`; `telegram_transport` adapts both to python-telegram-bot.
"""

from typing import List, Optional, Protocol

from pydantic import BaseModel

from .constants import COMMAND_PREFIX
from .keyboards import Keyboard
from .sessions import MediaItem


class InboundEvent(BaseModel):
    user_id: str
    chat_id: str
    chat_type: str = "private"
    handle: Optional[str] = None
    text: Optional[str] = None
    # Phone number from a shared contact card
    contact_phone: Optional[str] = None
    media: Optional[MediaItem] = None
    callback_data: Optional[str] = None
    callback_id: Optional[str] = None

    @property
    def is_private(self) -> bool:
        return self.chat_type == "private"

    @property
    def is_callback(self) -> bool:
        return self.callback_data is not None

    @property
    def is_command(self) -> bool:
        return bool(self.text) and self.text.lstrip().startswith(COMMAND_PREFIX)

    @property
    def command(self) -> Optional[str]:
        """Lower-cased command name without the prefix or a trailing @botname."""
        if not self.is_command:
            return None
        head = self.text.strip().split(maxsplit=1)[0][len(COMMAND_PREFIX):]
        return head.split("@", 1)[0].lower()

    @property
    def args(self) -> List[str]:
        if not self.is_command:
            return []
        return self.text.strip().split()[1:]

    @property
    def free_text(self) -> Optional[str]:
        """Text that is subject to moderation: anything typed that is not a command."""
        if self.text and not self.is_command:
            return self.text
        return None


class Transport(Protocol):
    """Outbound messaging operations. Sends raise `DeliveryError` on failure."""

    async def send_text(
        self,
        chat_id: str,
        text: str,
        keyboard: Optional[Keyboard] = None,
        html: bool = False,
        remove_keyboard: bool = False,
    ) -> None: ...

    async def send_photo(self, chat_id: str, ref: str, caption: Optional[str] = None) -> None: ...

    async def send_video(self, chat_id: str, ref: str, caption: Optional[str] = None) -> None: ...

    async def send_document(
        self, chat_id: str, filename: str, content: bytes, caption: Optional[str] = None
    ) -> None: ...

    async def answer_callback(self, callback_id: str, text: Optional[str] = None) -> None: ...

    async def check_chat(self, chat_id: str) -> bool: ...
