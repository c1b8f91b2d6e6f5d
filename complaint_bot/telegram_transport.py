"""python-telegram-bot adapter: Updates in, Bot calls out."""

import logging
from typing import Optional, Union

from telegram import (
    Bot,
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    KeyboardButton,
    ReplyKeyboardMarkup,
    ReplyKeyboardRemove,
    Update,
)
from telegram.constants import ChatMemberStatus, ParseMode
from telegram.error import TelegramError
from telegram.ext import ContextTypes

from .errors import DeliveryError
from .events import InboundEvent
from .keyboards import Keyboard
from .sessions import MediaItem

logger = logging.getLogger(__name__)

Markup = Union[InlineKeyboardMarkup, ReplyKeyboardMarkup, ReplyKeyboardRemove]


def update_to_event(update: Update) -> Optional[InboundEvent]:
    """Convert a Telegram update into a core event, or None if it carries nothing we handle."""
    user = update.effective_user
    chat = update.effective_chat
    if user is None or chat is None:
        return None

    base = {
        "user_id": str(user.id),
        "chat_id": str(chat.id),
        "chat_type": str(chat.type),
        "handle": user.username,
    }

    query = update.callback_query
    if query is not None:
        return InboundEvent(**base, callback_data=query.data or "", callback_id=query.id)

    message = update.effective_message
    if message is None:
        return None

    media = None
    if message.photo:
        # Largest rendition is last
        media = MediaItem(kind="photo", ref=message.photo[-1].file_id)
    elif message.video:
        media = MediaItem(kind="video", ref=message.video.file_id)

    return InboundEvent(
        **base,
        text=message.text,
        contact_phone=message.contact.phone_number if message.contact else None,
        media=media,
    )


def to_markup(keyboard: Optional[Keyboard], remove_keyboard: bool = False) -> Optional[Markup]:
    if keyboard is not None and keyboard.requests_contact:
        return ReplyKeyboardMarkup(
            [
                [KeyboardButton(button.text, request_contact=button.request_contact) for button in row]
                for row in keyboard.rows
            ],
            resize_keyboard=True,
            one_time_keyboard=True,
        )
    if keyboard is not None:
        return InlineKeyboardMarkup(
            [
                [InlineKeyboardButton(button.text, callback_data=button.data) for button in row]
                for row in keyboard.rows
            ]
        )
    if remove_keyboard:
        return ReplyKeyboardRemove()
    return None


class TelegramTransport:
    """Implements the core Transport contract on top of telegram.Bot."""

    def __init__(self, bot: Bot):
        self.bot = bot

    async def send_text(
        self,
        chat_id: str,
        text: str,
        keyboard: Optional[Keyboard] = None,
        html: bool = False,
        remove_keyboard: bool = False,
    ) -> None:
        try:
            await self.bot.send_message(
                chat_id=chat_id,
                text=text,
                parse_mode=ParseMode.HTML if html else None,
                reply_markup=to_markup(keyboard, remove_keyboard),
            )
        except TelegramError as exc:
            raise DeliveryError(chat_id, "text", str(exc)) from exc

    async def send_photo(self, chat_id: str, ref: str, caption: Optional[str] = None) -> None:
        try:
            await self.bot.send_photo(chat_id=chat_id, photo=ref, caption=caption)
        except TelegramError as exc:
            raise DeliveryError(chat_id, "photo", str(exc)) from exc

    async def send_video(self, chat_id: str, ref: str, caption: Optional[str] = None) -> None:
        try:
            await self.bot.send_video(chat_id=chat_id, video=ref, caption=caption)
        except TelegramError as exc:
            raise DeliveryError(chat_id, "video", str(exc)) from exc

    async def send_document(
        self, chat_id: str, filename: str, content: bytes, caption: Optional[str] = None
    ) -> None:
        try:
            await self.bot.send_document(chat_id=chat_id, document=content, filename=filename, caption=caption)
        except TelegramError as exc:
            raise DeliveryError(chat_id, "document", str(exc)) from exc

    async def answer_callback(self, callback_id: str, text: Optional[str] = None) -> None:
        try:
            await self.bot.answer_callback_query(callback_query_id=callback_id, text=text)
        except TelegramError as exc:
            raise DeliveryError("callback", callback_id, str(exc)) from exc

    async def check_chat(self, chat_id: str) -> bool:
        """True while the bot is still a member of `chat_id`."""
        try:
            member = await self.bot.get_chat_member(chat_id=chat_id, user_id=self.bot.id)
        except TelegramError as exc:
            logger.warning("Could not inspect chat %s: %s", chat_id, exc)
            return False
        return member.status not in (ChatMemberStatus.LEFT, ChatMemberStatus.BANNED)


def make_update_handler(core):
    """Build the PTB callback that forwards every update to `core`."""

    async def handle_update(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        event = update_to_event(update)
        if event is None:
            return
        await core.handle_inbound_event(event)

    return handle_update
