"""Transport-neutral keyboard descriptions.

The wizard and admin router describe buttons with these small dataclasses;
the Telegram adapter turns them into inline or reply markup.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from .constants import (
    CB_BACK,
    CB_CANCEL,
    CB_DONE,
    CB_EDIT,
    CB_EXPORT,
    CB_FILTER_PREFIX,
    CB_LANGUAGE_PREFIX,
    CB_SECTION_PREFIX,
    CB_START_BROADCAST,
    CB_STATUS_PREFIX,
    CB_SUBMIT,
    CB_SEND_BROADCAST,
    CB_CANCEL_BROADCAST,
    SECTIONS,
    STATUS_EMOJI,
    STATUS_KEYS,
)
from .i18n import LANGUAGE_NAMES, SUPPORTED_LANGUAGES, t


@dataclass(frozen=True)
class Button:
    text: str
    data: Optional[str] = None
    # Reply-keyboard button asking the client to share its phone contact
    request_contact: bool = False


@dataclass
class Keyboard:
    rows: List[List[Button]] = field(default_factory=list)

    @property
    def requests_contact(self) -> bool:
        return any(button.request_contact for row in self.rows for button in row)

    def add_row(self, *buttons: Button) -> "Keyboard":
        self.rows.append(list(buttons))
        return self


def back_row(language: str) -> List[Button]:
    return [Button(t(language, "back"), CB_BACK)]


def back_keyboard(language: str) -> Keyboard:
    return Keyboard([back_row(language)])


def contact_keyboard(language: str) -> Keyboard:
    # Rendered as a reply keyboard, so Back arrives as plain text (BACK_TEXTS)
    return Keyboard(
        [
            [Button(t(language, "shareContact"), request_contact=True)],
            [Button(t(language, "back"))],
        ]
    )


def section_keyboard(language: str) -> Keyboard:
    keyboard = Keyboard()
    for key, label, _tag in SECTIONS:
        keyboard.add_row(Button(label, f"{CB_SECTION_PREFIX}{key}"))
    keyboard.add_row(*back_row(language))
    return keyboard


def media_keyboard(language: str) -> Keyboard:
    return Keyboard(
        [
            [Button(t(language, "doneButton"), CB_DONE)],
            back_row(language),
        ]
    )


def confirmation_keyboard(language: str) -> Keyboard:
    return Keyboard(
        [
            [
                Button(t(language, "submitButton"), CB_SUBMIT),
                Button(t(language, "editButton"), CB_EDIT),
            ],
            [Button(t(language, "cancelButton"), CB_CANCEL)],
        ]
    )


def language_keyboard() -> Keyboard:
    keyboard = Keyboard()
    for code in SUPPORTED_LANGUAGES:
        keyboard.add_row(Button(LANGUAGE_NAMES[code], f"{CB_LANGUAGE_PREFIX}{code}"))
    return keyboard


def dashboard_keyboard(language: str) -> Keyboard:
    keyboard = Keyboard()
    # Two section filters per row
    row: List[Button] = []
    for key, label, _tag in SECTIONS:
        row.append(Button(label, f"{CB_FILTER_PREFIX}{key}"))
        if len(row) == 2:
            keyboard.add_row(*row)
            row = []
    if row:
        keyboard.add_row(*row)
    keyboard.add_row(Button(t(language, "exportReport"), CB_EXPORT))
    keyboard.add_row(Button(t(language, "broadcastButton"), CB_START_BROADCAST))
    return keyboard


def status_keyboard(complaint_id: str) -> Keyboard:
    buttons = [
        Button(f"{STATUS_EMOJI[status]} {status.value}", f"{CB_STATUS_PREFIX}{key}:{complaint_id}")
        for status, key in STATUS_KEYS.items()
    ]
    return Keyboard([buttons])


def broadcast_keyboard(language: str) -> Keyboard:
    return Keyboard(
        [
            [Button(t(language, "broadcastSendButton"), CB_SEND_BROADCAST)],
            [Button(t(language, "cancelButton"), CB_CANCEL_BROADCAST)],
        ]
    )


def broadcast_prompt_keyboard(language: str) -> Keyboard:
    return Keyboard([[Button(t(language, "cancelButton"), CB_CANCEL_BROADCAST)]])
