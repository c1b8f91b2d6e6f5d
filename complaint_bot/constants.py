"""Constants for the complaint intake bot.

Single source of truth for wizard steps, section tags, complaint statuses,
callback payloads and the small validation patterns used by the wizard.
"""

from enum import Enum
from typing import Dict, List, Optional, Tuple
import re

# ---------------------------------------------------------------------------
# Wizard steps
# ---------------------------------------------------------------------------


class Step(str, Enum):
    """Closed set of conversation positions."""

    ASK_NAME = "ask_name"
    ASK_ADDRESS = "ask_address"
    ASK_PHONE = "ask_phone"
    ASK_NATIONAL_ID = "ask_national_id"
    ASK_SECTION = "ask_section"
    ASK_SUMMARY = "ask_summary"
    ASK_MEDIA = "ask_media"
    ASK_CONFIRMATION = "ask_confirmation"
    # Entered through /edit <id>, not part of the linear flow
    EDIT_SUMMARY = "edit_summary"
    # Admin-only: capturing the text of a broadcast
    BROADCAST = "broadcast"


# Linear order of the intake wizard. ASK_NATIONAL_ID is dropped when the
# deployment does not require it.
WIZARD_SEQUENCE: List[Step] = [
    Step.ASK_NAME,
    Step.ASK_ADDRESS,
    Step.ASK_PHONE,
    Step.ASK_NATIONAL_ID,
    Step.ASK_SECTION,
    Step.ASK_SUMMARY,
    Step.ASK_MEDIA,
    Step.ASK_CONFIRMATION,
]

# ---------------------------------------------------------------------------
# Complaint status
# ---------------------------------------------------------------------------


class ComplaintStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"


STATUS_KEYS: Dict[ComplaintStatus, str] = {
    ComplaintStatus.PENDING: "pending",
    ComplaintStatus.IN_PROGRESS: "in_progress",
    ComplaintStatus.RESOLVED: "resolved",
}
STATUS_EMOJI: Dict[ComplaintStatus, str] = {
    ComplaintStatus.PENDING: "⏳",
    ComplaintStatus.IN_PROGRESS: "🔄",
    ComplaintStatus.RESOLVED: "✅",
}
DEFAULT_STATUS = ComplaintStatus.PENDING


def parse_status(value: Optional[str]) -> Optional[ComplaintStatus]:
    """Map admin input ("In Progress", "in_progress", "resolved") to a status.

    Returns None for anything outside the three-state set.
    """
    if not value:
        return None
    normalized = " ".join(value.split()).lower()
    for status, key in STATUS_KEYS.items():
        if normalized in (status.value.lower(), key):
            return status
    return None


# ---------------------------------------------------------------------------
# Sections
# (callback key, button label, stored section tag)
# ---------------------------------------------------------------------------
SECTIONS: List[Tuple[str, str, str]] = [
    ("roads", "🛣 Yo‘l qurilishi", "Yo‘l qurilishi"),
    ("education", "🏫 Ta‘lim", "Ta‘lim"),
    ("aid", "🆘 Amaliy yordam", "Amaliy yordam"),
    ("health", "🏥 Sog‘liqni saqlash", "Sog‘liqni saqlash"),
    ("housing", "🏘 Uy-joy masalalari", "Uy-joy masalalari"),
    ("water", "💧 Ichimlik suvi", "Ichimlik suvi"),
    ("sewage", "🚰 Kanalizatsiya", "Kanalizatsiya"),
    ("power", "💡 Elektr ta’minoti", "Elektr ta’minoti"),
    ("internet", "📶 Internet va aloqa", "Internet va aloqa"),
    ("agriculture", "🚜 Qishloq xo‘jaligi", "Qishloq xo‘jaligi"),
    ("social", "🛍 Ijtimoiy yordam", "Ijtimoiy yordam"),
    ("employment", "🧑‍💼 Ish bilan ta’minlash", "Ish bilan ta’minlash"),
    ("security", "🚓 Xavfsizlik masalalari", "Xavfsizlik masalalari"),
    ("disability", "♿️ Nogironligi bo‘lganlar", "Nogironligi bo‘lganlar"),
    ("documents", "🧾 Hujjatlar bilan bog‘liq muammolar", "Hujjatlar bilan bog‘liq muammolar"),
    ("gratitude", "🙏 Minnatdorchilik", "Minnatdorchilik"),
    ("other", "📌 Boshqa soha", "Boshqa soha"),
]
SECTION_KEY_TO_TAG: Dict[str, str] = {key: tag for key, _label, tag in SECTIONS}
FALLBACK_SECTION_TAG = "Boshqa"

# ---------------------------------------------------------------------------
# Callback payloads
# Prefixed payloads use ':' because composite complaint ids contain '_'.
# ---------------------------------------------------------------------------
CB_BACK = "back"
CB_CANCEL = "cancel"
CB_DONE = "ready"
CB_SUBMIT = "submit"
CB_EDIT = "edit"
CB_SECTION_PREFIX = "section:"
CB_LANGUAGE_PREFIX = "lang:"
CB_FILTER_PREFIX = "filter:"
CB_STATUS_PREFIX = "status:"
CB_EXPORT = "export_report"
CB_START_BROADCAST = "start_broadcast"
CB_SEND_BROADCAST = "send_broadcast"
CB_CANCEL_BROADCAST = "cancel_broadcast"


# ---------------------------------------------------------------------------
# Validation patterns
# ---------------------------------------------------------------------------
PHONE_PATTERN = re.compile(r"^\+998[0-9]{9}$")
NATIONAL_ID_PATTERN = re.compile(r"^[A-Z]{2}[0-9]{7}$")
# The name prompt promises "more than 3 characters"
NAME_MIN_LENGTH = 4
ADDRESS_MIN_LENGTH = 3
SUMMARY_MIN_LENGTH = 5

COMMAND_PREFIX = "/"

# Complaint id strategies
ID_SCHEME_COMPOSITE = "composite"
ID_SCHEME_SHORT = "short"
ID_SCHEMES = (ID_SCHEME_COMPOSITE, ID_SCHEME_SHORT)

# Rows older than this many days are highlighted in exports
STALE_COMPLAINT_DAYS = 3

__all__ = [
    "Step",
    "WIZARD_SEQUENCE",
    "ComplaintStatus",
    "STATUS_KEYS",
    "STATUS_EMOJI",
    "DEFAULT_STATUS",
    "parse_status",
    "SECTIONS",
    "SECTION_KEY_TO_TAG",
    "FALLBACK_SECTION_TAG",
    "CB_BACK",
    "CB_CANCEL",
    "CB_DONE",
    "CB_SUBMIT",
    "CB_EDIT",
    "CB_SECTION_PREFIX",
    "CB_LANGUAGE_PREFIX",
    "CB_FILTER_PREFIX",
    "CB_STATUS_PREFIX",
    "CB_EXPORT",
    "CB_START_BROADCAST",
    "CB_SEND_BROADCAST",
    "CB_CANCEL_BROADCAST",
    "PHONE_PATTERN",
    "NATIONAL_ID_PATTERN",
    "NAME_MIN_LENGTH",
    "ADDRESS_MIN_LENGTH",
    "SUMMARY_MIN_LENGTH",
    "COMMAND_PREFIX",
    "ID_SCHEME_COMPOSITE",
    "ID_SCHEME_SHORT",
    "ID_SCHEMES",
    "STALE_COMPLAINT_DAYS",
]
