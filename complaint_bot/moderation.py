"""Offensive-language filter for free-text input."""

from typing import Iterable, Optional, Tuple

# Uzbek, Russian and English profanity. Matching is a case-insensitive
# substring test, so very short or everyday tokens ("it", "nol", "sovuq")
# are left out to avoid rejecting ordinary complaints.
DEFAULT_BLOCKED_WORDS: Tuple[str, ...] = (
    # Uzbek
    "ahmoq", "axmoq", "aniq axmoq", "jinni", "tentak", "g‘irt tentak", "johil",
    "yaramas", "harom", "haromi", "noshud", "itvachcha", "pastkash", "gandon",
    "shayton", "shaytonvachcha", "besharm", "besharmcha", "yebsan", "kaltak",
    "sikki", "sikkina", "sikaman", "sikildim", "sikdir", "siktir", "sikvoy",
    "sikay", "sikadi", "sikadiyam", "sikka", "sikdirish", "sikuvor",
    "qotib qol", "bosib ket", "ebsan", "jeb", "jebsan", "jebsang", "jebvor",
    "emchak", "emchakvoy", "pissa",
    # English
    "fuck", "shit", "asshole",
    # Russian
    "дурак", "идиот", "тупой", "сволочь", "мудак", "ублюдок", "сука", "блядь",
    "хуй", "пизда", "ебан", "ебаный", "гондон", "залупа", "пидор", "пидорас",
    "нахуй", "ебать", "ебался", "ёб", "ёбана", "еблан", "мразь", "уебище",
    "хуесос", "жопа", "жополиз", "бля", "блят", "соси", "чмо", "даун",
    "шалава", "нахер", "нахрен",
)


class ModerationFilter:
    """Case-insensitive substring matcher over a fixed word list."""

    def __init__(self, words: Iterable[str] = DEFAULT_BLOCKED_WORDS):
        self._words = tuple(sorted({w.casefold() for w in words if w and w.strip()}))

    @classmethod
    def with_extra_words(cls, extra: Iterable[str]) -> "ModerationFilter":
        return cls(DEFAULT_BLOCKED_WORDS + tuple(extra))

    def find_match(self, text: Optional[str]) -> Optional[str]:
        """Return the first blocked word contained in `text`, if any."""
        if not text:
            return None
        lowered = text.casefold()
        for word in self._words:
            if word in lowered:
                return word
        return None

    def is_offensive(self, text: Optional[str]) -> bool:
        return self.find_match(text) is not None

    def __len__(self) -> int:
        return len(self._words)
