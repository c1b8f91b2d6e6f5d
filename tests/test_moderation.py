from complaint_bot.moderation import DEFAULT_BLOCKED_WORDS, ModerationFilter


def test_match_is_case_insensitive_substring():
    moderation = ModerationFilter()
    assert moderation.is_offensive("Siz AHMOQsiz!")
    assert moderation.find_match("Ты ДУРАК") == "дурак"


def test_clean_text_passes():
    moderation = ModerationFilter()
    assert not moderation.is_offensive("Yo‘l buzilgan, iltimos ta'mirlang")
    assert not moderation.is_offensive(None)
    assert not moderation.is_offensive("")


def test_short_everyday_tokens_are_not_blocked():
    moderation = ModerationFilter()
    # "it", "nol" and "sovuq" used to match inside ordinary words
    assert not moderation.is_offensive("Kitob do'konida issiq suv yo'q, uyda sovuq")
    assert not moderation.is_offensive("Manzil: Chilanzor, 10-uy, nol qavat")


def test_extra_words_extend_default_list():
    moderation = ModerationFilter.with_extra_words(["spamword", "  "])
    assert moderation.is_offensive("this is SPAMWORD")
    assert moderation.is_offensive("fuck")
    assert len(moderation) == len(set(DEFAULT_BLOCKED_WORDS)) + 1
