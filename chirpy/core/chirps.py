import re

MAX_CHIRP_LENGTH = 140
PROFANE_WORDS = ("kerfuffle", "sharbert", "fornax")
MASK = "****"

# A profane word directly followed by punctuation is left alone. Adjacent
# occurrences ("fornaxfornax") are each masked.
_PROFANITY_RE = re.compile(
    r"(?:%s)(?![!?,.;:])" % "|".join(re.escape(w) for w in PROFANE_WORDS),
    re.IGNORECASE,
)


def validate_chirp_length(body: str) -> bool:
    return len(body) <= MAX_CHIRP_LENGTH


def replace_profane(body: str) -> str:
    """Mask profane words, case-insensitively, wherever they occur in ``body``."""
    return _PROFANITY_RE.sub(MASK, body)
