"""
Content Filter.

Detects personal information and toxic language in user-supplied text
(pseudos today). Pure functions, no state:
- contains_personal_info: phone numbers, emails, addresses, postal codes,
  social-security numbers, card numbers, birth dates
- contains_toxic_content: insult/slur word list plus threat and harassment phrases
"""

import re

PERSONAL_INFO_PATTERNS = [
    # French phone numbers
    re.compile(r"(\+33|0)[1-9](\d{8}|\s\d{2}\s\d{2}\s\d{2}\s\d{2})"),
    # Email addresses
    re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
    # Street addresses
    re.compile(r"\b\d+\s+(rue|avenue|boulevard|place|impasse|allée|chemin|route)\s+", re.IGNORECASE),
    # Postal codes
    re.compile(r"\b\d{5}\b"),
    # Social-security numbers (approximate)
    re.compile(r"\b[12]\d{2}(0[1-9]|1[0-2])\d{8}\b"),
    # Card numbers
    re.compile(r"\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}\b"),
    # Birth dates
    re.compile(r"\b(0[1-9]|[12]\d|3[01])[/\-](0[1-9]|1[0-2])[/\-](19|20)\d{2}\b"),
]

TOXIC_WORDS = [
    # Common insults
    "connard", "salope", "pute", "merde", "putain", "con", "conne",
    "enculé", "bâtard", "fils de pute", "ta mère", "fdp",
    # Slurs
    "pédé", "tapette", "négro", "bougnoule", "youpin", "raton",
    # Hate
    "nazi", "hitler", "mort aux", "crève", "suicide",
    # Explicit
    "bite", "chatte", "cul", "sexe", "baiser", "niquer",
]

# Whole-word match so "con" does not reject "Falcon"
_TOXIC_WORD_PATTERNS = [
    re.compile(rf"(?<!\w){re.escape(word)}(?!\w)", re.IGNORECASE) for word in TOXIC_WORDS
]

TOXIC_PATTERNS = [
    # Threats
    re.compile(r"je vais te (tuer|buter|niquer|défoncer)", re.IGNORECASE),
    # Incitement to violence
    re.compile(r"(mort|crève|suicide|tue-toi)", re.IGNORECASE),
    # Harassment
    re.compile(r"(ferme ta gueule|ta gueule|dégage|casse-toi)", re.IGNORECASE),
]


def contains_personal_info(text: str) -> bool:
    """True if the text contains anything that looks like personal information."""
    if not text or not isinstance(text, str):
        return False
    return any(pattern.search(text) for pattern in PERSONAL_INFO_PATTERNS)


def contains_toxic_content(text: str) -> bool:
    """True if the text contains a listed word or a toxic phrase."""
    if not text or not isinstance(text, str):
        return False
    if any(pattern.search(text) for pattern in _TOXIC_WORD_PATTERNS):
        return True
    return any(pattern.search(text) for pattern in TOXIC_PATTERNS)


def is_clean(text: str) -> bool:
    return not contains_personal_info(text) and not contains_toxic_content(text)


def clean_text(text: str) -> str:
    """Mask personal info with *** and toxic words with asterisks of equal length."""
    if not text or not isinstance(text, str):
        return text

    cleaned = text
    for pattern in PERSONAL_INFO_PATTERNS:
        cleaned = pattern.sub("***", cleaned)
    for word, pattern in zip(TOXIC_WORDS, _TOXIC_WORD_PATTERNS):
        cleaned = pattern.sub("*" * len(word), cleaned)
    return cleaned


def get_safety_tips(text: str) -> list[str]:
    tips = []
    if contains_personal_info(text):
        tips.append("Avoid sharing personal information such as your phone number, address or email.")
    if contains_toxic_content(text):
        tips.append("Let's keep our exchanges respectful and kind.")
        tips.append("If you feel angry, take a break before replying.")
    return tips


def analyze_content(text: str) -> dict:
    """Full analysis of a piece of text."""
    has_personal_info = contains_personal_info(text)
    has_toxic_content = contains_toxic_content(text)
    return {
        "has_personal_info": has_personal_info,
        "has_toxic_content": has_toxic_content,
        "cleaned_text": clean_text(text),
        "safety_tips": get_safety_tips(text),
        "is_appropriate": not has_personal_info and not has_toxic_content,
    }
