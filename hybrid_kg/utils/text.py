"""
Text Utilities

Entity-name normalization and the substring fallback used by retrieval.

Identity keys are built from the cleaned, case-folded name so that
"OpenAI", "openai " and "OpenAI (company)" all merge into one node.
"""

import re

# Shortest entity name the substring fallback will match
MIN_MENTION_LENGTH = 3

_PARENTHETICAL = re.compile(r"\s*\([^)]*\)")
_WHITESPACE = re.compile(r"\s+")
_LABEL_SEPARATORS = re.compile(r"[^0-9A-Za-z]+")


def clean_entity_name(name: str) -> str:
    """
    Produce the display form of an entity name.

    Drops parenthetical qualifiers, collapses whitespace and strips
    surrounding quotes and trailing punctuation.

    Examples:
        >>> clean_entity_name("  OpenAI   (company) ")
        'OpenAI'
        >>> clean_entity_name('"Sam  Altman".')
        'Sam Altman'
    """
    cleaned = _PARENTHETICAL.sub("", name)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    # Repeat until stable so cleaning a cleaned name is a no-op ("'.'" -> "")
    previous = None
    while cleaned != previous:
        previous = cleaned
        cleaned = cleaned.rstrip(".,;:").strip("\"'`").strip()
    return cleaned


def normalize_name(name: str) -> str:
    """Identity form of an entity name (cleaned and case-folded)."""
    return clean_entity_name(name).casefold()


def normalize_relationship_type(label: str) -> str:
    """
    Normalize a relationship label to UPPER_SNAKE.

    Examples:
        >>> normalize_relationship_type("partnered with")
        'PARTNERED_WITH'
        >>> normalize_relationship_type("ceo-of")
        'CEO_OF'
    """
    return _LABEL_SEPARATORS.sub("_", label.strip()).strip("_").upper()


def find_mentions(
    text: str,
    names: list[str],
    min_length: int = MIN_MENTION_LENGTH,
) -> list[str]:
    """
    Return the names that occur in `text` as whole words, ignoring case.

    Names shorter than `min_length` are skipped; they match too much
    unrelated text. Order follows `names`.
    """
    found: list[str] = []
    for name in names:
        if len(name.strip()) < min_length:
            continue
        pattern = rf"(?<!\w){re.escape(name.strip())}(?!\w)"
        if re.search(pattern, text, flags=re.IGNORECASE):
            found.append(name)
    return found
