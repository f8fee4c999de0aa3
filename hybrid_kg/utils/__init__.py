"""
Utilities

Modules:
    text: Entity-name normalization and mention matching
    deadline: Timeout race for provider calls
"""

from hybrid_kg.utils.deadline import run_with_deadline
from hybrid_kg.utils.text import (
    MIN_MENTION_LENGTH,
    clean_entity_name,
    find_mentions,
    normalize_name,
    normalize_relationship_type,
)

__all__ = [
    "MIN_MENTION_LENGTH",
    "clean_entity_name",
    "find_mentions",
    "normalize_name",
    "normalize_relationship_type",
    "run_with_deadline",
]
