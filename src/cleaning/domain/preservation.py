"""Pure preservation predicate used before any removal.

The rule engine computes :class:`NodeFacts` for a matched element and asks
:func:`decide_removal` whether it may go. Nothing here touches a parsed
document, so the decisions can be tested with plain values.
"""

from dataclasses import dataclass
from typing import Literal

LANDMARK_TAGS: frozenset[str] = frozenset({"main", "article"})
LANDMARK_IDS: frozenset[str] = frozenset({"MainContent"})
LANDMARK_CLASSES: frozenset[str] = frozenset({"main-content", "content"})
LANDMARK_ROLES: frozenset[str] = frozenset({"main"})

STRUCTURAL_TAGS: tuple[str, ...] = ("h1", "h2", "h3", "p", "article", "table")

SUBSTANTIAL_TEXT_CHARS = 300
SUBSTANTIAL_MIN_WORDS = 50
SUBSTANTIAL_UNIQUE_RATIO = 0.5
STRUCTURAL_MIN_DESCENDANTS = 3
DATA_TABLE_MIN_CHARS = 100

PreserveReason = Literal[
    "already_preserved",
    "contains_preserved",
    "landmark",
    "substantial_text",
    "structural_content",
    "data_table",
]


@dataclass(frozen=True)
class NodeFacts:
    tag_name: str
    element_id: str | None = None
    classes: tuple[str, ...] = ()
    role: str | None = None
    text_length: int = 0
    word_count: int = 0
    unique_word_ratio: float = 0.0
    structural_descendants: int = 0
    first_table_text_length: int | None = None
    is_preserved: bool = False
    guards_preserved: bool = False


@dataclass(frozen=True)
class RemovalDecision:
    remove: bool
    reason: PreserveReason | None = None


def word_stats(text: str) -> tuple[int, float]:
    """Return ``(word_count, unique_word_ratio)`` for whitespace-split text."""
    words = text.split()
    if not words:
        return 0, 0.0
    unique = {word.lower() for word in words}
    return len(words), len(unique) / len(words)


def is_landmark(facts: NodeFacts) -> bool:
    if facts.tag_name.lower() in LANDMARK_TAGS:
        return True
    if facts.role is not None and facts.role.lower() in LANDMARK_ROLES:
        return True
    if facts.element_id in LANDMARK_IDS:
        return True
    return any(name in LANDMARK_CLASSES for name in facts.classes)


def preservation_reason(facts: NodeFacts) -> PreserveReason | None:
    if facts.is_preserved:
        return "already_preserved"
    # Removing an ancestor would take an earlier-preserved element with it.
    if facts.guards_preserved:
        return "contains_preserved"
    if is_landmark(facts):
        return "landmark"
    if (
        facts.text_length > SUBSTANTIAL_TEXT_CHARS
        and facts.word_count > SUBSTANTIAL_MIN_WORDS
        and facts.unique_word_ratio > SUBSTANTIAL_UNIQUE_RATIO
    ):
        return "substantial_text"
    if facts.structural_descendants >= STRUCTURAL_MIN_DESCENDANTS:
        return "structural_content"
    if facts.first_table_text_length is not None and facts.first_table_text_length > DATA_TABLE_MIN_CHARS:
        return "data_table"
    return None


def should_preserve(facts: NodeFacts) -> bool:
    return preservation_reason(facts) is not None


def decide_removal(facts: NodeFacts) -> RemovalDecision:
    reason = preservation_reason(facts)
    if reason is None:
        return RemovalDecision(remove=True)
    return RemovalDecision(remove=False, reason=reason)
