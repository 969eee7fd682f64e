"""Keyword heuristics for categorizing manually stored memories.

Rules are checked in table order and the first match wins. They are plain
substring/regex cues (English and Czech), not a classifier, so short words
like "is" will also match inside longer words.
"""

import re
from typing import Literal

MemoryCategory = Literal["preference", "fact", "decision", "entity", "other"]
MEMORY_CATEGORIES: tuple[MemoryCategory, ...] = (
    "preference",
    "fact",
    "decision",
    "entity",
    "other",
)

CATEGORY_RULES: tuple[tuple[MemoryCategory, re.Pattern[str]], ...] = (
    ("preference", re.compile(r"prefer|radši|like|love|hate|want", re.IGNORECASE)),
    ("decision", re.compile(r"rozhodli|decided|will use|budeme", re.IGNORECASE)),
    ("entity", re.compile(r"\+\d{10,}|@[\w.-]+\.\w+|is called|jmenuje se", re.IGNORECASE)),
    ("fact", re.compile(r"is|are|has|have|je|má|jsou", re.IGNORECASE)),
)


def detect_category(text: str) -> MemoryCategory:
    for category, pattern in CATEGORY_RULES:
        if pattern.search(text):
            return category
    return "other"
