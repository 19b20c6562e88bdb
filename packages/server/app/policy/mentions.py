"""Mention extraction: ``@alice@example.com`` tokens in free text."""

from __future__ import annotations

import re
from typing import Iterator

# An at-sign immediately followed by a full email address.
MENTION_PATTERN = re.compile(
    r"@([A-Za-z0-9._-]+@[A-Za-z0-9._-]+\.[A-Za-z0-9_-]+)",
    re.IGNORECASE,
)


class Mentions:
    """Lazy, restartable sequence of the raw email addresses mentioned in a text.

    Each iteration rescans the text, so the object can be consumed any number
    of times. Matches are returned as written: no case folding, no dedupe.
    """

    __slots__ = ("text",)

    def __init__(self, text: str | None):
        self.text = text or ""

    def __iter__(self) -> Iterator[str]:
        return (match.group(1) for match in MENTION_PATTERN.finditer(self.text))

    def __repr__(self) -> str:
        return f"Mentions({list(self)!r})"


def extract_mentions(text: str | None) -> Mentions:
    return Mentions(text)
