"""Classify post text into at most one intent.

Matchers are tried in order and the first one that produces an intent wins:
transfer, vibe declaration, following query, direct query.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Protocol

MAX_TEXT_LENGTH = 500
DEFAULT_BOT_HANDLE = "reputest"


@dataclass(frozen=True)
class NoIntent:
    pass


@dataclass(frozen=True)
class Transfer:
    amount: int
    receiver_handle: str


@dataclass(frozen=True)
class VibeDeclaration:
    emitter_handle: str


@dataclass(frozen=True)
class FollowQuery:
    queried_handle: str


@dataclass(frozen=True)
class DirectQuery:
    queried_handle: str


Intent = NoIntent | Transfer | VibeDeclaration | FollowQuery | DirectQuery

NO_INTENT = NoIntent()

# Words that commonly precede the hashtag without naming anyone
VIBE_STOPWORDS = frozenset(
    {
        "good", "vibes", "the", "a", "an", "and", "or", "to", "for", "with",
        "some", "my", "your", "all", "so", "much", "great", "big", "sending",
        "send", "many", "more", "love", "thanks", "thank", "you", "me", "us",
        "from", "of", "in", "on", "is", "are",
    }
)  # fmt: skip

QUERY_STOPWORDS = frozenset(
    {
        "what", "when", "where", "how", "why", "who", "which", "the", "a", "an",
        "is", "are", "was", "were", "be", "been", "being", "have", "has", "had",
        "do", "does", "did", "will", "would", "could", "should", "can", "may",
        "might", "must", "shall",
    }
)  # fmt: skip


class Matcher(Protocol):
    def match(self, text: str, exclude_handle: str | None) -> Intent | None: ...


class TransferMatcher:
    _pattern = re.compile(r"\bsend\s+(\d+)\s+#megajoules\s+to\s+@?(\w{1,15})(?!\w)", re.IGNORECASE)

    def match(self, text: str, exclude_handle: str | None) -> Intent | None:
        m = self._pattern.search(text)
        if not m:
            return None
        amount = int(m.group(1))
        if amount <= 0:
            return None
        return Transfer(amount=amount, receiver_handle=m.group(2))


class VibeMatcher:
    def __init__(self, hashtag: str = "#gmgv") -> None:
        self._pattern = re.compile(
            rf"(?<![\w@])@?(\w{{1,15}})\s*{re.escape(hashtag)}\b", re.IGNORECASE
        )

    def match(self, text: str, exclude_handle: str | None) -> Intent | None:
        excluded = exclude_handle.lstrip("@").lower() if exclude_handle else None
        for m in self._pattern.finditer(text):
            handle = m.group(1)
            lowered = handle.lower()
            if lowered in VIBE_STOPWORDS or lowered == excluded:
                continue
            return VibeDeclaration(emitter_handle=handle)
        return None


class FollowQueryMatcher:
    def __init__(self, bot_handle: str = DEFAULT_BOT_HANDLE) -> None:
        self._pattern = re.compile(
            rf"^@{re.escape(bot_handle)}\s+@?(\w{{1,15}})\s+following\s*\?$", re.IGNORECASE
        )

    def match(self, text: str, exclude_handle: str | None) -> Intent | None:
        m = self._pattern.match(text)
        return FollowQuery(queried_handle=m.group(1)) if m else None


class DirectQueryMatcher:
    def __init__(self, bot_handle: str = DEFAULT_BOT_HANDLE) -> None:
        self._bot_handle = bot_handle.lower()
        self._pattern = re.compile(
            rf"^@{re.escape(bot_handle)}\s+@?(\w{{1,15}})\s*\?$", re.IGNORECASE
        )

    def match(self, text: str, exclude_handle: str | None) -> Intent | None:
        m = self._pattern.match(text)
        if not m:
            return None
        handle = m.group(1)
        lowered = handle.lower()
        if lowered in QUERY_STOPWORDS or lowered == self._bot_handle:
            return None
        return DirectQuery(queried_handle=handle)


def build_matchers(
    bot_handle: str = DEFAULT_BOT_HANDLE, hashtag: str = "#gmgv"
) -> tuple[Matcher, ...]:
    return (
        TransferMatcher(),
        VibeMatcher(hashtag),
        FollowQueryMatcher(bot_handle),
        DirectQueryMatcher(bot_handle),
    )


_DEFAULT_MATCHERS = build_matchers()


def extract_intent(
    text: str,
    exclude_handle: str | None = None,
    matchers: tuple[Matcher, ...] | None = None,
) -> Intent:
    """Return the first intent found in *text*, or ``NO_INTENT``.

    *exclude_handle* is the account being replied to: a vibe declaration
    naming it is usually a greeting rather than a declaration.
    """
    text = text.strip()
    if not text or len(text) > MAX_TEXT_LENGTH:
        return NO_INTENT
    for matcher in matchers or _DEFAULT_MATCHERS:
        intent = matcher.match(text, exclude_handle)
        if intent is not None:
            return intent
    return NO_INTENT
