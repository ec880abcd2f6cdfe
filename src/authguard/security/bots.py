"""
Pluggable User-Agent bot detection.

This is a best-effort heuristic, not a security boundary: a match only
annotates the request, it never blocks it.
"""

import re
from typing import Iterable, Optional

from authguard.config.settings import SecurityConstants


class BotDetector:
    """Strategy interface for classifying a User-Agent."""

    def is_bot(self, user_agent: Optional[str]) -> bool:
        raise NotImplementedError


class PatternBotDetector(BotDetector):
    """Case-insensitive substring patterns against the User-Agent."""

    def __init__(self, patterns: Iterable[str] = SecurityConstants.BOT_PATTERNS):
        self.pattern = re.compile('|'.join(f'(?:{p})' for p in patterns), re.IGNORECASE)

    def is_bot(self, user_agent: Optional[str]) -> bool:
        if not user_agent:
            return False
        return bool(self.pattern.search(user_agent))


class NullBotDetector(BotDetector):
    """Disables bot detection."""

    def is_bot(self, user_agent: Optional[str]) -> bool:
        return False
