"""
messagefilter.py
System-message filter for DCS trigger and radio text
Separates technical labels (cockpit prompts, menu items, placeholders) from
text that is meant to be read by the player.
"""

import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Pattern

SENTENCE_PUNCTUATION_RE = re.compile(r'[.!?:;,]')
# A trailing colon alone still reads as a label ("TARGET DETAILS:")
CLAUSE_PUNCTUATION_RE = re.compile(r'[.!?,;]')


def word_count(text: str) -> int:
    return len(text.split())


def is_all_caps(text: str) -> bool:
    """True when text has letters and none of them are lowercase."""
    has_letters = False
    for ch in text:
        if ch.isalpha():
            if ch.islower():
                return False
            has_letters = True
    return has_letters


@dataclass(frozen=True)
class FilterRule:
    """
    One row of the filter table.

    verdict is True when a match means "system message, drop it" and False
    when a match means "player text, keep it". Every condition that is set
    must hold for the rule to match.
    """
    name: str
    verdict: bool
    pattern: Optional[Pattern] = None
    key_pattern: Optional[Pattern] = None
    max_words: Optional[int] = None
    min_words: Optional[int] = None
    check: Optional[Callable[[str], bool]] = None

    def matches(self, text: str, key: str = "") -> bool:
        stripped = text.strip()
        if self.key_pattern is not None and not self.key_pattern.search(key or ""):
            return False
        words = word_count(stripped)
        if self.max_words is not None and words > self.max_words:
            return False
        if self.min_words is not None and words < self.min_words:
            return False
        if self.pattern is not None and not self.pattern.search(stripped):
            return False
        if self.check is not None and not self.check(stripped):
            return False
        return True


RADIO_MENU_KEY = re.compile(r'ActionRadioText')
SUBTITLE_KEY = re.compile(r'subtitle', re.IGNORECASE)

# First match wins. Anything that reaches the end of the table is kept.
DEFAULT_RULES: List[FilterRule] = [
    FilterRule('empty', True, check=lambda s: not s),

    # Dialogue is kept even when it is short or shouted
    FilterRule('subtitle-dialogue', False, key_pattern=SUBTITLE_KEY, min_words=2),
    FilterRule('speaker-dialogue', False,
               pattern=re.compile(r"^[^\W\d_][\w .'/\-]{0,30}:\s+\S+\s+\S+")),

    FilterRule('numeric', True, pattern=re.compile(r'^\d+(?:[.,]\d+)?\+?$')),

    # Mission-editor placeholders left in by the author
    FilterRule('placeholder-audio', True, pattern=re.compile(r'^INSERT\b.*\bAUDIO$')),
    FilterRule('placeholder-message', True, pattern=re.compile(r'^(?:INSERT|ADD|SET)\b.*\bMESS\w*$')),
    FilterRule('placeholder-hold', True, pattern=re.compile(r'^HOLD UNTIL CLEAR$')),

    FilterRule('numbered-label', True,
               pattern=re.compile(r'^(?:COMM|ASK|RESP|CH|CHANNEL|STEP|PHASE|MENU)\s*\d+$')),

    # Cockpit state prompts: JAMMER, ECM, CMS, XMIT, BUTTON 5, POWER OFF...
    FilterRule('avionics-jargon', True, max_words=6,
               pattern=re.compile(r'\b(?:J\w*AMMER|ECM|CMS|XMIT|BUTTON)\b'
                                  r'|(?i:\b(?:POWER|LASER)\s+(?:ON|OFF)\b|\bMASTER\s+ARM\b)'),
               check=lambda s: not CLAUSE_PUNCTUATION_RE.search(s)),

    # F10 radio menu entries
    FilterRule('radio-menu-points', True, key_pattern=RADIO_MENU_KEY,
               pattern=re.compile(r'\b\d+\s+POINTS?$', re.IGNORECASE)),
    FilterRule('radio-menu-item', True, key_pattern=RADIO_MENU_KEY, max_words=6,
               check=lambda s: not SENTENCE_PUNCTUATION_RE.search(s)),

    FilterRule('bare-acronym', True, pattern=re.compile(r'^[A-Z][A-Z0-9/\-]+$')),
    # Up to three words and no sentence marks
    FilterRule('caps-label', True, max_words=3,
               check=lambda s: is_all_caps(s) and not CLAUSE_PUNCTUATION_RE.search(s)),
]


class SystemMessageFilter:
    """Ordered rule table deciding whether a string is a system message."""

    def __init__(self, rules: Optional[List[FilterRule]] = None,
                 extra_rules: Iterable[FilterRule] = ()):
        base = DEFAULT_RULES if rules is None else rules
        # Configured rules take precedence over the built-in table
        self.rules: List[FilterRule] = list(extra_rules) + list(base)

    def classify(self, text: str, key: str = "") -> Optional[FilterRule]:
        """Return the first rule matching text, or None when no rule applies."""
        for rule in self.rules:
            if rule.matches(text or "", key):
                return rule
        return None

    def is_system_message(self, text: str, key: str = "") -> bool:
        rule = self.classify(text, key)
        return rule.verdict if rule else False


DEFAULT_FILTER = SystemMessageFilter()


def is_system_message(text: str, key: str = "") -> bool:
    """Check text against the built-in rule table."""
    return DEFAULT_FILTER.is_system_message(text, key)
