"""
Advisory content moderation for chat messages.

Moderation never blocks delivery. A message that fails a rule is flagged
for human review and still reaches its recipients.

Example:
    >>> result = check_content("buy now www.a.com www.b.com www.c.com www.d.com")
    >>> result.allowed
    False
    >>> result.reasons
    ['excessive_links']
"""

import re
from dataclasses import dataclass, field

from ragestate.config import ModerationConfig

REASON_BLOCKED_TERM = "blocked_term"
REASON_EXCESSIVE_LINKS = "excessive_links"
REASON_SPAM = "spam"

_LINK_PATTERN = re.compile(r"(https?://|www\.)\S+", re.IGNORECASE)


@dataclass(frozen=True)
class ModerationResult:
    allowed: bool = True
    reasons: list[str] = field(default_factory=list)


def _contains_blocked_term(text: str, terms: frozenset[str]) -> bool:
    for term in terms:
        if re.search(rf"\b{re.escape(term)}\b", text, re.IGNORECASE):
            return True
    return False


def check_content(text: str, config: ModerationConfig | None = None) -> ModerationResult:
    """
    Run every moderation rule over ``text``.

    Args:
        text: Message text
        config: Rule settings; defaults apply when omitted

    Returns:
        ModerationResult with one reason per rule that matched, in rule order
    """
    config = config or ModerationConfig()
    reasons: list[str] = []

    if config.blocked_terms and _contains_blocked_term(text, config.blocked_terms):
        reasons.append(REASON_BLOCKED_TERM)

    if len(_LINK_PATTERN.findall(text)) > config.max_links:
        reasons.append(REASON_EXCESSIVE_LINKS)

    if re.search(rf"(.)\1{{{config.max_repeated_chars},}}", text, re.DOTALL):
        reasons.append(REASON_SPAM)

    return ModerationResult(allowed=not reasons, reasons=reasons)


__all__ = [
    "ModerationResult",
    "check_content",
    "REASON_BLOCKED_TERM",
    "REASON_EXCESSIVE_LINKS",
    "REASON_SPAM",
]
