"""
Wildcard event-name matching for the EventBus.

Supported patterns
------------------
- Exact:    "promotion.reward_granted"
- Global:   "*"
- Prefix:   "promotion.*"
- Suffix:   "*.reward_granted"
- Sandwich: "promotion.*.granted"

Matching is case-sensitive; repeated wildcards collapse into one.
"""

from __future__ import annotations


class EventRouter:
    """
    Stateless wildcard matcher.

    Examples
    --------
    >>> router = EventRouter()
    >>> router.matches("promotion.reward_granted", "promotion.*")
    True
    >>> router.matches("promotion.reward_granted", "player.*")
    False
    """

    def matches(self, event_name: str, pattern: str) -> bool:
        if pattern == "*":
            return True

        if "*" not in pattern:
            return event_name == pattern

        while "**" in pattern:
            pattern = pattern.replace("**", "*")

        parts = pattern.split("*")

        if parts[0] and not event_name.startswith(parts[0]):
            return False

        if parts[-1] and not event_name.endswith(parts[-1]):
            return False

        # Middle pieces must appear in order after the prefix
        idx = len(parts[0])
        for mid in parts[1:-1]:
            if not mid:
                continue
            next_idx = event_name.find(mid, idx)
            if next_idx == -1:
                return False
            idx = next_idx + len(mid)

        # Prefix and suffix must not overlap
        return idx <= len(event_name) - len(parts[-1])
