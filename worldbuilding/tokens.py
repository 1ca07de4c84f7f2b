"""Approximate token counting for prompt budgeting."""

import math

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str | None) -> int:
    """Rough token estimate: ~4 characters per token.

    Good enough for soft prompt budgets; not for billing-accurate counts.
    """
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)
