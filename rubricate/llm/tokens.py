"""Token estimation utilities."""

from __future__ import annotations

import math


def estimate_tokens(text: str) -> int:
    """Rough token estimation without API call.

    Uses the approximation of ~4 characters per token. This is a rough
    estimate and should not be used for precise calculations.
    """
    return math.ceil(len(text) / 4)
