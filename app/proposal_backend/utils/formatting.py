"""Display helpers shared by the API and the rendering layer."""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal

from proposal_backend.utils.config import SLUG_MAX_LENGTH

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")


def format_price(price: float) -> str:
    """Format a dollar amount as whole US dollars, e.g. ``$28,548``."""
    dollars = Decimal(str(price)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return f"${int(dollars):,}"


def slugify(text: str, max_length: int = SLUG_MAX_LENGTH) -> str:
    """Lowercase *text*, collapse non-alphanumerics to ``-`` and trim."""
    slug = _NON_SLUG_CHARS.sub("-", text.lower()).strip("-")
    return slug[:max_length].strip("-")
