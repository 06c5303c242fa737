"""
Multi-term quote builder.

Prices the same service selection once per term option so the proposal can
show side-by-side commitment tiers.  Options are expected longest term first;
the builder keeps the caller's order and does no cross-term aggregation.
The comparison helpers below are read-side conveniences for renderers and
are never stored with a proposal.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

from proposal_backend.models import ServiceId, TermOption, TermPricing, TermSavings
from proposal_backend.services.quote_engine import QuoteEngine

_default_engine = QuoteEngine()


def build_term_pricings(
    services: Iterable[ServiceId],
    term_options: Sequence[TermOption],
    engine: QuoteEngine | None = None,
) -> list[TermPricing]:
    """Return one :class:`TermPricing` per option, in input order."""
    engine = engine or _default_engine
    services = list(services)
    return [
        TermPricing(
            term_option=option,
            pricing=engine.calculate(
                services,
                option.term,
                discount_percent=option.discount_percentage,
                discount_dollar=option.discount_dollar,
            ),
        )
        for option in term_options
    ]


def best_value_index(term_pricings: Sequence[TermPricing]) -> int | None:
    """Index of the "best value" tier: the first (longest) option."""
    return 0 if term_pricings else None


def term_savings(term_pricings: Sequence[TermPricing]) -> TermSavings | None:
    """Compare the first tier's monthly total against the last tier's.

    Returns ``None`` when fewer than two tiers are shown or the last tier is
    free (no meaningful percentage).
    """
    if len(term_pricings) < 2:
        return None

    first = term_pricings[0].pricing
    last = term_pricings[-1].pricing
    if last.total <= 0:
        return None

    first_total = Decimal(str(first.total))
    last_total = Decimal(str(last.total))
    monthly_savings = (last_total - first_total).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    savings_pct = (monthly_savings / last_total * 100).quantize(
        Decimal("0.1"), rounding=ROUND_HALF_UP
    )

    return TermSavings(
        longest_term=first.term,
        shortest_term=last.term,
        monthly_savings=float(monthly_savings),
        savings_pct=float(savings_pct),
    )
