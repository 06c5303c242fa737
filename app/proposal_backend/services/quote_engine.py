"""
Quote engine.

Turns a service selection, a contract term, and discount parameters into a
:class:`PricingBreakdown`.  The engine is a pure function of its inputs and
the injected :class:`RateTables`; it does no I/O and keeps no state, so it is
safe to call concurrently and is recomputed on every render.

Pricing rules:

* **Combo collapse** -- when both SEO and Paid Ads are selected they are
  priced as one ``seo_paid_combo`` line using the combo rate, never as two
  lines.  Website is always a separate add-on line.
* **Processor reconciliation** -- without a discount the upfront total is the
  exact sum of processor upfront totals, so the proposal matches checkout to
  the cent.  A line whose term has no listed processor total falls back to
  ``advertised rate x months``.
* **Discounts** -- the percentage comes off the upfront total first, then the
  dollar amount, clamped so the upfront total never goes below zero.  The
  monthly total is the discounted upfront total spread over the term.  The
  discount amount is ``subtotal - total`` (never negative) and each line's
  final price is scaled by ``total / subtotal`` so the lines add up to the
  monthly total to the cent.

All arithmetic runs on integer cents via :mod:`decimal` with half-up rounding.
"""

from __future__ import annotations

import logging
import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from proposal_backend.models import (
    ContractTerm,
    LineItem,
    PricedItem,
    PricingBreakdown,
    ServiceId,
)
from proposal_backend.services.rate_tables import DEFAULT_RATE_TABLES, RateTables
from proposal_backend.services.terms import months_for

logger = logging.getLogger(__name__)

_WHOLE = Decimal("1")
_CENT = Decimal("0.01")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _round_cents(value: Decimal) -> int:
    return int(value.quantize(_WHOLE, rounding=ROUND_HALF_UP))


def _scale_lines(base_cents: list[int], subtotal: int, total: int) -> list[int]:
    """Scale each line by ``total / subtotal``; the last line absorbs rounding."""
    if not subtotal:
        return [0] * len(base_cents)
    ratio = Decimal(total) / Decimal(subtotal)
    scaled = [_round_cents(cents * ratio) for cents in base_cents[:-1]]
    scaled.append(total - sum(scaled))
    return scaled


def _to_dollars(cents: int) -> float:
    return float((Decimal(cents) / 100).quantize(_CENT, rounding=ROUND_HALF_UP))


def resolve_priced_items(services: Iterable[ServiceId]) -> list[PricedItem]:
    """Return the priced lines for a selection, in display order.

    SEO and Paid Ads collapse into the combo line when both are present.
    Website always comes last as an independent add-on.
    """
    selected = {ServiceId(s) for s in services}
    items: list[PricedItem] = []

    if ServiceId.SEO in selected and ServiceId.PAID_ADS in selected:
        items.append(PricedItem.SEO_PAID_COMBO)
    else:
        if ServiceId.SEO in selected:
            items.append(PricedItem.SEO)
        if ServiceId.PAID_ADS in selected:
            items.append(PricedItem.PAID_ADS)

    if ServiceId.WEBSITE in selected:
        items.append(PricedItem.WEBSITE)
    return items


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------
class QuoteEngine:
    """Deterministic pricing over an immutable set of rate tables."""

    def __init__(self, rate_tables: RateTables = DEFAULT_RATE_TABLES) -> None:
        self.rate_tables = rate_tables

    def _upfront_anchor_cents(self, item: PricedItem, term: ContractTerm, months: int) -> int:
        exact = self.rate_tables.processor_total(item, term)
        if exact is None:
            logger.debug(
                "No processor total for %s/%s; using advertised x %d months",
                item.value, term.value, months,
            )
            return self.rate_tables.advertised_rate(item, term) * months * 100
        return exact * 100

    def calculate(
        self,
        services: Iterable[ServiceId],
        term: ContractTerm,
        discount_percent: float = 0.0,
        discount_dollar: float = 0.0,
    ) -> PricingBreakdown:
        """Price *services* on *term* with the given discounts.

        Raises
        ------
        ValueError
            If nothing is selected or a discount is out of range.
        MissingRateError
            If the rate tables have no advertised rate for a priced line.
        """
        items = resolve_priced_items(services)
        if not items:
            raise ValueError("At least one service must be selected")
        if not 0 <= discount_percent <= 100:
            raise ValueError(f"discount_percent must be within [0, 100], got {discount_percent}")
        if not math.isfinite(discount_dollar) or discount_dollar < 0:
            raise ValueError(f"discount_dollar must be a finite amount >= 0, got {discount_dollar}")

        term = ContractTerm(term)
        months = months_for(term)

        base_cents = [self.rate_tables.advertised_rate(item, term) * 100 for item in items]
        subtotal = sum(base_cents)
        base_upfront = sum(self._upfront_anchor_cents(item, term, months) for item in items)

        percent = Decimal(str(discount_percent))
        # Clamped to the anchor before quantizing; the raw amount is unbounded
        dollar_cents = _round_cents(
            min(Decimal(str(discount_dollar)) * 100, Decimal(base_upfront))
        )

        if percent == 0 and dollar_cents == 0:
            upfront = base_upfront
            total = subtotal
            discount_amount = 0
            final_cents = list(base_cents)
        else:
            after_percent = _round_cents(Decimal(base_upfront) * (100 - percent) / 100)
            upfront = after_percent - min(dollar_cents, after_percent)
            total = _round_cents(Decimal(upfront) / months)
            discount_amount = max(subtotal - total, 0)
            final_cents = _scale_lines(base_cents, subtotal, total)

        line_items = [
            LineItem(
                item=item,
                label=self.rate_tables.label_for(item),
                base_price=_to_dollars(base),
                final_price=_to_dollars(final),
            )
            for item, base, final in zip(items, base_cents, final_cents)
        ]

        return PricingBreakdown(
            line_items=line_items,
            subtotal=_to_dollars(subtotal),
            discount_amount=_to_dollars(discount_amount),
            total=_to_dollars(total),
            upfront_total=_to_dollars(upfront),
            term_months=months,
            term=term,
        )


_default_engine = QuoteEngine()


def calculate_pricing(
    services: Iterable[ServiceId],
    term: ContractTerm,
    discount_percent: float = 0.0,
    discount_dollar: float = 0.0,
) -> PricingBreakdown:
    """Price a selection against the production rate tables."""
    return _default_engine.calculate(services, term, discount_percent, discount_dollar)
