"""
Proposal view assembly.

Combines a decoded :class:`ProposalConfig` with freshly computed pricing for
every term option, the matching checkout links, and the tier comparison.
Nothing here is persisted: pricing always reflects the current rate tables.
"""

from __future__ import annotations

from proposal_backend.models import ProposalConfig, ProposalView, SignatureRecord, TermPricingView
from proposal_backend.services.checkout_links import (
    has_any_discount,
    has_website_addon,
    resolve_checkout_link,
)
from proposal_backend.services.multi_term import (
    best_value_index,
    build_term_pricings,
    term_savings,
)
from proposal_backend.services.quote_engine import QuoteEngine
from proposal_backend.services.terms import display_name_for
from proposal_backend.utils.formatting import format_price


def build_proposal_view(
    proposal_id: str,
    config: ProposalConfig,
    signature: SignatureRecord | None = None,
    engine: QuoteEngine | None = None,
) -> ProposalView:
    term_pricings = build_term_pricings(
        config.selected_services, config.term_options, engine=engine
    )
    best = best_value_index(term_pricings) if len(term_pricings) > 1 else None

    views = [
        TermPricingView(
            term_option=tp.term_option,
            display_name=display_name_for(tp.term_option.term),
            pricing=tp.pricing,
            formatted_total=format_price(tp.pricing.total),
            formatted_upfront_total=format_price(tp.pricing.upfront_total),
            checkout_url=resolve_checkout_link(config.selected_services, tp.term_option.term),
            is_best_value=index == best,
        )
        for index, tp in enumerate(term_pricings)
    ]

    return ProposalView(
        proposal_id=proposal_id,
        config=config,
        term_pricings=views,
        website_addon=has_website_addon(config.selected_services),
        any_discount=has_any_discount(config.term_options),
        savings=term_savings(term_pricings),
        signature=signature,
        is_locked=signature is not None,
    )
