"""
Quotes router.

Exposes the quote engine, the multi-term builder, the rate card, and the
checkout link resolver.  Pricing is computed on every request; nothing is
cached or stored.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query

from proposal_backend.models import (
    CheckoutLinkResponse,
    ContractTerm,
    MultiTermQuoteRequest,
    MultiTermQuoteResponse,
    PricingBreakdown,
    QuoteRequest,
    RatesResponse,
    ServiceId,
)
from proposal_backend.services.checkout_links import (
    checkout_key,
    has_website_addon,
    resolve_checkout_link,
)
from proposal_backend.services.multi_term import (
    best_value_index,
    build_term_pricings,
    term_savings,
)
from proposal_backend.services.quote_engine import calculate_pricing
from proposal_backend.services.rate_tables import DEFAULT_RATE_TABLES
from proposal_backend.services.terms import term_calendar

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["quotes"])


# ---------------------------------------------------------------------------
# GET /rates
# ---------------------------------------------------------------------------
@router.get(
    "/rates",
    response_model=RatesResponse,
    summary="Advertised rates, processor totals and the term calendar",
)
async def get_rates() -> RatesResponse:
    return RatesResponse(terms=term_calendar(), items=DEFAULT_RATE_TABLES.rate_card())


# ---------------------------------------------------------------------------
# POST /quotes
# ---------------------------------------------------------------------------
@router.post(
    "/quotes",
    response_model=PricingBreakdown,
    summary="Price a service selection for one contract term",
)
async def create_quote(request: QuoteRequest) -> PricingBreakdown:
    """Return the full pricing breakdown for one term and discount."""
    try:
        return calculate_pricing(
            request.services,
            request.term,
            discount_percent=request.discount_percentage,
            discount_dollar=request.discount_dollar,
        )
    except Exception as exc:
        logger.exception("Quote failed for %s on %s", request.services, request.term)
        raise HTTPException(status_code=500, detail=str(exc)) from exc


# ---------------------------------------------------------------------------
# POST /quotes/multi-term
# ---------------------------------------------------------------------------
@router.post(
    "/quotes/multi-term",
    response_model=MultiTermQuoteResponse,
    summary="Price a selection across several term options",
)
async def create_multi_term_quote(request: MultiTermQuoteRequest) -> MultiTermQuoteResponse:
    """Return one breakdown per term option, in request order, plus the
    first-versus-last tier comparison.
    """
    try:
        term_pricings = build_term_pricings(request.services, request.term_options)
    except Exception as exc:
        logger.exception("Multi-term quote failed for %s", request.services)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return MultiTermQuoteResponse(
        term_pricings=term_pricings,
        best_value_index=best_value_index(term_pricings),
        savings=term_savings(term_pricings),
    )


# ---------------------------------------------------------------------------
# GET /checkout-link
# ---------------------------------------------------------------------------
@router.get(
    "/checkout-link",
    response_model=CheckoutLinkResponse,
    summary="Resolve the payment checkout URL for a selection and term",
)
async def get_checkout_link(
    term: ContractTerm = Query(..., description="Contract term"),
    services: list[ServiceId] = Query(..., description="Selected services"),
) -> CheckoutLinkResponse:
    url = resolve_checkout_link(services, term)
    key = checkout_key(services)
    if url is None or key is None:
        raise HTTPException(
            status_code=404,
            detail=f"No checkout link for {[s.value for s in services]} on {term.value}",
        )
    return CheckoutLinkResponse(
        term=term,
        key=key,
        url=url,
        website_addon=has_website_addon(services),
    )
