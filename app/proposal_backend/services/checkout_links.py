"""
Checkout link resolver.

Maps a service selection and contract term to the payment processor's hosted
checkout page.  The website add-on is attached on the checkout page itself,
so it never forms part of the key and a website-only selection has no link.
"""

from __future__ import annotations

from typing import Iterable, Mapping

from proposal_backend.models import CheckoutKey, ContractTerm, ServiceId, TermOption

_K = CheckoutKey
_T = ContractTerm

# Mirrored from the processor's payment-link configuration
CHECKOUT_LINKS: dict[ContractTerm, dict[CheckoutKey, str]] = {
    _T.MONTHLY: {
        _K.SEO: "https://buy.stripe.com/4gw8x67exbnH85G7sR?client_reference_id=049e965d-8d5d-4c2a-929c-80a6796ab5ad",
        _K.PAID_ADS: "https://buy.stripe.com/3cs3cM7ex1N7dq0bJe?client_reference_id=8d4dd8c3-0d6a-47e3-8730-c7b3d2846303",
        _K.SEO_PAID_ADS: "https://buy.stripe.com/cN28x61UdbnH5Xy3cM?client_reference_id=8ffaf857-c886-4d3c-bd7c-b1de9e85baba",
    },
    _T.QUARTERLY: {
        _K.SEO: "https://buy.stripe.com/fZufZh4xB1QleSv5fFbbG12?client_reference_id=b168e221-e541-4947-b3b7-6b7d244b0ba3",
        _K.PAID_ADS: "https://buy.stripe.com/6oU28r3txeD75hV9vVbbG15?client_reference_id=42437bbf-67f8-4c1b-bc02-aebebf4d0c53",
        _K.SEO_PAID_ADS: "https://buy.stripe.com/bJeaEXc038eJ6lZ6jJbbG1b?client_reference_id=86908001-bd45-4895-8cee-826e5b1f2100",
    },
    _T.BI_ANNUAL: {
        _K.SEO: "https://buy.stripe.com/14A7sLe8bcuZaCf5fFbbG14?client_reference_id=2a1c6a5a-1a69-4c29-8d63-a82442d5c450",
        _K.PAID_ADS: "https://buy.stripe.com/eVq14n9RVfHbfWzbE3bbG16?client_reference_id=3f62006e-613f-4842-8990-255b785c5acd",
        _K.SEO_PAID_ADS: "https://buy.stripe.com/eVq8wP3tx7aF5hVfUjbbG1a?client_reference_id=2b21104b-e235-4bf2-9040-ab1069660ebd",
    },
    _T.ANNUAL: {
        _K.SEO: "https://buy.stripe.com/eVq7sL2pt2UpbGjbE3bbG1C?client_reference_id=93c22364-d3a4-48fd-ac66-d674097f8f6c",
        _K.PAID_ADS: "https://buy.stripe.com/28EfZh0hlfHbaCfeQfbbG1D?client_reference_id=9f5f0a70-4133-4137-9d75-b9bff2b266dd",
        _K.SEO_PAID_ADS: "https://buy.stripe.com/aFa4gz8NR3Yt8u74bBbbG1E?client_reference_id=954dec9e-71bb-40fb-8d30-d97ad14de399",
    },
}


def checkout_key(services: Iterable[ServiceId]) -> CheckoutKey | None:
    """Derive the checkout key; same collapse rule as combo pricing."""
    selected = {ServiceId(s) for s in services}
    has_seo = ServiceId.SEO in selected
    has_paid_ads = ServiceId.PAID_ADS in selected

    if has_seo and has_paid_ads:
        return CheckoutKey.SEO_PAID_ADS
    if has_seo:
        return CheckoutKey.SEO
    if has_paid_ads:
        return CheckoutKey.PAID_ADS
    return None


def resolve_checkout_link(
    services: Iterable[ServiceId],
    term: ContractTerm,
    links: Mapping[ContractTerm, Mapping[CheckoutKey, str]] = CHECKOUT_LINKS,
) -> str | None:
    """Return the checkout URL, or ``None`` if the term or key is unlisted."""
    term_links = links.get(ContractTerm(term))
    if not term_links:
        return None

    key = checkout_key(services)
    if key is None:
        return None
    return term_links.get(key)


def has_website_addon(services: Iterable[ServiceId]) -> bool:
    return ServiceId.WEBSITE in {ServiceId(s) for s in services}


def has_any_discount(term_options: Iterable[TermOption]) -> bool:
    return any(option.has_discount for option in term_options)
