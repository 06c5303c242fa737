"""
Pydantic data models for the proposal generator API.

All request / response schemas and the closed service / term enumerations are
defined here so they can be shared across routers, services, and tests.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _validate_email(value: str) -> str:
    value = value.strip().lower()
    if not _EMAIL_RE.match(value):
        raise ValueError("Invalid email format")
    return value


# ---------------------------------------------------------------------------
# Closed enumerations
# ---------------------------------------------------------------------------
class ServiceId(str, Enum):
    """A service a sales rep can put on a proposal."""

    SEO = "seo"
    PAID_ADS = "paid_ads"
    WEBSITE = "website"


class PricedItem(str, Enum):
    """Anything with a rate-table row: the base services plus the combo bundle."""

    SEO = "seo"
    PAID_ADS = "paid_ads"
    SEO_PAID_COMBO = "seo_paid_combo"
    WEBSITE = "website"


class ContractTerm(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    BI_ANNUAL = "bi_annual"
    ANNUAL = "annual"


class ProposalTemplate(str, Enum):
    LEADS = "leads"
    ECOM = "ecom"


class CheckoutKey(str, Enum):
    """Key into the checkout link table.  The website add-on is never a key."""

    SEO = "seo"
    PAID_ADS = "paid_ads"
    SEO_PAID_ADS = "seo_paid_ads"


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------
class TermOption(BaseModel):
    """One selectable commitment length with its own discount."""

    term: ContractTerm
    discount_percentage: float = Field(
        0.0, ge=0.0, le=100.0, allow_inf_nan=False, description="Percent off the upfront total"
    )
    discount_dollar: float = Field(
        0.0,
        ge=0.0,
        allow_inf_nan=False,
        description="Dollars off the upfront total, after the percent",
    )

    @property
    def has_discount(self) -> bool:
        return self.discount_percentage > 0 or self.discount_dollar > 0


class LineItem(BaseModel):
    """A single priced line on the proposal (a service or the combo bundle)."""

    item: PricedItem
    label: str
    base_price: float = Field(..., description="Advertised monthly rate")
    final_price: float = Field(..., description="Monthly rate after discount")


class PricingBreakdown(BaseModel):
    """Full pricing for one term option, consumed verbatim by renderers."""

    line_items: list[LineItem]
    subtotal: float = Field(..., description="Sum of advertised monthly rates")
    discount_amount: float = Field(..., description="Monthly reduction from discounts")
    total: float = Field(..., description="Monthly total after discount")
    upfront_total: float = Field(..., ge=0.0, description="Amount charged upfront")
    term_months: int
    term: ContractTerm


class TermPricing(BaseModel):
    term_option: TermOption
    pricing: PricingBreakdown


class TermSavings(BaseModel):
    """Monthly savings of the first (longest) term against the last one."""

    longest_term: ContractTerm
    shortest_term: ContractTerm
    monthly_savings: float
    savings_pct: float


class QuoteRequest(BaseModel):
    """Payload for a single-term quote."""

    services: list[ServiceId] = Field(..., min_length=1)
    term: ContractTerm
    discount_percentage: float = Field(0.0, ge=0.0, le=100.0, allow_inf_nan=False)
    discount_dollar: float = Field(0.0, ge=0.0, allow_inf_nan=False)


class MultiTermQuoteRequest(BaseModel):
    """Payload for side-by-side pricing tiers, longest term first."""

    services: list[ServiceId] = Field(..., min_length=1)
    term_options: list[TermOption] = Field(..., min_length=1)


class MultiTermQuoteResponse(BaseModel):
    term_pricings: list[TermPricing]
    best_value_index: int | None
    savings: TermSavings | None


class TermInfo(BaseModel):
    term: ContractTerm
    months: int
    display_name: str


class RateCardEntry(BaseModel):
    item: PricedItem
    label: str
    advertised: dict[ContractTerm, int]
    processor_upfront: dict[ContractTerm, int]


class RatesResponse(BaseModel):
    terms: list[TermInfo]
    items: list[RateCardEntry]


class CheckoutLinkResponse(BaseModel):
    term: ContractTerm
    key: CheckoutKey
    url: str
    website_addon: bool = Field(
        ..., description="Website must be added on the checkout page"
    )


# ---------------------------------------------------------------------------
# Proposals
# ---------------------------------------------------------------------------
class TranscriptInsights(BaseModel):
    """Insights pulled out of a sales call summary."""

    pain_points: list[str] = Field(default_factory=list)
    discussion_topics: list[str] = Field(default_factory=list)
    solutions: list[str] = Field(default_factory=list)
    summary: str = ""


class ProposalConfig(BaseModel):
    """Selection inputs for a proposal.  Pricing is never stored here."""

    customer_name: str = Field(..., min_length=1)
    company_name: str = Field(..., min_length=1)
    template: ProposalTemplate
    selected_services: list[ServiceId] = Field(..., min_length=1)
    term_options: list[TermOption] = Field(..., min_length=1)
    sales_rep_name: str = Field(..., min_length=1)
    sales_rep_email: str
    transcript_url: str | None = None
    insights: TranscriptInsights | None = None
    business_context: str | None = None
    custom_executive_summary: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("selected_services")
    @classmethod
    def _dedupe_services(cls, value: list[ServiceId]) -> list[ServiceId]:
        return list(dict.fromkeys(value))

    @field_validator("sales_rep_email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        return _validate_email(value)


class CreateProposalResponse(BaseModel):
    slug: str
    token: str
    url: str


class SignatureRequest(BaseModel):
    full_name: str = Field(..., min_length=1)
    email: str
    agreed_to_terms: bool

    @field_validator("full_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Full name is required")
        return value

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        return _validate_email(value)


class SignatureRecord(BaseModel):
    """The single signature a proposal can carry."""

    full_name: str
    email: str
    signed_at: datetime
    ip_address: str
    user_agent: str
    agreed_to_terms: bool


class TermPricingView(BaseModel):
    term_option: TermOption
    display_name: str
    pricing: PricingBreakdown
    formatted_total: str = Field(..., description="Monthly total in whole dollars, e.g. $2,378")
    formatted_upfront_total: str
    checkout_url: str | None
    is_best_value: bool


class ProposalView(BaseModel):
    """A proposal as rendered: inputs plus freshly computed pricing."""

    proposal_id: str
    config: ProposalConfig
    term_pricings: list[TermPricingView]
    website_addon: bool
    any_discount: bool
    savings: TermSavings | None
    signature: SignatureRecord | None = None
    is_locked: bool = False


# ---------------------------------------------------------------------------
# Insights
# ---------------------------------------------------------------------------
class AnalyzeTranscriptRequest(BaseModel):
    transcript_summary: str = Field(..., min_length=1)
    meeting_title: str | None = None
    company_name: str | None = None

    @field_validator("transcript_summary")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Transcript summary is required")
        return value


class AnalyzeTranscriptResponse(BaseModel):
    insights: TranscriptInsights
    used_fallback: bool


class ExecutiveSummaryRequest(BaseModel):
    business_context: str = Field(..., min_length=1)
    company_name: str = Field(..., min_length=1)
    template: ProposalTemplate = ProposalTemplate.LEADS
    services: list[ServiceId] = Field(..., min_length=1)


class ExecutiveSummaryResponse(BaseModel):
    summary: str
