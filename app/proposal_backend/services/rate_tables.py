"""
Rate tables.

Two parallel tables keyed by priced item and contract term:

1. **Advertised rates** -- the monthly list price shown on proposals.  It
   drops as the commitment gets longer.
2. **Processor upfront totals** -- the exact amount the payment processor
   charges for the whole term.  These mirror the processor's configured
   prices and are the ground truth; the advertised rate is a marketing
   rounding of ``upfront / months`` and need not multiply back exactly.

The tables are held in an immutable :class:`RateTables` object that the quote
engine receives as a dependency, so tests can inject synthetic tables.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from pydantic import BaseModel, ConfigDict, field_validator

from proposal_backend.models import ContractTerm, PricedItem, RateCardEntry

_T = ContractTerm


class MissingRateError(LookupError):
    """A (priced item, term) pair has no advertised rate.

    This is a configuration defect.  It is raised rather than defaulting to
    zero so a broken table can never produce a free line item.
    """

    def __init__(self, item: PricedItem, term: ContractTerm) -> None:
        super().__init__(
            f"No advertised rate for {PricedItem(item).value!r} on a "
            f"{ContractTerm(term).value!r} term"
        )
        self.item = item
        self.term = term


class RateTables(BaseModel):
    """Immutable advertised and processor price points."""

    model_config = ConfigDict(frozen=True)

    advertised: Mapping[PricedItem, Mapping[ContractTerm, int]]
    processor_upfront: Mapping[PricedItem, Mapping[ContractTerm, int]]
    labels: Mapping[PricedItem, str]

    @field_validator("advertised", "processor_upfront")
    @classmethod
    def _freeze_table(cls, value):
        return MappingProxyType(
            {item: MappingProxyType(dict(rates)) for item, rates in value.items()}
        )

    @field_validator("labels")
    @classmethod
    def _freeze_labels(cls, value):
        return MappingProxyType(dict(value))

    def advertised_rate(self, item: PricedItem, term: ContractTerm) -> int:
        """Return the advertised monthly rate, raising on a table miss."""
        try:
            return self.advertised[item][term]
        except KeyError:
            raise MissingRateError(item, term) from None

    def processor_total(self, item: PricedItem, term: ContractTerm) -> int | None:
        """Return the exact processor upfront total, or ``None`` if unlisted."""
        return self.processor_upfront.get(item, {}).get(term)

    def label_for(self, item: PricedItem) -> str:
        return self.labels.get(item, PricedItem(item).value)

    def rate_card(self) -> list[RateCardEntry]:
        """Flatten the tables into one entry per priced item."""
        return [
            RateCardEntry(
                item=item,
                label=self.label_for(item),
                advertised=dict(rates),
                processor_upfront=dict(self.processor_upfront.get(item, {})),
            )
            for item, rates in self.advertised.items()
        ]


# ---------------------------------------------------------------------------
# Production tables (whole dollars, mirrored from the payment processor)
# ---------------------------------------------------------------------------
DEFAULT_RATE_TABLES = RateTables(
    advertised={
        PricedItem.SEO: {_T.ANNUAL: 699, _T.BI_ANNUAL: 749, _T.QUARTERLY: 849, _T.MONTHLY: 999},
        PricedItem.PAID_ADS: {_T.ANNUAL: 1399, _T.BI_ANNUAL: 1499, _T.QUARTERLY: 1699, _T.MONTHLY: 1999},
        PricedItem.SEO_PAID_COMBO: {_T.ANNUAL: 2099, _T.BI_ANNUAL: 2249, _T.QUARTERLY: 2548, _T.MONTHLY: 2998},
        PricedItem.WEBSITE: {_T.ANNUAL: 279, _T.BI_ANNUAL: 299, _T.QUARTERLY: 339, _T.MONTHLY: 399},
    },
    processor_upfront={
        PricedItem.SEO: {_T.MONTHLY: 999, _T.QUARTERLY: 2547, _T.BI_ANNUAL: 4496, _T.ANNUAL: 8399},
        PricedItem.PAID_ADS: {_T.MONTHLY: 1999, _T.QUARTERLY: 5097, _T.BI_ANNUAL: 8996, _T.ANNUAL: 16800},
        PricedItem.SEO_PAID_COMBO: {_T.MONTHLY: 2998, _T.QUARTERLY: 7645, _T.BI_ANNUAL: 13491, _T.ANNUAL: 25200},
        PricedItem.WEBSITE: {_T.MONTHLY: 399, _T.QUARTERLY: 1017, _T.BI_ANNUAL: 1796, _T.ANNUAL: 3348},
    },
    labels={
        PricedItem.SEO: "SEO & GEO Agent",
        PricedItem.PAID_ADS: "Paid Ads Agent",
        PricedItem.SEO_PAID_COMBO: "SEO & Paid Ads Agent",
        PricedItem.WEBSITE: "Website Agent",
    },
)
