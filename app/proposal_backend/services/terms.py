"""
Term calendar.

Maps each contract term to its length in months and the name shown on
pricing cards.  Terms arrive here already validated against
:class:`ContractTerm`; anything else is a programming error and raises
``ValueError``.
"""

from __future__ import annotations

from proposal_backend.models import ContractTerm, TermInfo

_TERM_MONTHS: dict[ContractTerm, int] = {
    ContractTerm.MONTHLY: 1,
    ContractTerm.QUARTERLY: 3,
    ContractTerm.BI_ANNUAL: 6,
    ContractTerm.ANNUAL: 12,
}

_TERM_DISPLAY_NAMES: dict[ContractTerm, str] = {
    ContractTerm.MONTHLY: "Monthly",
    ContractTerm.QUARTERLY: "Quarterly",
    ContractTerm.BI_ANNUAL: "Bi-Annual",
    ContractTerm.ANNUAL: "Annual",
}

# Order in which pricing tiers are shown ("best value" first)
TERMS_LONGEST_FIRST: tuple[ContractTerm, ...] = tuple(
    sorted(_TERM_MONTHS, key=_TERM_MONTHS.__getitem__, reverse=True)
)


def months_for(term: ContractTerm) -> int:
    return _TERM_MONTHS[ContractTerm(term)]


def display_name_for(term: ContractTerm) -> str:
    return _TERM_DISPLAY_NAMES[ContractTerm(term)]


def term_calendar() -> list[TermInfo]:
    """Return every term, longest first, with its months and display name."""
    return [
        TermInfo(term=term, months=months_for(term), display_name=display_name_for(term))
        for term in TERMS_LONGEST_FIRST
    ]
