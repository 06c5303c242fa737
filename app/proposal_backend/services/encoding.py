"""
Proposal token encoding.

A proposal's selection inputs are serialised to compact JSON with short keys
and wrapped in unpadded base64url so they fit in a share link.  Pricing is
never encoded; it is recomputed from these inputs whenever the proposal is
viewed.

Payload layout (version 2)::

    {
      "v": 2,
      "cn": customer_name, "co": company_name, "t": template,
      "a": [service, ...], "sr": rep_name, "se": rep_email,
      "ts": created_at (epoch millis),
      "st": [{"t": term, "d": discount_pct, "dd": discount_dollar}, ...],
      "ff": transcript_url, "fi": insights,
      "bc": business_context, "ces": custom_executive_summary
    }

Untagged payloads are the legacy format.  They either carry ``st`` without a
version, or a single ``ct`` term with an optional ``d`` percentage; both are
decoded into term options.
"""

from __future__ import annotations

import base64
import json
import logging
from datetime import datetime, timezone
from typing import Any

from proposal_backend.models import ProposalConfig, TermOption, TranscriptInsights

logger = logging.getLogger(__name__)

PAYLOAD_VERSION = 2
PROPOSAL_ID_LENGTH = 12

# Legacy insight keys written by the first generation of share links
_LEGACY_INSIGHT_KEYS = {
    "painPoints": "pain_points",
    "discussionTopics": "discussion_topics",
    "megaSolutions": "solutions",
    "summary": "summary",
}


class ProposalDecodeError(ValueError):
    """The token is not a valid encoded proposal."""


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------
def encode_proposal(config: ProposalConfig) -> str:
    """Serialise *config* into a URL-safe token."""
    payload: dict[str, Any] = {
        "v": PAYLOAD_VERSION,
        "cn": config.customer_name,
        "co": config.company_name,
        "t": config.template.value,
        "a": [service.value for service in config.selected_services],
        "sr": config.sales_rep_name,
        "se": config.sales_rep_email,
        "ts": int(config.created_at.timestamp() * 1000),
        "st": [
            {
                "t": option.term.value,
                "d": option.discount_percentage,
                "dd": option.discount_dollar,
            }
            for option in config.term_options
        ],
    }
    if config.transcript_url:
        payload["ff"] = config.transcript_url
    if config.insights:
        payload["fi"] = config.insights.model_dump()
    if config.business_context:
        payload["bc"] = config.business_context
    if config.custom_executive_summary:
        payload["ces"] = config.custom_executive_summary

    raw = json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------
def _decode_json(token: str) -> dict[str, Any]:
    padded = token + "=" * (-len(token) % 4)
    raw = base64.urlsafe_b64decode(padded.encode("ascii"))
    payload = json.loads(raw.decode("utf-8"))
    if not isinstance(payload, dict):
        raise ValueError("Proposal payload is not an object")
    return payload


def _term_options(payload: dict[str, Any]) -> list[TermOption]:
    selected = payload.get("st")
    if isinstance(selected, list) and selected:
        return [
            TermOption(
                term=entry["t"],
                discount_percentage=entry.get("d") or 0,
                discount_dollar=entry.get("dd") or 0,
            )
            for entry in selected
        ]
    # Legacy single-term payload
    return [TermOption(term=payload["ct"], discount_percentage=payload.get("d") or 0)]


def _insights(raw: Any) -> TranscriptInsights | None:
    if not raw:
        return None
    if not isinstance(raw, dict):
        raise ValueError("Insights must be an object")
    data = {_LEGACY_INSIGHT_KEYS.get(key, key): value for key, value in raw.items()}
    return TranscriptInsights.model_validate(data)


def _created_at(ts: Any) -> datetime:
    if ts is None:
        return datetime.now(timezone.utc)
    return datetime.fromtimestamp(float(ts) / 1000, tz=timezone.utc)


def decode_proposal(token: str) -> ProposalConfig:
    """Decode a token produced by :func:`encode_proposal` (or a legacy one).

    Raises
    ------
    ProposalDecodeError
        If the token is not base64url JSON or does not validate.
    """
    try:
        payload = _decode_json(token)
        version = payload.get("v")
        if version is not None and version != PAYLOAD_VERSION:
            raise ValueError(f"Unsupported proposal payload version {version!r}")

        return ProposalConfig(
            customer_name=payload["cn"],
            company_name=payload["co"],
            template=payload["t"],
            selected_services=payload["a"],
            term_options=_term_options(payload),
            sales_rep_name=payload["sr"],
            sales_rep_email=payload["se"],
            transcript_url=payload.get("ff") or None,
            insights=_insights(payload.get("fi")),
            business_context=payload.get("bc") or None,
            custom_executive_summary=payload.get("ces") or None,
            created_at=_created_at(payload.get("ts")),
        )
    except (ValueError, KeyError, TypeError, OverflowError, OSError) as exc:
        logger.warning("Failed to decode proposal token: %s", exc)
        raise ProposalDecodeError(f"Invalid proposal token: {exc}") from exc


def proposal_id(token: str) -> str:
    """Short identifier derived from the token prefix."""
    return token[:PROPOSAL_ID_LENGTH]
