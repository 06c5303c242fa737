"""
Transcript insight extraction and executive-summary generation.

Both features call a chat-style text-generation model hosted on a Databricks
Model Serving endpoint (``INSIGHTS_SERVING_ENDPOINT``).  Expected response
shape::

    {"choices": [{"message": {"content": "..."}}]}

Insight extraction never fails outward: when the endpoint is unconfigured,
errors, or replies with something that is not a JSON object, the insights are
built from the transcript's bullet lines plus fixed solution copy.  Summary
generation has no sensible fallback and raises instead.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable

from proposal_backend.models import ProposalTemplate, ServiceId, TranscriptInsights
from proposal_backend.utils.config import (
    INSIGHTS_MAX_TOKENS,
    INSIGHTS_SERVING_ENDPOINT,
    SUMMARY_MAX_TOKENS,
)
from proposal_backend.utils.databricks_client import call_serving_endpoint

logger = logging.getLogger(__name__)

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)
_BULLET_RE = re.compile(r"^\s*[-•*]")
_BULLET_PREFIX_RE = re.compile(r"^\s*[-•*]\s*(\*\*)?")

_SERVICE_NAMES = {
    ServiceId.SEO: "SEO/GEO",
    ServiceId.PAID_ADS: "Paid Ads",
    ServiceId.WEBSITE: "Website",
}

FALLBACK_SOLUTIONS = [
    "AI-powered campaign optimization tailored to your specific needs",
    "End-to-end management with dedicated account support",
    "Data-driven lead scoring and qualification framework",
]
FALLBACK_SUMMARY = (
    "Based on our conversation, we've prepared this proposal to address your "
    "specific marketing challenges with a data-driven, AI-powered approach that "
    "delivers measurable results."
)


class InsightGenerationError(RuntimeError):
    """The text-generation endpoint could not produce a usable reply."""


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------
def _analysis_prompt(transcript_summary: str, company_name: str | None) -> str:
    company = company_name or "the prospect"
    return f"""You are analyzing a sales call summary to create a tailored marketing proposal. The prospect's company is "{company}".

Here is the meeting summary:

{transcript_summary}

Extract the following as a JSON object:

1. "pain_points" - Array of 3-6 specific challenges/frustrations the PROSPECT mentioned (not what the sales rep said). Be specific to their business.
2. "discussion_topics" - Array of 4-8 key business topics discussed (budget, channels, goals, team size, industry specifics, etc.)
3. "solutions" - Array of 3-6 specific ways our services address their needs. Map each solution to a pain point. Be concrete, not generic.
4. "summary" - A 2-3 sentence executive summary written FOR the proposal. Address the prospect directly ("your team", "your challenges"). Use "our" or "we" rather than a company name.

Focus on what the PROSPECT said and needs, not what the sales rep pitched.

Respond with ONLY the JSON object, no other text."""


def _summary_prompt(
    business_context: str,
    company_name: str,
    template: ProposalTemplate,
    services: Iterable[ServiceId],
) -> str:
    service_names = ", ".join(_SERVICE_NAMES[ServiceId(s)] for s in services)
    template_label = (
        "eCommerce/online sales" if template == ProposalTemplate.ECOM else "lead generation"
    )
    return f"""Write a concise executive summary (2-3 sentences) for a digital marketing proposal to "{company_name}".

Business context from the sales rep: "{business_context}"

Services included: {service_names}
Template type: {template_label}

Rules:
- Be specific to THIS business, reference what they actually do based on the context
- Don't use generic marketing buzzwords
- Refer to "our approach" or "this proposal" rather than an agency name
- Keep it professional but not stuffy
- Start with "This proposal outlines..." or similar
- Only mention the services that are included

Return ONLY the summary text, nothing else."""


# ---------------------------------------------------------------------------
# Serving call
# ---------------------------------------------------------------------------
def _complete(prompt: str, max_tokens: int) -> str:
    """Send a single-turn chat request and return the reply text ('' if none)."""
    payload: dict[str, Any] = {
        "messages": [{"role": "user", "content": prompt}],
        "max_tokens": max_tokens,
    }
    response = call_serving_endpoint(INSIGHTS_SERVING_ENDPOINT, payload)
    choices = response.get("choices") or []
    if not choices:
        return ""
    message = choices[0].get("message") or {}
    return str(message.get("content") or "").strip()


# ---------------------------------------------------------------------------
# Insights
# ---------------------------------------------------------------------------
def _clean_bullet(line: str) -> str:
    return _BULLET_PREFIX_RE.sub("", line).replace("**", "").strip()


def fallback_insights(transcript_summary: str) -> TranscriptInsights:
    """Build insights from bullet lines without calling a model."""
    lines = [line for line in transcript_summary.splitlines() if line.strip()]
    bullets = [_clean_bullet(line) for line in lines if _BULLET_RE.match(line)]

    return TranscriptInsights(
        pain_points=[b for b in bullets[:3] if b],
        discussion_topics=[b for b in bullets[3:7] if b],
        solutions=list(FALLBACK_SOLUTIONS),
        summary=FALLBACK_SUMMARY,
    )


def _parse_insights(text: str) -> TranscriptInsights | None:
    match = _JSON_OBJECT_RE.search(text)
    if not match:
        return None
    try:
        return TranscriptInsights.model_validate(json.loads(match.group(0)))
    except ValueError:
        return None


def extract_insights(
    transcript_summary: str,
    company_name: str | None = None,
) -> tuple[TranscriptInsights, bool]:
    """Return ``(insights, used_fallback)`` for a call summary."""
    if not INSIGHTS_SERVING_ENDPOINT:
        logger.warning("INSIGHTS_SERVING_ENDPOINT not configured, using fallback insights")
        return fallback_insights(transcript_summary), True

    try:
        text = _complete(_analysis_prompt(transcript_summary, company_name), INSIGHTS_MAX_TOKENS)
    except Exception:
        logger.exception("Insight extraction call failed; using fallback insights")
        return fallback_insights(transcript_summary), True

    insights = _parse_insights(text)
    if insights is None:
        logger.warning("Insight reply was not a JSON object; using fallback insights")
        return fallback_insights(transcript_summary), True
    return insights, False


# ---------------------------------------------------------------------------
# Executive summary
# ---------------------------------------------------------------------------
def generate_executive_summary(
    business_context: str,
    company_name: str,
    template: ProposalTemplate,
    services: Iterable[ServiceId],
) -> str:
    """Draft a 2-3 sentence executive summary for the proposal."""
    if not INSIGHTS_SERVING_ENDPOINT:
        raise InsightGenerationError("No text-generation endpoint configured")

    prompt = _summary_prompt(business_context, company_name, template, services)
    try:
        summary = _complete(prompt, SUMMARY_MAX_TOKENS)
    except Exception as exc:
        raise InsightGenerationError(f"Summary generation failed: {exc}") from exc

    if not summary:
        raise InsightGenerationError("Summary generation returned no text")
    return summary
