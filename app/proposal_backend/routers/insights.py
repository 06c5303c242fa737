"""
Insights router.

Turns a sales call summary into proposal insights and drafts executive
summaries through the configured text-generation endpoint.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from proposal_backend.models import (
    AnalyzeTranscriptRequest,
    AnalyzeTranscriptResponse,
    ExecutiveSummaryRequest,
    ExecutiveSummaryResponse,
)
from proposal_backend.services.insights import (
    InsightGenerationError,
    extract_insights,
    generate_executive_summary,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/insights", tags=["insights"])


@router.post(
    "/analyze-transcript",
    response_model=AnalyzeTranscriptResponse,
    summary="Extract pain points, topics and solutions from a call summary",
)
async def analyze_transcript(request: AnalyzeTranscriptRequest) -> AnalyzeTranscriptResponse:
    """Always answers; falls back to bullet-line extraction when the model is
    unavailable.
    """
    insights, used_fallback = extract_insights(
        request.transcript_summary, company_name=request.company_name
    )
    return AnalyzeTranscriptResponse(insights=insights, used_fallback=used_fallback)


@router.post(
    "/executive-summary",
    response_model=ExecutiveSummaryResponse,
    summary="Draft an executive summary from the rep's business context",
)
async def executive_summary(request: ExecutiveSummaryRequest) -> ExecutiveSummaryResponse:
    try:
        summary = generate_executive_summary(
            request.business_context,
            request.company_name,
            request.template,
            request.services,
        )
    except InsightGenerationError as exc:
        logger.warning("Executive summary unavailable: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return ExecutiveSummaryResponse(summary=summary)
