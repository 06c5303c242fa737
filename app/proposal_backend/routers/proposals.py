"""
Proposals router.

Creates, reads, updates and signs proposals.  Only the encoded selection
inputs are stored; every read decodes the token and recomputes pricing.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Request

from proposal_backend.models import (
    CreateProposalResponse,
    ProposalConfig,
    ProposalView,
    SignatureRecord,
    SignatureRequest,
)
from proposal_backend.services.encoding import (
    ProposalDecodeError,
    decode_proposal,
    encode_proposal,
    proposal_id,
)
from proposal_backend.services.proposal_store import (
    ProposalAlreadySignedError,
    ProposalNotFoundError,
    create_proposal,
    get_encoded_proposal,
    get_signature,
    record_signature,
    update_proposal,
)
from proposal_backend.services.proposal_view import build_proposal_view
from proposal_backend.utils.config import PUBLIC_BASE_URL

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/proposals", tags=["proposals"])


def _share_url(slug: str) -> str:
    return f"{PUBLIC_BASE_URL.rstrip('/')}/p/{slug}"


# ---------------------------------------------------------------------------
# POST /
# ---------------------------------------------------------------------------
@router.post(
    "/",
    response_model=CreateProposalResponse,
    summary="Create a proposal and return its share link",
)
async def create(config: ProposalConfig) -> CreateProposalResponse:
    try:
        token = encode_proposal(config)
        slug = create_proposal(token, config.company_name)
    except Exception as exc:
        logger.exception("Failed to create proposal for %s", config.company_name)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return CreateProposalResponse(slug=slug, token=token, url=_share_url(slug))


# ---------------------------------------------------------------------------
# GET /token/{token}
# ---------------------------------------------------------------------------
@router.get(
    "/token/{token}",
    response_model=ProposalView,
    summary="Render a proposal straight from its encoded token",
)
async def view_token(token: str) -> ProposalView:
    try:
        config = decode_proposal(token)
    except ProposalDecodeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return build_proposal_view(proposal_id(token), config)


# ---------------------------------------------------------------------------
# GET /{slug}
# ---------------------------------------------------------------------------
@router.get(
    "/{slug}",
    response_model=ProposalView,
    summary="Render a stored proposal with current pricing",
)
async def view(slug: str) -> ProposalView:
    """Return the proposal's inputs, its signature (if any) and pricing for
    every term option, recomputed from the current rate tables.
    """
    try:
        token = get_encoded_proposal(slug)
        if token is None:
            raise HTTPException(status_code=404, detail=f"Proposal '{slug}' not found")

        config = decode_proposal(token)
        signature = get_signature(slug)
        return build_proposal_view(proposal_id(token), config, signature=signature)
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Failed to load proposal %s", slug)
        raise HTTPException(status_code=500, detail=str(exc)) from exc


# ---------------------------------------------------------------------------
# PUT /{slug}
# ---------------------------------------------------------------------------
@router.put(
    "/{slug}",
    response_model=CreateProposalResponse,
    summary="Replace the inputs of an unsigned proposal",
)
async def update(slug: str, config: ProposalConfig) -> CreateProposalResponse:
    try:
        token = encode_proposal(config)
        update_proposal(slug, token)
    except ProposalNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ProposalAlreadySignedError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("Failed to update proposal %s", slug)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return CreateProposalResponse(slug=slug, token=token, url=_share_url(slug))


# ---------------------------------------------------------------------------
# POST /{slug}/sign
# ---------------------------------------------------------------------------
@router.post(
    "/{slug}/sign",
    response_model=SignatureRecord,
    summary="Sign and lock a proposal",
)
async def sign(slug: str, body: SignatureRequest, request: Request) -> SignatureRecord:
    if not body.agreed_to_terms:
        raise HTTPException(status_code=400, detail="Missing or invalid field: agreed_to_terms")

    headers = request.headers
    client_ip = headers.get("x-forwarded-for") or headers.get("x-real-ip") or "unknown"
    signature = SignatureRecord(
        full_name=body.full_name,
        email=body.email,
        signed_at=datetime.now(timezone.utc),
        ip_address=client_ip,
        user_agent=headers.get("user-agent") or "unknown",
        agreed_to_terms=True,
    )

    try:
        record_signature(slug, signature)
    except ProposalNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ProposalAlreadySignedError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("Failed to sign proposal %s", slug)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return signature
