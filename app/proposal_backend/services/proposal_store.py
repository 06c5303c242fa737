"""
Proposal storage.

Proposals are stored as opaque encoded tokens keyed by a human-readable slug
derived from the company name.  A proposal can carry a single signature
record; signing locks it against further edits.

Both tables live in Unity Catalog and are accessed through the SQL Statement
Execution API with named parameters.  Token lookups are cached per slug and
the cache entry is dropped whenever the proposal is rewritten.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from proposal_backend.models import SignatureRecord
from proposal_backend.utils.config import TABLE_PROPOSALS, TABLE_SIGNATURES
from proposal_backend.utils.databricks_client import execute_sql, invalidate_cache
from proposal_backend.utils.formatting import slugify

logger = logging.getLogger(__name__)

_DEFAULT_SLUG = "proposal"


class ProposalNotFoundError(LookupError):
    """No proposal is stored under the given slug."""


class ProposalAlreadySignedError(RuntimeError):
    """The proposal already carries a signature and is locked."""


def _cache_key(slug: str) -> str:
    return f"proposal:{slug}"


def _slug_exists(slug: str) -> bool:
    rows = execute_sql(
        f"SELECT slug FROM {TABLE_PROPOSALS} WHERE slug = :slug LIMIT 1",
        parameters={"slug": slug},
    )
    return bool(rows)


def _affected_rows(rows: list[dict]) -> int:
    """Row count reported by an UPDATE or MERGE result set."""
    if not rows:
        return 0
    return int(rows[0].get("num_affected_rows") or 0)


# ---------------------------------------------------------------------------
# Proposals
# ---------------------------------------------------------------------------
def create_proposal(encoded_proposal: str, company_name: str) -> str:
    """Store a new proposal and return its slug.

    The slug is the slugified company name; if it is taken a short random
    suffix is appended.
    """
    slug = slugify(company_name) or _DEFAULT_SLUG
    if _slug_exists(slug):
        slug = f"{slug}-{uuid.uuid4().hex[:4]}"

    now = datetime.now(timezone.utc).isoformat()
    execute_sql(
        f"""
        INSERT INTO {TABLE_PROPOSALS}
            (slug, encoded_proposal, company_name, created_at, updated_at)
        VALUES
            (:slug, :encoded_proposal, :company_name, :created_at, :updated_at)
        """,
        parameters={
            "slug": slug,
            "encoded_proposal": encoded_proposal,
            "company_name": company_name,
            "created_at": now,
            "updated_at": now,
        },
    )
    invalidate_cache(_cache_key(slug))
    logger.info("Stored proposal %s for %s", slug, company_name)
    return slug


def get_encoded_proposal(slug: str) -> str | None:
    """Return the stored token for *slug*, or ``None`` if absent."""
    rows = execute_sql(
        f"SELECT encoded_proposal FROM {TABLE_PROPOSALS} WHERE slug = :slug LIMIT 1",
        parameters={"slug": slug},
        cache_key=_cache_key(slug),
    )
    if not rows:
        return None
    return str(rows[0]["encoded_proposal"])


def update_proposal(slug: str, encoded_proposal: str) -> None:
    """Replace the stored token for an existing, unsigned proposal.

    The signature check is part of the UPDATE itself, so a signature that
    lands concurrently can never be followed by an edit.
    """
    rows = execute_sql(
        f"""
        UPDATE {TABLE_PROPOSALS}
        SET encoded_proposal = :encoded_proposal, updated_at = :updated_at
        WHERE slug = :slug
          AND NOT EXISTS (SELECT 1 FROM {TABLE_SIGNATURES} WHERE slug = :slug)
        """,
        parameters={
            "slug": slug,
            "encoded_proposal": encoded_proposal,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        },
    )
    if not _affected_rows(rows):
        if not _slug_exists(slug):
            raise ProposalNotFoundError(f"Proposal '{slug}' not found")
        raise ProposalAlreadySignedError(f"Proposal '{slug}' is signed and locked")

    invalidate_cache(_cache_key(slug))
    logger.info("Updated proposal %s", slug)


# ---------------------------------------------------------------------------
# Signatures
# ---------------------------------------------------------------------------
def get_signature(slug: str) -> SignatureRecord | None:
    rows = execute_sql(
        f"""
        SELECT full_name, email, signed_at, ip_address, user_agent, agreed_to_terms
        FROM {TABLE_SIGNATURES}
        WHERE slug = :slug
        LIMIT 1
        """,
        parameters={"slug": slug},
    )
    if not rows:
        return None

    r = rows[0]
    return SignatureRecord(
        full_name=str(r["full_name"]),
        email=str(r["email"]),
        signed_at=datetime.fromisoformat(str(r["signed_at"])),
        ip_address=str(r["ip_address"]),
        user_agent=str(r["user_agent"]),
        agreed_to_terms=str(r["agreed_to_terms"]).lower() in ("true", "1"),
    )


def record_signature(slug: str, signature: SignatureRecord) -> None:
    """Attach the one and only signature to a proposal.

    A single MERGE inserts the row only when the proposal exists and has no
    signature yet; concurrent MERGEs on the same table conflict in Delta
    instead of both inserting.
    """
    rows = execute_sql(
        f"""
        MERGE INTO {TABLE_SIGNATURES} AS t
        USING (
            SELECT slug FROM {TABLE_PROPOSALS} WHERE slug = :slug
        ) AS s
        ON t.slug = s.slug
        WHEN NOT MATCHED THEN INSERT
            (slug, full_name, email, signed_at, ip_address, user_agent, agreed_to_terms)
        VALUES
            (s.slug, :full_name, :email, :signed_at, :ip_address, :user_agent, :agreed_to_terms)
        """,
        parameters={
            "slug": slug,
            "full_name": signature.full_name,
            "email": signature.email,
            "signed_at": signature.signed_at.isoformat(),
            "ip_address": signature.ip_address,
            "user_agent": signature.user_agent,
            "agreed_to_terms": str(signature.agreed_to_terms).lower(),
        },
    )
    if not _affected_rows(rows):
        if not _slug_exists(slug):
            raise ProposalNotFoundError(f"Proposal '{slug}' not found")
        raise ProposalAlreadySignedError(f"Proposal '{slug}' has already been signed")

    logger.info("Proposal %s signed by %s", slug, signature.email)
