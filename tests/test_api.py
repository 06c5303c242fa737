"""
Tests for the FastAPI backend endpoints.

Uses fastapi.testclient.TestClient with the SQL warehouse replaced by an
in-memory fake so that tests can run without a live workspace connection.
"""

from __future__ import annotations

import base64
import json
import os
import sys
from datetime import datetime, timezone
from typing import Any
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

# Ensure the app package is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "app"))

from proposal_backend.main import app  # noqa: E402
from proposal_backend.services.checkout_links import CHECKOUT_LINKS  # noqa: E402
from proposal_backend.models import CheckoutKey, ContractTerm, SignatureRecord  # noqa: E402
from proposal_backend.services.proposal_store import (  # noqa: E402
    ProposalAlreadySignedError,
    ProposalNotFoundError,
    create_proposal,
    record_signature,
    update_proposal,
)

_STORE = "proposal_backend.services.proposal_store"
_INSIGHTS = "proposal_backend.services.insights"


class FakeWarehouse:
    """Answers the proposal store's statements from two dicts keyed by slug.

    UPDATE and MERGE only apply to an existing, unsigned proposal and report
    ``num_affected_rows`` the way the warehouse does.
    """

    def __init__(self) -> None:
        self.proposals: dict[str, dict[str, Any]] = {}
        self.signatures: dict[str, dict[str, Any]] = {}
        self.statements: list[str] = []

    def _writable(self, slug: str) -> bool:
        return slug in self.proposals and slug not in self.signatures

    def __call__(self, query: str, *, parameters=None, **kwargs) -> list[dict[str, Any]]:
        sql = " ".join(query.split()).lower()
        params = dict(parameters or {})
        slug = params.get("slug")
        self.statements.append(sql)

        if sql.startswith("merge"):
            if not self._writable(slug):
                return [{"num_affected_rows": "0", "num_inserted_rows": "0"}]
            self.signatures[slug] = params
            return [{"num_affected_rows": "1", "num_inserted_rows": "1"}]
        if sql.startswith("update"):
            if not self._writable(slug):
                return [{"num_affected_rows": "0", "num_updated_rows": "0"}]
            self.proposals[slug].update(params)
            return [{"num_affected_rows": "1", "num_updated_rows": "1"}]
        if sql.startswith("insert"):
            self.proposals[slug] = params
            return [{"num_affected_rows": "1", "num_inserted_rows": "1"}]

        table = self.signatures if "proposal_signatures" in sql else self.proposals
        row = table.get(slug)
        return [row] if row else []


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def warehouse():
    fake = FakeWarehouse()
    with patch(f"{_STORE}.execute_sql", side_effect=fake):
        yield fake


@pytest.fixture()
def client(warehouse):
    return TestClient(app)


@pytest.fixture()
def proposal_body() -> dict:
    return {
        "customer_name": "Dana Reyes",
        "company_name": "Acme Dental",
        "template": "leads",
        "selected_services": ["seo", "paid_ads", "website"],
        "term_options": [
            {"term": "annual"},
            {"term": "quarterly", "discount_percentage": 10},
        ],
        "sales_rep_name": "Sam Lee",
        "sales_rep_email": "Sam@Example.com",
    }


def _create(client: TestClient, body: dict) -> dict:
    resp = client.post("/api/v1/proposals/", json=body)
    assert resp.status_code == 200, resp.text
    return resp.json()


def _sign(client: TestClient, slug: str, **overrides):
    body = {"full_name": "  Pat Doe ", "email": "Pat@Example.com", "agreed_to_terms": True}
    body.update(overrides)
    return client.post(
        f"/api/v1/proposals/{slug}/sign",
        json=body,
        headers={"x-forwarded-for": "203.0.113.9", "user-agent": "pytest-agent"},
    )


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------
class TestHealth:
    def test_health_returns_200(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert "version" in data


# ---------------------------------------------------------------------------
# Quotes
# ---------------------------------------------------------------------------
class TestQuotes:
    """Rate card, single and multi-term quotes, checkout links."""

    def test_rates(self, client):
        resp = client.get("/api/v1/rates")
        assert resp.status_code == 200
        data = resp.json()
        assert [t["term"] for t in data["terms"]] == ["annual", "bi_annual", "quarterly", "monthly"]
        seo = next(item for item in data["items"] if item["item"] == "seo")
        assert seo["advertised"]["annual"] == 699
        assert seo["processor_upfront"]["annual"] == 8399

    def test_annual_quote(self, client):
        resp = client.post(
            "/api/v1/quotes",
            json={"services": ["seo", "paid_ads", "website"], "term": "annual"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["upfront_total"] == 28548
        assert data["term_months"] == 12
        assert [li["item"] for li in data["line_items"]] == ["seo_paid_combo", "website"]
        assert data["discount_amount"] == 0

    @pytest.mark.parametrize(
        "body",
        [
            {"services": [], "term": "annual"},
            {"services": ["seo"], "term": "weekly"},
            {"services": ["email"], "term": "annual"},
            {"services": ["seo"], "term": "annual", "discount_percentage": 120},
            {"services": ["seo"], "term": "annual", "discount_dollar": -5},
        ],
    )
    def test_invalid_quote_returns_422(self, client, body):
        resp = client.post("/api/v1/quotes", json=body)
        assert resp.status_code == 422

    def test_astronomical_dollar_discount_clamps(self, client):
        resp = client.post(
            "/api/v1/quotes",
            json={"services": ["seo"], "term": "annual", "discount_dollar": 1e30},
        )
        assert resp.status_code == 200
        assert resp.json()["upfront_total"] == 0

    def test_infinite_dollar_discount_returns_422(self, client):
        resp = client.post(
            "/api/v1/quotes",
            content='{"services": ["seo"], "term": "annual", "discount_dollar": 1e400}',
            headers={"content-type": "application/json"},
        )
        assert resp.status_code == 422

    def test_multi_term_quote(self, client):
        resp = client.post(
            "/api/v1/quotes/multi-term",
            json={
                "services": ["seo"],
                "term_options": [{"term": "annual"}, {"term": "monthly"}],
            },
        )
        assert resp.status_code == 200
        data = resp.json()
        assert [tp["pricing"]["term"] for tp in data["term_pricings"]] == ["annual", "monthly"]
        assert data["best_value_index"] == 0
        assert data["savings"]["monthly_savings"] == 300
        assert data["savings"]["savings_pct"] == 30

    def test_checkout_link(self, client):
        resp = client.get(
            "/api/v1/checkout-link",
            params=[("term", "annual"), ("services", "seo"), ("services", "paid_ads"), ("services", "website")],
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["key"] == "seo_paid_ads"
        assert data["url"] == CHECKOUT_LINKS[ContractTerm.ANNUAL][CheckoutKey.SEO_PAID_ADS]
        assert data["website_addon"] is True

    def test_website_only_checkout_link_is_404(self, client):
        resp = client.get(
            "/api/v1/checkout-link", params={"term": "monthly", "services": "website"}
        )
        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Proposals
# ---------------------------------------------------------------------------
class TestProposals:
    """Create, view, update and sign through the HTTP surface."""

    def test_create_and_view(self, client, warehouse, proposal_body):
        created = _create(client, proposal_body)
        assert created["slug"] == "acme-dental"
        assert created["url"].endswith("/p/acme-dental")
        assert warehouse.proposals["acme-dental"]["encoded_proposal"] == created["token"]

        resp = client.get("/api/v1/proposals/acme-dental")
        assert resp.status_code == 200
        view = resp.json()
        assert view["config"]["sales_rep_email"] == "sam@example.com"
        assert view["term_pricings"][0]["pricing"]["upfront_total"] == 28548
        assert view["term_pricings"][0]["formatted_upfront_total"] == "$28,548"
        assert view["term_pricings"][0]["is_best_value"] is True
        assert view["term_pricings"][1]["pricing"]["total"] == 2598.6
        assert view["website_addon"] is True
        assert view["any_discount"] is True
        assert view["is_locked"] is False
        assert view["signature"] is None

    def test_duplicate_company_gets_suffixed_slug(self, client, proposal_body):
        first = _create(client, proposal_body)
        second = _create(client, proposal_body)
        assert first["slug"] == "acme-dental"
        assert second["slug"].startswith("acme-dental-")
        assert len(second["slug"]) == len("acme-dental-") + 4

    def test_unsluggable_company_name(self, client, proposal_body):
        proposal_body["company_name"] = "!!!"
        assert _create(client, proposal_body)["slug"] == "proposal"

    def test_unknown_slug_is_404(self, client):
        assert client.get("/api/v1/proposals/nobody").status_code == 404

    def test_view_by_token(self, client, proposal_body):
        token = _create(client, proposal_body)["token"]
        resp = client.get(f"/api/v1/proposals/token/{token}")
        assert resp.status_code == 200
        assert resp.json()["proposal_id"] == token[:12]

    def test_bad_token_is_400(self, client):
        assert client.get("/api/v1/proposals/token/not-a-token").status_code == 400

    def test_token_with_out_of_range_timestamp_is_400(self, client):
        payload = {
            "v": 2, "cn": "Dana", "co": "Acme", "t": "leads", "a": ["seo"],
            "sr": "Sam", "se": "sam@example.com", "ts": 1e22, "st": [{"t": "annual"}],
        }
        token = base64.urlsafe_b64encode(json.dumps(payload).encode()).decode().rstrip("=")
        assert client.get(f"/api/v1/proposals/token/{token}").status_code == 400

    def test_invalid_rep_email_is_422(self, client, proposal_body):
        proposal_body["sales_rep_email"] = "not-an-email"
        assert client.post("/api/v1/proposals/", json=proposal_body).status_code == 422

    def test_update(self, client, proposal_body):
        created = _create(client, proposal_body)
        proposal_body["selected_services"] = ["seo"]
        resp = client.put(f"/api/v1/proposals/{created['slug']}", json=proposal_body)
        assert resp.status_code == 200
        assert resp.json()["token"] != created["token"]

        view = client.get(f"/api/v1/proposals/{created['slug']}").json()
        assert view["config"]["selected_services"] == ["seo"]
        assert view["term_pricings"][0]["pricing"]["upfront_total"] == 8399

    def test_update_unknown_slug_is_404(self, client, proposal_body):
        assert client.put("/api/v1/proposals/nobody", json=proposal_body).status_code == 404

    def test_sign_locks_proposal(self, client, warehouse, proposal_body):
        slug = _create(client, proposal_body)["slug"]

        resp = _sign(client, slug)
        assert resp.status_code == 200
        record = resp.json()
        assert record["full_name"] == "Pat Doe"
        assert record["email"] == "pat@example.com"
        assert record["ip_address"] == "203.0.113.9"
        assert record["user_agent"] == "pytest-agent"
        assert warehouse.signatures[slug]["agreed_to_terms"] == "true"

        view = client.get(f"/api/v1/proposals/{slug}").json()
        assert view["is_locked"] is True
        assert view["signature"]["email"] == "pat@example.com"

        assert _sign(client, slug).status_code == 409
        assert client.put(f"/api/v1/proposals/{slug}", json=proposal_body).status_code == 409

    def test_sign_without_agreement_is_400(self, client, warehouse, proposal_body):
        slug = _create(client, proposal_body)["slug"]
        assert _sign(client, slug, agreed_to_terms=False).status_code == 400
        assert slug not in warehouse.signatures

    def test_sign_unknown_slug_is_404(self, client):
        assert _sign(client, "nobody").status_code == 404

    def test_sign_with_bad_email_is_422(self, client, proposal_body):
        slug = _create(client, proposal_body)["slug"]
        assert _sign(client, slug, email="pat@").status_code == 422

    def test_warehouse_failure_is_500(self, client, warehouse):
        with patch(f"{_STORE}.execute_sql", side_effect=RuntimeError("warehouse down")):
            resp = client.get("/api/v1/proposals/acme-dental")
        assert resp.status_code == 500
        assert "warehouse down" in resp.json()["detail"]


class TestProposalStore:
    """Sign and update are single conditional statements."""

    def _signature(self, email: str = "pat@example.com") -> SignatureRecord:
        return SignatureRecord(
            full_name="Pat Doe",
            email=email,
            signed_at=datetime(2025, 3, 4, 12, 0, tzinfo=timezone.utc),
            ip_address="203.0.113.9",
            user_agent="pytest-agent",
            agreed_to_terms=True,
        )

    def test_sign_is_one_merge(self, warehouse):
        slug = create_proposal("token-a", "Acme Dental")
        warehouse.statements.clear()

        record_signature(slug, self._signature())

        assert len(warehouse.statements) == 1
        assert warehouse.statements[0].startswith("merge into")
        assert "when not matched then insert" in warehouse.statements[0]
        assert warehouse.signatures[slug]["email"] == "pat@example.com"

    def test_signature_landing_first_wins(self, warehouse):
        slug = create_proposal("token-a", "Acme Dental")
        record_signature(slug, self._signature("first@example.com"))

        with pytest.raises(ProposalAlreadySignedError):
            record_signature(slug, self._signature("second@example.com"))
        assert warehouse.signatures[slug]["email"] == "first@example.com"

    def test_sign_unknown_slug(self, warehouse):
        with pytest.raises(ProposalNotFoundError):
            record_signature("nobody", self._signature())
        assert warehouse.signatures == {}

    def test_update_checks_signature_in_same_statement(self, warehouse):
        slug = create_proposal("token-a", "Acme Dental")
        warehouse.statements.clear()

        update_proposal(slug, "token-b")

        assert len(warehouse.statements) == 1
        assert warehouse.statements[0].startswith("update")
        assert "not exists" in warehouse.statements[0]
        assert warehouse.proposals[slug]["encoded_proposal"] == "token-b"

    def test_update_after_concurrent_signature_is_rejected(self, warehouse):
        slug = create_proposal("token-a", "Acme Dental")
        # Another request's signature is already committed
        warehouse.signatures[slug] = {"slug": slug, "email": "pat@example.com"}

        with pytest.raises(ProposalAlreadySignedError):
            update_proposal(slug, "token-b")
        assert warehouse.proposals[slug]["encoded_proposal"] == "token-a"

    def test_update_unknown_slug(self, warehouse):
        with pytest.raises(ProposalNotFoundError):
            update_proposal("nobody", "token-b")


# ---------------------------------------------------------------------------
# Insights
# ---------------------------------------------------------------------------
class TestInsights:
    """Transcript analysis and executive summaries."""

    def test_analyze_transcript_falls_back(self, client):
        with patch(f"{_INSIGHTS}.INSIGHTS_SERVING_ENDPOINT", ""):
            resp = client.post(
                "/api/v1/insights/analyze-transcript",
                json={"transcript_summary": "- Leads are expensive\n- Site is slow"},
            )
        assert resp.status_code == 200
        data = resp.json()
        assert data["used_fallback"] is True
        assert data["insights"]["pain_points"] == ["Leads are expensive", "Site is slow"]

    def test_blank_transcript_is_422(self, client):
        resp = client.post(
            "/api/v1/insights/analyze-transcript", json={"transcript_summary": "   "}
        )
        assert resp.status_code == 422

    def test_executive_summary_unavailable_is_502(self, client):
        with patch(f"{_INSIGHTS}.INSIGHTS_SERVING_ENDPOINT", ""):
            resp = client.post(
                "/api/v1/insights/executive-summary",
                json={"business_context": "HVAC", "company_name": "Acme", "services": ["seo"]},
            )
        assert resp.status_code == 502

    def test_executive_summary(self, client):
        reply = {"choices": [{"message": {"content": "This proposal outlines growth."}}]}
        with patch(f"{_INSIGHTS}.INSIGHTS_SERVING_ENDPOINT", "proposal-llm"), patch(
            f"{_INSIGHTS}.call_serving_endpoint", return_value=reply
        ):
            resp = client.post(
                "/api/v1/insights/executive-summary",
                json={"business_context": "HVAC", "company_name": "Acme", "services": ["seo"]},
            )
        assert resp.status_code == 200
        assert resp.json() == {"summary": "This proposal outlines growth."}
