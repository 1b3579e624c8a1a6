"""End-to-end tests for the HTTP routes over real services."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from dealflow.api.auth import create_session_token
from dealflow.app import create_app
from dealflow.audit.models import EventKind
from dealflow.config import Settings
from dealflow.domain.types import BrandResponseStatus, DealStatus, TokenAction
from dealflow.store.records import load_deal

SECRET = "test-session-secret"
CODE = "123456"
CONTRACT_URL = "https://files.test/contracts/deal-1/agreement.pdf"


@pytest.fixture
def client(services: dict[str, Any], tmp_path: Path) -> TestClient:
    settings = Settings(  # type: ignore[call-arg]
        _env_file=None,
        session_secret=SECRET,
        public_app_url="https://app.test",
        blob_local_root=tmp_path / "blobs",
    )
    return TestClient(create_app({**services, "_settings": settings}))


@pytest.fixture
def auth() -> dict[str, str]:
    return {"Authorization": f"Bearer {create_session_token('creator-1', SECRET)}"}


@pytest.fixture
def stranger_auth() -> dict[str, str]:
    return {"Authorization": f"Bearer {create_session_token('creator-999', SECRET)}"}


# ---------------------------------------------------------------------------
# Proposals
# ---------------------------------------------------------------------------


class TestSubmitProposal:
    PAYLOAD = {
        "creator": {"id": "creator-1", "name": "Asha Rao", "email": "asha@creators.test"},
        "brand_name": "Glow Labs",
        "brand_email": "partners@glowlabs.test",
        "budget": "4000",
        "deliverables": ["1 Reel"],
    }

    def test_requires_session(self, client: TestClient) -> None:
        response = client.post("/api/deals", json=self.PAYLOAD)
        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "error": "Invalid or missing session",
            "code": "unauthorized",
        }

    def test_rejects_forged_session(self, client: TestClient) -> None:
        forged = create_session_token("creator-1", "other-secret")
        response = client.post(
            "/api/deals", json=self.PAYLOAD, headers={"Authorization": f"Bearer {forged}"}
        )
        assert response.status_code == 401

    def test_creates_deal(self, client: TestClient, auth) -> None:
        response = client.post("/api/deals", json=self.PAYLOAD, headers=auth)
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["deal"]["status"] == "negotiation"
        assert body["links"]["accept"].startswith("https://app.test/collab-action?token=")

    def test_creator_mismatch(self, client: TestClient, stranger_auth) -> None:
        response = client.post("/api/deals", json=self.PAYLOAD, headers=stranger_auth)
        assert response.status_code == 403
        assert response.json()["code"] == "access_denied"

    def test_malformed_payload(self, client: TestClient, auth) -> None:
        response = client.post("/api/deals", json={"brand_name": "x"}, headers=auth)
        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"


# ---------------------------------------------------------------------------
# Brand responses
# ---------------------------------------------------------------------------


class TestCollabAction:
    def test_details(self, client: TestClient, make_deal, tokens) -> None:
        deal = make_deal()
        token = tokens.mint(deal.id, TokenAction.COUNTER).token
        response = client.get("/api/collab-action/details", params={"token": token})
        assert response.status_code == 200
        body = response.json()
        assert body["token_action"] == "counter"
        assert body["deal"]["brand_name"] == "Glow Labs"
        assert body["suggestions"]["budget"] == "4800"

    def test_unknown_token(self, client: TestClient) -> None:
        response = client.get("/api/collab-action/details", params={"token": "nope"})
        assert response.status_code == 404
        assert response.json()["code"] == "not_found"

    def test_confirm_records_forwarded_ip(
        self, client: TestClient, make_deal, tokens, audit_logger
    ) -> None:
        deal = make_deal()
        token = tokens.mint(deal.id, TokenAction.ACCEPT).token
        response = client.post(
            "/api/collab-action/confirm",
            json={"token": token},
            headers={"X-Forwarded-For": "198.51.100.7, 10.0.0.1"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["applied"] is True
        assert body["brand_response_status"] == "accepted_verified"
        assert body["contract_url"]
        (entry,) = audit_logger.trail(deal.id, EventKind.BRAND_ACCEPTED)
        assert entry["metadata"]["ip_partial"] == "198.51.100.xxx"

    def test_double_confirm(self, client: TestClient, make_deal, tokens) -> None:
        token = tokens.mint(make_deal().id, TokenAction.ACCEPT).token
        client.post("/api/collab-action/confirm", json={"token": token})
        response = client.post("/api/collab-action/confirm", json={"token": token})
        assert response.status_code == 200
        assert response.json()["applied"] is False
        assert response.json()["status_message"] == "This request is already accepted."

    def test_wrong_token_action(self, client: TestClient, make_deal, tokens) -> None:
        token = tokens.mint(make_deal().id, TokenAction.DECLINE).token
        response = client.post("/api/collab-action/confirm", json={"token": token})
        assert response.status_code == 401
        assert response.json()["code"] == "invalid_token"

    def test_expired_token(self, client: TestClient, make_deal, tokens, clock) -> None:
        expired_at = clock() - timedelta(seconds=1)
        token = tokens.mint(make_deal().id, TokenAction.DECLINE, expires_at=expired_at).token
        response = client.post("/api/collab-action/decline", json={"token": token})
        assert response.status_code == 410

    def test_decline(self, client: TestClient, make_deal, tokens, store) -> None:
        deal = make_deal()
        token = tokens.mint(deal.id, TokenAction.DECLINE).token
        response = client.post(
            "/api/collab-action/decline", json={"token": token, "reason": "Out of budget"}
        )
        assert response.status_code == 200
        assert load_deal(store, deal.id).decline_reason == "Out of budget"

    def test_counter_validation(self, client: TestClient, make_deal, tokens) -> None:
        token = tokens.mint(make_deal().id, TokenAction.COUNTER).token
        response = client.post(
            "/api/collab-action/counter",
            json={
                "token": token,
                "budget": "lots",
                "deliverables": ["1 Reel"],
                "timeline": "2026-03-25",
            },
        )
        assert response.status_code == 422
        assert response.json()["field"] == "budget"

    def test_counter_on_declined_deal(self, client: TestClient, make_deal, tokens) -> None:
        deal = make_deal(brand_response_status=BrandResponseStatus.DECLINED)
        token = tokens.mint(deal.id, TokenAction.COUNTER).token
        response = client.post(
            "/api/collab-action/counter",
            json={
                "token": token,
                "budget": "5000",
                "deliverables": ["1 Reel"],
                "timeline": "2026-03-25",
            },
        )
        assert response.status_code == 409


# ---------------------------------------------------------------------------
# OTP and signing
# ---------------------------------------------------------------------------


@pytest.fixture
def contracted_deal(make_deal):
    return make_deal(
        status=DealStatus.SENT,
        brand_response_status=BrandResponseStatus.ACCEPTED_VERIFIED,
        contract_file_url=CONTRACT_URL,
    )


class TestSigning:
    def _brand_token(self, tokens, deal) -> str:
        return tokens.mint(deal.id, TokenAction.SIGN_AS_BRAND, bound_email=deal.brand_email).token

    def test_full_brand_signature(self, client: TestClient, tokens, contracted_deal) -> None:
        token = self._brand_token(tokens, contracted_deal)
        otp_body = {"token": token, "email": "partners@glowlabs.test"}
        sent = client.post("/api/otp/send", json=otp_body)
        assert sent.status_code == 200
        assert sent.json()["message"] == "Verification code sent to your email"

        verified = client.post("/api/otp/verify", json={"token": token, "otp": CODE})
        assert verified.status_code == 200

        signed = client.post(
            "/api/esign/sign",
            json={"token": token, "signer_name": "Meera", "signer_email": "partners@glowlabs.test"},
            headers={"User-Agent": "Mozilla/5.0 (iPhone) Mobile Safari/604.1"},
        )
        assert signed.status_code == 200
        body = signed.json()
        assert body["signature"]["role"] == "brand"
        assert body["signature"]["device_info"]["device_type"] == "mobile"
        assert body["executed"] is False

    def test_sign_without_otp(self, client: TestClient, tokens, contracted_deal) -> None:
        token = self._brand_token(tokens, contracted_deal)
        response = client.post(
            "/api/esign/sign",
            json={"token": token, "signer_name": "Meera", "signer_email": "partners@glowlabs.test"},
        )
        assert response.status_code == 403
        assert response.json()["code"] == "otp_required"

    def test_wrong_code_reports_attempts(self, client: TestClient, tokens, contracted_deal) -> None:
        token = self._brand_token(tokens, contracted_deal)
        client.post("/api/otp/send", json={"token": token, "email": "partners@glowlabs.test"})
        response = client.post("/api/otp/verify", json={"token": token, "otp": "000000"})
        assert response.status_code == 400
        assert response.json()["attempts_remaining"] == 4

    def test_resend_cooldown(self, client: TestClient, tokens, contracted_deal) -> None:
        token = self._brand_token(tokens, contracted_deal)
        otp_body = {"token": token, "email": "partners@glowlabs.test"}
        client.post("/api/otp/send", json=otp_body)
        response = client.post("/api/otp/send", json=otp_body)
        assert response.status_code == 429
        assert response.headers["Retry-After"] == str(response.json()["retry_after_seconds"])

    def test_contract_ready(self, client: TestClient, tokens, contracted_deal) -> None:
        token = tokens.mint(contracted_deal.id, TokenAction.VIEW_CONTRACT).token
        response = client.get(f"/api/contract-ready/{token}")
        assert response.status_code == 200
        assert response.json()["contract_url"] == CONTRACT_URL


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


class TestDashboard:
    def test_unsigned_role_returns_null(self, client: TestClient, contracted_deal, auth) -> None:
        response = client.get(f"/api/deals/{contracted_deal.id}/signatures/creator", headers=auth)
        assert response.status_code == 200
        assert response.json() == {"success": True, "signature": None}

    def test_signature_bad_role(self, client: TestClient, contracted_deal, auth) -> None:
        response = client.get(f"/api/deals/{contracted_deal.id}/signatures/witness", headers=auth)
        assert response.status_code == 422

    def test_upload_rejects_non_pdf(self, client: TestClient, contracted_deal, auth) -> None:
        response = client.post(
            f"/api/deals/{contracted_deal.id}/upload-signed-contract",
            content=b"not a pdf",
            headers=auth,
        )
        assert response.status_code == 422
        assert response.json()["field"] == "file"

    def test_upload_pdf(self, client: TestClient, contracted_deal, auth) -> None:
        response = client.post(
            f"/api/deals/{contracted_deal.id}/upload-signed-contract",
            content=b"%PDF-1.7 wet signed",
            headers={**auth, "Content-Type": "application/pdf"},
        )
        assert response.status_code == 200
        assert response.json()["deal"]["deal_execution_status"] == "signed"

    def test_delivery_details_on_paid_deal(self, client: TestClient, contracted_deal, auth) -> None:
        response = client.post(
            f"/api/deals/{contracted_deal.id}/delivery-details",
            json={"name": "Asha", "phone": "9876543210", "address": "12 MG Road"},
            headers=auth,
        )
        assert response.status_code == 422
        assert response.json()["field"] == "collab_type"

    def test_log_share(self, client: TestClient, make_deal, auth) -> None:
        deal = make_deal()
        response = client.post(
            f"/api/deals/{deal.id}/log-share", json={"channel": "whatsapp"}, headers=auth
        )
        assert response.status_code == 200
        body = response.json()
        assert body["deal"]["status"] == "sent"
        assert set(body["links"]) == {"accept", "decline", "counter"}

    def test_log_share_without_body(self, client: TestClient, make_deal, auth) -> None:
        response = client.post(f"/api/deals/{make_deal().id}/log-share", headers=auth)
        assert response.status_code == 200

    def test_log_reminder(self, client: TestClient, make_deal, auth) -> None:
        response = client.post(f"/api/deals/{make_deal().id}/log-reminder", headers=auth)
        assert response.status_code == 200
        assert response.json()["deal"]["last_reminded_at"] is not None

    def test_stranger_cannot_log(self, client: TestClient, make_deal, stranger_auth) -> None:
        response = client.post(f"/api/deals/{make_deal().id}/log-reminder", headers=stranger_auth)
        assert response.status_code == 403
