"""HTTP routes for the deal workflow.

Token routes (``collab-action``, ``otp``, ``esign``, ``contract-ready``)
are public: the action token in the payload is the authorization.  Deal
routes require a bearer session.  Service calls are synchronous and run in
a worker thread.
"""

from __future__ import annotations

import asyncio
from datetime import date
from decimal import Decimal
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from dealflow.api.auth import get_viewer
from dealflow.contracts.delivery import DeliveryService
from dealflow.contracts.pipeline import ContractPipeline
from dealflow.domain.models import ClientInfo, DeliveryDetails, Viewer
from dealflow.domain.types import SignerRole
from dealflow.negotiation.engine import CounterRequest, NegotiationEngine, ProposalRequest
from dealflow.signing.workflow import SigningWorkflow, SignRequest

logger = structlog.get_logger()

router = APIRouter(prefix="/api")


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


class TokenBody(BaseModel):
    token: str


class DeclineBody(TokenBody):
    reason: str | None = None


class CounterBody(TokenBody):
    budget: Decimal | str | int | None = None
    deliverables: list[str] = Field(default_factory=list)
    timeline: date | None = None
    notes: str | None = None


class OtpSendBody(TokenBody):
    email: str


class OtpVerifyBody(TokenBody):
    otp: str


class SignBody(TokenBody):
    signer_name: str
    signer_email: str
    signer_phone: str | None = None


class ShareBody(BaseModel):
    channel: str | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def client_info(request: Request) -> ClientInfo:
    """Extract the caller's IP (first ``X-Forwarded-For`` hop) and user agent."""
    forwarded = request.headers.get("x-forwarded-for", "")
    ip = forwarded.split(",")[0].strip() if forwarded else None
    if not ip and request.client is not None:
        ip = request.client.host
    return ClientInfo(ip_address=ip or None, user_agent=request.headers.get("user-agent"))


def _service(request: Request, name: str) -> Any:
    return request.app.state.services[name]


def _negotiation(request: Request) -> NegotiationEngine:
    return _service(request, "negotiation")


def _signing(request: Request) -> SigningWorkflow:
    return _service(request, "signing")


def _pipeline(request: Request) -> ContractPipeline:
    return _service(request, "contract_pipeline")


def _delivery(request: Request) -> DeliveryService:
    return _service(request, "delivery")


def ok(payload: BaseModel | None = None, **extra: Any) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True}
    if payload is not None:
        body.update(payload.model_dump(mode="json"))
    body.update(extra)
    return body


# ---------------------------------------------------------------------------
# Proposals and brand responses
# ---------------------------------------------------------------------------


@router.post("/deals", status_code=201)
async def submit_proposal(
    body: ProposalRequest, request: Request, viewer: Viewer = Depends(get_viewer)
) -> dict[str, Any]:
    engine = _negotiation(request)
    result = await asyncio.to_thread(engine.submit_proposal, body, viewer)
    return ok(result, links=engine.brand_links(result.tokens))


@router.get("/collab-action/details")
async def collab_details(request: Request, token: str = Query(...)) -> dict[str, Any]:
    details = await asyncio.to_thread(
        _negotiation(request).get_details, token, client_info(request)
    )
    return ok(details)


@router.post("/collab-action/confirm")
async def collab_confirm(body: TokenBody, request: Request) -> dict[str, Any]:
    outcome = await asyncio.to_thread(
        _negotiation(request).confirm, body.token, client_info(request)
    )
    return ok(outcome)


@router.post("/collab-action/decline")
async def collab_decline(body: DeclineBody, request: Request) -> dict[str, Any]:
    outcome = await asyncio.to_thread(
        _negotiation(request).decline, body.token, body.reason, client_info(request)
    )
    return ok(outcome)


@router.post("/collab-action/counter")
async def collab_counter(body: CounterBody, request: Request) -> dict[str, Any]:
    counter = CounterRequest(
        budget=body.budget, deliverables=body.deliverables, timeline=body.timeline, notes=body.notes
    )
    outcome = await asyncio.to_thread(
        _negotiation(request).counter, body.token, counter, client_info(request)
    )
    return ok(outcome)


# ---------------------------------------------------------------------------
# OTP and signing
# ---------------------------------------------------------------------------


@router.post("/otp/send")
async def otp_send(body: OtpSendBody, request: Request) -> dict[str, Any]:
    return ok(await asyncio.to_thread(_signing(request).send_otp, body.token, body.email))


@router.post("/otp/verify")
async def otp_verify(body: OtpVerifyBody, request: Request) -> dict[str, Any]:
    return ok(await asyncio.to_thread(_signing(request).verify_otp, body.token, body.otp))


@router.post("/esign/sign")
async def esign_sign(body: SignBody, request: Request) -> dict[str, Any]:
    sign_request = SignRequest(
        signer_name=body.signer_name, signer_email=body.signer_email, signer_phone=body.signer_phone
    )
    outcome = await asyncio.to_thread(
        _signing(request).sign, body.token, sign_request, client_info(request)
    )
    return ok(outcome)


@router.get("/contract-ready/{token}")
async def contract_ready(token: str, request: Request) -> dict[str, Any]:
    return ok(await asyncio.to_thread(_pipeline(request).view_contract, token))


# ---------------------------------------------------------------------------
# Creator dashboard
# ---------------------------------------------------------------------------


@router.get("/deals/{deal_id}/signatures/{role}")
async def get_signature(
    deal_id: str, role: SignerRole, request: Request, viewer: Viewer = Depends(get_viewer)
) -> dict[str, Any]:
    signature = await asyncio.to_thread(_signing(request).get_signature, deal_id, role, viewer)
    return ok(signature=signature.model_dump(mode="json") if signature is not None else None)


@router.post("/deals/{deal_id}/delivery-details")
async def submit_delivery_details(
    deal_id: str, body: DeliveryDetails, request: Request, viewer: Viewer = Depends(get_viewer)
) -> dict[str, Any]:
    outcome = await asyncio.to_thread(_delivery(request).submit, deal_id, viewer, body)
    return ok(outcome, partial=outcome.partial)


@router.post("/deals/{deal_id}/regenerate-contract")
async def regenerate_contract(
    deal_id: str, request: Request, viewer: Viewer = Depends(get_viewer)
) -> dict[str, Any]:
    return ok(await asyncio.to_thread(_pipeline(request).regenerate, deal_id, viewer))


@router.post("/deals/{deal_id}/upload-signed-contract")
async def upload_signed_contract(
    deal_id: str, request: Request, viewer: Viewer = Depends(get_viewer)
) -> dict[str, Any]:
    data = await request.body()
    outcome = await asyncio.to_thread(
        _signing(request).upload_signed_contract, deal_id, viewer, data
    )
    return ok(outcome)


@router.post("/deals/{deal_id}/log-share")
async def log_share(
    deal_id: str,
    request: Request,
    body: ShareBody | None = None,
    viewer: Viewer = Depends(get_viewer),
) -> dict[str, Any]:
    engine = _negotiation(request)
    channel = body.channel if body is not None else None
    outcome = await asyncio.to_thread(engine.record_share, deal_id, viewer, channel)
    return ok(outcome, links=engine.brand_links(outcome.tokens))


@router.post("/deals/{deal_id}/log-reminder")
async def log_reminder(
    deal_id: str, request: Request, viewer: Viewer = Depends(get_viewer)
) -> dict[str, Any]:
    deal = await asyncio.to_thread(_negotiation(request).record_reminder, deal_id, viewer)
    return ok(deal=deal.model_dump(mode="json"))
