"""Brand-side negotiation over ``brand_response_status``.

Brands act through emailed links: possessing an ``accept``, ``decline`` or
``counter`` token is the only authorization.  Each action is a
compare-and-swap from ``pending``; the loser of a race observes the settled
state and reports it instead of applying anything twice.
"""

from __future__ import annotations

import hashlib
import re
import uuid
from collections.abc import Callable
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation

import structlog
from pydantic import BaseModel, ConfigDict, Field

from dealflow.audit.logger import AuditLogger
from dealflow.audit.models import EventKind
from dealflow.contracts.pipeline import ContractPipeline, run_contract_side_effect
from dealflow.domain.access import require_participant
from dealflow.domain.errors import (
    ConflictError,
    DealValidationError,
    ExpiredError,
    TokenActionMismatchError,
)
from dealflow.domain.models import (
    ClientInfo,
    ContractPreferences,
    CounterOffer,
    CreatorRef,
    Deal,
    SideEffectReport,
    Viewer,
    utc_now,
)
from dealflow.domain.types import BrandResponseStatus, CollabType, DealStatus, TokenAction
from dealflow.negotiation.suggestions import CounterSuggestion, compute_counter_suggestions
from dealflow.notifications import templates
from dealflow.notifications.notifier import Notifier
from dealflow.observability.metrics import BRAND_RESPONSES
from dealflow.state_machine import (
    BRAND_RESPONSE_AXIS,
    DEAL_STATUS_AXIS,
    BrandResponseEvent,
    DealStatusEvent,
)
from dealflow.store.base import RecordStore
from dealflow.store.records import load_deal, save_new_deal, update_deal
from dealflow.tokens.service import TokenService, calculate_expiry

logger = structlog.get_logger()

BRAND_ACTIONS: tuple[TokenAction, ...] = (
    TokenAction.ACCEPT,
    TokenAction.DECLINE,
    TokenAction.COUNTER,
)
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MAX_REASON_LENGTH = 1000
VIEW_DEDUPE_WINDOW = timedelta(hours=1)

_STATUS_LABELS = {
    BrandResponseStatus.PENDING: "pending",
    BrandResponseStatus.ACCEPTED_VERIFIED: "accepted",
    BrandResponseStatus.DECLINED: "declined",
    BrandResponseStatus.COUNTERED: "countered",
}

# Response values that short-circuit accept/decline with an explanation.
_SETTLED = frozenset({BrandResponseStatus.ACCEPTED_VERIFIED, BrandResponseStatus.DECLINED})


def already_message(status: BrandResponseStatus) -> str:
    """Explain that a request has already been answered."""
    return f"This request is already {_STATUS_LABELS[status]}."


def ip_fingerprint(ip_address: str | None) -> dict[str, str]:
    """Return a hashed and a partially masked form of *ip_address* for the audit trail."""
    if not ip_address:
        return {}
    digest = hashlib.sha256(ip_address.encode()).hexdigest()[:16]
    parts = ip_address.split(".")
    if len(parts) == 4:
        partial = ".".join([*parts[:3], "xxx"])
    else:
        partial = ip_address.split(":")[0] + ":xxxx"
    return {"ip_hash": digest, "ip_partial": partial}


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class DealSummary(BaseModel):
    """What the brand sees about a deal."""

    model_config = ConfigDict(frozen=True)

    id: str
    brand_name: str
    creator_name: str
    collab_type: CollabType
    budget: Decimal | None
    barter_value: Decimal | None
    barter_description: str | None
    deliverables: list[str]
    deadline: date | None
    brief: str | None
    status: DealStatus
    brand_response_status: BrandResponseStatus

    @classmethod
    def from_deal(cls, deal: Deal) -> DealSummary:
        """Project *deal* onto the brand-facing summary."""
        return cls(
            id=deal.id,
            brand_name=deal.brand_name,
            creator_name=deal.creator.name,
            collab_type=deal.collab_type,
            budget=deal.budget,
            barter_value=deal.barter_value,
            barter_description=deal.barter_description,
            deliverables=list(deal.deliverables),
            deadline=deal.deadline,
            brief=deal.brief,
            status=deal.status,
            brand_response_status=deal.brand_response_status,
        )


class DealDetails(BaseModel):
    """Result of resolving a brand action link."""

    model_config = ConfigDict(frozen=True)

    token_action: TokenAction
    expired: bool
    deal: DealSummary
    suggestions: CounterSuggestion
    status_message: str | None = None


class ActionOutcome(BaseModel):
    """Result of an accept / decline / counter call.

    ``applied`` is False when the deal was already settled and nothing changed.
    """

    model_config = ConfigDict(frozen=True)

    deal_id: str
    brand_response_status: BrandResponseStatus
    status: DealStatus
    applied: bool
    status_message: str | None = None
    contract_url: str | None = None
    side_effects: list[SideEffectReport] = Field(default_factory=list)


class CounterRequest(BaseModel):
    """Raw counter-offer payload; validated by :func:`validate_counter`."""

    budget: Decimal | str | int | None = None
    deliverables: list[str] = Field(default_factory=list)
    timeline: date | None = None
    notes: str | None = None


class ProposalRequest(BaseModel):
    """A new collaboration proposal."""

    creator: CreatorRef
    brand_name: str
    brand_email: str
    brand_contact_name: str | None = None
    brand_address: str | None = None
    collab_type: CollabType = CollabType.PAID
    budget: Decimal | None = None
    barter_value: Decimal | None = None
    barter_description: str | None = None
    deliverables: list[str] = Field(default_factory=list)
    deadline: date | None = None
    brief: str | None = None
    preferences: ContractPreferences = Field(default_factory=ContractPreferences)


class ProposalResult(BaseModel):
    """A created deal and the brand's action links."""

    model_config = ConfigDict(frozen=True)

    deal: Deal
    tokens: dict[str, str]
    side_effects: list[SideEffectReport] = Field(default_factory=list)


class ShareOutcome(BaseModel):
    """Result of logging a share of the proposal with the brand."""

    model_config = ConfigDict(frozen=True)

    deal: Deal
    tokens: dict[str, str] = Field(default_factory=dict)
    status_message: str | None = None


def validate_counter(request: CounterRequest) -> CounterOffer:
    """Check a counter-offer payload before any state is touched.

    Raises:
        DealValidationError: If the budget is missing, non-numeric, or
            negative, the deliverables are empty, or the timeline is missing.
    """
    if request.budget is None or (isinstance(request.budget, str) and not request.budget.strip()):
        raise DealValidationError("Counter budget is required", field="budget")
    try:
        budget = Decimal(str(request.budget).strip())
    except InvalidOperation:
        raise DealValidationError("Counter budget must be a number", field="budget") from None
    if not budget.is_finite() or budget < 0:
        raise DealValidationError("Counter budget must be a non-negative number", field="budget")

    deliverables = [d.strip() for d in request.deliverables if d and d.strip()]
    if not deliverables:
        raise DealValidationError("At least one deliverable is required", field="deliverables")
    if request.timeline is None:
        raise DealValidationError("Counter timeline is required", field="timeline")

    notes = request.notes.strip() if request.notes else None
    return CounterOffer(
        budget=budget, deliverables=deliverables, timeline=request.timeline, notes=notes or None
    )


def validate_proposal(request: ProposalRequest) -> None:
    """Check a proposal payload.

    Raises:
        DealValidationError: On a malformed brand email, no deliverables, or
            a paid/hybrid proposal without a positive budget.
    """
    if not request.brand_name.strip():
        raise DealValidationError("Brand name is required", field="brand_name")
    if not EMAIL_PATTERN.match(request.brand_email.strip()):
        raise DealValidationError("A valid brand email is required", field="brand_email")
    if not [d for d in request.deliverables if d.strip()]:
        raise DealValidationError("At least one deliverable is required", field="deliverables")
    needs_budget = request.collab_type in (CollabType.PAID, CollabType.HYBRID)
    if needs_budget and not (request.budget and request.budget > 0):
        raise DealValidationError(
            "A positive budget is required for paid collaborations", field="budget"
        )


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class NegotiationEngine:
    """Apply brand responses to deals and manage proposal links.

    Args:
        store: Record store holding deals and tokens.
        tokens: Token service.
        pipeline: Contract pipeline triggered after acceptance.
        audit_logger: Best-effort audit writer.
        notifier: Best-effort email delivery.
        public_app_url: Base URL for links in emails.
        action_token_ttl_days: Lifetime of accept / decline / counter links.
        uplift: Budget multiplier for suggestions.
        low_barter_threshold: Barter value below which an extra unit is suggested.
        min_lead_days: Minimum deadline lead time for suggestions.
        clock: Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        store: RecordStore,
        tokens: TokenService,
        pipeline: ContractPipeline,
        audit_logger: AuditLogger,
        notifier: Notifier,
        *,
        public_app_url: str,
        action_token_ttl_days: int = 7,
        uplift: Decimal = Decimal("1.2"),
        low_barter_threshold: Decimal = Decimal("1000"),
        min_lead_days: int = 10,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._tokens = tokens
        self._pipeline = pipeline
        self._audit = audit_logger
        self._notifier = notifier
        self._base_url = public_app_url
        self._token_ttl_days = action_token_ttl_days
        self._uplift = uplift
        self._low_barter_threshold = low_barter_threshold
        self._min_lead_days = min_lead_days
        self._clock = clock

    # ------------------------------------------------------------------
    # Proposals
    # ------------------------------------------------------------------

    def _mint_brand_links(self, deal: Deal) -> dict[str, str]:
        expires_at = calculate_expiry(self._token_ttl_days, self._clock())
        return {
            str(action): self._tokens.mint(
                deal.id, action, expires_at=expires_at, bound_email=deal.brand_email
            ).token
            for action in BRAND_ACTIONS
        }

    def submit_proposal(self, request: ProposalRequest, viewer: Viewer) -> ProposalResult:
        """Create a deal from a creator-entered proposal and email the brand its links.

        Raises:
            AccessDeniedError: If *viewer* is neither the named creator nor an admin.
            DealValidationError: If the proposal is malformed.
        """
        validate_proposal(request)
        now = self._clock()
        deal = Deal(
            id=uuid.uuid4().hex,
            creator=request.creator,
            brand_name=request.brand_name.strip(),
            brand_email=request.brand_email.strip().lower(),
            brand_contact_name=request.brand_contact_name,
            brand_address=request.brand_address,
            collab_type=request.collab_type,
            budget=request.budget,
            barter_value=request.barter_value,
            barter_description=request.barter_description,
            deliverables=[d.strip() for d in request.deliverables if d.strip()],
            deadline=request.deadline,
            brief=request.brief,
            preferences=request.preferences,
            created_at=now,
            updated_at=now,
        )
        require_participant(deal, viewer)
        save_new_deal(self._store, deal)
        links = self._mint_brand_links(deal)

        self._audit.record(
            deal.id,
            EventKind.PROPOSAL_SUBMITTED,
            actor_id=viewer.user_id,
            metadata={"collab_type": str(deal.collab_type), "deliverables": len(deal.deliverables)},
        )
        report = self._notifier.deliver(
            templates.proposal_links(deal, self._base_url, links),
            effect="email.proposal",
            deal_id=deal.id,
        )
        logger.info("Proposal submitted", deal_id=deal.id, collab_type=str(deal.collab_type))
        return ProposalResult(deal=deal, tokens=links, side_effects=[report])

    # ------------------------------------------------------------------
    # Brand link: details
    # ------------------------------------------------------------------

    def suggestions_for(self, deal: Deal) -> CounterSuggestion:
        """Compute counter suggestions for *deal* as of today."""
        return compute_counter_suggestions(
            deal,
            self._clock().date(),
            uplift=self._uplift,
            low_barter_threshold=self._low_barter_threshold,
            min_lead_days=self._min_lead_days,
        )

    def get_details(self, token: str, client: ClientInfo | None = None) -> DealDetails:
        """Resolve a brand action link to the deal and suggested counter terms.

        Already-answered or expired links return a ``status_message``
        rather than an error.

        Raises:
            NotFoundError: If the token or deal does not exist.
            TokenActionMismatchError: If the token is not a brand action token.
        """
        resolved = self._tokens.resolve(token)
        if resolved.action not in BRAND_ACTIONS:
            expected = "/".join(str(a) for a in BRAND_ACTIONS)
            raise TokenActionMismatchError(expected, str(resolved.action))

        deal = load_deal(self._store, resolved.deal_id)
        status_message: str | None = None
        if deal.brand_response_status != BrandResponseStatus.PENDING:
            status_message = already_message(deal.brand_response_status)
        elif resolved.expired:
            status_message = "This link has expired. Ask the creator to send a new one."
        elif resolved.consumed:
            status_message = "This link has already been used."

        self._record_view(deal, token, resolved.action, client)

        return DealDetails(
            token_action=resolved.action,
            expired=resolved.expired,
            deal=DealSummary.from_deal(deal),
            suggestions=self.suggestions_for(deal),
            status_message=status_message,
        )

    def _record_view(
        self, deal: Deal, token: str, action: TokenAction, client: ClientInfo | None
    ) -> None:
        token_ref = hashlib.sha256(token.encode()).hexdigest()[:16]
        since = self._clock() - VIEW_DEDUPE_WINDOW
        if self._audit.has_recent(deal.id, EventKind.BRAND_VIEWED, since, {"token_ref": token_ref}):
            return
        metadata: dict[str, object] = {"token_ref": token_ref, "token_action": str(action)}
        if client is not None:
            metadata.update(ip_fingerprint(client.ip_address))
        self._audit.record(deal.id, EventKind.BRAND_VIEWED, actor_id="brand", metadata=metadata)

    # ------------------------------------------------------------------
    # Brand link: actions
    # ------------------------------------------------------------------

    def _settled(self, deal: Deal) -> ActionOutcome:
        return ActionOutcome(
            deal_id=deal.id,
            brand_response_status=deal.brand_response_status,
            status=deal.status,
            applied=False,
            status_message=already_message(deal.brand_response_status),
            contract_url=deal.contract_file_url,
        )

    def _transition(
        self,
        deal: Deal,
        event: BrandResponseEvent,
        extra: dict[str, object],
    ) -> Deal | None:
        """Compare-and-swap *deal* from ``pending`` via *event*."""
        now = self._clock()
        changes: dict[str, object] = {
            "brand_response_status": BRAND_RESPONSE_AXIS.apply(BrandResponseStatus.PENDING, event),
            "brand_responded_at": now,
            "updated_at": now,
            **extra,
        }
        return update_deal(
            self._store,
            deal.id,
            {"brand_response_status": BrandResponseStatus.PENDING},
            changes,
        )

    def _after_lost_race(self, deal_id: str) -> ActionOutcome:
        current = load_deal(self._store, deal_id)
        if current.brand_response_status in _SETTLED:
            return self._settled(current)
        raise ConflictError(already_message(current.brand_response_status))

    def _audit_metadata(self, client: ClientInfo | None, **extra: object) -> dict[str, object]:
        metadata: dict[str, object] = dict(extra)
        if client is not None:
            metadata.update(ip_fingerprint(client.ip_address))
        return metadata

    def confirm(self, token: str, client: ClientInfo | None = None) -> ActionOutcome:
        """Accept the deal.

        Acceptance is the durable fact: contract generation runs afterwards
        and its failure is reported in ``side_effects`` without undoing the
        accept.  Barter deals wait for delivery details instead.

        Raises:
            NotFoundError: If the token or deal does not exist.
            TokenActionMismatchError: If the token is not an ``accept`` token.
            ExpiredError: If the token has expired and the deal is still pending.
            ConflictError: If the deal was countered.
        """
        record = self._tokens.require(token, TokenAction.ACCEPT, allow_expired=True)
        deal = load_deal(self._store, record.deal_id)
        if deal.brand_response_status in _SETTLED:
            return self._settled(deal)
        if deal.brand_response_status != BrandResponseStatus.PENDING:
            raise ConflictError(already_message(deal.brand_response_status))
        if record.is_expired(self._clock()):
            raise ExpiredError()

        extra: dict[str, object] = {}
        if DEAL_STATUS_AXIS.can_apply(deal.status, DealStatusEvent.SEND):
            extra["status"] = DEAL_STATUS_AXIS.apply(deal.status, DealStatusEvent.SEND)
        updated = self._transition(deal, BrandResponseEvent.ACCEPT, extra)
        if updated is None:
            return self._after_lost_race(deal.id)

        self._tokens.consume(token)
        BRAND_RESPONSES.labels(outcome="accepted").inc()
        self._audit.record(
            deal.id,
            EventKind.BRAND_ACCEPTED,
            actor_id="brand",
            metadata=self._audit_metadata(client, previous_status="pending"),
        )
        logger.info("Brand accepted deal", deal_id=deal.id)

        side_effects: list[SideEffectReport] = []
        contract_url: str | None = None
        message: str | None = None
        if updated.is_barter:
            message = (
                "Accepted. The creator will share delivery details "
                "before the contract is generated."
            )
        else:
            contract, report = run_contract_side_effect(self._pipeline, deal.id, "brand")
            side_effects.append(report)
            if contract is not None:
                contract_url = contract.contract_url
                side_effects.extend(contract.side_effects)
            else:
                message = "Accepted. The contract could not be generated yet and will be retried."

        return ActionOutcome(
            deal_id=deal.id,
            brand_response_status=updated.brand_response_status,
            status=updated.status,
            applied=True,
            status_message=message,
            contract_url=contract_url,
            side_effects=side_effects,
        )

    def decline(
        self, token: str, reason: str | None = None, client: ClientInfo | None = None
    ) -> ActionOutcome:
        """Decline the deal, recording an optional reason.

        Raises:
            NotFoundError: If the token or deal does not exist.
            TokenActionMismatchError: If the token is not a ``decline`` token.
            ExpiredError: If the token has expired and the deal is still pending.
            ConflictError: If the deal was countered.
        """
        record = self._tokens.require(token, TokenAction.DECLINE, allow_expired=True)
        deal = load_deal(self._store, record.deal_id)
        if deal.brand_response_status in _SETTLED:
            return self._settled(deal)
        if deal.brand_response_status != BrandResponseStatus.PENDING:
            raise ConflictError(already_message(deal.brand_response_status))
        if record.is_expired(self._clock()):
            raise ExpiredError()

        clean_reason = (reason or "").strip()[:MAX_REASON_LENGTH] or None
        updated = self._transition(
            deal, BrandResponseEvent.DECLINE, {"decline_reason": clean_reason}
        )
        if updated is None:
            return self._after_lost_race(deal.id)

        self._tokens.consume(token)
        BRAND_RESPONSES.labels(outcome="declined").inc()
        self._audit.record(
            deal.id,
            EventKind.BRAND_DECLINED,
            actor_id="brand",
            metadata=self._audit_metadata(client, reason=clean_reason),
        )
        logger.info("Brand declined deal", deal_id=deal.id)

        report = self._notifier.deliver(
            templates.brand_declined(updated), effect="email.declined", deal_id=deal.id
        )
        return ActionOutcome(
            deal_id=deal.id,
            brand_response_status=updated.brand_response_status,
            status=updated.status,
            applied=True,
            side_effects=[report],
        )

    def counter(
        self, token: str, request: CounterRequest, client: ClientInfo | None = None
    ) -> ActionOutcome:
        """Record the brand's counter-offer.

        A counter on anything but a pending deal is a conflict: silently
        dropping new terms would mislead the brand.

        Raises:
            NotFoundError: If the token or deal does not exist.
            TokenActionMismatchError: If the token is not a ``counter`` token.
            ExpiredError: If the token has expired.
            DealValidationError: If the payload is malformed.
            ConflictError: If the deal is no longer pending.
        """
        record = self._tokens.require(token, TokenAction.COUNTER)
        offer = validate_counter(request)
        deal = load_deal(self._store, record.deal_id)
        if deal.brand_response_status != BrandResponseStatus.PENDING:
            raise ConflictError(already_message(deal.brand_response_status))

        updated = self._transition(deal, BrandResponseEvent.COUNTER, {"counter_offer": offer})
        if updated is None:
            current = load_deal(self._store, deal.id)
            raise ConflictError(already_message(current.brand_response_status))

        self._tokens.consume(token)
        BRAND_RESPONSES.labels(outcome="countered").inc()
        self._audit.record(
            deal.id,
            EventKind.BRAND_COUNTERED,
            actor_id="brand",
            metadata=self._audit_metadata(
                client,
                budget=str(offer.budget),
                deliverables=offer.deliverables,
                timeline=offer.timeline.isoformat(),
            ),
        )
        logger.info("Brand countered deal", deal_id=deal.id)

        report = self._notifier.deliver(
            templates.brand_countered(updated, offer), effect="email.countered", deal_id=deal.id
        )
        return ActionOutcome(
            deal_id=deal.id,
            brand_response_status=updated.brand_response_status,
            status=updated.status,
            applied=True,
            side_effects=[report],
        )

    # ------------------------------------------------------------------
    # Creator dashboard logs
    # ------------------------------------------------------------------

    def record_share(
        self, deal_id: str, viewer: Viewer, channel: str | None = None
    ) -> ShareOutcome:
        """Log that the creator shared the proposal with the brand.

        A pending deal moves to ``sent`` and gets a fresh set of brand links.
        Answered deals are left untouched; a new round needs a new proposal.

        Raises:
            AccessDeniedError: If *viewer* is not a participant.
        """
        deal = load_deal(self._store, deal_id)
        require_participant(deal, viewer)
        self._audit.record(
            deal.id,
            EventKind.MESSAGE_SHARED,
            actor_id=viewer.user_id,
            metadata={"channel": channel},
        )

        if deal.brand_response_status != BrandResponseStatus.PENDING:
            return ShareOutcome(
                deal=deal, status_message=already_message(deal.brand_response_status)
            )

        changes: dict[str, object] = {"updated_at": self._clock()}
        if DEAL_STATUS_AXIS.can_apply(deal.status, DealStatusEvent.RESHARE):
            changes["status"] = DEAL_STATUS_AXIS.apply(deal.status, DealStatusEvent.RESHARE)
        updated = update_deal(
            self._store, deal.id, {"brand_response_status": BrandResponseStatus.PENDING}, changes
        )
        if updated is None:
            current = load_deal(self._store, deal.id)
            return ShareOutcome(
                deal=current, status_message=already_message(current.brand_response_status)
            )
        return ShareOutcome(deal=updated, tokens=self._mint_brand_links(updated))

    def record_reminder(self, deal_id: str, viewer: Viewer) -> Deal:
        """Log a reminder sent to the brand and stamp ``last_reminded_at``.

        Raises:
            AccessDeniedError: If *viewer* is not a participant.
        """
        deal = load_deal(self._store, deal_id)
        require_participant(deal, viewer)
        now = self._clock()
        self._audit.record(deal.id, EventKind.REMINDER_SENT, actor_id=viewer.user_id)
        updated = update_deal(
            self._store, deal.id, {}, {"last_reminded_at": now, "updated_at": now}
        )
        return updated or load_deal(self._store, deal.id)

    def brand_links(self, tokens: dict[str, str]) -> dict[str, str]:
        """Turn a token map into clickable brand links."""
        return {
            action: templates.collab_action_url(self._base_url, token)
            for action, token in tokens.items()
        }
