"""Contract pipeline: schema -> document -> blob storage -> deal URL.

Generation, upload, and recording the URL form one logical step.  The URL
is written last with a compare-and-swap on ``contract_file_url`` being
unset, so a failed run leaves nothing recorded and a retry starts over.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

import structlog
from pydantic import BaseModel, ConfigDict, Field

from dealflow.audit.logger import AuditLogger
from dealflow.audit.models import SYSTEM_ACTOR, EventKind
from dealflow.contracts.renderer import ContractRenderer, GeneratedContract
from dealflow.contracts.schema import ContractSchema, build_contract_schema
from dealflow.contracts.storage import BlobStorage
from dealflow.domain.access import require_creator
from dealflow.domain.errors import (
    ConflictError,
    DealflowError,
    DealValidationError,
    DependencyError,
    NotFoundError,
)
from dealflow.domain.models import Deal, SideEffectReport, Viewer, utc_now
from dealflow.domain.types import BrandResponseStatus, TokenAction
from dealflow.notifications import templates
from dealflow.notifications.notifier import Notifier
from dealflow.observability.metrics import CONTRACTS_GENERATED, SIDE_EFFECT_FAILURES
from dealflow.store.base import RecordStore
from dealflow.store.records import load_deal, update_deal
from dealflow.tokens.service import TokenService, calculate_expiry

logger = structlog.get_logger()


class ContractResult(BaseModel):
    """Outcome of a pipeline run."""

    model_config = ConfigDict(frozen=True)

    deal_id: str
    contract_url: str
    generated: bool
    view_token: str | None = None
    sign_token: str | None = None
    side_effects: list[SideEffectReport] = Field(default_factory=list)


class ContractView(BaseModel):
    """Read-only contract details behind a ``view-contract`` token."""

    model_config = ConfigDict(frozen=True)

    deal_id: str
    brand_name: str
    creator_name: str
    deliverables: list[str]
    contract_url: str
    deal_execution_status: str


def contract_storage_path(deal_id: str, file_name: str, now: datetime) -> str:
    """Return ``contracts/{deal_id}/{epoch_ms}_{file_name}``."""
    return f"contracts/{deal_id}/{int(now.timestamp() * 1000)}_{file_name}"


class ContractPipeline:
    """Generate, store, and announce a deal's contract exactly once.

    Args:
        store: Record store holding deals and tokens.
        tokens: Token service for the view and signing links.
        renderer: Document renderer.
        storage: Non-overwriting blob storage.
        audit_logger: Best-effort audit writer.
        notifier: Best-effort email delivery.
        public_app_url: Base URL for links in emails.
        signing_token_ttl_days: Lifetime of the brand's signing link.
        clock: Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        store: RecordStore,
        tokens: TokenService,
        renderer: ContractRenderer,
        storage: BlobStorage,
        audit_logger: AuditLogger,
        notifier: Notifier,
        *,
        public_app_url: str,
        signing_token_ttl_days: int = 7,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._tokens = tokens
        self._renderer = renderer
        self._storage = storage
        self._audit = audit_logger
        self._notifier = notifier
        self._base_url = public_app_url
        self._signing_ttl_days = signing_token_ttl_days
        self._clock = clock

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------

    def build(self, deal: Deal) -> ContractSchema:
        """Derive the contract schema for *deal*."""
        return build_contract_schema(deal, self._clock().date())

    def generate(self, schema: ContractSchema) -> GeneratedContract:
        """Render *schema*, wrapping renderer failures as a dependency error."""
        try:
            return self._renderer.generate(schema)
        except Exception as exc:
            logger.exception("Contract rendering failed", deal_id=schema.deal_id)
            raise DependencyError("render", "Contract rendering failed") from exc

    def store(self, deal_id: str, document_bytes: bytes, file_name: str) -> str:
        """Upload the document under a timestamped path and return its public URL."""
        path = contract_storage_path(deal_id, file_name, self._clock())
        try:
            self._storage.upload(path, document_bytes, "application/pdf")
            return self._storage.get_public_url(path)
        except DependencyError:
            raise
        except Exception as exc:
            logger.exception("Contract upload failed", deal_id=deal_id, path=path)
            raise DependencyError("storage", "Contract upload failed") from exc

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run(self, deal_id: str, actor_id: str = SYSTEM_ACTOR) -> ContractResult:
        """Generate and record the contract unless one is already recorded.

        Args:
            deal_id: The deal to contract.
            actor_id: Who triggered the run, for the audit trail.

        Returns:
            The :class:`ContractResult`; ``generated`` is False when an
            existing contract was returned.

        Raises:
            ConflictError: If the brand has not accepted the deal.
            DealValidationError: If the deal lacks data the contract needs.
            DependencyError: If rendering or upload failed.
        """
        deal = load_deal(self._store, deal_id)
        if deal.contract_file_url:
            return self._existing(deal)
        if deal.brand_response_status != BrandResponseStatus.ACCEPTED_VERIFIED:
            raise ConflictError("Contract can only be generated for accepted deals")

        try:
            schema = self.build(deal)
            document = self.generate(schema)
            url = self.store(deal.id, document.document_bytes, document.file_name)
        except (DependencyError, DealValidationError) as exc:
            SIDE_EFFECT_FAILURES.labels(effect="contract").inc()
            self._audit.record(
                deal.id,
                EventKind.CONTRACT_GENERATION_FAILED,
                actor_id=actor_id,
                metadata={"error": str(exc), "code": exc.code},
            )
            raise

        updated = update_deal(
            self._store,
            deal.id,
            {"contract_file_url": None},
            {"contract_file_url": url, "updated_at": self._clock()},
        )
        if updated is None:
            # A concurrent run recorded its URL first; our upload is orphaned.
            logger.warning(
                "Contract already recorded by a concurrent run", deal_id=deal.id, orphan_url=url
            )
            return self._existing(load_deal(self._store, deal.id))

        CONTRACTS_GENERATED.inc()
        self._audit.record(
            deal.id,
            EventKind.CONTRACT_GENERATED,
            actor_id=actor_id,
            metadata={"file_name": document.file_name, "contract_url": url},
        )
        logger.info("Contract generated", deal_id=deal.id, file_name=document.file_name)

        view = self._tokens.mint(deal.id, TokenAction.VIEW_CONTRACT)
        sign = self._tokens.mint(
            deal.id,
            TokenAction.SIGN_AS_BRAND,
            expires_at=calculate_expiry(self._signing_ttl_days, self._clock()),
            bound_email=deal.brand_email,
        )
        report = self._notifier.deliver(
            templates.contract_ready(
                updated,
                templates.contract_ready_url(self._base_url, view.token),
                templates.esign_url(self._base_url, sign.token),
            ),
            effect="email.contract_ready",
            deal_id=deal.id,
        )
        return ContractResult(
            deal_id=deal.id,
            contract_url=url,
            generated=True,
            view_token=view.token,
            sign_token=sign.token,
            side_effects=[report],
        )

    def regenerate(self, deal_id: str, viewer: Viewer) -> ContractResult:
        """Creator-triggered retry after a failed generation.

        Raises:
            AccessDeniedError: If *viewer* is not the deal's creator.
            DealValidationError: If a barter deal has no delivery details yet.
        """
        deal = load_deal(self._store, deal_id)
        require_creator(deal, viewer)
        if deal.is_barter and deal.delivery_details is None:
            raise DealValidationError(
                "Submit delivery details before generating the contract",
                field="delivery_details",
            )
        return self.run(deal_id, actor_id=viewer.user_id)

    def view_contract(self, token: str) -> ContractView:
        """Resolve a ``view-contract`` token to the stored document.

        Raises:
            NotFoundError: If the token is unknown or no contract is recorded.
        """
        record = self._tokens.require(token, TokenAction.VIEW_CONTRACT)
        deal = load_deal(self._store, record.deal_id)
        if not deal.contract_file_url:
            raise NotFoundError("contract", deal.id)
        return ContractView(
            deal_id=deal.id,
            brand_name=deal.brand_name,
            creator_name=deal.creator.name,
            deliverables=list(deal.deliverables),
            contract_url=deal.contract_file_url,
            deal_execution_status=str(deal.deal_execution_status),
        )

    def _existing(self, deal: Deal) -> ContractResult:
        views = self._tokens.tokens_for(deal.id, TokenAction.VIEW_CONTRACT)
        return ContractResult(
            deal_id=deal.id,
            contract_url=deal.contract_file_url or "",
            generated=False,
            view_token=views[0].token if views else None,
        )


def run_contract_side_effect(
    pipeline: ContractPipeline, deal_id: str, actor_id: str
) -> tuple[ContractResult | None, SideEffectReport]:
    """Run the pipeline after a committed transition, never raising.

    Returns:
        The result (or ``None`` on failure) and a report for the caller's
        partial-success response.
    """
    try:
        result = pipeline.run(deal_id, actor_id=actor_id)
    except DealflowError as exc:
        logger.warning("Contract generation failed after commit", deal_id=deal_id, error=str(exc))
        return None, SideEffectReport(effect="contract", ok=False, detail=str(exc))
    except Exception:
        logger.exception("Unexpected contract pipeline failure", deal_id=deal_id)
        SIDE_EFFECT_FAILURES.labels(effect="contract").inc()
        return None, SideEffectReport(
            effect="contract", ok=False, detail="Contract generation failed"
        )
    return result, SideEffectReport(effect="contract", ok=True)
