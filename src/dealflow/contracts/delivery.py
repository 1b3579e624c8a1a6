"""Barter delivery details, which unlock contract generation for barter deals."""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import datetime

import structlog
from pydantic import BaseModel, ConfigDict, Field

from dealflow.audit.logger import AuditLogger
from dealflow.audit.models import EventKind
from dealflow.contracts.pipeline import ContractPipeline, ContractResult, run_contract_side_effect
from dealflow.contracts.schema import mask_phone
from dealflow.domain.access import require_creator
from dealflow.domain.errors import ConflictError, DealValidationError
from dealflow.domain.models import Deal, DeliveryDetails, SideEffectReport, Viewer, utc_now
from dealflow.domain.types import BrandResponseStatus, ShippingStatus
from dealflow.state_machine import DEAL_STATUS_AXIS, DealStatusEvent
from dealflow.store.base import RecordStore
from dealflow.store.records import load_deal, update_deal

logger = structlog.get_logger()

CONTRACT_FAILED_MESSAGE = (
    "Delivery details saved but contract generation failed. Retry from the deal page."
)


class DeliveryOutcome(BaseModel):
    """Result of a delivery-details submission."""

    model_config = ConfigDict(frozen=True)

    deal: Deal
    message: str
    contract: ContractResult | None = None
    side_effects: list[SideEffectReport] = Field(default_factory=list)

    @property
    def partial(self) -> bool:
        """True when details were saved but a side effect failed."""
        return any(not report.ok for report in self.side_effects)


def validate_delivery_details(details: DeliveryDetails) -> DeliveryDetails:
    """Strip and check a delivery-details payload.

    Raises:
        DealValidationError: If the name or address is blank, or the phone
            has fewer than 10 digits.
    """
    name = details.name.strip()
    address = details.address.strip()
    phone = details.phone.strip()
    if not name:
        raise DealValidationError("Recipient name is required", field="name")
    if len(re.sub(r"\D", "", phone)) < 10:
        raise DealValidationError(
            "Valid phone number is required (at least 10 digits)", field="phone"
        )
    if not address:
        raise DealValidationError("Delivery address is required", field="address")
    notes = details.notes.strip() if details.notes else None
    return DeliveryDetails(name=name, phone=phone, address=address, notes=notes or None)


class DeliveryService:
    """Record where a barter product should ship, then generate the contract.

    Args:
        store: Record store holding deals.
        pipeline: Contract pipeline triggered after the details are saved.
        audit_logger: Best-effort audit writer.
        clock: Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        store: RecordStore,
        pipeline: ContractPipeline,
        audit_logger: AuditLogger,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._pipeline = pipeline
        self._audit = audit_logger
        self._clock = clock

    def submit(self, deal_id: str, viewer: Viewer, details: DeliveryDetails) -> DeliveryOutcome:
        """Save delivery details and trigger contract generation.

        Contract generation failure does not undo the saved details; it is
        reported in the outcome instead.

        Raises:
            AccessDeniedError: If *viewer* is not the deal's creator.
            DealValidationError: If the deal is not barter or the payload is invalid.
            ConflictError: If the brand has not accepted, or the deal changed concurrently.
        """
        deal = load_deal(self._store, deal_id)
        require_creator(deal, viewer)
        if not deal.is_barter:
            raise DealValidationError(
                "Delivery details are only applicable for barter deals", field="collab_type"
            )
        if deal.brand_response_status != BrandResponseStatus.ACCEPTED_VERIFIED:
            raise ConflictError("Delivery details can be submitted only after the brand accepts")

        clean = validate_delivery_details(details)
        now = self._clock()
        changes: dict[str, object] = {
            "delivery_details": clean,
            "shipping_status": ShippingStatus.PENDING,
            "updated_at": now,
        }
        if DEAL_STATUS_AXIS.can_apply(deal.status, DealStatusEvent.REQUEST_SHIPMENT):
            changes["status"] = DEAL_STATUS_AXIS.apply(
                deal.status, DealStatusEvent.REQUEST_SHIPMENT
            )

        updated = update_deal(
            self._store,
            deal.id,
            {"status": deal.status, "brand_response_status": BrandResponseStatus.ACCEPTED_VERIFIED},
            changes,
        )
        if updated is None:
            raise ConflictError("Deal was updated concurrently; please retry")

        self._audit.record(
            deal.id,
            EventKind.DELIVERY_DETAILS_SUBMITTED,
            actor_id=viewer.user_id,
            metadata={
                "phone_masked": mask_phone(clean.phone),
                "has_notes": clean.notes is not None,
            },
        )
        logger.info("Delivery details saved", deal_id=deal.id, status=str(updated.status))

        if updated.contract_file_url:
            return DeliveryOutcome(deal=updated, message="Delivery details updated")

        contract, report = run_contract_side_effect(self._pipeline, deal.id, viewer.user_id)
        if contract is None:
            return DeliveryOutcome(
                deal=updated, message=CONTRACT_FAILED_MESSAGE, side_effects=[report]
            )

        return DeliveryOutcome(
            deal=load_deal(self._store, deal.id),
            message="Delivery details saved and contract generated",
            contract=contract,
            side_effects=[report, *contract.side_effects],
        )
