"""Tests for barter delivery details submission."""

from __future__ import annotations

from decimal import Decimal

import pytest

from dealflow.audit.models import EventKind
from dealflow.contracts.delivery import (
    CONTRACT_FAILED_MESSAGE,
    DeliveryService,
    validate_delivery_details,
)
from dealflow.domain.errors import AccessDeniedError, ConflictError, DealValidationError
from dealflow.domain.models import DeliveryDetails
from dealflow.domain.types import BrandResponseStatus, CollabType, DealStatus, ShippingStatus
from dealflow.store.records import load_deal


@pytest.fixture
def accepted_barter(make_deal):
    return make_deal(
        collab_type=CollabType.BARTER,
        budget=None,
        barter_value=Decimal("2500"),
        status=DealStatus.SENT,
        brand_response_status=BrandResponseStatus.ACCEPTED_VERIFIED,
    )


class FailingRenderer:
    def generate(self, schema):
        raise RuntimeError("font missing")


class TestValidateDeliveryDetails:
    def test_strips_fields(self) -> None:
        clean = validate_delivery_details(
            DeliveryDetails(
                name=" Asha ", phone=" 98765 43210 ", address=" 12 MG Road ", notes="  "
            )
        )
        assert clean == DeliveryDetails(name="Asha", phone="98765 43210", address="12 MG Road")

    @pytest.mark.parametrize(
        ("details", "field"),
        [
            (DeliveryDetails(name=" ", phone="9876543210", address="x"), "name"),
            (DeliveryDetails(name="Asha", phone="98765", address="x"), "phone"),
            (DeliveryDetails(name="Asha", phone="9876543210", address=" "), "address"),
        ],
    )
    def test_rejects(self, details: DeliveryDetails, field: str) -> None:
        with pytest.raises(DealValidationError) as exc_info:
            validate_delivery_details(details)
        assert exc_info.value.field == field


class TestSubmit:
    def test_saves_details_and_generates_contract(
        self,
        delivery: DeliveryService,
        accepted_barter,
        creator_viewer,
        barter_details,
        audit_logger,
    ) -> None:
        outcome = delivery.submit(accepted_barter.id, creator_viewer, barter_details)

        assert outcome.partial is False
        assert outcome.contract is not None
        assert outcome.deal.delivery_details == barter_details
        assert outcome.deal.shipping_status is ShippingStatus.PENDING
        assert outcome.deal.status is DealStatus.AWAITING_PRODUCT_SHIPMENT
        assert outcome.deal.contract_file_url == outcome.contract.contract_url
        (entry,) = audit_logger.trail(accepted_barter.id, EventKind.DELIVERY_DETAILS_SUBMITTED)
        assert entry["metadata"]["phone_masked"] == "91XXXXXXXX10"

    def test_resubmission_keeps_existing_contract(
        self, delivery: DeliveryService, accepted_barter, creator_viewer, barter_details
    ) -> None:
        first = delivery.submit(accepted_barter.id, creator_viewer, barter_details)
        again = delivery.submit(
            accepted_barter.id,
            creator_viewer,
            DeliveryDetails(name="Asha Rao", phone="9876543210", address="14 MG Road"),
        )
        assert again.message == "Delivery details updated"
        assert again.deal.contract_file_url == first.deal.contract_file_url
        assert again.deal.delivery_details.address == "14 MG Road"

    def test_contract_failure_keeps_details(
        self,
        delivery: DeliveryService,
        pipeline,
        accepted_barter,
        creator_viewer,
        barter_details,
        store,
        monkeypatch,
    ) -> None:
        monkeypatch.setattr(pipeline, "_renderer", FailingRenderer())
        outcome = delivery.submit(accepted_barter.id, creator_viewer, barter_details)
        assert outcome.partial is True
        assert outcome.message == CONTRACT_FAILED_MESSAGE
        stored = load_deal(store, accepted_barter.id)
        assert stored.delivery_details == barter_details
        assert stored.contract_file_url is None

    def test_paid_deal_rejected(
        self, delivery: DeliveryService, accepted_paid_deal, creator_viewer, barter_details
    ) -> None:
        with pytest.raises(DealValidationError) as exc_info:
            delivery.submit(accepted_paid_deal.id, creator_viewer, barter_details)
        assert exc_info.value.field == "collab_type"

    def test_requires_acceptance(
        self, delivery: DeliveryService, make_deal, creator_viewer, barter_details
    ) -> None:
        deal = make_deal(collab_type=CollabType.BARTER, budget=None)
        with pytest.raises(ConflictError):
            delivery.submit(deal.id, creator_viewer, barter_details)

    def test_stranger_denied(
        self, delivery: DeliveryService, accepted_barter, stranger_viewer, barter_details
    ) -> None:
        with pytest.raises(AccessDeniedError):
            delivery.submit(accepted_barter.id, stranger_viewer, barter_details)

    def test_invalid_payload_saves_nothing(
        self, delivery: DeliveryService, accepted_barter, creator_viewer, store
    ) -> None:
        with pytest.raises(DealValidationError):
            invalid = DeliveryDetails(name="Asha", phone="123", address="x")
            delivery.submit(accepted_barter.id, creator_viewer, invalid)
        assert load_deal(store, accepted_barter.id).delivery_details is None
