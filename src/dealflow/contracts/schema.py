"""Normalized contract schema derived from a deal.

``build_contract_schema`` is a pure function of the deal and the generation
date.  Barter deals get a fixed set of creator-protective clauses and a
masked delivery phone number.
"""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from dealflow.domain.errors import DealValidationError
from dealflow.domain.models import Deal, Exclusivity, UsageRights
from dealflow.domain.types import CollabType

CONTRACT_VERSION = "v3"
DISPATCH_WINDOW_DAYS = 7

BARTER_CLAUSES: tuple[str, ...] = (
    f"Product Delivery: The Brand shall dispatch the product within {DISPATCH_WINDOW_DAYS} days "
    "of this agreement and share a valid tracking ID with the Creator.",
    "Product Condition: The Creator may reject any product that arrives damaged or does not "
    "match the agreed description, and is then released from the related content obligation.",
    "Delivery Confirmation: The content delivery timeline begins only after the Creator "
    "confirms receipt of the product in acceptable condition.",
    "Non-Delivery: If the product is not delivered, the Brand forfeits all collaboration "
    "rights under this agreement.",
    "No Product, No Content: The Creator has no obligation to create or publish content "
    "for a product that was never received.",
)


class Party(BaseModel):
    """One signatory party."""

    model_config = ConfigDict(frozen=True)

    name: str
    email: str
    contact_name: str | None = None
    address: str | None = None


class PaymentTerms(BaseModel):
    """How and when the creator is paid."""

    model_config = ConfigDict(frozen=True)

    method: str
    timeline: str
    amount: Decimal | None = None


class ContractSchema(BaseModel):
    """Everything the renderer needs, with no reference back to the deal record."""

    model_config = ConfigDict(frozen=True)

    deal_id: str
    contract_version: str = CONTRACT_VERSION
    generated_on: date
    brand: Party
    creator: Party
    collab_type: CollabType
    deliverables: list[str]
    deadline: date | None = None
    brief: str | None = None
    payment: PaymentTerms
    barter_value: Decimal | None = None
    barter_description: str | None = None
    usage: UsageRights
    exclusivity: Exclusivity
    termination_notice_days: int
    jurisdiction_city: str
    additional_terms: list[str] = Field(default_factory=list)
    delivery_address: str | None = None
    delivery_phone_masked: str | None = None


def mask_phone(phone: str | None) -> str:
    """Mask a phone number down to its first two and last two digits.

    Non-digits are dropped first.  Numbers with fewer than 10 digits are
    masked entirely.

    Examples::

        >>> mask_phone("+91 98765 43210")
        '91XXXXXXXX10'
        >>> mask_phone("9876543210")
        '98XXXXXX10'
    """
    digits = re.sub(r"\D", "", phone or "")
    if len(digits) < 10:
        return "X" * 10
    return digits[:2] + "X" * (len(digits) - 4) + digits[-2:]


def _missing_fields(deal: Deal) -> list[str]:
    required = {
        "brand_name": deal.brand_name,
        "brand_email": deal.brand_email,
        "creator_name": deal.creator.name,
        "creator_email": deal.creator.email,
    }
    return [name for name, value in required.items() if not (value or "").strip()]


def build_contract_schema(deal: Deal, generated_on: date) -> ContractSchema:
    """Map a deal's terms onto the contract schema.

    Args:
        deal: The deal to contract.
        generated_on: Date printed on the agreement.

    Returns:
        The normalized :class:`ContractSchema`.

    Raises:
        DealValidationError: If party details required on the contract are
            missing, or a barter deal has no delivery details.
    """
    missing = _missing_fields(deal)
    if missing:
        raise DealValidationError(
            f"Missing required contract fields: {', '.join(missing)}", field=missing[0]
        )

    prefs = deal.preferences
    additional_terms: list[str] = []
    delivery_address: str | None = None
    delivery_phone_masked: str | None = None

    if deal.is_barter:
        if deal.delivery_details is None:
            raise DealValidationError(
                "Delivery details are required for barter contracts", field="delivery_details"
            )
        delivery_address = deal.delivery_details.address
        delivery_phone_masked = mask_phone(deal.delivery_details.phone)
        additional_terms.extend(
            f"{i}. {clause}" for i, clause in enumerate(BARTER_CLAUSES, start=1)
        )
        additional_terms.append(
            f"Delivery address: {delivery_address}. Contact (masked): {delivery_phone_masked}"
        )

    amount = deal.budget if deal.collab_type in (CollabType.PAID, CollabType.HYBRID) else None

    return ContractSchema(
        deal_id=deal.id,
        generated_on=generated_on,
        brand=Party(
            name=deal.brand_name,
            email=deal.brand_email,
            contact_name=deal.brand_contact_name,
            address=deal.brand_address,
        ),
        creator=Party(name=deal.creator.name, email=deal.creator.email),
        collab_type=deal.collab_type,
        deliverables=list(deal.deliverables),
        deadline=deal.deadline,
        brief=deal.brief,
        payment=PaymentTerms(
            method=prefs.payment_method, timeline=prefs.payment_timeline, amount=amount
        ),
        barter_value=deal.barter_value if deal.collab_type != CollabType.PAID else None,
        barter_description=deal.barter_description if deal.collab_type != CollabType.PAID else None,
        usage=prefs.usage,
        exclusivity=prefs.exclusivity,
        termination_notice_days=prefs.termination_notice_days,
        jurisdiction_city=prefs.jurisdiction_city,
        additional_terms=additional_terms,
        delivery_address=delivery_address,
        delivery_phone_masked=delivery_phone_masked,
    )


def contract_file_name(schema: ContractSchema) -> str:
    """Return ``{Brand}_{Creator}_Agreement_{version}.pdf`` with unsafe characters replaced."""
    stem = f"{schema.brand.name}_{schema.creator.name}_Agreement_{schema.contract_version}"
    return re.sub(r"[^A-Za-z0-9]", "_", stem) + ".pdf"
