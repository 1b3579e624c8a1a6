"""Transition tables for the three independent deal status axes.

Each table maps ``(current_state, event)`` to the next state.  Any pair not
in a table is an invalid transition on that axis.
"""

from enum import StrEnum

from dealflow.domain.types import BrandResponseStatus, DealStatus, ExecutionStatus


class BrandResponseEvent(StrEnum):
    """Brand-side actions on a proposal."""

    ACCEPT = "accept"
    DECLINE = "decline"
    COUNTER = "counter"


class DealStatusEvent(StrEnum):
    """Events moving a deal through its coarse lifecycle."""

    SEND = "send"
    RESHARE = "reshare"
    REQUEST_SHIPMENT = "request_shipment"
    EXECUTE = "execute"
    COMPLETE = "complete"


class ExecutionEvent(StrEnum):
    """Events on the contract execution axis."""

    SIGN = "sign"


BRAND_RESPONSE_TRANSITIONS: dict[tuple[BrandResponseStatus, str], BrandResponseStatus] = {
    (BrandResponseStatus.PENDING, BrandResponseEvent.ACCEPT): BrandResponseStatus.ACCEPTED_VERIFIED,
    (BrandResponseStatus.PENDING, BrandResponseEvent.DECLINE): BrandResponseStatus.DECLINED,
    (BrandResponseStatus.PENDING, BrandResponseEvent.COUNTER): BrandResponseStatus.COUNTERED,
}

# accepted_verified is write-once; a countered deal continues as a new proposal round.
BRAND_RESPONSE_TERMINAL: frozenset[BrandResponseStatus] = frozenset(
    {
        BrandResponseStatus.ACCEPTED_VERIFIED,
        BrandResponseStatus.DECLINED,
        BrandResponseStatus.COUNTERED,
    }
)

DEAL_STATUS_TRANSITIONS: dict[tuple[DealStatus, str], DealStatus] = {
    # From NEGOTIATION
    (DealStatus.NEGOTIATION, DealStatusEvent.SEND): DealStatus.SENT,
    (DealStatus.NEGOTIATION, DealStatusEvent.RESHARE): DealStatus.SENT,
    # From SENT
    (DealStatus.SENT, DealStatusEvent.RESHARE): DealStatus.SENT,
    (DealStatus.SENT, DealStatusEvent.REQUEST_SHIPMENT): DealStatus.AWAITING_PRODUCT_SHIPMENT,
    (DealStatus.SENT, DealStatusEvent.EXECUTE): DealStatus.PAYMENT_PENDING,
    # From AWAITING_PRODUCT_SHIPMENT
    (DealStatus.AWAITING_PRODUCT_SHIPMENT, DealStatusEvent.EXECUTE): DealStatus.PAYMENT_PENDING,
    # From PAYMENT_PENDING
    (DealStatus.PAYMENT_PENDING, DealStatusEvent.COMPLETE): DealStatus.COMPLETED,
}

DEAL_STATUS_TERMINAL: frozenset[DealStatus] = frozenset({DealStatus.COMPLETED})

EXECUTION_TRANSITIONS: dict[tuple[ExecutionStatus, str], ExecutionStatus] = {
    (ExecutionStatus.UNSIGNED, ExecutionEvent.SIGN): ExecutionStatus.SIGNED,
}

EXECUTION_TERMINAL: frozenset[ExecutionStatus] = frozenset({ExecutionStatus.SIGNED})
