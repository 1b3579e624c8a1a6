"""Domain enumerations for deals, tokens, and signatures."""

from enum import StrEnum


class CollabType(StrEnum):
    """How the creator is compensated for a collaboration."""

    PAID = "paid"
    BARTER = "barter"
    HYBRID = "hybrid"


class DealStatus(StrEnum):
    """Coarse lifecycle phase of a deal."""

    NEGOTIATION = "negotiation"
    SENT = "sent"
    AWAITING_PRODUCT_SHIPMENT = "awaiting_product_shipment"
    PAYMENT_PENDING = "payment_pending"
    COMPLETED = "completed"


class BrandResponseStatus(StrEnum):
    """Result of the brand-side negotiation."""

    PENDING = "pending"
    ACCEPTED_VERIFIED = "accepted_verified"
    DECLINED = "declined"
    COUNTERED = "countered"


class ExecutionStatus(StrEnum):
    """Signature / contract phase of a deal."""

    UNSIGNED = "unsigned"
    SIGNED = "signed"


class ShippingStatus(StrEnum):
    """Product shipment tracking for barter deals."""

    PENDING = "pending"
    SHIPPED = "shipped"
    DELIVERED = "delivered"


class TokenAction(StrEnum):
    """The single action an action token authorizes."""

    ACCEPT = "accept"
    DECLINE = "decline"
    COUNTER = "counter"
    SIGN_AS_BRAND = "sign-as-brand"
    SIGN_AS_CREATOR = "sign-as-creator"
    VIEW_CONTRACT = "view-contract"


class SignerRole(StrEnum):
    """A party that can sign a contract."""

    BRAND = "brand"
    CREATOR = "creator"


class ViewerRole(StrEnum):
    """Role claim carried by an authenticated dashboard session."""

    CREATOR = "creator"
    ADMIN = "admin"


SIGNING_ACTIONS: dict[TokenAction, SignerRole] = {
    TokenAction.SIGN_AS_BRAND: SignerRole.BRAND,
    TokenAction.SIGN_AS_CREATOR: SignerRole.CREATOR,
}


def signer_role_for(action: TokenAction) -> SignerRole | None:
    """Return the signer role a token action grants, or ``None``.

    Args:
        action: The token action to look up.

    Returns:
        The :class:`SignerRole` for ``sign-as-*`` actions, otherwise ``None``.
    """
    return SIGNING_ACTIONS.get(action)
