"""Email templates for every message the deal workflow sends."""

from __future__ import annotations

from html import escape

from dealflow.domain.models import CounterOffer, Deal
from dealflow.notifications.sender import EmailMessage


def collab_action_url(base_url: str, token: str) -> str:
    """Link to the brand's accept / decline / counter page."""
    return f"{base_url.rstrip('/')}/collab-action?token={token}"


def contract_ready_url(base_url: str, token: str) -> str:
    """Link to the read-only contract page."""
    return f"{base_url.rstrip('/')}/contract-ready/{token}"


def esign_url(base_url: str, token: str) -> str:
    """Link to the OTP-gated signing page."""
    return f"{base_url.rstrip('/')}/esign/{token}"


def _layout(title: str, body: str) -> str:
    return (
        "<div style=\"font-family:Arial,sans-serif;max-width:600px;margin:0 auto\">"
        f"<h2>{escape(title)}</h2>{body}"
        "<p style=\"color:#888;font-size:12px\">"
        "Sent by Dealflow on behalf of your collaboration partner.</p>"
        "</div>"
    )


def _button(url: str, label: str) -> str:
    return (
        f"<p><a href=\"{escape(url)}\" style=\"background:#4f46e5;color:#fff;padding:10px 18px;"
        f"border-radius:6px;text-decoration:none\">{escape(label)}</a></p>"
    )


def proposal_links(deal: Deal, base_url: str, tokens: dict[str, str]) -> EmailMessage:
    """Send the proposal's accept / decline / counter links to the brand contact."""
    buttons = "".join(
        _button(collab_action_url(base_url, token), label.title())
        for label, token in tokens.items()
    )
    body = (
        f"<p>Hi {escape(deal.brand_contact_name or deal.brand_name)},</p>"
        f"<p>{escape(deal.creator.name)} has shared collaboration terms with "
        f"{escape(deal.brand_name)}. Review and respond below.</p>"
        f"<ul>{''.join(f'<li>{escape(d)}</li>' for d in deal.deliverables)}</ul>"
        f"{buttons}"
    )
    return EmailMessage(
        to=deal.brand_email,
        subject=f"Collaboration request from {deal.creator.name}",
        html=_layout("Collaboration request", body),
    )


def otp_code(to: str, code: str, ttl_minutes: int, deal: Deal) -> EmailMessage:
    """One-time signing code."""
    body = (
        f"<p>Use this code to verify your identity before signing the agreement between "
        f"{escape(deal.brand_name)} and {escape(deal.creator.name)}:</p>"
        f"<p style=\"font-size:28px;letter-spacing:6px;font-weight:bold\">{code}</p>"
        f"<p>This code expires in {ttl_minutes} minutes. "
        "If you did not request it, ignore this email.</p>"
    )
    return EmailMessage(
        to=to,
        subject="Your verification code",
        html=_layout("Verify your email", body),
        text=f"Your verification code is {code}. It expires in {ttl_minutes} minutes.",
    )


def contract_ready(deal: Deal, view_url: str, sign_url: str) -> EmailMessage:
    """Tell the brand the contract is ready to review and sign."""
    body = (
        f"<p>The collaboration agreement with {escape(deal.creator.name)} is ready.</p>"
        f"{_button(view_url, 'View contract')}"
        f"{_button(sign_url, 'Review and sign')}"
    )
    return EmailMessage(
        to=deal.brand_email,
        subject=f"Contract ready: {deal.brand_name} x {deal.creator.name}",
        html=_layout("Your contract is ready", body),
    )


def brand_declined(deal: Deal) -> EmailMessage:
    """Confirm to the brand that their decline was recorded."""
    reason = f"<p>Reason: {escape(deal.decline_reason)}</p>" if deal.decline_reason else ""
    body = (
        f"<p>Your response to {escape(deal.creator.name)}'s collaboration request has been "
        f"recorded as declined.</p>{reason}"
    )
    return EmailMessage(
        to=deal.brand_email,
        subject=f"Collaboration declined: {deal.creator.name}",
        html=_layout("Response recorded", body),
    )


def brand_countered(deal: Deal, offer: CounterOffer) -> EmailMessage:
    """Confirm to the brand the counter-offer terms that were sent."""
    notes = f"<p>Notes: {escape(offer.notes)}</p>" if offer.notes else ""
    body = (
        f"<p>Your counter-offer to {escape(deal.creator.name)} has been sent.</p>"
        f"<p>Budget: {offer.budget}</p>"
        f"<ul>{''.join(f'<li>{escape(d)}</li>' for d in offer.deliverables)}</ul>"
        f"<p>Timeline: {offer.timeline.isoformat()}</p>{notes}"
    )
    return EmailMessage(
        to=deal.brand_email,
        subject=f"Counter-offer sent to {deal.creator.name}",
        html=_layout("Counter-offer sent", body),
    )


def creator_signing_request(deal: Deal, sign_url: str) -> EmailMessage:
    """Ask the creator to countersign after the brand has signed."""
    body = (
        f"<p>{escape(deal.brand_name)} has signed your collaboration agreement. "
        "Countersign to execute it.</p>"
        f"{_button(sign_url, 'Sign agreement')}"
    )
    return EmailMessage(
        to=deal.creator.email,
        subject=f"{deal.brand_name} signed your agreement",
        html=_layout("Your signature is needed", body),
    )


def brand_signed_confirmation(deal: Deal) -> EmailMessage:
    """Confirm to the brand that their signature was recorded."""
    body = (
        f"<p>Your signature on the agreement with {escape(deal.creator.name)} has been recorded. "
        "We'll let you know once the creator countersigns.</p>"
    )
    return EmailMessage(
        to=deal.brand_email,
        subject="Signature recorded",
        html=_layout("Thanks for signing", body),
    )


def contract_executed(deal: Deal, to: str) -> EmailMessage:
    """Tell a party that both signatures are in."""
    body = (
        f"<p>The agreement between {escape(deal.brand_name)} and {escape(deal.creator.name)} "
        "is now fully executed.</p>"
    )
    return EmailMessage(
        to=to,
        subject="Agreement fully executed",
        html=_layout("Agreement executed", body),
    )
