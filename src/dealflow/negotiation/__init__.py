"""Brand responses to proposals and counter-offer suggestions."""

from dealflow.negotiation.engine import (
    ActionOutcome,
    CounterRequest,
    DealDetails,
    DealSummary,
    NegotiationEngine,
    ProposalRequest,
    ProposalResult,
    ShareOutcome,
    already_message,
    ip_fingerprint,
    validate_counter,
    validate_proposal,
)
from dealflow.negotiation.suggestions import (
    LOW_BARTER_NOTE,
    USAGE_RIGHTS_NOTE,
    CounterSuggestion,
    compute_counter_suggestions,
)

__all__ = [
    "LOW_BARTER_NOTE",
    "USAGE_RIGHTS_NOTE",
    "ActionOutcome",
    "CounterRequest",
    "CounterSuggestion",
    "DealDetails",
    "DealSummary",
    "NegotiationEngine",
    "ProposalRequest",
    "ProposalResult",
    "ShareOutcome",
    "already_message",
    "compute_counter_suggestions",
    "ip_fingerprint",
    "validate_counter",
    "validate_proposal",
]
