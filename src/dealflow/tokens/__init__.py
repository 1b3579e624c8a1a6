"""Capability tokens for emailed deal links."""

from dealflow.tokens.service import (
    ResolvedToken,
    TokenService,
    calculate_expiry,
    generate_token,
)

__all__ = [
    "ResolvedToken",
    "TokenService",
    "calculate_expiry",
    "generate_token",
]
