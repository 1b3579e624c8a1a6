"""One-time code issuance and verification for signing."""

from dealflow.otp.verifier import OtpVerifier, generate_code, hash_code

__all__ = [
    "OtpVerifier",
    "generate_code",
    "hash_code",
]
