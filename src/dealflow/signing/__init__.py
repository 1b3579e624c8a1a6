"""Electronic signing, device parsing, and wet-signature uploads."""

from dealflow.signing.device import parse_device_info
from dealflow.signing.workflow import (
    OtpDispatch,
    OtpVerification,
    SigningWorkflow,
    SignOutcome,
    SignRequest,
    UploadOutcome,
    signed_contract_path,
    validate_sign_request,
)

__all__ = [
    "OtpDispatch",
    "OtpVerification",
    "SignOutcome",
    "SignRequest",
    "SigningWorkflow",
    "UploadOutcome",
    "parse_device_info",
    "signed_contract_path",
    "validate_sign_request",
]
