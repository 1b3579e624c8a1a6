"""Deal status axes with transition validation."""

from dealflow.state_machine.machine import (
    BRAND_RESPONSE_AXIS,
    DEAL_STATUS_AXIS,
    EXECUTION_AXIS,
    StatusAxis,
)
from dealflow.state_machine.transitions import (
    BrandResponseEvent,
    DealStatusEvent,
    ExecutionEvent,
)

__all__ = [
    "BRAND_RESPONSE_AXIS",
    "DEAL_STATUS_AXIS",
    "EXECUTION_AXIS",
    "BrandResponseEvent",
    "DealStatusEvent",
    "ExecutionEvent",
    "StatusAxis",
]
