"""Contract schema, rendering, storage, and the generation pipeline."""

from dealflow.contracts.delivery import DeliveryOutcome, DeliveryService, validate_delivery_details
from dealflow.contracts.pipeline import (
    ContractPipeline,
    ContractResult,
    ContractView,
    contract_storage_path,
    run_contract_side_effect,
)
from dealflow.contracts.renderer import ContractRenderer, GeneratedContract
from dealflow.contracts.schema import (
    BARTER_CLAUSES,
    ContractSchema,
    build_contract_schema,
    contract_file_name,
    mask_phone,
)
from dealflow.contracts.storage import BlobStorage, LocalBlobStorage, SupabaseBlobStorage

__all__ = [
    "BARTER_CLAUSES",
    "BlobStorage",
    "ContractPipeline",
    "ContractRenderer",
    "ContractResult",
    "ContractSchema",
    "ContractView",
    "DeliveryOutcome",
    "DeliveryService",
    "GeneratedContract",
    "LocalBlobStorage",
    "SupabaseBlobStorage",
    "build_contract_schema",
    "contract_file_name",
    "contract_storage_path",
    "mask_phone",
    "run_contract_side_effect",
    "validate_delivery_details",
]
