from .client import InventoryAPIError, InventoryClient
from .models import CameraSpec, ProvisionInput, RecorderSpec
from .orchestrator import ProvisionFlags, ProvisionReport, ProvisionStep, Provisioner
from .schema import ProvisionInputError, format_validation_errors, load_document, validate_provision_document

__all__ = [
    "CameraSpec",
    "InventoryAPIError",
    "InventoryClient",
    "ProvisionFlags",
    "ProvisionInput",
    "ProvisionInputError",
    "ProvisionReport",
    "ProvisionStep",
    "Provisioner",
    "RecorderSpec",
    "format_validation_errors",
    "load_document",
    "validate_provision_document",
]
