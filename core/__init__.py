from .errors import (
    PlannerSyncError,
    ValidationError,
    ConflictError,
    IdentityNotFoundError,
    RemoteRequestError,
    GraphPermissionError,
    GraphRateLimitError,
)
from .locator import Locator, resolve_locator
from .outcome import Ok, Err, RecordOutcome, flatten
from .details import (
    OperationMode,
    ChecklistItem,
    ReferenceItem,
    CollectionUpdate,
    parse_checklist_items,
    parse_reference_items,
)

__all__ = [
    # Errors
    "PlannerSyncError",
    "ValidationError",
    "ConflictError",
    "IdentityNotFoundError",
    "RemoteRequestError",
    "GraphPermissionError",
    "GraphRateLimitError",
    # Parameters
    "Locator",
    "resolve_locator",
    # Outcomes
    "Ok",
    "Err",
    "RecordOutcome",
    "flatten",
    # Details
    "OperationMode",
    "ChecklistItem",
    "ReferenceItem",
    "CollectionUpdate",
    "parse_checklist_items",
    "parse_reference_items",
]
