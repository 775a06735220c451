"""
Drip SDK - usage metering and execution ledger client.

Example:
    >>> from drip import Drip
    >>> client = Drip(api_key="sk_live_...")
    >>> result = client.record_run(
    ...     customer_id="cus_123",
    ...     workflow="training-run",
    ...     events=[{"event_type": "training.epoch", "quantity": 50, "units": "epochs"}],
    ... )
    >>> print(result.summary)
"""

from .client import Drip, __version__
from .codec import Metadata, metadata_from_json, metadata_to_json
from .errors import (
    DripAPIError,
    DripAuthenticationError,
    DripConfigurationError,
    DripError,
    DripNetworkError,
    DripNotFoundError,
    DripRateLimitError,
    DripTimeoutError,
)
from .models import (
    BalanceResult,
    Customer,
    CustomerStatus,
    DripConfig,
    EmitEventsBatchResult,
    EndRunResult,
    EventResult,
    KeyType,
    ListCustomersResponse,
    ListWorkflowsResponse,
    PingResult,
    RecordRunEvent,
    RecordRunResult,
    RunResult,
    RunStatus,
    TrackUsageResult,
    Workflow,
    WorkflowResolution,
    WorkflowResolutionOutcome,
)
from .utils import derive_idempotency_key

__all__ = [
    "__version__",
    # Client
    "Drip",
    # Errors
    "DripError",
    "DripAPIError",
    "DripAuthenticationError",
    "DripConfigurationError",
    "DripNetworkError",
    "DripNotFoundError",
    "DripRateLimitError",
    "DripTimeoutError",
    # Models
    "BalanceResult",
    "Customer",
    "CustomerStatus",
    "DripConfig",
    "EmitEventsBatchResult",
    "EndRunResult",
    "EventResult",
    "KeyType",
    "ListCustomersResponse",
    "ListWorkflowsResponse",
    "PingResult",
    "RecordRunEvent",
    "RecordRunResult",
    "RunResult",
    "RunStatus",
    "TrackUsageResult",
    "Workflow",
    "WorkflowResolution",
    "WorkflowResolutionOutcome",
    # Utilities
    "Metadata",
    "derive_idempotency_key",
    "metadata_from_json",
    "metadata_to_json",
]
