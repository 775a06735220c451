"""
Drip SDK data models.

Response models accept the API's camelCase field names (and snake_case
names for convenience) and tolerate missing or wrong-typed fields.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .codec import (
    AmountStr,
    LenientBool,
    LenientFloat,
    LenientInt,
    LenientMetadata,
    LenientStr,
    Metadata,
    OptionalStr,
    as_object_list,
)


class DripModel(BaseModel):
    """Base model mapping snake_case attributes to camelCase wire names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# =============================================================================
# Enums
# =============================================================================


class KeyType(str, Enum):
    """API key scope, derived from the key prefix."""

    SECRET = "secret"
    PUBLIC = "public"
    UNKNOWN = "unknown"

    @classmethod
    def from_api_key(cls, api_key: str) -> KeyType:
        if api_key.startswith("sk_"):
            return cls.SECRET
        if api_key.startswith("pk_"):
            return cls.PUBLIC
        return cls.UNKNOWN


class CustomerStatus(str, Enum):
    ACTIVE = "ACTIVE"
    LOW_BALANCE = "LOW_BALANCE"
    PAUSED = "PAUSED"


class RunStatus(str, Enum):
    """Lifecycle status of a run."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    TIMEOUT = "TIMEOUT"

    def to_string(self) -> str:
        return self.value

    @classmethod
    def from_string(cls, value: str) -> RunStatus:
        """
        Parse an API status token.

        Unrecognized tokens map to PENDING rather than raising. Callers rely
        on this, so keep it when adding statuses.
        """
        try:
            return cls(value)
        except (TypeError, ValueError):
            return cls.PENDING


class WorkflowResolutionOutcome(str, Enum):
    """How ``record_run`` arrived at the workflow id it used."""

    DIRECT = "direct"
    FOUND = "found"
    CREATED = "created"
    FALLBACK = "fallback"


def _run_status(value: Any) -> RunStatus:
    if isinstance(value, RunStatus):
        return value
    return RunStatus.from_string(value if isinstance(value, str) else "")


def _customer_status(value: Any) -> CustomerStatus | None:
    try:
        return CustomerStatus(value)
    except (TypeError, ValueError):
        return None


LenientRunStatus = Annotated[RunStatus, BeforeValidator(_run_status)]
LenientCustomerStatus = Annotated[CustomerStatus | None, BeforeValidator(_customer_status)]


# =============================================================================
# Configuration
# =============================================================================


class DripConfig(DripModel):
    """Resolved client configuration."""

    model_config = ConfigDict(frozen=True)

    api_key: str
    base_url: str
    timeout: float

    def __repr__(self) -> str:
        return f"DripConfig(api_key='***', base_url={self.base_url!r}, timeout={self.timeout})"


# =============================================================================
# Health
# =============================================================================


class PingResult(DripModel):
    ok: bool
    status: str
    latency_ms: int
    timestamp: int


# =============================================================================
# Customers
# =============================================================================


class Customer(DripModel):
    id: LenientStr = ""
    external_customer_id: LenientStr = ""
    onchain_address: LenientStr = ""
    status: LenientCustomerStatus = None
    is_internal: LenientBool = False
    metadata: LenientMetadata = Field(default_factory=dict)
    created_at: LenientStr = ""
    updated_at: LenientStr = ""


class ListCustomersResponse(DripModel):
    data: Annotated[list[Customer], BeforeValidator(as_object_list)] = Field(default_factory=list)
    count: LenientInt = 0


class BalanceResult(DripModel):
    customer_id: LenientStr = ""
    balance_usdc: AmountStr = ""
    onchain_address: OptionalStr = None
    pending_charges_usdc: OptionalStr = None
    available_usdc: OptionalStr = None
    last_synced_at: OptionalStr = None


# =============================================================================
# Usage
# =============================================================================


class TrackUsageResult(DripModel):
    success: LenientBool = True
    usage_event_id: LenientStr = ""
    customer_id: LenientStr = ""
    usage_type: LenientStr = ""
    quantity: LenientFloat = 0.0
    is_internal: LenientBool = False
    is_duplicate: LenientBool = False
    message: LenientStr = ""


# =============================================================================
# Workflows
# =============================================================================


class Workflow(DripModel):
    id: LenientStr = ""
    name: LenientStr = ""
    slug: LenientStr = ""
    product_surface: OptionalStr = None
    description: OptionalStr = None
    is_active: LenientBool = True
    created_at: LenientStr = ""


class ListWorkflowsResponse(DripModel):
    data: Annotated[list[Workflow], BeforeValidator(as_object_list)] = Field(default_factory=list)
    count: LenientInt = 0


class WorkflowResolution(DripModel):
    """Result of the resolve-or-create step of ``record_run``."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    outcome: WorkflowResolutionOutcome
    workflow_id: str
    workflow_name: str
    error: Exception | None = Field(default=None, exclude=True)


# =============================================================================
# Runs & Events
# =============================================================================


class RunResult(DripModel):
    id: LenientStr = ""
    customer_id: LenientStr = ""
    workflow_id: LenientStr = ""
    workflow_name: LenientStr = ""
    status: LenientRunStatus = RunStatus.PENDING
    correlation_id: LenientStr = ""
    created_at: LenientStr = ""


class EndRunResult(DripModel):
    id: LenientStr = ""
    status: LenientRunStatus = RunStatus.PENDING
    ended_at: LenientStr = ""
    duration_ms: LenientInt = 0
    event_count: LenientInt = 0
    total_cost_units: AmountStr = ""


class EventResult(DripModel):
    id: LenientStr = ""
    run_id: LenientStr = ""
    event_type: LenientStr = ""
    quantity: LenientFloat = 0.0
    cost_units: LenientFloat = 0.0
    is_duplicate: LenientBool = False
    timestamp: LenientStr = ""


class EmitEventsBatchResult(DripModel):
    success: LenientBool = True
    created: LenientInt = 0
    duplicates: LenientInt = 0


# =============================================================================
# Record Run
# =============================================================================


class RecordRunEvent(DripModel):
    """One event passed to ``record_run``. Zero and empty values are omitted."""

    event_type: str
    quantity: float = 0.0
    units: str = ""
    description: str = ""
    cost_units: float = 0.0
    metadata: Metadata = Field(default_factory=dict)


class RecordRunInfo(DripModel):
    id: str
    workflow_id: str
    workflow_name: str
    status: RunStatus
    duration_ms: int


class RecordRunEvents(DripModel):
    created: int = 0
    duplicates: int = 0


class RecordRunResult(DripModel):
    run: RecordRunInfo
    events: RecordRunEvents
    total_cost_units: str = ""
    summary: str
    workflow_resolution: WorkflowResolution
