"""
Drip SDK client.

This module provides the main Drip client class for interacting with
the Drip usage-metering and execution-ledger API.

Idempotency Keys
----------------
``track_usage`` and ``emit_event`` accept an optional ``idempotency_key``.
The server uses this key to deduplicate requests.

**Derived keys (default):**
When you omit ``idempotency_key``, the SDK derives one from the fields that
identify the call (customer and meter, or run and event type, plus the
quantity). Identical calls produce identical keys, so retrying a call never
double-counts. Two deliberately identical records need explicit keys.

**When to pass explicit keys:**
Use your own ``idempotency_key`` for application-level deduplication,
e.g., ``f"order_{order_id}_tokens"`` to guarantee one record per order
even across process restarts.
"""

from __future__ import annotations

import json as _json_mod
import logging
import os
import time
from typing import Any

import httpx
from pydantic import ValidationError

from .codec import metadata_to_json, read_float, read_str
from .errors import (
    DripAPIError,
    DripConfigurationError,
    DripError,
    create_api_error_from_response,
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
from .transport import Transport
from .utils import derive_idempotency_key, display_name_from_slug, strip_api_version

logger = logging.getLogger("drip.client")

__version__ = "1.1.0"

WORKFLOW_ID_PREFIX = "wf_"


def _reject_constant(token: str) -> Any:
    raise ValueError(f"non-standard JSON constant {token!r}")


def _status_token(status: RunStatus | str) -> str:
    if isinstance(status, RunStatus):
        return status.value
    return status.upper()


class Drip:
    """
    Python SDK client for Drip - usage metering and execution ledger.

    The Drip client provides methods for:
    - Customer management (create, get, list, get balance)
    - Usage tracking
    - Run tracking (workflows, runs, events)
    - Recording a complete run in one call (``record_run``)

    A client owns one HTTP connection pool. Use it as a context manager or
    call :meth:`close` when done.

    Example:
        >>> from drip import Drip
        >>>
        >>> with Drip(api_key="sk_live_...") as client:
        ...     customer = client.create_customer(external_customer_id="user_123")
        ...     client.track_usage(
        ...         customer_id=customer.id,
        ...         meter="tokens",
        ...         quantity=1500,
        ...     )
    """

    DEFAULT_BASE_URL = "https://drip-app-hlunj.ondigitalocean.app/v1"
    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """
        Initialize the Drip client.

        Args:
            api_key: API key from Drip dashboard (``sk_...`` or ``pk_...``).
                     If not provided, reads from DRIP_API_KEY environment variable.
            base_url: Base URL for the API. Defaults to the production API.
                      Can also be set via DRIP_BASE_URL (or the older
                      DRIP_API_URL) environment variable.
            timeout: Request timeout in seconds. Defaults to 30.
            transport: Optional httpx transport, e.g. ``httpx.MockTransport``
                       in tests.

        Raises:
            DripConfigurationError: If no API key is provided or found in
                environment (code ``NO_API_KEY``).
        """
        api_key = api_key or os.environ.get("DRIP_API_KEY")
        if not api_key:
            raise DripConfigurationError(
                "Drip API key is required. Pass api_key or set DRIP_API_KEY.",
                code="NO_API_KEY",
            )

        base_url = (
            base_url
            or os.environ.get("DRIP_BASE_URL")
            or os.environ.get("DRIP_API_URL")
            or self.DEFAULT_BASE_URL
        ).rstrip("/")

        self._config = DripConfig(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout if timeout and timeout > 0 else self.DEFAULT_TIMEOUT,
        )
        self._key_type = KeyType.from_api_key(api_key)

        self._transport = Transport(
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "User-Agent": f"drip-sdk-python/{__version__}",
            },
            timeout=self._config.timeout,
            transport=transport,
        )

    def __enter__(self) -> Drip:
        """Context manager entry."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.close()

    def __copy__(self) -> Drip:
        raise TypeError("Drip clients own a connection pool and cannot be copied")

    def __deepcopy__(self, memo: dict[int, Any]) -> Drip:
        raise TypeError("Drip clients own a connection pool and cannot be copied")

    def close(self) -> None:
        """Close the HTTP client and release resources."""
        self._transport.close()

    @property
    def config(self) -> DripConfig:
        """Get the current configuration."""
        return self._config

    @property
    def key_type(self) -> KeyType:
        """Scope of the configured API key (secret, public or unknown)."""
        return self._key_type

    # =========================================================================
    # Health Check
    # =========================================================================

    def ping(self) -> PingResult:
        """
        Ping the Drip API to check connectivity and measure latency.

        The health endpoint lives at the API root, so the version segment
        (``/v1``) is dropped from the base URL for this call only.

        Returns:
            PingResult with ok, status, latency_ms and timestamp (ms).

        Example:
            >>> health = client.ping()
            >>> if health.ok:
            ...     print(f"API healthy, latency: {health.latency_ms}ms")
        """
        health_base = strip_api_version(self._config.base_url)

        start = time.monotonic()
        data = self._request("GET", "/health", base_url=health_base)
        latency_ms = int((time.monotonic() - start) * 1000)

        status = read_str(data, "status") or "healthy"
        timestamp = read_float(data, "timestamp", time.time() * 1000)

        return PingResult(
            ok=status == "healthy",
            status=status,
            latency_ms=latency_ms,
            timestamp=int(timestamp),
        )

    # =========================================================================
    # HTTP Request Helpers
    # =========================================================================

    def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        base_url: str | None = None,
    ) -> dict[str, Any]:
        """
        Make an HTTP request to the API.

        Args:
            method: HTTP method (GET, POST, PATCH).
            path: API endpoint path.
            json: JSON body for POST/PATCH requests. Ignored for GET.
            params: Query parameters.
            base_url: Override the configured base URL for this call only.

        Returns:
            Parsed JSON response. ``{"success": True}`` for 204 responses.

        Raises:
            DripAPIError: For API errors and unreadable responses.
            DripTimeoutError: If the request timed out.
            DripNetworkError: For other network errors.
        """
        url = (base_url or self._config.base_url) + path

        content: bytes | None = None
        if method != "GET":
            content = _json_mod.dumps(json if json is not None else {}).encode("utf-8")

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "drip request: %s %s body=%s params=%s",
                method,
                path,
                content.decode("utf-8") if content else None,
                _json_mod.dumps(params, default=str) if params else None,
            )

        response = self._transport.send(method, url, content=content, params=params)
        status_code = response.status_code

        if status_code == 204:
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("drip response: %s %s status=204 body={}", method, path)
            return {"success": True}

        try:
            body: Any = _json_mod.loads(response.content, parse_constant=_reject_constant)
            parse_error: str | None = None
        except ValueError as e:
            body = None
            parse_error = str(e)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "drip response: %s %s status=%d body=%s",
                method,
                path,
                status_code,
                _json_mod.dumps(body, default=str) if parse_error is None else response.content[:200],
            )

        # Handle error responses
        if status_code < 200 or status_code >= 300:
            raise create_api_error_from_response(status_code, body)

        if parse_error is not None:
            raise DripAPIError(
                f"Failed to parse API response: {parse_error}",
                status_code=status_code,
                code="PARSE_ERROR",
            )
        if not isinstance(body, dict):
            raise DripAPIError(
                f"Expected a JSON object from {path}, got {type(body).__name__}",
                status_code=status_code,
                code="PARSE_ERROR",
            )

        return body

    def _get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make a GET request."""
        return self._request("GET", path, params=params)

    def _post(
        self,
        path: str,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make a POST request."""
        return self._request("POST", path, json=json)

    def _patch(
        self,
        path: str,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make a PATCH request."""
        return self._request("PATCH", path, json=json)

    # =========================================================================
    # Customer Management
    # =========================================================================

    def create_customer(
        self,
        external_customer_id: str | None = None,
        onchain_address: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> Customer:
        """
        Create a new customer.

        The server requires at least one of ``external_customer_id`` or
        ``onchain_address``; this is not checked locally.

        Args:
            external_customer_id: Your internal customer ID.
            onchain_address: Customer's smart account address.
            metadata: Custom string metadata.

        Returns:
            The created Customer object.
        """
        body: dict[str, Any] = {}

        if external_customer_id:
            body["externalCustomerId"] = external_customer_id
        if onchain_address:
            body["onchainAddress"] = onchain_address
        if metadata:
            body["metadata"] = metadata_to_json(metadata)

        response = self._post("/customers", json=body)
        return Customer.model_validate(response)

    def get_customer(self, customer_id: str) -> Customer:
        """
        Get a customer by ID.

        Args:
            customer_id: The customer ID.

        Returns:
            The Customer object.
        """
        response = self._get(f"/customers/{customer_id}")
        return Customer.model_validate(response)

    def list_customers(
        self,
        status: CustomerStatus | str | None = None,
        limit: int = 100,
    ) -> ListCustomersResponse:
        """
        List customers with optional filtering.

        Args:
            status: Filter by status (ACTIVE, LOW_BALANCE, PAUSED).
            limit: Maximum number of results (1-100).

        Returns:
            List of customers with count.
        """
        params: dict[str, Any] = {"limit": limit}
        if status:
            params["status"] = status.value if isinstance(status, CustomerStatus) else status

        response = self._get("/customers", params=params)
        return ListCustomersResponse.model_validate(response)

    def get_balance(self, customer_id: str) -> BalanceResult:
        """
        Get a customer's current balance.

        Args:
            customer_id: The customer ID.

        Returns:
            Balance information.
        """
        response = self._get(f"/customers/{customer_id}/balance")
        return BalanceResult.model_validate(response)

    # =========================================================================
    # Usage
    # =========================================================================

    def track_usage(
        self,
        customer_id: str,
        meter: str,
        quantity: float,
        idempotency_key: str | None = None,
        units: str | None = None,
        description: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> TrackUsageResult:
        """
        Record usage for a customer.

        Args:
            customer_id: The customer ID.
            meter: Usage meter type (e.g., "api_calls", "tokens").
            quantity: Amount to record.
            idempotency_key: Optional key to prevent duplicate records.
                Derived from customer, meter and quantity when omitted.
            units: Optional unit label (e.g., "tokens", "requests").
            description: Optional description.
            metadata: Optional string metadata.

        Returns:
            TrackUsageResult with event ID and duplicate flag.
        """
        body: dict[str, Any] = {
            "customerId": customer_id,
            "usageType": meter,
            "quantity": quantity,
            "idempotencyKey": idempotency_key
            or derive_idempotency_key("track", customer_id, meter, quantity),
        }

        if units:
            body["units"] = units
        if description:
            body["description"] = description
        if metadata:
            body["metadata"] = metadata_to_json(metadata)

        response = self._post("/usage/internal", json=body)
        response["quantity"] = read_float(response, "quantity", float(quantity))
        return TrackUsageResult.model_validate(response)

    # =========================================================================
    # Workflows
    # =========================================================================

    def create_workflow(
        self,
        name: str,
        slug: str,
        product_surface: str | None = None,
        description: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> Workflow:
        """
        Create a workflow definition for grouping runs.

        Args:
            name: Human-readable workflow name.
            slug: URL-safe identifier.
            product_surface: Type (RPC, WEBHOOK, AGENT, PIPELINE, CUSTOM).
            description: Optional description.
            metadata: Optional metadata.

        Returns:
            Created Workflow.
        """
        body: dict[str, Any] = {
            "name": name,
            "slug": slug,
        }

        if product_surface:
            body["productSurface"] = product_surface
        if description:
            body["description"] = description
        if metadata:
            body["metadata"] = metadata_to_json(metadata)

        response = self._post("/workflows", json=body)
        return Workflow.model_validate(response)

    def list_workflows(self) -> ListWorkflowsResponse:
        """
        List all workflows.

        Returns:
            List of workflows with count.
        """
        response = self._get("/workflows")
        return ListWorkflowsResponse.model_validate(response)

    # =========================================================================
    # Runs & Events
    # =========================================================================

    def start_run(
        self,
        customer_id: str,
        workflow_id: str,
        external_run_id: str | None = None,
        correlation_id: str | None = None,
        parent_run_id: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> RunResult:
        """
        Start a new run.

        Args:
            customer_id: The customer ID.
            workflow_id: The workflow ID.
            external_run_id: Your internal run ID.
            correlation_id: For distributed tracing.
            parent_run_id: For nested runs.
            metadata: Optional metadata.

        Returns:
            RunResult with run ID and status.
        """
        body: dict[str, Any] = {
            "customerId": customer_id,
            "workflowId": workflow_id,
        }

        if external_run_id:
            body["externalRunId"] = external_run_id
        if correlation_id:
            body["correlationId"] = correlation_id
        if parent_run_id:
            body["parentRunId"] = parent_run_id
        if metadata:
            body["metadata"] = metadata_to_json(metadata)

        response = self._post("/runs", json=body)
        return RunResult.model_validate(response)

    def end_run(
        self,
        run_id: str,
        status: RunStatus | str,
        error_message: str | None = None,
        error_code: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> EndRunResult:
        """
        End a run. A run can only be ended once; the server enforces this.

        Args:
            run_id: The run ID.
            status: Final status (COMPLETED, FAILED, CANCELLED, TIMEOUT).
            error_message: Optional error message for failed runs.
            error_code: Optional error code.
            metadata: Optional metadata.

        Returns:
            EndRunResult with final status, duration and totals.
        """
        body: dict[str, Any] = {"status": _status_token(status)}

        if error_message:
            body["errorMessage"] = error_message
        if error_code:
            body["errorCode"] = error_code
        if metadata:
            body["metadata"] = metadata_to_json(metadata)

        response = self._patch(f"/runs/{run_id}", json=body)
        return EndRunResult.model_validate(response)

    def emit_event(
        self,
        run_id: str,
        event_type: str,
        quantity: float = 0,
        units: str | None = None,
        description: str | None = None,
        cost_units: float = 0,
        idempotency_key: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> EventResult:
        """
        Emit an event within a run.

        Zero ``quantity`` and ``cost_units`` are treated as not provided and
        left out of the request.

        Args:
            run_id: The run ID.
            event_type: Event type (e.g., "training.epoch", "tool.call").
            quantity: Optional quantity.
            units: Unit label (e.g., "tokens", "pages").
            description: Optional description.
            cost_units: Optional cost in units.
            idempotency_key: Prevent duplicate events. Derived from run,
                event type and quantity when omitted.
            metadata: Optional metadata.

        Returns:
            EventResult with event ID and duplicate status.
        """
        body: dict[str, Any] = {
            "runId": run_id,
            "eventType": event_type,
            "idempotencyKey": idempotency_key
            or derive_idempotency_key("evt", run_id, event_type, quantity),
        }

        if quantity:
            body["quantity"] = quantity
        if units:
            body["units"] = units
        if description:
            body["description"] = description
        if cost_units:
            body["costUnits"] = cost_units
        if metadata:
            body["metadata"] = metadata_to_json(metadata)

        response = self._post("/run-events", json=body)
        return EventResult.model_validate(response)

    def emit_events_batch(
        self,
        events: list[dict[str, Any]],
    ) -> EmitEventsBatchResult:
        """
        Emit multiple events in one request.

        Args:
            events: Wire-format event objects with runId, eventType, etc.

        Returns:
            Batch result with created count and duplicates.
        """
        response = self._post("/run-events/batch", json={"events": events})
        return EmitEventsBatchResult.model_validate(response)

    # =========================================================================
    # Simplified API: Record Run
    # =========================================================================

    def record_run(
        self,
        customer_id: str,
        workflow: str,
        events: list[RecordRunEvent | dict[str, Any]] | None = None,
        status: RunStatus | str = RunStatus.COMPLETED,
        error_message: str | None = None,
        error_code: str | None = None,
        external_run_id: str | None = None,
        correlation_id: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> RecordRunResult:
        """
        Record a complete run in one call.

        Steps, in order:

        1. Resolve the workflow: ``wf_``-prefixed ids are used as-is;
           otherwise the workflow list is searched by slug or id and a
           workflow is created when nothing matches. If listing or creating
           fails, the raw ``workflow`` string is used as the id. This step
           never fails the call; the outcome is in ``workflow_resolution``.
        2. Start the run.
        3. Emit all events in a single batch request (skipped when empty).
        4. End the run with ``status``.

        Errors from steps 2-4 propagate. Nothing is rolled back: a failure
        in step 3 or 4 leaves the run started.

        Args:
            customer_id: The customer ID.
            workflow: Workflow ID or slug (auto-creates if slug is unknown).
            events: Events as RecordRunEvent or dicts (snake_case or camelCase keys).
            status: Final status (COMPLETED, FAILED, CANCELLED, TIMEOUT).
            error_message: Optional error message.
            error_code: Optional error code.
            external_run_id: Your internal run ID. Also seeds event
                idempotency keys so retries of the same run deduplicate.
            correlation_id: For distributed tracing.
            metadata: Optional run metadata.

        Returns:
            RecordRunResult with run info, event counts and a summary line.
        """
        start = time.monotonic()
        run_events = [self._normalize_record_event(evt) for evt in events or []]
        final_status = RunStatus.from_string(_status_token(status))

        # Step 1: Resolve workflow
        resolution = self._resolve_workflow(workflow)

        # Step 2: Start run
        run = self.start_run(
            customer_id=customer_id,
            workflow_id=resolution.workflow_id,
            external_run_id=external_run_id,
            correlation_id=correlation_id,
            metadata=metadata,
        )

        # Step 3: Emit events
        events_created = 0
        events_duplicates = 0
        if run_events:
            batch = [
                self._record_event_entry(run.id, evt, index, external_run_id)
                for index, evt in enumerate(run_events)
            ]
            batch_result = self.emit_events_batch(batch)
            events_created = batch_result.created
            events_duplicates = batch_result.duplicates

        # Step 4: End run
        end_result = self.end_run(
            run_id=run.id,
            status=status,
            error_message=error_message,
            error_code=error_code,
        )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        dur = end_result.duration_ms if end_result.duration_ms > 0 else elapsed_ms
        if final_status is RunStatus.COMPLETED:
            icon = "✓"
        elif final_status is RunStatus.FAILED:
            icon = "✗"
        else:
            icon = "○"

        return RecordRunResult.model_validate({
            "run": {
                "id": run.id,
                "workflowId": resolution.workflow_id,
                "workflowName": resolution.workflow_name,
                "status": final_status,
                "durationMs": end_result.duration_ms,
            },
            "events": {"created": events_created, "duplicates": events_duplicates},
            "totalCostUnits": end_result.total_cost_units,
            "summary": f"{icon} {resolution.workflow_name}: {events_created} events recorded ({dur}ms)",
            "workflowResolution": resolution,
        })

    def _resolve_workflow(self, workflow: str) -> WorkflowResolution:
        """
        Find or create the workflow for ``record_run``.

        API errors and malformed responses fall back to using ``workflow``
        as the id.
        """
        if workflow.startswith(WORKFLOW_ID_PREFIX):
            return WorkflowResolution(
                outcome=WorkflowResolutionOutcome.DIRECT,
                workflow_id=workflow,
                workflow_name=workflow,
            )

        try:
            workflows = self.list_workflows()
            match = next(
                (w for w in workflows.data if w.slug == workflow or w.id == workflow),
                None,
            )
            if match:
                return WorkflowResolution(
                    outcome=WorkflowResolutionOutcome.FOUND,
                    workflow_id=match.id,
                    workflow_name=match.name or workflow,
                )

            pretty = display_name_from_slug(workflow)
            created = self.create_workflow(name=pretty, slug=workflow, product_surface="CUSTOM")
            return WorkflowResolution(
                outcome=WorkflowResolutionOutcome.CREATED,
                workflow_id=created.id or workflow,
                workflow_name=created.name or pretty,
            )
        except (DripError, ValidationError) as e:
            logger.warning(
                "drip record_run: could not resolve workflow %r (%s); using it as the workflow id",
                workflow,
                e,
            )
            return WorkflowResolution(
                outcome=WorkflowResolutionOutcome.FALLBACK,
                workflow_id=workflow,
                workflow_name=workflow,
                error=e,
            )

    @staticmethod
    def _normalize_record_event(event: RecordRunEvent | dict[str, Any]) -> RecordRunEvent:
        if isinstance(event, RecordRunEvent):
            return event
        # accept both snake_case and camelCase keys; drop explicit Nones
        return RecordRunEvent.model_validate(
            {key: value for key, value in event.items() if value is not None}
        )

    @staticmethod
    def _record_event_entry(
        run_id: str,
        event: RecordRunEvent,
        index: int,
        external_run_id: str | None,
    ) -> dict[str, Any]:
        entry: dict[str, Any] = {
            "runId": run_id,
            "eventType": event.event_type,
        }
        if event.quantity:
            entry["quantity"] = event.quantity
        if event.units:
            entry["units"] = event.units
        if event.description:
            entry["description"] = event.description
        if event.cost_units:
            entry["costUnits"] = event.cost_units
        if event.metadata:
            entry["metadata"] = metadata_to_json(event.metadata)

        if external_run_id:
            entry["idempotencyKey"] = f"{external_run_id}:{event.event_type}:{index}"
        else:
            entry["idempotencyKey"] = derive_idempotency_key("run", run_id, event.event_type, index)
        return entry

    # =========================================================================
    # Static Utility Methods
    # =========================================================================

    @staticmethod
    def generate_idempotency_key(
        prefix: str,
        first: str,
        second: str,
        number: float = 0,
    ) -> str:
        """
        Derive a deterministic idempotency key, as the SDK does internally.

        Ensures "one logical action = one record" even with retries.

        Returns:
            Deterministic idempotency key.
        """
        return derive_idempotency_key(prefix, first, second, number)
