"""Application bootstrap and lifecycle management."""

import asyncio
from dataclasses import replace
from typing import Any, Protocol

from .config import InspectorOptions
from .endpoints import DEFAULT_ROLE, EndpointMetadata, EndpointRegistry, IEndpoint
from .errors import InspectorError
from .logging_config import get_logger
from .models import CommandResponse, TraceEvent, TraceSource
from .models import contracts
from .routing import InvokeRouter
from .server import InspectorServer, execute_command, parse_command
from .tracing import TracePort, get_trace_port, serialize_error, unwrap_payload

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Clear captured traces."""
        ...


class Application:
    """Wires registry, inspector server, trace port and router together."""

    def __init__(
        self,
        options: InspectorOptions | None = None,
        trace_port: TracePort | None = None,
    ):
        self._options = options or InspectorOptions.from_env()
        self._trace_port_override = trace_port

        # Components (will be initialized in start())
        self._registry: EndpointRegistry | None = None
        self._trace_port: TracePort | None = None
        self._server: InspectorServer | None = None
        self._router: InvokeRouter | None = None
        self._route_tasks: set[asyncio.Task] = set()

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")
        options = self._options.validate()

        # 1. Endpoint registry (no dependencies)
        self._registry = EndpointRegistry()
        logger.info("Endpoint registry initialized")

        # 2. Trace port, configured but not yet attached
        self._trace_port = self._trace_port_override or get_trace_port()
        self._trace_port.payload_mode = options.payload_mode
        self._trace_port.max_preview_bytes = options.max_payload_preview_bytes
        self._trace_port.reserved_prefix = options.reserved_prefix

        # 3. Inspector server (depends on registry + trace port)
        self._server = InspectorServer(
            options=options,
            registry=self._registry,
            trace_port=self._trace_port,
        )
        logger.info(
            "Inspector server initialized (capacity=%d, payload_mode=%s)",
            options.max_events,
            options.payload_mode.value,
        )

        # 4. Attach the sink once the server can take events
        if options.enabled:
            self._trace_port.set_sink(self._server.push)
            logger.info("Tracing enabled")
        else:
            logger.info("Tracing disabled")

        # 5. Router (depends on registry + trace port)
        self._router = InvokeRouter(
            registry=self._registry,
            trace_port=self._trace_port,
            default_timeout=options.router_timeout,
        )
        logger.info("Invoke router initialized")
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        for task in list(self._route_tasks):
            task.cancel()
        if self._router:
            self._router.cleanup()
        if self._trace_port:
            self._trace_port.set_sink(None)
        if self._server:
            self._server.close()
            logger.info("Inspector server closed")
        logger.info("Application stopped")

    async def reset(self) -> None:
        """Clear captured traces."""
        self.server.clear()
        logger.info("Reset complete")

    # Endpoint traffic

    def connect_endpoint(self, endpoint: IEndpoint, role: str = DEFAULT_ROLE) -> EndpointMetadata:
        """Register a window; inspector windows also become subscribers."""
        metadata = self.registry.register(endpoint, role)
        if role == contracts.INSPECTOR_ROLE:
            self.server.subscribe(endpoint)
        return metadata

    def handle_message(self, endpoint: IEndpoint, channel: str, payload: Any) -> None:
        """Dispatch one inbound message from a window."""
        if channel == contracts.HELLO:
            self._handle_hello(endpoint)
        elif channel == contracts.TRACE:
            self._handle_trace(endpoint, payload)
        elif channel == contracts.COMMAND:
            self._handle_command(endpoint, payload)
        elif channel in (contracts.ROUTE_RESPONSE, contracts.ROUTE_REQUEST) and not isinstance(
            payload, dict
        ):
            logger.warning(
                "Malformed %s from endpoint %s: %s", channel, endpoint.id, type(payload).__name__
            )
        elif channel == contracts.ROUTE_RESPONSE:
            self.router.handle_response(payload)
        elif channel == contracts.ROUTE_REQUEST:
            task = asyncio.create_task(self.handle_route(endpoint, payload))
            self._route_tasks.add(task)
            task.add_done_callback(self._route_tasks.discard)
        else:
            logger.debug("Unhandled channel %s from endpoint %s", channel, endpoint.id)

    async def handle_route(self, endpoint: IEndpoint, payload: dict) -> None:
        """Route a window's cross-window call and reply with its outcome."""
        request_id = payload.get("request_id")
        unwrapped = unwrap_payload(payload.get("request"))
        result: dict[str, Any] = {"request_id": request_id}
        timeout = payload.get("timeout")
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            timeout = None

        try:
            future = self.router.route(
                endpoint.id,
                str(payload.get("target_role") or ""),
                str(payload.get("channel") or ""),
                unwrapped.payload,
                timeout=timeout,
                trace=unwrapped.trace,
            )
            result["response"] = await future
        except InspectorError as e:
            error = serialize_error(e)
            result["error"] = {"name": error.name, "message": error.message, "stack": error.stack}

        if endpoint.is_destroyed():
            logger.debug("Route result %s dropped, endpoint %s closed", request_id, endpoint.id)
            return
        try:
            endpoint.send(contracts.ROUTE_RESULT, result)
        except Exception as e:
            logger.warning("Failed to send route result to %s: %s", endpoint.id, e)

    def _handle_hello(self, endpoint: IEndpoint) -> None:
        subscriber = self.server.get_subscriber(endpoint.id)
        if subscriber is None:
            if self.registry.get_role(endpoint.id) != contracts.INSPECTOR_ROLE:
                logger.debug("Hello from non-inspector endpoint %s ignored", endpoint.id)
                return
            self.server.subscribe(endpoint)
            subscriber = self.server.get_subscriber(endpoint.id)
        if subscriber is not None:
            self.server.send_init(subscriber)

    def _handle_trace(self, endpoint: IEndpoint, payload: Any) -> None:
        items = payload if isinstance(payload, list) else [payload]
        for item in items:
            if not isinstance(item, dict):
                logger.debug("Malformed trace fragment from %s", endpoint.id)
                continue
            try:
                event = TraceEvent.from_dict(item)
            except (KeyError, TypeError, ValueError) as e:
                logger.debug("Malformed trace fragment from %s: %s", endpoint.id, e)
                continue
            role = self.registry.get_role(endpoint.id)
            self.trace_port.emit(_with_source(event, endpoint.id, role))

    def _handle_command(self, endpoint: IEndpoint, payload: Any) -> None:
        data = payload.get("command", payload) if isinstance(payload, dict) else payload
        try:
            result = execute_command(self.server, parse_command(data))
            response = CommandResponse(success=True, data=result)
        except InspectorError as e:
            response = CommandResponse(success=False, error=str(e))

        message = response.to_dict()
        if isinstance(payload, dict) and "request_id" in payload:
            message["request_id"] = payload["request_id"]
        try:
            endpoint.send(contracts.COMMAND_RESPONSE, message)
        except Exception as e:
            logger.warning("Failed to send command response to %s: %s", endpoint.id, e)

    # Accessors

    @property
    def options(self) -> InspectorOptions:
        return self._options

    @property
    def registry(self) -> EndpointRegistry:
        if not self._registry:
            raise RuntimeError("Application not started")
        return self._registry

    @property
    def server(self) -> InspectorServer:
        if not self._server:
            raise RuntimeError("Application not started")
        return self._server

    @property
    def router(self) -> InvokeRouter:
        if not self._router:
            raise RuntimeError("Application not started")
        return self._router

    @property
    def trace_port(self) -> TracePort:
        if not self._trace_port:
            raise RuntimeError("Application not started")
        return self._trace_port


def _with_source(event: TraceEvent, endpoint_id: int, role: str | None) -> TraceEvent:
    """Fill in the sending endpoint where the fragment does not name one."""
    if event.source is None:
        return replace(event, source=TraceSource(endpoint_id=endpoint_id, role=role))
    if event.source.endpoint_id is None:
        return replace(event, source=replace(event.source, endpoint_id=endpoint_id))
    return event
