"""SIM implementation - synthetic IPC traffic for exercising the inspector."""

import asyncio
import os
import random
import time
from typing import Any, Protocol

from ipc_inspector.endpoints import EndpointRegistry, InMemoryEndpoint
from ipc_inspector.logging_config import get_logger
from ipc_inspector.models import TraceKind, TraceSource, TraceTarget
from ipc_inspector.routing import InvokeRouter
from ipc_inspector.tracing import (
    ITracePort,
    StreamTracer,
    get_current_context,
    trace_broadcast,
    trace_event,
    trace_invoke,
    unwrap_payload,
)

logger = get_logger(__name__)

MODES = ("burst", "sustained", "mixed")

SIM_SOURCE = TraceSource(role="sim", title="Traffic generator")

# Every n-th heavy call fails so error paths show up in the inspector
FAILURE_EVERY = 25


class ISim(Protocol):
    """Generate synthetic traffic."""

    async def start(
        self,
        mode: str = "sustained",
        events_per_second: int = 100,
        duration: float = 5.0,
        payload_size: int = 0,
    ) -> str:
        """Start a run; returns its id."""
        ...

    async def stop(self) -> None:
        """Stop the current run."""
        ...


class _EchoWindow(InMemoryEndpoint):
    """Simulated window that answers routed calls on the next loop tick."""

    def __init__(self, router: InvokeRouter):
        super().__init__()
        self._router = router

    def send(self, channel: str, payload: Any) -> None:
        if self.is_destroyed():
            raise ConnectionError(f"Endpoint {self.id} is destroyed")
        if channel.startswith("__RENDERER_HANDLER_"):
            request = unwrap_payload(payload.get("request")).payload
            asyncio.get_running_loop().call_soon(
                self._router.handle_response,
                {"correlation_id": payload["correlation_id"], "response": {"echo": request}},
            )


class Sim:
    """Generates traced invokes, events, broadcasts, streams and routed calls."""

    def __init__(
        self,
        port: ITracePort | None = None,
        router: InvokeRouter | None = None,
        registry: EndpointRegistry | None = None,
    ):
        self._port = port
        self._router = router
        self._registry = registry
        self._windows: list[_EchoWindow] = []
        self._task: asyncio.Task | None = None
        self._running = False
        self._test_id: str | None = None
        self._started_at: float | None = None
        self._generated = 0
        self._errored = 0
        self._total_latency = 0.0
        self._counter = 0

    def attach(
        self,
        port: ITracePort,
        router: InvokeRouter | None = None,
        registry: EndpointRegistry | None = None,
    ) -> None:
        """Inject the tracing port (and optionally routing) once the app is up."""
        self._port = port
        self._router = router
        self._registry = registry

    @property
    def stats(self) -> dict:
        return {
            "running": self._running,
            "test_id": self._test_id,
            "generated": self._generated,
            "errored": self._errored,
            "avg_latency_ms": self._total_latency / self._generated if self._generated else 0.0,
            "elapsed_s": time.time() - self._started_at if self._started_at else 0.0,
        }

    async def start(
        self,
        mode: str = "sustained",
        events_per_second: int = 100,
        duration: float = 5.0,
        payload_size: int = 0,
    ) -> str:
        """Start a run in the background."""
        if self._port is None:
            raise RuntimeError("SIM has no trace port attached")
        if mode not in MODES:
            raise ValueError(f"Unknown mode '{mode}', expected one of {', '.join(MODES)}")
        if self._running and self._test_id:
            logger.info("SIM already running (%s)", self._test_id)
            return self._test_id

        self._running = True
        self._test_id = f"test-{int(time.time() * 1000)}"
        self._started_at = time.time()
        self._generated = 0
        self._errored = 0
        self._total_latency = 0.0
        self._counter = 0
        self._open_windows()

        logger.info(
            "SIM starting %s run: %d/s for %.1fs (payload %d bytes)",
            mode,
            events_per_second,
            duration,
            payload_size,
        )
        self._task = asyncio.create_task(
            self._run(mode, events_per_second, duration, payload_size)
        )
        return self._test_id

    async def stop(self) -> None:
        """Stop the current run."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        self._close_windows()

    async def wait(self) -> None:
        """Wait for the current run to finish on its own."""
        if self._task:
            await asyncio.shield(self._task)

    async def _run(
        self, mode: str, events_per_second: int, duration: float, payload_size: int
    ) -> None:
        try:
            if mode == "burst":
                total = int(events_per_second * duration)
                await asyncio.gather(*(self._send_invoke(payload_size) for _ in range(total)))
            else:
                interval = 1.0 / events_per_second
                deadline = time.monotonic() + duration
                while self._running and time.monotonic() < deadline:
                    if mode == "sustained":
                        await self._send_invoke(payload_size)
                    else:
                        await self._send_mixed(payload_size)
                    await asyncio.sleep(interval)
        except Exception as e:
            logger.error("SIM run error: %s", e)
        finally:
            self._running = False
            logger.info(
                "SIM run %s finished: %d generated, %d errored",
                self._test_id,
                self._generated,
                self._errored,
            )

    async def _send_invoke(self, payload_size: int) -> None:
        self._counter += 1
        request: dict[str, Any] = {"message": f"Event {self._counter}"}
        if payload_size:
            request["data"] = _payload(payload_size)
        await self._invoke("testPing", request)

    async def _send_mixed(self, payload_size: int) -> None:
        self._counter += 1
        n = self._counter
        kind = n % 5

        if kind == 0:
            await self._invoke("testPing", {"message": f"Invoke {n}"})
        elif kind == 1:
            await self._invoke("testHeavy", {"size": payload_size, "data": _payload(payload_size)})
        elif kind == 2:
            trace_broadcast(
                self._port,
                "testBroadcast",
                {"message": f"Broadcast {n}", "id": n},
                target=TraceTarget(role="secondary"),
                broadcast_to_all=True,
            )
            trace_event(self._port, "logMessage", {"level": "info", "text": f"Tick {n}"}, source=SIM_SOURCE)
            self._generated += 2
        elif kind == 3:
            await self._invoke("loadDashboard", {"user": f"user-{n % 7}"})
        else:
            await self._stream_download(max(payload_size, 64))

    async def _invoke(self, channel: str, request: Any) -> None:
        start = time.monotonic()
        try:
            await trace_invoke(self._port, channel, request, self._handle, source=SIM_SOURCE)
            self._generated += 1
            self._total_latency += (time.monotonic() - start) * 1000
        except Exception as e:
            self._errored += 1
            logger.debug("SIM invoke %s failed: %s", channel, e)

    async def _handle(self, channel: str, request: Any) -> Any:
        """Simulated host-side handlers."""
        await asyncio.sleep(random.uniform(0, 0.002))

        if channel == "testPing":
            return {"pong": request.get("message")}

        if channel == "testHeavy":
            if self._counter % FAILURE_EVERY == 1:
                raise RuntimeError("Simulated handler failure")
            return {"size": len(request.get("data") or "")}

        if channel == "loadDashboard":
            # Nested calls become child spans of this one
            user = await trace_invoke(self._port, "fetchUser", request, self._handle, source=SIM_SOURCE)
            settings = await trace_invoke(self._port, "fetchSettings", request, self._handle, source=SIM_SOURCE)
            routed = await self._route("renderLayout", {"user": user, "settings": settings})
            return {"user": user, "settings": settings, "layout": routed}

        if channel == "fetchUser":
            return {"id": request.get("user"), "name": request.get("user", "").title()}

        if channel == "fetchSettings":
            return {"theme": "dark"}

        raise ValueError(f"No handler for channel '{channel}'")

    async def _route(self, channel: str, request: Any) -> Any:
        """Window-to-window call through the router, when routing is available."""
        if self._router is None or len(self._windows) < 2:
            return None
        source = self._windows[0]
        future = self._router.route(
            source.id, "sim-target", channel, request, trace=get_current_context()
        )
        return await future

    async def _stream_download(self, payload_size: int) -> None:
        stream = StreamTracer(
            self._port,
            TraceKind.STREAM_DOWNLOAD,
            "downloadLogs",
            target=TraceTarget(role="secondary"),
        )
        stream.start()
        try:
            for _ in range(random.randint(2, 6)):
                stream.chunk(_payload(payload_size))
                await asyncio.sleep(0)
        except asyncio.CancelledError:
            stream.cancel()
            raise
        stream.complete()
        self._generated += 1

    def _open_windows(self) -> None:
        if self._router is None or self._registry is None or self._windows:
            return
        source = _EchoWindow(self._router)
        target = _EchoWindow(self._router)
        self._registry.register(source, "sim-source")
        self._registry.register(target, "sim-target")
        self._windows = [source, target]

    def _close_windows(self) -> None:
        for window in self._windows:
            window.close()
        self._windows = []


def _payload(size: int) -> str:
    if size <= 0:
        return ""
    return os.urandom(size // 2 + 1).hex()[:size]
