"""HTTP layer exposing the latest snapshot as Prometheus text and JSON."""

import asyncio
import logging
import threading
from collections.abc import Callable, Iterator
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from prometheus_client.core import GaugeMetricFamily
from prometheus_client.registry import Collector, CollectorRegistry

from hostmon.models import CpuSnapshot, ProcessEntry, SystemMemorySnapshot
from hostmon.monitor import ResourceMonitor
from hostmon.process import top_by_working_set

LOGGER = logging.getLogger(__name__)

INDEX_TEXT = (
    "hostmon metrics server\n"
    "/metrics, /healthz, /api/v1/memory/system, /api/v1/memory/process, /api/v1/cpu\n"
)
MONITOR_KEY = web.AppKey("monitor", ResourceMonitor)
LISTER_KEY = web.AppKey("process_lister", Callable)
REGISTRY_KEY = web.AppKey("registry", CollectorRegistry)


def _ratio(value: float) -> float:
    """Round a ratio to four decimals."""
    return round(value, 4)


class SnapshotCollector(Collector):
    """
    Exposes the latest published snapshot as gauges.

    ``collect`` runs on every scrape and only reads ``monitor.latest``;
    nothing is yielded before the first tick.
    """

    def __init__(self, monitor: ResourceMonitor) -> None:
        self._monitor = monitor

    def collect(self) -> Iterator[GaugeMetricFamily]:
        snapshot = self._monitor.latest
        if snapshot is None:
            return

        mem = snapshot.system_memory
        proc = snapshot.process_memory
        cpu = snapshot.cpu
        pid = [str(proc.process_id)]

        yield GaugeMetricFamily("system_memory_total_bytes", "Physical memory installed.", value=mem.total_bytes)
        yield GaugeMetricFamily(
            "system_memory_available_bytes", "Physical memory available.", value=mem.available_bytes
        )
        yield GaugeMetricFamily("system_memory_used_bytes", "Physical memory in use.", value=mem.used_bytes)
        yield GaugeMetricFamily(
            "system_memory_used_ratio",
            "Fraction of physical memory in use.",
            value=_ratio(mem.used_percent / 100.0),
        )

        working_set = GaugeMetricFamily(
            "process_working_set_bytes", "Resident memory of the monitor process.", labels=["pid"]
        )
        working_set.add_metric(pid, proc.working_set_bytes)
        yield working_set

        # Zero means the platform could not report the value
        if proc.private_bytes:
            private = GaugeMetricFamily(
                "process_private_bytes", "Private memory of the monitor process.", labels=["pid"]
            )
            private.add_metric(pid, proc.private_bytes)
            yield private
        if proc.paged_bytes:
            paged = GaugeMetricFamily(
                "process_paged_bytes", "Paged or swapped memory of the monitor process.", labels=["pid"]
            )
            paged.add_metric(pid, proc.paged_bytes)
            yield paged

        yield GaugeMetricFamily(
            "system_cpu_usage_ratio",
            "Overall CPU utilization over the last interval.",
            value=_ratio(cpu.overall_usage_ratio),
        )
        yield GaugeMetricFamily(
            "system_cpu_logical_processors", "Logical processor count.", value=cpu.logical_processor_count
        )

        if cpu.per_core_usage_ratios:
            cores = GaugeMetricFamily(
                "system_cpu_core_usage_ratio", "Per-core CPU utilization over the last interval.", labels=["core"]
            )
            for index, ratio in enumerate(cpu.per_core_usage_ratios):
                cores.add_metric([str(index)], _ratio(ratio))
            yield cores


def create_registry(monitor: ResourceMonitor) -> CollectorRegistry:
    """A private registry holding only the snapshot collector."""
    registry = CollectorRegistry()
    registry.register(SnapshotCollector(monitor))
    return registry


def render_prometheus(registry: CollectorRegistry) -> bytes:
    """Render the registry in the Prometheus text exposition format."""
    return generate_latest(registry)


def system_memory_to_dict(mem: SystemMemorySnapshot) -> dict[str, Any]:
    return {
        "totalBytes": mem.total_bytes,
        "availableBytes": mem.available_bytes,
        "usedBytes": mem.used_bytes,
        "usedPercent": mem.used_percent,
    }


def cpu_to_dict(cpu: CpuSnapshot) -> dict[str, Any]:
    return {
        "overallUsageRatio": cpu.overall_usage_ratio,
        "logicalProcessorCount": cpu.logical_processor_count,
        "perCoreUsageRatios": list(cpu.per_core_usage_ratios),
    }


def process_entry_to_dict(entry: ProcessEntry) -> dict[str, Any]:
    data = asdict(entry)
    return {"pid": data["pid"], "name": data["name"], "workingSetBytes": data["working_set_bytes"]}


def _not_ready() -> web.Response:
    return web.json_response({"error": "no snapshot yet"}, status=503)


async def _index(request: web.Request) -> web.Response:
    return web.Response(text=INDEX_TEXT)


async def _healthz(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok", "utc": datetime.now(timezone.utc).isoformat()})


async def _system_memory(request: web.Request) -> web.Response:
    snapshot = request.app[MONITOR_KEY].latest
    if snapshot is None:
        return _not_ready()
    return web.json_response(system_memory_to_dict(snapshot.system_memory))


async def _processes(request: web.Request) -> web.Response:
    lister = request.app[LISTER_KEY]
    # Process iteration is blocking; keep it off the event loop
    entries = await asyncio.get_running_loop().run_in_executor(None, lister, 10)
    return web.json_response([process_entry_to_dict(e) for e in entries])


async def _cpu(request: web.Request) -> web.Response:
    snapshot = request.app[MONITOR_KEY].latest
    if snapshot is None:
        return _not_ready()
    return web.json_response(cpu_to_dict(snapshot.cpu))


async def _metrics(request: web.Request) -> web.Response:
    body = render_prometheus(request.app[REGISTRY_KEY])
    return web.Response(body=body, headers={"Content-Type": CONTENT_TYPE_LATEST})


def create_app(
    monitor: ResourceMonitor,
    process_lister: Callable[[int], list[ProcessEntry]] = top_by_working_set,
) -> web.Application:
    """Build the aiohttp application. Handlers only read ``monitor.latest``."""
    app = web.Application()
    app[MONITOR_KEY] = monitor
    app[LISTER_KEY] = process_lister
    app[REGISTRY_KEY] = create_registry(monitor)
    app.add_routes([
        web.get("/", _index),
        web.get("/healthz", _healthz),
        web.get("/api/v1/memory/system", _system_memory),
        web.get("/api/v1/memory/process", _processes),
        web.get("/api/v1/cpu", _cpu),
        web.get("/metrics", _metrics),
    ])
    return app


class MetricsServer:
    """Runs the metrics app on its own event loop in a daemon thread."""

    def __init__(self, monitor: ResourceMonitor, host: str = "127.0.0.1", port: int = 9100) -> None:
        self._app = create_app(monitor)
        self._host = host
        self._port = port
        self._loop: asyncio.AbstractEventLoop | None = None
        self._runner: web.AppRunner | None = None
        self._thread: threading.Thread | None = None
        self._ready = threading.Event()
        self._error: BaseException | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, timeout: float = 5.0) -> None:
        """Start serving; raises the bind error if the server could not start."""
        if self.is_running:
            return
        self._ready.clear()
        self._error = None
        self._thread = threading.Thread(target=self._serve, daemon=True, name="MetricsServer")
        self._thread.start()
        self._ready.wait(timeout=timeout)
        if self._error is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
            raise self._error
        LOGGER.info("Prometheus /metrics on http://%s:%d/metrics", self._host, self._port)

    def stop(self, timeout: float | None = 5.0) -> None:
        """Shut the server down and wait for its thread."""
        if self._loop is not None and self._thread is not None:
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout=timeout)
        self._thread = None

    def _serve(self) -> None:
        loop = asyncio.new_event_loop()
        self._loop = loop
        asyncio.set_event_loop(loop)
        try:
            self._runner = web.AppRunner(self._app)
            loop.run_until_complete(self._runner.setup())
            site = web.TCPSite(self._runner, self._host, self._port)
            loop.run_until_complete(site.start())
        except OSError as exc:
            LOGGER.error("Metrics server failed to bind %s:%d: %s", self._host, self._port, exc)
            self._error = exc
            loop.run_until_complete(self._runner.cleanup())
            loop.close()
            self._loop = None
            self._ready.set()
            return

        self._ready.set()
        try:
            loop.run_forever()
        finally:
            loop.run_until_complete(self._runner.cleanup())
            loop.close()
            self._loop = None
