"""
Runtime Metrics Agent - Metrics Reporter

Pushes every stored metric to the server at the report interval, one
gzip-compressed JSON request per metric.
"""

import asyncio
import gzip
import time
from typing import Dict, List, Optional

import httpx
import structlog

from pydantic import ValidationError

from metrics_store import Metric, MetricType, Storage

logger = structlog.get_logger(__name__)

UPDATE_PATH = "/update/"


class MetricsReporter:
    """Sends store contents to the metrics server.

    Counters are sent as the change since the last total the server
    acknowledged, so a failed send is folded into the next interval's delta
    rather than dropped or counted twice. Gauges are sent as-is.
    """

    def __init__(
        self,
        storage: Storage,
        server_url: str,
        interval: float = 10,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 5.0,
    ):
        self.storage = storage
        self.server_url = server_url
        self._interval = interval
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._acknowledged: Dict[str, int] = {}

        self._running = False
        self._report_task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start reporting."""
        if self._running:
            return

        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.server_url, timeout=self._timeout)

        self._running = True
        self._report_task = asyncio.create_task(self._report_loop())
        logger.info("Metrics reporter started", server=self.server_url, interval=self._interval)

    async def stop(self) -> None:
        """Stop reporting. In-flight requests are abandoned."""
        self._running = False

        if self._report_task:
            self._report_task.cancel()
            try:
                await self._report_task
            except asyncio.CancelledError:
                pass
            self._report_task = None

        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

        logger.info("Metrics reporter stopped")

    async def _report_loop(self) -> None:
        """Main report loop."""
        while self._running:
            await asyncio.sleep(self._interval)

            start_time = time.monotonic()
            try:
                sent = await self.report_once()
                logger.debug(
                    "Report cycle completed",
                    sent=sent,
                    duration_ms=round((time.monotonic() - start_time) * 1000, 2),
                )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception("Report error", error=str(e))

    def build_metrics(self) -> List[Metric]:
        """Snapshot the store into transfer records."""
        counters, gauges = self.storage.snapshot()

        metrics = []
        for name, total in counters.items():
            delta = total - self._acknowledged.get(name, 0)
            try:
                metrics.append(Metric.counter(name, delta))
            except ValidationError:
                logger.warning("Counter delta out of range, skipping", metric=name, delta=delta)
        for name, value in gauges.items():
            metrics.append(Metric.gauge(name, value))
        return metrics

    async def report_once(self) -> int:
        """Send one pass of all metrics. Returns how many were accepted.

        Needs a client: either pass one to the constructor or call start().
        """
        if self._client is None:
            raise RuntimeError("Metrics reporter has no HTTP client; call start() first")

        sent = 0
        for metric in self.build_metrics():
            if not await self._send(metric):
                continue
            sent += 1
            if metric.type == MetricType.COUNTER.value:
                self._acknowledged[metric.id] = self._acknowledged.get(metric.id, 0) + metric.delta
        return sent

    async def _send(self, metric: Metric) -> bool:
        """POST a single metric. Failures are logged and reported as False."""
        body = gzip.compress(metric.model_dump_json(exclude_none=True).encode("utf-8"))
        headers = {
            "Content-Type": "application/json",
            "Content-Encoding": "gzip",
            "Accept-Encoding": "gzip",
        }

        try:
            response = await self._client.post(UPDATE_PATH, content=body, headers=headers)
        except httpx.HTTPError as e:
            logger.warning("Failed to send metric", metric=metric.id, type=metric.type, error=str(e))
            return False

        if response.status_code != httpx.codes.OK:
            logger.warning(
                "Server rejected metric",
                metric=metric.id,
                type=metric.type,
                status=response.status_code,
            )
            return False

        return True
