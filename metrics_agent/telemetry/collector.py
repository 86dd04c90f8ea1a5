"""
Runtime Metrics Agent - Runtime Sampler

Samples process and interpreter statistics at the poll interval and records
them in the agent's metric store.
"""

import asyncio
import gc
import random
import sys
import time
from typing import Dict, Optional

import psutil
import structlog

from metrics_store import Storage

logger = structlog.get_logger(__name__)

# Fixed gauge set written on every tick, in addition to RANDOM_VALUE.
RUNTIME_GAUGES = (
    "RSS",
    "VMS",
    "AllocatedBlocks",
    "GCGen0Count",
    "GCGen1Count",
    "GCGen2Count",
    "GCCollections",
    "GCCollected",
    "GCUncollectable",
    "GCObjects",
    "NumThreads",
    "CPUutilization",
    "TotalMemory",
    "FreeMemory",
)
RANDOM_VALUE = "RandomValue"
POLL_COUNT = "PollCount"


class RuntimeSampler:
    """Periodically writes runtime gauges and the poll counter into a store."""

    def __init__(self, storage: Storage, interval: float = 2):
        self.storage = storage
        self._interval = interval
        self._process = psutil.Process()
        self._random = random.Random()

        self._running = False
        self._collection_task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start sampling."""
        if self._running:
            return

        # Prime the CPU counter; the first reading is always 0.0.
        self._process.cpu_percent(interval=None)

        self._running = True
        self._collection_task = asyncio.create_task(self._collection_loop())
        logger.info("Runtime sampler started", interval=self._interval)

    async def stop(self) -> None:
        """Stop sampling."""
        self._running = False

        if self._collection_task:
            self._collection_task.cancel()
            try:
                await self._collection_task
            except asyncio.CancelledError:
                pass
            self._collection_task = None

        logger.info("Runtime sampler stopped")

    async def _collection_loop(self) -> None:
        """Main collection loop."""
        while self._running:
            start_time = time.monotonic()
            try:
                self.collect_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception("Sampling error", error=str(e))

            elapsed = time.monotonic() - start_time
            await asyncio.sleep(max(0, self._interval - elapsed))

    def collect_once(self) -> int:
        """Take one sample and write it to the store. Returns the poll count."""
        for name, value in self.read_runtime_stats().items():
            self.storage.record_gauge(name, value)
        self.storage.record_gauge(RANDOM_VALUE, self._random.random())

        poll_count = self.storage.accumulate_counter(POLL_COUNT, 1)
        logger.debug("Runtime sample recorded", poll_count=poll_count)
        return poll_count

    def read_runtime_stats(self) -> Dict[str, float]:
        """Read the RUNTIME_GAUGES values."""
        mem = self._process.memory_info()
        host = psutil.virtual_memory()
        gen0, gen1, gen2 = gc.get_count()
        gc_stats = gc.get_stats()

        stats = {
            "RSS": mem.rss,
            "VMS": mem.vms,
            "AllocatedBlocks": sys.getallocatedblocks(),
            "GCGen0Count": gen0,
            "GCGen1Count": gen1,
            "GCGen2Count": gen2,
            "GCCollections": sum(s["collections"] for s in gc_stats),
            "GCCollected": sum(s["collected"] for s in gc_stats),
            "GCUncollectable": sum(s["uncollectable"] for s in gc_stats),
            "GCObjects": len(gc.get_objects()),
            "NumThreads": self._process.num_threads(),
            "CPUutilization": self._process.cpu_percent(interval=None),
            "TotalMemory": host.total,
            "FreeMemory": host.available,
        }
        return {name: float(stats[name]) for name in RUNTIME_GAUGES}
