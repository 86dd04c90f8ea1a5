"""
Runtime Metrics Server - Persistence Manager

Restores the metric store from disk at startup and saves it back
periodically, after every write (save interval 0), and on shutdown.
"""

import asyncio
import os
import tempfile
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Optional

import structlog

from metrics_store import StateFormatError, Storage

logger = structlog.get_logger(__name__)


class PersistenceState(str, Enum):
    """Persistence manager lifecycle state."""
    INIT = "init"
    RESTORING = "restoring"
    IDLE = "idle"
    SAVING = "saving"


class PersistenceManager:
    """Bridges a Storage to a JSON file.

    An empty ``file_path`` disables restore and save. An ``interval`` of 0
    disables the timer; callers invoke ``on_mutation`` after each write and
    the store is saved synchronously instead.
    """

    def __init__(self, storage: Storage, file_path: str, interval: float = 300, restore: bool = True):
        self.storage = storage
        self.file_path = Path(file_path) if file_path else None
        self._interval = interval
        self._restore = restore

        self.state = PersistenceState.INIT
        self.last_saved: Optional[float] = None
        self._running = False
        self._save_task: Optional[asyncio.Task] = None
        self._save_lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.file_path is not None

    @property
    def synchronous(self) -> bool:
        return self.enabled and self._interval == 0

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Restore (if enabled) and start the save timer."""
        if self._running:
            return

        if self._restore:
            await asyncio.to_thread(self.restore)
        self.state = PersistenceState.IDLE

        self._running = True
        if self.enabled and self._interval > 0:
            self._save_task = asyncio.create_task(self._save_loop())

        logger.info(
            "Persistence manager started",
            path=str(self.file_path) if self.file_path else None,
            interval=self._interval,
            synchronous=self.synchronous,
        )

    async def stop(self) -> None:
        """Stop the save timer and write a final snapshot."""
        self._running = False

        if self._save_task:
            self._save_task.cancel()
            try:
                await self._save_task
            except asyncio.CancelledError:
                pass
            self._save_task = None

        await asyncio.to_thread(self.save)
        logger.info("Persistence manager stopped")

    async def _save_loop(self) -> None:
        """Save at the configured interval."""
        while self._running:
            await asyncio.sleep(self._interval)
            try:
                await asyncio.to_thread(self.save)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception("Periodic save error", error=str(e))

    async def on_mutation(self) -> None:
        """Called after each store write; in synchronous mode, returns once the save is done."""
        if self.synchronous:
            await asyncio.to_thread(self.save)

    def restore(self) -> bool:
        """Load the saved snapshot into the store. Failures leave the store as is."""
        if not self.enabled:
            return False

        self.state = PersistenceState.RESTORING
        try:
            data = self.file_path.read_text(encoding="utf-8")
            self.storage.load(data)
        except FileNotFoundError:
            logger.info("No saved metrics to restore", path=str(self.file_path))
            return False
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to read saved metrics", path=str(self.file_path), error=str(e))
            return False
        except StateFormatError as e:
            logger.warning("Saved metrics file is corrupt", path=str(self.file_path), error=str(e))
            return False
        finally:
            self.state = PersistenceState.IDLE

        logger.info("Metrics restored", path=str(self.file_path), count=len(self.storage))
        return True

    def save(self) -> bool:
        """Overwrite the file with the current store contents.

        Blocking; async callers run it via asyncio.to_thread. Saves are
        serialized so an older dump never replaces a newer one.
        """
        if not self.enabled:
            return False

        with self._save_lock:
            self.state = PersistenceState.SAVING
            try:
                data = self.storage.dump()
                self._write_file(data)
            except OSError as e:
                logger.error("Failed to save metrics", path=str(self.file_path), error=str(e))
                return False
            finally:
                self.state = PersistenceState.IDLE

            self.last_saved = time.time()
        logger.debug("Metrics saved", path=str(self.file_path))
        return True

    def _write_file(self, data: str) -> None:
        """Replace the file atomically via a temp file in the same directory."""
        directory = self.file_path.parent
        directory.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=f".{self.file_path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
            os.replace(tmp_path, self.file_path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
