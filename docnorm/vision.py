"""Process-wide readiness gate for the OpenCV vision primitives.

The library is loaded once, on a background thread, the first time any caller
asks for it. Every caller that arrives while the load is in flight waits on the
same pending future, so concurrent documents never trigger a second load.
"""
from __future__ import annotations

from concurrent.futures import Future
from types import ModuleType
from typing import Optional

import asyncio
import concurrent.futures
import importlib
import logging
import threading
import time

from .errors import InitializationTimeout, VisionUnavailable

LOGGER = logging.getLogger(__name__)

DEFAULT_INIT_TIMEOUT = 30.0
VISION_MODULE = "cv2"


class VisionGate:
    """One-shot loader for a vision module with an explicit timeout."""

    def __init__(self, module_name: str = VISION_MODULE) -> None:
        self.module_name = module_name
        self._lock = threading.Lock()
        self._future: Optional[Future] = None

    @property
    def ready(self) -> bool:
        future = self._future
        return future is not None and future.done() and future.exception() is None

    def pending(self) -> Future:
        """Return the shared load future, starting the load if none is usable."""
        with self._lock:
            future = self._future
            if future is None or (future.done() and future.exception() is not None):
                future = Future()
                self._future = future
                thread = threading.Thread(
                    target=self._load,
                    args=(future,),
                    name=f"{self.module_name}-loader",
                    daemon=True,
                )
                thread.start()
            return future

    def _load(self, future: Future) -> None:
        if not future.set_running_or_notify_cancel():
            return
        start = time.perf_counter()
        try:
            module = importlib.import_module(self.module_name)
        except Exception as exc:
            error = VisionUnavailable(f"Failed to load vision library '{self.module_name}': {exc}")
            error.__cause__ = exc
            LOGGER.error("%s", error)
            future.set_exception(error)
            return
        LOGGER.info(
            "Vision library %s loaded in %.2fs (version=%s)",
            self.module_name,
            time.perf_counter() - start,
            getattr(module, "__version__", "unknown"),
        )
        future.set_result(module)

    async def ensure_ready(self, timeout: float = DEFAULT_INIT_TIMEOUT) -> ModuleType:
        future = self.pending()
        if future.done():
            return future.result()
        try:
            return await asyncio.wait_for(asyncio.shield(asyncio.wrap_future(future)), timeout)
        except asyncio.TimeoutError as exc:
            raise InitializationTimeout(
                f"Vision library '{self.module_name}' not ready after {timeout:.1f}s"
            ) from exc

    def ensure_ready_blocking(self, timeout: float = DEFAULT_INIT_TIMEOUT) -> ModuleType:
        future = self.pending()
        try:
            return future.result(timeout=timeout)
        except concurrent.futures.TimeoutError as exc:
            raise InitializationTimeout(
                f"Vision library '{self.module_name}' not ready after {timeout:.1f}s"
            ) from exc

    def require(self) -> ModuleType:
        """Return the loaded module without ever triggering a load."""
        if not self.ready:
            raise VisionUnavailable(
                f"Vision library '{self.module_name}' is not initialised; await ensure_ready() first."
            )
        return self._future.result()


_GATE = VisionGate()


async def ensure_ready(timeout: float = DEFAULT_INIT_TIMEOUT) -> ModuleType:
    return await _GATE.ensure_ready(timeout)


def ensure_ready_blocking(timeout: float = DEFAULT_INIT_TIMEOUT) -> ModuleType:
    return _GATE.ensure_ready_blocking(timeout)


def is_ready() -> bool:
    return _GATE.ready


def cv() -> ModuleType:
    """Accessor used by the pipeline stages."""
    return _GATE.require()


def default_gate() -> VisionGate:
    return _GATE
