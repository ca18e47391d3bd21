# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Async Infrastructure Primitives

Provides:
- Lifecycle management
- Timeout contexts
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Coroutine
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


def epoch_ms() -> int:
    """Milliseconds since the epoch."""
    return int(utcnow().timestamp() * 1000)


# ============================================================
# TIMEOUT UTILITIES
# ============================================================


@asynccontextmanager
async def timeout_context(seconds: float, operation: str = "operation") -> AsyncIterator[None]:
    """
    Async context manager with timeout.

    Usage:
        async with timeout_context(120, "tool invocation"):
            results = await client.call_tools(batch)
    """
    try:
        async with asyncio.timeout(seconds):
            yield
    except TimeoutError:
        logger.error(f"{operation} timed out after {seconds}s")
        raise


# ============================================================
# LIFECYCLE MANAGEMENT
# ============================================================


@dataclass
class Lifecycle:
    """
    Application lifecycle manager.

    Usage:
        lifecycle = Lifecycle()

        @lifecycle.on_startup
        async def init_store():
            await store.initialize()

        @lifecycle.on_shutdown
        async def close_store():
            await store.close()

        await lifecycle.startup()
        ...
        await lifecycle.shutdown()
    """

    _startup_hooks: list[Callable[[], Coroutine]] = field(default_factory=list)
    _shutdown_hooks: list[Callable[[], Coroutine]] = field(default_factory=list)
    _running: bool = False

    def on_startup(self, func: Callable[[], Coroutine]) -> Callable[[], Coroutine]:
        """Decorator to register startup hook."""
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Callable[[], Coroutine]) -> Callable[[], Coroutine]:
        """Decorator to register shutdown hook."""
        self._shutdown_hooks.append(func)
        return func

    async def startup(self) -> None:
        """Execute all startup hooks."""
        logger.info("Starting application...")
        for hook in self._startup_hooks:
            try:
                await hook()
            except Exception as e:
                logger.error(f"Startup hook {hook.__name__} failed: {e}")
                raise
        self._running = True
        logger.info("Application started")

    async def shutdown(self) -> None:
        """Execute all shutdown hooks in reverse order."""
        if not self._running:
            return

        logger.info("Shutting down application...")
        self._running = False

        # Keep going so every resource gets its chance to close
        for hook in reversed(self._shutdown_hooks):
            try:
                await hook()
            except Exception as e:
                logger.error(f"Shutdown hook {hook.__name__} failed: {e}")

        logger.info("Application shut down")

    @property
    def is_running(self) -> bool:
        return self._running


__all__ = [
    "Lifecycle",
    "epoch_ms",
    "timeout_context",
    "utcnow",
]
