"""
Timer scheduling for the single-threaded interview event loop.

Every timer and provider callback in the system goes through a Scheduler so
that all state changes happen on one thread, in order.
"""
import asyncio
from typing import Any, Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Minimal event-loop surface used by the orchestrator and adapters."""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> None: ...


class AsyncioScheduler:
    """Scheduler backed by an asyncio event loop.

    ``call_soon`` is safe to use from worker threads (recognizer streams,
    synthesizer playback), the callback always runs on the loop thread.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self.loop = loop

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> asyncio.TimerHandle:
        return self.loop.call_later(delay, callback, *args)

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> None:
        self.loop.call_soon_threadsafe(callback, *args)
