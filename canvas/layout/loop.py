"""
Simulation Loop
===============

Fixed-cadence asyncio driver for frame callbacks.

The loop parks on an asyncio.Event while there is no work and is woken
by `wake()`. The event is cleared BEFORE each frame runs, so a wake
raised during or after the frame is never lost.

A frame that raises is reported to `on_error` and the loop parks until
the next wake; the task itself keeps running.
"""

from __future__ import annotations
import asyncio
from typing import Callable, Optional


FrameCallback = Callable[[], bool]
FrameErrorHandler = Callable[[Exception], None]


class SimulationLoop:
    """
    Drive `frame()` every `interval_seconds` while it reports work.

    `frame` returns True while it wants another frame (simulation
    running or data pending) and False once everything is idle.
    """

    def __init__(
        self,
        frame: FrameCallback,
        interval_seconds: float = 0.016,
        on_error: Optional[FrameErrorHandler] = None
    ):
        self._frame = frame
        self._interval = interval_seconds
        self._on_error = on_error
        self._wake = asyncio.Event()
        self._stopped = False
        self._frames = 0
        self._failures = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def frames(self) -> int:
        return self._frames

    @property
    def failures(self) -> int:
        return self._failures

    @property
    def is_parked(self) -> bool:
        return not self._wake.is_set()

    def wake(self):
        self._wake.set()

    def stop(self):
        self._stopped = True
        self._wake.set()

    def start(self) -> asyncio.Task:
        """Schedule `run()` on the running event loop."""
        if self._task is None or self._task.done():
            self._stopped = False
            self._task = asyncio.ensure_future(self.run())
        return self._task

    async def run(self):
        while not self._stopped:
            self._wake.clear()
            busy = self._run_frame()
            self._frames += 1
            if self._stopped:
                break
            if busy:
                await asyncio.sleep(self._interval)
            else:
                await self._wake.wait()

    def _run_frame(self) -> bool:
        try:
            return self._frame()
        except Exception as exc:
            self._failures += 1
            if self._on_error is not None:
                self._on_error(exc)
            return False
