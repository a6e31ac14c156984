"""
Connection state machine owning the periodic refresh tasks.

Polling tasks exist only while CONNECTED. Every connect or disconnect bumps
``epoch`` so late RPC completions from an earlier session can be recognised
and discarded by their owners.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from enum import Enum
from typing import Any

from loguru import logger

from nodepilot.models import OpResult, PollTask


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class PollScheduler:
    def __init__(
        self,
        probe: Callable[[], Awaitable[Any]],
        tasks: Sequence[PollTask],
        on_connected: Callable[[], Awaitable[None]] | None = None,
        on_disconnected: Callable[[], None] | None = None,
    ) -> None:
        self.probe = probe
        self.tasks = list(tasks)
        self.on_connected = on_connected
        self.on_disconnected = on_disconnected
        self.state = ConnectionState.DISCONNECTED
        self.epoch = 0
        self.last_error: str | None = None
        self._attempt = 0
        self._running: dict[str, asyncio.Task[None]] = {}

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    @property
    def live_task_count(self) -> int:
        return sum(1 for task in self._running.values() if not task.done())

    def is_current(self, epoch: int) -> bool:
        return self.is_connected and epoch == self.epoch

    async def connect(self, poll: bool = True) -> OpResult:
        """Probe the node and, if reachable, enter CONNECTED and start polling."""
        if self.state != ConnectionState.DISCONNECTED:
            return OpResult.failure(f"cannot connect while {self.state.value}")

        self.state = ConnectionState.CONNECTING
        self._attempt += 1
        attempt = self._attempt
        logger.info("Connecting to node...")
        try:
            await self.probe()
        except Exception as e:
            if attempt == self._attempt:
                self.state = ConnectionState.DISCONNECTED
                self.last_error = str(e)
            logger.warning(f"Connection probe failed: {e}")
            return OpResult.failure(f"node unreachable: {e}")

        # disconnect(), and possibly a newer connect(), may have run meanwhile
        if attempt != self._attempt or self.state != ConnectionState.CONNECTING:
            return OpResult.failure("connection cancelled")

        self.state = ConnectionState.CONNECTED
        self.epoch += 1
        self.last_error = None
        session = self.epoch
        logger.info(f"Connected (session {session})")

        if self.on_connected is not None:
            try:
                await self.on_connected()
            except Exception as e:
                logger.warning(f"Post-connect hook failed: {e}")
        if poll and self.is_current(session):
            self._start_tasks()
        return OpResult.success(session)

    def _start_tasks(self) -> None:
        self._running = {}
        logger.info(f"Starting {len(self.tasks)} poll tasks")
        for poll_task in self.tasks:
            task = asyncio.create_task(self._run_periodic(poll_task))
            task.set_name(f"poll:{poll_task.name}")
            self._running[poll_task.name] = task

    async def _run_periodic(self, poll_task: PollTask) -> None:
        epoch = self.epoch
        while self.is_current(epoch):
            try:
                await poll_task.callback()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Poll task {poll_task.name} failed: {e}")
            await asyncio.sleep(poll_task.interval)

    async def disconnect(self) -> None:
        previous = self.state
        self.state = ConnectionState.DISCONNECTED
        self.epoch += 1
        self._attempt += 1

        running = list(self._running.values())
        self._running = {}
        for task in running:
            task.cancel()
        # A poll task may itself trigger the disconnect; it must not await itself
        current = asyncio.current_task()
        others = [task for task in running if task is not current]
        if others:
            await asyncio.gather(*others, return_exceptions=True)

        if previous != ConnectionState.DISCONNECTED:
            logger.info(f"Disconnected, cancelled {len(running)} poll tasks")
        if self.on_disconnected is not None:
            self.on_disconnected()
