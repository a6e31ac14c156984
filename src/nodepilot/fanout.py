"""
Fan-out/join coordination of concurrent RPC calls.

A join waits for every branch, successful or not, and hands the full list of
results to a combiner exactly once. Branch failures never abort the join; the
combiner decides what a failed branch means at its use site.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from loguru import logger

from nodepilot.rpc.base import RpcTransport

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class RpcCall:
    method: str
    params: list[Any] = field(default_factory=list)
    wallet: str | None = None


@dataclass(frozen=True)
class CallResult(Generic[T]):
    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, default: T) -> T:
        if self.error is not None or self.value is None:
            return default
        return self.value


async def settle(awaitable: Awaitable[T], timeout: float | None = None) -> CallResult[T]:
    """Run one branch to completion and capture its outcome."""
    try:
        if timeout is None:
            value = await awaitable
        else:
            value = await asyncio.wait_for(awaitable, timeout)
        return CallResult(value=value)
    except Exception as e:
        return CallResult(error=e)


class FanOutCoordinator:
    def __init__(self, rpc: RpcTransport, branch_timeout: float | None = None) -> None:
        self.rpc = rpc
        self.branch_timeout = branch_timeout

    async def gather(self, branches: Sequence[Awaitable[T]]) -> list[CallResult[T]]:
        if not branches:
            return []
        results = await asyncio.gather(
            *(settle(branch, self.branch_timeout) for branch in branches)
        )
        failed = sum(1 for r in results if not r.ok)
        if failed:
            logger.debug(f"Join completed with {failed}/{len(results)} failed branches")
        return list(results)

    async def join(
        self,
        branches: Sequence[Awaitable[T]],
        combiner: Callable[[list[CallResult[T]]], R],
    ) -> R:
        results = await self.gather(branches)
        return combiner(results)

    async def join_calls(
        self,
        calls: Sequence[RpcCall],
        combiner: Callable[[list[CallResult[Any]]], R],
    ) -> R:
        branches = [self.rpc.call(c.method, c.params, wallet=c.wallet) for c in calls]
        return await self.join(branches, combiner)
