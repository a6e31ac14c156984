"""
Test fixtures and configuration.
"""

from __future__ import annotations

import inspect
from pathlib import Path
from typing import Any

import pytest

from nodepilot.config import Settings
from nodepilot.rpc.base import RpcNodeError, RpcTransport


class FakeRpc(RpcTransport):
    """
    In-memory RpcTransport.

    ``handlers`` maps a method name, or a ``(method, wallet)`` pair for
    wallet-scoped answers, to either a result value, an exception instance to
    raise, or a callable ``(params, wallet)`` returning a value (sync or async).
    Unknown methods fail with the node's method-not-found error.
    """

    def __init__(self, handlers: dict[Any, Any] | None = None) -> None:
        self.handlers: dict[Any, Any] = dict(handlers or {})
        self.calls: list[tuple[str, list[Any], str | None]] = []
        self.closed = False

    def methods(self, wallet: str | None = None) -> list[str]:
        return [method for method, _, w in self.calls if wallet is None or w == wallet]

    async def call(
        self, method: str, params: list[Any] | None = None, wallet: str | None = None
    ) -> Any:
        params = list(params or [])
        self.calls.append((method, params, wallet))
        if (method, wallet) in self.handlers:
            handler = self.handlers[(method, wallet)]
        elif method in self.handlers:
            handler = self.handlers[method]
        else:
            raise RpcNodeError(-32601, "Method not found")

        if isinstance(handler, BaseException):
            raise handler
        if callable(handler):
            result = handler(params, wallet)
            if inspect.isawaitable(result):
                result = await result
            return result
        return handler

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_rpc() -> FakeRpc:
    return FakeRpc()


@pytest.fixture
def make_rpc() -> type[FakeRpc]:
    return FakeRpc


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        rpc_user="user",
        rpc_password="pass",
        history_file=tmp_path / "history.json",
        _env_file=None,
    )


@pytest.fixture
def node_handlers() -> dict[Any, Any]:
    """Answers for a healthy, synced node with no wallets."""
    return {
        "getblockchaininfo": {
            "blocks": 800000,
            "verificationprogress": 0.999999,
            "initialblockdownload": False,
        },
        "getnetworkinfo": {"connections": 8, "relayfee": 0.00001},
        "getmempoolinfo": {"size": 1234, "mempoolminfee": 0.00001},
        "listwalletdir": {"wallets": []},
    }
