"""
RPC primitive interface and error taxonomy.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class RpcError(Exception):
    """Base class for every failure of a single RPC call."""

    retryable = False


class RpcTransportError(RpcError):
    """No usable response: connection refused, timeout, HTTP failure."""

    retryable = True


class RpcNodeError(RpcError):
    """The node answered with a well-formed JSON-RPC error object."""

    def __init__(self, code: int | None, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"RPC error {code}: {message}")


class RpcDecodeError(RpcError):
    """The response did not have the expected shape."""


class RpcTransport(ABC):
    """
    A single authenticated request/response exchange with the node.

    Implementations raise one of the RpcError subclasses on failure. Calls
    scoped to an account pass its name as ``wallet``.
    """

    @abstractmethod
    async def call(
        self, method: str, params: list[Any] | None = None, wallet: str | None = None
    ) -> Any:
        """Invoke an RPC method and return its decoded ``result``"""

    async def close(self) -> None:
        """Release transport resources"""
        pass
