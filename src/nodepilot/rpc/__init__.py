"""
Node RPC access.

- RpcTransport: the single-call primitive every component depends on
- BitcoinRpcClient: httpx implementation against Bitcoin Core
"""

from nodepilot.rpc.base import (
    RpcDecodeError,
    RpcError,
    RpcNodeError,
    RpcTransport,
    RpcTransportError,
)
from nodepilot.rpc.client import BitcoinRpcClient

__all__ = [
    "BitcoinRpcClient",
    "RpcDecodeError",
    "RpcError",
    "RpcNodeError",
    "RpcTransport",
    "RpcTransportError",
]
