"""
Bitcoin Core JSON-RPC client.
"""

from __future__ import annotations

import os
from typing import Any
from urllib.parse import quote

import httpx
from loguru import logger

from nodepilot.rpc.base import (
    RpcDecodeError,
    RpcNodeError,
    RpcTransport,
    RpcTransportError,
)

# Timeout for regular RPC calls (seconds)
DEFAULT_RPC_TIMEOUT = 30.0

# Environment variable to enable logging of RPC params (addresses, amounts)
SENSITIVE_LOGGING = os.environ.get("SENSITIVE_LOGGING", "").lower() in ("1", "true", "yes")


class BitcoinRpcClient(RpcTransport):
    """
    JSON-RPC 1.0 over HTTP POST with Basic authentication.

    Wallet-scoped calls are routed to ``/wallet/<name>``.
    """

    def __init__(
        self,
        rpc_url: str = "http://127.0.0.1:8332",
        rpc_user: str = "",
        rpc_password: str = "",
        timeout: float = DEFAULT_RPC_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.rpc_url = rpc_url.rstrip("/")
        self.rpc_user = rpc_user
        self.rpc_password = rpc_password
        self.client = httpx.AsyncClient(
            timeout=timeout, auth=(rpc_user, rpc_password), transport=transport
        )
        self._request_id = 0

    def wallet_url(self, wallet: str | None) -> str:
        if wallet is None:
            return self.rpc_url
        return f"{self.rpc_url}/wallet/{quote(wallet, safe='')}"

    async def call(
        self, method: str, params: list[Any] | None = None, wallet: str | None = None
    ) -> Any:
        """
        Make an RPC call to the node.

        Args:
            method: RPC method name
            params: Positional parameters
            wallet: Account name for wallet-scoped methods

        Returns:
            The decoded ``result`` field

        Raises:
            RpcTransportError: On connection, timeout or HTTP errors
            RpcNodeError: When the node returns an error object
            RpcDecodeError: When the body is not a JSON-RPC response
        """
        self._request_id += 1
        payload = {
            "jsonrpc": "1.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }
        url = self.wallet_url(wallet)
        if SENSITIVE_LOGGING:
            logger.debug(f"RPC {method} -> {url} params={payload['params']}")

        try:
            response = await self.client.post(url, json=payload)
        except httpx.TimeoutException as e:
            logger.error(f"RPC call timed out: {method} - {e}")
            raise RpcTransportError(f"{method} timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"RPC call failed: {method} - {e}")
            raise RpcTransportError(f"{method} failed: {e}") from e

        # Bitcoin Core reports RPC errors with 4xx/5xx status and a JSON body,
        # so the body is inspected before the status code.
        try:
            data = response.json()
        except ValueError as e:
            if response.is_error:
                raise RpcTransportError(
                    f"{method} failed: HTTP {response.status_code}"
                ) from e
            raise RpcDecodeError(f"{method}: response is not JSON") from e

        if not isinstance(data, dict):
            raise RpcDecodeError(f"{method}: response is not a JSON object")

        error_info = data.get("error")
        if error_info:
            if isinstance(error_info, dict):
                code = error_info.get("code")
                message = str(error_info.get("message", error_info))
            else:
                code = None
                message = str(error_info)
            logger.debug(f"RPC {method} returned error {code}: {message}")
            raise RpcNodeError(code, message)

        if response.is_error:
            raise RpcTransportError(f"{method} failed: HTTP {response.status_code}")

        if "result" not in data:
            raise RpcDecodeError(f"{method}: response has no result field")

        return data["result"]

    async def close(self) -> None:
        await self.client.aclose()
