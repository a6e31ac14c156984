"""
Configuration management for the node control plane.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from nodepilot import constants

AddressType = Literal["legacy", "p2sh-segwit", "bech32", "bech32m"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="NODEPILOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    rpc_host: str = "127.0.0.1"
    rpc_port: int = Field(default=8332, ge=1, le=65535)
    rpc_user: str = ""
    rpc_password: str = ""
    rpc_timeout: float = Field(default=30.0, gt=0)
    # Per-branch timeout inside a fan-out join; None waits for the RPC timeout
    branch_timeout: float | None = Field(default=None, gt=0)

    address_type: AddressType = "bech32"

    block_poll_interval: float = Field(default=constants.BLOCK_POLL_INTERVAL, gt=0)
    mempool_poll_interval: float = Field(default=constants.MEMPOOL_POLL_INTERVAL, gt=0)
    account_poll_interval: float = Field(default=constants.ACCOUNT_POLL_INTERVAL, gt=0)
    status_poll_interval: float = Field(default=constants.STATUS_POLL_INTERVAL, gt=0)
    fee_poll_interval: float = Field(default=constants.FEE_POLL_INTERVAL, gt=0)

    mempool_display_limit: int = Field(default=constants.MEMPOOL_DISPLAY_LIMIT, ge=1)
    recent_block_count: int = Field(default=constants.RECENT_BLOCK_COUNT, ge=1)

    # Drop refresh responses older than the latest request of the same kind
    reject_stale_responses: bool = True

    history_file: Path = Path.home() / ".nodepilot" / "history.json"
    log_level: str = "INFO"

    @property
    def rpc_url(self) -> str:
        return f"http://{self.rpc_host}:{self.rpc_port}"

    @property
    def node_address(self) -> str:
        return f"{self.rpc_host}:{self.rpc_port}"

    def get_poll_intervals(self) -> dict[str, float]:
        return {
            "blocks": self.block_poll_interval,
            "mempool": self.mempool_poll_interval,
            "accounts": self.account_poll_interval,
            "status": self.status_poll_interval,
            "fees": self.fee_poll_interval,
        }


def get_settings() -> Settings:
    return Settings()
