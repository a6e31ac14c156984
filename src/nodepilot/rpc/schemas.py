"""
Pydantic models for the parts of node responses the control plane reads.

Only the fields actually consumed are declared; everything else is ignored.
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, Field, ValidationError

from nodepilot.rpc.base import RpcDecodeError

ModelT = TypeVar("ModelT", bound=BaseModel)


class BlockchainInfo(BaseModel):
    blocks: int = Field(..., ge=0)
    verificationprogress: float | None = None
    initialblockdownload: bool | None = None


class NetworkInfo(BaseModel):
    connections: int | None = None
    relayfee: float | None = None  # BTC/kvB


class MempoolInfo(BaseModel):
    size: int | None = None
    mempoolminfee: float | None = None  # BTC/kvB


class SmartFeeEstimate(BaseModel):
    feerate: float | None = None  # BTC/kvB
    errors: list[str] = Field(default_factory=list)
    blocks: int | None = None


class BlockSummary(BaseModel):
    hash: str
    height: int
    time: int


class VerboseBlock(BlockSummary):
    size: int | None = None
    weight: int | None = None
    tx_count: int | None = Field(None, alias="nTx")


class BlockStats(BaseModel):
    """Subset of ``getblockstats``. Fee rates in sat/vB, amounts in sats."""

    minfeerate: float | None = None
    maxfeerate: float | None = None
    feerate_percentiles: list[float] = Field(default_factory=list)
    totalfee: int | None = None
    subsidy: int | None = None
    txs: int | None = None


class WalletDirEntry(BaseModel):
    name: str


class WalletDir(BaseModel):
    wallets: list[WalletDirEntry] = Field(default_factory=list)


class UnspentOutput(BaseModel):
    address: str | None = None
    amount: float
    confirmations: int = 0


class WalletTransaction(BaseModel):
    txid: str
    amount: float
    confirmations: int = 0


class WalletTransactionEntry(BaseModel):
    address: str | None = None
    category: str
    amount: float
    label: str | None = None


class WalletTransactionDetail(BaseModel):
    txid: str
    amount: float
    fee: float | None = None  # BTC, negative for sends
    confirmations: int = 0
    blockhash: str | None = None
    blockheight: int | None = None
    time: int | None = None
    details: list[WalletTransactionEntry] = Field(default_factory=list)


class SendAllResult(BaseModel):
    complete: bool
    txid: str | None = None


def parse_result(model: type[ModelT], data: Any, method: str) -> ModelT:
    """Validate an RPC result against ``model``, mapping failures to RpcDecodeError."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise RpcDecodeError(
            f"{method}: unexpected response shape ({e.error_count()} errors)"
        ) from e
