"""
nodepilot - Control plane for a Bitcoin Core node

Provides fee estimation, mempool layout, multi-account sweeps and connection
lifecycle management over the node's JSON-RPC interface.
"""

__version__ = "0.1.0"

from nodepilot.config import Settings, get_settings
from nodepilot.fanout import CallResult, FanOutCoordinator, RpcCall
from nodepilot.fees import FeeEstimator, repair_tiers, static_default_estimate
from nodepilot.mempool import PackedEntry, SizeClass, layout, pack, rank
from nodepilot.models import (
    Account,
    Address,
    FeeEstimate,
    FeeTier,
    NodeStatus,
    OpResult,
    PendingEntry,
    SweepOutcome,
    SweepResult,
)
from nodepilot.node import NodeController
from nodepilot.rpc import (
    BitcoinRpcClient,
    RpcDecodeError,
    RpcError,
    RpcNodeError,
    RpcTransport,
    RpcTransportError,
)
from nodepilot.scheduler import ConnectionState, PollScheduler
from nodepilot.sweep import SweepOrchestrator

__all__ = [
    "Account",
    "Address",
    "BitcoinRpcClient",
    "CallResult",
    "ConnectionState",
    "FanOutCoordinator",
    "FeeEstimate",
    "FeeEstimator",
    "FeeTier",
    "NodeController",
    "NodeStatus",
    "OpResult",
    "PackedEntry",
    "PendingEntry",
    "PollScheduler",
    "RpcCall",
    "RpcDecodeError",
    "RpcError",
    "RpcNodeError",
    "RpcTransport",
    "RpcTransportError",
    "Settings",
    "SizeClass",
    "SweepOrchestrator",
    "SweepOutcome",
    "SweepResult",
    "get_settings",
    "layout",
    "pack",
    "rank",
    "repair_tiers",
    "static_default_estimate",
]
