"""
Node control-plane constants.

Fee rates are expressed in sat/vB throughout. Bitcoin Core reports fee rates
in BTC/kvB, so 1 sat/vB == 0.00001 BTC/kvB.
"""

from __future__ import annotations

SATS_PER_BTC = 100_000_000

# Confirmation targets (blocks) for each fee tier
PRIORITY_TARGET_BLOCKS = 2
STANDARD_TARGET_BLOCKS = 6
ECONOMY_TARGET_BLOCKS = 144

# estimatesmartfee modes, tried in order until one yields a usable rate
ESTIMATE_MODES: tuple[str, ...] = ("CONSERVATIVE", "ECONOMICAL")

# Floor used when neither mempoolminfee nor relayfee can be read
DEFAULT_FEE_FLOOR = 1  # sat/vB

# Static tiers returned when the node cannot be reached at all
STATIC_ECONOMY_RATE = 5  # sat/vB
STATIC_STANDARD_RATE = 14  # sat/vB
STATIC_PRIORITY_RATE = 20  # sat/vB

# Upper bound accepted for user-entered fee rates
MAX_CUSTOM_FEE_RATE = 10_000.0  # sat/vB

# Mempool visualization budget
MEMPOOL_DISPLAY_LIMIT = 50

# Size-class thresholds (vbytes) and the box side drawn for each class
SMALL_TX_MAX_VSIZE = 250
MEDIUM_TX_MAX_VSIZE = 1000
SMALL_BOX_SIDE = 8.0
MEDIUM_BOX_SIDE = 14.0
LARGE_BOX_SIDE = 22.0

# Poll intervals (seconds)
BLOCK_POLL_INTERVAL = 5.0
MEMPOOL_POLL_INTERVAL = 2.0
ACCOUNT_POLL_INTERVAL = 10.0
STATUS_POLL_INTERVAL = 5.0
FEE_POLL_INTERVAL = 30.0

RECENT_BLOCK_COUNT = 10
TRANSACTION_HISTORY_LIMIT = 1000
ADDRESS_ATTEMPTS = 3

# Placeholder shown for status fields that are not known
UNKNOWN = "--"

# Bitcoin Core error codes the core reacts to
RPC_METHOD_NOT_FOUND = -32601
RPC_WALLET_ALREADY_LOADED = -35
