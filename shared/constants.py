"""
Shared constants for Swap Event Sync.

Event signatures, block window widths and default values
used across all modules.
"""

# ---------------------------------------------------------------------------
# Block Windows
# ---------------------------------------------------------------------------

# ~24h of mainnet blocks plus margin for variable block times
DEFAULT_LOOKBACK_BLOCKS = 7000
# Tick window is [n - 1, n]; the overlap covers block-time variance
DEFAULT_NARROW_WINDOW_BLOCKS = 1

DEFAULT_BLOCK_POLL_INTERVAL_SECONDS = 4
DEFAULT_ACTION_QUEUE_TIMEOUT_SECONDS = 60

# ---------------------------------------------------------------------------
# Chain
# ---------------------------------------------------------------------------

DEFAULT_CHAIN_ID = 1
DEFAULT_RPC_URL = "https://cloudflare-eth.com"

# ---------------------------------------------------------------------------
# Event Signatures
# ---------------------------------------------------------------------------

ERC20_TRANSFER_SIGNATURE = "Transfer(address,address,uint256)"

# Redis channel key for block batches
BLOCKS_CHANNEL_KEY = "blocks"
