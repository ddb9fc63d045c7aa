BPS_DENOMINATOR = 10_000

# Timeout constants (seconds)
DEFAULT_HTTP_TIMEOUT = 30.0  # HTTP client timeout
# ~150 slots, roughly the validity window of a recent blockhash
CONFIRMATION_TIMEOUT_S = 60.0
DEFAULT_COMMITMENT = "confirmed"

# Lamports always left in the wallet for fees and rent
MIN_NATIVE_GAS_RESERVE = 50_000_000

# Hard program limit on bins a single DLMM position can span
DEFAULT_BIN_PER_POSITION = 70

# Liquidity slippage (percent) passed to add-liquidity
ADD_LIQUIDITY_SLIPPAGE_PCT = 2

# Position lookup after open
POSITION_POLL_INITIAL_DELAY_S = 0.5
POSITION_POLL_MAX_RETRIES = 10
POSITION_POLL_MAX_DELAY_S = 5.0

# Swap quotes are often unavailable for short stretches
QUOTE_INITIAL_DELAY_S = 1.0
QUOTE_MAX_RETRIES = 30
QUOTE_MAX_DELAY_S = 5 * 60.0

SWAP_EXECUTE_INITIAL_DELAY_S = 0.2
SWAP_EXECUTE_MAX_RETRIES = 3
SWAP_EXECUTE_MAX_DELAY_S = 5.0

# Feed transports
FEED_RECONNECT_DELAY_S = 1.0
FEED_MAX_RECONNECTS = 5
