# feeoracle/config.py
# Defaults for the fee oracle. Runtime overrides go through
# feeoracle.settings.load_settings (JSON file + FEE_ORACLE_* env vars).

# Primary RPC (used when RPC_URL / RPC_URLS env vars are not set)
RPC_URL = "https://ethereum-rpc.publicnode.com"

RPC_URLS = [
    "https://ethereum-rpc.publicnode.com",
    "https://eth.merkle.io",
]

# RPC timeouts (seconds). All RPC calls are clamped to this range.
RPC_TIMEOUT_MIN_S = 2.0
RPC_TIMEOUT_MAX_S = 8.0
RPC_DEFAULT_TIMEOUT_S = 4.0

# Retries for transient errors (timeouts, 429, 5xx)
RPC_RETRY_COUNT = 2
RPC_BACKOFF_BASE_S = 0.35
RPC_RATE_LIMIT_BACKOFF_S = 0.35

# Header-only history window. Cheap even on a light client backend.
HISTORY_BLOCK_COUNT = 300

# Sampled percentile range of the exponentially weighted base fee history
SAMPLE_MIN_PERCENTILE = 10.0
SAMPLE_MAX_PERCENTILE = 30.0

# Reward percentiles 0..MAX_REWARD_PERCENTILE are requested per block
MAX_REWARD_PERCENTILE = 20
# Economical / urgent rank in the sorted reward pool
MIN_BLOCK_PERCENTILE = 40.0
MAX_BLOCK_PERCENTILE = 80.0
# Number of usable blocks to sample rewards from
REWARD_BLOCKS = 5

# Highest timeFactor in the returned curve (power of 2)
MAX_TIME_FACTOR = 128
# Extra priority fee offered in a base fee dip, as a share of the gap
EXTRA_PRIORITY_FEE_RATIO = 0.25
# Priority fee offered when there are no recent transactions (wei)
FALLBACK_PRIORITY_FEE = 2_000_000_000

# gasUsedRatio above this counts as a full block
FULL_BLOCK_RATIO = 0.9
# Projected next block is assumed full: base fee * 9/8
PENDING_BASE_FEE_MULTIPLIER = 9 / 8

# Reward percentile used to judge realized inclusion when calibrating
CALIBRATION_REWARD_PERCENTILE = 10.0
CALIBRATION_CONCURRENCY = 4
