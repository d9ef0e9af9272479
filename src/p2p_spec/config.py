"""P2P exchange spec configuration constants.

Keep this file aligned with the on-chain program constants in
`programs/p2p-exchange/src/state.rs` and the exported client constants.
"""

# Units
COIN_DECIMALS = 9
COIN_VALUE = 10**COIN_DECIMALS
U8_MAX = (1 << 8) - 1
U32_MAX = (1 << 32) - 1
U64_MAX = (1 << 64) - 1

# Networks
CHAIN_ID_MAINNET = 0
CHAIN_ID_TESTNET = 1
CHAIN_ID_DEVNET = 3

# Program identity (seed for every derived address)
PROGRAM_ID = bytes.fromhex(
    "d4b1a6c2f0e3b5a7981c2d3e4f5061728394a5b6c7d8e9fa0b1c2d3e4f506172"
)
ESCROW_SEED = b"escrow"
VOTE_SEED = b"vote"
OFFER_SEED = b"offer"
DISPUTE_SEED = b"dispute"

# Input limits
MAX_FIAT_CURRENCY_LEN = 10
FIAT_CURRENCY_CODE_LEN = 3
MAX_PAYMENT_METHOD_LEN = 50
MAX_DISPUTE_REASON_LEN = 200
MAX_EVIDENCE_URL_LEN = 300
MAX_EVIDENCE_ITEMS = 5

# Jury
JUROR_COUNT = 3
MAJORITY_VOTES = 2

# Dispute deadlines (seconds since the dispute was opened)
EVIDENCE_SUBMISSION_DEADLINE = 172_800  # 48 hours
VOTING_DEADLINE = 604_800  # 7 days
TOTAL_DISPUTE_DEADLINE = 776_800  # 9 days total

# Rate limiting (seconds)
OFFER_CREATION_COOLDOWN = 300
DISPUTE_OPENING_COOLDOWN = 3600
REWARD_UPDATE_INTERVAL = 3600

# Rent / minimum reserve
ACCOUNT_STORAGE_OVERHEAD = 128
DEFAULT_LAMPORTS_PER_BYTE_YEAR = 3480
DEFAULT_EXEMPTION_THRESHOLD_YEARS = 2
ACCOUNT_DISCRIMINATOR_LEN = 8
ESCROW_ACCOUNT_LEN = 32 + 1  # offer + bump

# Verdict execution may absorb this much reserve-computation drift.
VERDICT_BALANCE_TOLERANCE = 10_000

# Admin
MAX_ADMIN_AUTHORITIES = 11

# Reputation
INITIAL_RATING = 100
SUCCESS_RATE_WEIGHT = 70
DISPUTE_WIN_RATE_WEIGHT = 30

# Rewards
MIN_VOLUME_FOR_EVENT = 10_000_000  # 0.01 coin
MAX_REWARD_RATE_PER_TRADE = 10_000
MAX_REWARD_RATE_PER_VOTE = 5_000
MIN_TRADE_VOLUME_LIMIT = 1_000_000
MAX_TRADE_VOLUME_LIMIT = 100_000_000_000
