"""Chain constants and per-action gas/deposit budgets used by the tools.

All gas and deposit values are exact integers. They are only turned into
decimal strings when a transaction payload is assembled.
"""

from decimal import Decimal

# Chain timestamps are nanoseconds; wall clock comparisons use milliseconds.
NANOSECONDS_PER_MILLISECOND: int = 1_000_000

# 1 Tgas = 10^12 gas units
GAS_PER_TGAS: int = 10 ** 12

# NEAR uses 10^24 yoctoNEAR per 1 NEAR
YOCTO_PER_NEAR: int = 10 ** 24
YOCTO_FACTOR: Decimal = Decimal(YOCTO_PER_NEAR)

# Convenience constant for attaching exactly one yoctoNEAR to payable methods.
YOCTO_1: int = 1

# Display precision for the human-readable `nears` fields.
NEAR_DISPLAY_DECIMALS: int = 6

# Withdrawals below 1 NEAR are refused.
MIN_WITHDRAW_YOCTO: int = YOCTO_PER_NEAR

# Gas budgets (Tgas) per action
CREATE_PROPOSAL_TGAS: str = "100"
APPROVE_PROPOSAL_TGAS: str = "150"
VOTE_TGAS: str = "300"
DELEGATE_ALL_TGAS: str = "100"
DEPLOY_LOCKUP_TGAS: str = "100"
DELETE_LOCKUP_TGAS: str = "200"
DEPOSIT_AND_STAKE_TGAS: str = "200"
SELECT_STAKING_POOL_TGAS: str = "100"
REFRESH_STAKING_POOL_TGAS: str = "100"
WITHDRAW_LOCKUP_TGAS: str = "100"
UNLOCK_NEAR_TGAS: str = "100"

# Fixed deposits (NEAR) per action
CREATE_PROPOSAL_DEPOSIT_NEAR: Decimal = Decimal("0.2")
APPROVE_PROPOSAL_DEPOSIT_NEAR: Decimal = Decimal("0.0125")

# Pagination / search limits
RECENT_PROPOSALS_DEFAULT: int = 5
RECENT_PROPOSALS_MAX: int = 50
SEARCH_LIMIT_DEFAULT: int = 50
SEARCH_LIMIT_MAX: int = 100

# Share of hybrid search slots given to semantic results.
HYBRID_SEMANTIC_SHARE: Decimal = Decimal("0.7")

# Valid vote values accepted by the voting contract.
VOTE_OPTIONS: tuple[str, ...] = ("Yes", "No", "Abstain")
