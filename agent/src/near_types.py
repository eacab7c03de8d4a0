from typing import Any, Dict, List, Literal, Optional, Protocol, TypedDict, Union

# Keep this module dependency-free to avoid circular imports.


class GovernanceRpc(Protocol):
    """Minimal protocol for the chain reader used by the core modules.

    Matches `rpc.RpcClient` and the mocks used in tests.
    """

    def call(
        self,
        contract_id: str,
        method_name: str,
        args: Optional[Dict[str, Any]] = None,
        *,
        block_id: Optional[int] = None,
    ) -> Any:
        ...

    def view_account(self, account_id: str) -> Dict[str, Any]:
        ...


# Amounts are reported twice: exact raw yocto string and display NEAR.
class DualAmount(TypedDict):
    raw: str
    nears: str


# ──────────────────────────────────────────────────────────────
# Transaction payloads handed to the wallet
# ──────────────────────────────────────────────────────────────
class FunctionCallParams(TypedDict):
    methodName: str
    gas: str
    deposit: str
    args: Dict[str, Any]


class FunctionCallAction(TypedDict):
    type: Literal["FunctionCall"]
    params: FunctionCallParams


class TransferParams(TypedDict):
    deposit: str


class TransferAction(TypedDict):
    type: Literal["Transfer"]
    params: TransferParams


Action = Union[FunctionCallAction, TransferAction]


class TransactionPayload(TypedDict):
    receiverId: str
    actions: List[Action]


# ──────────────────────────────────────────────────────────────
# Voting contract views
# ──────────────────────────────────────────────────────────────
class Proposal(TypedDict, total=False):
    id: int
    title: str
    description: str
    link: Optional[str]
    deadline: Optional[str]
    status: str
    snapshot_block: Optional[int]
    total_voting_power: Optional[str]
    voting_options: List[str]
    snapshot_and_state: Dict[str, Any]
    votes: List[Dict[str, Any]]


class ApprovalCheck(TypedDict):
    proposal: Proposal
    canApprove: bool


class ApprovalPermission(TypedDict):
    hasPermission: bool
    role: Literal["owner", "guardian", "reviewer", "none"]


class ProofData(TypedDict):
    merkleProof: Any
    vAccount: Any


class DelegationInfo(TypedDict):
    isDelegator: bool
    delegatedTo: Optional[str]
    isDelegate: bool
    delegatorsCount: int
    totalDelegatedPower: str


# ──────────────────────────────────────────────────────────────
# Lockup snapshot
# ──────────────────────────────────────────────────────────────
class LockupInfo(TypedDict):
    lockupId: Optional[str]
    isLockupDeployed: bool
    lockupBalance: str
    lockupInfoReady: bool
    lockedAmount: str
    liquidOwnersBalance: str
    liquidAmount: str
    withdrawableAmount: str
    pendingAmount: str
    unlockTimestampNs: Optional[str]
    untilUnlock: Optional[str]
    stakingPool: Optional[str]
    knownDepositedBalance: str
    registrationCost: str
    lockupDeploymentCost: str


__all__ = [
    "GovernanceRpc",
    "DualAmount",
    "TransactionPayload",
    "Action",
    "Proposal",
    "ApprovalCheck",
    "ApprovalPermission",
    "ProofData",
    "DelegationInfo",
    "LockupInfo",
]
