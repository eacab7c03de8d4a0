import logging

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

from errors import NotFoundError, UpstreamError
from helpers import iso_now, require_param, venear_contract, voting_contract
from lockup import LockupResolver, normalize_amount
from near_types import DelegationInfo, GovernanceRpc, LockupInfo
from rpc import RpcEmptyResultError, RpcError
from units import dual

_logger = logging.getLogger(__name__)

# LockupInfo fields carrying yocto amounts (reported as {raw, nears})
_LOCKUP_AMOUNT_FIELDS = (
    "lockupBalance",
    "lockedAmount",
    "liquidOwnersBalance",
    "liquidAmount",
    "withdrawableAmount",
    "pendingAmount",
    "registrationCost",
    "lockupDeploymentCost",
    "knownDepositedBalance",
)

# get_accounts fields reported by get_venear_balance
_POWER_FIELDS = {
    "lockedBalance":   "locked_balance",
    "votingPower":     "voting_power",
    "delegationPower": "delegation_power",
    "totalPower":      "total_power",
}


def default_delegation() -> DelegationInfo:
    return {
        "isDelegator": False,
        "delegatedTo": None,
        "isDelegate": False,
        "delegatorsCount": 0,
        "totalDelegatedPower": "0",
    }


def _power(value: Any) -> int:
    """Delegated power as an exact int; malformed entries count as zero."""
    text = str(value if value is not None else "0").strip()
    if not text.isdigit():
        _logger.warning("Ignoring malformed delegated_power %r", value)
        return 0
    return int(text)


def delegation_totals(delegators: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Count, exact total and floored average of delegated power."""
    total = sum(_power(d.get("delegated_power")) for d in delegators if isinstance(d, dict))
    count = len(delegators)
    return {
        "totalDelegators": count,
        "totalDelegatedPower": str(total),
        "averageDelegation": str(total // count) if count else "0",
    }


def dual_lockup(info: LockupInfo) -> Dict[str, Any]:
    body: Dict[str, Any] = dict(info)
    for field in _LOCKUP_AMOUNT_FIELDS:
        body[field] = dual(info[field])  # type: ignore[literal-required]
    return body


class AccountStateAggregator:
    """Builds the combined governance + lockup + balance view of one account."""

    def __init__(self, rpc: GovernanceRpc, lockups: Optional[LockupResolver] = None) -> None:
        self.rpc = rpc
        self.lockups = lockups or LockupResolver(rpc)

    # ──────────────────────────────────────────────────────────────
    # Sub-reads
    # ──────────────────────────────────────────────────────────────
    def venear_record(self, account_id: str) -> Any:
        """veNEAR `get_accounts` record; absence is a 404 for account state."""
        try:
            return self.rpc.call(venear_contract(), "get_accounts", {"account_id": account_id})
        except RpcEmptyResultError as e:
            raise NotFoundError(f"No veNEAR balance found for account {account_id}") from e

    def native_balance(self, account_id: str) -> str:
        account = self.rpc.view_account(account_id)
        return normalize_amount(account.get("amount"), "account balance")

    def token_balance(self, account_id: str) -> str:
        """`ft_balance_of` on the veNEAR contract, "0" when unavailable."""
        venear = venear_contract()
        try:
            value = self.rpc.call(venear, "ft_balance_of", {"account_id": account_id})
        except RpcError as e:
            _logger.warning("%s.ft_balance_of failed for %s: %s", venear, account_id, e)
            return "0"
        return normalize_amount(value, "veNEAR token balance")

    def delegation_info(self, account_id: str) -> DelegationInfo:
        """
        Delegation in both directions for `account_id`.

        Never raises on RPC failure: each half falls back to "no delegation".
        """
        voting = voting_contract()
        info = default_delegation()

        try:
            delegation = self.rpc.call(voting, "get_delegation", {"account_id": account_id})
        except RpcEmptyResultError:
            delegation = None
        except RpcError as e:
            _logger.warning("%s.get_delegation failed for %s: %s", voting, account_id, e)
            delegation = None

        if delegation:
            info["isDelegator"] = True
            if isinstance(delegation, dict):
                info["delegatedTo"] = delegation.get("delegated_to") or delegation.get("delegate")
            else:
                info["delegatedTo"] = str(delegation)

        try:
            delegators = self.rpc.call(voting, "get_delegators", {"account_id": account_id})
        except RpcEmptyResultError:
            delegators = None
        except RpcError as e:
            _logger.warning("%s.get_delegators failed for %s: %s", voting, account_id, e)
            delegators = None

        if isinstance(delegators, list) and delegators:
            totals = delegation_totals(delegators)
            info["isDelegate"] = True
            info["delegatorsCount"] = totals["totalDelegators"]
            info["totalDelegatedPower"] = totals["totalDelegatedPower"]

        return info

    # ──────────────────────────────────────────────────────────────
    # Views
    # ──────────────────────────────────────────────────────────────
    def get_account_state(self, account_id: str, now_ms: Optional[int] = None) -> Dict[str, Any]:
        account_id = require_param(account_id, "accountId")
        venear = venear_contract()
        voting = voting_contract()

        record = self.venear_record(account_id)

        with ThreadPoolExecutor(max_workers=4) as pool:
            f_delegation = pool.submit(self.delegation_info, account_id)
            f_lockup = pool.submit(self.lockups.fetch_lockup_info, account_id, now_ms)
            f_balance = pool.submit(self.native_balance, account_id)
            f_token = pool.submit(self.token_balance, account_id)

            delegation = f_delegation.result()
            lockup = f_lockup.result()
            balance = f_balance.result()
            token_balance = f_token.result()

        return {
            "accountId": account_id,
            "accountBalance": dual(balance),
            "veNearTokenBalance": dual(token_balance),
            "veNear": record,
            "delegation": {
                **delegation,
                "totalDelegatedPower": dual(delegation["totalDelegatedPower"]),
            },
            "lockup": dual_lockup(lockup),
            "metadata": {
                "contract": venear,
                "votingContract": voting,
                "token": "veNEAR",
                "description": "Comprehensive account state for House of Stake governance",
                "timestamp": iso_now(),
            },
        }

    def get_venear_balance(self, account_id: str) -> Dict[str, Any]:
        """Token balance plus the detailed `get_accounts` record, both optional."""
        account_id = require_param(account_id, "accountId")
        venear = venear_contract()

        with ThreadPoolExecutor(max_workers=2) as pool:
            f_token = pool.submit(self.token_balance, account_id)
            f_record = pool.submit(self._soft_record, account_id)
            token_balance = f_token.result()
            record = f_record.result()

        detailed: Optional[Dict[str, Any]] = None
        if isinstance(record, dict):
            detailed = {
                **dual(record.get("balance")),
                **{key: dual(record.get(src)) for key, src in _POWER_FIELDS.items()},
                "unlockTime": record.get("unlock_time"),
                "method": "get_accounts",
                "description": "Detailed balance with voting and delegation power",
            }

        return {
            "accountId": account_id,
            "tokenBalance": {
                **dual(token_balance),
                "method": "ft_balance_of",
                "description": "Standard fungible token balance",
            },
            "detailedBalance": detailed,
            "metadata": {
                "contract": venear,
                "token": "veNEAR",
                "hasDetailedData": detailed is not None,
                "timestamp": iso_now(),
            },
        }

    def _soft_record(self, account_id: str) -> Any:
        venear = venear_contract()
        try:
            return self.rpc.call(venear, "get_accounts", {"account_id": account_id})
        except RpcError as e:
            _logger.warning("%s.get_accounts failed for %s: %s", venear, account_id, e)
            return None

    def get_account_balance(self, account_id: str) -> Dict[str, Any]:
        account_id = require_param(account_id, "accountId")
        return {
            "accountId": account_id,
            "balance": dual(self.native_balance(account_id)),
            "metadata": {
                "description": "NEAR account balance information",
                "timestamp": iso_now(),
            },
        }

    def get_delegators(self, account_id: str) -> Dict[str, Any]:
        account_id = require_param(account_id, "accountId")
        voting = voting_contract()
        try:
            delegators = self.rpc.call(voting, "get_delegators", {"account_id": account_id})
        except RpcEmptyResultError as e:
            raise NotFoundError(f"No delegators found for account {account_id}") from e

        if not isinstance(delegators, list):
            raise UpstreamError(f"Unexpected delegators payload for account {account_id}")

        return {
            "accountId": account_id,
            "delegators": delegators,
            "delegationStats": {"accountId": account_id, **delegation_totals(delegators)},
        }
