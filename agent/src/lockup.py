"""
Lockup sub-account resolution and lockup-scoped balances.

Every user may own one lockup contract registered on the veNEAR contract.
`resolve` answers "which one" (or None), `fetch_lockup_info` builds the
full snapshot used by the account-state view, and the `*_strict` readers
back the lockup transaction tools, where a failed read must stop the
request instead of degrading to a default.
"""

import logging
import time

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

from constants import NANOSECONDS_PER_MILLISECOND
from errors import NotFoundError, PreconditionError, UpstreamError
from helpers import venear_contract
from near_types import GovernanceRpc, LockupInfo
from rpc import RpcEmptyResultError, RpcError
from units import is_zero, min_amount

_logger = logging.getLogger(__name__)

# Lockup views fanned out once the lockup is known to be live
_LOCKUP_VIEWS: Dict[str, str] = {
    "lockedAmount":          "get_venear_locked_balance",
    "liquidOwnersBalance":   "get_liquid_owners_balance",
    "liquidAmount":          "get_venear_liquid_balance",
    "pendingAmount":         "get_venear_pending_balance",
    "unlockTimestampNs":     "get_venear_unlock_timestamp",
    "stakingPool":           "get_staking_pool_account_id",
    "knownDepositedBalance": "get_known_deposited_balance",
}

# Fields that stay null instead of "0" when unknown
_NULLABLE_FIELDS = ("unlockTimestampNs", "stakingPool")


def now_millis() -> int:
    return int(time.time() * 1000)


def normalize_amount(value: Any, label: str = "amount") -> str:
    """Coerce a view result to a raw yocto string; junk becomes "0"."""
    if value is None or value == "":
        return "0"
    text = str(value).strip()
    if not text.isdigit():
        _logger.warning("Unexpected %s value %r, using 0", label, value)
        return "0"
    return text


def until_unlock_ms(unlock_timestamp_ns: Any, now_ms: int) -> Optional[str]:
    """Milliseconds left before the unlock timestamp, floored at zero."""
    if unlock_timestamp_ns is None or unlock_timestamp_ns == "":
        return None
    try:
        unlock_ms = int(str(unlock_timestamp_ns)) // NANOSECONDS_PER_MILLISECOND
    except ValueError:
        _logger.warning("Unparseable unlock timestamp %r", unlock_timestamp_ns)
        return None
    return str(max(0, unlock_ms - now_ms))


def empty_lockup_info() -> LockupInfo:
    return {
        "lockupId": None,
        "isLockupDeployed": False,
        "lockupBalance": "0",
        "lockupInfoReady": False,
        "lockedAmount": "0",
        "liquidOwnersBalance": "0",
        "liquidAmount": "0",
        "withdrawableAmount": "0",
        "pendingAmount": "0",
        "unlockTimestampNs": None,
        "untilUnlock": None,
        "stakingPool": None,
        "knownDepositedBalance": "0",
        "registrationCost": "0",
        "lockupDeploymentCost": "0",
    }


class LockupResolver:
    def __init__(self, rpc: GovernanceRpc, max_workers: int = len(_LOCKUP_VIEWS)) -> None:
        self.rpc = rpc
        self.max_workers = max_workers

    # ──────────────────────────────────────────────────────────────
    # Resolution
    # ──────────────────────────────────────────────────────────────
    def resolve(self, account_id: str) -> Optional[str]:
        """
        Return the lockup account id registered for `account_id`, or None.

        An empty view result means no lockup was ever registered; other RPC
        failures propagate.
        """
        try:
            lockup_id = self.rpc.call(
                venear_contract(), "get_lockup_account_id", {"account_id": account_id}
            )
        except RpcEmptyResultError:
            return None
        return lockup_id or None

    def require_lockup(self, account_id: str) -> str:
        """Resolve the lockup or report the user-facing "no lockup" condition."""
        try:
            lockup_id = self.resolve(account_id)
        except RpcError as e:
            raise UpstreamError("Failed to get lockup account ID") from e
        if not lockup_id:
            raise PreconditionError("No lockup found for this account")
        return lockup_id

    # ──────────────────────────────────────────────────────────────
    # Strict reads for the transaction tools
    # ──────────────────────────────────────────────────────────────
    def amount_strict(self, lockup_id: str, method_name: str, label: str) -> str:
        try:
            value = self.rpc.call(lockup_id, method_name, {})
        except RpcError as e:
            raise UpstreamError(f"Failed to get {label}") from e
        return normalize_amount(value, label)

    def staking_pool_strict(self, lockup_id: str) -> Optional[str]:
        """Selected staking pool, or None when the lockup has none."""
        try:
            pool = self.rpc.call(lockup_id, "get_staking_pool_account_id", {})
        except RpcEmptyResultError:
            return None
        except RpcError as e:
            raise UpstreamError("Failed to get staking pool account ID") from e
        return pool or None

    def unlock_timestamp_strict(self, lockup_id: str) -> Optional[str]:
        try:
            value = self.rpc.call(lockup_id, "get_venear_unlock_timestamp", {})
        except RpcError as e:
            raise UpstreamError("Failed to fetch unlock timestamp") from e
        return None if value in (None, "") else str(value)

    def deployment_cost_strict(self) -> str:
        """Live `get_lockup_deployment_cost`; the deploy deposit tracks it."""
        try:
            cost = self.rpc.call(venear_contract(), "get_lockup_deployment_cost", {})
        except RpcError as e:
            raise UpstreamError("Failed to get lockup deployment cost") from e
        if cost in (None, ""):
            raise UpstreamError("Failed to get lockup deployment cost")
        return normalize_amount(cost, "lockup deployment cost")

    # ──────────────────────────────────────────────────────────────
    # Snapshot
    # ──────────────────────────────────────────────────────────────
    def _soft(self, label: str, fn: Callable[[], Any], default: Any) -> Any:
        try:
            return fn()
        except (RpcError, NotFoundError) as e:
            _logger.warning("%s failed, using default %r: %s", label, default, e)
            return default

    def _view(self, contract_id: str, method_name: str, args: Optional[Dict[str, Any]] = None) -> Callable[[], Any]:
        return lambda: self.rpc.call(contract_id, method_name, args or {})

    def fetch_lockup_info(self, account_id: str, now_ms: Optional[int] = None) -> LockupInfo:
        """
        Aggregate every lockup-related value for `account_id`.

        Only configuration errors propagate. Each failed sub-read is logged
        and replaced by its default, so callers always get a full snapshot.
        """
        venear = venear_contract()
        now = now_millis() if now_ms is None else now_ms
        info = empty_lockup_info()

        # Independent veNEAR-level reads
        with ThreadPoolExecutor(max_workers=4) as pool:
            f_account = pool.submit(
                self._soft, f"{venear}.get_account_info",
                self._view(venear, "get_account_info", {"account_id": account_id}), None,
            )
            f_lockup = pool.submit(
                self._soft, f"{venear}.get_lockup_account_id",
                lambda: self.resolve(account_id), None,
            )
            f_bounds = pool.submit(
                self._soft, f"{venear}.storage_balance_bounds",
                self._view(venear, "storage_balance_bounds"), None,
            )
            f_cost = pool.submit(
                self._soft, f"{venear}.get_lockup_deployment_cost",
                self._view(venear, "get_lockup_deployment_cost"), "0",
            )
            account_info = f_account.result()
            lockup_id = f_lockup.result()
            bounds = f_bounds.result()
            deployment_cost = f_cost.result()

        version = None
        if isinstance(account_info, dict):
            version = (account_info.get("internal") or {}).get("lockup_version")

        lockup_balance = "0"
        if lockup_id:
            account = self._soft(
                f"{lockup_id}.view_account", lambda: self.rpc.view_account(lockup_id), {}
            )
            lockup_balance = normalize_amount(account.get("amount"), "lockup balance")

        is_deployed = bool(version) and bool(lockup_id) and not is_zero(lockup_balance)

        info["lockupId"] = lockup_id
        info["lockupBalance"] = lockup_balance
        info["isLockupDeployed"] = is_deployed
        info["lockupInfoReady"] = bool(account_info) and bool(lockup_id)
        info["registrationCost"] = normalize_amount(
            bounds.get("min") if isinstance(bounds, dict) else None, "registration cost"
        )
        info["lockupDeploymentCost"] = normalize_amount(deployment_cost, "lockup deployment cost")

        if not is_deployed:
            return info

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {
                field: pool.submit(
                    self._soft,
                    f"{lockup_id}.{method}",
                    self._view(lockup_id, method),
                    None if field in _NULLABLE_FIELDS else "0",
                )
                for field, method in _LOCKUP_VIEWS.items()
            }
            values = {field: future.result() for field, future in futures.items()}

        for field, value in values.items():
            if field in _NULLABLE_FIELDS:
                info[field] = None if value in (None, "") else str(value)  # type: ignore[literal-required]
            else:
                info[field] = normalize_amount(value, field)  # type: ignore[literal-required]

        info["withdrawableAmount"] = min_amount(info["liquidOwnersBalance"], info["liquidAmount"])
        info["untilUnlock"] = until_unlock_ms(info["unlockTimestampNs"], now)
        return info
