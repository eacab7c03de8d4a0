"""
Lockup transaction tools.

Each tool resolves the caller's lockup, re-reads the balances that gate
the action and only then builds the payload. A user-correctable condition
(no lockup, no staking pool, not enough balance) comes back as an
`{"error": ...}` body instead of a payload.
"""

import payloads

from .context import lockups, run_tool
from errors import InvalidInputError
from helpers import require_param, venear_contract
from lockup import now_millis, until_unlock_ms
from units import dual, is_zero, parse_yocto


def deploy_lockup() -> dict:
    """Build the transaction deploying a lockup; the deposit is the live deployment cost."""

    def build():
        venear = venear_contract()
        cost = lockups().deployment_cost_strict()
        return {
            "transactionPayload": payloads.deploy_lockup(venear, cost),
            "deploymentCost": dual(cost),
        }

    return run_tool("generate lockup deployment transaction payload", build)


def delete_lockup(account_id: str) -> dict:
    """Build the transaction deleting the lockup of `account_id` (locked amount must be 0)."""

    def build():
        account = require_param(account_id, "accountId")
        venear_contract()
        resolver = lockups()
        lockup_id = resolver.require_lockup(account)
        locked = resolver.amount_strict(lockup_id, "get_venear_locked_balance", "locked amount")
        return {"transactionPayload": payloads.delete_lockup(lockup_id, locked)}

    return run_tool("generate lockup deletion transaction payload", build)


def deposit_and_stake(account_id: str, amount: str) -> dict:
    """
    Build the transaction staking `amount` yoctoNEAR from the lockup.

    Requires a selected staking pool and enough liquid owner's balance.
    """

    def build():
        account = require_param(account_id, "accountId")
        raw = require_param(amount, "amount")
        requested = parse_yocto(raw, "amount")
        if requested == 0:
            raise InvalidInputError("amount must be greater than 0 yoctoNEAR")
        venear_contract()

        resolver = lockups()
        lockup_id = resolver.require_lockup(account)
        pool = resolver.staking_pool_strict(lockup_id)
        owners = (
            resolver.amount_strict(lockup_id, "get_liquid_owners_balance", "liquid owner balance")
            if pool else "0"
        )
        return {"transactionPayload": payloads.deposit_and_stake(lockup_id, str(requested), pool, owners)}

    return run_tool("generate deposit and stake transaction payload", build)


def withdraw_lockup(account_id: str) -> dict:
    """
    Build the transaction withdrawing the withdrawable lockup balance to `account_id`.

    Withdrawable is min(liquid balance, liquid owner's balance); below 1 NEAR
    nothing is built.
    """

    def build():
        account = require_param(account_id, "accountId")
        venear_contract()
        resolver = lockups()
        lockup_id = resolver.require_lockup(account)
        liquid = resolver.amount_strict(lockup_id, "get_venear_liquid_balance", "liquid balance")
        owners = resolver.amount_strict(
            lockup_id, "get_venear_liquid_owners_balance", "liquid owner balance"
        )
        return {"transactionPayload": payloads.withdraw(lockup_id, account, liquid, owners)}

    return run_tool("generate withdraw transaction payload", build)


def select_staking_pool(account_id: str, staking_pool_account_id: str) -> dict:
    """Build the transaction selecting `staking_pool_account_id` for the caller's lockup."""

    def build():
        account = require_param(account_id, "accountId")
        pool = payloads.require_account_id(
            require_param(staking_pool_account_id, "stakingPoolAccountId"), "staking pool ID"
        )
        venear_contract()
        lockup_id = lockups().require_lockup(account)
        return {"transactionPayload": payloads.select_staking_pool(lockup_id, pool)}

    return run_tool("generate select staking pool transaction payload", build)


def refresh_staking_pool_balance(account_id: str) -> dict:
    """Build the transaction refreshing the staking pool balance known to the lockup."""

    def build():
        account = require_param(account_id, "accountId")
        venear_contract()
        resolver = lockups()
        lockup_id = resolver.require_lockup(account)
        pool = resolver.staking_pool_strict(lockup_id)
        return {"transactionPayload": payloads.refresh_staking_pool_balance(lockup_id, pool)}

    return run_tool("generate refresh staking pool balance transaction payload", build)


def begin_unlock_near(lockup_id: str) -> dict:
    """Build the transaction starting the unlock of locked veNEAR in `lockup_id`."""

    def build():
        lockup = payloads.require_account_id(require_param(lockup_id, "lockupId"), "lockup ID")
        return {"transactionPayload": payloads.begin_unlock(lockup)}

    return run_tool("generate begin unlock transaction payload", build)


def end_unlock_near(lockup_id: str) -> dict:
    """
    Build the transaction finishing an unlock.

    Only allowed when a pending amount exists and the unlock period is over.
    """

    def build():
        lockup = payloads.require_account_id(require_param(lockup_id, "lockupId"), "lockup ID")
        resolver = lockups()
        pending = resolver.amount_strict(lockup, "get_venear_pending_balance", "pending balance")
        until = None
        if not is_zero(pending):
            timestamp = resolver.unlock_timestamp_strict(lockup)
            until = until_unlock_ms(timestamp or "0", now_millis())
        return {"transactionPayload": payloads.end_unlock(lockup, pending, until)}

    return run_tool("generate end unlock transaction payload", build)


def deposit_lookup(account_id: str, amount: str) -> dict:
    """Build a plain transfer of `amount` NEAR into the caller's lockup."""

    def build():
        account = require_param(account_id, "accountId")
        near_amount = payloads.parse_near_amount(amount)
        venear_contract()
        lockup_id = lockups().require_lockup(account)
        return {"transactionPayload": payloads.near_transfer(lockup_id, near_amount)}

    return run_tool("generate deposit lookup transaction payload", build)
