"""
Unsigned transaction payloads for the wallet to sign.

Every builder is pure: callers resolve lockups, balances and proofs first
and pass the results in. `gas` and `deposit` are always decimal integer
strings.
"""

import re

from typing import Any, Dict, List, Optional, Union
from decimal import Decimal

from constants import (
    APPROVE_PROPOSAL_DEPOSIT_NEAR,
    APPROVE_PROPOSAL_TGAS,
    CREATE_PROPOSAL_DEPOSIT_NEAR,
    CREATE_PROPOSAL_TGAS,
    DELEGATE_ALL_TGAS,
    DELETE_LOCKUP_TGAS,
    DEPLOY_LOCKUP_TGAS,
    DEPOSIT_AND_STAKE_TGAS,
    MIN_WITHDRAW_YOCTO,
    REFRESH_STAKING_POOL_TGAS,
    SELECT_STAKING_POOL_TGAS,
    UNLOCK_NEAR_TGAS,
    VOTE_TGAS,
    WITHDRAW_LOCKUP_TGAS,
    YOCTO_1,
)
from errors import InvalidInputError, PreconditionError
from near_types import FunctionCallAction, TransactionPayload, TransferAction
from units import min_amount, near_to_yocto, parse_yocto, tgas_to_gas

_ACCOUNT_ID_RE = re.compile(r"^[a-z0-9._-]+$")


def is_valid_account_id(account_id: Any) -> bool:
    return (
        isinstance(account_id, str)
        and 2 <= len(account_id) <= 64
        and bool(_ACCOUNT_ID_RE.match(account_id))
    )


def require_account_id(account_id: Any, label: str = "receiver ID") -> str:
    if not is_valid_account_id(account_id):
        raise InvalidInputError(f"Invalid {label} format. Must be a valid NEAR account ID")
    return account_id


# ──────────────────────────────────────────────────────────────
# Shape
# ──────────────────────────────────────────────────────────────
def function_call(method_name: str, tgas: str, deposit: str, args: Optional[Dict[str, Any]] = None) -> FunctionCallAction:
    return {
        "type": "FunctionCall",
        "params": {
            "methodName": method_name,
            "gas": tgas_to_gas(tgas),
            "deposit": str(parse_yocto(deposit, "deposit")),
            "args": args or {},
        },
    }


def transfer(deposit: str) -> TransferAction:
    return {"type": "Transfer", "params": {"deposit": str(parse_yocto(deposit, "deposit"))}}


def payload(receiver_id: str, actions: List[Union[FunctionCallAction, TransferAction]]) -> TransactionPayload:
    return {"receiverId": receiver_id, "actions": list(actions)}


# ──────────────────────────────────────────────────────────────
# Voting contract
# ──────────────────────────────────────────────────────────────
def parse_voting_options(raw: Any) -> List[str]:
    """Comma-separated options, trimmed, empty entries dropped."""
    if raw is None or str(raw).strip() == "":
        raise InvalidInputError("votingOptions is required")
    if isinstance(raw, (list, tuple)):
        parts = [str(p) for p in raw]
    else:
        parts = str(raw).split(",")
    options = [p.strip() for p in parts if p.strip()]
    if not options:
        raise InvalidInputError("At least one voting option is required")
    return options


def create_proposal(voting: str, title: str, description: str, link: Optional[str], voting_options: List[str]) -> TransactionPayload:
    metadata = {
        "title": title.strip(),
        "description": description.strip(),
        "link": link.strip() if link else "",
        "voting_options": voting_options,
    }
    return payload(voting, [
        function_call(
            "create_proposal",
            CREATE_PROPOSAL_TGAS,
            near_to_yocto(CREATE_PROPOSAL_DEPOSIT_NEAR),
            {"metadata": metadata},
        )
    ])


def approve_proposal(voting: str, proposal_id: int) -> TransactionPayload:
    return payload(voting, [
        function_call(
            "approve_proposal",
            APPROVE_PROPOSAL_TGAS,
            near_to_yocto(APPROVE_PROPOSAL_DEPOSIT_NEAR),
            {"proposal_id": proposal_id, "voting_start_time_sec": None},
        )
    ])


def vote(voting: str, proposal_id: int, choice: str, merkle_proof: Any, v_account: Any) -> TransactionPayload:
    return payload(voting, [
        function_call(
            "vote",
            VOTE_TGAS,
            "0",
            {
                "proposal_id": proposal_id,
                "vote": choice,
                "merkle_proof": merkle_proof,
                "v_account": v_account,
            },
        )
    ])


# ──────────────────────────────────────────────────────────────
# veNEAR contract
# ──────────────────────────────────────────────────────────────
def delegate_all(venear: str, receiver_id: str) -> TransactionPayload:
    return payload(venear, [
        function_call("delegate_all", DELEGATE_ALL_TGAS, YOCTO_1, {"receiver_id": receiver_id})
    ])


def deploy_lockup(venear: str, deployment_cost: str) -> TransactionPayload:
    return payload(venear, [function_call("deploy_lockup", DEPLOY_LOCKUP_TGAS, deployment_cost)])


# ──────────────────────────────────────────────────────────────
# Lockup contract
# ──────────────────────────────────────────────────────────────
def delete_lockup(lockup_id: str, locked_amount: str) -> TransactionPayload:
    if parse_yocto(locked_amount, "locked amount") != 0:
        raise PreconditionError(
            "Cannot delete lockup: locked amount is not zero",
            details={"lockedAmount": locked_amount},
        )
    return payload(lockup_id, [function_call("delete_lockup", DELETE_LOCKUP_TGAS, YOCTO_1)])


def deposit_and_stake(lockup_id: str, amount: str, staking_pool: Optional[str], liquid_owners_balance: str) -> TransactionPayload:
    if not staking_pool:
        raise PreconditionError("No staking pool found for this lockup")
    if parse_yocto(liquid_owners_balance, "liquid owners balance") < parse_yocto(amount):
        raise PreconditionError(
            "Insufficient liquid owner balance to stake",
            details={"liquidOwnersBalance": liquid_owners_balance, "requestedAmount": amount},
        )
    return payload(lockup_id, [
        function_call("deposit_and_stake", DEPOSIT_AND_STAKE_TGAS, YOCTO_1, {"amount": amount})
    ])


def select_staking_pool(lockup_id: str, staking_pool_account_id: str) -> TransactionPayload:
    return payload(lockup_id, [
        function_call(
            "select_staking_pool",
            SELECT_STAKING_POOL_TGAS,
            YOCTO_1,
            {"staking_pool_account_id": staking_pool_account_id},
        )
    ])


def refresh_staking_pool_balance(lockup_id: str, staking_pool: Optional[str]) -> TransactionPayload:
    if not staking_pool:
        raise PreconditionError("No staking pool found for this lockup")
    return payload(lockup_id, [
        function_call("refresh_staking_pool_balance", REFRESH_STAKING_POOL_TGAS, YOCTO_1)
    ])


def withdraw(lockup_id: str, account_id: str, liquid_amount: str, liquid_owners_balance: str) -> TransactionPayload:
    """
    Withdraw everything that is both liquid and owed to the owner.

    Below the 1 NEAR minimum this reports a precondition instead of
    returning a payload.
    """
    withdrawable = min_amount(liquid_owners_balance, liquid_amount)
    if parse_yocto(withdrawable) < MIN_WITHDRAW_YOCTO:
        raise PreconditionError(
            "Insufficient withdrawable balance",
            details={
                "withdrawableAmount": withdrawable,
                "liquidAmount": liquid_amount,
                "liquidOwnersBalance": liquid_owners_balance,
                "minimumRequired": str(MIN_WITHDRAW_YOCTO),
            },
        )
    return payload(lockup_id, [
        function_call(
            "transfer",
            WITHDRAW_LOCKUP_TGAS,
            "0",
            {"amount": withdrawable, "receiver_id": account_id},
        )
    ])


def begin_unlock(lockup_id: str) -> TransactionPayload:
    return payload(lockup_id, [function_call("begin_unlock_near", UNLOCK_NEAR_TGAS, YOCTO_1)])


def end_unlock(lockup_id: str, pending_amount: str, until_unlock: Optional[str]) -> TransactionPayload:
    if parse_yocto(pending_amount, "pending amount") == 0:
        raise PreconditionError("No pending unlock amount found")
    if until_unlock is not None and int(until_unlock) > 0:
        raise PreconditionError(
            "Unlock period has not ended yet", details={"untilUnlock": until_unlock}
        )
    return payload(lockup_id, [function_call("end_unlock_near", UNLOCK_NEAR_TGAS, YOCTO_1)])


# ──────────────────────────────────────────────────────────────
# Plain transfers
# ──────────────────────────────────────────────────────────────
def parse_near_amount(raw: Any) -> Decimal:
    """Positive NEAR amount as entered by the user."""
    if raw is None or str(raw).strip() == "":
        raise InvalidInputError("amount is required")
    try:
        value = Decimal(str(raw).strip())
    except ArithmeticError:
        raise InvalidInputError("amount must be a positive number") from None
    if not value.is_finite() or value <= 0:
        raise InvalidInputError("amount must be a positive number")
    return value


def near_transfer(receiver_id: str, amount_near: Decimal) -> TransactionPayload:
    return payload(receiver_id, [transfer(near_to_yocto(amount_near))])
