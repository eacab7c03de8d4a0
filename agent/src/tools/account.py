from .context import aggregator, run_tool
from helpers import require_param, venear_contract
from payloads import delegate_all as delegate_all_payload
from payloads import require_account_id


def get_account_state(account_id: str) -> dict:
    """
    Full governance snapshot of an account.

    Includes the veNEAR record, delegation both ways, the lockup and its
    balances, the native NEAR balance and the veNEAR token balance. Every
    amount is given as {raw (yoctoNEAR), nears}.
    """
    return run_tool(
        "fetch account state",
        lambda: aggregator().get_account_state(account_id),
    )


def get_venear_balance(account_id: str) -> dict:
    """veNEAR token balance plus locked/voting/delegation power of an account."""
    return run_tool(
        "fetch veNEAR balance",
        lambda: aggregator().get_venear_balance(account_id),
    )


def get_account_balance(account_id: str) -> dict:
    """Native NEAR balance of an account."""
    return run_tool(
        "fetch account balance",
        lambda: aggregator().get_account_balance(account_id),
    )


def get_delegators(account_id: str) -> dict:
    """Accounts delegating to `account_id`, with total and average power."""
    return run_tool(
        "fetch delegators",
        lambda: aggregator().get_delegators(account_id),
    )


def delegate_all(receiver_id: str) -> dict:
    """Build the transaction delegating all veNEAR voting power to `receiver_id`."""

    def build():
        receiver = require_account_id(require_param(receiver_id, "receiverId"))
        return {"transactionPayload": delegate_all_payload(venear_contract(), receiver)}

    return run_tool("generate delegate all veNEAR transaction payload", build)
