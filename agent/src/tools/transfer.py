from .context import run_tool
from helpers import require_param
from payloads import near_transfer, parse_near_amount, require_account_id


def create_near_transaction(receiver_id: str, amount: str) -> dict:
    """
    Build a plain NEAR transfer of `amount` NEAR to `receiver_id`.

    The wallet signs and sends it; amounts like `0.5`, `2` or `10.25`
    are converted to yoctoNEAR exactly.
    """

    def build():
        receiver = require_account_id(require_param(receiver_id, "receiverId"))
        near_amount = parse_near_amount(amount)
        return {"transactionPayload": near_transfer(receiver, near_amount)}

    return run_tool("generate NEAR transaction payload", build)
