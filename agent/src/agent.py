import logging

from typing import Any, Dict, List

from nearai.agents.environment import Environment
from rpc import default_client

_logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are the House of Stake governance assistant for NEAR. "
    "Use the tools to read proposals, votes, veNEAR balances, delegation and lockup state. "
    "For any action (create, approve or vote on a proposal, delegate, deploy or manage a lockup, "
    "stake, withdraw, unlock, transfer) build the transaction payload with the matching tool; "
    "you never sign or send transactions, the user's wallet does. "
    "Amounts returned as `raw` are yoctoNEAR and authoritative; `nears` is for display. "
    "If a tool returns an `error`, explain it plainly and suggest the next step."
)


def build_prompt(messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """System prompt followed by the conversation so far."""
    return [{"role": "system", "content": SYSTEM_PROMPT}, *messages]


def run(env: Environment) -> None:
    """
    Hub entrypoint: connect the read-only RPC client, register the
    governance tools and let the model answer with them.

    Every failure still ends in a reply to the user.
    """

    try:
        rpc = default_client()
    except RuntimeError as e:
        env.add_reply(
            "Cannot reach NEAR: no RPC endpoint configured. Set NEAR_NETWORK "
            "(mainnet or testnet) or NEAR_RPC_URL.\n"
            f"Error: {e}"
        )
        return

    # tools are imported here so a broken tool module still yields a reply
    try:
        from tools import register_tools
        tool_defs = register_tools(env, rpc)
    except Exception as e:
        _logger.error("Tool registration failed: %s", e, exc_info=True)
        env.add_reply(f"Governance tools are unavailable right now.\nError: {e}")
        return

    try:
        env.completions_and_run_tools(build_prompt(env.list_messages()), tools=tool_defs)
    except Exception as e:
        _logger.error("Completion failed: %s", e, exc_info=True)
        env.add_reply(f"Something went wrong while answering.\nError: {e}")


# Only invoke run(env) if NearAI has injected `env` at import time.
if "env" in globals():
    run(env)  # type: ignore[name-defined]
