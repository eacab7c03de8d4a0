import json
import logging
import os
import sys

from nearai.agents.environment import Environment
from logging import Logger
from typing import Any, Callable, Dict, Optional

from account_state import AccountStateAggregator
from errors import GovernanceError
from lockup import LockupResolver
from near_types import GovernanceRpc
from proposals import ProposalGateway

_env: Optional[Environment] = None
_rpc: Optional[GovernanceRpc] = None

_logger = logging.getLogger(__name__)

def _ensure_console_logging() -> None:
    """Attach one stdout handler to the tools logger.

    Level comes from `GOVERNANCE_LOG_LEVEL` (default INFO). Propagation is
    off so each line is printed once even when the host configures root.
    """

    level_name = os.getenv("GOVERNANCE_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    _logger.setLevel(level)
    if not _logger.handlers:
        handler = logging.StreamHandler(stream=sys.stdout)
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        _logger.addHandler(handler)
        _logger.propagate = False

_ensure_console_logging()


def set_context(env: Environment, rpc: GovernanceRpc) -> None:
    global _env, _rpc
    _env = env
    _rpc = rpc


def get_env() -> Environment:
    if _env is None:
        raise RuntimeError("Environment context not initialized")
    return _env


def get_rpc() -> GovernanceRpc:
    if _rpc is None:
        raise RuntimeError("RPC client not initialized")
    return _rpc


def get_logger() -> Logger:
    _ensure_console_logging()
    return _logger


# ──────────────────────────────────────────────────────────────
# Per-call components (stateless, built on the shared RPC client)
# ──────────────────────────────────────────────────────────────
def gateway() -> ProposalGateway:           return ProposalGateway(get_rpc())
def lockups() -> LockupResolver:            return LockupResolver(get_rpc())
def aggregator() -> AccountStateAggregator: return AccountStateAggregator(get_rpc())


# ──────────────────────────────────────────────────────────────
# Replies
# ──────────────────────────────────────────────────────────────
def respond(body: Dict[str, Any]) -> Dict[str, Any]:
    """Post `body` as the agent reply and hand it back to the caller."""
    get_env().add_reply(json.dumps(body, indent=2))
    return body


def run_tool(action: str, build: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
    """
    Run one tool body and always reply.

    GovernanceError becomes its `{"error": ...}` body. Anything else is
    logged with a traceback and reported as `Failed to <action>`.
    """
    logger = get_logger()
    try:
        return respond(build())
    except GovernanceError as e:
        if e.status >= 500:
            logger.error("%s failed: %s", action, e.message, exc_info=True)
        else:
            logger.info("%s rejected (%s): %s", action, e.status, e.message)
        return respond(e.to_body())
    except Exception as e:
        logger.error("%s failed: %s", action, e, exc_info=True)
        return respond({"error": f"Failed to {action}", "details": str(e)})
