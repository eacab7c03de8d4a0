import os
import html

from datetime import datetime, timezone

from typing import Optional
from errors import ConfigurationError, InvalidInputError

# ──────────────────────────────────────────────────────────────
# GLOBAL STATE
# ──────────────────────────────────────────────────────────────
# fastnear.com
_DEFAULT_RPC = {
    "mainnet": "https://rpc.mainnet.fastnear.com",
    "testnet": "https://rpc.testnet.fastnear.com",
}

# Public voting UI used in notification links
_DEFAULT_VOTE_BASE_URL = "https://near.vote"

# Vector store holding proposal documents for semantic search
_DEFAULT_VECTOR_STORE_NAME = "house-of-stake-proposals"


# expose handy getters
def vote_base_url()     -> str: return os.getenv("VOTE_BASE_URL", _DEFAULT_VOTE_BASE_URL).rstrip("/")
def vector_store_name() -> str: return os.getenv("GOVERNANCE_VECTOR_STORE_NAME", _DEFAULT_VECTOR_STORE_NAME)
# ──────────────────────────────────────────────────────────────


def get_rpc_addr(network: Optional[str] = None) -> str:
    """Return the NEAR RPC endpoint for the active network.

    ``NEAR_RPC_URL`` wins when set. Otherwise ``network`` (or
    ``NEAR_NETWORK`` from the environment) picks one of the default
    endpoints. Raises a RuntimeError when neither resolves.
    """
    override = os.getenv("NEAR_RPC_URL")
    if override and override.strip():
        return override.strip()

    net = network or os.getenv("NEAR_NETWORK")
    if net not in _DEFAULT_RPC:
        raise RuntimeError(
            "NEAR_NETWORK must be set to 'mainnet' or 'testnet' (got: "
            f"{net or 'unset'})"
        )
    return _DEFAULT_RPC[net]


def _required_contract(var: str) -> str:
    value = (os.getenv(var) or "").strip()
    if not value:
        raise ConfigurationError(f"{var} environment variable not set")
    return value


def voting_contract() -> str:
    """
    Return the governance voting contract id.

    Read on every call so a missing value fails each dependent request
    with a configuration error instead of at import time.
    """
    return _required_contract("VOTING_CONTRACT")


def venear_contract() -> str:
    """Return the veNEAR contract id (lockup factory and token)."""
    return _required_contract("VENEAR_CONTRACT_ID")


def escape_html(text: str) -> str:
    """Escape text for HTML notification bodies (quotes included)."""
    return html.escape(text or "", quote=True).replace("&#x27;", "&#039;")


def require_param(value: Optional[str], name: str) -> str:
    """Return the stripped parameter or raise `{name} is required`."""
    text = value.strip() if isinstance(value, str) else value
    if text is None or text == "":
        raise InvalidInputError(f"{name} is required")
    return text


def iso_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
