"""
Single chokepoint for NEAR JSON-RPC reads.

`RpcClient.call` wraps the `query` / `call_function` request: arguments go
out as base64(JSON), the byte-array result comes back as UTF-8 JSON.
Failures are classified so callers can decide what an empty answer means:

- RpcTransportError   the HTTP exchange failed or returned non-2xx
- RpcProtocolError    the JSON-RPC envelope carried an `error`
- RpcEmptyResultError `result.result` was missing or empty (view reverted
                      or returned nothing)

`view_account` covers native balances and raises AccountNotFoundError when
the account does not exist, which is distinct from a zero balance.
"""

import base64
import json
import logging

import requests

from typing import Any, Dict, Optional
from errors import NotFoundError, UpstreamError
from helpers import get_rpc_addr

_logger = logging.getLogger(__name__)

# Transport default for every request; no retries are performed.
# Bounded on purpose, see "RPC timeout" in DESIGN.md.
DEFAULT_TIMEOUT_S: float = 10


class RpcError(UpstreamError):
    """Base class for every RPC failure."""


class RpcTransportError(RpcError):
    pass


class RpcProtocolError(RpcError):
    pass


class RpcEmptyResultError(RpcError):
    pass


class AccountNotFoundError(NotFoundError):
    pass


def encode_args(args: Optional[Dict[str, Any]]) -> str:
    """Return base64(JSON(args)) as expected by `args_base64`."""
    return base64.b64encode(json.dumps(args or {}).encode("utf-8")).decode("ascii")


def decode_result(raw: Any) -> Any:
    """Decode a call_function byte-array result into its JSON value."""
    try:
        return json.loads(bytes(raw).decode("utf-8"))
    except (TypeError, ValueError) as e:
        raise RpcProtocolError(f"Undecodable RPC result: {e}") from e


def _error_message(err: Any) -> str:
    if isinstance(err, dict):
        cause = err.get("cause")
        if isinstance(cause, dict) and cause.get("name"):
            return f"{err.get('message') or err.get('name')}: {cause['name']}"
        return str(err.get("message") or err.get("name") or err)
    return str(err)


def _cause_name(err: Any) -> Optional[str]:
    if isinstance(err, dict):
        cause = err.get("cause")
        if isinstance(cause, dict):
            return cause.get("name")
    return None


class RpcClient:
    """Stateless reader bound to one RPC endpoint."""

    def __init__(self, rpc_addr: str, timeout: Optional[float] = DEFAULT_TIMEOUT_S) -> None:
        self.rpc_addr = rpc_addr
        self.timeout = timeout

    def _query(self, params: Dict[str, Any]) -> Dict[str, Any]:
        payload = {
            "jsonrpc": "2.0",
            "id": "1",
            "method": "query",
            "params": params,
        }

        try:
            response = requests.post(
                self.rpc_addr,
                json=payload,
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
            )
        except requests.RequestException as e:
            raise RpcTransportError(f"RPC request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise RpcTransportError(f"RPC request failed: {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise RpcProtocolError(f"RPC returned invalid JSON: {e}") from e

        if not isinstance(body, dict):
            raise RpcProtocolError("RPC returned a non-object envelope")

        if body.get("error"):
            err = RpcProtocolError(f"RPC error: {_error_message(body['error'])}")
            err.cause_name = _cause_name(body["error"])  # type: ignore[attr-defined]
            raise err

        result = body.get("result")
        return result if isinstance(result, dict) else {}

    def call(
        self,
        contract_id: str,
        method_name: str,
        args: Optional[Dict[str, Any]] = None,
        *,
        block_id: Optional[int] = None,
    ) -> Any:
        """
        Run a view method and return its decoded JSON value.

        Reads at `finality: final` unless `block_id` pins a specific block.
        """
        params: Dict[str, Any] = {
            "request_type": "call_function",
            "account_id": contract_id,
            "method_name": method_name,
            "args_base64": encode_args(args),
        }
        if block_id is not None:
            params["block_id"] = block_id
        else:
            params["finality"] = "final"

        result = self._query(params)
        raw = result.get("result")
        if not raw:
            # Reverted views report the panic in result.error
            reason = result.get("error")
            _logger.debug("empty result %s.%s: %s", contract_id, method_name, reason)
            raise RpcEmptyResultError(
                f"No result from {contract_id}.{method_name}"
                + (f": {reason}" if reason else "")
            )
        return decode_result(raw)

    def view_account(self, account_id: str) -> Dict[str, Any]:
        """Return the `view_account` record (with `amount` in yocto)."""
        params = {
            "request_type": "view_account",
            "finality": "final",
            "account_id": account_id,
        }
        try:
            result = self._query(params)
        except RpcProtocolError as e:
            if getattr(e, "cause_name", None) == "UNKNOWN_ACCOUNT":
                raise AccountNotFoundError(f"Account {account_id} not found") from e
            raise

        if not result:
            raise AccountNotFoundError(f"Account {account_id} not found")
        return result


def default_client() -> RpcClient:
    """Build a client for the configured network / NEAR_RPC_URL."""
    return RpcClient(get_rpc_addr())
