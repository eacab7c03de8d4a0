"""Small helpers for tests (non-pytest fixtures)."""

import json

from rpc import AccountNotFoundError, RpcEmptyResultError

VOTING = "vote.dao.near"
VENEAR = "venear.dao.near"


def make_dummy_resp(json_body, status_code=200):
    """Minimal stub mimicking requests.Response for our needs."""
    class DummyResp:
        def __init__(self):
            self.status_code = status_code
        def json(self):
            if isinstance(json_body, Exception):
                raise json_body
            return json_body
    return DummyResp()


def encoded(value) -> list:
    """JSON value as the byte array a call_function result carries."""
    return list(json.dumps(value).encode("utf-8"))


def rpc_result(value) -> dict:
    return {
        "jsonrpc": "2.0",
        "id": "1",
        "result": {"result": encoded(value), "logs": [], "block_height": 1},
    }


def install_views(rpc, views, accounts=None):
    """Route a MagicMock RPC client through fixed answers.

    `views` maps (contract, method) to a value, an exception instance, or a
    callable taking (args, block_id). Missing views behave like an empty
    result. `accounts` maps account ids to view_account records.
    """
    accounts = accounts or {}

    def call(contract_id, method_name, args=None, *, block_id=None):
        key = (contract_id, method_name)
        if key not in views:
            raise RpcEmptyResultError(f"No result from {contract_id}.{method_name}")
        value = views[key]
        if isinstance(value, Exception):
            raise value
        if callable(value):
            return value(args or {}, block_id)
        return value

    def view_account(account_id):
        if account_id not in accounts:
            raise AccountNotFoundError(f"Account {account_id} not found")
        value = accounts[account_id]
        if isinstance(value, Exception):
            raise value
        return value

    rpc.call.side_effect = call
    rpc.view_account.side_effect = view_account
    return rpc


def last_reply(env) -> dict:
    """Decode the JSON body of the most recent env.add_reply call."""
    return json.loads(env.add_reply.call_args[0][0])
