import logging
import pytest
from unittest.mock import MagicMock

from account_state import AccountStateAggregator, delegation_totals
from errors import NotFoundError, UpstreamError
from rpc import AccountNotFoundError, RpcTransportError
from test_utils import VENEAR, VOTING, install_views

ACCOUNT = "alice.near"
RECORD = {
    "account_id": ACCOUNT,
    "balance": "4000000000000000000000000",
    "voting_power": "4000000000000000000000000",
}


def _views(overrides=None):
    views = {
        (VENEAR, "get_accounts"): RECORD,
        (VENEAR, "ft_balance_of"): "4000000000000000000000000",
        (VENEAR, "get_account_info"): {"internal": {}},
    }
    views.update(overrides or {})
    return views


def test_account_state_requires_venear_record():
    rpc = install_views(MagicMock(), {}, accounts={ACCOUNT: {"amount": "1"}})

    with pytest.raises(NotFoundError, match=f"No veNEAR balance found for account {ACCOUNT}"):
        AccountStateAggregator(rpc).get_account_state(ACCOUNT, now_ms=0)


def test_account_state_dual_encodes_amounts():
    rpc = install_views(MagicMock(), _views(), accounts={ACCOUNT: {"amount": "2500000000000000000000000"}})

    state = AccountStateAggregator(rpc).get_account_state(ACCOUNT, now_ms=0)

    assert state["accountId"] == ACCOUNT
    assert state["accountBalance"] == {"raw": "2500000000000000000000000", "nears": "2.500000"}
    assert state["veNearTokenBalance"]["nears"] == "4.000000"
    assert state["veNear"] == RECORD
    assert state["lockup"]["lockupBalance"] == {"raw": "0", "nears": "0.000000"}
    assert state["lockup"]["isLockupDeployed"] is False
    assert state["delegation"]["totalDelegatedPower"] == {"raw": "0", "nears": "0.000000"}
    assert state["metadata"]["votingContract"] == VOTING


def test_delegation_failures_are_soft(caplog):
    overrides = {
        (VOTING, "get_delegation"): RpcTransportError("RPC request failed: 503"),
        (VOTING, "get_delegators"): RpcTransportError("RPC request failed: 503"),
    }
    rpc = install_views(MagicMock(), _views(overrides), accounts={ACCOUNT: {"amount": "1"}})

    with caplog.at_level(logging.WARNING):
        state = AccountStateAggregator(rpc).get_account_state(ACCOUNT, now_ms=0)

    delegation = state["delegation"]
    assert delegation["isDelegator"] is False
    assert delegation["delegatedTo"] is None
    assert delegation["isDelegate"] is False
    assert delegation["delegatorsCount"] == 0
    assert "get_delegation" in caplog.text


def test_delegation_both_directions():
    overrides = {
        (VOTING, "get_delegation"): {"delegated_to": "bob.near"},
        (VOTING, "get_delegators"): [
            {"account_id": "c.near", "delegated_power": "3000000000000000000000000"},
            {"account_id": "d.near", "delegated_power": "1000000000000000000000000"},
        ],
    }
    rpc = install_views(MagicMock(), _views(overrides))

    info = AccountStateAggregator(rpc).delegation_info(ACCOUNT)

    assert info["isDelegator"] is True
    assert info["delegatedTo"] == "bob.near"
    assert info["isDelegate"] is True
    assert info["delegatorsCount"] == 2
    assert info["totalDelegatedPower"] == "4000000000000000000000000"


def test_empty_delegators_list_is_not_a_delegate():
    rpc = install_views(MagicMock(), {(VOTING, "get_delegators"): []})
    assert AccountStateAggregator(rpc).delegation_info(ACCOUNT)["isDelegate"] is False


def test_missing_native_account_is_not_found():
    rpc = install_views(MagicMock(), _views(), accounts={})

    with pytest.raises(AccountNotFoundError):
        AccountStateAggregator(rpc).get_account_state(ACCOUNT, now_ms=0)


def test_token_balance_failure_reports_zero():
    rpc = install_views(MagicMock(), {(VENEAR, "ft_balance_of"): RpcTransportError("down")})
    assert AccountStateAggregator(rpc).token_balance(ACCOUNT) == "0"


def test_venear_balance_without_detailed_record():
    rpc = install_views(MagicMock(), {(VENEAR, "ft_balance_of"): "1000000000000000000000000"})

    body = AccountStateAggregator(rpc).get_venear_balance(ACCOUNT)

    assert body["tokenBalance"]["raw"] == "1000000000000000000000000"
    assert body["tokenBalance"]["method"] == "ft_balance_of"
    assert body["detailedBalance"] is None
    assert body["metadata"]["hasDetailedData"] is False


def test_venear_balance_with_detailed_record():
    rpc = install_views(MagicMock(), _views())

    detailed = AccountStateAggregator(rpc).get_venear_balance(ACCOUNT)["detailedBalance"]

    assert detailed["raw"] == RECORD["balance"]
    assert detailed["votingPower"]["nears"] == "4.000000"
    assert detailed["totalPower"] == {"raw": "0", "nears": "0.000000"}


def test_account_balance():
    rpc = install_views(MagicMock(), {}, accounts={ACCOUNT: {"amount": "1000000000000000000000000"}})

    body = AccountStateAggregator(rpc).get_account_balance(ACCOUNT)

    assert body["balance"] == {"raw": "1000000000000000000000000", "nears": "1.000000"}


def test_delegators_totals_are_exact():
    power = "123456789012345678901234567"
    delegators = [
        {"account_id": "a.near", "delegated_power": power},
        {"account_id": "b.near", "delegated_power": power},
        {"account_id": "c.near", "delegated_power": "1"},
    ]
    rpc = install_views(MagicMock(), {(VOTING, "get_delegators"): delegators})

    body = AccountStateAggregator(rpc).get_delegators(ACCOUNT)

    stats = body["delegationStats"]
    assert stats["totalDelegators"] == 3
    assert stats["totalDelegatedPower"] == str(2 * int(power) + 1)
    assert stats["averageDelegation"] == str((2 * int(power) + 1) // 3)
    assert body["delegators"] == delegators


def test_delegators_missing_is_not_found():
    rpc = install_views(MagicMock(), {})
    with pytest.raises(NotFoundError, match="No delegators found"):
        AccountStateAggregator(rpc).get_delegators(ACCOUNT)


def test_delegators_unexpected_payload():
    rpc = install_views(MagicMock(), {(VOTING, "get_delegators"): {"oops": True}})
    with pytest.raises(UpstreamError):
        AccountStateAggregator(rpc).get_delegators(ACCOUNT)


def test_delegation_totals_empty():
    assert delegation_totals([]) == {
        "totalDelegators": 0,
        "totalDelegatedPower": "0",
        "averageDelegation": "0",
    }
