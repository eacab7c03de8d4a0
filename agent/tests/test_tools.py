from unittest.mock import MagicMock

import tools
from test_utils import VENEAR, VOTING, install_views, last_reply
from tools import account, lockup, proposals, transfer
from rpc import RpcTransportError

LOCKUP = "abc123.venear.dao.near"
CONFIG = {"owner_account_id": "owner.near", "guardians": [], "reviewer_ids": ["rev.near"]}


def _voting_proposal(**fields):
    proposal = {
        "id": 2,
        "status": "Voting",
        "deadline": "2999-01-01T00:00:00Z",
        "snapshot_and_state": {"snapshot": {"block_height": 4242}},
    }
    proposal.update(fields)
    return proposal


# ──────────────────────────────────────────────────────────────
# Proposals
# ──────────────────────────────────────────────────────────────
def test_get_proposal_invalid_id(mock_setup):
    env, rpc = mock_setup

    body = proposals.get_proposal("abc")

    assert body == {"error": "Invalid proposal ID"}
    assert last_reply(env) == body
    rpc.call.assert_not_called()


def test_get_proposal_missing(mock_setup):
    env, rpc = mock_setup
    install_views(rpc, {})

    proposals.get_proposal("9")

    assert last_reply(env) == {"error": "Proposal 9 does not exist"}


def test_get_proposal_wraps_unexpected_failures(mock_setup):
    env, rpc = mock_setup
    rpc.call.side_effect = ValueError("bad json")

    proposals.get_proposal("1")

    assert last_reply(env) == {"error": "Failed to fetch proposal", "details": "bad json"}


def test_get_recent_proposals_count_validation(mock_setup):
    env, _ = mock_setup

    proposals.get_recent_proposals("51")

    assert last_reply(env) == {"error": "count must be a number between 1 and 50"}


def test_get_votes_reports_split(mock_setup):
    env, rpc = mock_setup
    votes = [{"account_id": "a.near", "vote": "Yes"}, {"account_id": "b.near", "vote": "No"}]
    install_views(rpc, {(VOTING, "get_proposal"): _voting_proposal(votes=votes)})

    proposals.get_votes("2")

    reply = last_reply(env)
    assert reply["votes"] == votes
    assert reply["decisionSplit"]["yesPercentage"] == "50.00"
    assert reply["proposal"]["status"] == "Voting"


def test_search_proposals_traditional(mock_setup):
    env, rpc = mock_setup
    install_views(rpc, {
        (VOTING, "get_num_proposals"): 2,
        (VOTING, "get_proposals"): [
            {"title": "Treasury refill", "status": "Voting"},
            {"title": "Grants", "status": "Created"},
        ],
    })

    proposals.search_proposals(q="treasury", search_type="traditional")

    reply = last_reply(env)
    assert [p["id"] for p in reply["proposals"]] == [0]
    assert reply["search"]["searchType"] == "traditional"
    assert reply["statistics"]["statusCounts"] == {"Voting": 1}


def test_create_proposal_requires_title(mock_setup):
    env, _ = mock_setup

    proposals.create_proposal("", "desc", "Yes,No")

    assert last_reply(env) == {"error": "title and description are required"}


def test_create_proposal_payload(mock_setup):
    env, _ = mock_setup

    proposals.create_proposal("Title", "desc", "Yes, No", link="https://x")

    tx = last_reply(env)["transactionPayload"]
    assert tx["receiverId"] == VOTING
    assert tx["actions"][0]["params"]["args"]["metadata"]["voting_options"] == ["Yes", "No"]


def test_approve_requires_created_status(mock_setup):
    env, rpc = mock_setup
    install_views(rpc, {(VOTING, "get_proposal"): _voting_proposal()})

    proposals.approve_proposal("2", "rev.near")

    assert "cannot be approved" in last_reply(env)["error"]


def test_approve_permission_denied(mock_setup):
    env, rpc = mock_setup
    install_views(rpc, {
        (VOTING, "get_proposal"): _voting_proposal(status="Created"),
        (VOTING, "get_config"): CONFIG,
    })

    proposals.approve_proposal("2", "mallory.near")

    error = last_reply(env)["error"]
    assert "does not have permission" in error
    assert "Current role: none" in error


def test_approve_by_reviewer(mock_setup):
    env, rpc = mock_setup
    install_views(rpc, {
        (VOTING, "get_proposal"): _voting_proposal(status="Created"),
        (VOTING, "get_config"): CONFIG,
    })

    proposals.approve_proposal("2", "rev.near")

    params = last_reply(env)["transactionPayload"]["actions"][0]["params"]
    assert params["methodName"] == "approve_proposal"
    assert params["args"]["proposal_id"] == 2


def test_vote_reads_proof_at_snapshot_block(mock_setup):
    env, rpc = mock_setup
    seen = {}

    def proof(args, block_id):
        seen["block_id"] = block_id
        return [{"path": []}, {"V0": {}}]

    install_views(rpc, {
        (VOTING, "get_proposal"): _voting_proposal(),
        (VENEAR, "get_proof"): proof,
    })

    proposals.vote("2", "No", "alice.near")

    reply = last_reply(env)
    assert seen["block_id"] == 4242
    assert reply["vote"]["snapshotBlockHeight"] == 4242
    assert reply["vote"]["merkleProof"] == {"path": []}
    assert reply["vote"]["vAccount"] == {"V0": {}}
    args = reply["transactionPayload"]["actions"][0]["params"]["args"]
    assert args == {"proposal_id": 2, "vote": "No", "merkle_proof": {"path": []}, "v_account": {"V0": {}}}


def test_vote_rejects_closed_proposal(mock_setup):
    env, rpc = mock_setup
    install_views(rpc, {(VOTING, "get_proposal"): _voting_proposal(status="Finished")})

    proposals.vote("2", "Yes", "alice.near")

    reply = last_reply(env)
    assert reply["error"].startswith("Proposal 2 is not open for voting")
    assert reply["status"] == "Finished"


def test_vote_invalid_choice(mock_setup):
    env, _ = mock_setup

    proposals.vote("2", "maybe", "alice.near")

    assert last_reply(env) == {"error": "vote must be one of: Yes, No, Abstain"}


# ──────────────────────────────────────────────────────────────
# Accounts and transfers
# ──────────────────────────────────────────────────────────────
def test_get_account_state_missing_account_id(mock_setup):
    env, _ = mock_setup

    account.get_account_state("  ")

    assert last_reply(env) == {"error": "accountId is required"}


def test_delegate_all_validates_receiver(mock_setup):
    env, _ = mock_setup

    account.delegate_all("Not Valid")

    assert last_reply(env) == {"error": "Invalid receiver ID format. Must be a valid NEAR account ID"}


def test_create_near_transaction(mock_setup):
    env, _ = mock_setup

    transfer.create_near_transaction("bob.near", "0.5")

    assert last_reply(env)["transactionPayload"]["actions"] == [
        {"type": "Transfer", "params": {"deposit": "500000000000000000000000"}}
    ]


# ──────────────────────────────────────────────────────────────
# Lockup
# ──────────────────────────────────────────────────────────────
def test_withdraw_below_minimum(mock_setup):
    env, rpc = mock_setup
    install_views(rpc, {
        (VENEAR, "get_lockup_account_id"): LOCKUP,
        (LOCKUP, "get_venear_liquid_balance"): "900000000000000000000000",
        (LOCKUP, "get_venear_liquid_owners_balance"): "2000000000000000000000000",
    })

    lockup.withdraw_lockup("alice.near")

    reply = last_reply(env)
    assert reply["error"] == "Insufficient withdrawable balance"
    assert reply["withdrawableAmount"] == "900000000000000000000000"
    assert reply["minimumRequired"] == "1000000000000000000000000"


def test_withdraw_without_lockup(mock_setup):
    env, rpc = mock_setup
    install_views(rpc, {})

    lockup.withdraw_lockup("alice.near")

    assert last_reply(env) == {"error": "No lockup found for this account"}


def test_deploy_lockup_uses_live_cost(mock_setup):
    env, rpc = mock_setup
    install_views(rpc, {(VENEAR, "get_lockup_deployment_cost"): "3000000000000000000000000"})

    lockup.deploy_lockup()

    reply = last_reply(env)
    assert reply["transactionPayload"]["actions"][0]["params"]["deposit"] == "3000000000000000000000000"
    assert reply["deploymentCost"] == {"raw": "3000000000000000000000000", "nears": "3.000000"}


def test_deploy_lockup_cost_failure(mock_setup):
    env, rpc = mock_setup
    install_views(rpc, {(VENEAR, "get_lockup_deployment_cost"): RpcTransportError("down")})

    lockup.deploy_lockup()

    assert "error" in last_reply(env)


def test_deposit_and_stake_rejects_zero(mock_setup):
    env, rpc = mock_setup

    lockup.deposit_and_stake("alice.near", "0")

    assert last_reply(env) == {"error": "amount must be greater than 0 yoctoNEAR"}
    rpc.call.assert_not_called()


def test_end_unlock_without_pending_skips_timestamp(mock_setup):
    env, rpc = mock_setup
    install_views(rpc, {(LOCKUP, "get_venear_pending_balance"): "0"})

    lockup.end_unlock_near(LOCKUP)

    assert last_reply(env) == {"error": "No pending unlock amount found"}
    called = [c.args[1] for c in rpc.call.call_args_list]
    assert called == ["get_venear_pending_balance"]


def test_end_unlock_after_period(mock_setup):
    env, rpc = mock_setup
    install_views(rpc, {
        (LOCKUP, "get_venear_pending_balance"): "5",
        (LOCKUP, "get_venear_unlock_timestamp"): "1",
    })

    lockup.end_unlock_near(LOCKUP)

    params = last_reply(env)["transactionPayload"]["actions"][0]["params"]
    assert params["methodName"] == "end_unlock_near"


def test_deposit_lookup_transfers_into_lockup(mock_setup):
    env, rpc = mock_setup
    install_views(rpc, {(VENEAR, "get_lockup_account_id"): LOCKUP})

    lockup.deposit_lookup("alice.near", "2")

    tx = last_reply(env)["transactionPayload"]
    assert tx["receiverId"] == LOCKUP
    assert tx["actions"][0]["params"]["deposit"] == "2000000000000000000000000"


# ──────────────────────────────────────────────────────────────
# Registration
# ──────────────────────────────────────────────────────────────
def test_register_tools_registers_every_tool():
    env = MagicMock()
    registry = env.get_tool_registry.return_value
    registry.get_tool_definition.side_effect = lambda name: {"name": name}

    defs = tools.register_tools(env, MagicMock())

    assert len(defs) == 25
    assert registry.register_tool.call_count == 25
    names = {d["name"] for d in defs}
    assert {"vote", "withdraw_lockup", "create_near_transaction", "handle_proposal_approval"} <= names
