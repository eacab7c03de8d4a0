from typing import Optional

from .context import gateway, run_tool
from errors import InvalidInputError, PermissionDeniedError, PreconditionError
from helpers import require_param, voting_contract
from lockup import now_millis
from payloads import approve_proposal as approve_payload
from payloads import create_proposal as create_payload
from payloads import parse_voting_options
from payloads import vote as vote_payload
from proposals import decision_split, parse_count, parse_proposal_id, parse_vote, snapshot_block_height
from search import ProposalSearchRanker, parse_limit, parse_search_type, parse_sort


def get_proposal(proposal_id: str) -> dict:
    """
    Fetch one governance proposal by its numeric id.

    Returns `{proposal}`; unknown ids report "Proposal <id> does not exist".
    """

    def build():
        pid = parse_proposal_id(require_param(proposal_id, "proposalId"))
        return {"proposal": gateway().fetch_proposal(pid)}

    return run_tool("fetch proposal", build)


def get_recent_proposals(count: Optional[str] = None) -> dict:
    """
    List the most recent proposals, newest first.

    `count` is 1-50 (default 5).
    """
    return run_tool(
        "fetch recent proposals",
        lambda: gateway().recent_proposals(parse_count(count)),
    )


def get_recent_active_proposals(count: Optional[str] = None) -> dict:
    """
    List the most recent proposals approved for voting, newest first.

    `count` is 1-50 (default 5).
    """
    return run_tool(
        "fetch recent active proposals",
        lambda: gateway().recent_proposals(parse_count(count), approved=True),
    )


def get_votes(proposal_id: str) -> dict:
    """Show the votes cast on a proposal and the Yes/No/Abstain split."""

    def build():
        pid = parse_proposal_id(require_param(proposal_id, "proposalId"))
        proposal, votes = gateway().votes(pid)
        return {
            "proposalId": pid,
            "votes": votes,
            "decisionSplit": decision_split(votes),
            "proposal": {
                "id": proposal.get("id", pid),
                "title": proposal.get("title"),
                "description": proposal.get("description"),
                "status": proposal.get("status"),
                "deadline": proposal.get("deadline"),
                "total_voting_power": proposal.get("total_voting_power"),
            },
        }

    return run_tool("fetch votes", build)


def search_proposals(
    q: Optional[str] = None,
    status: Optional[str] = None,
    sort: Optional[str] = None,
    limit: Optional[str] = None,
    search_type: Optional[str] = None,
) -> dict:
    """
    Search governance proposals.

    `search_type` is semantic (default), traditional or hybrid; `sort` is
    relevance, id, newest, oldest or title; `limit` is 1-100 (default 50).
    """

    def build():
        limit_value = parse_limit(limit)
        mode = parse_search_type(search_type)
        sort_key = parse_sort(sort)
        query = (q or "").strip()
        voting = voting_contract()

        proposals = gateway().fetch_all_proposals()
        found = ProposalSearchRanker().run(
            proposals,
            query=query,
            status=status,
            sort=sort_key,
            limit=limit_value,
            mode=mode,
        )
        return {
            "proposals": found["proposals"],
            "search": {
                "query": query or None,
                "status": status or None,
                "sort": sort_key,
                "searchType": mode,
                "totalFound": found["totalFound"],
                "limit": limit_value,
            },
            "statistics": {
                "totalFound": found["totalFound"],
                "limit": limit_value,
                "statusCounts": found["statusCounts"],
            },
            "metadata": {
                "contract": voting,
                "description": "Search results for House of Stake governance proposals",
            },
        }

    return run_tool("search proposals", build)


def create_proposal(
    title: str,
    description: str,
    voting_options: str,
    link: Optional[str] = None,
) -> dict:
    """
    Build the transaction that submits a new proposal (0.2 NEAR deposit).

    `voting_options` is a comma-separated list, e.g. "Yes, No, Abstain".
    """

    def build():
        if not (title or "").strip() or not (description or "").strip():
            raise InvalidInputError("title and description are required")
        voting = voting_contract()
        options = parse_voting_options(voting_options)
        return {"transactionPayload": create_payload(voting, title, description, link, options)}

    return run_tool("generate NEAR transaction payload", build)


def approve_proposal(proposal_id: str, account_id: str) -> dict:
    """
    Build the transaction approving a proposal for voting.

    Only proposals in status "Created" can be approved, and only by the
    contract owner, a guardian or a reviewer.
    """

    def build():
        pid = parse_proposal_id(require_param(proposal_id, "proposalId"))
        account = require_param(account_id, "accountId")
        voting = voting_contract()

        gw = gateway()
        check = gw.validate_for_approval(pid)
        if not check["canApprove"]:
            raise PreconditionError(
                f"Proposal {pid} cannot be approved. Current status: "
                f"{check['proposal'].get('status')}. Only proposals with status "
                "'Created' can be approved."
            )

        permission = gw.check_approval_permission(account)
        if not permission["hasPermission"]:
            raise PermissionDeniedError(
                f"Account {account} does not have permission to approve proposals. "
                f"Required role: owner, guardian, or reviewer. Current role: {permission['role']}"
            )

        return {"transactionPayload": approve_payload(voting, pid)}

    return run_tool("generate approval transaction payload", build)


def vote(proposal_id: str, vote: str, account_id: str) -> dict:
    """
    Build a vote transaction (Yes, No or Abstain) for `account_id`.

    The merkle proof is taken at the proposal's snapshot block.
    """
    choice_raw = vote

    def build():
        pid = parse_proposal_id(require_param(proposal_id, "proposalId"))
        choice = parse_vote(choice_raw)
        account = require_param(account_id, "accountId")
        voting = voting_contract()

        gw = gateway()
        proposal = gw.validate_for_voting(pid, now_millis())
        height = snapshot_block_height(proposal)
        proof = gw.get_proof(account, height)

        return {
            "transactionPayload": vote_payload(voting, pid, choice, proof["merkleProof"], proof["vAccount"]),
            "vote": {
                "proposalId": pid,
                "vote": choice,
                "accountId": account,
                "snapshotBlockHeight": height,
                "merkleProof": proof["merkleProof"],
                "vAccount": proof["vAccount"],
            },
        }

    return run_tool("generate vote transaction payload", build)
