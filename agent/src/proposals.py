"""
Read side of the voting contract.

`ProposalGateway` fetches single and paged proposals, checks whether a
proposal can be approved or voted on, resolves an account's approval role
and supplies the merkle proof a vote must carry. The proof is always read
at the proposal's own snapshot block, never at the chain head.
"""

import logging

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from constants import (
    NANOSECONDS_PER_MILLISECOND,
    RECENT_PROPOSALS_DEFAULT,
    RECENT_PROPOSALS_MAX,
    VOTE_OPTIONS,
)
from errors import InvalidInputError, NotFoundError, PreconditionError
from helpers import venear_contract, voting_contract
from near_types import ApprovalCheck, ApprovalPermission, GovernanceRpc, ProofData, Proposal
from rpc import RpcEmptyResultError, RpcError

_logger = logging.getLogger(__name__)

_VOTABLE_STATUSES = ("active", "voting")
_APPROVABLE_STATUS = "Created"


# ──────────────────────────────────────────────────────────────
# Parsing
# ──────────────────────────────────────────────────────────────
def parse_proposal_id(raw: Any) -> int:
    """Parse a proposal id; anything but a non-negative integer is rejected."""
    if isinstance(raw, bool):
        raise InvalidInputError("Invalid proposal ID")
    if isinstance(raw, int):
        value = raw
    else:
        text = str(raw).strip() if raw is not None else ""
        if not text.isdigit():
            raise InvalidInputError("Invalid proposal ID")
        value = int(text)
    if value < 0:
        raise InvalidInputError("Invalid proposal ID")
    return value


def parse_count(raw: Any, default: int = RECENT_PROPOSALS_DEFAULT, maximum: int = RECENT_PROPOSALS_MAX) -> int:
    if raw is None or raw == "":
        return default
    try:
        count = int(str(raw).strip())
    except ValueError:
        count = 0
    if count < 1 or count > maximum:
        raise InvalidInputError(f"count must be a number between 1 and {maximum}")
    return count


def parse_vote(raw: Any) -> str:
    if raw is None or str(raw).strip() == "":
        raise InvalidInputError("vote is required (Yes, No, or Abstain)")
    vote = str(raw).strip()
    if vote not in VOTE_OPTIONS:
        raise InvalidInputError("vote must be one of: Yes, No, Abstain")
    return vote


def parse_deadline_ms(deadline: Any) -> Optional[int]:
    """
    Deadline as epoch milliseconds.

    Accepts ISO-8601 strings and integer timestamps (ms, or ns when the
    value is too large to be ms). Returns None when it cannot be read.
    """
    if deadline is None or deadline == "":
        return None
    text = str(deadline).strip()
    if text.isdigit():
        value = int(text)
        return value // NANOSECONDS_PER_MILLISECOND if value >= 10**14 else value
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


def snapshot_block_height(proposal: Proposal) -> int:
    """Snapshot height pinned on the proposal when it was approved."""
    snapshot = ((proposal.get("snapshot_and_state") or {}).get("snapshot") or {})
    height = snapshot.get("block_height")
    if height is None or not str(height).isdigit():
        raise PreconditionError(
            f"Proposal {proposal.get('id')} has no snapshot block height; "
            "it has not been approved for voting"
        )
    return int(height)


def decision_split(votes: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Vote counts per option and their share with two decimals."""
    total = len(votes)
    counts = {option: sum(1 for v in votes if v.get("vote") == option) for option in VOTE_OPTIONS}

    def pct(n: int) -> str:
        return f"{n / total * 100:.2f}" if total else "0.00"

    return {
        "total": total,
        "yes": counts["Yes"],
        "no": counts["No"],
        "abstain": counts["Abstain"],
        "yesPercentage": pct(counts["Yes"]),
        "noPercentage": pct(counts["No"]),
        "abstainPercentage": pct(counts["Abstain"]),
    }


class ProposalGateway:
    def __init__(self, rpc: GovernanceRpc) -> None:
        self.rpc = rpc

    # ──────────────────────────────────────────────────────────────
    # Single proposal
    # ──────────────────────────────────────────────────────────────
    def fetch_proposal(self, proposal_id: Any) -> Proposal:
        pid = parse_proposal_id(proposal_id)
        try:
            proposal = self.rpc.call(voting_contract(), "get_proposal", {"proposal_id": pid})
        except RpcEmptyResultError as e:
            raise NotFoundError(f"Proposal {pid} does not exist") from e
        if not proposal:
            raise NotFoundError(f"Proposal {pid} does not exist")
        return proposal

    def validate_for_approval(self, proposal_id: Any) -> ApprovalCheck:
        proposal = self.fetch_proposal(proposal_id)
        return {"proposal": proposal, "canApprove": proposal.get("status") == _APPROVABLE_STATUS}

    def validate_for_voting(self, proposal_id: Any, now_ms: int) -> Proposal:
        """
        Return the proposal if it accepts votes right now.

        Raises PreconditionError naming the reason otherwise.
        """
        proposal = self.fetch_proposal(proposal_id)
        status = str(proposal.get("status") or "")
        if status.lower() not in _VOTABLE_STATUSES:
            raise PreconditionError(
                f"Proposal {proposal.get('id', proposal_id)} is not open for voting. "
                f"Current status: {status or 'unknown'}",
                details={"status": status or None},
            )

        deadline = proposal.get("deadline")
        deadline_ms = parse_deadline_ms(deadline)
        if deadline not in (None, "") and deadline_ms is None:
            _logger.warning("Unreadable deadline %r on proposal %s", deadline, proposal_id)
        if deadline_ms is not None and now_ms > deadline_ms:
            raise PreconditionError(
                f"Voting deadline for proposal {proposal.get('id', proposal_id)} has passed",
                details={"deadline": deadline},
            )
        return proposal

    # ──────────────────────────────────────────────────────────────
    # Roles and proofs
    # ──────────────────────────────────────────────────────────────
    def check_approval_permission(self, account_id: str) -> ApprovalPermission:
        """
        Role of `account_id` on the voting contract (owner > guardian > reviewer).

        Any RPC failure yields no permission.
        """
        voting = voting_contract()
        try:
            config = self.rpc.call(voting, "get_config", {})
        except RpcError as e:
            _logger.warning("%s.get_config failed, denying approval: %s", voting, e)
            return {"hasPermission": False, "role": "none"}

        if not isinstance(config, dict):
            return {"hasPermission": False, "role": "none"}

        is_reviewer = account_id in (config.get("reviewer_ids") or [])
        is_owner = config.get("owner_account_id") == account_id
        is_guardian = account_id in (config.get("guardians") or [])

        if is_owner:
            role = "owner"
        elif is_guardian:
            role = "guardian"
        elif is_reviewer:
            role = "reviewer"
        else:
            role = "none"
        return {"hasPermission": is_owner or is_guardian or is_reviewer, "role": role}  # type: ignore[typeddict-item]

    def get_proof(self, account_id: str, snapshot_block: int) -> ProofData:
        """Merkle proof and vAccount of `account_id` at `snapshot_block`."""
        try:
            data = self.rpc.call(
                venear_contract(), "get_proof", {"account_id": account_id}, block_id=snapshot_block
            )
        except RpcEmptyResultError as e:
            raise NotFoundError(f"No proof found for account {account_id}") from e

        if isinstance(data, list) and len(data) == 2:
            return {"merkleProof": data[0], "vAccount": data[1]}
        if isinstance(data, dict):
            return {
                "merkleProof": data.get("merkle_proof") or data.get("proof"),
                "vAccount": data.get("v_account") or account_id,
            }
        raise NotFoundError(f"No proof found for account {account_id}")

    # ──────────────────────────────────────────────────────────────
    # Paging
    # ──────────────────────────────────────────────────────────────
    def _count(self, method_name: str) -> int:
        try:
            total = self.rpc.call(voting_contract(), method_name, {})
        except RpcEmptyResultError:
            return 0
        return int(total or 0)

    def _window(self, method_name: str, from_index: int, limit: int) -> List[Dict[str, Any]]:
        try:
            page = self.rpc.call(
                voting_contract(), method_name, {"from_index": from_index, "limit": limit}
            )
        except RpcEmptyResultError:
            return []
        return list(page or [])

    def recent_proposals(self, count: int, approved: bool = False) -> Dict[str, Any]:
        """
        Most-recent-first window of the last `count` proposals.

        Reads `[total - count, total)` and reverses it. A proposal without an
        `id` of its own is numbered by its position in the list.
        """
        count_method, page_method = (
            ("get_num_approved_proposals", "get_approved_proposals")
            if approved
            else ("get_num_proposals", "get_proposals")
        )
        total = self._count(count_method)
        if total == 0:
            return {"proposals": [], "totalCount": 0, "fromIndex": 0, "limit": count}

        from_index = max(0, total - count)
        page = self._window(page_method, from_index, count)

        proposals = []
        for index, proposal in enumerate(page):
            proposals.append({"id": from_index + index, **proposal})
        proposals.reverse()

        return {
            "proposals": proposals,
            "totalCount": total,
            "fromIndex": from_index,
            "limit": count,
        }

    def fetch_all_proposals(self) -> List[Proposal]:
        total = self._count("get_num_proposals")
        if total == 0:
            return []
        proposals = self._window("get_proposals", 0, total)
        for index, proposal in enumerate(proposals):
            proposal.setdefault("id", index)
        return proposals

    def votes(self, proposal_id: Any) -> Tuple[Proposal, List[Dict[str, Any]]]:
        proposal = self.fetch_proposal(proposal_id)
        return proposal, list(proposal.get("votes") or [])
