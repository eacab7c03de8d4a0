from typing import Optional

from .context import gateway, run_tool
from lockup import now_millis
from notifications import NotificationComposer


def handle_new_proposal(proposal_id: str, event_details: Optional[dict] = None) -> dict:
    """
    Format the HTML announcement for a newly created proposal.

    `event_details` may carry title/description/link; missing fields are
    read from the voting contract.
    """
    return run_tool(
        "handle new proposal",
        lambda: NotificationComposer(gateway()).handle_new_proposal(
            proposal_id, event_details, now_millis()
        ),
    )


def handle_proposal_approval(
    proposal_id: str,
    event_details: Optional[dict] = None,
    current_status: Optional[str] = None,
) -> dict:
    """
    Format the HTML announcement for a proposal approved for voting.

    Returns `alreadyProcessed` when `current_status` is already "Approved".
    """
    return run_tool(
        "handle proposal approval",
        lambda: NotificationComposer(gateway()).handle_proposal_approval(
            proposal_id, event_details, current_status
        ),
    )
