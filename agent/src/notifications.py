"""HTML notification text for new and newly approved proposals."""

import logging

from typing import Any, Dict, Optional

from errors import GovernanceError
from helpers import escape_html, require_param, vote_base_url, voting_contract
from proposals import ProposalGateway, parse_deadline_ms

_logger = logging.getLogger(__name__)

_MS_PER_HOUR = 60 * 60 * 1000
_MS_PER_DAY = 24 * _MS_PER_HOUR


def deadline_text(proposal: Optional[Dict[str, Any]], now_ms: int) -> str:
    if not proposal:
        return ""
    deadline_ms = parse_deadline_ms(proposal.get("deadline") or proposal.get("voting_end"))
    if deadline_ms is None:
        return ""
    left = deadline_ms - now_ms
    if left <= 0:
        return ""
    return f"\n⏰ <b>Deadline:</b> {left // _MS_PER_DAY}d {(left % _MS_PER_DAY) // _MS_PER_HOUR}h remaining"


def links_text(proposal_id: Any, link: Optional[str]) -> str:
    text = f'\n\n🗳️ <a href="{vote_base_url()}/proposal/{proposal_id}">VOTE HERE</a>'
    if link:
        text += f'\n🔗 <a href="{escape_html(link)}">More Info</a>'
    return text


def new_proposal_message(
    proposal_id: Any,
    title: str,
    description: str,
    link: Optional[str],
    proposal: Optional[Dict[str, Any]],
    now_ms: int,
) -> str:
    snapshot = ""
    if proposal and (proposal.get("snapshot_block") or proposal.get("voting_power_snapshot")):
        snapshot = f"\n📊 <b>Voting Power:</b> {proposal.get('total_voting_power') or 'Unknown'} veNEAR"
    return (
        f"📥 <b>New Proposal</b>\n\n<b>{escape_html(title)}</b>\n\n{escape_html(description)}"
        f"{deadline_text(proposal, now_ms)}{snapshot}{links_text(proposal_id, link)}"
    )


def approval_message(
    proposal_id: Any,
    title: str,
    description: str,
    link: Optional[str],
    proposal: Optional[Dict[str, Any]],
) -> str:
    snapshot = ""
    if proposal and proposal.get("snapshot_block"):
        snapshot = (
            "\n\n📊 <b>Voting Snapshot:</b>\n"
            f"   Block: {proposal['snapshot_block']}\n"
            f"   Total Power: {proposal.get('total_voting_power') or 'Unknown'} veNEAR"
        )
    return (
        f"🗳️ <b>Proposal Approved for Voting</b>\n\n<b>{escape_html(title)}</b>\n\n"
        f"{escape_html(description)}{snapshot}{links_text(proposal_id, link)}"
    )


class NotificationComposer:
    """Builds notification bodies; contract data only fills gaps in the event."""

    def __init__(self, gateway: ProposalGateway) -> None:
        self.gateway = gateway

    def _lookup(self, proposal_id: Any) -> Optional[Dict[str, Any]]:
        try:
            return dict(self.gateway.fetch_proposal(proposal_id))
        except GovernanceError as e:
            _logger.warning("Could not fetch full proposal details for %s: %s", proposal_id, e.message)
            return None

    def _fields(self, proposal_id: Any, event: Dict[str, Any], proposal: Optional[Dict[str, Any]]):
        source = proposal or {}
        title = event.get("title") or source.get("title") or f"Proposal #{proposal_id}"
        description = event.get("description") or source.get("description") or ""
        link = event.get("link") or source.get("link")
        return title, description, link

    def handle_new_proposal(
        self, proposal_id: Any, event_details: Optional[Dict[str, Any]], now_ms: int
    ) -> Dict[str, Any]:
        proposal_id = require_param(proposal_id, "proposalId")
        voting_contract()
        event = event_details or {}
        _logger.info("📝 Processing new proposal %s", proposal_id)

        proposal = None
        if not event.get("title") or not event.get("description"):
            proposal = self._lookup(proposal_id)

        title, description, link = self._fields(proposal_id, event, proposal)
        return {
            "success": True,
            "proposalId": proposal_id,
            "message": new_proposal_message(proposal_id, title, description, link, proposal, now_ms),
            "proposal": proposal,
            "eventDetails": event_details or None,
        }

    def handle_proposal_approval(
        self,
        proposal_id: Any,
        event_details: Optional[Dict[str, Any]],
        current_status: Optional[str] = None,
    ) -> Dict[str, Any]:
        proposal_id = require_param(proposal_id, "proposalId")
        voting_contract()

        if current_status == "Approved":
            return {
                "success": True,
                "message": f"Proposal {proposal_id} already processed",
                "alreadyProcessed": True,
            }

        event = event_details or {}
        _logger.info("✅ Processing approval for proposal %s", proposal_id)
        proposal = self._lookup(proposal_id)
        title, description, link = self._fields(proposal_id, event, proposal)
        return {
            "success": True,
            "proposalId": proposal_id,
            "message": approval_message(proposal_id, title, description, link, proposal),
            "proposal": proposal,
            "eventDetails": event_details or None,
            "newStatus": "Approved",
        }
