from nearai.agents.environment import Environment
from nearai.agents.models.tool_definition import MCPTool
from near_types import GovernanceRpc
from .context import set_context
from . import (
    account,
    lockup,
    notifications,
    proposals,
    transfer,
)

# Register all tools here
def register_tools(env: Environment, rpc: GovernanceRpc) -> list[MCPTool]:
    """
    Register every governance and lockup tool with the environment and
    return their definitions for `completions_and_run_tools`.
    """

    set_context(env, rpc)
    registry = env.get_tool_registry()
    registered_tools = []

    for tool in (
        proposals.get_proposal,
        proposals.get_recent_proposals,
        proposals.get_recent_active_proposals,
        proposals.get_votes,
        proposals.search_proposals,
        proposals.create_proposal,
        proposals.approve_proposal,
        proposals.vote,
        account.get_account_state,
        account.get_venear_balance,
        account.get_account_balance,
        account.get_delegators,
        account.delegate_all,
        lockup.deploy_lockup,
        lockup.delete_lockup,
        lockup.deposit_and_stake,
        lockup.withdraw_lockup,
        lockup.select_staking_pool,
        lockup.refresh_staking_pool_balance,
        lockup.begin_unlock_near,
        lockup.end_unlock_near,
        lockup.deposit_lookup,
        transfer.create_near_transaction,
        notifications.handle_new_proposal,
        notifications.handle_proposal_approval,
    ):
        registry.register_tool(tool)
        registered_tools.append(tool.__name__)

    return [
        registry.get_tool_definition(name)
        for name in registered_tools
    ]
