"""
Interlock Tools for the Agent SDK
=================================

In-process MCP server with the same four interlock tools as humsana.server,
plus a PreToolUse hook that stops the agent's own Bash tool from running
commands the interlock would block.

Usage:
    from claude_code_sdk.types import HookMatcher
    from humsana.sdk_tools import create_interlock_tools_server, interlock_bash_hook, SDK_INTERLOCK_TOOLS

    options = ClaudeCodeOptions(
        mcp_servers={"humsana": create_interlock_tools_server()},
        allowed_tools=[...SDK_INTERLOCK_TOOLS],
        hooks={"PreToolUse": [HookMatcher(matcher="Bash", hooks=[interlock_bash_hook])]},
    )
"""

import json
from typing import Any

from claude_code_sdk import tool, create_sdk_mcp_server, McpSdkServerConfig

from humsana import __version__
from humsana import server
from humsana.interlock import OVERRIDE_INSTRUCTION, build_context, check_command


SDK_INTERLOCK_TOOLS = list(server.INTERLOCK_TOOLS)


def _respond(result: dict) -> dict[str, Any]:
    """Wrap a result dict as an SDK tool response."""
    response: dict[str, Any] = {
        "content": [{
            "type": "text",
            "text": json.dumps(result, indent=2),
        }]
    }
    if result.get("success") is False or result.get("status") == "FAILED":
        response["is_error"] = True
    return response


@tool(
    "get_user_state",
    "Get the user's current stress, focus, fatigue and response recommendations.",
    {}
)
async def get_user_state(args: dict[str, Any]) -> dict[str, Any]:
    return _respond(await server.get_user_state())


@tool(
    "check_dangerous_command",
    "Check whether a shell command is dangerous and would be blocked right now. Never executes it.",
    {"command": str}
)
async def check_dangerous_command(args: dict[str, Any]) -> dict[str, Any]:
    return _respond(await server.check_dangerous_command(args.get("command", "")))


@tool(
    "safe_execute_command",
    "Execute a shell command behind the fatigue interlock. Pass override_reason only after the user says OVERRIDE SAFETY PROTOCOL.",
    {"command": str, "override_reason": str}
)
async def safe_execute_command(args: dict[str, Any]) -> dict[str, Any]:
    return _respond(await server.safe_execute_command(
        args.get("command", ""),
        args.get("override_reason"),
    ))


@tool(
    "safe_write_file",
    "Write a file behind the fatigue interlock. Large rewrites are blocked and saved for review while the user is fatigued.",
    {"filepath": str, "content": str, "override_reason": str}
)
async def safe_write_file(args: dict[str, Any]) -> dict[str, Any]:
    return _respond(await server.safe_write_file(
        args.get("filepath", ""),
        args.get("content"),
        args.get("override_reason"),
    ))


def create_interlock_tools_server() -> McpSdkServerConfig:
    """
    Create an in-process MCP server with the interlock tools.

    Returns:
        McpSdkServerConfig to add to mcp_servers
    """
    return create_sdk_mcp_server(
        name="humsana",
        version=__version__,
        tools=[
            get_user_state,
            check_dangerous_command,
            safe_execute_command,
            safe_write_file,
        ]
    )


async def interlock_bash_hook(input_data, tool_use_id=None, context=None):
    """
    Pre-tool-use hook that blocks dangerous Bash commands while the user is fatigued.

    The hook has no way to carry an override reason, so blocked commands
    must go through safe_execute_command instead.

    Args:
        input_data: Dict containing tool_name and tool_input
        tool_use_id: Optional tool use ID
        context: Optional context

    Returns:
        Empty dict to allow, or {"decision": "block", "reason": "..."} to block
    """
    if input_data.get("tool_name") != "Bash":
        return {}

    command = input_data.get("tool_input", {}).get("command", "")
    if not command:
        return {}

    ctx = await build_context()
    check = check_command(ctx, command)
    if not check.is_blocked:
        return {}

    return {
        "decision": "block",
        "reason": (
            f"{check.message} Matched: {', '.join(check.assessment.matched_patterns)}. "
            f"{OVERRIDE_INSTRUCTION}, then run it through safe_execute_command with override_reason."
        ),
    }
