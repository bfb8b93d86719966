"""
Humsana MCP Server
==================

Stdio MCP server exposing the cognitive interlock to desktop MCP clients.

Each tool call loads a fresh config and fatigue reading; nothing is cached
between calls.

Run directly:
    python -m humsana.server
"""

from pathlib import Path
from typing import Optional

from mcp.server.fastmcp import FastMCP

from humsana.config import HumsanaPaths
from humsana.interlock import build_context, check_command, execute_command, write_file
from humsana.state import load_user_state


mcp = FastMCP("humsana")


# Tool name constants for registration
INTERLOCK_TOOLS = [
    "mcp__humsana__get_user_state",
    "mcp__humsana__check_dangerous_command",
    "mcp__humsana__safe_execute_command",
    "mcp__humsana__safe_write_file",
]


def _missing(argument: str) -> dict:
    return {"success": False, "error": f"Missing required argument: {argument}"}


@mcp.tool()
async def get_user_state() -> dict:
    """
    Get the user's current behavioral state.

    Returns stress, focus, fatigue and how long they have been working,
    plus recommendations for how to pitch your reply. Call this before
    responding to adapt your style.
    """
    state = await load_user_state(HumsanaPaths.from_env())
    return state.to_dict()


@mcp.tool()
async def check_dangerous_command(command: str) -> dict:
    """
    Check whether a shell command is dangerous and would be blocked right now.

    Does not run anything. Use this before suggesting a destructive command.

    Args:
        command: The shell command to check
    """
    if not command or not command.strip():
        return _missing("command")
    ctx = await build_context()
    return check_command(ctx, command).to_dict()


@mcp.tool()
async def safe_execute_command(command: str, override_reason: Optional[str] = None) -> dict:
    """
    Execute a shell command behind the fatigue interlock.

    Dangerous commands are blocked while the user is fatigued. If blocked,
    ask the user to reply with "OVERRIDE SAFETY PROTOCOL: [reason]" and pass
    that reason as override_reason. In dry_run mode nothing is executed.

    Args:
        command: The shell command to execute
        override_reason: Reason given by the user to bypass a block
    """
    if not command or not command.strip():
        return _missing("command")
    ctx = await build_context()
    return execute_command(ctx, command, override_reason).to_dict()


@mcp.tool()
async def safe_write_file(filepath: str, content: str, override_reason: Optional[str] = None) -> dict:
    """
    Write a file behind the fatigue interlock.

    Rewrites that delete many lines are blocked while the user is fatigued;
    blocked content is saved to ~/.humsana/pending_reviews for later review.
    Use this instead of writing files directly.

    Args:
        filepath: Absolute path of the file to write
        content: Full new content of the file
        override_reason: Reason given by the user to bypass a block
    """
    if not filepath or not filepath.strip():
        return _missing("filepath")
    if content is None:
        return _missing("content")
    ctx = await build_context()
    return write_file(ctx, filepath, content, override_reason).to_dict()


def create_interlock_server_config(project_dir: Path) -> dict:
    """
    Create the stdio server configuration for an MCP client.

    Args:
        project_dir: Working directory for the server process

    Returns:
        Server configuration dict for claude-code-sdk
    """
    return {
        "type": "stdio",
        "command": "python",
        "args": ["-m", "humsana.server"],
        "cwd": str(project_dir),
    }


def run() -> None:
    mcp.run()


if __name__ == "__main__":
    run()
