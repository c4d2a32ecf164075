"""MCP tools for SSH steps."""

from ssh_steps.tools.steps import ssh_command, ssh_get, ssh_put, ssh_remove, ssh_script

__all__ = ["ssh_command", "ssh_get", "ssh_put", "ssh_remove", "ssh_script"]
