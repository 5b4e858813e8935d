"""Manage MCP configuration files through profiles and groups of server templates."""

__version__ = "0.1.0"

__all__ = ["config", "errors", "group", "interaction", "mcpconfig", "profile"]