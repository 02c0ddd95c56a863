"""MCP tools for feedkeeper."""
