"""MCP server for Tally DAO governance data."""

__version__ = "0.1.0"
