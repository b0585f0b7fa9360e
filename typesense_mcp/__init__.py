"""MCP server exposing Typesense collections, search and prompts over stdio."""

__version__ = "1.0.0"
