"""ragpipe MCP server (stdio)."""

from .server import RagServerApp, build_app, main

__all__ = ["RagServerApp", "build_app", "main"]
