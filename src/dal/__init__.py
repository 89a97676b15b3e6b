"""Data Abstraction Layer (DAL) for the MCP Server.

This package exposes the backend client used by the lifecycle coordinator and
the tool handlers. Only the coordinator constructs clients; tools receive them
through the dispatch gate.
"""

from dal.pocketbase import PocketBaseClient, PocketBaseConnectionError, PocketBaseError

__all__ = [
    "PocketBaseClient",
    "PocketBaseConnectionError",
    "PocketBaseError",
]
