"""
durascope: Read-only inspection of Durable Task Framework task hubs.

Discovers task hubs in an Azure Storage account and exposes their
orchestration state, history, queues and large-message blobs as MCP tools.
"""

__version__ = "0.1.0"
