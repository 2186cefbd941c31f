# src/durascope/mcp/analyzers/__init__.py
"""Domain-specific analyzer submodules for the task hub MCP server.

Submodules:
    discovery: Task hub discovery and resource probes
    instances: Instance listing, lookup and prefix search
    history: History retrieval, classification, correlation, summary
    aggregation: Status counts over a whole task hub
    queues: Queue listing, depth and peek
    blobs: Containers and large-message payloads
    diagnostics: Task hub health check
"""
