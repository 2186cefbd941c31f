# src/durascope/mcp/analyzers/blobs.py
"""Blob container and large-message inspection.

Functions: large_messages_container, list_task_hub_containers,
list_large_messages, get_large_message_content.

Payloads too large for a queue message are stored in the hub's
``<hub>-largemessages`` container. Content is returned as text with
best-effort JSON detection; nothing else about the payload is
interpreted.

All functions accept the blob store as their first parameter.
"""

from __future__ import annotations

from durascope.core.formatters import detect_content
from durascope.core.logging import get_logger
from durascope.mcp.types import ContainerListReport, LargeMessageContent, LargeMessageListReport
from durascope.storage.protocols import BlobStore

logger = get_logger(__name__)


def large_messages_container(task_hub: str) -> str:
    return f"{task_hub.lower()}-largemessages"


async def list_task_hub_containers(blobs: BlobStore, task_hub: str) -> ContainerListReport:
    """Containers named ``<hub>-...`` (large messages, leases, ...)."""
    prefix = f"{task_hub.lower()}-"
    names = [name for name in await blobs.list_containers(prefix) if name.lower().startswith(prefix)]
    return {"task_hub": task_hub, "containers": names}


async def list_large_messages(blobs: BlobStore, task_hub: str, *, limit: int = 100) -> LargeMessageListReport:
    """Blob names in the hub's large-message container (empty if absent)."""
    container = large_messages_container(task_hub)
    names = await blobs.list_blobs(container, limit=max(limit, 0))
    return {
        "task_hub": task_hub,
        "container": container,
        "count": len(names),
        "blobs": names,
    }


async def get_large_message_content(blobs: BlobStore, task_hub: str, blob_name: str) -> LargeMessageContent | None:
    """Download one large message.

    Returns:
        Content with its detected type, or None if the blob (or the
        container) does not exist
    """
    text = await blobs.download_text(large_messages_container(task_hub), blob_name)
    if text is None:
        return None
    content_type, content = detect_content(text)
    logger.debug("large_message_read", task_hub=task_hub, blob=blob_name, content_type=content_type)
    return {
        "task_hub": task_hub,
        "blob_name": blob_name,
        "content_type": content_type,
        "size": len(text),
        "content": content,
    }
