"""Remote session sync."""

from dawn_protocol.sync.cloud_sync import CloudSync

__all__ = ["CloudSync"]
