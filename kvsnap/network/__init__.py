"""Network module for KV-Snapshot."""

from .tcp_server import KVServer

__all__ = ["KVServer"]
