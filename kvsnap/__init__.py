"""
KV-Snapshot: In-Memory Key-Value Store with Durable Snapshots

A single-writer in-memory key-value store built with Python asyncio,
periodically snapshotted to disk and restored on startup.
"""

__version__ = "1.0.0"
