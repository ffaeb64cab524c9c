"""WebSocket transport: seats connections at tables and relays actions to the engine."""

from .server import TableActor, TableRegistry, TableServer

__all__ = ["TableActor", "TableRegistry", "TableServer"]
