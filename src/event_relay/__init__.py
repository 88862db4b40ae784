"""Store-and-forward event relay for analytics SDKs."""

from .client import RelayClient
from .config import ClientConfig
from .events import Action, Event, EventContext, Group, Page, Session, User
from .store import FileStore, MemoryStore, Store, StoredEvent

__all__ = [
    "RelayClient",
    "ClientConfig",
    "Event",
    "EventContext",
    "Group",
    "Page",
    "Action",
    "Session",
    "User",
    "Store",
    "StoredEvent",
    "MemoryStore",
    "FileStore",
]
