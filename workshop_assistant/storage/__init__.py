"""Storage module."""

from .storage import (
    IAccountStore,
    IChatHistoryStore,
    IRegistrationStore,
    IStorage,
    IWorkshopDirectory,
    Storage,
    title_candidates,
)

__all__ = [
    "IAccountStore",
    "IChatHistoryStore",
    "IRegistrationStore",
    "IStorage",
    "IWorkshopDirectory",
    "Storage",
    "title_candidates",
]
