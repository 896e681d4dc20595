"""Persistence layer."""

from presence_guard.storage.base import CommitLimits, PresenceStore, challenge_rejection
from presence_guard.storage.memory import InMemoryPresenceStore
from presence_guard.storage.dynamodb import DynamoDBPresenceStore
from presence_guard.storage.catalog import (
    DynamoDBTargetCatalog,
    InMemoryTargetCatalog,
    TargetCatalog,
)

__all__ = [
    "CommitLimits",
    "PresenceStore",
    "challenge_rejection",
    "InMemoryPresenceStore",
    "DynamoDBPresenceStore",
    "DynamoDBTargetCatalog",
    "InMemoryTargetCatalog",
    "TargetCatalog",
]
