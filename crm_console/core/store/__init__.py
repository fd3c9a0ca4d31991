"""Domain record store adapters (Department, Role, SystemUser)."""
from .base import RecordStore, StoreError
from .graphql import GraphQLRecordStore
from .memory import InMemoryRecordStore

__all__ = ["RecordStore", "StoreError", "GraphQLRecordStore", "InMemoryRecordStore"]
