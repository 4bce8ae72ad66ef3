"""
Store module for eavdb - entity and value persistence.

This module handles:
- The SQLite database and its transaction boundary (Database)
- Typed value rows per (entity, attribute) (ValueStore)
- Entity identity and flat reconstruction (EntityStore)

Invariants:
    - Values never outlive their entity
    - Listing entities of a type costs two queries regardless of count
"""

from .database import Database
from .entity_store import EntityStore
from .value_store import RESERVED_FIELDS, AttributeInput, ValueStore

__all__ = [
    "Database",
    "EntityStore",
    "ValueStore",
    "AttributeInput",
    "RESERVED_FIELDS",
]
