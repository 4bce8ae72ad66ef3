"""
eavdb - a generic Entity-Attribute-Value engine on SQLite.

Domain records (courses, subjects, rooms, maintenance requests) are stored
as rows of typed attribute values instead of fixed columns, so each entity
type can carry an open-ended set of attributes without schema migrations.

Architecture:
    ┌──────────────────────┐
    │  Domain repositories │  courses, subjects, rooms, maintenance
    └──────────┬───────────┘
               ▼
    ┌──────────────────────┐
    │     EntityStore      │  identity, flat reconstruction, search
    └─────┬──────────┬─────┘
          ▼          ▼
    ┌──────────┐ ┌──────────────────┐
    │ValueStore│→│AttributeRegistry │
    └────┬─────┘ └────────┬─────────┘
         ▼                ▼
    ┌──────────────────────────────┐
    │ SQLite (entities/attributes/ │
    │          values)             │
    └──────────────────────────────┘

Invariants:
    - Attribute names are global and their type is fixed by the first writer
    - Exactly one typed column is populated per stored value
    - Deleting an entity deletes its values

Version: see _version.py.
"""

from ._version import __version__
from .config import Settings
from .store import Database, EntityStore

__all__ = ["__version__", "Settings", "Database", "EntityStore"]
