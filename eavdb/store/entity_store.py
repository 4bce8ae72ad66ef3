"""
Entity Store for eavdb.

The EntityStore is the component callers hold. It owns entity identity
(type tag, display name, active flag, timestamps) and orchestrates the
attribute registry and value store to read and write flat entity views:

    {"entity_id": 12, "entity_type": "course", "name": "CS101 Section",
     "is_active": 1, "created_at": ..., "updated_at": ...,
     "subject_id": 7, "schedule": "MWF 10-11", "lab_required": 1}

Invariants:
    - get_entities_by_type issues one base query and at most one value query,
      independent of the number of entities
    - Base fields win over attributes of the same name in the flat view
    - update_entity only touches allow-listed base columns
    - Deleting an entity leaves no orphaned values

How to change safely:
    - Never reconstruct lists entity by entity
    - Add base columns to UPDATABLE_FIELDS only with a schema migration
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Optional, TypeVar, Union

from ..config import Settings
from ..schema.registry import AttributeRegistry
from ..schema.types import DataType
from .database import Database, now_ms
from .value_store import AttributeSpec, ValueStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Base columns update_entity() may change
UPDATABLE_FIELDS = ("name", "is_active")

BASE_FIELDS = ("entity_id", "entity_type", "name", "is_active", "created_at", "updated_at")


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class EntityStore:
    """Entity persistence and flat reconstruction over the EAV tables.

    Example:
        >>> store = await EntityStore.open(Settings(database_path="/tmp/eav.db"))
        >>> entity_id = await store.create_entity("course", "CS101 Section")
        >>> await store.set_entity_attributes(entity_id, {
        ...     "subject_id": {"value": 7, "type": "number"},
        ...     "lab_required": {"value": True, "type": "boolean"},
        ... })
        >>> (await store.get_entity_by_id(entity_id))["lab_required"]
        1
    """

    def __init__(
        self,
        db: Database,
        registry: Optional[AttributeRegistry] = None,
        values: Optional[ValueStore] = None,
    ) -> None:
        """Initialize the entity store.

        Args:
            db: Database holding the EAV tables
            registry: Attribute registry (a warn-policy registry if omitted)
            values: Value store (built on db and registry if omitted)
        """
        self.db = db
        self.registry = registry or AttributeRegistry(db)
        self.values = values or ValueStore(db, self.registry)

    @classmethod
    async def open(cls, settings: Optional[Settings] = None) -> EntityStore:
        """Create a store from settings and make sure the schema exists."""
        settings = settings or Settings()
        db = Database.from_settings(settings)
        await db.initialize()
        registry = AttributeRegistry(db, type_policy=settings.attribute_type_policy)
        return cls(db, registry)

    async def initialize(self) -> None:
        """Create the EAV schema if it does not exist."""
        await self.db.initialize()

    def transaction(self):
        """Async context manager making the enclosed operations atomic.

        See Database.transaction().
        """
        return self.db.transaction()

    async def with_transaction(self, fn: Callable[[EntityStore], Awaitable[T]]) -> T:
        """Run ``await fn(self)`` inside one transaction and return its result."""
        async with self.db.transaction():
            return await fn(self)

    async def create_entity(
        self,
        entity_type: str,
        name: str,
        *,
        is_active: Union[bool, int] = True,
    ) -> int:
        """Create a new entity without attributes.

        Args:
            entity_type: Type tag grouping entities (e.g. "course")
            name: Display name
            is_active: Initial active flag

        Returns:
            entity_id of the new entity
        """
        now = now_ms()
        async with self.db.write_connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO eav_entities (entity_type, name, is_active, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (entity_type, name, 1 if is_active else 0, now, now),
            )
            entity_id = cursor.lastrowid

        logger.debug(
            "Created entity",
            extra={"entity_id": entity_id, "entity_type": entity_type},
        )
        return entity_id

    async def set_attribute_value(
        self,
        entity_id: int,
        attribute_name: str,
        value: Any,
        data_type: Union[str, DataType],
    ) -> None:
        """Set or clear one attribute. See ValueStore.set_attribute_value()."""
        await self.values.set_attribute_value(entity_id, attribute_name, value, data_type)

    async def set_entity_attributes(
        self,
        entity_id: int,
        attributes: Mapping[str, AttributeSpec],
    ) -> None:
        """Set a batch of attributes. See ValueStore.set_entity_attributes()."""
        await self.values.set_entity_attributes(entity_id, attributes)

    async def get_entity_by_id(self, entity_id: int) -> Optional[dict[str, Any]]:
        """Get an entity with all its attributes as one flat dict.

        Args:
            entity_id: Entity identifier

        Returns:
            Flat entity dict, or None if not found
        """
        with self.db.connection() as conn:
            cursor = conn.execute(
                "SELECT * FROM eav_entities WHERE entity_id = ?",
                (entity_id,),
            )
            row = cursor.fetchone()
        if not row:
            return None

        attributes = await self.values.get_entity_values(entity_id)
        return self._merge(row, attributes)

    async def get_entities_by_type(
        self,
        entity_type: str,
        *,
        is_active: Optional[Union[bool, int]] = None,
    ) -> list[dict[str, Any]]:
        """Get all entities of a type, most recently created first.

        Uses exactly two queries: one for base rows and one for all their
        values. An empty result skips the second query.

        Args:
            entity_type: Type tag
            is_active: Optional filter on the active flag

        Returns:
            List of flat entity dicts
        """
        query = "SELECT * FROM eav_entities WHERE entity_type = ?"
        params: list[Any] = [entity_type]

        if is_active is not None:
            query += " AND is_active = ?"
            params.append(1 if is_active else 0)

        query += " ORDER BY entity_id DESC"

        with self.db.connection() as conn:
            rows = conn.execute(query, params).fetchall()
        if not rows:
            return []

        grouped = await self.values.get_values_for_entities(row["entity_id"] for row in rows)
        return [self._merge(row, grouped.get(row["entity_id"], {})) for row in rows]

    async def update_entity(self, entity_id: int, updates: Mapping[str, Any]) -> None:
        """Update allow-listed base fields of an entity.

        Keys other than "name" and "is_active" are ignored. Nothing is
        executed when no allowed key is present. Missing ids are a no-op.
        """
        sets: list[str] = []
        params: list[Any] = []

        for key, value in updates.items():
            if key not in UPDATABLE_FIELDS:
                logger.debug(f"Ignoring non-updatable entity field: {key}")
                continue
            if key == "is_active":
                value = 1 if value else 0
            sets.append(f"{key} = ?")
            params.append(value)

        if not sets:
            return

        sets.append("updated_at = ?")
        params.extend([now_ms(), entity_id])

        async with self.db.write_connection() as conn:
            conn.execute(
                f"UPDATE eav_entities SET {', '.join(sets)} WHERE entity_id = ?",
                params,
            )

    async def delete_entity(self, entity_id: int) -> None:
        """Delete an entity; its values are removed by cascade.

        Deleting a nonexistent id is a silent no-op.
        """
        async with self.db.write_connection() as conn:
            conn.execute("DELETE FROM eav_entities WHERE entity_id = ?", (entity_id,))

        logger.debug("Deleted entity", extra={"entity_id": entity_id})

    async def search_entities_by_attribute(
        self,
        entity_type: str,
        attribute_name: str,
        search_term: str,
    ) -> list[dict[str, Any]]:
        """Find entities whose string/text attribute contains a substring.

        Matching is case-insensitive for ASCII letters. Each match is then
        loaded with get_entity_by_id(), one lookup per entity.

        Args:
            entity_type: Type tag to restrict to
            attribute_name: Attribute to search
            search_term: Substring to look for

        Returns:
            Matching flat entity dicts, ordered by entity_id
        """
        pattern = f"%{_escape_like(search_term)}%"
        with self.db.connection() as conn:
            cursor = conn.execute(
                """
                SELECT DISTINCT e.entity_id
                FROM eav_entities e
                JOIN eav_values v ON e.entity_id = v.entity_id
                JOIN eav_attributes a ON v.attribute_id = a.attribute_id
                WHERE e.entity_type = ?
                  AND a.attribute_name = ?
                  AND (v.value_string LIKE ? ESCAPE '\\' OR v.value_text LIKE ? ESCAPE '\\')
                ORDER BY e.entity_id
                """,
                (entity_type, attribute_name, pattern, pattern),
            )
            entity_ids = [row["entity_id"] for row in cursor.fetchall()]

        results = []
        for entity_id in entity_ids:
            entity = await self.get_entity_by_id(entity_id)
            if entity is not None:
                results.append(entity)
        return results

    async def get_stats(self) -> dict[str, int]:
        """Get entity, attribute and value counts."""
        return await self.db.get_stats()

    @staticmethod
    def _merge(row: sqlite3.Row, attributes: Mapping[str, Any]) -> dict[str, Any]:
        entity = {field: row[field] for field in BASE_FIELDS}
        for key, value in attributes.items():
            # Base fields take precedence over attributes of the same name
            entity.setdefault(key, value)
        return entity
