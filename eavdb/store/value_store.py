"""
Value Store for eavdb.

Persists one typed value per (entity, attribute) pair in eav_values and
reads them back joined with their attribute definitions.

Invariants:
    - Writes are a single INSERT ... ON CONFLICT DO UPDATE statement that sets
      the chosen column and nulls the other four
    - Setting a value to None deletes the row; absent and cleared are the same
    - Type tags and attribute names are validated before any I/O
    - The column written is the one of the attribute's registered type

How to change safely:
    - Never split the upsert into a read followed by insert/update
    - Keep batch writes sequential; atomicity comes from Database.transaction()
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Union

from ..errors import EntityNotFoundError, InvalidAttributeNameError, ReservedAttributeError
from ..schema.registry import AttributeRegistry
from ..schema.types import VALUE_COLUMNS, DataType, decode_slots, encode_value, to_slots
from .database import Database

logger = logging.getLogger(__name__)

# Base entity fields; attribute names may not shadow them in the flat view
RESERVED_FIELDS = frozenset(
    {"entity_id", "entity_type", "name", "is_active", "created_at", "updated_at"}
)

_VALUE_SELECT = ", ".join(f"v.{column}" for column in VALUE_COLUMNS)


@dataclass(frozen=True)
class AttributeInput:
    """One entry of a set_entity_attributes() batch.

    Attributes:
        value: Value to store (None clears the attribute)
        type: Data type tag of the attribute
    """

    value: Any
    type: Union[str, DataType]


AttributeSpec = Union[AttributeInput, Mapping[str, Any]]


def validate_attribute_name(name: Any) -> str:
    """Reject empty names and names reserved for base entity fields."""
    if not isinstance(name, str) or not name.strip():
        raise InvalidAttributeNameError(name)
    if name in RESERVED_FIELDS:
        raise ReservedAttributeError(name)
    return name


class ValueStore:
    """Typed value persistence for entities.

    Example:
        >>> values = ValueStore(db, registry)
        >>> await values.set_attribute_value(7, "capacity", 40, "number")
        >>> await values.get_entity_values(7)
        {'capacity': 40}
    """

    def __init__(self, db: Database, registry: AttributeRegistry) -> None:
        self.db = db
        self.registry = registry

    async def set_attribute_value(
        self,
        entity_id: int,
        attribute_name: str,
        value: Any,
        data_type: Union[str, DataType],
    ) -> None:
        """Set, replace or clear one attribute value of an entity.

        Args:
            entity_id: Entity identifier
            attribute_name: Attribute name (created on first use)
            value: Value to store; None deletes any existing value
            data_type: Data type tag of the attribute

        Raises:
            UnsupportedDataTypeError: If data_type is not supported (no I/O done)
            ReservedAttributeError: If the name shadows a base field (no I/O done)
            InvalidValueError: If value cannot be stored as its type
            EntityNotFoundError: If the entity does not exist
        """
        kind = DataType.from_str(data_type)
        validate_attribute_name(attribute_name)

        if value is None:
            definition = await self.registry.resolve_attribute(attribute_name, kind)
            async with self.db.write_connection() as conn:
                conn.execute(
                    "DELETE FROM eav_values WHERE entity_id = ? AND attribute_id = ?",
                    (entity_id, definition.attribute_id),
                )
            logger.debug(
                "Cleared attribute value",
                extra={"entity_id": entity_id, "attribute": attribute_name},
            )
            return

        typed = encode_value(kind, value, attribute_name)
        definition = await self.registry.resolve_attribute(attribute_name, kind)
        if definition.data_type is not kind:
            typed = encode_value(definition.data_type, value, attribute_name)

        slots = to_slots(typed)
        assignments = ", ".join(f"{column} = excluded.{column}" for column in VALUE_COLUMNS)
        async with self.db.write_connection() as conn:
            try:
                conn.execute(
                    f"""
                    INSERT INTO eav_values (entity_id, attribute_id, {", ".join(VALUE_COLUMNS)})
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(entity_id, attribute_id) DO UPDATE SET {assignments}
                    """,
                    (entity_id, definition.attribute_id, *(slots[c] for c in VALUE_COLUMNS)),
                )
            except sqlite3.IntegrityError as exc:
                if "FOREIGN KEY" in str(exc):
                    raise EntityNotFoundError(entity_id) from exc
                raise

        logger.debug(
            "Upserted attribute value",
            extra={
                "entity_id": entity_id,
                "attribute": attribute_name,
                "data_type": definition.data_type.value,
            },
        )

    async def set_entity_attributes(
        self,
        entity_id: int,
        attributes: Mapping[str, AttributeSpec],
    ) -> None:
        """Set a batch of attributes, one upsert (or delete) per entry.

        Entries are mappings with "value" and "type" keys, or AttributeInput.
        A mapping without a "value" key is skipped; a value of None clears
        the attribute. All names and types are checked before the first write.

        Not atomic on its own: a failure on entry N leaves entries before it
        written. Wrap the call in Database.transaction() for all-or-nothing.
        """
        batch: list[tuple[str, Any, DataType]] = []
        for name, spec in attributes.items():
            if isinstance(spec, AttributeInput):
                value, data_type = spec.value, spec.type
            else:
                if "value" not in spec:
                    continue
                value, data_type = spec["value"], spec.get("type")
            validate_attribute_name(name)
            batch.append((name, value, DataType.from_str(data_type)))

        for name, value, kind in batch:
            await self.set_attribute_value(entity_id, name, value, kind)

    async def get_entity_values(self, entity_id: int) -> dict[str, Any]:
        """Get all attribute values of one entity, keyed by attribute name."""
        with self.db.connection() as conn:
            cursor = conn.execute(
                f"""
                SELECT a.attribute_name, a.data_type, {_VALUE_SELECT}
                FROM eav_values v
                JOIN eav_attributes a ON v.attribute_id = a.attribute_id
                WHERE v.entity_id = ?
                """,
                (entity_id,),
            )
            return {
                row["attribute_name"]: decode_slots(row["data_type"], row)
                for row in cursor.fetchall()
            }

    async def get_values_for_entities(
        self,
        entity_ids: Iterable[int],
    ) -> dict[int, dict[str, Any]]:
        """Get attribute values of many entities with a single query.

        Returns:
            Mapping of entity_id to its attribute values; entities without
            values are absent
        """
        ids = list(entity_ids)
        if not ids:
            return {}

        grouped: dict[int, dict[str, Any]] = {}
        with self.db.connection() as conn:
            # One bound parameter regardless of how many ids are requested
            cursor = conn.execute(
                f"""
                SELECT v.entity_id, a.attribute_name, a.data_type, {_VALUE_SELECT}
                FROM eav_values v
                JOIN eav_attributes a ON v.attribute_id = a.attribute_id
                WHERE v.entity_id IN (SELECT value FROM json_each(?))
                """,
                (json.dumps(ids),),
            )
            for row in cursor.fetchall():
                grouped.setdefault(row["entity_id"], {})[row["attribute_name"]] = decode_slots(
                    row["data_type"], row
                )
        return grouped

    async def get_raw_slots(self, entity_id: int, attribute_name: str) -> dict[str, Any] | None:
        """Get the five stored columns of one value row, undecoded.

        Returns:
            Column name to stored value, or None if no row exists
        """
        with self.db.connection() as conn:
            cursor = conn.execute(
                f"""
                SELECT {_VALUE_SELECT}
                FROM eav_values v
                JOIN eav_attributes a ON v.attribute_id = a.attribute_id
                WHERE v.entity_id = ? AND a.attribute_name = ?
                """,
                (entity_id, attribute_name),
            )
            row = cursor.fetchone()
            return {column: row[column] for column in VALUE_COLUMNS} if row else None
