"""
Attribute Registry for eavdb.

The AttributeRegistry is the central authority for attribute definitions.
It provides:
- Get-or-create of attributes by name
- Lookup by name and listing of all definitions
- Enforcement of the "first writer wins the type" contract

Attribute names are global: a "notes" attribute used by maintenance
requests and by courses is the same definition with the same data type.

Invariants:
    - attribute_name is unique across all entity types
    - A definition is never renamed or retyped once created
    - Creation relies on the UNIQUE constraint, never on check-then-insert

How to change safely:
    - Never add an operation that alters data_type of an existing row
    - Keep the insert path conflict-tolerant (ON CONFLICT DO NOTHING)

Example:
    >>> registry = AttributeRegistry(db)
    >>> attribute_id = await registry.get_or_create_attribute("capacity", "number")
    >>> (await registry.get_attribute("capacity")).data_type
    <DataType.NUMBER: 'number'>
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Optional, Union

from ..errors import AttributeTypeMismatchError, InvalidAttributeNameError
from .descriptions import describe_attribute
from .types import AttributeDef, DataType

logger = logging.getLogger(__name__)

TYPE_POLICIES = ("warn", "strict")


class AttributeRegistry:
    """Global registry of attribute definitions backed by eav_attributes.

    Attributes:
        type_policy: "warn" returns the registered definition and logs a
            warning when a caller asks for a different type; "strict"
            raises AttributeTypeMismatchError instead.
    """

    def __init__(self, db, type_policy: str = "warn") -> None:
        """Initialize the registry.

        Args:
            db: Database holding the eav_attributes table
            type_policy: Mismatched-type policy ("warn" or "strict")
        """
        if type_policy not in TYPE_POLICIES:
            raise ValueError(
                f"Invalid type policy '{type_policy}'. Valid policies: {list(TYPE_POLICIES)}"
            )
        self.db = db
        self.type_policy = type_policy

    async def get_or_create_attribute(
        self,
        name: str,
        data_type: Union[str, DataType],
        description: Optional[str] = None,
    ) -> int:
        """Get the id of an attribute, creating it on first use.

        Args:
            name: Attribute name
            data_type: Requested data type
            description: Optional description (generated from the name if omitted)

        Returns:
            attribute_id of the existing or new definition

        Raises:
            InvalidAttributeNameError: If name is empty
            UnsupportedDataTypeError: If data_type is not supported
            AttributeTypeMismatchError: Strict policy and the registered type differs
        """
        definition = await self.resolve_attribute(name, data_type, description)
        return definition.attribute_id

    async def resolve_attribute(
        self,
        name: str,
        data_type: Union[str, DataType],
        description: Optional[str] = None,
    ) -> AttributeDef:
        """Get the full definition of an attribute, creating it on first use.

        See get_or_create_attribute() for arguments and errors.
        """
        if not isinstance(name, str) or not name.strip():
            raise InvalidAttributeNameError(name)
        kind = DataType.from_str(data_type)

        with self.db.connection() as conn:
            definition = self._fetch(conn, name)

        if definition is None:
            async with self.db.write_connection() as conn:
                conn.execute(
                    """
                    INSERT INTO eav_attributes (attribute_name, data_type, description)
                    VALUES (?, ?, ?)
                    ON CONFLICT(attribute_name) DO NOTHING
                    """,
                    (name, kind.value, description or describe_attribute(name)),
                )
                # Re-read: a concurrent writer may have won the insert
                definition = self._fetch(conn, name)
                if definition is None:
                    raise sqlite3.IntegrityError(f"Attribute '{name}' vanished after insert")
                if definition.data_type is kind:
                    logger.debug(
                        f"Registered attribute: {name} ({kind.value}, "
                        f"attribute_id={definition.attribute_id})"
                    )

        if definition.data_type is not kind:
            self._on_mismatch(definition, kind)
        return definition

    async def get_attribute(self, name: str) -> Optional[AttributeDef]:
        """Get an attribute definition by name.

        Returns:
            AttributeDef if registered, None otherwise
        """
        with self.db.connection() as conn:
            return self._fetch(conn, name)

    async def list_attributes(self) -> list[AttributeDef]:
        """List all attribute definitions, ordered by name."""
        with self.db.connection() as conn:
            cursor = conn.execute(
                "SELECT attribute_id, attribute_name, data_type, description "
                "FROM eav_attributes ORDER BY attribute_name"
            )
            return [AttributeDef.from_row(row) for row in cursor.fetchall()]

    def _fetch(self, conn: sqlite3.Connection, name: str) -> Optional[AttributeDef]:
        cursor = conn.execute(
            "SELECT attribute_id, attribute_name, data_type, description "
            "FROM eav_attributes WHERE attribute_name = ?",
            (name,),
        )
        row = cursor.fetchone()
        return AttributeDef.from_row(row) if row else None

    def _on_mismatch(self, definition: AttributeDef, requested: DataType) -> None:
        if self.type_policy == "strict":
            raise AttributeTypeMismatchError(
                definition.name, definition.data_type.value, requested.value
            )
        logger.warning(
            f"Attribute '{definition.name}' requested as '{requested.value}' but is "
            f"registered as '{definition.data_type.value}'; using registered type"
        )
