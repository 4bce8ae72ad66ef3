"""
Error types for eavdb.

This module defines all exception types raised by the engine:
- EavError: Base exception
- UnsupportedDataTypeError: Unknown attribute type tag
- InvalidValueError: Value cannot be stored in the requested slot
- InvalidAttributeNameError: Empty or malformed attribute name
- ReservedAttributeError: Attribute name collides with a base entity field
- AttributeTypeMismatchError: Registered type differs from requested type
- EntityNotFoundError: Write against an entity that does not exist
- DatabaseNotInitializedError: Store used before its schema exists

Invariants:
    - All errors inherit from EavError
    - Programmer errors (bad type tag, bad value) also inherit from ValueError
    - Errors are raised before any I/O whenever the input alone is invalid

Storage failures that are not mapped here propagate as sqlite3 exceptions.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class EavError(Exception):
    """Base exception for all eavdb errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "EAV_ERROR"
        self.details = details or {}


class UnsupportedDataTypeError(EavError, ValueError):
    """Attribute data type tag is not one of the supported kinds."""

    def __init__(self, data_type: Any, valid: Optional[list[str]] = None) -> None:
        valid = valid or []
        super().__init__(
            f"Invalid data type '{data_type}'. Valid types: {valid}",
            code="UNSUPPORTED_DATA_TYPE",
            details={"data_type": data_type, "valid": valid},
        )
        self.data_type = data_type


class InvalidValueError(EavError, ValueError):
    """Value cannot be coerced into the slot of its data type."""

    def __init__(self, message: str, attribute_name: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="INVALID_VALUE",
            details={"attribute": attribute_name},
        )
        self.attribute_name = attribute_name


class InvalidAttributeNameError(EavError, ValueError):
    """Attribute name is empty or not a string."""

    def __init__(self, attribute_name: Any) -> None:
        super().__init__(
            f"Invalid attribute name: {attribute_name!r}",
            code="INVALID_ATTRIBUTE_NAME",
            details={"attribute": attribute_name},
        )
        self.attribute_name = attribute_name


class ReservedAttributeError(EavError, ValueError):
    """Attribute name would shadow a base entity field on read."""

    def __init__(self, attribute_name: str) -> None:
        super().__init__(
            f"Attribute name '{attribute_name}' is reserved for a base entity field",
            code="RESERVED_ATTRIBUTE",
            details={"attribute": attribute_name},
        )
        self.attribute_name = attribute_name


class AttributeTypeMismatchError(EavError):
    """Attribute is already registered with a different data type.

    Only raised when the registry runs with the strict type policy.
    """

    def __init__(self, attribute_name: str, registered: str, requested: str) -> None:
        super().__init__(
            f"Attribute '{attribute_name}' is registered as '{registered}', "
            f"cannot use it as '{requested}'",
            code="ATTRIBUTE_TYPE_MISMATCH",
            details={
                "attribute": attribute_name,
                "registered": registered,
                "requested": requested,
            },
        )
        self.attribute_name = attribute_name
        self.registered = registered
        self.requested = requested


class EntityNotFoundError(EavError):
    """A value write referenced an entity that does not exist."""

    def __init__(self, entity_id: Any) -> None:
        super().__init__(
            f"Entity not found: {entity_id}",
            code="ENTITY_NOT_FOUND",
            details={"entity_id": entity_id},
        )
        self.entity_id = entity_id


class DatabaseNotInitializedError(EavError):
    """Database file has not been created by initialize()."""

    def __init__(self, path: str) -> None:
        super().__init__(
            f"EAV schema not initialized in {path}; call initialize() first",
            code="NOT_INITIALIZED",
            details={"path": path},
        )
        self.path = path
