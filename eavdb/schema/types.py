"""
Core type definitions for the eavdb attribute system.

This module defines the foundational types shared by the registry and stores:
- DataType: The five supported attribute kinds
- AttributeDef: A registered, immutable attribute definition
- StringValue / NumberValue / TextValue / BooleanValue / DateValue:
  the closed set of typed values a Value row can hold

Every write goes through encode_value() and to_slots(); every read goes
through decode_slots(). Those three functions are the only places that know
how a kind maps onto the five storage columns.

Invariants:
    - Exactly one of the five value columns is non-null for a stored value
    - The populated column matches the attribute's registered DataType
    - Booleans are stored as integers 1/0 and read back as 1/0
    - Dict/list payloads of string/text attributes are stored as JSON text

How to change safely:
    - Adding a kind needs a new column, a new value class, and a branch in
      every function below; the storage CHECK constraint must be updated too
    - Never change the column of an existing kind

Example:
    >>> value = encode_value("text", ["a", "b"])
    >>> value
    TextValue(value='["a", "b"]', structured=True)
    >>> to_slots(value)["value_text"]
    '["a", "b"]'
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Mapping, Union

from ..errors import InvalidValueError, UnsupportedDataTypeError


class DataType(Enum):
    """Supported attribute data types.

    Each kind owns exactly one storage column in the values table.
    """

    STRING = "string"
    NUMBER = "number"
    TEXT = "text"
    BOOLEAN = "boolean"
    DATE = "date"

    @classmethod
    def from_str(cls, value: Union[str, DataType]) -> DataType:
        """Convert a type tag to DataType.

        Args:
            value: Type tag such as "string", or a DataType

        Returns:
            Corresponding DataType enum value

        Raises:
            UnsupportedDataTypeError: If value is not a supported tag
        """
        if isinstance(value, DataType):
            return value
        for kind in cls:
            if kind.value == value:
                return kind
        raise UnsupportedDataTypeError(value, [k.value for k in cls])

    @property
    def column(self) -> str:
        """Name of the storage column holding values of this kind."""
        return f"value_{self.value}"


# Column order used by every statement touching eav_values
VALUE_COLUMNS: tuple[str, ...] = tuple(kind.column for kind in DataType)

_BOOLEAN_STRINGS = {
    "true": 1,
    "1": 1,
    "yes": 1,
    "false": 0,
    "0": 0,
    "no": 0,
    "": 0,
}


@dataclass(frozen=True)
class AttributeDef:
    """Definition of a single attribute in the global registry.

    Attributes:
        attribute_id: Stable numeric identifier
        name: Globally unique attribute name
        data_type: Kind fixed by the first writer
        description: Human-readable description
    """

    attribute_id: int
    name: str
    data_type: DataType
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "attribute_id": self.attribute_id,
            "name": self.name,
            "data_type": self.data_type.value,
            "description": self.description,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> AttributeDef:
        """Create from an eav_attributes row."""
        return cls(
            attribute_id=row["attribute_id"],
            name=row["attribute_name"],
            data_type=DataType.from_str(row["data_type"]),
            description=row["description"] or "",
        )


@dataclass(frozen=True)
class StringValue:
    """Short string.

    structured records that value was encoded from a dict or list. It is
    not persisted: the table has no column for it, and reads go through
    reconstruct_structured() instead.
    """

    value: str
    structured: bool = False
    data_type: ClassVar[DataType] = DataType.STRING


@dataclass(frozen=True)
class NumberValue:
    value: Union[int, float]
    data_type: ClassVar[DataType] = DataType.NUMBER


@dataclass(frozen=True)
class TextValue:
    """Arbitrary-length text.

    structured records that value was encoded from a dict or list. It is
    not persisted: the table has no column for it, and reads go through
    reconstruct_structured() instead.
    """

    value: str
    structured: bool = False
    data_type: ClassVar[DataType] = DataType.TEXT


@dataclass(frozen=True)
class BooleanValue:
    value: int
    data_type: ClassVar[DataType] = DataType.BOOLEAN


@dataclass(frozen=True)
class DateValue:
    """Date or timestamp, kept as ISO-8601 text."""

    value: str
    data_type: ClassVar[DataType] = DataType.DATE


AttributeValue = Union[StringValue, NumberValue, TextValue, BooleanValue, DateValue]


def encode_value(
    data_type: Union[str, DataType],
    raw: Any,
    attribute_name: str | None = None,
) -> AttributeValue:
    """Coerce a caller-supplied value into its typed representation.

    Args:
        data_type: Target kind
        raw: Non-null value to store
        attribute_name: Used for error context only

    Returns:
        Typed value ready for to_slots()

    Raises:
        UnsupportedDataTypeError: If data_type is unknown
        InvalidValueError: If raw cannot be represented in that kind
    """
    kind = DataType.from_str(data_type)
    if raw is None:
        raise InvalidValueError("None cannot be encoded; clear the value instead", attribute_name)

    if kind in (DataType.STRING, DataType.TEXT):
        structured = False
        if isinstance(raw, (dict, list, tuple)):
            text = json.dumps(raw)
            structured = True
        elif isinstance(raw, (datetime, date)):
            text = raw.isoformat()
        else:
            text = str(raw)
        if kind is DataType.STRING:
            return StringValue(text, structured)
        return TextValue(text, structured)

    if kind is DataType.NUMBER:
        return NumberValue(_to_number(raw, attribute_name))

    if kind is DataType.BOOLEAN:
        if isinstance(raw, str):
            key = raw.strip().lower()
            if key not in _BOOLEAN_STRINGS:
                raise InvalidValueError(
                    f"Cannot interpret {raw!r} as boolean", attribute_name
                )
            return BooleanValue(_BOOLEAN_STRINGS[key])
        return BooleanValue(1 if raw else 0)

    if kind is DataType.DATE:
        return DateValue(_to_iso(raw, attribute_name))

    raise UnsupportedDataTypeError(data_type, [k.value for k in DataType])


def to_slots(value: AttributeValue) -> dict[str, Any]:
    """Map a typed value onto all five storage columns.

    The column of the value's kind is populated; the other four are None.
    """
    slots: dict[str, Any] = dict.fromkeys(VALUE_COLUMNS)
    if isinstance(value, (StringValue, TextValue, NumberValue, BooleanValue, DateValue)):
        slots[value.data_type.column] = value.value
        return slots
    raise TypeError(f"Not an attribute value: {value!r}")


def decode_slots(data_type: Union[str, DataType], row: Mapping[str, Any]) -> Any:
    """Read the value of a joined values row.

    Only the column matching the declared kind is consulted.

    Args:
        data_type: Declared kind of the attribute
        row: Row exposing the five value columns

    Returns:
        The reconstructed Python value (or None if the slot is empty)
    """
    kind = DataType.from_str(data_type)
    value = row[kind.column]
    if value is None:
        return None

    if kind is DataType.NUMBER:
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return value

    if kind in (DataType.STRING, DataType.TEXT):
        return reconstruct_structured(value)

    if kind is DataType.DATE:
        return _from_iso(value)

    return value


def reconstruct_structured(raw: Any) -> Any:
    """Turn JSON text back into a dict or list.

    Only non-empty objects and arrays are promoted. Scalars ("42", "true")
    and empty containers ("{}", "[]") stay as the raw string.
    """
    if not raw or not isinstance(raw, str):
        return raw
    try:
        parsed = json.loads(raw)
    except ValueError:
        return raw
    if isinstance(parsed, (dict, list)) and parsed:
        return parsed
    return raw


def _to_number(raw: Any, attribute_name: str | None) -> Union[int, float]:
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, Decimal):
        raw = float(raw)
    if isinstance(raw, str):
        try:
            raw = float(raw.strip())
        except ValueError:
            raise InvalidValueError(f"Cannot interpret {raw!r} as number", attribute_name)
    if not isinstance(raw, (int, float)):
        raise InvalidValueError(
            f"Cannot interpret {type(raw).__name__} as number", attribute_name
        )
    if isinstance(raw, float) and math.isnan(raw):
        raise InvalidValueError("NaN cannot be stored", attribute_name)
    return raw


def _to_iso(raw: Any, attribute_name: str | None) -> str:
    if isinstance(raw, (datetime, date)):
        return raw.isoformat()
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        # Unix milliseconds
        return datetime.fromtimestamp(raw / 1000.0, tz=timezone.utc).isoformat()
    if isinstance(raw, str):
        try:
            parsed = _from_iso_strict(raw.strip())
        except ValueError:
            raise InvalidValueError(f"Cannot interpret {raw!r} as date", attribute_name)
        # Basic format ("20240101") is stored in extended form
        return parsed.isoformat()
    raise InvalidValueError(f"Cannot interpret {type(raw).__name__} as date", attribute_name)


def _from_iso_strict(text: str) -> Union[date, datetime]:
    try:
        return date.fromisoformat(text)
    except ValueError:
        return datetime.fromisoformat(text)


def _from_iso(text: Any) -> Any:
    if not isinstance(text, str):
        return text
    try:
        return _from_iso_strict(text)
    except ValueError:
        return text
