"""
Schema module for eavdb.

This module provides the attribute type system, including:
- Data types and the typed value variants (DataType, StringValue, ...)
- The attribute registry (AttributeRegistry)
- Default attribute descriptions

Invariants:
    - Attribute names are global across entity types
    - The data type of an attribute never changes once registered
"""

from .descriptions import describe_attribute
from .registry import AttributeRegistry
from .types import (
    AttributeDef,
    AttributeValue,
    BooleanValue,
    DataType,
    DateValue,
    NumberValue,
    StringValue,
    TextValue,
    decode_slots,
    encode_value,
    reconstruct_structured,
    to_slots,
)

__all__ = [
    # Types
    "DataType",
    "AttributeDef",
    "AttributeValue",
    "StringValue",
    "NumberValue",
    "TextValue",
    "BooleanValue",
    "DateValue",
    "encode_value",
    "decode_slots",
    "to_slots",
    "reconstruct_structured",
    # Registry
    "AttributeRegistry",
    "describe_attribute",
]
