"""
Unit tests for the value store.

Tests cover:
- Round trip per data type
- Clearing with None
- Slot exclusivity across overwrites
- Batch writes and input validation before I/O
"""

import os
import tempfile
from datetime import date

import pytest

from eavdb.errors import (
    EntityNotFoundError,
    InvalidAttributeNameError,
    InvalidValueError,
    ReservedAttributeError,
    UnsupportedDataTypeError,
)
from eavdb.schema.registry import AttributeRegistry
from eavdb.store.database import Database
from eavdb.store.entity_store import EntityStore
from eavdb.store.value_store import AttributeInput, ValueStore


class TestValueStore:
    """Tests for ValueStore."""

    @pytest.fixture
    def data_dir(self):
        """Create temporary data directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    @pytest.fixture
    def store(self, data_dir):
        return EntityStore(Database(os.path.join(data_dir, "eav.db"), wal_mode=False))

    @pytest.fixture
    def values(self, store):
        return store.values

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "data_type,value,expected",
        [
            ("string", "Science Hall", "Science Hall"),
            ("number", 40, 40),
            ("number", 2.75, 2.75),
            ("text", "Bring a laptop", "Bring a laptop"),
            ("boolean", True, 1),
            ("boolean", False, 0),
            ("date", "2024-09-01", date(2024, 9, 1)),
            ("date", "20240901", date(2024, 9, 1)),
        ],
    )
    async def test_round_trip(self, store, values, data_type, value, expected):
        """Values read back as their type's canonical form."""
        await store.initialize()
        entity_id = await store.create_entity("room", "R1")

        await values.set_attribute_value(entity_id, "field", value, data_type)

        assert (await values.get_entity_values(entity_id))["field"] == expected

    @pytest.mark.asyncio
    async def test_structured_round_trip(self, store, values):
        await store.initialize()
        entity_id = await store.create_entity("course", "C1")
        schedule = {"days": ["Mon", "Wed"], "time": "10:00"}

        await values.set_attribute_value(entity_id, "schedule", schedule, "text")

        assert (await values.get_entity_values(entity_id))["schedule"] == schedule

    @pytest.mark.asyncio
    async def test_json_scalar_text_stays_string(self, store, values):
        """Text "42" is not turned into a number; a JSON list is parsed."""
        await store.initialize()
        entity_id = await store.create_entity("course", "C1")

        await values.set_attribute_value(entity_id, "notes", "42", "text")
        await values.set_attribute_value(entity_id, "prerequisites", ["CS100"], "text")

        stored = await values.get_entity_values(entity_id)
        assert stored["notes"] == "42"
        assert stored["prerequisites"] == ["CS100"]

    @pytest.mark.asyncio
    async def test_overwrite_keeps_one_row(self, store, values):
        await store.initialize()
        entity_id = await store.create_entity("room", "R1")

        await values.set_attribute_value(entity_id, "capacity", 30, "number")
        await values.set_attribute_value(entity_id, "capacity", 45, "number")

        assert (await values.get_entity_values(entity_id)) == {"capacity": 45}
        assert (await store.get_stats())["values"] == 1

    @pytest.mark.asyncio
    async def test_none_clears(self, store, values):
        """Setting None deletes the value; absent and cleared look the same."""
        await store.initialize()
        entity_id = await store.create_entity("room", "R1")
        await values.set_attribute_value(entity_id, "floor", "2", "string")

        await values.set_attribute_value(entity_id, "floor", None, "string")

        assert "floor" not in await values.get_entity_values(entity_id)
        assert await values.get_raw_slots(entity_id, "floor") is None

    @pytest.mark.asyncio
    async def test_clear_missing_is_noop(self, store, values):
        await store.initialize()
        entity_id = await store.create_entity("room", "R1")

        await values.set_attribute_value(entity_id, "floor", None, "string")

        assert await values.get_entity_values(entity_id) == {}

    @pytest.mark.asyncio
    async def test_slot_exclusivity(self, store, values):
        """Exactly the registered type's column holds the value."""
        await store.initialize()
        entity_id = await store.create_entity("room", "R1")

        await values.set_attribute_value(entity_id, "is_available", True, "boolean")
        await values.set_attribute_value(entity_id, "is_available", False, "boolean")

        slots = await values.get_raw_slots(entity_id, "is_available")
        assert slots == {
            "value_string": None,
            "value_number": None,
            "value_text": None,
            "value_boolean": 0,
            "value_date": None,
        }

    @pytest.mark.asyncio
    async def test_mismatched_type_uses_registered_column(self, store, values):
        """Under the warn policy the value lands in the registered type's slot."""
        await store.initialize()
        entity_id = await store.create_entity("course", "C1")
        await values.set_attribute_value(entity_id, "year", 2024, "number")

        await values.set_attribute_value(entity_id, "year", "2025", "string")

        slots = await values.get_raw_slots(entity_id, "year")
        assert slots["value_number"] == 2025
        assert slots["value_string"] is None
        assert (await values.get_entity_values(entity_id))["year"] == 2025

    @pytest.mark.asyncio
    async def test_unsupported_type_no_io(self, data_dir):
        """Bad type tags fail before the database is touched."""
        db = Database(os.path.join(data_dir, "never-created.db"), wal_mode=False)
        values = ValueStore(db, AttributeRegistry(db))

        with pytest.raises(UnsupportedDataTypeError):
            await values.set_attribute_value(1, "field", "x", "varchar")

        assert not db.path.exists()

    @pytest.mark.asyncio
    async def test_reserved_name(self, store, values):
        await store.initialize()
        entity_id = await store.create_entity("room", "R1")

        with pytest.raises(ReservedAttributeError):
            await values.set_attribute_value(entity_id, "name", "Shadow", "string")

        assert (await store.get_entity_by_id(entity_id))["name"] == "R1"
        assert await store.registry.get_attribute("name") is None

    @pytest.mark.asyncio
    async def test_invalid_value(self, store, values):
        await store.initialize()
        entity_id = await store.create_entity("room", "R1")

        with pytest.raises(InvalidValueError):
            await values.set_attribute_value(entity_id, "capacity", "lots", "number")

    @pytest.mark.asyncio
    async def test_missing_entity(self, store, values):
        await store.initialize()

        with pytest.raises(EntityNotFoundError):
            await values.set_attribute_value(999, "capacity", 10, "number")

    @pytest.mark.asyncio
    async def test_batch(self, store, values):
        """Mappings and AttributeInput entries mix; entries without value are skipped."""
        await store.initialize()
        entity_id = await store.create_entity("room", "R1")

        await values.set_entity_attributes(
            entity_id,
            {
                "building": {"value": "Main", "type": "string"},
                "capacity": AttributeInput(value=25, type="number"),
                "floor": {"type": "string"},
            },
        )

        assert await values.get_entity_values(entity_id) == {"building": "Main", "capacity": 25}

    @pytest.mark.asyncio
    async def test_batch_validates_before_writing(self, store, values):
        """A bad entry anywhere in the batch prevents every write."""
        await store.initialize()
        entity_id = await store.create_entity("room", "R1")

        with pytest.raises(UnsupportedDataTypeError):
            await values.set_entity_attributes(
                entity_id,
                {
                    "building": {"value": "Main", "type": "string"},
                    "capacity": {"value": 25, "type": "integer"},
                },
            )
        with pytest.raises(InvalidAttributeNameError):
            await values.set_entity_attributes(
                entity_id,
                {
                    "building": {"value": "Main", "type": "string"},
                    "": {"value": 25, "type": "number"},
                },
            )

        assert await values.get_entity_values(entity_id) == {}

    @pytest.mark.asyncio
    async def test_values_for_entities(self, store, values):
        await store.initialize()
        first = await store.create_entity("room", "R1")
        second = await store.create_entity("room", "R2")
        empty = await store.create_entity("room", "R3")
        await values.set_attribute_value(first, "capacity", 10, "number")
        await values.set_attribute_value(second, "capacity", 20, "number")

        grouped = await values.get_values_for_entities([first, second, empty])

        assert grouped == {first: {"capacity": 10}, second: {"capacity": 20}}
        assert await values.get_values_for_entities([]) == {}
