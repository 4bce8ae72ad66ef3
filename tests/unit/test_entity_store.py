"""
Unit tests for the entity store.

Tests cover:
- Entity CRUD and flat reconstruction
- Bulk listing with a fixed number of queries
- Update allow-list
- Cascading delete
- Attribute search
"""

import logging
import os
import tempfile

import pytest

from eavdb.config import SQL_LOGGER_NAME, Settings
from eavdb.errors import DatabaseNotInitializedError
from eavdb.store.database import Database
from eavdb.store.entity_store import EntityStore


def _selects(caplog):
    return [
        record.getMessage()
        for record in caplog.records
        if record.name == SQL_LOGGER_NAME and record.getMessage().lstrip().upper().startswith("SELECT")
    ]


class TestEntityStore:
    """Tests for EntityStore."""

    @pytest.fixture
    def data_dir(self):
        """Create temporary data directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    @pytest.fixture
    def store(self, data_dir):
        db = Database(os.path.join(data_dir, "eav.db"), wal_mode=False, trace_sql=True)
        return EntityStore(db)

    @pytest.mark.asyncio
    async def test_create_and_get(self, store):
        await store.initialize()

        entity_id = await store.create_entity("course", "CS101 Section")
        await store.set_entity_attributes(
            entity_id,
            {
                "subject_id": {"value": 7, "type": "number"},
                "schedule": {"value": "MWF 10-11", "type": "text"},
                "lab_required": {"value": True, "type": "boolean"},
            },
        )

        entity = await store.get_entity_by_id(entity_id)
        assert entity["entity_id"] == entity_id
        assert entity["entity_type"] == "course"
        assert entity["name"] == "CS101 Section"
        assert entity["is_active"] == 1
        assert entity["created_at"] == entity["updated_at"]
        assert entity["subject_id"] == 7
        assert entity["schedule"] == "MWF 10-11"
        assert entity["lab_required"] == 1

    @pytest.mark.asyncio
    async def test_create_inactive(self, store):
        await store.initialize()
        entity_id = await store.create_entity("room", "Old Lab", is_active=False)

        assert (await store.get_entity_by_id(entity_id))["is_active"] == 0

    @pytest.mark.asyncio
    async def test_entity_without_attributes(self, store):
        await store.initialize()
        entity_id = await store.create_entity("room", "Empty")

        entity = await store.get_entity_by_id(entity_id)
        assert set(entity) == {
            "entity_id",
            "entity_type",
            "name",
            "is_active",
            "created_at",
            "updated_at",
        }

    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        await store.initialize()
        assert await store.get_entity_by_id(12345) is None

    @pytest.mark.asyncio
    async def test_not_initialized(self, store):
        with pytest.raises(DatabaseNotInitializedError):
            await store.get_entity_by_id(1)

    @pytest.mark.asyncio
    async def test_open_from_settings(self, data_dir):
        settings = Settings(database_path=os.path.join(data_dir, "opened.db"), wal_mode=False)

        store = await EntityStore.open(settings)

        assert await store.db.is_initialized()
        assert store.registry.type_policy == "warn"

    @pytest.mark.asyncio
    async def test_get_entities_by_type(self, store):
        """Newest first, filtered by type and active flag."""
        await store.initialize()
        first = await store.create_entity("room", "A")
        second = await store.create_entity("room", "B", is_active=False)
        third = await store.create_entity("room", "C")
        await store.create_entity("course", "Not a room")
        await store.set_attribute_value(first, "capacity", 10, "number")
        await store.set_attribute_value(third, "capacity", 30, "number")

        rooms = await store.get_entities_by_type("room")
        assert [r["entity_id"] for r in rooms] == [third, second, first]
        assert rooms[0]["capacity"] == 30
        assert "capacity" not in rooms[1]

        active = await store.get_entities_by_type("room", is_active=True)
        assert [r["entity_id"] for r in active] == [third, first]

        inactive = await store.get_entities_by_type("room", is_active=False)
        assert [r["entity_id"] for r in inactive] == [second]

    @pytest.mark.asyncio
    async def test_list_uses_two_queries(self, store, caplog):
        """Listing costs one base query and one value query, regardless of size."""
        await store.initialize()
        for i in range(25):
            entity_id = await store.create_entity("room", f"Room {i}")
            await store.set_attribute_value(entity_id, "capacity", i, "number")
            await store.set_attribute_value(entity_id, "building", "Main", "string")

        caplog.clear()
        with caplog.at_level(logging.DEBUG, logger=SQL_LOGGER_NAME):
            rooms = await store.get_entities_by_type("room")

        assert len(rooms) == 25
        assert len(_selects(caplog)) == 2

    @pytest.mark.asyncio
    async def test_empty_list_skips_value_query(self, store, caplog):
        await store.initialize()

        caplog.clear()
        with caplog.at_level(logging.DEBUG, logger=SQL_LOGGER_NAME):
            rooms = await store.get_entities_by_type("room")

        assert rooms == []
        assert len(_selects(caplog)) == 1

    @pytest.mark.asyncio
    async def test_update_entity(self, store):
        await store.initialize()
        entity_id = await store.create_entity("room", "Old")
        before = await store.get_entity_by_id(entity_id)

        await store.update_entity(entity_id, {"name": "New", "is_active": False})

        after = await store.get_entity_by_id(entity_id)
        assert after["name"] == "New"
        assert after["is_active"] == 0
        assert after["updated_at"] >= before["updated_at"]
        assert after["created_at"] == before["created_at"]

    @pytest.mark.asyncio
    async def test_update_ignores_other_keys(self, store, caplog):
        """Only name and is_active are written; other keys execute nothing."""
        await store.initialize()
        entity_id = await store.create_entity("room", "Keep")
        before = await store.get_entity_by_id(entity_id)

        caplog.clear()
        with caplog.at_level(logging.DEBUG, logger=SQL_LOGGER_NAME):
            await store.update_entity(
                entity_id, {"entity_type": "course", "created_at": 0, "capacity": 99}
            )

        assert not [r for r in caplog.records if "UPDATE" in r.getMessage()]
        assert await store.get_entity_by_id(entity_id) == before

    @pytest.mark.asyncio
    async def test_update_missing_is_noop(self, store):
        await store.initialize()
        await store.update_entity(404, {"name": "Ghost"})
        assert await store.get_entity_by_id(404) is None

    @pytest.mark.asyncio
    async def test_delete_cascades(self, store):
        """Deleting an entity removes its values."""
        await store.initialize()
        keep = await store.create_entity("room", "Keep")
        drop = await store.create_entity("room", "Drop")
        await store.set_attribute_value(keep, "capacity", 10, "number")
        await store.set_attribute_value(drop, "capacity", 20, "number")
        await store.set_attribute_value(drop, "building", "Annex", "string")

        await store.delete_entity(drop)

        assert await store.get_entity_by_id(drop) is None
        stats = await store.get_stats()
        assert stats == {"entities": 1, "attributes": 2, "values": 1}

    @pytest.mark.asyncio
    async def test_delete_missing_is_noop(self, store):
        await store.initialize()
        await store.delete_entity(777)
        assert (await store.get_stats())["entities"] == 0

    @pytest.mark.asyncio
    async def test_base_fields_win(self, store):
        """Attributes cannot shadow base fields in the flat view."""
        await store.initialize()
        entity_id = await store.create_entity("room", "Real Name")
        # Rows written directly, bypassing the reserved-name check
        attribute_id = await store.registry.get_or_create_attribute("name", "string")
        with store.db.connection() as conn:
            conn.execute(
                "INSERT INTO eav_values (entity_id, attribute_id, value_string) VALUES (?, ?, ?)",
                (entity_id, attribute_id, "Shadow"),
            )

        entity = await store.get_entity_by_id(entity_id)
        assert entity["name"] == "Real Name"
        listed = await store.get_entities_by_type("room")
        assert listed[0]["name"] == "Real Name"

    @pytest.mark.asyncio
    async def test_search(self, store):
        await store.initialize()
        lab = await store.create_entity("room", "Lab")
        hall = await store.create_entity("room", "Hall")
        other = await store.create_entity("course", "Course")
        await store.set_attribute_value(lab, "building", "Science Center", "string")
        await store.set_attribute_value(hall, "building", "Arts Building", "string")
        await store.set_attribute_value(other, "building", "Science Center", "string")

        results = await store.search_entities_by_attribute("room", "building", "science")

        assert [r["entity_id"] for r in results] == [lab]
        assert results[0]["building"] == "Science Center"

    @pytest.mark.asyncio
    async def test_search_maintenance_descriptions(self, store):
        await store.initialize()
        faucet = await store.create_entity("maintenance", "Faucet")
        window = await store.create_entity("maintenance", "Window")
        await store.set_attribute_value(faucet, "description", "leaking faucet", "text")
        await store.set_attribute_value(window, "description", "broken window", "text")

        results = await store.search_entities_by_attribute("maintenance", "description", "leak")

        assert [r["entity_id"] for r in results] == [faucet]

    @pytest.mark.asyncio
    async def test_search_text_attribute(self, store):
        await store.initialize()
        entity_id = await store.create_entity("room", "Lab")
        await store.set_attribute_value(entity_id, "description", "Has fume hoods", "text")

        results = await store.search_entities_by_attribute("room", "description", "FUME")

        assert [r["entity_id"] for r in results] == [entity_id]

    @pytest.mark.asyncio
    async def test_search_escapes_wildcards(self, store):
        """% and _ in the term match literally."""
        await store.initialize()
        percent = await store.create_entity("room", "A")
        plain = await store.create_entity("room", "B")
        await store.set_attribute_value(percent, "room_number", "100%", "string")
        await store.set_attribute_value(plain, "room_number", "1005", "string")

        assert [r["entity_id"] for r in await store.search_entities_by_attribute(
            "room", "room_number", "0%"
        )] == [percent]
        assert await store.search_entities_by_attribute("room", "room_number", "_") == []

    @pytest.mark.asyncio
    async def test_search_no_match(self, store):
        await store.initialize()
        assert await store.search_entities_by_attribute("room", "building", "x") == []
