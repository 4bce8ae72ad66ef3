"""
Room repository on the EAV engine.

Rooms show the engine's open-ended attributes at work: list and mapping
fields are flattened into indexed attributes,

    equipment  -> equipment_<n>_name / equipment_<n>_quantity /
                  equipment_<n>_condition (dict items) or equipment_<n>
    amenities  -> amenity_<n>
    type_specific -> typespec_<key>, typed from the value

and reassembled on read. Rooms written before flattening carry whole
lists in JSON "equipment", "amenities" and "type_specific" attributes;
those are still read when no flattened attributes exist.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from ..schema.descriptions import TYPESPEC_PREFIX
from .base import EavRepository, Page, paginate, to_bool

logger = logging.getLogger(__name__)

ROOM_ATTRIBUTES: dict[str, str] = {
    "room_name": "string",
    "building": "string",
    "floor": "string",
    "room_number": "string",
    "capacity": "number",
    "room_type": "string",
    "description": "text",
    "is_available": "boolean",
}

# Longer type-specific strings go to the text slot
MAX_STRING_LENGTH = 255

_EQUIPMENT_KEY = re.compile(r"^equipment_(\d+)(?:_(.+))?$")
_AMENITY_KEY = re.compile(r"^amenity_(\d+)$")


@dataclass
class Room:
    id: int
    name: Optional[str]
    is_active: bool
    room_type: Optional[str] = None
    capacity: Optional[float] = None
    building: Optional[str] = None
    floor: Optional[str] = None
    room_number: Optional[str] = None
    equipment: list[Any] = field(default_factory=list)
    amenities: list[Any] = field(default_factory=list)
    type_specific: dict[str, Any] = field(default_factory=dict)
    description: Any = None
    is_available: Optional[bool] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None


def infer_data_type(value: Any) -> str:
    """Pick the attribute type for a free-form type-specific value."""
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str) and len(value) > MAX_STRING_LENGTH:
        return "text"
    return "string"


def flatten_equipment(items: Iterable[Any]) -> dict[str, dict[str, Any]]:
    attributes: dict[str, dict[str, Any]] = {}
    for index, item in enumerate(items):
        if isinstance(item, Mapping):
            attributes[f"equipment_{index}_name"] = {"value": item.get("name"), "type": "string"}
            if item.get("quantity"):
                attributes[f"equipment_{index}_quantity"] = {
                    "value": item["quantity"],
                    "type": "number",
                }
            if item.get("condition"):
                attributes[f"equipment_{index}_condition"] = {
                    "value": item["condition"],
                    "type": "string",
                }
        else:
            attributes[f"equipment_{index}"] = {"value": item, "type": "string"}
    return attributes


def flatten_amenities(items: Iterable[Any]) -> dict[str, dict[str, Any]]:
    return {
        f"amenity_{index}": {"value": amenity, "type": "string"}
        for index, amenity in enumerate(items)
    }


def flatten_type_specific(properties: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    return {
        f"{TYPESPEC_PREFIX}{key}": {"value": value, "type": infer_data_type(value)}
        for key, value in properties.items()
        if value is not None and value != ""
    }


def collect_equipment(entity: Mapping[str, Any]) -> list[Any]:
    grouped: dict[int, Any] = {}
    for key, value in entity.items():
        match = _EQUIPMENT_KEY.match(key)
        if not match:
            continue
        index, prop = int(match.group(1)), match.group(2)
        if prop:
            item = grouped.setdefault(index, {})
            if isinstance(item, dict):
                item[prop] = value
        else:
            grouped[index] = value

    if not grouped:
        legacy = entity.get("equipment")
        return list(legacy) if isinstance(legacy, list) else []
    return [grouped[index] for index in sorted(grouped)]


def collect_amenities(entity: Mapping[str, Any]) -> list[Any]:
    indexed = sorted(
        (int(match.group(1)), value)
        for key, value in entity.items()
        if (match := _AMENITY_KEY.match(key))
    )
    if not indexed:
        legacy = entity.get("amenities")
        return list(legacy) if isinstance(legacy, list) else []
    return [value for _, value in indexed]


def collect_type_specific(entity: Mapping[str, Any]) -> dict[str, Any]:
    properties = {
        key[len(TYPESPEC_PREFIX):]: value
        for key, value in entity.items()
        if key.startswith(TYPESPEC_PREFIX)
    }
    if not properties:
        legacy = entity.get("type_specific")
        return dict(legacy) if isinstance(legacy, dict) else {}
    return properties


class RoomRepository(EavRepository[Room]):
    """Rooms stored as EAV entities of type "room"."""

    ENTITY_TYPE = "room"
    ATTRIBUTES = ROOM_ATTRIBUTES

    def _to_record(self, entity: Mapping[str, Any]) -> Room:
        return Room(
            id=entity["entity_id"],
            name=entity.get("room_name") or entity["name"],
            is_active=bool(entity["is_active"]),
            room_type=entity.get("room_type"),
            capacity=entity.get("capacity"),
            building=entity.get("building"),
            floor=entity.get("floor"),
            room_number=entity.get("room_number"),
            equipment=collect_equipment(entity),
            amenities=collect_amenities(entity),
            type_specific=collect_type_specific(entity),
            description=entity.get("description"),
            is_available=to_bool(entity.get("is_available")),
            created_at=entity["created_at"],
            updated_at=entity["updated_at"],
        )

    def _collection_attributes(self, data: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
        attributes: dict[str, dict[str, Any]] = {}
        if data.get("equipment") is not None:
            attributes.update(flatten_equipment(data["equipment"]))
        if data.get("amenities") is not None:
            attributes.update(flatten_amenities(data["amenities"]))
        if data.get("type_specific") is not None:
            attributes.update(flatten_type_specific(data["type_specific"]))
        return attributes

    async def _clear_stale(
        self,
        existing: Mapping[str, Any],
        keep: Mapping[str, Any],
        data: Mapping[str, Any],
    ) -> dict[str, dict[str, Any]]:
        """Clear flattened attributes of collections that data replaces."""
        replaced = []
        if "equipment" in data:
            replaced.append(lambda key: bool(_EQUIPMENT_KEY.match(key)) or key == "equipment")
        if "amenities" in data:
            replaced.append(lambda key: bool(_AMENITY_KEY.match(key)) or key == "amenities")
        if "type_specific" in data:
            replaced.append(lambda key: key.startswith(TYPESPEC_PREFIX) or key == "type_specific")

        cleared: dict[str, dict[str, Any]] = {}
        for key in existing:
            if key in keep or not any(test(key) for test in replaced):
                continue
            definition = await self.store.registry.get_attribute(key)
            data_type = definition.data_type.value if definition else "string"
            cleared[key] = {"value": None, "type": data_type}
        return cleared

    async def list_rooms(
        self,
        page: int = 1,
        limit: int = 10,
        building: Optional[str] = None,
        room_type: Optional[str] = None,
        is_active: Optional[bool] = None,
        min_capacity: Optional[float] = None,
        search: Optional[str] = None,
    ) -> Page[Room]:
        """List rooms with optional filters, newest first."""
        rooms = await self._all(is_active=is_active)

        if building:
            rooms = [r for r in rooms if r.building == building]
        if room_type:
            rooms = [r for r in rooms if r.room_type == room_type]
        if min_capacity:
            rooms = [
                r for r in rooms
                if isinstance(r.capacity, (int, float)) and r.capacity >= min_capacity
            ]
        if search:
            needle = search.lower()
            rooms = [
                r for r in rooms
                if any(
                    isinstance(text, str) and needle in text.lower()
                    for text in (r.name, r.building, r.room_number, r.room_type)
                )
            ]

        return paginate(rooms, page, limit)

    async def create_room(self, data: Mapping[str, Any]) -> Room:
        """Create a room; the display name defaults to "<building> <room_number>"."""
        room_name = (
            data.get("room_name")
            or data.get("name")
            or f"{data.get('building')} {data.get('room_number')}"
        )
        fields = {key: value for key, value in data.items() if value is not None and value != ""}
        fields["room_name"] = room_name

        attributes = self._attribute_batch(fields)
        attributes.update(self._collection_attributes(data))
        logger.debug(f"Setting room attributes: {sorted(attributes)}")

        return await self._insert(
            room_name,
            attributes,
            is_active=data.get("is_active") is not False,
        )

    async def update_room(self, room_id: int, data: Mapping[str, Any]) -> Optional[Room]:
        """Update a room; collections given in data replace the stored ones."""
        existing = await self._entity(room_id)
        if existing is None:
            return None

        room_name = data.get("room_name") or data.get("name")
        base: dict[str, Any] = {}
        fields = {key: value for key, value in data.items() if value is not None and value != ""}
        if room_name:
            base["name"] = room_name
            fields["room_name"] = room_name
        if data.get("is_active") is not None:
            base["is_active"] = data["is_active"]

        attributes = self._attribute_batch(fields)
        collections = self._collection_attributes(data)
        attributes.update(await self._clear_stale(existing, collections, data))
        attributes.update(collections)

        return await self._modify(room_id, base, attributes)

    async def search_rooms(self, term: str) -> list[Room]:
        """Rooms whose building or room number contains term."""
        by_building = await self.store.search_entities_by_attribute(
            self.ENTITY_TYPE, "building", term
        )
        by_number = await self.store.search_entities_by_attribute(
            self.ENTITY_TYPE, "room_number", term
        )

        combined: dict[int, Mapping[str, Any]] = {}
        for entity in [*by_building, *by_number]:
            combined[entity["entity_id"]] = entity
        return [self._to_record(entity) for entity in combined.values()]

    async def get_rooms_by_building(self, building: str) -> list[Room]:
        entities = await self.store.search_entities_by_attribute(
            self.ENTITY_TYPE, "building", building
        )
        return [self._to_record(entity) for entity in entities]

    async def get_available_rooms(self) -> list[Room]:
        """Active rooms not explicitly marked unavailable."""
        rooms = await self._all(is_active=True)
        return [r for r in rooms if r.is_available is not False]

    async def get_room_by_number(self, building: str, room_number: str) -> Optional[Room]:
        """Find a room by building and room number (duplicate check)."""
        for room in await self._all():
            if room.building == building and room.room_number == room_number:
                return room
        return None
