"""
Shared plumbing for domain repositories built on the EntityStore.

A repository fixes one entity type and a table of known attributes
(name -> data type), and maps flat entity dicts to a record dataclass.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, ClassVar, Generic, Optional, TypeVar

from ..errors import EntityNotFoundError
from ..store.entity_store import EntityStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """One page of a filtered listing.

    Attributes:
        items: Records on this page
        total: Number of records matching the filters
        page: 1-based page number
        limit: Page size
    """

    items: list[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit > 0 else 0


def paginate(items: Sequence[T], page: int = 1, limit: int = 50) -> Page[T]:
    """Slice a full result list into a Page."""
    page = max(page, 1)
    start = (page - 1) * limit
    return Page(items=list(items[start:start + limit]), total=len(items), page=page, limit=limit)


def to_int(value: Any) -> Optional[int]:
    """Coerce a stored number (or numeric string) to int, keeping None."""
    if value is None or value == "":
        return None
    return int(float(value))


def to_bool(value: Any) -> Optional[bool]:
    """Coerce a stored 1/0 flag to bool, keeping None."""
    if value is None:
        return None
    return bool(value)


class EavRepository(Generic[T]):
    """Base class for repositories over a single entity type.

    Subclasses set ENTITY_TYPE and ATTRIBUTES and implement _to_record().
    """

    ENTITY_TYPE: ClassVar[str]
    ATTRIBUTES: ClassVar[dict[str, str]]

    def __init__(self, store: EntityStore) -> None:
        self.store = store

    def _to_record(self, entity: Mapping[str, Any]) -> T:
        raise NotImplementedError

    def _attribute_batch(self, data: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
        """Build a set_entity_attributes() batch from the known attributes in data.

        Keys missing from data are left untouched; keys present with None clear
        the stored value.
        """
        return {
            name: {"value": data[name], "type": data_type}
            for name, data_type in self.ATTRIBUTES.items()
            if name in data
        }

    async def _entity(self, entity_id: int) -> Optional[dict[str, Any]]:
        entity = await self.store.get_entity_by_id(entity_id)
        if entity is None or entity["entity_type"] != self.ENTITY_TYPE:
            return None
        return entity

    async def get(self, entity_id: int) -> Optional[T]:
        """Get one record by id, or None if missing or of another type."""
        entity = await self._entity(entity_id)
        return self._to_record(entity) if entity is not None else None

    async def _all(self, is_active: Optional[bool] = None) -> list[T]:
        entities = await self.store.get_entities_by_type(self.ENTITY_TYPE, is_active=is_active)
        return [self._to_record(entity) for entity in entities]

    async def _insert(
        self,
        name: str,
        attributes: Mapping[str, Any],
        is_active: bool = True,
    ) -> T:
        async with self.store.transaction():
            entity_id = await self.store.create_entity(
                self.ENTITY_TYPE, name, is_active=is_active
            )
            await self.store.set_entity_attributes(entity_id, attributes)

        logger.info(f"Created {self.ENTITY_TYPE} {entity_id}")
        record = await self.get(entity_id)
        if record is None:
            raise EntityNotFoundError(entity_id)
        return record

    async def _modify(
        self,
        entity_id: int,
        base_updates: Mapping[str, Any],
        attributes: Mapping[str, Any],
    ) -> Optional[T]:
        if await self._entity(entity_id) is None:
            return None

        async with self.store.transaction():
            await self.store.update_entity(entity_id, base_updates)
            if attributes:
                await self.store.set_entity_attributes(entity_id, attributes)

        return await self.get(entity_id)

    async def delete(self, entity_id: int) -> bool:
        """Delete a record and all its attribute values."""
        await self.store.delete_entity(entity_id)
        logger.info(f"Deleted {self.ENTITY_TYPE} {entity_id}")
        return True
