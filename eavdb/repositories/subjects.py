"""
Subject repository on the EAV engine.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional

from .base import EavRepository, to_bool, to_int

SUBJECT_ATTRIBUTES: dict[str, str] = {
    "department_id": "number",
    "code": "string",
    "description": "text",
    "credits": "number",
    # Flexible attributes
    "prerequisites": "text",
    "corequisites": "text",
    "learning_outcomes": "text",
    "textbooks": "text",
    "lab_required": "boolean",
    "lab_hours": "number",
    "studio_required": "boolean",
    "studio_hours": "number",
    "certifications": "text",
    "repeatability": "string",
    "syllabus_template": "text",
    "typical_offering": "string",
}


@dataclass
class Subject:
    id: int
    name: str
    is_active: bool
    code: Optional[str] = None
    description: Any = None
    credits: Optional[int] = None
    department_id: Optional[int] = None
    prerequisites: Any = None
    corequisites: Any = None
    learning_outcomes: Any = None
    textbooks: Any = None
    lab_required: Optional[bool] = None
    lab_hours: Optional[int] = None
    studio_required: Optional[bool] = None
    studio_hours: Optional[int] = None
    certifications: Any = None
    repeatability: Optional[str] = None
    syllabus_template: Any = None
    typical_offering: Optional[str] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None


class SubjectRepository(EavRepository[Subject]):
    """Subjects stored as EAV entities of type "subject"."""

    ENTITY_TYPE = "subject"
    ATTRIBUTES = SUBJECT_ATTRIBUTES

    def _to_record(self, entity: Mapping[str, Any]) -> Subject:
        return Subject(
            id=entity["entity_id"],
            name=entity["name"],
            is_active=bool(entity["is_active"]),
            code=entity.get("code"),
            description=entity.get("description"),
            credits=to_int(entity.get("credits")),
            department_id=to_int(entity.get("department_id")),
            prerequisites=entity.get("prerequisites"),
            corequisites=entity.get("corequisites"),
            learning_outcomes=entity.get("learning_outcomes"),
            textbooks=entity.get("textbooks"),
            lab_required=to_bool(entity.get("lab_required")),
            lab_hours=to_int(entity.get("lab_hours")),
            studio_required=to_bool(entity.get("studio_required")),
            studio_hours=to_int(entity.get("studio_hours")),
            certifications=entity.get("certifications"),
            repeatability=entity.get("repeatability"),
            syllabus_template=entity.get("syllabus_template"),
            typical_offering=entity.get("typical_offering"),
            created_at=entity["created_at"],
            updated_at=entity["updated_at"],
        )

    async def list_subjects(self) -> list[Subject]:
        """All active subjects, newest first."""
        return await self._all(is_active=True)

    async def get_subjects_by_department(self, department_id: int) -> list[Subject]:
        """Active subjects of one department."""
        subjects = await self._all(is_active=True)
        return [s for s in subjects if s.department_id == department_id]

    async def create_subject(self, data: Mapping[str, Any]) -> Subject:
        return await self._insert(
            data["name"],
            self._attribute_batch(data),
            is_active=data.get("is_active", True),
        )

    async def update_subject(self, subject_id: int, data: Mapping[str, Any]) -> Optional[Subject]:
        base = {key: data[key] for key in ("name", "is_active") if data.get(key) is not None}
        return await self._modify(subject_id, base, self._attribute_batch(data))

    async def search_subjects(self, term: str) -> list[Subject]:
        """Subjects whose code contains term."""
        entities = await self.store.search_entities_by_attribute(self.ENTITY_TYPE, "code", term)
        return [self._to_record(entity) for entity in entities]
