"""
Course repository on the EAV engine.

Courses are "course" entities. Every course field, including subject_id,
is an attribute; only the display name and active flag live on the
entity row.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional

from .base import EavRepository, Page, paginate, to_bool, to_int

COURSE_ATTRIBUTES: dict[str, str] = {
    "subject_id": "number",
    "semester": "string",
    "year": "number",
    "instructor_id": "number",
    "max_enrollment": "number",
    "current_enrollment": "number",
    "schedule": "text",
    # Flexible attributes
    "prerequisites": "text",
    "corequisites": "text",
    "lab_required": "boolean",
    "lab_hours": "number",
    "grading_rubric": "text",
    "assessment_types": "text",
    "attendance_policy": "text",
    "online_meeting_link": "string",
    "syllabus_url": "string",
    "office_hours": "string",
    "textbook_title": "string",
    "textbook_author": "string",
    "textbook_isbn": "string",
    "textbook_required": "boolean",
}

DEFAULT_MAX_ENROLLMENT = 30


@dataclass
class Course:
    id: int
    name: str
    is_active: bool
    subject_id: Optional[int] = None
    semester: Optional[str] = None
    year: Optional[int] = None
    instructor_id: Optional[int] = None
    max_enrollment: Optional[int] = None
    current_enrollment: Optional[int] = None
    schedule: Any = None
    prerequisites: Any = None
    corequisites: Any = None
    lab_required: Optional[bool] = None
    lab_hours: Optional[int] = None
    grading_rubric: Any = None
    assessment_types: Any = None
    attendance_policy: Any = None
    online_meeting_link: Optional[str] = None
    syllabus_url: Optional[str] = None
    office_hours: Optional[str] = None
    textbook_title: Optional[str] = None
    textbook_author: Optional[str] = None
    textbook_isbn: Optional[str] = None
    textbook_required: Optional[bool] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None


class CourseRepository(EavRepository[Course]):
    """Courses stored as EAV entities of type "course"."""

    ENTITY_TYPE = "course"
    ATTRIBUTES = COURSE_ATTRIBUTES

    def _to_record(self, entity: Mapping[str, Any]) -> Course:
        return Course(
            id=entity["entity_id"],
            name=entity["name"],
            is_active=bool(entity["is_active"]),
            subject_id=to_int(entity.get("subject_id")),
            semester=entity.get("semester"),
            year=to_int(entity.get("year")),
            instructor_id=to_int(entity.get("instructor_id")),
            max_enrollment=to_int(entity.get("max_enrollment")),
            current_enrollment=to_int(entity.get("current_enrollment")),
            schedule=entity.get("schedule"),
            prerequisites=entity.get("prerequisites"),
            corequisites=entity.get("corequisites"),
            lab_required=to_bool(entity.get("lab_required")),
            lab_hours=to_int(entity.get("lab_hours")),
            grading_rubric=entity.get("grading_rubric"),
            assessment_types=entity.get("assessment_types"),
            attendance_policy=entity.get("attendance_policy"),
            online_meeting_link=entity.get("online_meeting_link"),
            syllabus_url=entity.get("syllabus_url"),
            office_hours=entity.get("office_hours"),
            textbook_title=entity.get("textbook_title"),
            textbook_author=entity.get("textbook_author"),
            textbook_isbn=entity.get("textbook_isbn"),
            textbook_required=to_bool(entity.get("textbook_required")),
            created_at=entity["created_at"],
            updated_at=entity["updated_at"],
        )

    async def list_courses(
        self,
        page: int = 1,
        limit: int = 50,
        search: str = "",
        subject_id: Optional[int] = None,
        semester: Optional[str] = None,
        year: Optional[int] = None,
        instructor_id: Optional[int] = None,
        is_active: Optional[bool] = None,
    ) -> Page[Course]:
        """List courses with optional filters, newest first."""
        courses = await self._all(is_active=is_active)

        if search:
            needle = search.lower()
            courses = [
                c for c in courses
                if isinstance(c.schedule, str) and needle in c.schedule.lower()
            ]
        if subject_id is not None:
            courses = [c for c in courses if c.subject_id == subject_id]
        if semester:
            courses = [c for c in courses if c.semester == semester]
        if year is not None:
            courses = [c for c in courses if c.year == int(year)]
        if instructor_id is not None:
            courses = [c for c in courses if c.instructor_id == instructor_id]

        return paginate(courses, page, limit)

    async def get_courses_by_subject(self, subject_id: int) -> list[Course]:
        """Active courses of one subject."""
        courses = await self._all(is_active=True)
        return [c for c in courses if c.subject_id == subject_id]

    async def create_course(self, data: Mapping[str, Any]) -> Course:
        """Create a course from a mapping of snake_case fields."""
        name = data.get("name") or f"Course {data.get('semester')} {data.get('year')}"
        fields = dict(data)
        fields["max_enrollment"] = data.get("max_enrollment") or DEFAULT_MAX_ENROLLMENT
        fields["current_enrollment"] = data.get("current_enrollment") or 0
        return await self._insert(
            name,
            self._attribute_batch(fields),
            is_active=data.get("is_active", True),
        )

    async def update_course(self, course_id: int, data: Mapping[str, Any]) -> Optional[Course]:
        """Update a course; only fields present in data are changed."""
        base = {key: data[key] for key in ("name", "is_active") if data.get(key) is not None}
        return await self._modify(course_id, base, self._attribute_batch(data))
