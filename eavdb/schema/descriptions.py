"""
Default descriptions for attributes registered without one.
"""

from __future__ import annotations

import re

KNOWN_DESCRIPTIONS: dict[str, str] = {
    # Room attributes
    "room_name": "Name of the room",
    "building": "Building where the room is located",
    "floor": "Floor level of the room",
    "room_number": "Room number identifier",
    "capacity": "Maximum capacity of the room",
    "room_type": "Type of room (classroom, laboratory, lecture hall, etc.)",
    "description": "Additional notes or description",
    "equipment": "List of equipment available",
    "amenities": "List of amenities available",
    "type_specific": "Type-specific attributes",
    # Course attributes
    "course_code": "Course code identifier",
    "course_name": "Course title/name",
    "subject_id": "Subject the course belongs to",
    "credit_hours": "Number of credit hours",
    "course_description": "Course description",
    "instructor": "Instructor teaching the course",
    "semester": "Semester when course is offered",
    "year": "Year when course is offered",
    "schedule": "Course schedule details",
    "room": "Room where course is held",
    "max_enrollment": "Maximum enrollment capacity",
    "current_enrollment": "Current enrollment count",
    "status": "Status (active, inactive, archived)",
    # Subject attributes
    "subject_code": "Subject code identifier",
    "subject_name": "Subject name",
    "department_id": "Department the subject belongs to",
    "subject_description": "Subject description",
    "department_head": "Head of department",
    # Maintenance attributes
    "issue_type": "Type of maintenance issue",
    "category": "Category of maintenance request",
    "priority": "Priority level of request",
    "severity": "Severity level of issue",
    "location": "Location of maintenance issue",
    "reported_by": "User who reported the issue",
    "assigned_to": "Staff assigned to handle request",
    "submitted_date": "Date when request was submitted",
    "completed_date": "Date when request was completed",
    "estimated_completion": "Estimated completion date",
    "notes": "Notes or additional details",
    # Generic attributes
    "is_available": "Availability status",
    "date_created": "Date of creation",
    "last_updated": "Last update timestamp",
}

_PATTERN_DESCRIPTIONS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"^equipment_\d+_name$"), "Name of equipment item"),
    (re.compile(r"^equipment_\d+_quantity$"), "Quantity of equipment item"),
    (re.compile(r"^equipment_\d+_condition$"), "Condition of equipment item"),
    (re.compile(r"^equipment_\d+$"), "Equipment identifier"),
    (re.compile(r"^amenity_\d+$"), "Amenity available"),
)

TYPESPEC_PREFIX = "typespec_"
_CAPITALS = re.compile(r"([A-Z])")


def describe_attribute(attribute_name: str) -> str:
    """Generate a human-readable description for an attribute name.

    Exact names come from KNOWN_DESCRIPTIONS, indexed room equipment and
    amenity names from fixed patterns, and room type-specific properties
    (``typespec_labStations``) are split on capitals. Anything else falls
    back to the name with underscores turned into spaces.

    Example:
        >>> describe_attribute("typespec_labStations")
        'Room-specific: lab Stations'
        >>> describe_attribute("office_hours")
        'Attribute: office hours'
    """
    if attribute_name in KNOWN_DESCRIPTIONS:
        return KNOWN_DESCRIPTIONS[attribute_name]

    for pattern, description in _PATTERN_DESCRIPTIONS:
        if pattern.match(attribute_name):
            return description

    if attribute_name.startswith(TYPESPEC_PREFIX):
        field_name = attribute_name[len(TYPESPEC_PREFIX):]
        words = _CAPITALS.sub(r" \1", field_name).strip()
        return f"Room-specific: {words}"

    return f"Attribute: {attribute_name.replace('_', ' ')}"
