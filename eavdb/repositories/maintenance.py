"""
Maintenance request repository on the EAV engine.

Requests are "maintenance" entities. The entity row is active until the
request is completed; status, severity and the workflow fields are
attributes.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from .base import EavRepository, Page, paginate, to_bool, to_int

logger = logging.getLogger(__name__)

MAINTENANCE_ATTRIBUTES: dict[str, str] = {
    "room_id": "number",
    "issue_type": "string",
    "title": "string",
    "category": "string",
    "description": "text",
    "severity": "string",
    "priority": "string",
    "location": "string",
    "status": "string",
    "reported_by": "number",
    "submitted_by": "number",
    "reported_date": "date",
    "assigned_to": "number",
    "scheduled_date": "date",
    "completed_date": "date",
    "estimated_cost": "number",
    "actual_cost": "number",
    "notes": "text",
    "attachments": "text",
    "preventive_maintenance": "boolean",
    "recurrence_pattern": "text",
}

STATUS_PENDING = "pending"
STATUS_ASSIGNED = "assigned"
STATUS_COMPLETED = "completed"

DEFAULT_SEVERITY = "medium"
DEFAULT_ISSUE_TYPE = "General"


@dataclass
class MaintenanceRequest:
    id: int
    name: str
    is_active: bool
    room_id: Optional[int] = None
    issue_type: Optional[str] = None
    title: Optional[str] = None
    category: Optional[str] = None
    description: Any = None
    severity: Optional[str] = None
    priority: Optional[str] = None
    location: Optional[str] = None
    status: Optional[str] = None
    reported_by: Optional[int] = None
    submitted_by: Optional[int] = None
    reported_date: Any = None
    assigned_to: Optional[int] = None
    scheduled_date: Any = None
    completed_date: Any = None
    estimated_cost: Optional[float] = None
    actual_cost: Optional[float] = None
    notes: Any = None
    attachments: Any = None
    preventive_maintenance: Optional[bool] = None
    recurrence_pattern: Any = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None


def _request_name(issue_type: str, description: Any) -> str:
    summary = description[:50] if isinstance(description, str) else ""
    return f"{issue_type} - {summary or 'Maintenance Request'}"


class MaintenanceRepository(EavRepository[MaintenanceRequest]):
    """Maintenance requests stored as EAV entities of type "maintenance"."""

    ENTITY_TYPE = "maintenance"
    ATTRIBUTES = MAINTENANCE_ATTRIBUTES

    def _to_record(self, entity: Mapping[str, Any]) -> MaintenanceRequest:
        reported_by = to_int(entity.get("reported_by"))
        submitted_by = to_int(entity.get("submitted_by"))
        return MaintenanceRequest(
            id=entity["entity_id"],
            name=entity["name"],
            is_active=bool(entity["is_active"]),
            room_id=to_int(entity.get("room_id")),
            issue_type=entity.get("issue_type"),
            title=entity.get("title"),
            category=entity.get("category"),
            description=entity.get("description"),
            severity=entity.get("severity"),
            priority=entity.get("priority"),
            location=entity.get("location"),
            status=entity.get("status"),
            reported_by=reported_by if reported_by is not None else submitted_by,
            submitted_by=submitted_by if submitted_by is not None else reported_by,
            reported_date=entity.get("reported_date"),
            assigned_to=to_int(entity.get("assigned_to")),
            scheduled_date=entity.get("scheduled_date"),
            completed_date=entity.get("completed_date"),
            estimated_cost=entity.get("estimated_cost"),
            actual_cost=entity.get("actual_cost"),
            notes=entity.get("notes"),
            attachments=entity.get("attachments"),
            preventive_maintenance=to_bool(entity.get("preventive_maintenance")),
            recurrence_pattern=entity.get("recurrence_pattern"),
            created_at=entity["created_at"],
            updated_at=entity["updated_at"],
        )

    async def list_requests(
        self,
        page: int = 1,
        limit: int = 10,
        status: Optional[str] = None,
        category: Optional[str] = None,
        priority: Optional[str] = None,
        submitted_by: Optional[int] = None,
    ) -> Page[MaintenanceRequest]:
        """List requests with optional filters, newest first.

        The priority filter also matches requests whose severity equals it.
        """
        requests = await self._all()

        if status:
            requests = [r for r in requests if r.status == status]
        if category:
            requests = [r for r in requests if r.category == category]
        if priority:
            requests = [r for r in requests if priority in (r.priority, r.severity)]
        if submitted_by is not None:
            requests = [r for r in requests if r.submitted_by == submitted_by]

        return paginate(requests, page, limit)

    async def create_request(self, data: Mapping[str, Any]) -> MaintenanceRequest:
        """Create a request.

        Args:
            data: Request fields keyed by attribute name

        Returns:
            The stored request; status defaults to "pending", severity to the
            priority or "medium", reported_date to now
        """
        issue_type = (
            data.get("title") or data.get("category") or data.get("issue_type") or DEFAULT_ISSUE_TYPE
        )
        status = data.get("status") or STATUS_PENDING

        fields = {key: value for key, value in data.items() if value is not None}
        fields.update(
            issue_type=issue_type,
            status=status,
            severity=data.get("severity") or data.get("priority") or DEFAULT_SEVERITY,
            reported_by=data.get("submitted_by") or data.get("reported_by"),
            reported_date=data.get("reported_date") or datetime.now(timezone.utc),
            preventive_maintenance=bool(data.get("preventive_maintenance")),
        )
        if fields["reported_by"] is None:
            del fields["reported_by"]

        return await self._insert(
            _request_name(issue_type, data.get("description")),
            self._attribute_batch(fields),
            is_active=status != STATUS_COMPLETED,
        )

    async def update_request(
        self,
        request_id: int,
        data: Mapping[str, Any],
    ) -> Optional[MaintenanceRequest]:
        """Update a request; only fields present in data are changed."""
        base: dict[str, Any] = {}
        if data.get("issue_type"):
            base["name"] = _request_name(data["issue_type"], data.get("description"))
        if "status" in data:
            base["is_active"] = data["status"] != STATUS_COMPLETED
        return await self._modify(request_id, base, self._attribute_batch(data))

    async def get_requests_by_room(self, room_id: int) -> list[MaintenanceRequest]:
        requests = await self._all()
        return [r for r in requests if r.room_id == room_id]

    async def get_requests_by_status(self, status: str) -> list[MaintenanceRequest]:
        """Requests whose status equals status, ignoring case."""
        return await self._exact_match("status", status)

    async def get_requests_by_severity(self, severity: str) -> list[MaintenanceRequest]:
        """Requests whose severity equals severity, ignoring case."""
        return await self._exact_match("severity", severity)

    async def get_pending_requests(self) -> list[MaintenanceRequest]:
        return await self.get_requests_by_status(STATUS_PENDING)

    async def _exact_match(self, attribute: str, term: str) -> list[MaintenanceRequest]:
        # Substring search narrows the candidates; equality is checked here
        entities = await self.store.search_entities_by_attribute(self.ENTITY_TYPE, attribute, term)
        wanted = term.lower()
        return [
            self._to_record(entity)
            for entity in entities
            if isinstance(entity.get(attribute), str) and entity[attribute].lower() == wanted
        ]

    async def assign_request(
        self,
        request_id: int,
        assigned_to: int,
    ) -> Optional[MaintenanceRequest]:
        """Assign a request to a staff member and mark it "assigned"."""
        if await self._entity(request_id) is None:
            return None

        async with self.store.transaction():
            await self.store.set_attribute_value(request_id, "assigned_to", assigned_to, "number")
            await self.store.set_attribute_value(request_id, "status", STATUS_ASSIGNED, "string")

        logger.info(
            "Assigned maintenance request",
            extra={"entity_id": request_id, "assigned_to": assigned_to},
        )
        return await self.get(request_id)

    async def complete_request(
        self,
        request_id: int,
        completion: Optional[Mapping[str, Any]] = None,
    ) -> Optional[MaintenanceRequest]:
        """Mark a request completed and deactivate it.

        Args:
            request_id: Request entity id
            completion: Optional completed_date, actual_cost and notes

        Returns:
            The updated request, or None if it does not exist
        """
        if await self._entity(request_id) is None:
            return None

        completion = completion or {}
        fields: dict[str, Any] = {
            "status": STATUS_COMPLETED,
            "completed_date": completion.get("completed_date") or datetime.now(timezone.utc),
        }
        for key in ("actual_cost", "notes"):
            if completion.get(key) is not None:
                fields[key] = completion[key]

        async with self.store.transaction():
            await self.store.set_entity_attributes(request_id, self._attribute_batch(fields))
            await self.store.update_entity(request_id, {"is_active": False})

        logger.info("Completed maintenance request", extra={"entity_id": request_id})
        return await self.get(request_id)
