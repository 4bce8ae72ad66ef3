"""
Domain repositories built on the EntityStore.
"""

from .base import EavRepository, Page, paginate
from .courses import Course, CourseRepository
from .maintenance import MaintenanceRepository, MaintenanceRequest
from .rooms import Room, RoomRepository
from .subjects import Subject, SubjectRepository

__all__ = [
    "EavRepository",
    "Page",
    "paginate",
    "Course",
    "CourseRepository",
    "MaintenanceRepository",
    "MaintenanceRequest",
    "Room",
    "RoomRepository",
    "Subject",
    "SubjectRepository",
]
