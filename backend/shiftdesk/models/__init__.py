from .enums import AvailabilityStatus, StaffType, SwapStatus, UserRole, WeekState
from .user import User
from .staff_profile import StaffProfile
from .shift_type import ShiftType
from .shift_role import ShiftRole, UserShiftRole
from .shift_template import ShiftTemplate
from .schedule_week import ScheduleWeek
from .shift_instance import ShiftInstance
from .shift_assignment import ShiftAssignment
from .availability import Availability
from .swap_request import SwapRequest
from .export import Export
from .audit_log import AuditLog

__all__ = [
    "AvailabilityStatus",
    "StaffType",
    "SwapStatus",
    "UserRole",
    "WeekState",
    "User",
    "StaffProfile",
    "ShiftType",
    "ShiftRole",
    "UserShiftRole",
    "ShiftTemplate",
    "ScheduleWeek",
    "ShiftInstance",
    "ShiftAssignment",
    "Availability",
    "SwapRequest",
    "Export",
    "AuditLog",
]
