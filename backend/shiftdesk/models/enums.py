import enum


class WeekState(str, enum.Enum):
    COLLECTING = "collecting"
    LOCKED = "locked"
    PUBLISHED = "published"


class StaffType(str, enum.Enum):
    VOLUNTEER = "volunteer"
    LONG_TERM = "long_term"
    OTHER = "other"


class UserRole(str, enum.Enum):
    OWNER = "owner"
    ADMIN = "admin"
    ASSISTANT_MANAGER = "assistant_manager"
    GUIDE = "guide"
    STAFF = "staff"


class AvailabilityStatus(str, enum.Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


class SwapStatus(str, enum.Enum):
    PENDING_PARTNER = "pending_partner"
    PENDING_MANAGER = "pending_manager"
    APPROVED = "approved"
    DENIED = "denied"
    CANCELED = "canceled"


PENDING_SWAP_STATES = (SwapStatus.PENDING_PARTNER.value, SwapStatus.PENDING_MANAGER.value)
