"""
Enumerations for the Walk-My-Pet domain.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Platform staff, can see every walk
        OWNER: Pet owner who books walks (default role)
        WALKER: Dog walker who executes walks
    """
    ADMIN = "ADMIN"
    OWNER = "OWNER"
    WALKER = "WALKER"


class WalkStatus(str, enum.Enum):
    """Walk session lifecycle."""
    PENDING = "pending"  # Booked, walker has not started
    ACTIVE = "active"  # Walk in progress, GPS streaming
    COMPLETED = "completed"  # Walker checked out
    CANCELLED = "cancelled"  # Cancelled before or during the walk


class ActivityLevel(str, enum.Enum):
    """Categorical activity level reported by the walker's device."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
