"""
Walk-My-Pet schemas.

The snapshot models mirror the JSON the tracking page consumes
(camelCase on the wire) and are shared by the live tracking client.
"""

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import List, Optional
from petwash.app.models.enums import WalkStatus, ActivityLevel


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases, accepting both spellings."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# --- Snapshot (GET /api/walk-my-pet/walks/{walkId}) ---

class GeoSample(CamelModel):
    """One timestamped GPS reading."""
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)
    timestamp: datetime
    accuracy: float = Field(default=0.0, ge=0)


class WalkerInfo(CamelModel):
    id: int
    first_name: str
    last_name: str
    phone_number: str
    photo_url: Optional[str] = None
    rating: float


class PetInfo(CamelModel):
    id: int
    name: str
    breed: str
    photo_url: Optional[str] = None


class HealthMetrics(CamelModel):
    """Point-in-time health snapshot."""
    heart_rate: Optional[int] = None
    activity_level: ActivityLevel = ActivityLevel.LOW
    steps_count: int = 0
    calories_burned: float = 0.0


class EmergencyAlertInfo(CamelModel):
    id: int
    timestamp: datetime
    message: str
    resolved: bool


class WalkSnapshot(CamelModel):
    """Full state of one walk session as served to the tracking view."""
    id: int
    status: WalkStatus
    walker: WalkerInfo
    pet: PetInfo
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    current_location: Optional[GeoSample] = None
    route_history: List[GeoSample] = Field(default_factory=list)
    health_metrics: HealthMetrics = Field(default_factory=HealthMetrics)
    duration: int = 0  # minutes
    distance: int = 0  # meters
    photos: List[str] = Field(default_factory=list)
    emergency_alerts: List[EmergencyAlertInfo] = Field(default_factory=list)


class WalkSummary(CamelModel):
    """Row in the owner/walker walk lists."""
    id: int
    status: WalkStatus
    pet_id: int
    walker_id: int
    owner_id: int
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: int = 0
    distance: int = 0


# --- Requests ---

class PetCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    breed: str = Field(default="", max_length=100)
    photo_url: Optional[str] = Field(default=None, max_length=500)


class WalkBookingRequest(CamelModel):
    pet_id: int
    walker_id: int
    pickup_lat: Optional[float] = Field(default=None, ge=-90, le=90)
    pickup_lon: Optional[float] = Field(default=None, ge=-180, le=180)


class WalkStartRequest(CamelModel):
    """Optional check-in location sent when the walker starts."""
    location: Optional[GeoSample] = None


class WalkCompleteRequest(CamelModel):
    """Optional check-out location sent when the walker finishes."""
    location: Optional[GeoSample] = None


class HealthUpdate(CamelModel):
    heart_rate: Optional[int] = Field(default=None, gt=0, lt=400)
    activity_level: ActivityLevel
    steps_count: int = Field(..., ge=0)
    calories_burned: float = Field(..., ge=0)


class PhotoUpload(CamelModel):
    url: str = Field(..., min_length=1, max_length=500)


class EmergencyRequest(CamelModel):
    message: str = Field(..., min_length=1, max_length=1000)


# --- Responses ---

class PetResponse(CamelModel):
    id: int
    owner_id: int
    name: str
    breed: str
    photo_url: Optional[str] = None
    created_at: datetime
