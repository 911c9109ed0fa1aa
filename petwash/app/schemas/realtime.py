"""
Realtime channel message schemas.

Control messages flow client -> server; walk events flow server -> client.
"""

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Optional, Literal, Union
from petwash.app.schemas.walk import GeoSample


WALK_CHANNEL_PREFIX = "walk:"


def walk_channel(walk_id) -> str:
    """Topic name for one walk session."""
    return f"{WALK_CHANNEL_PREFIX}{walk_id}"


class SubscribeMessage(BaseModel):
    type: Literal["subscribe"] = "subscribe"
    channel: str
    user_id: Optional[Union[int, str]] = Field(default=None, alias="userId")

    class Config:
        populate_by_name = True


class UnsubscribeMessage(BaseModel):
    type: Literal["unsubscribe"] = "unsubscribe"
    channel: str


class WalkEvent(BaseModel):
    """
    Server push for one walk.

    location is set for gps_update, message for emergency_alert.
    """
    type: Literal["gps_update", "health_update", "photo_uploaded", "emergency_alert"]
    walk_id: int
    location: Optional[GeoSample] = None
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        alias_generator = to_camel
        populate_by_name = True
