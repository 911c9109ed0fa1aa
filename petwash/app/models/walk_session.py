"""
Walk session database model.

One row per booked walk. Duration and distance are maintained here by the
server and are the only aggregates clients display.
"""

from sqlalchemy import Column, Integer, ForeignKey, DateTime, Enum, Float
from sqlalchemy.sql import func
from petwash.app.db.session import Base
from petwash.app.models.enums import WalkStatus, ActivityLevel


class WalkSession(Base):
    """
    Walk session model.

    Mutated by the walker's GPS/health/photo/alert submissions while active;
    read-only once completed or cancelled.
    """
    __tablename__ = "walk_sessions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    owner_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    walker_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    pet_id = Column(Integer, ForeignKey('pets.id'), nullable=False, index=True)

    status = Column(Enum(WalkStatus), default=WalkStatus.PENDING, nullable=False, index=True)

    start_time = Column(DateTime(timezone=True), nullable=True)
    end_time = Column(DateTime(timezone=True), nullable=True)

    # Pickup point agreed at booking; check-in is validated against it
    pickup_latitude = Column(Float, nullable=True)
    pickup_longitude = Column(Float, nullable=True)

    # Server-computed aggregates
    duration_minutes = Column(Integer, nullable=False, default=0)
    distance_meters = Column(Integer, nullable=False, default=0)

    # Health snapshot (overwritten on each update)
    heart_rate = Column(Integer, nullable=True)
    activity_level = Column(Enum(ActivityLevel), default=ActivityLevel.LOW, nullable=False)
    steps_count = Column(Integer, nullable=False, default=0)
    calories_burned = Column(Float, nullable=False, default=0.0)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<WalkSession(id={self.id}, pet_id={self.pet_id}, status='{self.status.value}')>"
