"""
Walk Location database model.

Stores the GPS breadcrumb trail of a walk.
"""

from sqlalchemy import Column, Integer, Float, ForeignKey, DateTime
from sqlalchemy.sql import func
from petwash.app.db.session import Base


class WalkLocation(Base):
    """
    One GPS reading. Append-only; ordered by recorded_at.
    """
    __tablename__ = "walk_locations"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    walk_id = Column(Integer, ForeignKey('walk_sessions.id'), nullable=False, index=True)

    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    accuracy_meters = Column(Float, nullable=False, default=0.0)

    recorded_at = Column(DateTime(timezone=True), nullable=False)  # When GPS was captured
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<WalkLocation(walk_id={self.walk_id}, lat={self.latitude}, lon={self.longitude})>"
