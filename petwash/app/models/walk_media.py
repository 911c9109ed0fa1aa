"""
Photo and emergency alert models attached to a walk.
"""

from sqlalchemy import Column, Integer, String, Text, Boolean, ForeignKey, DateTime
from sqlalchemy.sql import func
from petwash.app.db.session import Base


class WalkPhoto(Base):
    __tablename__ = "walk_photos"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    walk_id = Column(Integer, ForeignKey('walk_sessions.id'), nullable=False, index=True)
    url = Column(String(500), nullable=False)
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<WalkPhoto(id={self.id}, walk_id={self.walk_id})>"


class WalkAlert(Base):
    """
    Emergency alert raised during a walk.

    Only `resolved` changes after creation.
    """
    __tablename__ = "walk_alerts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    walk_id = Column(Integer, ForeignKey('walk_sessions.id'), nullable=False, index=True)
    raised_by = Column(Integer, ForeignKey('users.id'), nullable=False)
    message = Column(Text, nullable=False)
    resolved = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<WalkAlert(id={self.id}, walk_id={self.walk_id}, resolved={self.resolved})>"
