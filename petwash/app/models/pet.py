"""
Pet database model.
"""

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from sqlalchemy.sql import func
from petwash.app.db.session import Base


class Pet(Base):
    """A pet belonging to an owner. Walks are booked per pet."""
    __tablename__ = "pets"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    owner_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    name = Column(String(100), nullable=False)
    breed = Column(String(100), nullable=False, default="")
    photo_url = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Pet(id={self.id}, name='{self.name}', owner_id={self.owner_id})>"
