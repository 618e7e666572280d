"""User database model."""
from sqlalchemy import Column, String, TIMESTAMP, Integer
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from journal.models.base import Base

class User(Base):
    """
    Journal owner. Every position is scoped to exactly one user.
    """
    __tablename__ = 'users'
    
    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    
    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now())
    
    positions = relationship("Position", back_populates="user", cascade="all, delete-orphan")
