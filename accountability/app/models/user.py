"""
User database model.

This module defines the User SQLAlchemy model for authentication.
"""

from sqlalchemy import Column, Integer, String
from accountability.app.db.session import Base
from accountability.app.core.clock import now_epoch


class User(Base):
    """
    User model for authentication.

    At most two users exist; both are bound together by the `Pair` record.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False)
    password_hash = Column(String(255), nullable=False)

    created_at = Column(Integer, default=now_epoch, nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, name='{self.name}', email='{self.email}')>"
