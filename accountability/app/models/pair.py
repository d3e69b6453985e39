"""
Pair database model.

The single record binding the two registered users together.
"""

from sqlalchemy import Column, Integer, ForeignKey
from accountability.app.db.session import Base
from accountability.app.core.clock import now_epoch


# Only one pair ever exists
PAIR_ID = 1
MAX_MEMBERS = 2


class Pair(Base):
    """
    Pair model.

    The first registered user creates the pair, the second fills the empty
    slot. A full pair refuses any further member.
    """
    __tablename__ = "pairs"

    id = Column(Integer, primary_key=True, autoincrement=False)

    first_user_id = Column(Integer, ForeignKey('users.id'), nullable=False, unique=True)
    second_user_id = Column(Integer, ForeignKey('users.id'), nullable=True, unique=True)

    created_at = Column(Integer, default=now_epoch, nullable=False)

    def partner_of(self, user_id: int):
        """Return the other member's id, or None when the user has no partner yet."""
        if user_id == self.first_user_id:
            return self.second_user_id
        if user_id == self.second_user_id:
            return self.first_user_id
        return None

    def __repr__(self):
        return f"<Pair(first={self.first_user_id}, second={self.second_user_id})>"
