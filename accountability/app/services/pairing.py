"""
Pairing Service.

Capacity-bounded registration and partner resolution. The two users are
bound by a single `Pair` record; the partner of a user is read from it,
never inferred by excluding the caller from the users table.
"""

import logging
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError

from accountability.app.models.user import User
from accountability.app.models.pair import Pair, PAIR_ID, MAX_MEMBERS
from accountability.app.core.security import get_password_hash, verify_password
from accountability.app.core.exceptions import (
    AuthenticationError, EmailAlreadyRegisteredError, RegistrationClosedError
)

logger = logging.getLogger("accountability.pairing")


class PairingService:

    @staticmethod
    async def count_users(db: AsyncSession) -> int:
        result = await db.execute(select(func.count(User.id)))
        return result.scalar() or 0

    @staticmethod
    async def get_user(db: AsyncSession, user_id: int) -> Optional[User]:
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    @staticmethod
    async def register(db: AsyncSession, email: str, name: str, password: str) -> User:
        """
        Register one of the two pair members.

        Flow:
        1. Refuse once both accounts exist (regardless of the email used)
        2. Refuse duplicate emails
        3. Insert the user and claim a slot in the pair record

        A concurrent registration that creates the pair first makes the
        insert fail; the whole attempt is then replayed once against the
        existing pair.

        Raises:
            RegistrationClosedError: both accounts already exist
            EmailAlreadyRegisteredError: the email is taken
        """
        password_hash = get_password_hash(password)

        for attempt in range(2):
            if await PairingService.count_users(db) >= MAX_MEMBERS:
                raise RegistrationClosedError()

            if await PairingService.get_by_email(db, email):
                raise EmailAlreadyRegisteredError()

            try:
                user = User(email=email, name=name, password_hash=password_hash)
                db.add(user)
                await db.flush()

                claimed = await PairingService._claim_slot(db, user.id)
                if not claimed:
                    await db.rollback()
                    raise RegistrationClosedError()

                await db.commit()
            except IntegrityError:
                await db.rollback()
                if attempt == 0:
                    logger.info("Registration for %s raced another registration, retrying", email)
                    continue
                raise RegistrationClosedError()

            await db.refresh(user)
            logger.info("Registered user %s", user.id)
            return user

        raise RegistrationClosedError()

    @staticmethod
    async def _claim_slot(db: AsyncSession, user_id: int) -> bool:
        """Put the user into the pair: create it, or fill its empty second slot."""
        pair = await db.get(Pair, PAIR_ID)

        if pair is None:
            db.add(Pair(id=PAIR_ID, first_user_id=user_id))
            await db.flush()
            return True

        result = await db.execute(
            update(Pair)
            .where(Pair.id == PAIR_ID, Pair.second_user_id.is_(None))
            .values(second_user_id=user_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    async def authenticate(db: AsyncSession, email: str, password: str) -> User:
        """Return the user for valid credentials, raise AuthenticationError otherwise."""
        user = await PairingService.get_by_email(db, email)
        if user is None or not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid email or password")
        return user

    @staticmethod
    async def partner_of(db: AsyncSession, user_id: int) -> Optional[User]:
        """The other pair member, or None until both users are registered."""
        result = await db.execute(
            select(Pair).where(Pair.id == PAIR_ID).execution_options(populate_existing=True)
        )
        pair = result.scalar_one_or_none()
        if pair is None:
            return None

        partner_id = pair.partner_of(user_id)
        if partner_id is None:
            return None
        return await PairingService.get_user(db, partner_id)
