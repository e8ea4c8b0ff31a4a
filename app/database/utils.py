from datetime import datetime
from typing import Optional
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from database.models import Credentials, TwoFactorEngine, twofa_engine


async def create_tables():
    async with twofa_engine.begin() as conn:
        await conn.run_sync(TwoFactorEngine.metadata.create_all)


async def fetch_credential(session: AsyncSession, label: str, for_update: bool = False) -> Optional[Credentials]:
    query = select(Credentials).where(Credentials.label == label)
    if for_update:
        # ignored by sqlite, mark_totp_spent does not rely on it
        query = query.with_for_update()
    result = await session.execute(query)
    return result.scalars().first()


async def mark_totp_spent(session: AsyncSession, credential: Credentials, totp: str) -> bool:
    """
    Shift the spent TOTP history of a credential and record `totp` as the latest one.

    The write only happens if the history still holds the values `credential`
    was loaded with, so of several concurrent verifications of the same code
    exactly one wins.

    Returns:
        True if the TOTP was recorded, False if the history changed in the meantime
    """
    result = await session.execute(
        update(Credentials)
        .where(
            Credentials.id == credential.id,
            Credentials.last_totp == credential.last_totp,
            Credentials.prev_totp == credential.prev_totp,
        )
        .values(
            prev_totp=Credentials.last_totp,
            last_totp=totp,
            last_verified=datetime.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    return result.rowcount == 1
