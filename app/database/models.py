import sqlalchemy
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from dotenv import load_dotenv
import os
from common.log_handler import log
from contextlib import asynccontextmanager
load_dotenv()


class TwoFactorEngine(DeclarativeBase):
    pass


def _async_database_url(url: str) -> str:
    # the env var holds the "normal" url, the engine needs the async driver
    if url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + url[len("postgresql://"):]
    if url.startswith("sqlite:///"):
        return "sqlite+aiosqlite:///" + url[len("sqlite:///"):]
    return url


try:
    databasepath = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./twofa.db").strip()
    if not databasepath:
        raise ValueError("DATABASE_URL is empty")
    databasepath = _async_database_url(databasepath)
    if databasepath.startswith("sqlite"):
        # aiosqlite connections must not outlive the event loop that opened them
        twofa_engine = create_async_engine(databasepath, echo=False, poolclass=NullPool)
    else:
        twofa_engine = create_async_engine(databasepath, echo=False, pool_size=20, max_overflow=10, pool_recycle=3600, pool_pre_ping=True)
except Exception as e:
    log.critical(f"Database connection failed: {e}")
    raise e


class Credentials(TwoFactorEngine):
    __tablename__ = 'totp_credentials'
    id = sqlalchemy.Column(sqlalchemy.Integer, primary_key=True)
    label = sqlalchemy.Column(sqlalchemy.String, unique=True, nullable=False)
    totp_secret = sqlalchemy.Column(sqlalchemy.String, nullable=False)

    # the two most recently accepted TOTPs, empty until used
    last_totp = sqlalchemy.Column(sqlalchemy.String, default="", nullable=False)
    prev_totp = sqlalchemy.Column(sqlalchemy.String, default="", nullable=False)

    created_at = sqlalchemy.Column(sqlalchemy.DateTime, server_default=sqlalchemy.func.now())
    last_verified = sqlalchemy.Column(sqlalchemy.DateTime, nullable=True)

    def spent_totps(self):
        return [self.last_totp or "", self.prev_totp or ""]


AsyncSessionLocal = async_sessionmaker(twofa_engine, class_=AsyncSession, expire_on_commit=False)

@asynccontextmanager
async def get_session():
    async with AsyncSessionLocal() as session:
        yield session

"""
Aquire this session with:
async with get_session() as session:
"""
