# core_portal/core/database.py

import ssl
from dotenv import load_dotenv
from typing import AsyncGenerator

from loguru import logger
from sqlmodel import SQLModel
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine
)
from sqlalchemy.pool import NullPool
from sqlalchemy import text

from core_portal.core.config import settings

# ----------------------------------------------------
# Load environment
# ----------------------------------------------------
load_dotenv()
DATABASE_URL = settings.DATABASE_URL

if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set")

IS_SQLITE = DATABASE_URL.startswith("sqlite")


# ----------------------------------------------------
# SSL for managed Postgres poolers
# ----------------------------------------------------
def make_ssl():
    ctx = ssl.create_default_context()
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return ctx


def build_connect_args() -> dict:
    if IS_SQLITE:
        return {"check_same_thread": False}

    args = {
        "statement_cache_size": 0,           # pooler friendly
        "prepared_statement_name_func": None,
    }
    if settings.ENV == "prod":
        args["ssl"] = make_ssl()
    return args


logger.info(f"Configuring database ({'sqlite' if IS_SQLITE else 'postgres'})")


# ----------------------------------------------------
# Engine
# ----------------------------------------------------
engine = create_async_engine(
    DATABASE_URL,
    echo=False,
    future=True,
    connect_args=build_connect_args(),
    pool_pre_ping=not IS_SQLITE,
    poolclass=NullPool,
)


# ----------------------------------------------------
# Sessions
# ----------------------------------------------------
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session


# ----------------------------------------------------
# Create tables
# ----------------------------------------------------
async def init_db():
    # Register every table on the metadata before create_all
    from core_portal.models import (  # noqa: F401
        user, student, service, form, registration, answer,
        document, scheduling, lead, audit,
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def drop_db():
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)


# ----------------------------------------------------
# Test Connection
# ----------------------------------------------------
async def test_connection():
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
        logger.info("DB connection OK")
