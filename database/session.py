from dataclasses import dataclass
from typing import Optional
import logging
import os

from dotenv import load_dotenv
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlmodel import SQLModel, create_engine

load_dotenv()

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    database_url: str = ""
    database_key: str = ""
    local_store_path: str = "pos_storage.json"
    session_secret: str = "change-me-kasirpos-session-key"
    log_level: str = "INFO"

    @property
    def remote_configured(self) -> bool:
        # Both strings are required, an empty one means local-only mode
        return bool(self.database_url.strip() and self.database_key.strip())


def load_settings() -> Settings:
    defaults = Settings()
    return Settings(
        database_url=os.getenv("DATABASE_URL", ""),
        database_key=os.getenv("DATABASE_KEY", ""),
        local_store_path=os.getenv("POS_LOCAL_STORE") or defaults.local_store_path,
        session_secret=os.getenv("SESSION_SECRET") or defaults.session_secret,
        log_level=os.getenv("LOG_LEVEL") or defaults.log_level,
    )


def build_engine(settings: Settings) -> Optional[Engine]:
    """
    Returns an engine for the remote backend, or None when the gateway
    should run against the local mirror only.
    Supabase hands out a plain Postgres URL plus a key; the key is used as the
    connection password when the URL names a user but carries no password.
    """
    if not settings.remote_configured:
        logger.info("Remote backend not configured, running local-only")
        return None

    try:
        url = make_url(settings.database_url.strip())
    except ArgumentError as e:
        logger.warning("Malformed DATABASE_URL, running local-only: %s", e)
        return None

    if url.username and not url.password:
        url = url.set(password=settings.database_key.strip())

    # check_same_thread=False is needed only for SQLite
    connect_args = {"check_same_thread": False} if url.get_backend_name() == "sqlite" else {}

    try:
        return create_engine(url, connect_args=connect_args, pool_pre_ping=True)
    except (ArgumentError, ImportError) as e:
        logger.warning("Could not create engine for remote backend, running local-only: %s", e)
        return None


def create_db_and_tables(engine: Engine) -> bool:
    try:
        SQLModel.metadata.create_all(engine)
        return True
    except SQLAlchemyError as e:
        logger.warning("Remote backend unreachable while creating tables: %s", e)
        return False
