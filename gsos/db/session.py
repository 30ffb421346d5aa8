"""Engine and session factory for the audit store."""

import logging
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from gsos.core.config import get_settings
from gsos.db.base import Base

logger = logging.getLogger(__name__)


def create_db_engine(database_url: Optional[str] = None) -> Engine:
    url = database_url or get_settings().database_url
    connect_args = {}
    if url.startswith("sqlite"):
        # Sessions are used from the request thread pool
        connect_args["check_same_thread"] = False
    return create_engine(url, connect_args=connect_args)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create audit tables if they do not exist yet."""
    # Register models on the metadata
    import gsos.db.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Audit store initialized at %s", engine.url.render_as_string(hide_password=True))
