from typing import Iterator, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session, create_engine

from forecasta.core.config import settings
from forecasta.core.errors import ServiceUnavailable


def make_engine(url: Optional[str]) -> Optional[Engine]:
    if not url:
        return None
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


engine: Optional[Engine] = make_engine(settings.database_url)


def get_session() -> Iterator[Session]:
    if engine is None:
        raise ServiceUnavailable("database", "Database not configured. Set DATABASE_URL.")
    with Session(engine) as session:
        yield session
