from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from .config import settings


def _connect_args(url: str) -> dict:
    # sessions are used from worker threads via asyncio.to_thread
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    settings.GENERATION_DATABASE_URL,
    pool_pre_ping=True,
    connect_args=_connect_args(settings.GENERATION_DATABASE_URL),
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
