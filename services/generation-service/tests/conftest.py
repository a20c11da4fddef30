import os
import sys
import tempfile
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from fastapi.testclient import TestClient

SERVICE_ROOT = Path(__file__).resolve().parents[1]
if str(SERVICE_ROOT) not in sys.path:
    sys.path.insert(0, str(SERVICE_ROOT))

# settings and the engine are built at import time, so the environment is pinned first
_DB_DIR = Path(tempfile.mkdtemp(prefix="generation_db_"))
TEST_DB_URL = f"sqlite:///{_DB_DIR / 'test_generation.db'}"
TEST_ENCRYPTION_KEY = "test-encryption-passphrase"

os.environ["GENERATION_DATABASE_URL"] = TEST_DB_URL
os.environ["SECRET_ENCRYPTION_KEY"] = TEST_ENCRYPTION_KEY
os.environ["TASK_STORE_BACKEND"] = "memory"
os.environ["EXECUTION_BACKEND"] = "pool"
os.environ["AI_RETRY_DELAY_SECONDS"] = "0"
os.environ["PLAN_SAVE_RETRY_DELAY_SECONDS"] = "0"
os.environ.setdefault("APP_ENV", "test")

from fakes import OWNER_ID  # noqa: E402
from generation_service.security import SecretCipher  # noqa: E402
from generation_service.services.provider_configs import ProviderConfigService  # noqa: E402


def _alembic_upgrade_head(db_url: str) -> None:
    os.environ["GENERATION_DATABASE_URL"] = db_url
    cfg = Config(str(SERVICE_ROOT / "alembic.ini"))
    # Pin script_location explicitly to avoid picking up wrong migrations when running from repo root
    cfg.set_main_option("script_location", str(SERVICE_ROOT / "alembic"))
    command.upgrade(cfg, "head")


@pytest.fixture(scope="session")
def migrated_db() -> str:
    _alembic_upgrade_head(TEST_DB_URL)
    return TEST_DB_URL


@pytest.fixture()
def session_factory(migrated_db: str):
    from generation_service.database import SessionLocal

    return SessionLocal


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def auto_clean_tables(migrated_db: str):
    """Fixture to automatically clean all tables after each test."""
    yield
    from generation_service.database import engine
    from generation_service.models import Base

    with engine.connect() as connection:
        transaction = connection.begin()
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())
        transaction.commit()


@pytest.fixture()
def cipher() -> SecretCipher:
    return SecretCipher(TEST_ENCRYPTION_KEY)


@pytest.fixture()
def provider_config_service(cipher: SecretCipher) -> ProviderConfigService:
    return ProviderConfigService(cipher, timeout_seconds=5)


@pytest.fixture()
def client(migrated_db: str):
    from generation_service.dependencies import get_db
    from generation_service.main import app

    def override_get_db():
        from generation_service.database import SessionLocal

        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture()
def user_headers() -> dict[str, str]:
    return {"X-User-Id": OWNER_ID}

