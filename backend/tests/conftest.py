"""Test fixtures — file-backed SQLite per test, content library and FastAPI test client."""

import os
import tempfile

# Keep import-time directory creation out of the source tree
_SANDBOX = tempfile.mkdtemp(prefix="portfolio-tests-")
os.environ.setdefault("PORTFOLIO_DATA_DIR", _SANDBOX)
os.environ.setdefault("PORTFOLIO_BLOB_DIR", os.path.join(_SANDBOX, "blobs"))
os.environ.setdefault("PORTFOLIO_STATIC_DIR", os.path.join(_SANDBOX, "static"))
os.environ.setdefault("PORTFOLIO_TEMPLATE_DIR", os.path.join(_SANDBOX, "templates"))
os.environ.setdefault("PORTFOLIO_DATABASE_PATH", os.path.join(_SANDBOX, "portfolio.db"))
os.environ.setdefault("PORTFOLIO_ADMIN_PASSWORD", "s3cret")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from jose import jwt  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from portfolio.api.deps import get_library  # noqa: E402
from portfolio.config import settings  # noqa: E402
from portfolio.main import create_app  # noqa: E402
from portfolio.models import Base  # noqa: E402
from portfolio.services.file_store import FileStore  # noqa: E402
from portfolio.services.library import ContentLibrary  # noqa: E402
from portfolio.services.placement import PlacementEngine  # noqa: E402
from portfolio.services.record_store import ContentRecordStore  # noqa: E402
from portfolio.services.templates import TemplateRenderer  # noqa: E402

# Small enough to exercise both placements without megabyte fixtures
TEST_THRESHOLD = 64


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Async sessions over a fresh SQLite file (in-memory DBs are per-connection)."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def records(session_factory) -> ContentRecordStore:
    return ContentRecordStore(session_factory)


@pytest.fixture
def blobs(tmp_path) -> FileStore:
    return FileStore(tmp_path / "blobs", chunk_size=16)


@pytest.fixture
def engine(records, blobs) -> PlacementEngine:
    return PlacementEngine(records, blobs, threshold=TEST_THRESHOLD, chunk_size=16)


@pytest.fixture
def library(engine, tmp_path) -> ContentLibrary:
    template_dir = tmp_path / "templates"
    return ContentLibrary(
        engine=engine,
        static_root=FileStore(tmp_path / "static", chunk_size=16),
        template_root=FileStore(template_dir, chunk_size=16),
        templates=TemplateRenderer(template_dir),
        chunk_size=16,
    )


@pytest.fixture
def admin_token() -> str:
    return jwt.encode(
        {"sub": settings.admin_username},
        settings.secret_key,
        algorithm=settings.token_algorithm,
    )


@pytest.fixture
def auth_headers(admin_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {admin_token}"}


@pytest_asyncio.fixture
async def client(library: ContentLibrary):
    """Provide an async test client wired to the per-test content library."""
    app = create_app()
    app.dependency_overrides[get_library] = lambda: library

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
