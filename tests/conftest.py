"""Shared fixtures: explicit settings, a SQLite repository and a file store."""
import io
from pathlib import Path

import pytest
from starlette.datastructures import Headers
from fastapi import UploadFile

from docintake.config import Settings
from docintake.db.bootstrap import init_db
from docintake.db.repository import IntakeRepository, build_engine
from docintake.schemas.intake import FileDescriptor, IntakeForm
from docintake.services.lead_system import TldLeadService
from docintake.services.notification_relay import NotificationRelay
from docintake.services.storage import FileStore

TLD_BASE = "https://tld.test"
INGRESS_URL = f"{TLD_BASE}/api/ingress/leads"
EGRESS_URL = f"{TLD_BASE}/api/egress/leads"
CONNEX_URL = "https://connex.test/trigger"


def upload_url(lead_id: str) -> str:
    return f"{TLD_BASE}/api/ingress/documents/upload/lead/{lead_id}"


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings built explicitly so the developer's .env never leaks in."""

    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite:///{tmp_path / 'intake.db'}",
        UPLOAD_DIR=str(tmp_path / "uploads"),
        TLD_BASE_URL=TLD_BASE,
        TLD_API_ID="api-id",
        TLD_API_KEY="api-key",
        TLD_AUTH_MODE="headers",
        CONNEX_TRIGGER_URL=CONNEX_URL,
        CONNEX_BASIC_AUTH="Basic Y29ubmV4OnNlY3JldA==",
        ADMIN_USER="admin",
        ADMIN_PASS="s3cret",
        HTTP_TIMEOUT_MS=2000,
    )


@pytest.fixture
def repository(settings: Settings) -> IntakeRepository:
    engine = build_engine(settings.DATABASE_URL)
    init_db(engine)
    yield IntakeRepository(engine)
    engine.dispose()


@pytest.fixture
def file_store(settings: Settings) -> FileStore:
    store = FileStore(settings)
    store.ensure_upload_dir()
    return store


@pytest.fixture
def lead_service(settings: Settings) -> TldLeadService:
    return TldLeadService(settings)


@pytest.fixture
def relay(settings: Settings) -> NotificationRelay:
    return NotificationRelay(settings)


@pytest.fixture
def jane_form() -> IntakeForm:
    return IntakeForm(
        first_name="Jane",
        last_name="Doe",
        phone="555-0100",
        email="jane.doe@example.org",
        ssn_last4="9876",
        certify=True,
    )


@pytest.fixture
def make_upload():
    """Build an in-memory UploadFile like the one FastAPI hands to routes."""

    def _make(filename: str, content: bytes, content_type: str = "application/pdf") -> UploadFile:
        return UploadFile(
            file=io.BytesIO(content),
            filename=filename,
            headers=Headers({"content-type": content_type}),
        )

    return _make


@pytest.fixture
def stored_file(settings: Settings):
    """Write a document into the upload directory and describe it."""

    def _store(originalname: str, content: bytes = b"%PDF-1.4 test") -> FileDescriptor:
        upload_dir = Path(settings.UPLOAD_DIR)
        upload_dir.mkdir(parents=True, exist_ok=True)
        stored_as = originalname.replace(" ", "_")
        path = upload_dir / stored_as
        path.write_bytes(content)
        return FileDescriptor(
            originalname=originalname,
            mimetype="application/pdf",
            size=len(content),
            stored_as=stored_as,
            path=str(path),
        )

    return _store
