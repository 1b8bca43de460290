"""Tests for intake persistence and schema bootstrap."""
import sqlalchemy

from docintake.db.bootstrap import init_db
from docintake.db.repository import IntakeRepository, build_engine, normalize_database_url
from docintake.schemas.intake import IntegrationError, ReconciliationOutcome


def _outcome(**overrides) -> ReconciliationOutcome:
    values = dict(
        lead_id="L-1",
        tld_status="file_error",
        connex_status="ok",
        errors=[
            IntegrationError(stage="file", message="upload one failed"),
            IntegrationError(stage="file", message="upload two failed"),
        ],
        tld_meta={"upsert": {"response": {"lead_id": "L-1"}}},
    )
    values.update(overrides)
    return ReconciliationOutcome(**values)


def test_create_persists_queued_record(repository: IntakeRepository, jane_form, stored_file):
    descriptor = stored_file("W2 2024.pdf")

    record = repository.create(jane_form, [descriptor])

    loaded = repository.get(record.id)
    assert loaded.tld_status == "queued"
    assert loaded.connex_status == "queued"
    assert loaded.lead_id is None
    assert loaded.completed_at is None
    assert loaded.files == [descriptor]
    assert loaded.email == "jane.doe@example.org"


def test_complete_applies_only_once(repository: IntakeRepository, jane_form):
    record = repository.create(jane_form, [])

    assert repository.complete(record.id, _outcome()) is True
    assert repository.complete(record.id, _outcome(lead_id="L-2", tld_status="lead_ok")) is False

    loaded = repository.get(record.id)
    assert loaded.lead_id == "L-1"
    assert loaded.tld_status == "file_error"
    assert loaded.tld_error == "upload one failed | upload two failed"
    assert loaded.connex_error is None
    assert [e.stage for e in loaded.errors] == ["file", "file"]
    assert loaded.tld_meta == {"upsert": {"response": {"lead_id": "L-1"}}}
    assert loaded.completed_at is not None


def test_complete_unknown_record_returns_false(repository: IntakeRepository):
    assert repository.complete("missing", _outcome()) is False


def test_list_recent_is_newest_first_and_limited(repository: IntakeRepository, jane_form):
    ids = [repository.create(jane_form, []).id for _ in range(3)]

    recent = repository.list_recent(limit=2)

    assert [r.id for r in recent] == [ids[2], ids[1]]


def test_normalize_database_url_variants():
    assert normalize_database_url("postgres://u:p@h/db") == "postgresql://u:p@h/db"
    assert normalize_database_url("postgresql+psycopg://u@h/db") == "postgresql+psycopg2://u@h/db"
    assert sqlalchemy.engine.make_url(normalize_database_url("postgresql+psycopg://u@h/db")).get_driver_name() == "psycopg2"
    assert normalize_database_url(" sqlite:///x.db ") == "sqlite:///x.db"


def test_init_db_adds_late_columns_to_old_table(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'old.db'}")
    with engine.begin() as conn:
        conn.execute(sqlalchemy.text(
            "CREATE TABLE uploads ("
            " id VARCHAR(36) PRIMARY KEY, created_at DATETIME NOT NULL,"
            " first_name TEXT NOT NULL, last_name TEXT NOT NULL, phone TEXT NOT NULL,"
            " email TEXT NOT NULL, ssn_last4 TEXT NOT NULL, lead_id TEXT,"
            " tld_status TEXT, tld_error TEXT, connex_status TEXT, connex_error TEXT,"
            " files JSON NOT NULL)"
        ))

    added = init_db(engine)

    assert added == ["tld_meta", "errors", "completed_at"]
    assert init_db(engine) == []
    columns = {c["name"] for c in sqlalchemy.inspect(engine).get_columns("uploads")}
    assert {"tld_meta", "errors", "completed_at"} <= columns
    engine.dispose()
