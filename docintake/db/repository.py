"""Persistence for intake records.

Each record is written twice: once at intake (status `queued`) and once when
its reconciliation completes. Nothing here deletes records.
"""

import contextlib
import datetime
import logging
import uuid
from typing import Iterator

import sqlalchemy
from sqlalchemy import orm

from docintake.db import models
from docintake.schemas import intake as intake_lib

Engine = sqlalchemy.engine.Engine
Session = orm.Session
Upload = models.Upload
IntakeForm = intake_lib.IntakeForm
IntakeRecord = intake_lib.IntakeRecord
FileDescriptor = intake_lib.FileDescriptor
ReconciliationOutcome = intake_lib.ReconciliationOutcome

LEAD_STAGES = ("upsert", "search", "file")
CONNEX_STAGES = ("connex",)


def normalize_database_url(raw: str) -> str:
  """Maps common DATABASE_URL spellings onto SQLAlchemy dialect names."""
  url = (raw or "").strip()
  if url.startswith("postgres://"):
    url = "postgresql://" + url[len("postgres://"):]
  if url.startswith("postgresql+psycopg://"):
    url = "postgresql+psycopg2://" + url[len("postgresql+psycopg://"):]
  return url


def build_engine(database_url: str) -> Engine:
  url = normalize_database_url(database_url)
  connect_args = {}
  if url.startswith("sqlite"):
    # Background workers write from a thread pool.
    connect_args["check_same_thread"] = False
  return sqlalchemy.create_engine(url, connect_args=connect_args)


class IntakeRepository:
  """Reads and writes `uploads` rows."""

  def __init__(self, engine: Engine):
    self.engine = engine
    self.session_factory = orm.sessionmaker(
        bind=engine, autoflush=False, expire_on_commit=False
    )

  @contextlib.contextmanager
  def session(self) -> Iterator[Session]:
    session = self.session_factory()
    try:
      yield session
      session.commit()
    except Exception:
      session.rollback()
      raise
    finally:
      session.close()

  def create(
      self, form: IntakeForm, files: list[FileDescriptor]
  ) -> IntakeRecord:
    """Persists a new submission in the `queued` state."""
    row = Upload(
        id=str(uuid.uuid4()),
        first_name=form.first_name,
        last_name=form.last_name,
        phone=form.phone,
        email=str(form.email),
        ssn_last4=form.ssn_last4,
        tld_status=intake_lib.QUEUED,
        connex_status=intake_lib.QUEUED,
        files=[f.model_dump() for f in files],
        errors=[],
    )
    with self.session() as session:
      session.add(row)
    logging.info("DB: Created intake record %s.", row.id)
    return IntakeRecord.model_validate(row)

  def complete(self, record_id: str, outcome: ReconciliationOutcome) -> bool:
    """Stores the final outcome. Only the first completion is applied.

    Returns:
      True if the record was updated, False if it was unknown or already
      completed.
    """
    statement = (
        sqlalchemy.update(Upload)
        .where(Upload.id == record_id, Upload.completed_at.is_(None))
        .values(
            completed_at=datetime.datetime.now(datetime.timezone.utc),
            lead_id=outcome.lead_id,
            tld_status=outcome.tld_status,
            tld_error=outcome.error_text(*LEAD_STAGES),
            connex_status=outcome.connex_status,
            connex_error=outcome.error_text(*CONNEX_STAGES),
            errors=[e.model_dump() for e in outcome.errors],
            tld_meta=outcome.tld_meta,
        )
    )
    with self.session() as session:
      updated = session.execute(statement).rowcount
    if not updated:
      logging.warning(
          "DB: Intake record %s is unknown or already completed.", record_id
      )
      return False
    return True

  def get(self, record_id: str) -> IntakeRecord | None:
    with self.session() as session:
      row = session.get(Upload, record_id)
      return IntakeRecord.model_validate(row) if row else None

  def list_recent(self, limit: int = 200) -> list[IntakeRecord]:
    statement = (
        sqlalchemy.select(Upload).order_by(Upload.created_at.desc()).limit(limit)
    )
    with self.session() as session:
      rows = session.scalars(statement).all()
      return [IntakeRecord.model_validate(row) for row in rows]
