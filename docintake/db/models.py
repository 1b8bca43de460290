"""SQLAlchemy models for persisted intake records."""

import datetime

import sqlalchemy
from sqlalchemy import orm
from sqlalchemy.dialects import postgresql

Mapped = orm.Mapped
mapped_column = orm.mapped_column
DeclarativeBase = orm.DeclarativeBase

# JSONB on Postgres, plain JSON everywhere else.
JsonColumn = sqlalchemy.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _utcnow() -> datetime.datetime:
  return datetime.datetime.now(datetime.timezone.utc)


class Base(DeclarativeBase):
  pass


class Upload(Base):
  """One intake submission and the outcome of its reconciliation."""

  __tablename__ = "uploads"

  id: Mapped[str] = mapped_column(sqlalchemy.String(36), primary_key=True)
  created_at: Mapped[datetime.datetime] = mapped_column(
      sqlalchemy.DateTime(timezone=True), nullable=False, default=_utcnow
  )
  completed_at: Mapped[datetime.datetime | None] = mapped_column(
      sqlalchemy.DateTime(timezone=True)
  )
  first_name: Mapped[str] = mapped_column(sqlalchemy.Text, nullable=False)
  last_name: Mapped[str] = mapped_column(sqlalchemy.Text, nullable=False)
  phone: Mapped[str] = mapped_column(sqlalchemy.Text, nullable=False)
  email: Mapped[str] = mapped_column(sqlalchemy.Text, nullable=False)
  ssn_last4: Mapped[str] = mapped_column(sqlalchemy.Text, nullable=False)
  lead_id: Mapped[str | None] = mapped_column(sqlalchemy.Text)
  tld_status: Mapped[str | None] = mapped_column(sqlalchemy.Text)
  tld_error: Mapped[str | None] = mapped_column(sqlalchemy.Text)
  connex_status: Mapped[str | None] = mapped_column(sqlalchemy.Text)
  connex_error: Mapped[str | None] = mapped_column(sqlalchemy.Text)
  files: Mapped[list] = mapped_column(JsonColumn, nullable=False)
  tld_meta: Mapped[dict | None] = mapped_column(JsonColumn)
  errors: Mapped[list | None] = mapped_column(JsonColumn)
