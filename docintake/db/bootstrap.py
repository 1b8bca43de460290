"""Creates or upgrades the `uploads` table."""

import logging
import sys

import dotenv
import sqlalchemy

from docintake import config as config_lib
from docintake.db import models
from docintake.db import repository

Engine = sqlalchemy.engine.Engine

# Columns added after the first release; older tables get them on bootstrap.
_LATE_COLUMNS = ("tld_meta", "errors", "completed_at")


def init_db(engine: Engine) -> list[str]:
  """Ensures the schema is current.

  Returns:
    The names of the columns that had to be added to an existing table.
  """
  models.Base.metadata.create_all(engine)

  existing = {c["name"] for c in sqlalchemy.inspect(engine).get_columns("uploads")}
  table = models.Upload.__table__
  added = []
  with engine.begin() as conn:
    for name in _LATE_COLUMNS:
      if name in existing:
        continue
      column_type = table.c[name].type.compile(dialect=engine.dialect)
      conn.execute(
          sqlalchemy.text(f"ALTER TABLE uploads ADD COLUMN {name} {column_type}")
      )
      added.append(name)
  if added:
    logging.info("DB: Added columns %s to uploads.", ", ".join(added))
  return added


def main() -> int:
  dotenv.load_dotenv()
  logging.basicConfig(level=logging.INFO)
  settings = config_lib.get_settings()
  try:
    init_db(repository.build_engine(settings.DATABASE_URL))
  except sqlalchemy.exc.SQLAlchemyError as e:
    logging.error("DB: Schema bootstrap failed: %s", e)
    return 1
  logging.info("DB: Schema is up to date.")
  return 0


if __name__ == "__main__":
  sys.exit(main())
