"""Main application for the Document Intake service."""

from contextlib import asynccontextmanager

import logging
import sys
from google.cloud.logging_v2.handlers import StructuredLogHandler
import dotenv
import fastapi
from docintake import config as config_lib
from docintake.api import admin
from docintake.api import intake
from docintake.db import bootstrap
from docintake.db import repository as repository_lib
from docintake.services import intake as intake_service_lib
from docintake.services import lead_system as lead_system_lib
from docintake.services import notification_relay as notification_relay_lib
from docintake.services import reconciliation as reconciliation_lib
from docintake.services import storage as storage_lib

load_dotenv = dotenv.load_dotenv
FastAPI = fastapi.FastAPI
Settings = config_lib.Settings

load_dotenv()


def setup_async_logging():
  """Configures a single structured logger on stdout for Cloud Run."""
  root_logger = logging.getLogger()
  root_logger.handlers.clear()
  root_logger.setLevel(logging.INFO)
  handler = StructuredLogHandler(stream=sys.stdout)
  root_logger.addHandler(handler)


# --- Logging and App Setup ---
setup_async_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
  """Wires the services from the app's settings and runs the workers."""
  settings = app.state.settings
  logging.info("FastAPI server starting up...")

  engine = repository_lib.build_engine(settings.DATABASE_URL)
  bootstrap.init_db(engine)
  repository = repository_lib.IntakeRepository(engine)
  file_store = storage_lib.FileStore(settings)
  file_store.ensure_upload_dir()

  orchestrator = reconciliation_lib.ReconciliationOrchestrator(
      lead_service=lead_system_lib.TldLeadService(settings),
      relay=notification_relay_lib.NotificationRelay(settings),
      store=repository,
  )
  queue = reconciliation_lib.ReconciliationQueue(
      orchestrator, workers=settings.RECONCILE_WORKERS
  )
  queue.start()

  app.state.repository = repository
  app.state.queue = queue
  app.state.intake_service = intake_service_lib.IntakeService(
      repository=repository, file_store=file_store, queue=queue
  )
  yield
  logging.info("FastAPI server shutting down...")
  await queue.stop()
  engine.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
  settings = settings or config_lib.get_settings()
  app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
  app.state.settings = settings
  app.include_router(intake.router)
  app.include_router(admin.router)
  return app


app = create_app()


if __name__ == "__main__":
  import uvicorn  # pylint: disable=g-import-not-at-top

  uvicorn.run(
      "docintake.main:app",
      host="0.0.0.0",
      port=8080,
  )
