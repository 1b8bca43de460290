"""Background reconciliation of intake records with the Lead System.

Each job runs its stages in order: upsert, search fallback, file attach,
notification. A failing stage is recorded on the outcome and the remaining
stages still run.
"""

import asyncio
import logging
from typing import Any, Protocol

from docintake.schemas import intake as intake_lib
from docintake.services import lead_system as lead_system_lib
from docintake.services import notification_relay as notification_relay_lib

IntegrationError = intake_lib.IntegrationError
ReconciliationJob = intake_lib.ReconciliationJob
ReconciliationOutcome = intake_lib.ReconciliationOutcome
TldLeadService = lead_system_lib.TldLeadService
NotificationRelay = notification_relay_lib.NotificationRelay

LEAD_OK = "lead_ok"
AUTO_MATCHED = "auto_matched"
AMBIGUOUS_MATCH = "ambiguous_match"
NO_LEAD_ID = "no_lead_id"
LEAD_ERROR = "lead_error"
FILE_ERROR = "file_error"
CONNEX_OK = "ok"
CONNEX_ERROR = "error"


class OutcomeStore(Protocol):

  def complete(self, record_id: str, outcome: ReconciliationOutcome) -> bool:
    ...


def _error_text(e: Exception) -> str:
  return str(e) or type(e).__name__


def _error_meta(e: Exception) -> dict[str, Any]:
  meta: dict[str, Any] = {"error": _error_text(e)}
  status = getattr(e, "status", None)
  if status is not None:
    meta["status"] = status
  body = getattr(e, "body", None)
  if body is not None:
    meta["response"] = body
  return meta


class ReconciliationOrchestrator:
  """Runs the integration stages for one intake and stores the outcome."""

  def __init__(
      self,
      lead_service: TldLeadService,
      relay: NotificationRelay,
      store: OutcomeStore,
  ):
    self.lead_service = lead_service
    self.relay = relay
    self.store = store

  async def reconcile(self, job: ReconciliationJob) -> ReconciliationOutcome:
    """Runs every stage for `job` and persists the result once."""
    outcome = ReconciliationOutcome(
        tld_status=NO_LEAD_ID, connex_status=CONNEX_ERROR
    )

    await self._upsert(job, outcome)
    if outcome.lead_id is None:
      await self._search(job, outcome)
    if outcome.lead_id:
      await self._attach_files(job, outcome)
    await self._notify(job, outcome)

    logging.info(
        "RECONCILE: Record %s finished with tld_status=%s connex_status=%s"
        " (%d errors).",
        job.record_id,
        outcome.tld_status,
        outcome.connex_status,
        len(outcome.errors),
    )
    await asyncio.to_thread(self.store.complete, job.record_id, outcome)
    return outcome

  def _record_error(
      self, outcome: ReconciliationOutcome, stage: str, e: Exception
  ) -> None:
    logging.warning(
        "RECONCILE: Stage '%s' failed: %s", stage, _error_text(e)
    )
    outcome.errors.append(IntegrationError(stage=stage, message=_error_text(e)))

  async def _upsert(
      self, job: ReconciliationJob, outcome: ReconciliationOutcome
  ) -> None:
    try:
      result = await self.lead_service.upsert_lead(
          first_name=job.first_name,
          last_name=job.last_name,
          phone=job.phone,
          email=job.email,
      )
    except Exception as e:  # pylint: disable=broad-exception-caught
      self._record_error(outcome, "upsert", e)
      outcome.tld_status = LEAD_ERROR
      outcome.tld_meta["upsert"] = _error_meta(e)
      return

    outcome.lead_id = result.lead_id
    outcome.tld_status = LEAD_OK if result.lead_id else NO_LEAD_ID
    outcome.tld_meta["upsert"] = {
        "request": {"method": result.method, "mode": result.mode, "sent": result.sent},
        "response": result.raw,
    }

  async def _search(
      self, job: ReconciliationJob, outcome: ReconciliationOutcome
  ) -> None:
    try:
      match = await self.lead_service.find_lead_id(
          job.first_name, job.last_name, job.ssn_last4
      )
    except Exception as e:  # pylint: disable=broad-exception-caught
      self._record_error(outcome, "search", e)
      outcome.tld_meta["search"] = _error_meta(e)
      return

    # Candidate rows may carry full SSNs; only their ids are kept.
    outcome.tld_meta["search"] = {
        "candidates": match.candidate_ids,
        "matched": match.lead_id,
        "ambiguous": match.ambiguous,
    }
    if match.lead_id:
      outcome.lead_id = match.lead_id
      outcome.tld_status = AUTO_MATCHED
    elif match.ambiguous and outcome.tld_status == NO_LEAD_ID:
      outcome.tld_status = AMBIGUOUS_MATCH

  async def _attach_files(
      self, job: ReconciliationJob, outcome: ReconciliationOutcome
  ) -> None:
    results = []
    for descriptor in job.files:
      try:
        uploaded = await self.lead_service.upload_file(
            outcome.lead_id,
            descriptor.path,
            filename=descriptor.originalname,
            mimetype=descriptor.mimetype,
            description=descriptor.originalname,
        )
      except Exception as e:  # pylint: disable=broad-exception-caught
        self._record_error(outcome, "file", e)
        outcome.tld_status = FILE_ERROR
        results.append({"stored_as": descriptor.stored_as, **_error_meta(e)})
        continue
      results.append({
          "stored_as": descriptor.stored_as,
          "response": uploaded["data"],
          "trace": uploaded["trace"],
      })
    outcome.tld_meta["files"] = results

  async def _notify(
      self, job: ReconciliationJob, outcome: ReconciliationOutcome
  ) -> None:
    fields = notification_relay_lib.build_fields(
        lead_id=outcome.lead_id,
        first_name=job.first_name,
        last_name=job.last_name,
        phone=job.phone,
        email=job.email,
        ssn_last4=job.ssn_last4,
    )
    try:
      response = await self.relay.notify(outcome.lead_id, fields)
    except Exception as e:  # pylint: disable=broad-exception-caught
      self._record_error(outcome, "connex", e)
      outcome.connex_status = CONNEX_ERROR
      outcome.tld_meta["connex"] = _error_meta(e)
      return
    outcome.connex_status = CONNEX_OK
    outcome.tld_meta["connex"] = {"response": response}


class ReconciliationQueue:
  """In-process job queue drained by a fixed number of asyncio workers."""

  def __init__(self, orchestrator: ReconciliationOrchestrator, workers: int = 4):
    self.orchestrator = orchestrator
    self.worker_count = max(1, workers)
    self._queue: asyncio.Queue[ReconciliationJob] = asyncio.Queue()
    self._workers: list[asyncio.Task] = []

  def start(self) -> None:
    if self._workers:
      return
    self._workers = [
        asyncio.create_task(self._work(), name=f"reconcile-worker-{i}")
        for i in range(self.worker_count)
    ]
    logging.info("RECONCILE: Started %d workers.", self.worker_count)

  def enqueue(self, job: ReconciliationJob) -> None:
    self._queue.put_nowait(job)
    logging.info("RECONCILE: Queued record %s.", job.record_id)

  async def join(self) -> None:
    """Waits until every queued job has been processed."""
    await self._queue.join()

  async def stop(self) -> None:
    for worker in self._workers:
      worker.cancel()
    await asyncio.gather(*self._workers, return_exceptions=True)
    self._workers = []

  async def _work(self) -> None:
    while True:
      job = await self._queue.get()
      try:
        await self.orchestrator.reconcile(job)
      except Exception as e:  # pylint: disable=broad-exception-caught
        logging.exception(
            "RECONCILE: Unhandled error for record %s: %s", job.record_id, e
        )
      finally:
        self._queue.task_done()
