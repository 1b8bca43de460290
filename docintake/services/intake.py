"""Accepts submissions: validate, store files, persist, queue reconciliation."""

import asyncio
import logging
from typing import Any, Protocol

import fastapi
import pydantic

from docintake.core import errors
from docintake.db import repository as repository_lib
from docintake.schemas import intake as intake_lib
from docintake.services import storage as storage_lib

UploadFile = fastapi.UploadFile
IntakeForm = intake_lib.IntakeForm
IntakeRecord = intake_lib.IntakeRecord
ReconciliationJob = intake_lib.ReconciliationJob
IntakeValidationError = errors.IntakeValidationError
IntakeRepository = repository_lib.IntakeRepository
FileStore = storage_lib.FileStore

MISSING_FIELDS_MESSAGE = "Missing required fields (or certification not checked)"


class JobQueue(Protocol):

  def enqueue(self, job: ReconciliationJob) -> None:
    ...


def parse_form(fields: dict[str, Any]) -> IntakeForm:
  """Validates the raw form fields.

  Raises:
    IntakeValidationError: A field is missing or malformed.
  """
  try:
    return IntakeForm.model_validate(fields)
  except pydantic.ValidationError as e:
    failed = {str(err["loc"][0]) for err in e.errors() if err["loc"]}
    if failed == {"ssn_last4"} and fields.get("ssn_last4"):
      raise IntakeValidationError("SSN last 4 must be 4 digits") from e
    if failed == {"email"} and fields.get("email"):
      raise IntakeValidationError("Email address is not valid") from e
    raise IntakeValidationError(MISSING_FIELDS_MESSAGE) from e


class IntakeService:
  """Runs the synchronous half of an intake. Remote calls happen later."""

  def __init__(
      self,
      repository: IntakeRepository,
      file_store: FileStore,
      queue: JobQueue,
  ):
    self.repository = repository
    self.file_store = file_store
    self.queue = queue

  async def submit(
      self, form: IntakeForm, uploads: list[UploadFile]
  ) -> IntakeRecord:
    """Stores the submission and queues its reconciliation.

    Args:
      form: The validated applicant fields.
      uploads: The uploaded documents, possibly empty.

    Returns:
      The record as persisted, in the `queued` state.

    Raises:
      IntakeValidationError: A document was rejected; nothing was persisted.
    """
    files = await self.file_store.save_all(uploads)
    try:
      record = await asyncio.to_thread(self.repository.create, form, files)
    except Exception:
      self.file_store.discard(files)
      raise

    self.queue.enqueue(ReconciliationJob.from_record(record))
    logging.info(
        "INTAKE: Accepted record %s with %d file(s).", record.id, len(files)
    )
    return record
