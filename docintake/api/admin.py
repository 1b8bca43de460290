"""FastAPI router for the operator listing of intake records."""

import asyncio
import logging
import secrets

import fastapi
from fastapi import security

from docintake.db import repository as repository_lib

APIRouter = fastapi.APIRouter
Depends = fastapi.Depends
HTTPException = fastapi.HTTPException
Request = fastapi.Request
HTTPBasic = security.HTTPBasic
HTTPBasicCredentials = security.HTTPBasicCredentials
IntakeRepository = repository_lib.IntakeRepository

_CREATED_AT_FORMAT = "%Y-%m-%d %H:%M"

basic_auth = HTTPBasic(realm="admin")


def get_repository(request: Request) -> IntakeRepository:
  return request.app.state.repository


def _matches(given: str, expected: str) -> bool:
  return secrets.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


def require_admin(
    request: Request,
    credentials: HTTPBasicCredentials = Depends(basic_auth),
) -> str:
  """Checks operator credentials. Unset credentials lock everyone out."""
  settings = request.app.state.settings
  configured = bool(settings.ADMIN_USER and settings.ADMIN_PASS)
  user_ok = _matches(credentials.username, settings.ADMIN_USER)
  pass_ok = _matches(credentials.password, settings.ADMIN_PASS)
  if not (configured and user_ok and pass_ok):
    logging.warning("ADMIN: Access denied for user '%s'.", credentials.username)
    raise HTTPException(
        status_code=401,
        detail="Access denied",
        headers={"WWW-Authenticate": 'Basic realm="admin"'},
    )
  return credentials.username


router = APIRouter(
    prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)]
)


@router.get("")
async def list_uploads(
    request: Request,
    repository: IntakeRepository = Depends(get_repository),
):
  """Lists the most recent submissions, newest first."""
  limit = request.app.state.settings.ADMIN_LIST_LIMIT
  rows = []
  for record in await asyncio.to_thread(repository.list_recent, limit):
    row = record.model_dump(mode="json")
    row["created_at_fmt"] = record.created_at.strftime(_CREATED_AT_FORMAT)
    rows.append(row)
  return {"rows": rows}


@router.get("/uploads/{record_id}")
async def get_upload(
    record_id: str,
    repository: IntakeRepository = Depends(get_repository),
):
  record = await asyncio.to_thread(repository.get, record_id)
  if record is None:
    raise HTTPException(status_code=404, detail="Upload not found")
  return record.model_dump(mode="json")
