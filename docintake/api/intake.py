"""FastAPI router for the public document upload form."""

import logging

import fastapi
from fastapi import responses

from docintake.core import errors
from docintake.schemas import intake as intake_lib
from docintake.services import intake as intake_service_lib

APIRouter = fastapi.APIRouter
Depends = fastapi.Depends
File = fastapi.File
Form = fastapi.Form
Request = fastapi.Request
UploadFile = fastapi.UploadFile
JSONResponse = responses.JSONResponse
IntakeAccepted = intake_lib.IntakeAccepted
IntakeService = intake_service_lib.IntakeService
IntakeValidationError = errors.IntakeValidationError


router = APIRouter(tags=["Intake"])


def get_intake_service(request: Request) -> IntakeService:
  return request.app.state.intake_service


@router.get("/")
async def form_info(request: Request):
  """Describes the upload form and its limits."""
  settings = request.app.state.settings
  return {
      "title": settings.APP_NAME,
      "fields": ["first_name", "last_name", "phone", "email", "ssn_last4", "certify"],
      "max_files": settings.MAX_FILES,
      "max_file_mb": settings.MAX_FILE_MB,
      "allowed_mimes": settings.allowed_mimes,
  }


@router.post("/upload", status_code=202, response_model=IntakeAccepted)
async def upload_endpoint(
    first_name: str = Form(""),
    last_name: str = Form(""),
    phone: str = Form(""),
    email: str = Form(""),
    ssn_last4: str = Form(""),
    certify: str = Form(""),
    documents: list[UploadFile] | None = File(None),
    intake_service: IntakeService = Depends(get_intake_service),
):
  """Accepts a submission and returns before any remote call is made."""
  uploads = [d for d in documents or [] if d.filename]
  try:
    form = intake_service_lib.parse_form({
        "first_name": first_name,
        "last_name": last_name,
        "phone": phone,
        "email": email,
        "ssn_last4": ssn_last4,
        "certify": certify.strip().lower() == "on",
    })
    record = await intake_service.submit(form, uploads)
  except IntakeValidationError as e:
    logging.warning("INTAKE: Rejected submission: %s", e)
    return JSONResponse(status_code=400, content={"error": str(e)})

  return IntakeAccepted(
      id=record.id,
      tld_status=record.tld_status,
      connex_status=record.connex_status,
  )
