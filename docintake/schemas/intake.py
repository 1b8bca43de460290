"""Pydantic schemas for intake submissions and their persisted outcome."""

import datetime

import pydantic

Field = pydantic.Field
EmailStr = pydantic.EmailStr
BaseModel = pydantic.BaseModel
ConfigDict = pydantic.ConfigDict
field_validator = pydantic.field_validator

QUEUED = "queued"

SSN_LAST4_PATTERN = r"^[0-9]{4}$"


class IntakeForm(BaseModel):
  """Defines the applicant fields accepted by the upload form."""

  first_name: str = Field(..., min_length=1, description="Applicant first name.")
  last_name: str = Field(..., min_length=1, description="Applicant last name.")
  phone: str = Field(..., min_length=1, description="Applicant phone number.")
  email: EmailStr = Field(..., description="Applicant email address.")
  ssn_last4: str = Field(
      ...,
      pattern=SSN_LAST4_PATTERN,
      description="Last four digits of the applicant's SSN.",
  )
  certify: bool = Field(
      ..., description="Applicant certified the documents are their own."
  )

  @field_validator(
      "first_name", "last_name", "phone", "email", "ssn_last4", mode="before"
  )
  @classmethod
  def _strip(cls, value):
    if isinstance(value, str):
      return value.strip()
    return value

  @field_validator("certify")
  @classmethod
  def _must_certify(cls, value: bool) -> bool:
    if not value:
      raise ValueError("certification not checked")
    return value


class FileDescriptor(BaseModel):
  """One stored upload. The bytes live in the file store under `path`."""

  model_config = ConfigDict(frozen=True)

  originalname: str
  mimetype: str
  size: int
  stored_as: str
  path: str


class IntegrationError(BaseModel):
  """A failure recorded by one reconciliation stage."""

  stage: str
  message: str


class IntakeRecord(BaseModel):
  """The persisted state of one submission."""

  model_config = ConfigDict(from_attributes=True)

  id: str
  created_at: datetime.datetime
  completed_at: datetime.datetime | None = None
  first_name: str
  last_name: str
  phone: str
  email: str
  ssn_last4: str
  lead_id: str | None = None
  tld_status: str | None = None
  tld_error: str | None = None
  connex_status: str | None = None
  connex_error: str | None = None
  files: list[FileDescriptor] = Field(default_factory=list)
  tld_meta: dict | None = None
  errors: list[IntegrationError] = Field(default_factory=list)

  @field_validator("files", "errors", mode="before")
  @classmethod
  def _none_as_empty(cls, value):
    return [] if value is None else value


class ReconciliationJob(BaseModel):
  """Everything the background worker needs to reconcile one intake."""

  model_config = ConfigDict(frozen=True)

  record_id: str
  first_name: str
  last_name: str
  phone: str
  email: str
  ssn_last4: str
  files: tuple[FileDescriptor, ...] = ()

  @classmethod
  def from_record(cls, record: IntakeRecord) -> "ReconciliationJob":
    return cls(
        record_id=record.id,
        first_name=record.first_name,
        last_name=record.last_name,
        phone=record.phone,
        email=record.email,
        ssn_last4=record.ssn_last4,
        files=tuple(record.files),
    )


class ReconciliationOutcome(BaseModel):
  """The single completion write for an intake record."""

  lead_id: str | None = None
  tld_status: str
  connex_status: str
  errors: list[IntegrationError] = Field(default_factory=list)
  tld_meta: dict = Field(default_factory=dict)

  def error_text(self, *stages: str) -> str | None:
    """Pipe-joins the messages recorded by the given stages."""
    messages = [e.message for e in self.errors if e.stage in stages]
    return " | ".join(messages) if messages else None


class IntakeAccepted(BaseModel):
  """Response body for a queued submission."""

  id: str
  tld_status: str = QUEUED
  connex_status: str = QUEUED
