"""Pydantic schemas for Lead System responses."""

from typing import Any

import pydantic

Field = pydantic.Field
BaseModel = pydantic.BaseModel
ConfigDict = pydantic.ConfigDict
model_validator = pydantic.model_validator


class LeadCandidate(BaseModel):
  """A row returned by the Lead System search endpoint."""

  model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

  lead_id: str | None = Field(
      None, description="External lead identifier (`lead_id` or `id`)."
  )
  first_name: str | None = None
  last_name: str | None = None
  email: str | None = None
  phone: str | None = None
  ssn: str | None = Field(
      None, description="Full SSN, only present when the tenant allows it."
  )

  @model_validator(mode="before")
  @classmethod
  def _lead_id_from_id(cls, data: Any) -> Any:
    if isinstance(data, dict) and not data.get("lead_id") and data.get("id"):
      return {**data, "lead_id": data["id"]}
    return data


class SearchPage(BaseModel):
  """One normalized page of search results."""

  rows: list[dict[str, Any]] = Field(default_factory=list)
  next_url: str | None = None


class UpsertResult(BaseModel):
  """The outcome of a lead upsert against the ingress endpoint."""

  lead_id: str | None = None
  raw: Any = None
  method: str
  mode: str
  sent: dict[str, str]


class MatchResult(BaseModel):
  """The outcome of resolving a name + last-4 search to one lead."""

  lead_id: str | None = None
  candidates: list[LeadCandidate] = Field(default_factory=list)
  ambiguous: bool = False

  @property
  def candidate_ids(self) -> list[str]:
    return [c.lead_id for c in self.candidates if c.lead_id]
