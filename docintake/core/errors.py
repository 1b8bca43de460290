"""Exceptions raised by the intake and integration services."""

import json
from typing import Any


def describe(body: Any) -> str:
  """Renders a response body the way operators read it in the admin list."""
  if body is None:
    return ""
  if isinstance(body, str):
    return body
  try:
    return json.dumps(body)
  except (TypeError, ValueError):
    return str(body)


class IntakeValidationError(ValueError):
  """Raised when a submission is rejected before anything is stored."""


class LeadSystemError(Exception):
  """Raised when the Lead System answers with a non-success status."""

  def __init__(
      self,
      status: int | None,
      body: Any = None,
      method: str | None = None,
      mode: str | None = None,
  ):
    self.status = status
    self.body = body
    self.method = method
    self.mode = mode
    super().__init__(describe(body) or f"Lead System returned HTTP {status}")

  @property
  def is_contract_mismatch(self) -> bool:
    """True when the tenant rejected the verb or the body encoding."""
    if self.status in (405, 415):
      return True
    return "method not allowed" in describe(self.body).lower()


class NotificationRelayError(Exception):
  """Raised when the notification relay answers with a non-success status."""

  def __init__(self, status: int | None, body: Any = None):
    self.status = status
    self.body = body
    super().__init__(
        describe(body) or f"Notification relay returned HTTP {status}"
    )
