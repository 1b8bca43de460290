"""Helper functions shared by the intake and integration services."""

import json
import logging
import re
from typing import Any

_NON_DIGIT = re.compile(r"\D")
_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9\-_]")


def last4_from_value(value: Any) -> str:
  """Extracts the last four digits from an SSN-ish value.

  Args:
    value: Any SSN representation, e.g. "***-**-1234" or 123456789.

  Returns:
    The trailing four digits, or an empty string when the value holds
    fewer than four digits.
  """
  if value is None or value == "":
    return ""
  digits = _NON_DIGIT.sub("", str(value))
  if len(digits) < 4:
    return ""
  return digits[-4:]


def safe_filename_base(name: str) -> str:
  """Replaces every character outside [A-Za-z0-9-_] with an underscore."""
  return _UNSAFE_NAME_CHARS.sub("_", name)


def decode_body(text: str) -> Any:
  """Decodes a response body as JSON, falling back to the raw text.

  Args:
    text: The response body.

  Returns:
    The decoded JSON value, the original text if it is not JSON, or None
    for an empty body.
  """
  if not text:
    return None
  try:
    return json.loads(text)
  except ValueError:
    logging.debug("Response body is not JSON, keeping raw text.")
    return text
