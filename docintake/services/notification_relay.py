"""Notification relay (Connex) service.

Pushes the outcome of an intake to the downstream workflow trigger.
"""

import logging
from typing import Any

import aiohttp

from docintake import config as config_lib
from docintake.core import errors
from docintake.core import utils

Settings = config_lib.Settings
NotificationRelayError = errors.NotificationRelayError

FLOW_TYPE = "customer"
UNKNOWN_CUSTOMER_ID = "unknown"


def build_fields(
    lead_id: str | None,
    first_name: str,
    last_name: str,
    phone: str,
    email: str,
    ssn_last4: str,
) -> list[dict[str, str]]:
  """Builds the typed name/value pairs the relay expects."""
  values = (
      ("lead_id", lead_id or ""),
      ("first_name", first_name),
      ("last_name", last_name),
      ("phone", phone),
      ("email", email),
      ("ssn_last4", ssn_last4),
  )
  return [{"name": name, "type": "string", "value": value} for name, value in values]


class NotificationRelay:
  """Posts outcome fields to the workflow trigger. Calls are never retried."""

  def __init__(self, settings: Settings):
    self.trigger_url = settings.CONNEX_TRIGGER_URL
    self.authorization = settings.CONNEX_BASIC_AUTH
    self.timeout = aiohttp.ClientTimeout(total=settings.http_timeout_seconds)

  async def notify(
      self, customer_id: str | None, fields: list[dict[str, str]]
  ) -> Any:
    """Triggers the customer flow.

    Args:
      customer_id: The external lead id, or None when it is not known.
      fields: Name/type/value dictionaries, see `build_fields`.

    Returns:
      The decoded response body.

    Raises:
      NotificationRelayError: The relay answered with a non-success status.
    """
    if not self.trigger_url:
      raise NotificationRelayError(None, "CONNEX_TRIGGER_URL is not configured")

    payload = {
        "customer_id": customer_id or UNKNOWN_CUSTOMER_ID,
        "fields": fields,
        "flow_type": FLOW_TYPE,
    }
    headers = {"Authorization": self.authorization}
    logging.info("CONNEX: Triggering flow for customer %s.", payload["customer_id"])

    async with aiohttp.ClientSession(timeout=self.timeout) as session:
      async with session.post(
          self.trigger_url, json=payload, headers=headers
      ) as response:
        data = utils.decode_body(await response.text())
        if response.status >= 400:
          raise NotificationRelayError(response.status, data)
    return data
