"""This module provides the Lead System (TLD) integration service."""

import logging
import urllib.parse
from typing import Any

import aiohttp
import pydantic

from docintake import config as config_lib
from docintake.core import errors
from docintake.core import utils
from docintake.schemas import lead as lead_lib
from docintake.services import lead_envelopes

Settings = config_lib.Settings
LeadSystemError = errors.LeadSystemError
LeadCandidate = lead_lib.LeadCandidate
MatchResult = lead_lib.MatchResult
UpsertResult = lead_lib.UpsertResult
last4_from_value = utils.last4_from_value

# Tenants accept different verb / encoding pairs on ingress; try in order.
LEAD_REQUEST_COMBOS = (
    ("post", "json"),
    ("put", "json"),
    ("post", "form"),
    ("put", "form"),
)
SEARCH_COLUMNS = "ssn,lead_id,first_name,last_name,email,phone"
MAX_SEARCH_PAGES = 3
DOCUMENT_UPLOAD_PATH = "/api/ingress/documents/upload/lead/{lead_id}"


def build_lead_payload(
    first_name: str,
    last_name: str,
    phone: str,
    email: str,
    lead_id: str | None = None,
) -> dict[str, str]:
  """Builds the ingress payload. The SSN is never part of it."""
  payload = {
      "first_name": first_name,
      "last_name": last_name,
      "phone": phone,
      "email": email,
  }
  if lead_id:
    payload["lead_id"] = lead_id
  return payload


def extract_lead_id(data: Any) -> str | None:
  """Pulls the lead identifier out of any known ingress response envelope."""
  if not isinstance(data, dict):
    return None
  nested_lead = data.get("lead") if isinstance(data.get("lead"), dict) else {}
  nested_response = (
      data.get("response") if isinstance(data.get("response"), dict) else {}
  )
  lead_id = (
      data.get("lead_id")
      or data.get("id")
      or nested_lead.get("lead_id")
      or nested_response.get("lead_id")
  )
  return str(lead_id) if lead_id else None


def filter_by_last4(
    candidates: list[LeadCandidate], ssn_last4: str | None
) -> list[LeadCandidate]:
  """Keeps the candidates whose SSN ends in `ssn_last4` (all if it is empty)."""
  target = (ssn_last4 or "").strip()
  if not target:
    return list(candidates)
  return [c for c in candidates if last4_from_value(c.ssn) == target]


class TldLeadService:
  """Manages lead upserts, searches and document uploads on the Lead System.

  The ingress contract varies per tenant, so writes negotiate the verb and
  body encoding. Reads authenticate through the query string only.
  """

  def __init__(self, settings: Settings):
    self.base_url = settings.TLD_BASE_URL.rstrip("/")
    self.api_id = settings.TLD_API_ID
    self.api_key = settings.TLD_API_KEY
    self.auth_mode = settings.TLD_AUTH_MODE.lower()
    self.ingress_url = f"{self.base_url}{settings.TLD_INGRESS_LEADS_PATH}"
    self.egress_url = f"{self.base_url}{settings.TLD_EGRESS_LEADS_PATH}"
    self.timeout = aiohttp.ClientTimeout(total=settings.http_timeout_seconds)
    logging.info(
        "TLD_SERVICE: Lead System client initialized (auth mode '%s').",
        self.auth_mode,
    )

  def _header_credentials(self) -> dict[str, str]:
    return {"tld-api-id": self.api_id, "tld-api-key": self.api_key}

  def _auth_options(self) -> dict[str, Any]:
    if self.auth_mode == "basic":
      return {
          "headers": {},
          "auth": aiohttp.BasicAuth(login=self.api_id, password=self.api_key),
      }
    return {"headers": self._header_credentials(), "auth": None}

  async def _send_lead_request(
      self, method: str, mode: str, payload: dict[str, str]
  ) -> Any:
    """Sends one ingress attempt and returns the decoded body."""
    options = self._auth_options()
    if mode == "json":
      body = {"json": payload}
    else:
      body = {"data": {k: str(v) for k, v in payload.items() if v is not None}}

    async with aiohttp.ClientSession(timeout=self.timeout) as session:
      async with session.request(
          method.upper(),
          self.ingress_url,
          headers=options["headers"],
          auth=options["auth"],
          **body,
      ) as response:
        data = utils.decode_body(await response.text())
        if response.status >= 400:
          raise LeadSystemError(response.status, data, method, mode)
        return data

  async def upsert_lead(
      self,
      first_name: str,
      last_name: str,
      phone: str,
      email: str,
      lead_id: str | None = None,
  ) -> UpsertResult:
    """Creates or updates a lead, negotiating the tenant's ingress contract.

    Args:
        first_name: Applicant first name.
        last_name: Applicant last name.
        phone: Applicant phone number.
        email: Applicant email address.
        lead_id: A previously known external identifier, if any.

    Returns:
        The extracted lead_id (None when the response carries none), the
        raw response and the verb / encoding that was accepted.

    Raises:
        LeadSystemError: The tenant rejected the request for a reason other
          than the verb or encoding, or rejected every combination.
        aiohttp.ClientError: The request could not be sent.
    """
    payload = build_lead_payload(first_name, last_name, phone, email, lead_id)
    last_error: LeadSystemError | None = None

    for method, mode in LEAD_REQUEST_COMBOS:
      try:
        data = await self._send_lead_request(method, mode, payload)
      except LeadSystemError as e:
        if e.is_contract_mismatch:
          logging.info(
              "TLD_SERVICE: Ingress rejected %s+%s (HTTP %s), trying next.",
              method.upper(),
              mode,
              e.status,
          )
          last_error = e
          continue
        raise

      result = UpsertResult(
          lead_id=extract_lead_id(data),
          raw=data,
          method=method,
          mode=mode,
          sent=payload,
      )
      logging.info(
          "TLD_SERVICE: Lead upsert accepted via %s+%s, lead_id %s.",
          method.upper(),
          mode,
          result.lead_id,
      )
      return result

    if last_error is not None:
      raise last_error
    raise LeadSystemError(None, "TLD lead request failed with no response")

  async def search_leads(
      self,
      first_name: str,
      last_name: str,
      ssn_last4: str | None = None,
  ) -> list[LeadCandidate]:
    """Searches leads by name and filters them locally on the SSN last 4.

    Only the name is sent; the last 4 digits never leave this process.

    Args:
        first_name: First name to search for.
        last_name: Last name to search for.
        ssn_last4: When given, only rows whose SSN ends in these digits are
          returned.

    Returns:
        The matching candidates, in the order the Lead System returned them.
    """
    fn = (first_name or "").strip()
    ln = (last_name or "").strip()
    if not fn or not ln:
      raise ValueError("Name search requires first_name and last_name")

    params = {
        "api_key": self.api_key,
        "api_id": self.api_id,
        "columns": SEARCH_COLUMNS,
        "first_name": fn,
        "last_name": ln,
    }
    rows: list[dict[str, Any]] = []
    page_url: str | None = self.egress_url
    pages = 0

    async with aiohttp.ClientSession(timeout=self.timeout) as session:
      while page_url and pages < MAX_SEARCH_PAGES:
        request_params = params if pages == 0 else None
        async with session.get(page_url, params=request_params) as response:
          data = utils.decode_body(await response.text())
          if response.status >= 400:
            raise LeadSystemError(response.status, data, "get", "query")
        shape, page = lead_envelopes.normalize(data)
        logging.info(
            "TLD_SERVICE: Search page %d parsed as %s with %d rows.",
            pages + 1,
            shape,
            len(page.rows),
        )
        rows.extend(page.rows)
        page_url = (
            urllib.parse.urljoin(self.egress_url, page.next_url)
            if page.next_url
            else None
        )
        pages += 1

    candidates = []
    for row in rows:
      try:
        candidates.append(LeadCandidate.model_validate(row))
      except pydantic.ValidationError as e:
        logging.warning(
            "TLD_SERVICE: Skipping search row for lead %s with unreadable"
            " fields: %s",
            row.get("lead_id", row.get("id")),
            ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"]),
        )
    return filter_by_last4(candidates, ssn_last4)

  async def find_lead_id(
      self, first_name: str, last_name: str, ssn_last4: str | None
  ) -> MatchResult:
    """Resolves a name + SSN last 4 search to a single lead.

    A lead is only resolved when every remaining candidate carries the same
    identifier; several distinct identifiers are reported as ambiguous.
    """
    candidates = await self.search_leads(first_name, last_name, ssn_last4)
    lead_ids = list(dict.fromkeys(c.lead_id for c in candidates if c.lead_id))
    if len(lead_ids) == 1:
      return MatchResult(lead_id=lead_ids[0], candidates=candidates)
    if len(lead_ids) > 1:
      logging.warning(
          "TLD_SERVICE: %d distinct leads match the search, not auto-applying.",
          len(lead_ids),
      )
      return MatchResult(candidates=candidates, ambiguous=True)
    return MatchResult(candidates=candidates)

  async def upload_file(
      self,
      lead_id: str,
      path: str,
      filename: str,
      mimetype: str = "application/octet-stream",
      description: str | None = None,
  ) -> dict[str, Any]:
    """Attaches a document to a lead as multipart field `file`.

    Args:
        lead_id: The external lead identifier.
        path: Location of the stored document.
        filename: Filename reported to the Lead System.
        mimetype: Content type of the document.
        description: Optional description stored with the document.

    Returns:
        The decoded response and a trace of the request.
    """
    if not lead_id:
      raise ValueError("upload_file: lead_id is required")
    if not path:
      raise ValueError("upload_file: path is required")

    url = self.base_url + DOCUMENT_UPLOAD_PATH.format(
        lead_id=urllib.parse.quote(str(lead_id), safe="")
    )
    with open(path, "rb") as document:
      form = aiohttp.FormData()
      form.add_field("file", document, filename=filename, content_type=mimetype)
      if description:
        form.add_field("description", description)

      async with aiohttp.ClientSession(timeout=self.timeout) as session:
        async with session.post(
            url, data=form, headers=self._header_credentials()
        ) as response:
          data = utils.decode_body(await response.text())
          if response.status >= 400:
            raise LeadSystemError(response.status, data, "post", "multipart")
          status = response.status

    logging.info(
        "TLD_SERVICE: Uploaded %s to lead %s (HTTP %s).", filename, lead_id, status
    )
    return {
        "ok": True,
        "data": data,
        "trace": {"endpoint": url, "auth": "headers", "field": "file", "status": status},
    }
