"""Parsers for the response envelopes returned by the Lead System search.

The egress endpoint answers with a different shape depending on the
tenant and the endpoint version. Each parser probes one shape and returns
a SearchPage, or None when the shape does not apply. The first parser that
recognizes the payload wins; an unknown payload yields an empty page.
"""

from typing import Any, Callable

from docintake.schemas import lead as lead_lib

SearchPage = lead_lib.SearchPage

_ROW_KEYS = ("lead_id", "id", "first_name", "last_name")

Parser = Callable[[Any], SearchPage | None]


def looks_like_row(value: Any) -> bool:
  return isinstance(value, dict) and any(value.get(k) for k in _ROW_KEYS)


def _get(data: Any, *path: str) -> Any:
  for key in path:
    if not isinstance(data, dict):
      return None
    data = data.get(key)
  return data


def _page(rows: list[Any], next_url: Any = None) -> SearchPage:
  return SearchPage(
      rows=[r for r in rows if isinstance(r, dict)],
      next_url=next_url if isinstance(next_url, str) and next_url else None,
  )


def parse_wrapped_array(data: Any) -> SearchPage | None:
  """[{results: [...], navigate: {next}}, {meta...}]"""
  if isinstance(data, list) and data and isinstance(
      _get(data[0], "results"), list
  ):
    return _page(data[0]["results"], _get(data[0], "navigate", "next"))
  return None


def parse_bare_rows(data: Any) -> SearchPage | None:
  """[{lead_id, first_name, ...}, ...]"""
  if isinstance(data, list) and data and looks_like_row(data[0]):
    return _page(data)
  return None


def parse_results_object(data: Any) -> SearchPage | None:
  """{results: [...], navigate: {next}}"""
  if isinstance(_get(data, "results"), list):
    return _page(data["results"], _get(data, "navigate", "next"))
  return None


def parse_response_array(data: Any) -> SearchPage | None:
  """{response: [...]}"""
  if isinstance(_get(data, "response"), list):
    return _page(data["response"])
  return None


def parse_response_results(data: Any) -> SearchPage | None:
  """{response: {results: [...], navigate: {next}}}"""
  if isinstance(_get(data, "response", "results"), list):
    return _page(
        data["response"]["results"],
        _get(data, "response", "navigate", "next"),
    )
  return None


def parse_data_array(data: Any) -> SearchPage | None:
  """{data: [...]}"""
  if isinstance(_get(data, "data"), list):
    return _page(data["data"])
  return None


def parse_response_data(data: Any) -> SearchPage | None:
  """{response: {data: [...]}}"""
  if isinstance(_get(data, "response", "data"), list):
    return _page(data["response"]["data"])
  return None


def parse_keyed_rows(data: Any) -> SearchPage | None:
  """{"0": {lead_id, ...}, "1": {...}}"""
  if not isinstance(data, dict):
    return None
  values = [v for v in data.values() if isinstance(v, dict)]
  if values and looks_like_row(values[0]):
    return _page(values)
  return None


PARSERS: tuple[tuple[str, Parser], ...] = (
    ("wrapped_array", parse_wrapped_array),
    ("bare_rows", parse_bare_rows),
    ("results_object", parse_results_object),
    ("response_array", parse_response_array),
    ("response_results", parse_response_results),
    ("data_array", parse_data_array),
    ("response_data", parse_response_data),
    ("keyed_rows", parse_keyed_rows),
)


def normalize(data: Any) -> tuple[str | None, SearchPage]:
  """Normalizes a search response into a page of rows.

  Args:
    data: The decoded response body.

  Returns:
    The name of the parser that matched (None if nothing did) and the page.
  """
  for name, parser in PARSERS:
    page = parser(data)
    if page is not None:
      return name, page
  return None, SearchPage()
