"""Tests for the Lead System search envelope parsers."""
import pytest

from docintake.services.lead_envelopes import normalize

ROW_A = {"lead_id": "1", "first_name": "Jane", "last_name": "Doe"}
ROW_B = {"id": "2", "first_name": "Jane", "last_name": "Doe"}
NEXT = "https://tld.test/api/egress/leads?page=2"


@pytest.mark.parametrize(
    ("payload", "shape", "next_url"),
    [
        ([{"results": [ROW_A, ROW_B], "navigate": {"next": NEXT}}, {"meta": 1}], "wrapped_array", NEXT),
        ([ROW_A, ROW_B], "bare_rows", None),
        ({"results": [ROW_A, ROW_B], "navigate": {"next": NEXT}}, "results_object", NEXT),
        ({"response": [ROW_A, ROW_B]}, "response_array", None),
        ({"response": {"results": [ROW_A, ROW_B], "navigate": {"next": NEXT}}}, "response_results", NEXT),
        ({"data": [ROW_A, ROW_B]}, "data_array", None),
        ({"response": {"data": [ROW_A, ROW_B]}}, "response_data", None),
        ({"0": ROW_A, "1": ROW_B, "count": 2}, "keyed_rows", None),
    ],
)
def test_normalize_recognizes_each_envelope(payload, shape, next_url):
    matched, page = normalize(payload)

    assert matched == shape
    assert page.rows == [ROW_A, ROW_B]
    assert page.next_url == next_url


@pytest.mark.parametrize(
    "payload",
    [None, "", "no results", 42, [], {}, {"status": "ok"}, [1, 2, 3], {"results": "none"}],
)
def test_normalize_unknown_shapes_yield_empty_page(payload):
    matched, page = normalize(payload)

    assert matched is None
    assert page.rows == []
    assert page.next_url is None


def test_normalize_drops_non_object_rows():
    _, page = normalize({"results": [ROW_A, "garbage", None, 7]})

    assert page.rows == [ROW_A]


def test_normalize_ignores_empty_next_link():
    _, page = normalize({"results": [ROW_A], "navigate": {"next": ""}})

    assert page.next_url is None
