"""Tests for the helpers in docintake.core.utils."""
import pytest

from docintake.core.utils import decode_body, last4_from_value, safe_filename_base


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("***-**-1234", "1234"),
        ("123-45-6789", "6789"),
        ("***1234", "1234"),
        (123456789, "6789"),
        ("1234", "1234"),
        ("12a34", "1234"),
        ("123", ""),
        ("***-**-", ""),
        ("", ""),
        (None, ""),
    ],
)
def test_last4_from_value(value, expected):
    assert last4_from_value(value) == expected


def test_safe_filename_base_replaces_unsafe_characters():
    assert safe_filename_base("my tax return (2024)") == "my_tax_return__2024_"
    assert safe_filename_base("pay-stub_01") == "pay-stub_01"


def test_decode_body_prefers_json_and_keeps_text():
    assert decode_body('{"lead_id": "L1"}') == {"lead_id": "L1"}
    assert decode_body("Method Not Allowed") == "Method Not Allowed"
    assert decode_body("") is None
