import re

import pytest

from alma_studio.utils.booking_code import booking_code_pattern, generate_booking_code, to_base36


def test_generated_codes_match_the_receipt_format():
    pattern = re.compile(r"^C-ALMA-[0-9A-Z]{8}$")
    codes = {generate_booking_code() for _ in range(50)}
    assert all(pattern.match(code) for code in codes)
    assert all(booking_code_pattern().match(code) for code in codes)


def test_timestamp_part_is_padded():
    code = generate_booking_code(now_ms=35)
    assert code.startswith("C-ALMA-000Z")


def test_custom_prefix_is_upper_cased():
    code = generate_booking_code(prefix="test")
    assert code.startswith("TEST-")
    assert booking_code_pattern("test").match(code)


def test_to_base36():
    assert to_base36(0) == "0"
    assert to_base36(35) == "Z"
    assert to_base36(36) == "10"
    with pytest.raises(ValueError):
        to_base36(-1)
