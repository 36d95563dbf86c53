import re
from datetime import date
from unittest.mock import patch

import pytest

from errors import IdGenerationExhausted
from identifiers import (
    date_key,
    next_account_id,
    next_client_code,
    next_order_number,
    next_service_code,
)


def test_date_key_is_ddmmyy():
    assert date_key(date(2024, 1, 9)) == "090124"


def test_next_order_number_continues_todays_sequence():
    existing = ["AGD-010124-001", "AGD-010124-002"]
    assert next_order_number("AGD", existing, today=date(2024, 1, 1)) == "AGD-010124-003"


def test_next_order_number_restarts_on_a_new_day():
    existing = ["AGD-010124-001", "AGD-010124-002"]
    assert next_order_number("AGD", existing, today=date(2024, 1, 2)) == "AGD-020124-001"


def test_next_order_number_uses_the_highest_not_the_count():
    existing = ["FM-150325-001", "FM-150325-007", "FM-150325-003"]
    assert next_order_number("FM", existing, today=date(2025, 3, 15)) == "FM-150325-008"


def test_next_order_number_ignores_other_prefixes_and_junk():
    existing = ["AGD-150325-009", "FM-150325-abc", None, "", "FM-150325-002"]
    assert next_order_number("FM", existing, today=date(2025, 3, 15)) == "FM-150325-003"


def test_next_order_number_with_no_history():
    assert next_order_number("FM", [], today=date(2025, 3, 15)) == "FM-150325-001"


def test_client_code_format():
    code = next_client_code(lambda _: False)
    assert re.fullmatch(r"C\d{5}", code)


def test_service_code_is_zero_padded():
    with patch("identifiers.random.randint", return_value=42):
        assert next_service_code(lambda _: False) == "S00042"


def test_client_code_retries_past_collisions():
    taken = {"C00001", "C00002"}
    with patch("identifiers.random.randint", side_effect=[1, 2, 3]):
        assert next_client_code(lambda code: code in taken) == "C00003"


def test_client_code_gives_up_after_bounded_attempts():
    calls = []

    def exists(code):
        calls.append(code)
        return True

    with pytest.raises(IdGenerationExhausted):
        next_client_code(exists, max_attempts=5)
    assert len(calls) == 5


def test_account_id_is_five_digits():
    user_id = next_account_id(lambda _: False)
    assert re.fullmatch(r"[1-9]\d{4}", user_id)


def test_account_id_exhaustion_after_ten_attempts():
    calls = []

    def exists(uid):
        calls.append(uid)
        return True

    with pytest.raises(IdGenerationExhausted) as exc:
        next_account_id(exists)
    assert len(calls) == 10
    assert exc.value.kind == "IdGenerationExhausted"
