import logging
from datetime import timedelta

import pytest

from leadcrm.core.logging import SecureFormatter, hash_pii, sanitize_log_data
from leadcrm.core.security import (
    create_access_token,
    generate_otp,
    hash_pin,
    is_valid_phone,
    verify_pin,
    verify_token,
)


def test_pin_hash_round_trip():
    hashed = hash_pin("4321")
    assert hashed != "4321"
    assert verify_pin("4321", hashed)
    assert not verify_pin("1234", hashed)


@pytest.mark.parametrize("pin", ["123", "12345", "abcd", ""])
def test_hash_pin_rejects_malformed_pins(pin):
    with pytest.raises(ValueError):
        hash_pin(pin)


def test_access_token_carries_claims():
    token = create_access_token(7, additional_claims={"role": "manager", "org": 3})
    payload = verify_token(token)
    assert payload["sub"] == "7"
    assert payload["role"] == "manager"
    assert payload["org"] == 3
    assert payload["type"] == "access"


def test_expired_and_garbage_tokens_are_rejected():
    expired = create_access_token(7, expires_delta=timedelta(minutes=-5))
    assert verify_token(expired) is None
    assert verify_token("not-a-token") is None


def test_otp_is_numeric_without_leading_zero():
    for _ in range(20):
        otp = generate_otp(6)
        assert len(otp) == 6
        assert otp.isdigit()
        assert otp[0] != "0"


@pytest.mark.parametrize("phone,expected", [
    ("9876543210", True),
    ("987654321", False),
    ("98765432100", False),
    ("98765abcde", False),
    (None, False),
])
def test_phone_validation(phone, expected):
    assert is_valid_phone(phone) is expected


def test_sanitize_log_data_redacts_nested_secrets():
    data = {"phone": "x", "otp": "123456", "nested": [{"Authorization": "Bearer abc"}, {"ok": 1}]}
    assert sanitize_log_data(data) == {
        "phone": "x",
        "otp": "***",
        "nested": [{"Authorization": "***"}, {"ok": 1}],
    }


def test_secure_formatter_masks_phone_and_otp():
    record = logging.LogRecord("leadcrm", logging.INFO, __file__, 1, "otp=123456 sent to 9876543210", None, None)
    rendered = SecureFormatter(fmt="%(message)s").format(record)
    assert "123456" not in rendered
    assert "******3210" in rendered


def test_hash_pii_is_stable_and_short():
    assert hash_pii("9876543210") == hash_pii("9876543210")
    assert len(hash_pii("9876543210")) == 16
