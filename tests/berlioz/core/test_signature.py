"""Tests for Slack request signature verification."""

import time

import pytest

from berlioz.core.signature import compute_signature, verify_signature

SECRET = "8f742231b10e8888abcd99yyyzzz85a5"
BODY = '{"type":"event_callback","api_app_id":"A123","event":{"type":"app_mention"}}'


def _flip_bit(value: str, index: int, bit: int = 0) -> str:
    return value[:index] + chr(ord(value[index]) ^ (1 << bit)) + value[index + 1 :]


@pytest.fixture
def signed():
    ts = str(int(time.time()))
    return compute_signature(ts, BODY, SECRET), ts


def test_compute_signature_format():
    sig = compute_signature("1531420618", BODY, SECRET)
    assert sig.startswith("v0=")
    assert len(sig) == 3 + 64


def test_verify_accepts_correctly_signed_request(signed):
    sig, ts = signed
    assert verify_signature(sig, ts, BODY, SECRET) is True


def test_verify_accepts_bytes_body(signed):
    sig, ts = signed
    assert verify_signature(sig, ts, BODY.encode("utf-8"), SECRET) is True


@pytest.mark.parametrize("index", [3, 10, 40, 66])
def test_verify_rejects_mutated_signature(signed, index):
    sig, ts = signed
    assert verify_signature(_flip_bit(sig, index), ts, BODY, SECRET) is False


@pytest.mark.parametrize("index", [0, 15, len(BODY) - 1])
def test_verify_rejects_mutated_body(signed, index):
    sig, ts = signed
    assert verify_signature(sig, ts, _flip_bit(BODY, index), SECRET) is False


def test_verify_rejects_mutated_timestamp(signed):
    sig, ts = signed
    # Lowest bit of the last digit keeps it a digit and within the age window.
    assert verify_signature(sig, _flip_bit(ts, len(ts) - 1), BODY, SECRET) is False


def test_verify_rejects_wrong_secret(signed):
    sig, ts = signed
    assert verify_signature(sig, ts, BODY, SECRET + "x") is False


def test_verify_rejects_stale_timestamp():
    ts = "1531420618"
    sig = compute_signature(ts, BODY, SECRET)
    assert verify_signature(sig, ts, BODY, SECRET, now=1531420618 + 301) is False
    assert verify_signature(sig, ts, BODY, SECRET, now=1531420618 + 299) is True


def test_verify_max_age_zero_disables_replay_check():
    ts = "1531420618"
    sig = compute_signature(ts, BODY, SECRET)
    assert verify_signature(sig, ts, BODY, SECRET, max_age_seconds=0) is True


@pytest.mark.parametrize(
    "signature, timestamp, body, secret",
    [
        (None, "1531420618", BODY, SECRET),
        ("v0=abc", None, BODY, SECRET),
        ("v0=abc", "not-a-number", BODY, SECRET),
        ("v0=abc", "1531420618", None, SECRET),
        ("v0=abc", "1531420618", BODY, ""),
        ("v0=abc", "1531420618", b"\xff\xfe", SECRET),
        ("v0=é", "1531420618", BODY, SECRET),
    ],
)
def test_verify_returns_false_on_malformed_input(signature, timestamp, body, secret):
    assert (
        verify_signature(signature, timestamp, body, secret, max_age_seconds=0) is False
    )
