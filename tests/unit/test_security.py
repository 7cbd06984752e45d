from __future__ import annotations

import hmac

import pytest

from backend.app.core.security import CredentialGate, check_credential

SECRET = "test-api-key-12345"


def test_check_credential_concrete_scenario() -> None:
    assert check_credential("k1", "k1") is True
    assert check_credential("k2", "k1") is False
    assert check_credential("", "k1") is False


def test_check_credential_rejects_missing_and_length_mismatch() -> None:
    assert check_credential(None, SECRET) is False
    assert check_credential(SECRET[:-1], SECRET) is False
    assert check_credential(SECRET + "x", SECRET) is False
    assert check_credential(SECRET, "") is False


def test_check_credential_handles_non_ascii() -> None:
    assert check_credential("clé-secrète", "clé-secrète") is True
    assert check_credential("cle-secrete", "clé-secrète") is False


def test_every_mismatch_position_uses_constant_time_compare(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    original = hmac.compare_digest
    calls: list[tuple[bytes, bytes]] = []

    def _recording_compare(a: bytes, b: bytes) -> bool:
        calls.append((a, b))
        return original(a, b)

    monkeypatch.setattr(hmac, "compare_digest", _recording_compare)

    for position in range(len(SECRET)):
        replacement = "#" if SECRET[position] != "#" else "$"
        guess = SECRET[:position] + replacement + SECRET[position + 1 :]
        assert check_credential(guess, SECRET) is False

    assert len(calls) == len(SECRET)
    assert all(len(a) == len(b) == len(SECRET) for a, b in calls)
    assert all(b == SECRET.encode("utf-8") for _, b in calls)


def test_credential_gate_checks_against_secret() -> None:
    gate = CredentialGate(SECRET)
    assert gate.check(SECRET)
    assert not gate.check("wrong-key")
    assert not gate.check(None)
    assert SECRET not in repr(gate)


def test_credential_gate_requires_secret() -> None:
    with pytest.raises(ValueError):
        CredentialGate("")
